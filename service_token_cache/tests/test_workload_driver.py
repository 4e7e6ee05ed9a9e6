"""
Unit tests for the latency-instrumented workload driver.
"""

import pytest
from collections import Counter
from unittest.mock import MagicMock

from prometheus_client import CollectorRegistry
from structlog.testing import capture_logs

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_token_cache.app.accessor.token_cache_accessor import TokenCacheAccessor
from service_token_cache.app.benchmark.driver import (
    BenchmarkParameters,
    ExecutionWindow,
    WorkloadDriver,
    make_client_factory,
)
from service_token_cache.app.client.tokens import SyntheticTokenIssuer
from service_token_cache.app.store.memory_store import MemoryStore
from shared.errors import (
    CacheContractError,
    CacheUnmarshalError,
    HarnessSetupError,
    TokenNotFoundError,
    ValidationError,
)
from shared.metrics import MetricsCollector


SIGNING_KEY = "workload-driver-test-signing-key-0001"


class StepClock:
    """Clock that advances by a fixed step on every read."""

    def __init__(self, step: float = 0.001):
        self.step = step
        self.now = 0.0

    def __call__(self) -> float:
        self.now += self.step
        return self.now


class RecordingFactory:
    """Client factory that counts which tenants were requested."""

    def __init__(self, factory):
        self.factory = factory
        self.tenants = Counter()
        self.clients = []

    def __call__(self, tenant_id: str):
        self.tenants[tenant_id] += 1
        client = self.factory(tenant_id)
        self.clients.append(client)
        return client


class TestBenchmarkParameters:
    """Test cases for BenchmarkParameters."""

    def test_tenant_mapping(self):
        """Operation i maps to tenant i mod TenantCount."""
        params = BenchmarkParameters(tenant_count=100, token_count=400)

        assert params.tenant_for(0) == "0"
        assert params.tenant_for(99) == "99"
        assert params.tenant_for(100) == "0"
        assert params.tenant_for(399) == "99"

    def test_scope_is_unique_per_index(self):
        """Every operation index gets its own scope."""
        assert len({BenchmarkParameters.scope_for(i) for i in range(400)}) == 400

    def test_uneven_token_count_accepted(self):
        """Token counts that do not divide evenly are allowed."""
        params = BenchmarkParameters(tenant_count=3, token_count=10)

        assert Counter(params.tenant_for(i) for i in range(10)) == {"0": 4, "1": 3, "2": 3}

    def test_zero_tenants_rejected(self):
        """At least one tenant is required."""
        with pytest.raises(ValidationError):
            BenchmarkParameters(tenant_count=0, token_count=10)

    def test_negative_tokens_rejected(self):
        """Negative token counts are rejected."""
        with pytest.raises(ValidationError):
            BenchmarkParameters(tenant_count=1, token_count=-1)


class TestExecutionWindow:
    """Test cases for ExecutionWindow."""

    def test_elapsed(self):
        """elapsed is end minus start."""
        window = ExecutionWindow(start=2.0, end=3.5, durations=(0.5, 0.5))

        assert window.elapsed == 1.5

    def test_immutable(self):
        """Windows cannot be modified after construction."""
        window = ExecutionWindow(start=0.0, end=1.0, durations=(1.0,))

        with pytest.raises(AttributeError):
            window.end = 2.0


class TestWorkloadDriver:
    """Test cases for WorkloadDriver."""

    @pytest.fixture
    def store(self):
        """In-memory store without a janitor."""
        return MemoryStore(default_ttl=300, cleanup_interval=0)

    @pytest.fixture
    def accessor(self, store):
        """Accessor scoped to one run."""
        return TokenCacheAccessor(store)

    @pytest.fixture
    def issuer(self):
        """Synthetic token issuer."""
        return SyntheticTokenIssuer(SIGNING_KEY, "fake_authority")

    @pytest.fixture
    def factory(self, accessor):
        """Recording client factory bound to the accessor."""
        return RecordingFactory(make_client_factory("fake_client_id", "fake_authority", accessor))

    def make_driver(self, factory, issuer, tenants=4, tokens=12, **kwargs):
        return WorkloadDriver(BenchmarkParameters(tenants, tokens), factory, issuer, **kwargs)

    def test_population_distributes_across_tenants(self, factory, issuer, accessor):
        """400 tokens over 100 tenants gives each tenant exactly 4 exports."""
        driver = self.make_driver(factory, issuer, tenants=100, tokens=400)

        window = driver.populate()

        assert len(window.durations) == 400
        assert sum(factory.tenants.values()) == 400
        assert set(factory.tenants.values()) == {4}
        assert len(factory.tenants) == 100
        assert accessor.stats.exports == 400
        assert accessor.stats.export_failures == 0

    def test_population_builds_one_partition_per_tenant(self, factory, issuer, store):
        """Each tenant partition holds that tenant's tokens."""
        driver = self.make_driver(factory, issuer, tenants=4, tokens=12)

        driver.populate()

        assert store.item_count() == 4
        reader = factory.factory("2")
        reader.accessor.replace(reader.cache, "fake_client_id_2_AppTokenCache")
        assert reader.cache.access_token_count() == 3

    def test_retrieval_finds_every_token(self, factory, issuer, accessor):
        """Every populated token is retrieved silently."""
        driver = self.make_driver(factory, issuer, tenants=4, tokens=12)

        population, retrieval = driver.run()

        assert len(population.durations) == len(retrieval.durations) == 12
        assert retrieval.errors == 0
        assert retrieval.misses == 0
        assert accessor.stats.hits >= 12

    def test_durations_indexed_by_operation(self, factory, issuer):
        """Durations are stored at their operation index, timed around the client call."""
        driver = self.make_driver(factory, issuer, tenants=2, tokens=5, clock=StepClock(0.001))

        window = driver.populate()

        # each timed call reads the clock twice: one step apart
        assert window.durations == pytest.approx((0.001,) * 5)

    def test_window_bounds_surround_whole_phase(self, factory, issuer):
        """Phase bounds are measured around the loop, not summed from durations."""
        driver = self.make_driver(factory, issuer, tenants=2, tokens=5, clock=StepClock(0.001))

        window = driver.populate()

        assert window.elapsed > sum(window.durations)
        assert window.elapsed == pytest.approx(0.011)

    def test_retrieval_miss_is_recorded_and_run_continues(self, factory, issuer):
        """Retrieval without population counts misses but completes."""
        driver = self.make_driver(factory, issuer, tenants=2, tokens=6)

        with capture_logs() as logs:
            window = driver.retrieve()

        assert len(window.durations) == 6
        assert window.errors == 6
        assert window.misses == 6
        assert all(duration >= 0 for duration in window.durations)
        assert sum(1 for log in logs if log["event"] == "Token not found in cache") == 6

    def test_retrieval_accessor_error_is_non_fatal(self, factory, issuer, store):
        """Corrupt partitions are logged and counted, not fatal."""
        driver = self.make_driver(factory, issuer, tenants=2, tokens=4)
        driver.populate()
        store.set("fake_client_id_1_AppTokenCache", b"corrupted")

        with capture_logs() as logs:
            window = driver.retrieve()

        assert window.errors == 2
        assert window.misses == 0
        failures = [log for log in logs if log["event"] == "Silent token retrieval failed"]
        assert len(failures) == 2
        assert failures[0]["code"] == CacheUnmarshalError().code

    def test_population_corrupt_partition_is_non_fatal(self, factory, issuer, store):
        """A corrupt partition during population is logged and counted; the phase completes."""
        store.set("fake_client_id_1_AppTokenCache", b"corrupted")
        driver = self.make_driver(factory, issuer, tenants=2, tokens=4, clock=StepClock(0.001))

        with capture_logs() as logs:
            window = driver.populate()

        assert len(window.durations) == 4
        assert window.durations == pytest.approx((0.001,) * 4)
        assert window.errors == 2
        failures = [log for log in logs if log["event"] == "Cache write failed during population"]
        assert [log["index"] for log in failures] == [1, 3]
        assert failures[0]["code"] == CacheUnmarshalError().code

    def test_population_non_bytes_value_is_non_fatal(self, factory, issuer, store, accessor):
        """A stored value that is not bytes is a counted error, not a setup failure."""
        store.set("fake_client_id_0_AppTokenCache", "not bytes")
        driver = self.make_driver(factory, issuer, tenants=2, tokens=4)

        with capture_logs() as logs:
            window = driver.populate()

        assert window.errors == 2
        assert accessor.stats.read_failures == 2
        codes = {log["code"] for log in logs if log["event"] == "Cache write failed during population"}
        assert codes == {CacheContractError().code}

    def test_population_errors_recorded_in_metrics(self, factory, issuer, store):
        """Population accessor errors are counted by error type."""
        metrics = MetricsCollector("test", registry=CollectorRegistry())
        store.set("fake_client_id_0_AppTokenCache", b"corrupted")
        driver = self.make_driver(factory, issuer, tenants=1, tokens=3, metrics=metrics)

        driver.populate()

        assert metrics.sample_value(
            "errors_total", {"error_type": CacheUnmarshalError().code, "service": "test"}
        ) == 3.0

    def test_client_construction_failure_is_fatal(self, issuer):
        """Setup failures abort the run."""
        factory = MagicMock(side_effect=ValueError("bad authority"))
        driver = self.make_driver(factory, issuer)

        with pytest.raises(HarnessSetupError) as exc_info:
            driver.populate()

        assert exc_info.value.details["index"] == 0

    def test_retrieval_client_construction_failure_is_fatal(self, issuer):
        """Setup failures abort the retrieval phase too."""
        factory = MagicMock(side_effect=ValueError("bad authority"))
        driver = self.make_driver(factory, issuer)

        with pytest.raises(HarnessSetupError):
            driver.retrieve()

    def test_token_injection_failure_is_fatal(self, factory, issuer):
        """A failing token write aborts population at that index."""
        issuer.token_response = MagicMock(side_effect=[
            issuer.token_response("fake_client_id", "0", ["0"]),
            RuntimeError("signing failed"),
        ])
        driver = self.make_driver(factory, issuer)

        with pytest.raises(HarnessSetupError) as exc_info:
            driver.populate()

        assert exc_info.value.details["index"] == 1

    def test_each_operation_uses_fresh_client(self, factory, issuer):
        """Every operation builds its own client around the shared accessor."""
        driver = self.make_driver(factory, issuer, tenants=2, tokens=4)

        driver.run()

        assert len(factory.clients) == 8
        assert len({id(client) for client in factory.clients}) == 8
        assert len({id(client.accessor) for client in factory.clients}) == 1

    def test_zero_tokens(self, factory, issuer):
        """A zero-token run produces empty windows."""
        driver = self.make_driver(factory, issuer, tenants=1, tokens=0)

        population, retrieval = driver.run()

        assert population.durations == ()
        assert retrieval.durations == ()

    def test_records_metrics(self, factory, issuer):
        """Per-operation and phase metrics are recorded."""
        metrics = MetricsCollector("test", registry=CollectorRegistry())
        driver = self.make_driver(factory, issuer, tenants=2, tokens=4, metrics=metrics)

        driver.run()

        assert metrics.sample_value(
            "token_cache_operation_duration_seconds_count", {"phase": "population"}
        ) == 4.0
        assert metrics.sample_value(
            "token_cache_operation_duration_seconds_count", {"phase": "retrieval"}
        ) == 4.0
        assert metrics.sample_value("token_cache_phase_duration_seconds", {"phase": "retrieval"}) > 0


class TestTokenNotFoundCode:
    """Retrieval misses carry a stable error code."""

    def test_code(self):
        assert TokenNotFoundError().code == "TOKEN_NOT_FOUND"
