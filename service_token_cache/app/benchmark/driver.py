"""
Latency-instrumented workload driver.
"""

import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger, set_tenant_context
from shared.errors import (
    CacheAccessorError,
    HarnessSetupError,
    StoreError,
    TokenCacheHarnessException,
    TokenNotFoundError,
    ValidationError,
)
from ..accessor.token_cache_accessor import TokenCacheAccessor
from ..client.client import ConfidentialClient
from ..client.tokens import SyntheticTokenIssuer

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


ClientFactory = Callable[[str], ConfidentialClient]

PHASE_POPULATION = "population"
PHASE_RETRIEVAL = "retrieval"


@dataclass(frozen=True)
class BenchmarkParameters:
    """Tenant and token counts for one run.

    ``token_count`` should divide evenly across any fan-out; uneven values
    only skew the per-tenant balance and are accepted.
    """

    tenant_count: int
    token_count: int

    def __post_init__(self):
        if self.tenant_count < 1:
            raise ValidationError(
                "tenant_count must be at least 1",
                details={"tenant_count": self.tenant_count}
            )
        if self.token_count < 0:
            raise ValidationError(
                "token_count must not be negative",
                details={"token_count": self.token_count}
            )

    def tenant_for(self, index: int) -> str:
        return str(index % self.tenant_count)

    @staticmethod
    def scope_for(index: int) -> str:
        return str(index)


@dataclass(frozen=True)
class ExecutionWindow:
    """Wall-clock bounds of one phase and its per-operation durations, in seconds.

    ``durations[i]`` belongs to operation ``i`` in both phases.
    """

    start: float
    end: float
    durations: Tuple[float, ...]
    errors: int = 0
    misses: int = 0

    @property
    def elapsed(self) -> float:
        return self.end - self.start


def make_client_factory(
    client_id: str,
    authority_host: str,
    accessor: TokenCacheAccessor,
) -> ClientFactory:
    """Bind client construction to one accessor for the lifetime of a run."""

    def factory(tenant_id: str) -> ConfidentialClient:
        return ConfidentialClient(
            client_id,
            f"https://{authority_host}/{tenant_id}",
            accessor=accessor,
        )

    return factory


class WorkloadDriver:
    """Populates the token cache, then retrieves every token silently."""

    def __init__(
        self,
        params: BenchmarkParameters,
        client_factory: ClientFactory,
        issuer: SyntheticTokenIssuer,
        *,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.params = params
        self.client_factory = client_factory
        self.issuer = issuer
        self.metrics = metrics
        self.clock = clock
        self.logger = get_logger("token_cache.driver")

    def _build_client(self, tenant_id: str, index: int, phase: str) -> ConfidentialClient:
        try:
            return self.client_factory(tenant_id)
        except Exception as exc:
            self.logger.error(
                "Failed while creating a client",
                phase=phase,
                index=index,
                tenant_id=tenant_id,
                error=str(exc)
            )
            raise HarnessSetupError(
                f"Client construction failed for tenant {tenant_id}",
                details={"phase": phase, "index": index, "error": str(exc)}
            ) from exc

    def _injection_failure(self, index: int, tenant_id: str, exc: Exception) -> HarnessSetupError:
        self.logger.error(
            "Failed to inject synthetic token",
            index=index,
            tenant_id=tenant_id,
            error=str(exc)
        )
        return HarnessSetupError(
            f"Token injection failed at index {index}",
            details={"index": index, "tenant_id": tenant_id, "error": str(exc)}
        )

    def populate(self) -> ExecutionWindow:
        """Write one synthetic token per index, timing each cache write.

        Cache and store failures are logged and counted on the window; any other
        failure while injecting a token aborts the run.
        """
        count = self.params.token_count
        durations: List[float] = [0.0] * count
        errors = 0
        self.logger.info("Populating token cache", tokens=count, tenants=self.params.tenant_count)

        start = self.clock()
        for i in range(count):
            tenant_id = self.params.tenant_for(i)
            set_tenant_context(tenant_id, PHASE_POPULATION)
            client = self._build_client(tenant_id, i, PHASE_POPULATION)

            auth_params = client.auth_params()
            auth_params.scopes = [self.params.scope_for(i)]

            try:
                # each token has its own scope so every cache entry is distinct
                response = self.issuer.token_response(client.client_id, tenant_id, auth_params.scopes)
            except Exception as exc:
                raise self._injection_failure(i, tenant_id, exc) from exc

            op_start = self.clock()
            try:
                client.auth_result_from_token(auth_params, response, cache_write=True)
            except (CacheAccessorError, StoreError) as exc:
                errors += 1
                self.logger.error("Cache write failed during population", index=i, code=exc.code, error=exc.message)
                if self.metrics:
                    self.metrics.record_error(exc.code)
            except Exception as exc:
                raise self._injection_failure(i, tenant_id, exc) from exc
            finally:
                durations[i] = self.clock() - op_start

            self._observe(PHASE_POPULATION, durations[i])

        window = ExecutionWindow(start=start, end=self.clock(), durations=tuple(durations), errors=errors)
        self._finish_phase(PHASE_POPULATION, window)
        return window

    def retrieve(self) -> ExecutionWindow:
        """Silently acquire every populated token, timing each lookup."""
        count = self.params.token_count
        durations: List[float] = [0.0] * count
        errors = 0
        misses = 0
        self.logger.info("Begin token retrieval", tokens=count)

        start = self.clock()
        for i in range(count):
            tenant_id = self.params.tenant_for(i)
            set_tenant_context(tenant_id, PHASE_RETRIEVAL)
            client = self._build_client(tenant_id, i, PHASE_RETRIEVAL)
            scopes = [self.params.scope_for(i)]

            op_start = self.clock()
            try:
                client.acquire_token_silent(scopes, is_app_cache=True)
            except TokenNotFoundError as exc:
                errors += 1
                misses += 1
                self.logger.warning("Token not found in cache", index=i, scopes=scopes, error=exc.message)
            except TokenCacheHarnessException as exc:
                errors += 1
                self.logger.error("Silent token retrieval failed", index=i, code=exc.code, error=exc.message)
                if self.metrics:
                    self.metrics.record_error(exc.code)
            finally:
                durations[i] = self.clock() - op_start

            self._observe(PHASE_RETRIEVAL, durations[i])

        window = ExecutionWindow(
            start=start,
            end=self.clock(),
            durations=tuple(durations),
            errors=errors,
            misses=misses,
        )
        self._finish_phase(PHASE_RETRIEVAL, window)
        return window

    def run(self) -> Tuple[ExecutionWindow, ExecutionWindow]:
        """Run population then retrieval."""
        population = self.populate()
        retrieval = self.retrieve()
        return population, retrieval

    def _observe(self, phase: str, duration: float) -> None:
        if self.metrics:
            self.metrics.observe_histogram("token_cache_operation_duration_seconds", duration, phase=phase)

    def _finish_phase(self, phase: str, window: ExecutionWindow) -> None:
        if self.metrics:
            self.metrics.set_gauge("token_cache_phase_duration_seconds", window.elapsed, phase=phase)

        self.logger.info(
            "Benchmark phase completed",
            phase=phase,
            operations=len(window.durations),
            elapsed_seconds=window.elapsed,
            errors=window.errors,
        )
