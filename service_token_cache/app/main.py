"""
Token cache performance harness entry point.
"""

import sys
from typing import Optional, TextIO, Union

from shared.config import BenchmarkConfig, get_config
from shared.logging import clear_context, configure_logging, get_logger, set_run_id
from shared.metrics import get_metrics_collector
from shared.errors import HarnessSetupError, StatisticsError, TokenCacheHarnessException

from .accessor.token_cache_accessor import TokenCacheAccessor
from .benchmark.driver import BenchmarkParameters, WorkloadDriver, make_client_factory
from .benchmark.stats import PerfStats, write_report
from .client.tokens import SyntheticTokenIssuer
from .store.factory import create_store
from .store.memory_store import MemoryStore
from .store.redis_store import RedisStore


class TokenCacheBenchmark:
    """One benchmark run: store, accessor, clients, driver and report."""

    def __init__(
        self,
        config: Optional[BenchmarkConfig] = None,
        out: Optional[TextIO] = None,
        store: Optional[Union[MemoryStore, RedisStore]] = None,
    ):
        self.config = config or get_config()
        self.out = out if out is not None else sys.stdout

        # Configure logging
        configure_logging(self.config.service_name, self.config.log_level)
        self.logger = get_logger("token_cache.benchmark")

        self.metrics = get_metrics_collector(self.config.service_name) if self.config.enable_metrics else None

        # Initialize components; the accessor lives exactly as long as this run
        self.params = BenchmarkParameters(
            tenant_count=self.config.tenant_count,
            token_count=self.config.token_count,
        )
        self.store = store if store is not None else create_store(self.config)
        self.accessor = TokenCacheAccessor(self.store, metrics=self.metrics)
        self.issuer = SyntheticTokenIssuer(
            self.config.token_signing_key,
            self.config.authority_host,
            ttl_seconds=self.config.access_token_ttl_seconds,
        )
        self.driver = WorkloadDriver(
            self.params,
            make_client_factory(self.config.client_id, self.config.authority_host, self.accessor),
            self.issuer,
            metrics=self.metrics,
        )

    def start(self):
        """Start the store and, when configured, the metrics endpoint."""
        self.store.start()
        if self.metrics and self.config.metrics_port:
            self.metrics.start_metrics_server(self.config.metrics_port)
            self.logger.info("Metrics endpoint started", port=self.config.metrics_port)

    def stop(self):
        """Stop the store."""
        self.store.stop()

    def run(self) -> PerfStats:
        """Run both phases and write the report to ``out``.

        The run id stays bound in the log context until the caller clears it.
        """
        run_id = set_run_id()
        self.logger.info(
            "Benchmark starting",
            run_id=run_id,
            tenants=self.params.tenant_count,
            tokens=self.params.token_count,
            store_backend=self.store.backend,
        )

        self.start()
        try:
            self.out.write(
                f"Test Params: tenant_count={self.params.tenant_count} "
                f"token_count={self.params.token_count}\n"
            )
            population, retrieval = self.driver.run()

            stats = PerfStats.from_run(self.params, population, retrieval, self.accessor.stats)
            write_report(stats, self.out)

            self.logger.info("Benchmark completed", **stats.as_dict())
            return stats
        finally:
            self.stop()


def run_benchmark(config: Optional[BenchmarkConfig] = None, out: Optional[TextIO] = None) -> PerfStats:
    """Run the benchmark once with ``config`` (environment settings by default)."""
    return TokenCacheBenchmark(config, out=out).run()


def main() -> int:
    """Console entry point."""
    logger = get_logger("token_cache.main")
    try:
        run_benchmark()
    except HarnessSetupError as e:
        logger.error("Benchmark aborted by setup failure", **e.to_response().model_dump())
        return 1
    except StatisticsError as e:
        logger.error("Benchmark produced no usable statistics", **e.to_response().model_dump())
        return 2
    except TokenCacheHarnessException as e:
        logger.error("Benchmark failed", **e.to_response().model_dump())
        return 1
    finally:
        clear_context()
    return 0


if __name__ == "__main__":
    sys.exit(main())
