"""
Token cache performance harness package.

The harness measures how long a pluggable token-cache accessor takes to
persist and reload an authenticating client's cache partitions under
synthetic multi-tenant load:
- Store: expiring key-value backends (in-memory or Redis)
- Accessor: the export/replace hooks the client calls around cache mutations
- Client: a fake confidential client with an in-memory token cache
- Benchmark: the latency-instrumented workload driver and statistics report

Structure:
- app.main: Run orchestration and the console entry point.
- app.store: External key-value store backends.
- app.accessor: Cache accessor and Marshal/Unmarshal capabilities.
- app.client: Fake authenticating client and token cache model.
- app.benchmark: Workload driver and statistics reporter.
"""
