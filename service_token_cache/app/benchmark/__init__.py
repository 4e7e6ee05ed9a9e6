"""
Benchmark package: workload driver and statistics reporter.
"""
