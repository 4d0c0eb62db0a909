"""
ElserBench - latency and throughput comparison of two ELSER search deployments.
"""

__version__ = "0.1.0"
