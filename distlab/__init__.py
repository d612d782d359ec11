"""Simulated RPC, a versioned key/value service, a lock and MapReduce for distributed-systems work."""

__version__ = "0.1.0"