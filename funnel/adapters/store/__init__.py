"""Key-value store adapters.

Rate records live in an external key-value cache addressed by string key with
a per-write TTL. The in-memory backend serves single-process deployments and
tests; Redis is used when several proxy processes must see the same records.
"""
