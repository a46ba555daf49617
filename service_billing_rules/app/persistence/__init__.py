"""
Rule store and execution log implementations.

- memory: in-process store and log (local runs, tests)
- postgres: asyncpg-backed store and log
"""
