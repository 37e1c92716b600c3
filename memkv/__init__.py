"""In-memory key-value store with strings, bit operations, sorted sets and transactions."""

__version__ = "0.1.0"
__all__ = [
    "sortedset",
    "keyspace",
    "zset_commands",
    "zset_ranges",
    "strings",
    "bitops",
    "transaction",
    "system",
]