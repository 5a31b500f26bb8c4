"""Status sinks for broadcasting and persisting workflow status.

Provides multiple sink implementations behind a common interface:
    - StatusSink: Abstract interface
    - InMemoryStatusSink: In-process history and subscriber queues
    - RedisStatusSink: Redis pub/sub plus latest-status hashes
    - SqliteStatusSink: SQLite status history

Design: Adapter Pattern + Dependency Inversion (SOLID)
    The engine depends on StatusSink only, so backends can be swapped
    without touching it.
"""

from pyorchestra.sinks.base import STATUS_TOPIC, SinkError, StatusSink

# Backends are imported lazily so that redis and aiosqlite are only loaded
# when the corresponding sink is actually used.


def __getattr__(name: str):
    """Lazy import sink implementations."""
    if name == "InMemoryStatusSink":
        from pyorchestra.sinks.memory import InMemoryStatusSink

        return InMemoryStatusSink
    elif name == "RedisStatusSink":
        from pyorchestra.sinks.redis import RedisStatusSink

        return RedisStatusSink
    elif name == "SqliteStatusSink":
        from pyorchestra.sinks.sqlite import SqliteStatusSink

        return SqliteStatusSink
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "STATUS_TOPIC",
    "SinkError",
    "StatusSink",
    "InMemoryStatusSink",
    "RedisStatusSink",
    "SqliteStatusSink",
]
