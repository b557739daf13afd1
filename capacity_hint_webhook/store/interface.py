from typing import Any


class KeyValueStore:
    """Where observed admission counters are persisted between webhook restarts."""

    def get(self, key: str) -> Any | None:
        """
        Return the decoded value if present and not expired; otherwise None.
        """
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """
        Store value, expiring after ttl_seconds (store default when unset or <= 0).
        """
        raise NotImplementedError
