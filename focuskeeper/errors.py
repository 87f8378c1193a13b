from __future__ import annotations

"""Exception types raised inside focuskeeper.

Only backends and config loading raise these; the session store catches
every storage fault and degrades to "no session available".
"""


class FocusKeeperError(Exception):
    pass


class ConfigError(FocusKeeperError):
    pass


class StorageError(FocusKeeperError):
    """A read, write or delete against a durable slot failed."""


class StorageQuotaExceeded(StorageError):
    def __init__(self, key: str, size: int, limit: int) -> None:
        super().__init__(f"Writing {size} bytes to '{key}' exceeds quota of {limit} bytes")
        self.key = key
        self.size = size
        self.limit = limit
