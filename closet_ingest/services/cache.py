"""In-process memoization cache for model results."""

import hashlib
import json
from typing import Any, Generic, TypeVar


V = TypeVar("V")


def options_hash(options: dict[str, Any]) -> str:
    """Stable digest of a JSON-serializable options mapping."""
    canonical = json.dumps(options, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ResultCache(Generic[V]):
    """Keyed map of ``(image reference, options hash)`` to a result.

    Entries are write-once in practice: identical keys always map to
    equivalent values, so a racing overwrite is harmless. Plain dict
    operations are atomic under the event loop, so no lock is taken.
    """

    def __init__(self, max_entries: int | None = None):
        self.max_entries = max_entries
        self._entries: dict[str, V] = {}

    @staticmethod
    def make_key(image_reference: str, options_digest: str) -> str:
        # Data URIs can be megabytes long; store a digest instead
        digest = hashlib.sha256(image_reference.encode("utf-8")).hexdigest()
        return f"{digest}:{options_digest}"

    def get(self, key: str) -> V | None:
        return self._entries.get(key)

    def put_if_absent(self, key: str, value: V) -> V:
        """Insert ``value`` unless the key already exists; return the stored value."""
        stored = self._entries.setdefault(key, value)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
        return stored

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
