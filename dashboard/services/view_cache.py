from __future__ import annotations

import threading
from typing import Any, Optional

INVOICES_PATH = "/dashboard/invoices"


class ViewCache:
    """In-memory rendered views keyed by path. No TTL: entries live until revalidated.

    Each path carries a generation bumped by revalidate_path(). A render
    computed under an older generation is not stored.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._views: dict[str, Any] = {}
        self._generations: dict[str, int] = {}

    def get(self, path: str) -> Optional[Any]:
        with self._lock:
            return self._views.get(path)

    def generation(self, path: str) -> int:
        with self._lock:
            return self._generations.get(path, 0)

    def put(self, path: str, payload: Any, generation: Optional[int] = None) -> bool:
        """Store `payload`; skipped when `generation` is given and the path was revalidated since."""
        with self._lock:
            if generation is not None and generation != self._generations.get(path, 0):
                return False
            self._views[path] = payload
            return True

    def revalidate_path(self, path: str) -> None:
        """Mark the cached render of `path` stale; the next read recomputes it."""
        with self._lock:
            self._views.pop(path, None)
            self._generations[path] = self._generations.get(path, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._views.clear()

    def __contains__(self, path: str) -> bool:
        with self._lock:
            return path in self._views


# Process-wide cache shared by the routes.
view_cache = ViewCache()


def revalidate_path(path: str) -> None:
    view_cache.revalidate_path(path)
