"""Build-wide file cache and import dependency graph.

Both outlive a single compile: a build host creates one ``BuildCache`` and
hands it to every ``Context`` it runs. Locks are held for one map operation
only, never across disk reads or recursive import expansion.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


class FileCache:
    """Resolved path -> file bytes.

    Unbounded by default, in which case entries live for the process
    lifetime. With a *capacity*, the least recently used entry is evicted.
    """

    def __init__(self, capacity: int | None = None) -> None:
        self._capacity = capacity
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, bytes] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return str(path) in self._entries

    def get(self, path: str | Path) -> bytes | None:
        key = str(path)
        with self._lock:
            data = self._entries.get(key)
            if data is None:
                self.misses += 1
                return None
            self.hits += 1
            self._entries.move_to_end(key)
            return data

    def put(self, path: str | Path, data: bytes) -> None:
        key = str(path)
        with self._lock:
            self._entries[key] = data
            self._entries.move_to_end(key)
            if self._capacity is not None:
                while len(self._entries) > self._capacity:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("evicted %s from file cache", evicted)

    def invalidate(self, path: str | Path) -> bool:
        """Drop one entry; returns True if it was cached."""
        with self._lock:
            return self._entries.pop(str(path), None) is not None

    def read(self, path: Path) -> bytes:
        """Return the cached bytes for *path*, reading from disk on a miss."""
        data = self.get(path)
        if data is not None:
            logger.debug("file cache hit: %s", path)
            return data
        data = path.read_bytes()
        self.put(path, data)
        return data


class DependencyGraph:
    """Owning file -> set of files it imports."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._edges: dict[str, set[str]] = {}

    def add(self, owner: str, dependency: str) -> None:
        with self._lock:
            self._edges.setdefault(owner, set()).add(dependency)

    def dependencies(self, owner: str) -> frozenset[str]:
        with self._lock:
            return frozenset(self._edges.get(owner, ()))

    def all_dependencies(self, owner: str) -> set[str]:
        """Every file reachable from *owner* through imports."""
        seen: set[str] = set()
        stack = [owner]
        while stack:
            for dep in self.dependencies(stack.pop()):
                if dep not in seen:
                    seen.add(dep)
                    stack.append(dep)
        return seen

    def dependents(self, path: str) -> set[str]:
        """Every owner that imports *path*, directly or transitively."""
        with self._lock:
            reverse: dict[str, set[str]] = {}
            for owner, deps in self._edges.items():
                for dep in deps:
                    reverse.setdefault(dep, set()).add(owner)
        seen: set[str] = set()
        stack = [path]
        while stack:
            for owner in reverse.get(stack.pop(), ()):
                if owner not in seen:
                    seen.add(owner)
                    stack.append(owner)
        return seen

    def forget(self, owner: str) -> None:
        with self._lock:
            self._edges.pop(owner, None)

    def snapshot(self) -> dict[str, frozenset[str]]:
        with self._lock:
            return {k: frozenset(v) for k, v in self._edges.items()}


@dataclass
class BuildCache:
    """The shared state a build host owns across compiles."""

    files: FileCache = field(default_factory=FileCache)
    graph: DependencyGraph = field(default_factory=DependencyGraph)

    def invalidate(self, path: str | Path) -> None:
        """Forget a changed file so the next compile rereads it."""
        self.files.invalidate(path)
        self.graph.forget(str(path))


_shared = BuildCache()


def shared_cache() -> BuildCache:
    """Return the process-wide cache used when a Context is given none."""
    return _shared
