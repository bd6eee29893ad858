"""Run-scoped store of named step outputs."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from .contracts import StepOutput


class StepOutputStore:
    """Append-only log of ``(name, output)`` pairs with a lookup index.

    Recording a name again appends a new entry and repoints the index, so
    ``latest()`` and ``snapshot()`` order are deterministic regardless of
    how many times a name was written. All access goes through one lock.
    """

    def __init__(self) -> None:
        self._log: List[Tuple[str, StepOutput]] = []
        self._index: Dict[str, int] = {}
        self._lock = threading.Lock()

    def record(self, name: str, output: StepOutput) -> None:
        with self._lock:
            self._index[name] = len(self._log)
            self._log.append((name, output))

    def get(self, name: str) -> Optional[StepOutput]:
        with self._lock:
            position = self._index.get(name)
            return self._log[position][1] if position is not None else None

    def latest(self) -> Optional[Tuple[str, StepOutput]]:
        with self._lock:
            return self._log[-1] if self._log else None

    def snapshot(self) -> Dict[str, StepOutput]:
        """Current output per name, ordered from oldest to most recent write."""
        with self._lock:
            positions = sorted(self._index.values())
            return {self._log[p][0]: self._log[p][1] for p in positions}

    def names(self) -> List[str]:
        return list(self.snapshot())

    def clear(self) -> None:
        with self._lock:
            self._log.clear()
            self._index.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._index)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._index
