from __future__ import annotations
from typing import Any, Callable, Dict, Optional

ProgressCallback = Callable[[Dict[str, Any]], None]


class Progress:
    """
    Thin adapter over an optional on_progress callback.
    Events are dicts: {"phase": str, "pct": int, "msg": str}.
    """
    def __init__(self, callback: Optional[ProgressCallback] = None, step_pct: int = 5) -> None:
        self._cb = callback
        self._step = max(1, int(step_pct))

    @property
    def enabled(self) -> bool:
        return self._cb is not None

    @property
    def step_pct(self) -> int:
        return self._step

    def emit(self, phase: str, pct: int, msg: str = "") -> None:
        if self._cb is None:
            return
        self._cb({"phase": phase, "pct": int(pct), "msg": msg})

    def track(self, phase: str, total: int, msg: str = "") -> "_Tracker":
        return _Tracker(self, phase, total, msg)


class _Tracker:
    """Emits 0%, coarse steps, and 100% for a loop of known length."""
    def __init__(self, progress: Progress, phase: str, total: int, msg: str) -> None:
        self._p = progress
        self._phase = phase
        self._total = max(0, total)
        self._msg = msg
        self._last = 0
        progress.emit(phase, 0, msg)

    def advance(self, done: int) -> None:
        if not self._p.enabled or self._total == 0:
            return
        pct = done * 100 // self._total
        if pct < 100 and pct - self._last >= self._p.step_pct:
            self._last = pct
            self._p.emit(self._phase, pct)

    def finish(self) -> None:
        self._p.emit(self._phase, 100, self._msg)
