"""Frame-coalesced detection scheduling.

Rapid parameter edits (slider drags) request re-detection far more often
than a display can refresh. Requests are keyed (probe id, or ALL_PROBES_KEY
for a global run); a new request for a pending key cancels and replaces it.
At most one batch runs per frame interval, and callbacks are expected to read
current state when they execute rather than capture it at request time.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from probe_digitizer import config

ALL_PROBES_KEY = config.ALL_PROBES_KEY


class DetectionScheduler:
    """
    Single-flight-replace scheduler driven by an asyncio loop timer.

    Without a running loop (and no loop passed in), pending work waits for an
    explicit flush(), which lets synchronous callers drive frames by hand.
    """

    def __init__(
        self,
        frame_interval: float = config.FRAME_INTERVAL_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._frame_interval = max(0.0, float(frame_interval))
        self._loop = loop
        self._pending: dict[str, Callable[[], None]] = {}
        self._frame_handle: asyncio.TimerHandle | None = None
        self._in_flight: str | None = None
        self.frames_run = 0

    @property
    def pending_keys(self) -> list[str]:
        return list(self._pending)

    @property
    def in_flight(self) -> str | None:
        return self._in_flight

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def schedule(self, key: str, callback: Callable[[], None]) -> None:
        """Queue callback for the next frame, replacing any pending one for key.

        Per-probe requests are dropped while a global run is pending; that
        run reads current state for every probe.
        """
        if key != ALL_PROBES_KEY and ALL_PROBES_KEY in self._pending:
            return
        self._pending.pop(key, None)
        self._pending[key] = callback
        self._arm()

    def schedule_all(self, callback: Callable[[], None]) -> None:
        """One coalesced global run; supersedes pending per-probe requests."""
        self._pending.clear()
        self.schedule(ALL_PROBES_KEY, callback)

    def cancel(self, key: str) -> bool:
        removed = self._pending.pop(key, None) is not None
        if not self._pending:
            self._disarm()
        return removed

    def cancel_all(self) -> None:
        self._pending.clear()
        self._disarm()

    def flush(self) -> int:
        """Run the pending batch now. Returns how many callbacks ran."""
        self._disarm()
        return self._run_frame()

    def _arm(self) -> None:
        # A batch in progress re-arms on completion.
        if self._frame_handle is not None or self._in_flight is not None:
            return
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
        self._frame_handle = loop.call_later(self._frame_interval, self._on_frame)

    def _disarm(self) -> None:
        if self._frame_handle is not None:
            self._frame_handle.cancel()
            self._frame_handle = None

    def _on_frame(self) -> None:
        self._frame_handle = None
        self._run_frame()

    def _run_frame(self) -> int:
        batch = self._pending
        self._pending = {}
        if not batch:
            return 0

        errors: list[BaseException] = []
        try:
            for key, callback in batch.items():
                self._in_flight = key
                try:
                    callback()
                except Exception as exc:
                    errors.append(exc)
        finally:
            self._in_flight = None
            self.frames_run += 1
            if self._pending:
                self._arm()

        if errors:
            raise errors[0]
        return len(batch)
