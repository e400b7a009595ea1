# PATH: strategy/loop.py
"""
Fixed-interval scan loop for CROSSARB.

- Exactly one cycle in flight: tick() returns None immediately when busy.
- The loop owns the only live RiskState. It is handed to the cycle and
  replaced by the returned state only after the cycle completes.
- stop() (or a signal handler calling it) halts before the next cycle;
  a cycle already running finishes.
- When the UTC day changes, the daily reset runs before the next cycle.
"""

import asyncio
from typing import Callable, Optional

from core.logging import get_logger
from core.models import CycleReport, RiskState
from core.time import utc_day
from monitoring.journal import TradeJournal
from strategy.performance import SessionStats
from strategy.pipeline import ArbitragePipeline

logger = get_logger("crossarb.loop")


class ScanLoop:
    """Drives ArbitragePipeline.run_cycle() on a fixed interval."""

    def __init__(
        self,
        pipeline: ArbitragePipeline,
        interval_seconds: float,
        state: Optional[RiskState] = None,
        journal: Optional[TradeJournal] = None,
        max_cycles: Optional[int] = None,
        today: Callable[[], str] = utc_day,
    ):
        self.pipeline = pipeline
        self.interval_seconds = interval_seconds
        self.journal = journal
        self.max_cycles = max_cycles
        self.today = today
        self.stats = SessionStats()

        self._state = state or RiskState(trading_day=today())
        self._cycle = 0
        self._in_flight = False
        self._stop = asyncio.Event()

    @property
    def state(self) -> RiskState:
        return self._state

    @property
    def cycle(self) -> int:
        return self._cycle

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        if not self._stop.is_set():
            logger.info("Stop requested", extra={"context": {"cycle": self._cycle, "in_flight": self._in_flight}})
        self._stop.set()

    def release_exposure(self, amount) -> RiskState:
        """Manually close a position left open by a failed settlement."""
        self._state = self.pipeline.tracker.release_exposure(self._state, amount)
        return self._state

    async def tick(self) -> Optional[CycleReport]:
        """Run one cycle unless one is already running."""
        if self._in_flight:
            logger.debug("Cycle already in flight, tick ignored")
            return None

        self._in_flight = True
        try:
            self._state = self.pipeline.tracker.roll_day(self._state, self.today())
            self._cycle += 1
            report, next_state = await self.pipeline.run_cycle(self._cycle, self._state)
            self._state = next_state
            self.stats.record(report)
            self._journal(report)
            return report
        finally:
            self._in_flight = False

    def _journal(self, report: CycleReport) -> None:
        if self.journal is None:
            return
        try:
            self.journal.record(report, self._state)
        except OSError as e:
            logger.error(
                f"Journal write failed: {e}",
                extra={"context": {"cycle": report.cycle, "journal_file": str(self.journal.journal_file)}},
            )

    def _done(self) -> bool:
        if self._stop.is_set():
            return True
        return self.max_cycles is not None and self._cycle >= self.max_cycles

    async def run(self) -> SessionStats:
        """Run until stop() or max_cycles. Returns session statistics."""
        loop = asyncio.get_running_loop()
        logger.info(
            "Scan loop started",
            extra={"context": {
                "interval_seconds": self.interval_seconds,
                "max_cycles": self.max_cycles,
                **self._state.to_dict(),
            }},
        )

        while not self._done():
            started = loop.time()
            await self.tick()
            if self._done():
                break

            remaining = self.interval_seconds - (loop.time() - started)
            if remaining > 0:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass

        logger.info(
            "Scan loop terminated",
            extra={"context": {**self.stats.to_dict(), **self._state.to_dict()}},
        )
        return self.stats
