"""Fixed-interval poll scheduler driving the analysis pipeline."""

import asyncio
import logging
import signal
from datetime import timedelta
from typing import Optional

from bugger_engine.core.config import Settings, settings
from bugger_engine.core.logging import setup_logging
from bugger_engine.services.analysis import AnalysisPipeline, CycleOutcome

logger = logging.getLogger(__name__)


class PollScheduler:
    """Runs one pipeline cycle at a time, sleeping ``interval`` seconds between cycles.

    The next cycle is only scheduled once the current one has settled, so a
    scheduler never has more than one analysis in flight. ``stop()`` prevents
    new cycles; an in-flight cycle runs to completion.
    """

    def __init__(
        self,
        pipeline: AnalysisPipeline,
        interval: float = 5.0,
        stale_claim_timeout: float = 0,
    ):
        self.pipeline = pipeline
        self.interval = interval
        self.stale_claim_timeout = stale_claim_timeout
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.cycles = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start polling in a background task."""
        if self.running:
            return self._task
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run_forever(), name="bugger-poll-scheduler")
        logger.info("Poll scheduler started (every %.1fs)", self.interval)
        return self._task

    async def stop(self) -> None:
        """Stop scheduling cycles and wait for the current one to settle."""
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("Poll scheduler stopped")

    async def run_once(self) -> CycleOutcome:
        """Run a single cycle (with the optional stale-claim sweep first)."""
        if self.stale_claim_timeout > 0:
            try:
                await self.pipeline.queue.requeue_stale(timedelta(seconds=self.stale_claim_timeout))
            except Exception as e:
                logger.exception("Stale claim sweep failed: %s", e)

        try:
            outcome = await self.pipeline.run_cycle()
        except Exception as e:
            logger.exception("Error during polling cycle: %s", e)
            outcome = CycleOutcome.ERROR
        self.cycles += 1
        return outcome

    async def run_forever(self) -> None:
        """Poll until ``stop()`` is called."""
        while not self._stop_event.is_set():
            outcome = await self.run_once()
            if outcome != CycleOutcome.IDLE:
                logger.debug("Cycle %d finished: %s", self.cycles, outcome.value)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass


def build_scheduler(config: Settings, session_maker=None, provider=None) -> PollScheduler:
    """Wire a scheduler from settings."""
    from bugger_engine.core.database import async_session_maker
    from bugger_engine.services.providers import select_provider

    pipeline = AnalysisPipeline(
        session_maker=session_maker or async_session_maker,
        provider=provider or select_provider(config),
        context_root=config.CONTEXT_ROOT,
        provider_timeout=config.PROVIDER_TIMEOUT,
    )
    return PollScheduler(
        pipeline,
        interval=config.poll_interval_seconds,
        stale_claim_timeout=config.STALE_CLAIM_TIMEOUT,
    )


async def _run_worker(config: Settings) -> None:
    from bugger_engine.core.database import init_db, close_db

    await init_db()
    scheduler = build_scheduler(config)
    logger.info("Worker starting, provider: %s", scheduler.pipeline.provider.name)

    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    scheduler.start()
    try:
        await stop_requested.wait()
        logger.info("Received shutdown signal, shutting down gracefully...")
    finally:
        await scheduler.stop()
        await scheduler.pipeline.provider.close()
        await close_db()


def main() -> None:
    """Run the standalone worker."""
    setup_logging(settings.LOG_LEVEL)
    asyncio.run(_run_worker(settings))


if __name__ == "__main__":
    main()
