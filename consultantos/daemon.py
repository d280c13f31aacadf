"""ConsultantOS worker daemon: drains the ingestion queue on an interval."""

import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console

from consultantos.config import get_settings
from consultantos.storage.db import close_db
from consultantos.worker import process_pending_jobs

logger = logging.getLogger(__name__)
console = Console()

_running = True


def _handle_shutdown(signum, frame):
    global _running
    _running = False
    logger.info("Shutdown signal received, finishing current cycle...")


async def run_worker(poll_interval: Optional[float] = None, once: bool = False) -> int:
    """Poll the job queue until stopped.

    Args:
        poll_interval: Seconds to sleep when the queue is empty.
        once: Drain the queue a single time and exit.

    Returns:
        Total number of jobs processed.
    """
    global _running
    _running = True

    signal.signal(signal.SIGINT, _handle_shutdown)
    signal.signal(signal.SIGTERM, _handle_shutdown)

    settings = get_settings()
    interval = poll_interval if poll_interval is not None else settings.worker.poll_interval_seconds

    if not once:
        console.print(f"[bold]ConsultantOS worker started[/bold] (poll: {interval:g}s)")
        console.print("Press Ctrl+C to stop.\n")

    total = 0
    cycle = 0
    while _running:
        cycle += 1
        start = datetime.now(timezone.utc)
        processed = 0

        try:
            processed = await process_pending_jobs(max_jobs=settings.worker.max_jobs_per_cycle)
            total += processed
            if processed:
                elapsed = (datetime.now(timezone.utc) - start).total_seconds()
                logger.info("Cycle %d: %d jobs in %.1fs", cycle, processed, elapsed)
        except Exception as e:
            logger.error("Worker cycle %d failed: %s", cycle, e, exc_info=True)

        if once:
            break

        # Keep draining while there is work; sleep only when idle
        if _running and processed < settings.worker.max_jobs_per_cycle:
            try:
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                break

    await close_db()
    if not once:
        console.print("\n[bold]ConsultantOS worker stopped.[/bold]")
    return total
