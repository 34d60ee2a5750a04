"""
Poller - periodic acquisition of gateway status snapshots.

Architecture:
    - One asyncio task ticks every ``interval`` seconds (default: 2s) and polls
      once immediately on start
    - Each tick launches a fetch in a dedicated thread pool (the client is
      blocking); a tick that arrives while a fetch is still pending is skipped
    - Every fetch is tagged with an increasing sequence number so the
      reconciler can drop responses that arrive out of order
    - While the dashboard is hidden the ticking task is cancelled; becoming
      visible again polls immediately and resumes the cadence

Stopping only cancels future ticks. A fetch that is already in flight is left
to finish and its result is still reconciled.
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from pyflowgateway.exceptions import TransportError
from pyflowgateway.models import StatusSnapshot
from pyflowgateway.reconciler import StatusReconciler

log = logging.getLogger(__name__)

DEFAULT_INTERVAL = 2.0


class Poller:

    def __init__(self, fetch: Callable[[], StatusSnapshot], reconciler: StatusReconciler,
                 interval: float = DEFAULT_INTERVAL):
        """
        Args:
            fetch      = Blocking callable returning a StatusSnapshot or raising TransportError
            reconciler = StatusReconciler receiving each poll outcome
            interval   = Seconds between polls
        """
        self.fetch = fetch
        self.reconciler = reconciler
        self.interval = interval
        self.visible = True
        self.stats = {'polls': 0, 'skipped': 0, 'errors': 0}
        self._in_flight = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        self._poll_task: Optional[asyncio.Task] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pyflowgateway")

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def start(self):
        """Start polling. Does nothing while hidden or already running."""
        if self._closed:
            raise RuntimeError("Poller is closed")
        if self.running or not self.visible:
            return
        self._poll_task = asyncio.create_task(self._poll_loop())
        log.debug(f"Poller started - every {self.interval}s")

    async def stop(self):
        """Stop scheduling polls. A fetch already in flight is not cancelled."""
        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                # Expected when cancelling the polling task
                pass
            self._poll_task = None
            log.debug("Poller stopped")

    async def close(self):
        """Stop polling and release the fetch thread. The poller cannot be restarted."""
        self._closed = True
        await self.stop()
        if self._fetch_task:
            await asyncio.gather(self._fetch_task, return_exceptions=True)
        self._executor.shutdown(wait=False)

    async def set_visible(self, visible: bool):
        """Suspend polling while hidden, poll immediately when shown again"""
        if visible == self.visible:
            return
        self.visible = visible
        if visible:
            log.debug("Dashboard visible - resuming polling")
            await self.start()
        else:
            log.debug("Dashboard hidden - suspending polling")
            await self.stop()

    async def _poll_loop(self):
        # Wait out a fetch still pending from before a stop so the first tick runs
        await self._idle.wait()
        while True:
            try:
                self._tick()
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                log.error(f"Error in polling task: {e}")
                await asyncio.sleep(self.interval)

    def _tick(self):
        if self._in_flight:
            self.stats['skipped'] += 1
            log.debug("Previous poll still in flight - skipping tick")
            return
        self._fetch_task = asyncio.create_task(self._guarded_poll())

    async def _guarded_poll(self):
        try:
            await self.poll_once()
        except Exception as e:
            self.stats['errors'] += 1
            log.error(f"Unable to reconcile gateway status: {e}")

    async def poll_once(self) -> bool:
        """
        Fetch and reconcile one snapshot.

        Returns True if a snapshot was applied, False if the poll was skipped
        because another one is in flight or the fetch failed.
        """
        if self._in_flight:
            self.stats['skipped'] += 1
            return False
        self._in_flight = True
        self._idle.clear()
        sequence = self.reconciler.issue_sequence()
        self.stats['polls'] += 1
        loop = asyncio.get_running_loop()
        try:
            snapshot = await loop.run_in_executor(self._executor, self.fetch)
        except TransportError as exc:
            self.reconciler.fail(exc, sequence)
            return False
        finally:
            self._in_flight = False
            self._idle.set()
        self.reconciler.apply(snapshot, sequence)
        return True
