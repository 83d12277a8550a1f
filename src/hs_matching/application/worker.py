"""CandidateScanWorker: advisory provider matching for newly created orders.

Order creation hands the new order to this worker through an explicit
asyncio.Queue instead of a process-wide event emitter. The worker is owned by
the application lifespan (start() at startup, stop() at shutdown).

The scan is log-only: it never mutates the order, and any failure is logged
and dropped so it cannot affect order creation.
"""
import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager

from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_common.database import session_scope
from src.hs_matching.domain.candidates import CandidateMatch, find_candidate_providers
from src.hs_order.domain.constants import CANDIDATE_SCAN_RADIUS_KM
from src.hs_order.domain.models import Order
from src.hs_provider.domain.repository import ProviderRepositoryProtocol
from src.hs_provider.infrastructure.persistence import ProviderRepository

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class CandidateScanWorker:
    def __init__(
        self,
        providers: ProviderRepositoryProtocol | None = None,
        session_factory: SessionScope = session_scope,
        radius_km: float = CANDIDATE_SCAN_RADIUS_KM,
        max_pending: int = 1000,
    ) -> None:
        self._providers: ProviderRepositoryProtocol = providers or ProviderRepository()
        self._session_factory = session_factory
        self._radius_km = radius_km
        self._queue: asyncio.Queue[Order] = asyncio.Queue(maxsize=max_pending)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="candidate-scan-worker")
        logger.info("Candidate scan worker started (radius=%.0fkm)", self._radius_km)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Candidate scan worker stopped")

    def dispatch(self, order: Order) -> bool:
        """Enqueue an order for scanning. Never raises; returns False if dropped."""
        if not self.running:
            logger.warning("Candidate scan worker not running; order %s not scanned", order.id)
            return False
        try:
            self._queue.put_nowait(order)
        except asyncio.QueueFull:
            logger.warning("Candidate scan queue full; order %s not scanned", order.id)
            return False
        return True

    async def _run(self) -> None:
        async for order in self._orders():
            try:
                await self.scan(order)
            except Exception:
                logger.exception("Candidate scan failed for order %s", order.id)
            finally:
                self._queue.task_done()

    async def _orders(self) -> AsyncIterator[Order]:
        while True:
            yield await self._queue.get()

    async def scan(self, order: Order) -> list[CandidateMatch]:
        """Find providers within the creation-time radius and log them."""
        logger.info("Scanning candidates for order %s (%s)", order.id, order.title)
        async with self._session_factory() as db:
            providers = await self._providers.list_active_by_category(order.category_id, db)
        logger.info(
            "Found %d potential providers for category %d", len(providers), order.category_id
        )

        matches = find_candidate_providers(order, providers, self._radius_km)
        for match in matches:
            logger.info(
                "Order %s: provider %s at %.2f km", order.id, match.provider_id, match.distance_km
            )
        if matches:
            logger.info("Order %s matched with %d providers", order.id, len(matches))
        else:
            logger.info("No providers found in radius for order %s", order.id)
        return matches
