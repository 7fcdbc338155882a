"""Periodic and on-demand re-aggregation.

The timer, manual refreshes and (debounced) zone selection all funnel into
``run_cycle``. A cycle fans out every zone-scoped query, joins them, and
applies the results in a single state replacement.

Cycles are single-flight by generation: each cycle stamps the generation it
started under and only applies its results if no newer cycle or zone
selection has happened since. A superseded cycle's requests are left to
finish; their results are dropped on arrival.

Example:
    scheduler = build_scheduler()
    scheduler.subscribe(render)
    await scheduler.start()
    scheduler.select_zone("023e105f4ecef8ad9ca31a8372d0c353")
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import replace
from typing import Any

from zonewatch.config import Settings, get_settings
from zonewatch.credentials import CredentialResolver, SettingsStore
from zonewatch.engine.aggregator import EventAggregator
from zonewatch.engine.ddos import DDoSClassifier
from zonewatch.engine.gateway import ApiGateway
from zonewatch.engine.state import DashboardState
from zonewatch.errors import GatewayError
from zonewatch.models import AggregationResult, CredentialRecord, Zone
from zonewatch.time_utils import utc_now

logger = logging.getLogger(__name__)

StateListener = Callable[[DashboardState], None]


class RefreshScheduler:
    """Owns the published ``DashboardState`` and every path that writes it."""

    def __init__(
        self,
        gateway: ApiGateway,
        aggregator: EventAggregator,
        classifier: DDoSClassifier,
        *,
        settings: Settings | None = None,
        store: SettingsStore | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._gateway = gateway
        self._resolver: CredentialResolver = gateway.resolver
        self._aggregator = aggregator
        self._classifier = classifier
        self._store = store or SettingsStore(settings.settings_file)
        self._interval = settings.refresh_interval_seconds
        self._debounce = settings.zone_debounce_seconds
        self._top_n = settings.top_n
        self._ddos_days = settings.ddos_lookback_days

        self._state = DashboardState()
        self._listeners: list[StateListener] = []
        self._generation = 0
        self._timer_task: asyncio.Task[None] | None = None
        self._debounce_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> DashboardState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def aggregator(self) -> EventAggregator:
        return self._aggregator

    @property
    def classifier(self) -> DDoSClassifier:
        return self._classifier

    @property
    def credentials(self) -> CredentialRecord | None:
        return self._resolver.current

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every new state; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, state: DashboardState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener failed")

    def _update(self, **changes: Any) -> None:
        self._publish(replace(self._state, **changes))

    # Lifecycle

    async def start(self) -> None:
        """Check authentication, then start the refresh timer."""
        if self._timer_task is not None:
            return
        self._stop_event.clear()
        await self.check_authentication()
        self._timer_task = asyncio.create_task(self._timer_loop())
        logger.debug("Refresh timer started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        self._stop_event.set()
        tasks = [t for t in (self._timer_task, self._debounce_task) if t is not None]
        tasks.extend(self._background)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._timer_task = None
        self._debounce_task = None
        self._background.clear()
        logger.debug("Refresh scheduler stopped")

    async def close(self) -> None:
        """Stop scheduling and release the HTTP session."""
        await self.stop()
        await self._gateway.close()

    async def _timer_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                await self.run_cycle()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # Collaborator operations

    def refresh(self) -> asyncio.Task[Any]:
        """Start a cycle now without waiting for it."""
        return self._spawn(self.run_cycle())

    def select_zone(self, zone_id: str | None) -> None:
        """Select a zone (or none); a cycle fires once selection settles."""
        if zone_id is not None and self._state.zones:
            if not any(zone.id == zone_id for zone in self._state.zones):
                raise ValueError(f"Unknown zone '{zone_id}'")
        # Supersede any in-flight cycle for the previous selection.
        self._generation += 1
        self._update(selected_zone_id=zone_id)

        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(self._debounced_cycle())

    async def _debounced_cycle(self) -> None:
        await asyncio.sleep(self._debounce)
        # Later selections cancel only the sleep above; the cycle runs detached.
        self.refresh()

    async def wait_idle(self) -> None:
        """Wait for a pending debounced selection and all started cycles."""
        if self._debounce_task is not None:
            try:
                await self._debounce_task
            except asyncio.CancelledError:
                pass
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def set_credential(self, token: str, account_id: str | None = None) -> None:
        """Use ``token`` for the next call without persisting it."""
        self._resolver.set_override(token, account_id)

    async def reload_credentials(self) -> bool:
        return await self.check_authentication()

    async def check_authentication(self) -> bool:
        """Re-resolve credentials, verify the token and load zones."""
        if self._resolver.reload() is None:
            self._update(is_authenticated=False)
            return False
        try:
            is_valid = await self._gateway.verify_token()
        except GatewayError as e:
            logger.warning("Authentication failed: %s", e)
            self._update(is_authenticated=False, error_message=f"Authentication failed: {e}")
            return False

        self._update(is_authenticated=is_valid)
        if is_valid:
            await self.load_zones()
        return is_valid

    async def save_credential(self, token: str, account_id: str | None = None) -> bool:
        """Validate ``token`` and persist it when the API accepts it.

        An invalid or unverifiable token removes any stored one.
        """
        token = token.strip()
        if not token:
            raise ValueError("Please enter an API token")

        self._resolver.set_override(token, account_id)
        try:
            is_valid = await self._gateway.verify_token()
        except GatewayError:
            self._store.clear()
            self._resolver.clear_override()
            raise

        self._resolver.clear_override()
        if not is_valid:
            self._store.clear()
            return False

        self._store.save(token, account_id)
        await self.check_authentication()
        return True

    async def load_zones(self) -> list[Zone]:
        """Replace the zone list and drop zone-scoped data."""
        self._update(is_loading=True, error_message=None)
        try:
            zones = await self._aggregator.fetch_zones()
        except GatewayError as e:
            logger.warning("Failed to load zones: %s", e)
            self._update(is_loading=False, error_message=f"Failed to load zones: {e}")
            return list(self._state.zones)

        self._publish(
            replace(self._state.cleared(), zones=tuple(zones), is_loading=False)
        )
        logger.info("Loaded %d zones", len(zones))
        return zones

    # Cycle

    async def run_cycle(self) -> bool:
        """Re-aggregate the selected zone and publish atomically.

        Returns True when this cycle's results were applied.
        """
        self._generation += 1
        generation = self._generation
        zone = self._state.selected_zone
        self._update(is_loading=True, error_message=None)

        try:
            zones, result = await self._aggregate(zone)
        except Exception as e:
            if generation != self._generation:
                logger.debug("Discarding failed superseded cycle %d", generation)
                return False
            logger.warning(
                "Failed to load zone data for %s: %s", zone.name if zone else "-", e
            )
            self._publish(
                replace(
                    self._state.cleared(),
                    is_loading=False,
                    error_message=f"Failed to load zone data: {e}",
                )
            )
            return False

        if generation != self._generation:
            logger.debug(
                "Discarding superseded cycle %d (current %d)", generation, self._generation
            )
            return False

        self._publish(
            replace(
                self._state.with_result(result),
                zones=tuple(zones),
                is_loading=False,
                last_refreshed_at=utc_now(),
            )
        )
        return True

    async def _aggregate(self, zone: Zone | None) -> tuple[list[Zone], AggregationResult]:
        if zone is None:
            return await self._aggregator.fetch_zones(), AggregationResult()

        record = self._resolver.current
        account_id = record.account_id if record else None
        outcomes = await asyncio.gather(
            self._aggregator.fetch_zones(),
            self._aggregator.top_blocks(zone, self._top_n),
            self._aggregator.ip_hits(zone, self._top_n),
            self._classifier.detect(zone, account_id=account_id, days=self._ddos_days),
            self._aggregator.blocked_count(zone),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        zones, blocks, hits, ddos_events, blocked = outcomes
        return zones, AggregationResult(
            top_blocks=blocks,
            ip_hits=hits,
            ddos_events=ddos_events,
            blocked_count=blocked,
        )


def build_scheduler(settings: Settings | None = None) -> RefreshScheduler:
    """Wire resolver, gateway, aggregator and classifier from settings."""
    settings = settings or get_settings()
    resolver = CredentialResolver.from_settings(settings)
    gateway = ApiGateway(resolver, settings=settings)
    aggregator = EventAggregator(gateway, lookback_days=settings.lookback_days)
    classifier = DDoSClassifier(
        gateway, aggregator, days=settings.ddos_lookback_days
    )
    return RefreshScheduler(
        gateway,
        aggregator,
        classifier,
        settings=settings,
        store=SettingsStore(settings.settings_file),
    )
