"""Live engagement refresh driven by the activity change feed.

The activity writer publishes every insert on a Redis pub/sub channel
(``activity:inserted`` by default). A controller watches a set of deals and,
whenever an insert for one of them arrives, recomputes the whole aggregate
from a fresh query. Inserts are not coalesced: N inserts give N recomputes,
and whichever finishes last is what the controller holds.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import Any

import structlog
from redis.exceptions import RedisError

from dealflow.config import get_settings

logger = structlog.get_logger()

Recompute = Callable[[list[str]], Awaitable[dict[str, Any]]]
UpdateCallback = Callable[["EngagementRefreshController"], Awaitable[None]]


class EngagementRefreshController:
    """Holds the last computed aggregates for a watched set of deals.

    ``watch_all=True`` is the "all recent activity" variant: every matching
    insert triggers a refresh regardless of deal.
    """

    def __init__(
        self,
        redis_client: Any,
        recompute: Recompute,
        *,
        on_update: UpdateCallback | None = None,
        watch_all: bool = False,
        channel: str | None = None,
        subtype_prefix: str | None = None,
    ) -> None:
        settings = get_settings()
        self.redis = redis_client
        self._recompute = recompute
        self._on_update = on_update
        self.watch_all = watch_all
        self.channel = channel or settings.activity_channel
        self.subtype_prefix = settings.flex_subtype_prefix if subtype_prefix is None else subtype_prefix

        self.watched: list[str] = []
        self.aggregates: dict[str, Any] = {}
        self.stale = False
        self.last_error: str | None = None
        self.last_refreshed: datetime | None = None
        self.refresh_count = 0
        self.feed_down = False

        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._subscribed = asyncio.Event()

    @property
    def is_listening(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Watch set ──

    async def watch(self, deal_ids: Iterable[str]) -> None:
        """Replace the watched set, (un)subscribe as needed, then refresh once."""
        self.watched = list(dict.fromkeys(deal_ids))
        if not self.watched and not self.watch_all:
            self.aggregates = {}
            await self._teardown()
            return
        await self._ensure_listening()
        await self.refresh()

    async def unwatch(self) -> None:
        await self.watch([])

    async def stop(self) -> None:
        """Drop the subscription. Held aggregates stay readable."""
        await self._teardown()

    # ── Recompute ──

    async def refresh(self) -> bool:
        """Recompute every watched aggregate from scratch.

        On failure the previous aggregates are kept and ``stale`` is set.
        """
        if not self.watched and not self.watch_all:
            return False
        try:
            aggregates = await self._recompute(list(self.watched))
        except Exception as e:  # noqa: BLE001
            self.stale = True
            self.last_error = str(e) or type(e).__name__
            logger.warning(
                "engagement_recompute_failed",
                deals=len(self.watched),
                error=self.last_error,
            )
        else:
            self.aggregates = aggregates
            self.stale = self.feed_down
            if not self.feed_down:
                self.last_error = None
            self.last_refreshed = datetime.now(timezone.utc)
            self.refresh_count += 1

        await self._notify()
        return not self.stale

    async def _notify(self) -> None:
        if self._on_update is None:
            return
        try:
            await self._on_update(self)
        except Exception:
            logger.warning("engagement_update_callback_failed", exc_info=True)

    def matches(self, payload: dict[str, Any]) -> bool:
        """True when an insert notification should trigger a refresh."""
        subtype = payload.get("activity_type") or ""
        if not isinstance(subtype, str) or not subtype.startswith(self.subtype_prefix):
            return False
        if self.watch_all:
            return True
        return payload.get("deal_id") in self.watched

    async def handle_message(self, message: dict[str, Any]) -> bool:
        """Process one raw pub/sub message. Returns True if it caused a refresh."""
        data = message.get("data", "")
        if isinstance(data, bytes):
            data = data.decode()
        try:
            payload = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
            logger.warning("activity_feed_invalid_message", channel=self.channel)
            return False
        if not isinstance(payload, dict) or not self.matches(payload):
            return False

        await self.refresh()
        return True

    # ── Subscription ──

    async def wait_subscribed(self, timeout: float = 5.0) -> None:
        await asyncio.wait_for(self._subscribed.wait(), timeout=timeout)

    async def _ensure_listening(self) -> None:
        if self.is_listening:
            return
        self._running = True
        self._subscribed.clear()
        self._task = asyncio.create_task(self._listen())

    async def _teardown(self) -> None:
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except (RedisError, OSError) as e:
            logger.warning("activity_feed_teardown_failed", channel=self.channel, error=str(e))

    def _feed_unreachable(self, error: Exception) -> None:
        self.feed_down = True
        self.stale = True
        self.last_error = str(error) or type(error).__name__
        logger.warning("activity_feed_unreachable", channel=self.channel, error=self.last_error)

    async def _listen(self) -> None:
        pubsub = self.redis.pubsub()
        try:
            try:
                await pubsub.subscribe(self.channel)
            except (RedisError, OSError) as e:
                self._feed_unreachable(e)
                await self._notify()
                return
            self.feed_down = False
            self._subscribed.set()
            logger.info("activity_feed_subscribed", channel=self.channel, deals=len(self.watched))

            while self._running:
                try:
                    message = await pubsub.get_message(
                        ignore_subscribe_messages=True,
                        timeout=1.0,
                    )
                except (RedisError, OSError) as e:
                    self._feed_unreachable(e)
                    await asyncio.sleep(1.0)
                    continue
                self.feed_down = False
                if message is None:
                    continue
                await self.handle_message(message)
        except asyncio.CancelledError:
            pass
        finally:
            try:
                if self._subscribed.is_set():
                    await pubsub.unsubscribe(self.channel)
            except (RedisError, OSError) as e:
                logger.warning("activity_feed_unsubscribe_failed", channel=self.channel, error=str(e))
            try:
                await pubsub.close()
            except (RedisError, OSError) as e:
                logger.warning("activity_feed_close_failed", channel=self.channel, error=str(e))
            self._subscribed.clear()
            logger.info("activity_feed_unsubscribed", channel=self.channel)
