"""Unread badge state for one viewer, kept fresh by polling and optional push."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from types import TracebackType
from typing import Any, Callable, Protocol, Self, Sequence

from rems_messaging.client.exceptions import ClientError
from rems_messaging.client.transport import RealtimeTransport
from rems_messaging.client.unread import (
    badge_label,
    conversation_key,
    merge_counts,
    unread_of,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 30.0

ChangeCallback = Callable[[str | None], None]


class IndicatorState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class ConversationSource(Protocol):
    async def list_conversations(self) -> Sequence[Any]: ...

    def set_token(self, token: str | None) -> None: ...


@dataclass(slots=True)
class _Fetch:
    seq: int
    epoch: int
    raced: set[str] = field(default_factory=set)


class UnreadIndicator:
    """Total unread messages across the viewer's conversations, as a badge.

    Each fetch is stamped with a sequence number and the identity epoch.
    A result is applied only when its epoch is still current, no newer
    fetch has been applied, and the indicator has not been stopped. A
    failed fetch leaves the last good total in place.

    The poll timer is owned by the indicator: ``start`` acquires it,
    ``set_viewer`` and ``stop``/``aclose`` release it.

    The transport only connects for a viewer whose credential it holds: the
    one given at construction, or the token passed to ``set_viewer``.
    Switching viewer without a token leaves push off until the next switch.
    """

    def __init__(
        self,
        source: ConversationSource,
        viewer_id: Any = None,
        *,
        interval: float = POLL_INTERVAL_SECONDS,
        on_change: ChangeCallback | None = None,
        transport: RealtimeTransport | None = None,
    ) -> None:
        self._source = source
        self._viewer_id = viewer_id
        self._interval = interval
        self._on_change = on_change
        self._transport = transport

        self._state = IndicatorState.IDLE
        self._counts: dict[str, int] = {}
        self._has_value = False
        self._label: str | None = None

        self._epoch = 0
        self._seq = 0
        self._applied_seq = 0
        self._in_flight: dict[asyncio.Task[None], _Fetch] = {}

        self._timer: asyncio.Task[None] | None = None
        self._handle: Any = None
        self._push_ready = transport is not None
        self._started = False
        self._closed = False

    @property
    def state(self) -> IndicatorState:
        return self._state

    @property
    def viewer_id(self) -> Any:
        return self._viewer_id

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    @property
    def badge(self) -> str | None:
        if not self._has_value:
            return None
        return badge_label(self.total)

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        if self._closed:
            raise RuntimeError("UnreadIndicator is closed")
        self._started = True
        await self._acquire()

    def refresh(self) -> asyncio.Task[None]:
        """Issue one fetch now. Overlapping fetches are allowed."""
        if self._closed:
            raise RuntimeError("UnreadIndicator is closed")
        if self._viewer_id is None:
            raise RuntimeError("No viewer to fetch for")

        self._seq += 1
        fetch = _Fetch(seq=self._seq, epoch=self._epoch)
        self._state = IndicatorState.LOADING
        task = asyncio.create_task(self._run_fetch(fetch), name=f"unread-fetch-{fetch.seq}")
        self._in_flight[task] = fetch
        task.add_done_callback(self._forget)
        return task

    def handle_new_message(self, conversation_id: Any, sender_id: Any) -> None:
        """A pushed message counts as one more unread for its conversation."""
        if self._closed or self._viewer_id is None:
            return
        if str(sender_id) == str(self._viewer_id):
            return
        key = str(conversation_id)
        self._counts[key] = self._counts.get(key, 0) + 1
        for fetch in self._in_flight.values():
            fetch.raced.add(key)
        self._has_value = True
        self._notify()

    async def set_viewer(self, viewer_id: Any, token: str | None = None) -> None:
        """Switch identity. ``token`` is the new viewer's credential."""
        if viewer_id == self._viewer_id:
            return
        await self._release()
        self._epoch += 1
        self._viewer_id = viewer_id
        if token is not None:
            self._source.set_token(token)
            if self._transport is not None:
                self._transport.set_token(token)
        self._push_ready = self._transport is not None and token is not None
        self._counts = {}
        self._has_value = False
        self._state = IndicatorState.IDLE
        self._notify()
        if self._started and not self._closed:
            await self._acquire()

    def stop(self) -> None:
        """Stop polling and ignore every result still on its way."""
        if self._closed:
            return
        self._closed = True
        self._epoch += 1
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    async def aclose(self) -> None:
        self.stop()
        pending = list(self._in_flight)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self._release()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _acquire(self) -> None:
        if self._viewer_id is None:
            self._state = IndicatorState.IDLE
            return
        epoch = self._epoch
        if self._timer is None:
            self._state = IndicatorState.LOADING
            self._timer = asyncio.create_task(self._poll_loop(), name="unread-poll")
        if self._transport is None or self._handle is not None:
            return
        if not self._push_ready:
            logger.info("No realtime credential for viewer %s, polling only", self._viewer_id)
            return

        try:
            handle = await self._transport.connect(self._viewer_id)
        except Exception:
            logger.warning("Realtime transport unavailable, polling only", exc_info=True)
            return
        if epoch != self._epoch or self._closed:
            await self._transport.disconnect(handle)
            return
        self._transport.on_message(handle, self.handle_new_message)
        self._handle = handle

    async def _release(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        handle, self._handle = self._handle, None
        if handle is not None and self._transport is not None:
            try:
                await self._transport.disconnect(handle)
            except Exception:
                logger.warning("Realtime transport disconnect failed", exc_info=True)

    async def _poll_loop(self) -> None:
        while True:
            self.refresh()
            await asyncio.sleep(self._interval)

    async def _run_fetch(self, fetch: _Fetch) -> None:
        try:
            conversations = await self._source.list_conversations()
        except ClientError as exc:
            self._fail(fetch, exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error while polling unread counts")
            self._fail(fetch, exc)
            return

        if not self._is_current(fetch):
            logger.debug("Discarding stale unread result (seq=%d, epoch=%d)", fetch.seq, fetch.epoch)
            return
        polled = {conversation_key(c): unread_of(c) for c in conversations}
        self._counts = merge_counts(polled, self._counts, fetch.raced)
        self._applied_seq = fetch.seq
        self._has_value = True
        self._state = IndicatorState.READY
        self._notify()

    def _fail(self, fetch: _Fetch, exc: Exception) -> None:
        if not self._is_current(fetch):
            logger.debug("Discarding stale unread failure (seq=%d): %s", fetch.seq, exc)
            return
        if isinstance(exc, ClientError):
            logger.warning("Unread poll failed: %s: %s", type(exc).__name__, exc)
        self._state = IndicatorState.ERROR

    def _is_current(self, fetch: _Fetch) -> bool:
        return (
            not self._closed
            and fetch.epoch == self._epoch
            and fetch.seq > self._applied_seq
        )

    def _forget(self, task: asyncio.Task[None]) -> None:
        self._in_flight.pop(task, None)

    def _notify(self) -> None:
        label = self.badge
        if label == self._label:
            return
        self._label = label
        if self._on_change is None:
            return
        try:
            self._on_change(label)
        except Exception:
            logger.exception("Unread badge callback failed")
