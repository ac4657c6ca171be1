from __future__ import annotations

import asyncio
import logging
from typing import Callable

from app.application.ports.auth_provider_port import AuthProviderPort, Unsubscribe
from app.domain.entities.session import AuthEvent, Session, SessionState
from app.domain.services.session_reducer import (
    Adopted,
    Bootstrapped,
    ProviderEvent,
    Refreshed,
    SessionMessage,
    SessionStoreState,
    SignedOut,
    reduce_session,
)


logger = logging.getLogger(__name__)


StateListener = Callable[[SessionState], None]


class SessionStore:
    """Single owner of the active session.

    Every mutation goes through ``_dispatch``, which feeds one message into
    ``reduce_session`` and swaps the whole state. Consumers read ``state``
    and react through ``watch``; they never mutate it.
    """

    def __init__(self, *, auth_provider: AuthProviderPort):
        self._auth_provider = auth_provider
        self._state = SessionStoreState.initial()
        self._listeners: list[StateListener] = []
        self._unsubscribe: Unsubscribe | None = None
        self._ready = asyncio.Event()
        self._bootstrap_task: asyncio.Task | None = None
        self._closed = False
        # Bumped by sign_out and adopt; lookups started under an older
        # generation are discarded.
        self._generation = 0

    @property
    def state(self) -> SessionState:
        return self._state.current

    @property
    def session(self) -> Session | None:
        return self._state.current.session

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def bootstrap(self) -> SessionState:
        if self._bootstrap_task is None:
            self._bootstrap_task = asyncio.ensure_future(self._bootstrap())
        await self._bootstrap_task
        return self.state

    async def _bootstrap(self) -> None:
        generation = self._generation
        session = await self._fetch_session(operation="bootstrap")
        if self._closed:
            return
        if generation == self._generation:
            self._dispatch(Bootstrapped(session))
        self._ready.set()
        if self._unsubscribe is None:
            self._unsubscribe = self._auth_provider.subscribe(self._on_provider_event)
        logger.info("session_store: bootstrapped status=%s", self.state.status)

    async def refresh(self) -> SessionState:
        if self._closed:
            return self.state
        generation = self._generation
        session = await self._fetch_session(operation="refresh")
        if self._closed:
            return self.state
        if generation != self._generation:
            logger.debug("session_store: refresh_superseded")
            return self.state
        self._dispatch(Refreshed(session))
        self._ready.set()
        return self.state

    async def sign_out(self) -> None:
        cleared = self.session
        self._generation += 1
        await self._auth_provider.sign_out()
        if self._closed:
            return
        self._dispatch(SignedOut(cleared))
        self._ready.set()
        logger.info("session_store: signed_out user_id=%s", cleared.user_id if cleared else None)

    def adopt(self, session: Session) -> None:
        if self._closed:
            return
        self._generation += 1
        self._dispatch(Adopted(session))
        self._ready.set()

    def teardown(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()
        logger.info("session_store: teardown")

    def watch(self, listener: StateListener) -> Unsubscribe:
        self._listeners.append(listener)

        def _unwatch() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unwatch

    async def wait_until_ready(self, timeout: float | None = None) -> bool:
        if self._ready.is_set():
            return True
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _fetch_session(self, *, operation: str) -> Session | None:
        try:
            return await self._auth_provider.get_session()
        except Exception as exc:
            # Background lookups never surface errors; they resolve to "no session".
            logger.warning(
                "session_store: %s_failed error=%s detail=%s",
                operation,
                type(exc).__name__,
                exc,
            )
            return None

    def _on_provider_event(self, event: AuthEvent) -> None:
        if self._closed:
            return
        logger.debug("session_store: provider_event kind=%s", event.kind)
        self._dispatch(ProviderEvent(event))
        self._ready.set()

    def _dispatch(self, message: SessionMessage) -> None:
        previous = self._state.current
        self._state = reduce_session(self._state, message)
        current = self._state.current
        if current == previous:
            return
        for listener in list(self._listeners):
            try:
                listener(current)
            except Exception:
                logger.exception("session_store: listener_failed listener=%r", listener)
