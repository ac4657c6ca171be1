from __future__ import annotations

import asyncio

import pytest

from app.application.services.session_store import SessionStore
from app.domain.exceptions import ProviderUnavailableError
from fakes import FakeAuthProvider, make_session


def test_state_is_unknown_before_bootstrap():
    store = SessionStore(auth_provider=FakeAuthProvider())

    assert store.state.is_unknown
    assert store.is_ready is False


def test_bootstrap_loads_stored_session_and_subscribes():
    async def scenario():
        provider = FakeAuthProvider(session=make_session("user-1"))
        store = SessionStore(auth_provider=provider)

        state = await store.bootstrap()

        assert state.is_authenticated
        assert state.user_id == "user-1"
        assert store.is_ready
        assert len(provider.listeners) == 1

    asyncio.run(scenario())


def test_bootstrap_runs_once():
    async def scenario():
        provider = FakeAuthProvider()
        store = SessionStore(auth_provider=provider)

        await asyncio.gather(store.bootstrap(), store.bootstrap())
        await store.bootstrap()

        assert provider.called("get_session") == 1
        assert len(provider.listeners) == 1

    asyncio.run(scenario())


def test_bootstrap_failure_resolves_to_absent():
    async def scenario():
        provider = FakeAuthProvider()
        provider.get_session_error = ProviderUnavailableError("down")
        store = SessionStore(auth_provider=provider)

        state = await store.bootstrap()

        assert state.status == "absent"
        assert store.is_ready

    asyncio.run(scenario())


def test_provider_events_update_state_and_notify_watchers():
    async def scenario():
        provider = FakeAuthProvider()
        store = SessionStore(auth_provider=provider)
        await store.bootstrap()
        seen = []
        store.watch(seen.append)

        provider.emit("SIGNED_IN", make_session("user-2"))
        provider.emit("SIGNED_IN", make_session("user-2"))

        assert store.state.user_id == "user-2"
        assert [state.user_id for state in seen] == ["user-2"]

    asyncio.run(scenario())


def test_sign_out_clears_session_and_ignores_stale_echo():
    async def scenario():
        session = make_session("user-1")
        provider = FakeAuthProvider(session=session)
        store = SessionStore(auth_provider=provider)
        await store.bootstrap()

        await store.sign_out()
        provider.emit("TOKEN_REFRESHED", session)

        assert store.state.status == "absent"
        assert provider.called("sign_out") == 1

    asyncio.run(scenario())


def test_sign_out_provider_failure_keeps_session():
    async def scenario():
        provider = FakeAuthProvider(session=make_session("user-1"))
        provider.sign_out_error = ProviderUnavailableError("down")
        store = SessionStore(auth_provider=provider)
        await store.bootstrap()

        with pytest.raises(ProviderUnavailableError):
            await store.sign_out()

        assert store.state.user_id == "user-1"

    asyncio.run(scenario())


def test_refresh_reloads_from_provider():
    async def scenario():
        provider = FakeAuthProvider()
        store = SessionStore(auth_provider=provider)
        await store.bootstrap()
        provider.session = make_session("user-3")

        state = await store.refresh()

        assert state.user_id == "user-3"

    asyncio.run(scenario())


def test_adopt_sets_session_immediately():
    async def scenario():
        store = SessionStore(auth_provider=FakeAuthProvider())
        await store.bootstrap()

        store.adopt(make_session("user-4"))

        assert store.session is not None
        assert store.session.user_id == "user-4"

    asyncio.run(scenario())


def test_failing_watcher_does_not_block_others():
    async def scenario():
        store = SessionStore(auth_provider=FakeAuthProvider())
        await store.bootstrap()
        seen = []

        def broken(_state):
            raise RuntimeError("boom")

        store.watch(broken)
        store.watch(seen.append)
        store.adopt(make_session("user-5"))

        assert len(seen) == 1

    asyncio.run(scenario())


def test_unwatch_stops_notifications():
    async def scenario():
        store = SessionStore(auth_provider=FakeAuthProvider())
        await store.bootstrap()
        seen = []
        unwatch = store.watch(seen.append)
        unwatch()

        store.adopt(make_session())

        assert seen == []

    asyncio.run(scenario())


def test_teardown_unsubscribes_and_freezes_state():
    async def scenario():
        provider = FakeAuthProvider()
        store = SessionStore(auth_provider=provider)
        await store.bootstrap()

        store.teardown()
        store.adopt(make_session())

        assert provider.listeners == []
        assert store.is_closed
        assert store.state.status == "absent"

    asyncio.run(scenario())


def test_wait_until_ready_times_out_before_bootstrap():
    async def scenario():
        store = SessionStore(auth_provider=FakeAuthProvider())

        assert await store.wait_until_ready(0.01) is False
        await store.bootstrap()
        assert await store.wait_until_ready(0.01) is True

    asyncio.run(scenario())


class GatedAuthProvider(FakeAuthProvider):
    """Holds ``get_session`` open until ``release`` is set."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.release = asyncio.Event()

    async def get_session(self):
        session = await super().get_session()
        await self.release.wait()
        return session


def test_refresh_in_flight_during_sign_out_is_discarded():
    async def scenario():
        provider = GatedAuthProvider(session=make_session("user-1"))
        store = SessionStore(auth_provider=provider)
        store.adopt(make_session("user-1"))

        pending = asyncio.ensure_future(store.refresh())
        await asyncio.sleep(0)
        await store.sign_out()
        provider.release.set()
        state = await pending

        assert state.status == "absent"
        assert store.state.status == "absent"

    asyncio.run(scenario())


def test_refresh_in_flight_during_adopt_keeps_adopted_session():
    async def scenario():
        provider = GatedAuthProvider(session=make_session("user-1"))
        store = SessionStore(auth_provider=provider)

        pending = asyncio.ensure_future(store.refresh())
        await asyncio.sleep(0)
        store.adopt(make_session("user-2"))
        provider.release.set()
        await pending

        assert store.state.user_id == "user-2"

    asyncio.run(scenario())
