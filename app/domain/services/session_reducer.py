from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from app.domain.entities.session import AuthEvent, Session, SessionState


@dataclass(frozen=True)
class Bootstrapped:
    session: Session | None


@dataclass(frozen=True)
class ProviderEvent:
    event: AuthEvent


@dataclass(frozen=True)
class Refreshed:
    session: Session | None


@dataclass(frozen=True)
class SignedOut:
    cleared: Session | None


@dataclass(frozen=True)
class Adopted:
    session: Session


SessionMessage = Union[Bootstrapped, ProviderEvent, Refreshed, SignedOut, Adopted]


@dataclass(frozen=True)
class SessionStoreState:
    current: SessionState
    # User id of the session cleared by the last local sign-out, while the
    # provider has not yet confirmed it.
    signed_out_user_id: str | None = None

    @classmethod
    def initial(cls) -> SessionStoreState:
        return cls(current=SessionState.unknown())


def _is_echo_of_signed_out(state: SessionStoreState, session: Session | None) -> bool:
    if state.signed_out_user_id is None or session is None:
        return False
    return session.user_id == state.signed_out_user_id


def reduce_session(state: SessionStoreState, message: SessionMessage) -> SessionStoreState:
    if isinstance(message, Bootstrapped):
        return SessionStoreState(
            current=SessionState.of(message.session),
            signed_out_user_id=state.signed_out_user_id,
        )

    if isinstance(message, ProviderEvent):
        session = message.event.session
        if _is_echo_of_signed_out(state, session):
            return state
        if session is None:
            return SessionStoreState(current=SessionState.absent())
        return SessionStoreState(
            current=SessionState.of(session),
            signed_out_user_id=state.signed_out_user_id,
        )

    if isinstance(message, Refreshed):
        return SessionStoreState(current=SessionState.of(message.session))

    if isinstance(message, SignedOut):
        cleared_user_id = message.cleared.user_id if message.cleared is not None else None
        return SessionStoreState(current=SessionState.absent(), signed_out_user_id=cleared_user_id)

    if isinstance(message, Adopted):
        return SessionStoreState(current=SessionState.of(message.session))

    raise TypeError(f"Unsupported session message: {type(message).__name__}")
