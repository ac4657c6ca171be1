from __future__ import annotations

import logging
from typing import Awaitable, Callable

from app.domain.entities.session import SessionState
from app.domain.services.route_guard import RouteDecision, RoutePolicy, evaluate_route


logger = logging.getLogger(__name__)


StateResolver = Callable[[], Awaitable[SessionState]]


class CheckRouteAccessUseCase:
    def __init__(self, *, resolve_state: StateResolver, policy: RoutePolicy):
        self._resolve_state = resolve_state
        self._policy = policy

    async def execute(self, path: str) -> RouteDecision:
        try:
            state = await self._resolve_state()
        except Exception as exc:
            # Fail closed: an unresolvable session is an absent session.
            logger.warning(
                "route_guard: session_lookup_failed path=%s error=%s",
                path,
                type(exc).__name__,
            )
            state = SessionState.absent()
        return evaluate_route(path, state, self._policy)
