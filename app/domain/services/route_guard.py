from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlencode

from app.domain.entities.session import SessionState


RouteDecisionKind = Literal["allow", "redirect", "defer"]

_USER_ID_SEGMENT_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


@dataclass(frozen=True)
class RouteDecision:
    kind: RouteDecisionKind
    target: str | None = None

    @classmethod
    def allow(cls) -> RouteDecision:
        return cls(kind="allow")

    @classmethod
    def defer(cls) -> RouteDecision:
        return cls(kind="defer")

    @classmethod
    def redirect(cls, target: str) -> RouteDecision:
        return cls(kind="redirect", target=target)


@dataclass(frozen=True)
class RoutePolicy:
    protected_prefixes: tuple[str, ...] = ("/profile",)
    signin_path: str = "/signin"
    return_param: str = "redirect"
    # Profile pages addressed by a user id stay public.
    public_profile_prefix: str | None = "/profile"


def _normalize_path(path: str) -> str:
    path = path.split("?", 1)[0].split("#", 1)[0] or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def _matches_prefix(path: str, prefix: str) -> bool:
    prefix = prefix.rstrip("/") or "/"
    return path == prefix or path.startswith(prefix + "/")


def _is_public_profile(path: str, policy: RoutePolicy) -> bool:
    if not policy.public_profile_prefix:
        return False
    prefix = policy.public_profile_prefix.rstrip("/")
    if not path.startswith(prefix + "/"):
        return False
    segment = path[len(prefix) + 1 :].split("/", 1)[0]
    return bool(_USER_ID_SEGMENT_RE.match(segment))


def is_protected_path(path: str, policy: RoutePolicy) -> bool:
    path = _normalize_path(path)
    if not any(_matches_prefix(path, prefix) for prefix in policy.protected_prefixes):
        return False
    return not _is_public_profile(path, policy)


def build_signin_redirect(path: str, policy: RoutePolicy) -> str:
    return f"{policy.signin_path}?{urlencode({policy.return_param: _normalize_path(path)})}"


def evaluate_route(path: str, state: SessionState, policy: RoutePolicy) -> RouteDecision:
    if state.is_unknown:
        return RouteDecision.defer()
    if not is_protected_path(path, policy):
        return RouteDecision.allow()
    if state.is_authenticated:
        return RouteDecision.allow()
    return RouteDecision.redirect(build_signin_redirect(path, policy))
