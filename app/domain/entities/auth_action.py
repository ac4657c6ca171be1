from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping


AuthActionKind = Literal["confirmation", "recovery", "invite", "magiclink"]

# Provider ``type`` values mapped onto the kinds handled by the callback flow.
_TYPE_TO_KIND: dict[str, AuthActionKind] = {
    "signup": "confirmation",
    "email": "confirmation",
    "email_change": "confirmation",
    "recovery": "recovery",
    "invite": "invite",
    "magiclink": "magiclink",
}


@dataclass(frozen=True)
class PendingAuthAction:
    token: str | None
    kind: AuthActionKind
    declared_type: str | None
    redirect_to: str | None

    @property
    def has_code(self) -> bool:
        return bool(self.token)

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> PendingAuthAction:
        declared_type = (params.get("type") or "").strip().lower() or None
        token = params.get("token_hash") or params.get("code") or None
        return cls(
            token=token.strip() if token else None,
            kind=_TYPE_TO_KIND.get(declared_type or "", "confirmation"),
            declared_type=declared_type,
            redirect_to=params.get("next") or params.get("redirect_to") or None,
        )
