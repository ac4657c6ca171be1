from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def display_name(self) -> str | None:
        value = self.metadata.get("full_name") or self.metadata.get("username")
        return value if isinstance(value, str) else None

    @property
    def avatar_url(self) -> str | None:
        value = self.metadata.get("avatar_url")
        return value if isinstance(value, str) else None
