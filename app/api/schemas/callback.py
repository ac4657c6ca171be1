from __future__ import annotations

from pydantic import BaseModel


class RetryAction(BaseModel):
    label: str
    href: str


class CallbackErrorResponse(BaseModel):
    detail: str
    action: RetryAction
