from __future__ import annotations

from app.application.ports.key_value_backend_port import KeyValueBackendPort


class InMemoryKeyValueBackend(KeyValueBackendPort):
    def __init__(self, items: dict[str, str] | None = None):
        self.items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)
