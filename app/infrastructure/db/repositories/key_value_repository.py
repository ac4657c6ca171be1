from __future__ import annotations

from sqlalchemy import delete, select

from app.application.ports.key_value_backend_port import KeyValueBackendPort
from app.infrastructure.db.engine import Base
from app.infrastructure.db.models.client_storage import ClientStorageItemModel


class SqlKeyValueRepository(KeyValueBackendPort):
    def __init__(self, engine):
        self._engine = engine
        self._schema_ready = False

    def get_item(self, key: str) -> str | None:
        self._ensure_schema()
        stmt = select(ClientStorageItemModel.value).where(ClientStorageItemModel.key == key)
        with self._engine.connect() as conn:
            return conn.execute(stmt).scalar_one_or_none()

    def set_item(self, key: str, value: str) -> None:
        self._ensure_schema()
        table = ClientStorageItemModel.__table__
        with self._engine.begin() as conn:
            conn.execute(delete(table).where(table.c.key == key))
            conn.execute(table.insert().values(key=key, value=value))

    def remove_item(self, key: str) -> None:
        self._ensure_schema()
        table = ClientStorageItemModel.__table__
        with self._engine.begin() as conn:
            conn.execute(delete(table).where(table.c.key == key))

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        Base.metadata.create_all(self._engine, tables=[ClientStorageItemModel.__table__])
        self._schema_ready = True
