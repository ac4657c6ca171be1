from __future__ import annotations

from app.infrastructure.db.engine import get_engine
from app.infrastructure.db.repositories.key_value_repository import SqlKeyValueRepository
from app.infrastructure.storage.storage_adapter import StorageAdapter


def test_set_get_remove(tmp_path):
    repository = SqlKeyValueRepository(get_engine(f"sqlite:///{tmp_path / 'storage.db'}"))

    assert repository.get_item("k") is None

    repository.set_item("k", "v1")
    repository.set_item("k", "v2")
    assert repository.get_item("k") == "v2"

    repository.remove_item("k")
    assert repository.get_item("k") is None


def test_values_persist_across_repository_instances(tmp_path):
    dsn = f"sqlite:///{tmp_path / 'storage.db'}"
    StorageAdapter(SqlKeyValueRepository(get_engine(dsn))).write("accounts", {"ids": ["a"]})

    reopened = StorageAdapter(SqlKeyValueRepository(get_engine(dsn)))

    assert reopened.read("accounts") == {"ids": ["a"]}
