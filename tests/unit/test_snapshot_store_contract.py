"""SnapshotStore層の契約テスト。

どの実装であっても、このテストが通ることを保証する。
"""

import pytest

from storefront.interfaces.snapshot_store import SnapshotStoreInterface


@pytest.fixture
def snapshot_store(tmp_path):
    """SnapshotStore層の実装インスタンスを返す。"""
    from storefront.snapshot_store.json_file import JsonFileSnapshotStore

    return JsonFileSnapshotStore(tmp_path / "snapshots")


class TestSnapshotStore:
    """保存・読み出し・削除の契約テスト。"""

    def test_missing_snapshot(self, snapshot_store: SnapshotStoreInterface):
        assert snapshot_store.load("categories") is None

    def test_save_and_load(self, snapshot_store: SnapshotStoreInterface):
        payload = [{"id": "cat1", "name": "Bags", "parentId": None}]
        snapshot_store.save("categories", payload, 1234.5)

        snapshot = snapshot_store.load("categories")
        assert snapshot is not None
        assert snapshot.resource == "categories"
        assert snapshot.payload == payload
        assert snapshot.saved_at == 1234.5

    def test_save_overwrites(self, snapshot_store: SnapshotStoreInterface):
        snapshot_store.save("products", [{"id": 1}], 1.0)
        snapshot_store.save("products", [{"id": 2}], 2.0)
        snapshot = snapshot_store.load("products")
        assert snapshot.payload == [{"id": 2}]
        assert snapshot.saved_at == 2.0

    def test_resources_are_independent(self, snapshot_store: SnapshotStoreInterface):
        snapshot_store.save("products", [{"id": 1}], 1.0)
        assert snapshot_store.load("categories") is None

    def test_clear(self, snapshot_store: SnapshotStoreInterface):
        snapshot_store.save("products", [], 1.0)
        snapshot_store.save("categories", [], 1.0)
        snapshot_store.clear()
        assert snapshot_store.load("products") is None
        assert snapshot_store.load("categories") is None

    def test_unserializable_payload_is_not_raised(
        self, snapshot_store: SnapshotStoreInterface
    ):
        """保存できない値でも例外にせず、既存のスナップショットを壊さない。"""
        snapshot_store.save("categories", [{"id": 1}], 1.0)
        snapshot_store.save("categories", [object()], 2.0)
        assert snapshot_store.load("categories").payload == [{"id": 1}]

    def test_corrupt_file_is_ignored(self, tmp_path):
        from storefront.snapshot_store.json_file import JsonFileSnapshotStore

        (tmp_path / "categories.json").write_text("garbage", encoding="utf-8")
        assert JsonFileSnapshotStore(tmp_path).load("categories") is None
