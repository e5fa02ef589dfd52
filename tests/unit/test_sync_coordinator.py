"""SyncCoordinator のユニットテスト。"""

import asyncio

import pytest

from storefront.client.errors import HttpError, RequestSupersededError, ValidationError
from storefront.client.resilient import ResilientClient
from storefront.client.resources import CategoryApi
from storefront.interfaces.category import CategoryChangeEvent
from storefront.sync.category_store import CategoryStore
from storefront.sync.consumers import CategoryViewConsumer
from storefront.sync.coordinator import MutationState, SyncCoordinator
from storefront.sync.event_bus import CATEGORIES_LOADED, CATEGORIES_REFRESHED, EventBus


def _run(coro):
    """async テストを同期的に実行するヘルパー。"""
    return asyncio.run(coro)


BASE = [
    {"id": "cat1", "name": "A", "parentId": None},
    {"id": "cat2", "name": "B", "parentId": "cat1"},
    {"id": "cat3", "name": "C", "parentId": "cat2"},
]

SUCCESS_PATH = [
    MutationState.VALIDATING,
    MutationState.SENDING,
    MutationState.SUCCEEDED,
    MutationState.CACHE_INVALIDATED,
    MutationState.RELOADING,
    MutationState.EVENT_PUBLISHED,
    MutationState.IDLE,
]


def _setup(transport, no_sleep, **kwargs):
    client = ResilientClient(transport, sleep=no_sleep)
    bus = EventBus()
    api = CategoryApi(client)
    store = CategoryStore(api, bus)
    return SyncCoordinator(api, store, bus, **kwargs), store


async def _hang():
    await asyncio.Event().wait()


async def _wait_until(predicate):
    """predicate が真になるまでイベントループを回す。"""
    for _ in range(1000):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was never met")


class TestAddCategory:
    """追加 → キャッシュ破棄 → 再読込 → 配信 の順序。"""

    def test_handler_sees_reloaded_state(self, transport, no_sleep):
        """イベントハンドラ内で current() を読むと新しいカテゴリが見える。"""

        async def _test():
            created = {"id": "cat4", "name": "Helmets", "parentId": None}
            transport.queue(transport.json(created), transport.json(BASE + [created]))
            coordinator, store = _setup(transport, no_sleep)
            observed = []

            async def handler(queue):
                while True:
                    msg = await queue.get()
                    if msg.event == CATEGORIES_REFRESHED:
                        observed.append((msg.data, [r.name for r in store.current()]))
                        return

            async with coordinator.subscribe() as queue:
                listener = asyncio.create_task(handler(queue))
                record = await coordinator.add_category("  Helmets ")
                await asyncio.wait_for(listener, timeout=1)

            assert record.id == "4"
            assert observed == [
                (
                    CategoryChangeEvent(action="add", resource_id="4"),
                    ["A", "B", "C", "Helmets"],
                )
            ]
            assert coordinator.history == SUCCESS_PATH
            assert coordinator.state == MutationState.IDLE

        _run(_test())

    def test_loaded_event_precedes_refreshed_event(self, transport, no_sleep):
        async def _test():
            created = {"id": "cat4", "name": "D"}
            transport.queue(transport.json(created), transport.json(BASE + [created]))
            coordinator, _ = _setup(transport, no_sleep)
            async with coordinator.subscribe() as queue:
                await coordinator.add_category("D")
                events = [queue.get_nowait().event for _ in range(queue.qsize())]
            assert events == [CATEGORIES_LOADED, CATEGORIES_REFRESHED]

        _run(_test())

    def test_reload_bypasses_cache(self, transport, no_sleep):
        """更新前に読み込んだ一覧がキャッシュされていても、再読込はネットワークへ行く。"""

        async def _test():
            created = {"id": "cat4", "name": "D"}
            transport.queue(
                transport.json(BASE),
                transport.json(created),
                transport.json(BASE + [created]),
            )
            coordinator, store = _setup(transport, no_sleep)
            await store.reload()
            await coordinator.add_category("D")

            assert [c.method for c in transport.calls] == ["GET", "POST", "GET"]
            assert len(store.current()) == 4

        _run(_test())

    def test_empty_name_is_rejected_locally(self, transport, no_sleep):
        """空の名前はネットワークに到達せず、イベントも配信されない。"""

        async def _test():
            coordinator, _ = _setup(transport, no_sleep)
            async with coordinator.subscribe() as queue:
                with pytest.raises(ValidationError):
                    await coordinator.add_category("   ")
                assert queue.empty()
            assert transport.calls == []
            assert coordinator.history == [
                MutationState.VALIDATING,
                MutationState.FAILED,
                MutationState.IDLE,
            ]

        _run(_test())

    def test_parent_sent_in_stored_encoding(self, transport, no_sleep):
        async def _test():
            created = {"id": "cat4", "name": "D", "parentId": "cat2"}
            transport.queue(
                transport.json(BASE),
                transport.json(created),
                transport.json(BASE + [created]),
            )
            coordinator, store = _setup(transport, no_sleep)
            await store.reload()
            await coordinator.add_category("D", parent_id=2)

            post = transport.calls[1]
            assert post.json == {"name": "D", "parentId": "cat2"}
            assert store.path_of("cat4") == "A > B > D"

        _run(_test())

    def test_server_rejection_leaves_state_untouched(self, transport, no_sleep):
        async def _test():
            transport.queue(transport.json({"error": "bad"}, status=400))
            coordinator, store = _setup(transport, no_sleep)
            async with coordinator.subscribe() as queue:
                with pytest.raises(HttpError):
                    await coordinator.add_category("X")
                assert queue.empty()
            assert coordinator.history[-2:] == [MutationState.FAILED, MutationState.IDLE]
            assert len(transport.calls) == 1
            assert store.current() == []

        _run(_test())


class TestUpdateCategory:
    @pytest.fixture
    def loaded(self, transport, no_sleep):
        transport.queue(transport.json(BASE))
        coordinator, store = _setup(transport, no_sleep)
        _run(store.reload())
        return coordinator, store

    def test_rename(self, transport, loaded):
        coordinator, store = loaded
        renamed = {"id": "cat2", "name": "Bikes", "parentId": "cat1"}
        transport.queue(
            transport.json(renamed),
            transport.json([BASE[0], renamed, BASE[2]]),
        )

        record = _run(coordinator.update_category("2", "Bikes", parent_id="1"))

        assert record.name == "Bikes"
        assert transport.calls[1].json == {"id": "cat2", "name": "Bikes", "parentId": "cat1"}
        assert store.path_of("cat3") == "A > Bikes > C"
        assert coordinator.history == SUCCESS_PATH

    def test_self_parent_rejected(self, transport, loaded):
        coordinator, _ = loaded
        with pytest.raises(ValidationError):
            _run(coordinator.update_category("cat2", "B", parent_id="2"))
        assert len(transport.calls) == 1

    def test_move_below_descendant_rejected(self, transport, loaded):
        """自分の子孫を親にすると循環になるため送信前に拒否する。"""
        coordinator, _ = loaded
        with pytest.raises(ValidationError):
            _run(coordinator.update_category("cat1", "A", parent_id="cat3"))
        assert len(transport.calls) == 1

    def test_missing_id_rejected(self, transport, loaded):
        coordinator, _ = loaded
        with pytest.raises(ValidationError):
            _run(coordinator.update_category(None, "A"))
        assert len(transport.calls) == 1


class TestDeleteCategory:
    @pytest.fixture
    def loaded(self, transport, no_sleep):
        transport.queue(transport.json(BASE))
        coordinator, store = _setup(transport, no_sleep)
        _run(store.reload())
        return coordinator, store

    def test_cascade_delete(self, transport, loaded):
        coordinator, store = loaded
        transport.queue(
            transport.json({"success": True, "removed": ["cat2", "cat3"]}),
            transport.json(BASE[:1]),
        )

        _run(coordinator.delete_category("2"))

        delete = transport.calls[1]
        assert delete.method == "DELETE"
        assert delete.params == {"id": "cat2"}
        assert [r.id for r in store.current()] == ["1"]

    def test_reparent_delete_sends_new_parent(self, transport, loaded):
        coordinator, store = loaded
        transport.queue(
            transport.json({"success": True, "removed": ["cat2"]}),
            transport.json([BASE[0], {**BASE[2], "parentId": "cat1"}]),
        )

        _run(
            coordinator.delete_category(
                "cat2", update_subcategories=True, new_parent_id="1"
            )
        )

        assert transport.calls[1].params == {
            "id": "cat2",
            "updateSubcategories": "true",
            "newParentId": "cat1",
        }
        assert store.path_of("3") == "A > C"

    def test_reparent_to_own_descendant_rejected(self, transport, loaded):
        coordinator, _ = loaded
        with pytest.raises(ValidationError):
            _run(
                coordinator.delete_category(
                    "cat1", update_subcategories=True, new_parent_id="cat3"
                )
            )
        assert len(transport.calls) == 1


class TestSupersededReload:
    """更新後の再読込が別の reload に置き換えられた場合。"""

    def test_superseded_reload_is_repeated_before_publishing(self, transport, no_sleep):
        """置き換えられた再読込はやり直し、配信はやり直しの完了後に1回だけ行う。"""

        async def _test():
            created = {"id": "cat4", "name": "D"}
            transport.queue(transport.json(created), _hang)
            transport.default = transport.json(BASE + [created])
            coordinator, store = _setup(transport, no_sleep)
            observed = []

            async with coordinator.subscribe() as queue:
                task = asyncio.create_task(coordinator.add_category("D"))
                await _wait_until(lambda: len(transport.calls) >= 2)
                concurrent = asyncio.create_task(store.reload())
                record = await task
                await asyncio.gather(concurrent, return_exceptions=True)
                while not queue.empty():
                    msg = queue.get_nowait()
                    observed.append((msg.event, msg.data))

            assert record.id == "4"
            assert len(transport.calls) >= 3
            refreshed = [e for e in observed if e[0] == CATEGORIES_REFRESHED]
            assert len(refreshed) == 1
            assert observed[-1][0] == CATEGORIES_REFRESHED
            assert observed[-2] == (CATEGORIES_LOADED, {"count": 4})
            assert [r.name for r in store.current()] == ["A", "B", "C", "D"]
            assert coordinator.history == SUCCESS_PATH

        _run(_test())

    def test_gives_up_after_max_reload_attempts(self, transport, no_sleep):
        """全ての再読込が置き換えられたら送出し、何も配信せず IDLE に戻る。"""

        async def _test():
            transport.queue(transport.json({"id": "cat4", "name": "D"}))
            transport.default = _hang
            coordinator, store = _setup(transport, no_sleep, max_reload_attempts=2)

            async with coordinator.subscribe() as queue:
                task = asyncio.create_task(coordinator.add_category("D"))
                await _wait_until(lambda: len(transport.calls) >= 2)
                first = asyncio.create_task(store.reload())
                # first が置き換えられた時点で、コーディネータは2回目を送っている
                await _wait_until(first.done)
                second = asyncio.create_task(store.reload())

                with pytest.raises(RequestSupersededError):
                    await task
                second.cancel()
                results = await asyncio.gather(first, second, return_exceptions=True)
                events = [queue.get_nowait().event for _ in range(queue.qsize())]

            assert isinstance(results[0], RequestSupersededError)
            assert CATEGORIES_REFRESHED not in events
            assert coordinator.state == MutationState.IDLE
            assert coordinator.history[-2:] == [MutationState.RELOADING, MutationState.IDLE]
            assert store.current() == []

        _run(_test())


class TestCategoryViewConsumer:
    """変更イベントを受けてビューを再計算する利用者。"""

    def test_views_follow_refresh_events(self, transport, no_sleep):
        async def _test():
            created = {"id": "cat4", "name": "D", "parentId": "cat3"}
            transport.queue(
                transport.json(BASE),
                transport.json(created),
                transport.json(BASE + [created]),
            )
            coordinator, store = _setup(transport, no_sleep)
            await store.reload()
            consumer = CategoryViewConsumer(store)
            await consumer.refresh()
            assert len(consumer.picker) == 3

            async with coordinator.subscribe() as queue:
                runner = asyncio.create_task(consumer.run(queue))
                await coordinator.add_category("D", parent_id="cat3")
                for _ in range(10):
                    await asyncio.sleep(0)
                runner.cancel()

            assert [e.record.name for e in consumer.picker] == ["A", "B", "C", "D"]
            assert consumer.picker[-1].path == "A > B > C > D"
            assert consumer.events == [CategoryChangeEvent(action="add", resource_id="4")]

        _run(_test())
