"""カテゴリ更新後の同期コーディネータ.

更新が成功したら キャッシュ破棄 → 再読込 → イベント配信 の順に処理する。
配信は再読込の完了後に行うため、イベントハンドラ内で store.current() を
読めば必ず更新後の状態が見える。
"""

import logging
from enum import Enum
from typing import Any

from storefront.catalog.normalizer import ids_equal, normalize, parse_category_record
from storefront.client.errors import ClientError, RequestSupersededError, ValidationError
from storefront.client.resources import CategoryApi, validate_category
from storefront.interfaces.category import (
    CanonicalId,
    CategoryChangeEvent,
    CategoryRecord,
    MutationAction,
)
from storefront.sync.category_store import CategoryStore
from storefront.sync.event_bus import CATEGORIES_REFRESHED, EventBus

logger = logging.getLogger(__name__)


class MutationState(str, Enum):
    """1回の更新処理の状態. リトライは SENDING の中で行われる."""

    IDLE = "idle"
    VALIDATING = "validating"
    SENDING = "sending"
    SUCCEEDED = "succeeded"
    CACHE_INVALIDATED = "cache_invalidated"
    RELOADING = "reloading"
    EVENT_PUBLISHED = "event_published"
    FAILED = "failed"


class SyncCoordinator:
    """カテゴリの追加・更新・削除と、その後の再同期を受け持つ."""

    def __init__(
        self,
        api: CategoryApi,
        store: CategoryStore,
        bus: EventBus,
        max_reload_attempts: int = 3,
    ) -> None:
        self._api = api
        self._store = store
        self._bus = bus
        self._max_reload_attempts = max_reload_attempts
        self.state = MutationState.IDLE
        self.history: list[MutationState] = []

    def subscribe(self):
        """変更イベントの購読. `async with coordinator.subscribe() as queue:`"""
        return self._bus.subscribe()

    def _transition(self, state: MutationState) -> None:
        """状態を進める. history には直近の更新処理の遷移だけが残る."""
        self.state = state
        self.history.append(state)
        logger.debug("Category mutation state -> %s", state.value)

    # ---------- 更新操作 ----------

    async def add_category(
        self, name: str, parent_id: Any = None
    ) -> CategoryRecord | None:
        """カテゴリを追加する. 空の名前は送信前に ValidationError."""

        def validate() -> dict[str, Any]:
            payload = {"name": name, "parentId": None}
            validate_category(payload)
            if parent_id is not None:
                payload["parentId"] = self._store.wire_id(parent_id)
            return payload

        result = await self._mutate("add", validate, self._api.create)
        record = parse_category_record(result)
        await self._synchronize("add", record.id if record else None)
        return record

    async def update_category(
        self, category_id: Any, name: str, parent_id: Any = None
    ) -> CategoryRecord | None:
        """名前と親を更新する.

        自分自身や自分の子孫を親にする変更は、循環を作るため送信前に拒否する。
        """

        def validate() -> dict[str, Any]:
            if normalize(category_id) in (None, ""):
                raise ValidationError("id is required")
            payload = {
                "id": self._store.wire_id(category_id),
                "name": name,
                "parentId": None,
            }
            validate_category(payload)
            if parent_id is not None:
                self._reject_cycle(category_id, parent_id)
                payload["parentId"] = self._store.wire_id(parent_id)
            return payload

        result = await self._mutate("update", validate, self._api.update)
        record = parse_category_record(result)
        await self._synchronize("update", normalize(category_id))
        return record

    async def delete_category(
        self,
        category_id: Any,
        update_subcategories: bool = False,
        new_parent_id: Any = None,
    ) -> Any:
        """カテゴリを削除する.

        update_subcategories=True なら直下の子を new_parent_id（None ならルート）へ
        付け替え、False なら子孫ごと削除される。
        """

        def validate() -> tuple[Any, Any]:
            if normalize(category_id) in (None, ""):
                raise ValidationError("id is required")
            if update_subcategories and new_parent_id is not None:
                self._reject_cycle(category_id, new_parent_id)
            new_parent = (
                self._store.wire_id(new_parent_id)
                if new_parent_id is not None
                else None
            )
            return self._store.wire_id(category_id), new_parent

        async def send(args: tuple[Any, Any]) -> Any:
            wire_id, new_parent = args
            return await self._api.delete(
                wire_id,
                update_subcategories=update_subcategories,
                new_parent_id=new_parent,
            )

        result = await self._mutate("delete", validate, send)
        await self._synchronize("delete", normalize(category_id))
        return result

    def _reject_cycle(self, category_id: Any, parent_id: Any) -> None:
        if ids_equal(category_id, parent_id):
            raise ValidationError("a category cannot be its own parent")
        if normalize(parent_id) in self._store.descendant_ids(category_id):
            raise ValidationError("a category cannot be moved below its own descendant")

    # ---------- 共通処理 ----------

    async def _mutate(self, action: MutationAction, validate, send) -> Any:
        self.history = []
        self._transition(MutationState.VALIDATING)
        try:
            payload = validate()
            self._transition(MutationState.SENDING)
            result = await send(payload)
        except ClientError as exc:
            self._transition(MutationState.FAILED)
            logger.warning("Category %s failed: %s", action, exc)
            self._transition(MutationState.IDLE)
            raise
        self._transition(MutationState.SUCCEEDED)
        return result

    async def _synchronize(
        self, action: MutationAction, affected_id: CanonicalId | None
    ) -> None:
        self._api.invalidate()
        self._transition(MutationState.CACHE_INVALIDATED)

        self._transition(MutationState.RELOADING)
        for attempt in range(1, self._max_reload_attempts + 1):
            try:
                await self._store.reload(bypass_cache=True)
                break
            except RequestSupersededError:
                if attempt >= self._max_reload_attempts:
                    self._transition(MutationState.IDLE)
                    raise
                logger.info("Post-%s reload superseded; reloading again", action)

        self._bus.publish(
            CATEGORIES_REFRESHED,
            CategoryChangeEvent(action=action, resource_id=affected_id),
        )
        self._transition(MutationState.EVENT_PUBLISHED)
        logger.info("Category %s synchronized (id=%s)", action, affected_id)
        self._transition(MutationState.IDLE)
