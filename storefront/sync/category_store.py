"""現在のカテゴリ一覧を保持するストア."""

import logging

from storefront.catalog.hierarchy import CategoryIndex, build_hierarchy, flatten_hierarchy
from storefront.catalog.normalizer import parse_category_records
from storefront.catalog.paths import PathResolver
from storefront.client.resources import CategoryApi
from storefront.interfaces.category import (
    CanonicalId,
    CategoryRecord,
    FlatCategoryEntry,
    HierarchyNode,
)
from storefront.sync.event_bus import CATEGORIES_LOADED, EventBus

logger = logging.getLogger(__name__)


class CategoryStore:
    """CategoryApi 経由で読み込んだカテゴリのスナップショット.

    再読込が成功するたびに一覧を丸ごと差し替える（部分更新はしない）。
    階層やパスは要求のたびに現在の一覧から導出する。
    """

    def __init__(self, api: CategoryApi, bus: EventBus | None = None) -> None:
        self._api = api
        self._bus = bus
        self._records: tuple[CategoryRecord, ...] = ()
        self._index: CategoryIndex | None = None

    async def reload(self, bypass_cache: bool = False) -> list[CategoryRecord]:
        """バックエンドから読み直して差し替える.

        Raises:
            RequestSupersededError: より新しい reload に置き換えられた場合。
                このとき一覧は変更されず、イベントも配信されない。
        """
        payload = await self._api.list(bypass_cache=bypass_cache)
        records = tuple(parse_category_records(payload))
        self._records = records
        self._index = None
        logger.info("Loaded %d categories", len(records))
        if self._bus is not None:
            self._bus.publish(CATEGORIES_LOADED, {"count": len(records)})
        return list(records)

    def current(self) -> list[CategoryRecord]:
        """最後に読み込んだ一覧. 初回読込前は空リスト."""
        return list(self._records)

    def index(self) -> CategoryIndex:
        if self._index is None:
            self._index = CategoryIndex(self._records)
        return self._index

    def find(self, category_id: object) -> CategoryRecord | None:
        return self.index().get(category_id)

    def hierarchy(self) -> list[HierarchyNode]:
        """呼び出し側専用の新しい木を返す."""
        return build_hierarchy(self.index())

    def flat(self) -> list[FlatCategoryEntry]:
        return flatten_hierarchy(self.index())

    def main_categories(self) -> list[CategoryRecord]:
        return self.index().roots

    def subcategories(self, category_id: object) -> list[CategoryRecord]:
        return self.index().children_of(category_id)

    def has_subcategories(self, category_id: object) -> bool:
        return self.index().has_children(category_id)

    def descendant_ids(self, category_id: object) -> list[CanonicalId]:
        return self.index().descendant_ids(category_id)

    def path_of(self, category_id: object) -> str:
        return PathResolver(self._records).path_of(category_id)

    def breadcrumb(self, category_id: object) -> list[CategoryRecord]:
        return PathResolver(self._records).ancestors(category_id)

    def wire_id(self, category_id: object) -> object:
        """バックエンドが保存しているエンコーディングのID. 不明なら入力をそのまま返す."""
        record = self.find(category_id)
        if record is not None and record.source_id is not None:
            return record.source_id
        return category_id
