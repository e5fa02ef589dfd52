"""変更イベントからビューを再計算する利用者."""

import asyncio
import logging
from typing import Any

from storefront.catalog.hierarchy import CategoryIndex
from storefront.catalog.normalizer import normalize
from storefront.client.resources import ResourceApi
from storefront.interfaces.category import (
    CategoryChangeEvent,
    FlatCategoryEntry,
    HierarchyNode,
)
from storefront.sync.category_store import CategoryStore
from storefront.sync.event_bus import CATEGORIES_REFRESHED, BusMessage

logger = logging.getLogger(__name__)


def products_in_category(
    products: list[dict[str, Any]],
    index: CategoryIndex,
    category_id: Any,
    include_subcategories: bool = True,
) -> list[dict[str, Any]]:
    """カテゴリに属する商品. サブカテゴリの商品も含める."""
    target = normalize(category_id)
    if target is None:
        return []
    wanted = {target}
    if include_subcategories:
        wanted.update(index.descendant_ids(target))
    return [p for p in products if normalize(p.get("categoryId")) in wanted]


class CategoryViewConsumer:
    """カテゴリ木・選択肢一覧・商品のパンくずを保持し、イベントごとに作り直す."""

    def __init__(
        self, store: CategoryStore, products: ResourceApi | None = None
    ) -> None:
        self._store = store
        self._products = products
        self.hierarchy: list[HierarchyNode] = []
        self.picker: list[FlatCategoryEntry] = []
        self.product_paths: dict[str, str] = {}
        self.events: list[CategoryChangeEvent] = []

    async def refresh(self, event: CategoryChangeEvent | None = None) -> None:
        """store.current() からビューを導出し直す."""
        if event is not None:
            self.events.append(event)
        self.hierarchy = self._store.hierarchy()
        self.picker = self._store.flat()
        if self._products is not None:
            products = await self._products.list()
            self.product_paths = {
                str(p.get("id")): self._store.path_of(p.get("categoryId"))
                for p in products
                if isinstance(p, dict)
            }
        logger.debug(
            "Category views refreshed: %d roots, %d picker entries",
            len(self.hierarchy),
            len(self.picker),
        )

    async def run(self, queue: "asyncio.Queue[BusMessage]") -> None:
        """キューからイベントを受け取り続ける. タスクのキャンセルで終了する."""
        while True:
            message = await queue.get()
            if message.event == CATEGORIES_REFRESHED:
                await self.refresh(message.data)
