"""フラットなカテゴリ一覧から木構造を構築する.

ID で索引を作り、ID で辿る（アリーナ方式）。再帰は使わず明示的なスタックと
訪問済み集合で走査するため、循環を含む入力でも必ず停止する。
"""

import logging
from collections.abc import Iterable

from storefront.catalog.normalizer import normalize
from storefront.interfaces.category import (
    CanonicalId,
    CategoryRecord,
    FlatCategoryEntry,
    HierarchyAnomaly,
    HierarchyNode,
)

logger = logging.getLogger(__name__)

PATH_SEPARATOR = " > "


def _by_name(record: CategoryRecord) -> str:
    return record.name


class CategoryIndex:
    """カテゴリの ID 索引と親子関係.

    構築時に以下の方針で全レコードをちょうど1回ずつ木に配置する。

    - parent_id が存在しないIDを指す → ルート扱い（dangling_parent を記録）
    - parent_id が自分自身 → ルート扱い（self_parent を記録）
    - どのルートからも到達できない（循環の一部） → 循環ごとに名前順で
      最初のレコードをルートに昇格（cycle を記録）

    ルートと各子リストは名前の辞書順（安定ソート）。
    """

    def __init__(self, records: Iterable[CategoryRecord]) -> None:
        self._records: dict[CanonicalId, CategoryRecord] = {}
        for record in records:
            if record.id in self._records:
                logger.warning("Duplicate category id %s ignored", record.id)
                continue
            self._records[record.id] = record

        self._children: dict[CanonicalId, list[CategoryRecord]] = {}
        self._parent: dict[CanonicalId, CanonicalId | None] = {}
        self.anomalies: list[HierarchyAnomaly] = []

        roots: list[CategoryRecord] = []
        for record in self._records.values():
            parent_id = record.parent_id
            if parent_id is None:
                roots.append(record)
            elif parent_id == record.id:
                self._record_anomaly("self_parent", record)
                roots.append(record)
            elif parent_id not in self._records:
                self._record_anomaly("dangling_parent", record)
                roots.append(record)
            else:
                self._children.setdefault(parent_id, []).append(record)

        for children in self._children.values():
            children.sort(key=_by_name)
        roots.sort(key=_by_name)

        reached = self._mark_reachable(roots)
        orphans = sorted(
            (r for r in self._records.values() if r.id not in reached),
            key=_by_name,
        )
        for record in orphans:
            if record.id in reached:
                continue
            self._record_anomaly("cycle", record)
            roots.append(record)
            reached |= self._mark_reachable([record], reached)

        roots.sort(key=_by_name)
        self._roots = roots
        for record in roots:
            self._parent[record.id] = None

    def _record_anomaly(self, kind: str, record: CategoryRecord) -> None:
        anomaly = HierarchyAnomaly(
            kind=kind, category_id=record.id, parent_id=record.parent_id
        )
        self.anomalies.append(anomaly)
        logger.warning(
            "Category hierarchy anomaly: %s (id=%s, parent_id=%s); treated as root",
            kind,
            record.id,
            record.parent_id,
        )

    def _mark_reachable(
        self,
        starts: list[CategoryRecord],
        visited: set[CanonicalId] | None = None,
    ) -> set[CanonicalId]:
        """starts から子方向に到達できるIDを集め、実効的な親を確定する."""
        visited = set(visited or ())
        reached: set[CanonicalId] = set()
        stack = [r.id for r in starts if r.id not in visited]
        visited.update(stack)
        reached.update(stack)
        while stack:
            current = stack.pop()
            for child in self._children.get(current, []):
                if child.id in visited:
                    continue
                visited.add(child.id)
                reached.add(child.id)
                self._parent[child.id] = current
                stack.append(child.id)
        return reached

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, category_id: object) -> bool:
        return normalize(category_id) in self._records

    @property
    def roots(self) -> list[CategoryRecord]:
        return list(self._roots)

    def get(self, category_id: object) -> CategoryRecord | None:
        """任意のエンコーディングのIDでレコードを引く."""
        canonical = normalize(category_id)
        if canonical is None:
            return None
        return self._records.get(canonical)

    def children_of(self, category_id: object) -> list[CategoryRecord]:
        """木として採用された直下の子（名前順）."""
        canonical = normalize(category_id)
        if canonical is None:
            return []
        return [
            child
            for child in self._children.get(canonical, [])
            if self._parent.get(child.id) == canonical
        ]

    def has_children(self, category_id: object) -> bool:
        return bool(self.children_of(category_id))

    def descendant_ids(self, category_id: object) -> list[CanonicalId]:
        """指定カテゴリより下の全IDを深さ優先の前順で返す（自分自身は含まない）."""
        canonical = normalize(category_id)
        if canonical is None or canonical not in self._records:
            return []
        result: list[CanonicalId] = []
        visited = {canonical}
        stack = list(reversed(self.children_of(canonical)))
        while stack:
            record = stack.pop()
            if record.id in visited:
                continue
            visited.add(record.id)
            result.append(record.id)
            stack.extend(reversed(self.children_of(record.id)))
        return result

    def walk(self) -> list[tuple[CategoryRecord, int, str]]:
        """全レコードを (record, level, path) として前順で列挙する."""
        result: list[tuple[CategoryRecord, int, str]] = []
        visited: set[CanonicalId] = set()
        stack: list[tuple[CategoryRecord, int, str]] = [
            (r, 0, r.name) for r in reversed(self._roots)
        ]
        while stack:
            record, level, path = stack.pop()
            if record.id in visited:
                continue
            visited.add(record.id)
            result.append((record, level, path))
            for child in reversed(self.children_of(record.id)):
                stack.append(
                    (child, level + 1, f"{path}{PATH_SEPARATOR}{child.name}")
                )
        return result


def build_hierarchy(
    records: Iterable[CategoryRecord] | CategoryIndex,
) -> list[HierarchyNode]:
    """ルートノードのリストを返す. 各ノードは子孫まで構築済み.

    不正な親参照や循環は例外にせずルート扱いに縮退する。
    """
    index = records if isinstance(records, CategoryIndex) else CategoryIndex(records)
    roots = [HierarchyNode(record=r) for r in index.roots]
    stack = list(roots)
    visited = {node.id for node in roots}
    while stack:
        node = stack.pop()
        for child in index.children_of(node.id):
            if child.id in visited:
                continue
            visited.add(child.id)
            child_node = HierarchyNode(record=child)
            node.children.append(child_node)
            stack.append(child_node)
    return roots


def flatten_hierarchy(
    records: Iterable[CategoryRecord] | CategoryIndex,
) -> list[FlatCategoryEntry]:
    """プルダウン等の一覧表示用に、階層順のフラットなエントリを返す."""
    index = records if isinstance(records, CategoryIndex) else CategoryIndex(records)
    return [
        FlatCategoryEntry(record=record, level=level, path=path)
        for record, level, path in index.walk()
    ]
