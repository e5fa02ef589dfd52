"""カテゴリ階層のドメインモデル。

バックエンドから取得したフラットな親ポインタ形式のレコードと、
そこから導出する木構造・一覧表示用エントリを定義する。
"""

from dataclasses import dataclass, field
from typing import Any, Literal

CanonicalId = str
"""正規化済みカテゴリID。"cat3" と 3 はどちらも "3" になる。"""


@dataclass(frozen=True)
class CategoryRecord:
    """カテゴリ1件（フラットな親ポインタ形式）。

    id / parent_id は正規化済み。source_id はバックエンドが保持している
    元のエンコーディングで、更新・削除リクエストの送信時に使う。
    """

    id: CanonicalId
    name: str
    parent_id: CanonicalId | None = None
    source_id: Any = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass(frozen=True)
class HierarchyNode:
    """カテゴリ木のノード。要求した利用者が専有する（共有しない）。"""

    record: CategoryRecord
    children: list["HierarchyNode"] = field(default_factory=list)

    @property
    def id(self) -> CanonicalId:
        return self.record.id

    @property
    def name(self) -> str:
        return self.record.name


@dataclass(frozen=True)
class FlatCategoryEntry:
    """インデント表示用の一覧エントリ。

    level はルートからの深さ、path は祖先名を " > " で連結したもの。
    """

    record: CategoryRecord
    level: int
    path: str

    @property
    def indent(self) -> str:
        return "—" * self.level


AnomalyKind = Literal["dangling_parent", "self_parent", "cycle"]


@dataclass(frozen=True)
class HierarchyAnomaly:
    """階層構築時に検出した不整合。例外にはせず記録のみ行う。"""

    kind: AnomalyKind
    category_id: CanonicalId
    parent_id: CanonicalId | None


MutationAction = Literal["add", "update", "delete"]


@dataclass(frozen=True)
class CategoryChangeEvent:
    """カテゴリ変更後に購読者へ配信するペイロード。"""

    action: MutationAction
    resource_id: CanonicalId | None
