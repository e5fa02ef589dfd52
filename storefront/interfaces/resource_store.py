"""リファレンスバックエンドの永続化インターフェース（境界）。

サーバ層はこのインターフェースを介してリソースを読み書きする。
保存形式は実装依存でありクライアントからは不透明。
カテゴリ階層の削除（カスケード／付け替え）もこの層の責務。
"""

from abc import ABC, abstractmethod
from typing import Any

RESOURCES: tuple[str, ...] = ("categories", "products", "cart", "carousel")
"""バックエンドが公開するリソース名。"""


class ResourceStoreInterface(ABC):
    """リソースストアの抽象インターフェース。

    record_id は任意のエンコーディングを受け付け、正規化した上で比較する。
    """

    @abstractmethod
    def list_records(self, resource: str) -> list[dict[str, Any]]:
        """リソースの全レコードを保存順で返す。"""
        ...

    @abstractmethod
    def get_record(self, resource: str, record_id: Any) -> dict[str, Any] | None:
        """レコードを1件取得する。存在しなければ None。"""
        ...

    @abstractmethod
    def create_record(self, resource: str, data: dict[str, Any]) -> dict[str, Any]:
        """IDと作成日時を採番してレコードを追加し、追加後のレコードを返す。"""
        ...

    @abstractmethod
    def update_record(
        self, resource: str, record_id: Any, changes: dict[str, Any]
    ) -> dict[str, Any] | None:
        """レコードを更新して返す。存在しなければ None。"""
        ...

    @abstractmethod
    def delete_record(self, resource: str, record_id: Any) -> bool:
        """レコードを削除する。削除できたら True。"""
        ...

    @abstractmethod
    def delete_category(
        self,
        category_id: Any,
        reparent: bool = False,
        new_parent_id: Any = None,
    ) -> list[Any] | None:
        """カテゴリを削除する。

        reparent=True なら直下の子の parentId を new_parent_id に付け替え、
        False なら子孫をすべて削除する。

        Returns:
            削除したレコードのIDリスト。対象が存在しなければ None。
        """
        ...

    @abstractmethod
    def save_image(self, file_name: str, content: bytes) -> str:
        """商品画像を保存し、レコードから参照する相対パス（"img/<名前>"）を返す。"""
        ...

    @abstractmethod
    def delete_all_data(self) -> None:
        """全データを削除する（デバッグ用）。"""
        ...
