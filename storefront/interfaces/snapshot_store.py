"""オフラインフォールバック用スナップショットストアの抽象インターフェース。

バックエンドが唯一の正本であり、ここに保存されたデータは
ネットワーク経路が尽きた後にだけ参照される。正本として書き戻してはならない。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Snapshot:
    """最後に成功した一覧取得の結果。saved_at は UNIX 時刻（秒）。"""

    resource: str
    payload: Any
    saved_at: float


class SnapshotStoreInterface(ABC):
    """スナップショットの保存と読み出し。

    実装は I/O エラーを送出せず、ログに記録して None / 何もしない で済ませること。
    """

    @abstractmethod
    def save(self, resource: str, payload: Any, saved_at: float) -> None:
        """リソースのスナップショットを上書き保存する。"""
        ...

    @abstractmethod
    def load(self, resource: str) -> Snapshot | None:
        """スナップショットを取得する。存在しない・読めない場合は None。"""
        ...

    @abstractmethod
    def clear(self) -> None:
        """全スナップショットを削除する。"""
        ...
