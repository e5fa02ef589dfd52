"""ネットワーク境界の抽象インターフェース。

ResilientClient はこのインターフェースだけを介してバックエンドと通信する。
実装は通信レベルの失敗を client.errors の例外に変換して送出すること。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TransportResponse:
    """1回の HTTP 応答。ボディは未解釈のテキストのまま保持する。"""

    status: int
    text: str


class TransportInterface(ABC):
    """バックエンドへのリクエスト送信を担う抽象クラス。"""

    @abstractmethod
    async def send(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> TransportResponse:
        """リクエストを1回だけ送信する（リトライはしない）。

        Raises:
            NetworkError: 接続できなかった場合
            RequestTimeoutError: 通信がタイムアウトした場合
        """
        ...

    async def aclose(self) -> None:
        """保持している接続を解放する。"""
        return None
