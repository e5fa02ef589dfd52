"""ユニットテスト共通のフィクスチャ。"""

import asyncio
import json
from collections import deque
from dataclasses import dataclass, field
from typing import Any

import pytest

from storefront.interfaces.transport import TransportInterface, TransportResponse


@dataclass
class SentRequest:
    method: str
    path: str
    params: dict[str, str] | None
    json: Any
    sent_at: float


@dataclass
class ScriptedTransport(TransportInterface):
    """あらかじめ積んだ応答を順に返すテスト用トランスポート。

    積める要素:
      - TransportResponse: そのまま返す
      - 例外インスタンス: 送出する
      - 引数なしの async 関数: await した結果を返す（待ち合わせ用）
    応答が尽きたら default を返す。
    """

    default: Any = None
    calls: list[SentRequest] = field(default_factory=list)
    _script: deque = field(default_factory=deque)

    @staticmethod
    def json(payload: Any, status: int = 200) -> TransportResponse:
        return TransportResponse(status=status, text=json.dumps(payload))

    def queue(self, *items: Any) -> "ScriptedTransport":
        self._script.extend(items)
        return self

    async def send(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> TransportResponse:
        self.calls.append(
            SentRequest(
                method=method,
                path=path,
                params=params,
                json=json,
                sent_at=asyncio.get_running_loop().time(),
            )
        )
        item = self._script.popleft() if self._script else self.default
        if item is None:
            raise AssertionError(f"unexpected request {method} {path} {params}")
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return await item()
        return item


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def no_sleep():
    """待ち時間を記録するだけで実際には待たない sleep。"""
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays
    return _sleep
