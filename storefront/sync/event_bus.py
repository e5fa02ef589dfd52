"""インメモリ EventBus。

単一イベントループ前提の軽量 pub/sub。
カテゴリの再読込・変更時に publish し、一覧やパンくずなどの利用者が
subscribe して自分のビューを再計算する。
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

CATEGORIES_LOADED = "categories-loaded"
CATEGORIES_REFRESHED = "categories-refreshed"


@dataclass(frozen=True)
class BusMessage:
    """バス上を流れる1件のメッセージ。"""

    event: str
    data: Any = None


class EventBus:
    """asyncio.Queue ベースのインメモリ pub/sub バス。"""

    def __init__(self) -> None:
        self._subscribers: list[asyncio.Queue[BusMessage]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: str, data: Any = None) -> None:
        """全 subscriber にイベントを配信する。"""
        message = BusMessage(event=event, data=data)
        for queue in self._subscribers:
            queue.put_nowait(message)

    @asynccontextmanager
    async def subscribe(self):
        """コンテキスト内で Queue を受け取り、イベントを待ち受ける。"""
        queue: asyncio.Queue[BusMessage] = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            yield queue
        finally:
            self._subscribers.remove(queue)
