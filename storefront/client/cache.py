"""読み取り結果のインメモリキャッシュ."""

import copy
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    stored_at: float


class ReadCache:
    """(リソース, 正規URL) をキーとする読み取りキャッシュ.

    ttl が None の場合は時間では失効せず、invalidate でのみ破棄される。
    呼び出し側が結果を変更してもキャッシュが汚れないよう、値はコピーして返す。
    """

    def __init__(
        self,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[tuple[str, str], CacheEntry] = {}

    def get(self, resource: str, url: str) -> tuple[bool, Any]:
        """(ヒットしたか, 値) を返す."""
        entry = self._entries.get((resource, url))
        if entry is None:
            return False, None
        if self._ttl is not None and self._clock() - entry.stored_at > self._ttl:
            del self._entries[(resource, url)]
            return False, None
        return True, copy.deepcopy(entry.payload)

    def put(self, resource: str, url: str, payload: Any) -> None:
        self._entries[(resource, url)] = CacheEntry(
            payload=copy.deepcopy(payload), stored_at=self._clock()
        )

    def invalidate(self, resource: str) -> int:
        """リソースに属する全エントリを破棄し、破棄した件数を返す."""
        keys = [key for key in self._entries if key[0] == resource]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.debug("Invalidated %d cached read(s) for %s", len(keys), resource)
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
