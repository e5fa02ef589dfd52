"""ネットワーク境界を越えるための耐障害クライアント.

1回の呼び出しに対して以下を順に適用する。

1. ローカル検証（失敗したら送信もリトライもしない）
2. 読み取りキャッシュ（一覧・単体取得のみ。bypass_cache で無視できる）
3. 重複排除: 同じ (method, 正規URL) の処理中リクエストがあればキャンセルし、
   新しいリクエストを進める（後勝ち）。置き換えられた呼び出し側には
   RequestSupersededError が返る
4. 試行ごとのタイムアウト
5. 指数バックオフ付きリトライ（タイムアウト・接続失敗・5xx のみ）
6. 更新系が成功したらそのリソースのキャッシュを破棄
7. 一覧取得が最終的に失敗したら、鮮度内のスナップショット、
   それもなければデフォルトデータを返す
"""

import asyncio
import copy
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from storefront.client.cache import ReadCache
from storefront.client.defaults import default_data_for
from storefront.client.errors import (
    ClientError,
    HttpError,
    MalformedResponseError,
    RequestSupersededError,
    RequestTimeoutError,
)
from storefront.client.retry import Result, RetryPolicy, retry_async, unwrap
from storefront.interfaces.snapshot_store import SnapshotStoreInterface
from storefront.interfaces.transport import TransportInterface, TransportResponse

logger = logging.getLogger(__name__)

Validator = Callable[[Any], None]


@dataclass
class _PendingRequest:
    task: "asyncio.Task[Result[Any]]"
    superseded: bool = False


def canonical_url(resource: str, params: dict[str, Any] | None = None) -> str:
    """重複排除とキャッシュのキーに使う正規URL. クエリはキー順に並べる."""
    path = f"/{resource.strip('/')}"
    if not params:
        return path
    query = {k: _param_value(v) for k, v in sorted(params.items()) if v is not None}
    if not query:
        return path
    return f"{path}?{urlencode(query)}"


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _error_message(text: str) -> str:
    try:
        body = json.loads(text)
    except ValueError:
        return text.strip()[:200]
    if isinstance(body, dict):
        for key in ("error", "detail", "message"):
            if key in body:
                return str(body[key])
    return text.strip()[:200]


class ResilientClient:
    """TransportInterface を包み、重複排除・タイムアウト・リトライ・キャッシュを提供する."""

    def __init__(
        self,
        transport: TransportInterface,
        retry_policy: RetryPolicy | None = None,
        timeout: float | None = 10.0,
        cache: ReadCache | None = None,
        snapshot_store: SnapshotStoreInterface | None = None,
        snapshot_max_age: float = 300.0,
        wall_clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._policy = retry_policy or RetryPolicy()
        self._timeout = timeout
        self._cache = cache if cache is not None else ReadCache()
        self._snapshots = snapshot_store
        self._snapshot_max_age = snapshot_max_age
        self._wall_clock = wall_clock
        self._sleep = sleep
        self._pending: dict[tuple[str, str], _PendingRequest] = {}
        self._generations: dict[str, int] = {}

    @property
    def pending_count(self) -> int:
        """処理中リクエスト数（テスト・診断用）."""
        return len(self._pending)

    # ---------- 読み取り ----------

    async def read(
        self,
        resource: str,
        params: dict[str, Any] | None = None,
        bypass_cache: bool = False,
    ) -> Any:
        """単体・条件付き取得. 失敗は分類済みの ClientError として送出する."""
        payload, _ = await self._cached_get(
            resource, params, bypass_cache, expect_list=False
        )
        return payload

    async def read_list(
        self,
        resource: str,
        params: dict[str, Any] | None = None,
        bypass_cache: bool = False,
    ) -> list[Any]:
        """一覧取得. 置き換え以外の失敗ではフォールバックデータを返し、例外にしない."""
        try:
            payload, from_network = await self._cached_get(
                resource, params, bypass_cache, expect_list=True
            )
        except RequestSupersededError:
            raise
        except ClientError as exc:
            if params:
                # 絞り込み結果にはスナップショットもデフォルトも当てはまらない
                logger.warning(
                    "Reading %s failed (%s); returning empty list",
                    canonical_url(resource, params),
                    exc,
                )
                return []
            return self._fallback(resource, exc)

        # 鮮度はネットワークから取得した時刻で測る。キャッシュヒットでは保存しない
        if from_network and not params and self._snapshots is not None:
            self._snapshots.save(resource, payload, self._wall_clock())
        return payload

    async def _cached_get(
        self,
        resource: str,
        params: dict[str, Any] | None,
        bypass_cache: bool,
        expect_list: bool,
    ) -> tuple[Any, bool]:
        """(payload, ネットワークから取得したか) を返す."""
        url = canonical_url(resource, params)
        if not bypass_cache:
            hit, payload = self._cache.get(resource, url)
            if hit:
                logger.debug("Cache hit for %s", url)
                return payload, False
        generation = self._generations.get(resource, 0)
        payload = await self._execute("GET", resource, params, None, expect_list)
        # 取得中に更新が入った場合は古い結果をキャッシュしない
        if self._generations.get(resource, 0) == generation:
            self._cache.put(resource, url, payload)
        return payload, True

    def _fallback(self, resource: str, error: ClientError) -> list[Any]:
        if self._snapshots is not None:
            snapshot = self._snapshots.load(resource)
            if snapshot is not None and isinstance(snapshot.payload, list):
                age = self._wall_clock() - snapshot.saved_at
                if 0 <= age <= self._snapshot_max_age:
                    logger.warning(
                        "Reading %s failed (%s); using snapshot from %.0fs ago",
                        resource,
                        error,
                        age,
                    )
                    return copy.deepcopy(snapshot.payload)
        logger.warning("Reading %s failed (%s); using default data", resource, error)
        return default_data_for(resource)

    # ---------- 更新 ----------

    async def mutate(
        self,
        method: str,
        resource: str,
        params: dict[str, Any] | None = None,
        body: Any = None,
        validate: Validator | None = None,
    ) -> Any:
        """作成・更新・削除. 成功したらリソースのキャッシュを破棄する.

        Raises:
            ValidationError: validate が拒否した場合（送信しない）
            ClientError: その他の分類済みの失敗
        """
        if validate is not None:
            validate(body if body is not None else params)
        payload = await self._execute(method.upper(), resource, params, body, False)
        self.invalidate(resource)
        return payload

    def invalidate(self, resource: str) -> None:
        """リソースの読み取りキャッシュを破棄する."""
        self._generations[resource] = self._generations.get(resource, 0) + 1
        self._cache.invalidate(resource)

    # ---------- 送信 ----------

    async def _execute(
        self,
        method: str,
        resource: str,
        params: dict[str, Any] | None,
        body: Any,
        expect_list: bool,
    ) -> Any:
        url = canonical_url(resource, params)
        key = (method, url)

        previous = self._pending.get(key)
        if previous is not None:
            logger.info("Superseding in-flight request %s %s", method, url)
            previous.superseded = True
            previous.task.cancel()

        pending = _PendingRequest(
            task=asyncio.ensure_future(
                self._send_with_retry(method, resource, params, body, expect_list)
            )
        )
        self._pending[key] = pending
        try:
            result = await pending.task
        except asyncio.CancelledError:
            if pending.superseded:
                raise RequestSupersededError(method, url) from None
            raise
        finally:
            if self._pending.get(key) is pending:
                del self._pending[key]

        if pending.superseded:
            raise RequestSupersededError(method, url)
        return unwrap(result)

    async def _send_with_retry(
        self,
        method: str,
        resource: str,
        params: dict[str, Any] | None,
        body: Any,
        expect_list: bool,
    ) -> Result[Any]:
        path = f"/{resource.strip('/')}"
        wire_params = (
            {k: _param_value(v) for k, v in params.items() if v is not None}
            if params
            else None
        )

        async def attempt() -> Any:
            try:
                response = await asyncio.wait_for(
                    self._transport.send(method, path, wire_params, body),
                    self._timeout,
                )
            except TimeoutError:
                raise RequestTimeoutError(
                    f"{method} {path} exceeded {self._timeout}s"
                ) from None
            return self._parse(response, expect_list)

        return await retry_async(
            attempt,
            self._policy,
            sleep=self._sleep,
            description=f"{method} {canonical_url(resource, params)}",
        )

    @staticmethod
    def _parse(response: TransportResponse, expect_list: bool) -> Any:
        if not 200 <= response.status < 300:
            raise HttpError(response.status, _error_message(response.text))
        try:
            payload = json.loads(response.text)
        except ValueError as exc:
            raise MalformedResponseError(
                f"Response body is not valid JSON: {response.text[:80]!r}"
            ) from exc
        if expect_list and not isinstance(payload, list):
            raise MalformedResponseError(
                f"Expected a JSON array, got {type(payload).__name__}"
            )
        return payload

    async def aclose(self) -> None:
        tasks = [pending.task for pending in self._pending.values()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self._transport.aclose()
