"""DI用ファクトリ関数。

storefront/ 直下に配置することで、catalog/ や client/ や sync/ から
store/ や snapshot_store/ への直接依存を避けつつ具象クラスを組み立てる。
サーバ側は FastAPI の Depends() で注入し、クライアント側は
create_services() が生成したサービス一式をコンストラクタ経由で受け渡す。
"""

from dataclasses import dataclass

from storefront.client.cache import ReadCache
from storefront.client.resilient import ResilientClient
from storefront.client.resources import CategoryApi, ResourceApi
from storefront.client.retry import RetryPolicy
from storefront.config import Settings, get_settings
from storefront.interfaces.resource_store import ResourceStoreInterface
from storefront.interfaces.snapshot_store import SnapshotStoreInterface
from storefront.interfaces.transport import TransportInterface
from storefront.sync.category_store import CategoryStore
from storefront.sync.coordinator import SyncCoordinator
from storefront.sync.event_bus import EventBus

_resource_store: ResourceStoreInterface | None = None


def get_resource_store() -> ResourceStoreInterface:
    """ResourceStoreのシングルトンインスタンスを返す。"""
    global _resource_store
    if _resource_store is None:
        from storefront.store.json_file import JsonFileResourceStore

        _resource_store = JsonFileResourceStore(get_settings().data_dir)
    return _resource_store


def _reset_all() -> None:
    """全シングルトンをリセットする（テスト用）。"""
    global _resource_store
    _resource_store = None


@dataclass
class StorefrontServices:
    """クライアント側のサービス一式。"""

    client: ResilientClient
    bus: EventBus
    categories: CategoryApi
    products: ResourceApi
    cart: ResourceApi
    carousel: ResourceApi
    category_store: CategoryStore
    coordinator: SyncCoordinator

    async def aclose(self) -> None:
        await self.client.aclose()


def create_services(
    settings: Settings | None = None,
    transport: TransportInterface | None = None,
    snapshot_store: SnapshotStoreInterface | None = None,
) -> StorefrontServices:
    """設定からクライアント側のサービスを組み立てる。

    transport / snapshot_store を省略すると httpx と JSON ファイルの実装を使う。
    """
    settings = settings or get_settings()
    if transport is None:
        from storefront.client.http import HttpxTransport

        transport = HttpxTransport(settings.api_base_url)
    if snapshot_store is None:
        from storefront.snapshot_store.json_file import JsonFileSnapshotStore

        snapshot_store = JsonFileSnapshotStore(settings.snapshot_dir)

    client = ResilientClient(
        transport,
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            multiplier=settings.retry_multiplier,
        ),
        timeout=settings.request_timeout,
        cache=ReadCache(ttl=settings.cache_ttl or None),
        snapshot_store=snapshot_store,
        snapshot_max_age=settings.snapshot_max_age,
    )
    bus = EventBus()
    categories = CategoryApi(client)
    category_store = CategoryStore(categories, bus)
    return StorefrontServices(
        client=client,
        bus=bus,
        categories=categories,
        products=ResourceApi(client, "products"),
        cart=ResourceApi(client, "cart"),
        carousel=ResourceApi(client, "carousel"),
        category_store=category_store,
        coordinator=SyncCoordinator(categories, category_store, bus),
    )
