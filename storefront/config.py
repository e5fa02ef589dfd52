"""環境変数から読み込む設定."""

import os
from dataclasses import dataclass, field


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass(frozen=True)
class Settings:
    """クライアントとリファレンスバックエンドの設定.

    値はインスタンス生成時の環境変数から決まる。
    """

    # -------- クライアント --------
    api_base_url: str = field(
        default_factory=lambda: os.getenv("STOREFRONT_API_BASE_URL", "http://localhost:8000")
    )
    request_timeout: float = field(
        default_factory=lambda: _env_float("STOREFRONT_REQUEST_TIMEOUT", 10.0)
    )
    retry_max_attempts: int = field(
        default_factory=lambda: _env_int("STOREFRONT_RETRY_MAX_ATTEMPTS", 3)
    )
    retry_base_delay: float = field(
        default_factory=lambda: _env_float("STOREFRONT_RETRY_BASE_DELAY", 0.5)
    )
    retry_multiplier: float = field(
        default_factory=lambda: _env_float("STOREFRONT_RETRY_MULTIPLIER", 1.5)
    )
    cache_ttl: float = field(
        default_factory=lambda: _env_float("STOREFRONT_CACHE_TTL", 0.0)
    )
    """読み取りキャッシュの有効期間（秒）. 0 なら時間では失効しない."""

    # -------- オフラインフォールバック --------
    snapshot_dir: str = field(
        default_factory=lambda: os.getenv("STOREFRONT_SNAPSHOT_DIR", "data/snapshots")
    )
    snapshot_max_age: float = field(
        default_factory=lambda: _env_float("STOREFRONT_SNAPSHOT_MAX_AGE", 300.0)
    )

    # -------- リファレンスバックエンド --------
    data_dir: str = field(
        default_factory=lambda: os.getenv("STOREFRONT_DATA_DIR", "data/store")
    )

    # -------- ログ --------
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "text"))


def get_settings() -> Settings:
    return Settings()
