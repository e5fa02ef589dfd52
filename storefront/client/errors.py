"""クライアント側の失敗分類.

呼び出し側はこの分類で表示内容を決める。リトライ対象は
RequestTimeoutError / NetworkError / 5xx の HttpError のみ。
"""


class ClientError(Exception):
    """クライアント側で発生する失敗の基底クラス。"""

    retryable: bool = False


class ValidationError(ClientError):
    """送信前のローカル検証で拒否された。ネットワークには到達しない。"""


class RequestTimeoutError(ClientError):
    """1回の試行が制限時間を超えた。"""

    retryable = True


class NetworkError(ClientError):
    """接続失敗など、応答を受け取れなかった。"""

    retryable = True


class HttpError(ClientError):
    """バックエンドが 4xx / 5xx を返した。"""

    def __init__(self, status: int, message: str = "") -> None:
        super().__init__(f"HTTP {status}: {message}" if message else f"HTTP {status}")
        self.status = status
        self.message = message

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status >= 500

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class MalformedResponseError(ClientError):
    """応答ボディを解釈できなかった。リトライしても直らないため再送しない。"""


class RequestSupersededError(ClientError):
    """同じ (method, URL) の新しいリクエストに置き換えられた。

    後勝ちの重複排除により、置き換えられた呼び出しは成功結果を受け取らない。
    汎用的な失敗と区別できるよう専用の型にしている。
    """

    def __init__(self, method: str, url: str) -> None:
        super().__init__(f"{method} {url} superseded by a newer request")
        self.method = method
        self.url = url


def is_retryable(error: BaseException) -> bool:
    """リトライ対象の失敗か判定する。"""
    return isinstance(error, ClientError) and bool(error.retryable)
