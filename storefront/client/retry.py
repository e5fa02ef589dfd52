"""指数バックオフ付きリトライ.

RetryPolicy は宣言的な値で、retry_async が任意の非同期処理に適用する。
結果は例外ではなく Success / Failure で返す。
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from storefront.client.errors import ClientError, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """リトライ方針.

    試行間の待ち時間は base_delay から始まり、失敗ごとに multiplier 倍になる。
    max_attempts は初回を含む総試行回数。
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 1.5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    def delay_before(self, attempt: int) -> float:
        """attempt 回目（2回目以降）の試行前に待つ秒数."""
        if attempt <= 1:
            return 0.0
        return self.base_delay * self.multiplier ** (attempt - 2)


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    attempts: int


@dataclass(frozen=True)
class Failure:
    error: ClientError
    attempts: int


Result = Success[T] | Failure


def unwrap(result: "Success[T] | Failure") -> T:
    """成功なら値を返し、失敗なら最後のエラーを送出する."""
    if isinstance(result, Failure):
        raise result.error
    return result.value


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    description: str = "operation",
) -> "Success[T] | Failure":
    """operation を policy に従って再試行する.

    ClientError 以外の例外とキャンセルはそのまま伝播する。
    リトライ不可の失敗は即座に Failure になる。
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            value = await operation()
        except ClientError as exc:
            if not should_retry(exc) or attempt >= policy.max_attempts:
                if attempt > 1:
                    logger.warning(
                        "%s failed after %d attempt(s): %s", description, attempt, exc
                    )
                return Failure(error=exc, attempts=attempt)
            delay = policy.delay_before(attempt + 1)
            logger.info(
                "%s attempt %d/%d failed (%s); retrying in %.2fs",
                description,
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            await sleep(delay)
            continue
        return Success(value=value, attempts=attempt)
