"""カテゴリIDの正規化とデータ取り込み境界.

初期データは数値ID（3）、後期データは接頭辞付き文字列（"cat3"）を使っていた。
ID形式の差異はこのモジュールの中だけで吸収し、他の層は CanonicalId のみを扱う。
"""

import logging
import re
from typing import Any

from storefront.interfaces.category import CanonicalId, CategoryRecord

logger = logging.getLogger(__name__)

ID_PREFIX = "cat"

_PREFIXED_ID = re.compile(rf"^{ID_PREFIX}(\d+)$")
_DIGITS = re.compile(r"^\d+$")

_ROOT_REFERENCES = {"", "null", "0"}


def normalize(value: Any) -> CanonicalId | None:
    """IDを比較可能な正規形に変換する.

    数値・数字列・"cat<数字>" はいずれも10進数字列になる。
    それ以外は文字列比較にフォールバックする。例外は送出しない。
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        match = _PREFIXED_ID.match(text)
        if match:
            return str(int(match.group(1)))
        if _DIGITS.match(text):
            return str(int(text))
        return text
    try:
        return str(value)
    except Exception:
        return repr(value)


def ids_equal(a: Any, b: Any) -> bool:
    """2つのIDが同じカテゴリを指すか判定する. None はどのIDとも一致しない."""
    left = normalize(a)
    right = normalize(b)
    if left is None or right is None:
        return False
    return left == right


def normalize_parent(value: Any) -> CanonicalId | None:
    """親参照を正規化する. "", "null", 0, "0" はルート（None）として扱う.

    判定は正規化前の値で行う。"cat0" は ID 0 のカテゴリへの参照でありルートではない。
    """
    if value is None or _is_root_reference(value):
        return None
    return normalize(value)


def _is_root_reference(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, str):
        return value.strip() in _ROOT_REFERENCES
    return False


def to_prefixed(value: Any) -> str | None:
    """数値系のIDを "cat<N>" 形式に変換する（新規採番用）."""
    canonical = normalize(value)
    if canonical is None:
        return None
    if _DIGITS.match(canonical):
        return f"{ID_PREFIX}{canonical}"
    return canonical


def parse_category_record(payload: Any) -> CategoryRecord | None:
    """JSON オブジェクト1件を CategoryRecord に変換する. 不正なら None."""
    if not isinstance(payload, dict):
        return None
    canonical = normalize(payload.get("id"))
    name = payload.get("name")
    if canonical is None or canonical == "":
        return None
    if not isinstance(name, str) or not name.strip():
        return None
    return CategoryRecord(
        id=canonical,
        name=name.strip(),
        parent_id=normalize_parent(payload.get("parentId")),
        source_id=payload.get("id"),
        created_at=payload.get("createdAt"),
        updated_at=payload.get("updatedAt"),
    )


def parse_category_records(payload: Any) -> list[CategoryRecord]:
    """バックエンドの一覧レスポンスを CategoryRecord のリストに変換する.

    不正なエントリはスキップし、ID重複は先勝ちとする。
    """
    if not isinstance(payload, list):
        logger.warning("Category payload is not a list: %s", type(payload).__name__)
        return []

    records: list[CategoryRecord] = []
    seen: set[CanonicalId] = set()
    for item in payload:
        record = parse_category_record(item)
        if record is None:
            logger.warning("Skipping invalid category entry: %r", item)
            continue
        if record.id in seen:
            logger.warning("Duplicate category id %s ignored", record.id)
            continue
        seen.add(record.id)
        records.append(record)
    return records

