"""ResourceStoreInterface の JSON フラットファイル実装。

リソースごとに <data_dir>/<resource>.json を1ファイル持ち、
読み書きのたびにファイル全体を読み込み・置き換える。
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from storefront.catalog.normalizer import (
    ids_equal,
    normalize,
    normalize_parent,
    to_prefixed,
)
from storefront.interfaces.resource_store import ResourceStoreInterface

logger = logging.getLogger(__name__)

CATEGORY_RESOURCE = "categories"
IMAGE_DIR = "img"


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class JsonFileResourceStore(ResourceStoreInterface):
    """JSON ファイルによるリソースストア。"""

    def __init__(self, data_dir: str | Path):
        """初期化。

        Args:
            data_dir: JSON ファイルを置くディレクトリ
        """
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, resource: str) -> Path:
        return self._data_dir / f"{resource}.json"

    def _read(self, resource: str) -> list[dict[str, Any]]:
        path = self._path(resource)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except ValueError:
            logger.warning("%s is not valid JSON; treating as empty", path)
            return []
        if not isinstance(data, list):
            logger.warning("%s does not hold a list; treating as empty", path)
            return []
        return [item for item in data if isinstance(item, dict)]

    def _write(self, resource: str, records: list[dict[str, Any]]) -> None:
        path = self._path(resource)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(
            json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8"
        )
        tmp_path.replace(path)

    def _next_id(self, resource: str, records: list[dict[str, Any]]) -> Any:
        """既存の数値IDの最大値 + 1. カテゴリは "cat<N>" 形式で採番する。"""
        numbers = [
            int(canonical)
            for canonical in (normalize(r.get("id")) for r in records)
            if canonical is not None and canonical.isdigit()
        ]
        next_number = max(numbers, default=0) + 1
        if resource == CATEGORY_RESOURCE:
            return to_prefixed(next_number)
        return next_number

    def list_records(self, resource: str) -> list[dict[str, Any]]:
        return self._read(resource)

    def get_record(self, resource: str, record_id: Any) -> dict[str, Any] | None:
        for record in self._read(resource):
            if ids_equal(record.get("id"), record_id):
                return record
        return None

    def create_record(self, resource: str, data: dict[str, Any]) -> dict[str, Any]:
        records = self._read(resource)
        fields = {k: v for k, v in data.items() if k != "id"}
        if resource == CATEGORY_RESOURCE:
            record = {
                "id": self._next_id(resource, records),
                "name": str(fields.get("name", "")).strip(),
                "parentId": fields.get("parentId"),
                "createdAt": _now(),
            }
        else:
            record = {"id": self._next_id(resource, records), **fields, "createdAt": _now()}
        records.append(record)
        self._write(resource, records)
        return record

    def update_record(
        self, resource: str, record_id: Any, changes: dict[str, Any]
    ) -> dict[str, Any] | None:
        records = self._read(resource)
        for position, record in enumerate(records):
            if not ids_equal(record.get("id"), record_id):
                continue
            if resource == CATEGORY_RESOURCE:
                updated = {
                    **record,
                    "name": str(changes.get("name", record.get("name", ""))).strip(),
                    "parentId": changes.get("parentId"),
                }
            else:
                updated = {
                    **record,
                    **{k: v for k, v in changes.items() if k != "id"},
                }
            updated["updatedAt"] = _now()
            records[position] = updated
            self._write(resource, records)
            return updated
        return None

    def delete_record(self, resource: str, record_id: Any) -> bool:
        records = self._read(resource)
        remaining = [r for r in records if not ids_equal(r.get("id"), record_id)]
        if len(remaining) == len(records):
            return False
        self._write(resource, remaining)
        return True

    def delete_category(
        self,
        category_id: Any,
        reparent: bool = False,
        new_parent_id: Any = None,
    ) -> list[Any] | None:
        records = self._read(CATEGORY_RESOURCE)
        target = next(
            (r for r in records if ids_equal(r.get("id"), category_id)), None
        )
        if target is None:
            return None
        target_id = normalize(target.get("id"))

        if reparent:
            doomed = {target_id}
            for record in records:
                if normalize_parent(record.get("parentId")) == target_id:
                    record["parentId"] = new_parent_id
                    record["updatedAt"] = _now()
        else:
            # 子孫をすべて集める（訪問済み集合で循環を打ち切る）
            doomed = {target_id}
            frontier = [target_id]
            while frontier:
                current = frontier.pop()
                for record in records:
                    record_id = normalize(record.get("id"))
                    if record_id in doomed:
                        continue
                    if normalize_parent(record.get("parentId")) == current:
                        doomed.add(record_id)
                        frontier.append(record_id)

        removed = [r.get("id") for r in records if normalize(r.get("id")) in doomed]
        remaining = [r for r in records if normalize(r.get("id")) not in doomed]
        self._write(CATEGORY_RESOURCE, remaining)
        return removed

    def save_image(self, file_name: str, content: bytes) -> str:
        image_dir = self._data_dir / IMAGE_DIR
        image_dir.mkdir(parents=True, exist_ok=True)
        (image_dir / file_name).write_bytes(content)
        return f"{IMAGE_DIR}/{file_name}"

    def delete_all_data(self) -> None:
        for path in self._data_dir.glob("*.json"):
            path.unlink()
