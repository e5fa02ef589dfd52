"""SnapshotStoreInterface の JSON ファイル実装.

リソースごとに <dir>/<resource>.json を1ファイル持つ。
"""

import json
import logging
from pathlib import Path
from typing import Any

from storefront.interfaces.snapshot_store import Snapshot, SnapshotStoreInterface

logger = logging.getLogger(__name__)


class JsonFileSnapshotStore(SnapshotStoreInterface):
    """ディレクトリ配下の JSON ファイルにスナップショットを保存する."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    def _path(self, resource: str) -> Path:
        return self._directory / f"{resource}.json"

    def save(self, resource: str, payload: Any, saved_at: float) -> None:
        path = self._path(resource)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(
                    {"resource": resource, "saved_at": saved_at, "payload": payload},
                    ensure_ascii=False,
                ),
                encoding="utf-8",
            )
            tmp_path.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Could not save %s snapshot: %s", resource, exc)

    def load(self, resource: str) -> Snapshot | None:
        path = self._path(resource)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return Snapshot(
                resource=resource,
                payload=data["payload"],
                saved_at=float(data["saved_at"]),
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable %s snapshot: %s", resource, exc)
            return None

    def clear(self) -> None:
        if not self._directory.exists():
            return
        for path in self._directory.glob("*.json"):
            try:
                path.unlink()
            except OSError as exc:
                logger.warning("Could not remove snapshot %s: %s", path, exc)
