"""祖先を辿ってパンくず（"A > B > C"）を組み立てる."""

import logging
from collections.abc import Iterable

from storefront.catalog.hierarchy import PATH_SEPARATOR
from storefront.catalog.normalizer import normalize
from storefront.interfaces.category import CanonicalId, CategoryRecord

logger = logging.getLogger(__name__)


class PathResolver:
    """parent_id を上方向に辿るパス解決.

    訪問済み集合で循環を検出したら、その時点までのパスを返して打ち切る。
    走査回数はレコード数で上限が決まる。
    """

    def __init__(self, records: Iterable[CategoryRecord]) -> None:
        self._records: dict[CanonicalId, CategoryRecord] = {}
        for record in records:
            self._records.setdefault(record.id, record)

    def ancestors(self, category_id: object) -> list[CategoryRecord]:
        """ルート側から順に、自分自身を含む祖先レコードを返す. 未知のIDなら空."""
        canonical = normalize(category_id)
        record = self._records.get(canonical) if canonical is not None else None
        if record is None:
            return []

        chain = [record]
        visited = {record.id}
        parent_id = record.parent_id
        while parent_id is not None:
            if parent_id in visited:
                logger.warning(
                    "Cycle detected while resolving path of %s at %s",
                    record.id,
                    parent_id,
                )
                break
            parent = self._records.get(parent_id)
            if parent is None:
                break
            visited.add(parent_id)
            chain.append(parent)
            parent_id = parent.parent_id
        chain.reverse()
        return chain

    def path_of(self, category_id: object) -> str:
        """"A > B > C" 形式のパス. 未知のIDなら空文字列."""
        return PATH_SEPARATOR.join(r.name for r in self.ancestors(category_id))
