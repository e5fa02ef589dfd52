"""PathResolver のユニットテスト。"""

from storefront.catalog.paths import PathResolver
from storefront.interfaces.category import CategoryRecord


def _rec(id, name, parent=None):
    return CategoryRecord(id=id, name=name, parent_id=parent)


class TestPathResolver:
    """パンくずの組み立てを検証する。"""

    def test_three_levels(self):
        resolver = PathResolver(
            [_rec("1", "A"), _rec("2", "B", "1"), _rec("3", "C", "2")]
        )
        assert resolver.path_of("cat3") == "A > B > C"
        assert [r.name for r in resolver.ancestors(3)] == ["A", "B", "C"]

    def test_root_path_is_its_own_name(self):
        resolver = PathResolver([_rec("1", "A")])
        assert resolver.path_of("1") == "A"

    def test_unknown_id(self):
        resolver = PathResolver([_rec("1", "A")])
        assert resolver.path_of("cat42") == ""
        assert resolver.ancestors(None) == []

    def test_stops_at_missing_parent(self):
        """親が見つからなければ、そこまでのパスを返す。"""
        resolver = PathResolver([_rec("2", "B", "1"), _rec("3", "C", "2")])
        assert resolver.path_of("3") == "B > C"

    def test_cycle_terminates(self):
        """循環していても有限のパスを返して終わる。"""
        resolver = PathResolver(
            [_rec("1", "A", "3"), _rec("2", "B", "1"), _rec("3", "C", "2")]
        )
        ancestors = resolver.ancestors("3")
        assert len(ancestors) == 3
        assert ancestors[-1].name == "C"
        assert resolver.path_of("3") == "A > B > C"

    def test_self_parent_terminates(self):
        resolver = PathResolver([_rec("1", "Loop", "1")])
        assert resolver.path_of("1") == "Loop"
