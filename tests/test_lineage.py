"""
Tests for the lineage resolver.

Verifies:
- Root resolution, including cycle and dangling-parent detection
- Latest detection by recency with deterministic tie-breaks
- Version numbering rules
- Trees, branches and snapshot validation
"""

import random
from decimal import Decimal

import pytest

from illustration_versions.versioning import (
    CyclicLineageDetected,
    InvalidParent,
    LineageIndex,
    NotFound,
    VersionType,
    is_latest,
    next_version_number,
)

from factories import make_node, scenario_lineage


def _deep_lineage():
    """R -> a -> b, plus a second root S with a child."""
    return [
        make_node("R", number="1.0", minutes=0),
        make_node("a", parent="R", root="R", number="1.1", version_type="revision", minutes=1),
        make_node("b", parent="a", root="R", number="1.2", version_type="revision", minutes=2),
        make_node("S", number="1.0", minutes=3),
        make_node("s1", parent="S", root="S", number="1.1", version_type="revision", minutes=4),
    ]


class TestResolveRoot:
    def test_every_node_resolves_to_a_parentless_ancestor(self):
        index = LineageIndex(_deep_lineage())
        for node in index.nodes:
            root = index.resolve_root(node)
            assert root.parent_version_id is None
            assert root.id == node.root_version_id

    def test_root_resolves_to_itself(self):
        index = LineageIndex(_deep_lineage())
        assert index.resolve_root("R").id == "R"

    def test_accepts_ids(self):
        index = LineageIndex(_deep_lineage())
        assert index.resolve_root("b").id == "R"

    def test_unknown_id_raises_not_found(self):
        index = LineageIndex(_deep_lineage())
        with pytest.raises(NotFound):
            index.resolve_root("missing")

    def test_cycle_is_detected(self):
        nodes = [
            make_node("x", parent="y", root="x", number="1.1", version_type="revision"),
            make_node("y", parent="x", root="x", number="1.2", version_type="revision"),
        ]
        index = LineageIndex(nodes)
        with pytest.raises(CyclicLineageDetected) as exc_info:
            index.resolve_root("x")
        assert exc_info.value.version_id == "x"
        assert exc_info.value.path[0] == "x"
        assert exc_info.value.path[-1] == "x"

    def test_self_parent_is_a_cycle(self):
        index = LineageIndex([make_node("x", parent="x", root="x", version_type="revision")])
        with pytest.raises(CyclicLineageDetected):
            index.resolve_root("x")

    def test_dangling_parent_is_invalid_parent(self):
        index = LineageIndex(
            [make_node("orphan", parent="gone", root="gone", number="1.1", version_type="revision")]
        )
        with pytest.raises(InvalidParent) as exc_info:
            index.resolve_root("orphan")
        assert exc_info.value.parent_version_id == "gone"

    def test_corrupt_nodes_are_excluded_from_lineages(self):
        nodes = _deep_lineage() + [
            make_node("x", parent="y", root="x", number="1.1", version_type="revision"),
            make_node("y", parent="x", root="x", number="1.2", version_type="revision"),
        ]
        index = LineageIndex(nodes)
        lineages = index.lineages()
        assert set(lineages) == {"R", "S"}
        assert set(index.corrupt) == {"x", "y"}

    def test_siblings_use_computed_root_not_stored_root(self):
        # "b" claims root S but its parent chain leads to R
        nodes = [
            make_node("R", number="1.0"),
            make_node("S", number="1.0", minutes=1),
            make_node("b", parent="R", root="S", number="1.1", version_type="revision", minutes=2),
        ]
        index = LineageIndex(nodes)
        assert {n.id for n in index.siblings_of_root("R")} == {"R", "b"}
        assert [n.id for n in index.siblings_of_root("S")] == ["S"]


class TestLatest:
    def test_scenario_recency_decides_latest(self):
        index = LineageIndex(scenario_lineage())
        assert index.total_versions("R") == 3
        latest = [node.id for node in index.siblings_of_root("R") if index.is_latest(node)]
        assert latest == ["R-alt"]
        assert index.latest_in_lineage("R").id == "R-alt"

    def test_exactly_one_latest_even_with_equal_timestamps(self):
        nodes = [
            make_node("R", number="1.0", minutes=5),
            make_node("c1", parent="R", root="R", number="1.1", version_type="revision", minutes=5),
            make_node("c2", parent="R", root="R", number="2.0", version_type="branch", minutes=5),
        ]
        siblings = LineageIndex(nodes).siblings_of_root("R")
        flags = {node.id: is_latest(node, siblings) for node in siblings}
        assert sum(flags.values()) == 1
        # Equal timestamps: highest version number wins
        assert flags["c2"] is True

    def test_tie_on_time_and_number_breaks_by_id(self):
        nodes = [
            make_node("R", number="1.0", minutes=0),
            make_node("m", parent="R", root="R", number="1.1", version_type="revision", minutes=3),
            make_node("n", parent="R", root="R", number="1.1", version_type="merge", minutes=3),
        ]
        siblings = LineageIndex(nodes).siblings_of_root("R")
        assert [node.id for node in siblings if is_latest(node, siblings)] == ["n"]

    def test_latest_is_unique_for_random_lineages(self):
        rng = random.Random(7)
        for _ in range(20):
            nodes = [make_node("r", number="1.0", minutes=rng.randint(0, 3))]
            for i in range(rng.randint(1, 8)):
                parent = rng.choice(nodes)
                nodes.append(
                    make_node(
                        f"n{i}",
                        parent=parent.id,
                        root="r",
                        number=str(parent.version_number + Decimal("0.1") * (i + 1)),
                        version_type="revision",
                        minutes=rng.randint(0, 3),
                    )
                )
            siblings = LineageIndex(nodes).siblings_of_root("r")
            assert sum(is_latest(node, siblings) for node in siblings) == 1


class TestNextVersionNumber:
    def test_original_starts_at_one(self):
        assert next_version_number(VersionType.ORIGINAL, None, []) == Decimal("1.0")

    def test_revision_adds_a_tenth(self):
        lineage = scenario_lineage()
        parent = lineage[1]  # v1.1
        assert next_version_number(VersionType.REVISION, parent, lineage) == Decimal("1.2")

    def test_revision_steps_past_taken_numbers(self):
        lineage = scenario_lineage()
        root = lineage[0]  # v1.0, 1.1 already taken
        assert next_version_number(VersionType.REVISION, root, lineage) == Decimal("1.2")

    def test_merge_numbers_like_a_revision(self):
        lineage = scenario_lineage()
        assert next_version_number(VersionType.MERGE, lineage[2], lineage) == Decimal("2.1")

    def test_branch_takes_next_integer_above_lineage_max(self):
        lineage = scenario_lineage()
        assert next_version_number(VersionType.BRANCH, lineage[0], lineage) == Decimal("3.0")

    def test_branch_from_fractional_max(self):
        lineage = [make_node("R", number="1.0"), make_node("a", parent="R", number="1.7", version_type="revision")]
        assert next_version_number(VersionType.BRANCH, lineage[1], lineage) == Decimal("2.0")

    def test_child_is_always_greater_than_parent(self):
        lineage = scenario_lineage()
        for version_type in (VersionType.REVISION, VersionType.BRANCH, VersionType.MERGE):
            for parent in lineage:
                assert next_version_number(version_type, parent, lineage) > parent.version_number


class TestStructure:
    def test_children_sorted_by_version_number(self):
        index = LineageIndex(scenario_lineage())
        assert [child.id for child in index.children_of("R")] == ["R-rev", "R-alt"]

    def test_sibling_and_descendant_counts(self):
        index = LineageIndex(_deep_lineage() + [
            make_node("a2", parent="R", root="R", number="2.0", version_type="branch", minutes=9),
        ])
        assert index.sibling_count("R") == 0
        assert index.sibling_count("a") == 1
        assert index.descendant_count("R") == 3
        assert index.descendant_count("b") == 0

    def test_build_tree(self):
        index = LineageIndex(_deep_lineage())
        tree = index.build_tree("R")
        assert tree.total_versions == 3
        assert tree.max_depth == 2
        assert tree.tree.version.id == "R"
        assert tree.tree.children[0].version.id == "a"
        assert tree.tree.children[0].children[0].depth == 2

    def test_build_tree_rejects_non_root(self):
        index = LineageIndex(_deep_lineage())
        with pytest.raises(InvalidParent):
            index.build_tree("a")

    def test_branches(self):
        index = LineageIndex(scenario_lineage())
        branches = {branch.name: branch for branch in index.branches("R")}
        assert set(branches) == {"main", "alt"}
        assert branches["alt"].head_version_id == "R-alt"
        assert branches["main"].version_ids == ["R", "R-rev"]
        assert branches["main"].head_version_id == "R-rev"

    def test_validate_clean_snapshot(self):
        assert LineageIndex(_deep_lineage()).validate() == []

    def test_validate_reports_problems(self):
        nodes = [
            make_node("R", number="1.0"),
            make_node("bad-root", parent="R", root="S", number="1.1", version_type="revision"),
            make_node("down", parent="R", root="R", number="1.0", version_type="revision"),
            make_node("orphan", parent="gone", root="gone", number="1.1", version_type="revision"),
            make_node("x", parent="y", root="x", number="1.1", version_type="revision"),
            make_node("y", parent="x", root="x", number="1.2", version_type="revision"),
        ]
        kinds = {(issue.version_id, issue.kind) for issue in LineageIndex(nodes).validate()}
        assert ("bad-root", "root_mismatch") in kinds
        assert ("down", "non_monotonic") in kinds
        assert ("orphan", "dangling_parent") in kinds
        assert ("x", "cycle") in kinds
        assert ("y", "cycle") in kinds
