"""
Tests for filtering version nodes.

Verifies each filter on its own, AND composition across filters and OR
composition inside one list filter.
"""

import pytest
from pydantic import ValidationError

from illustration_versions.versioning import (
    AIParameters,
    VersionFilter,
    VersionStatus,
    VersionType,
    filter_versions,
)

from factories import at, make_node


def ids(nodes):
    return [node.id for node in nodes]


@pytest.fixture
def nodes():
    return [
        make_node(
            "R",
            minutes=0,
            tags=["hero"],
            title="Knight at dawn",
            ai_parameters=AIParameters(model="flux", provider="pollinations"),
            file_size_bytes=1_000,
        ).model_copy(update={"prompt": "a knight in a misty forest"}),
        make_node(
            "R-rev",
            parent="R",
            root="R",
            number="1.1",
            version_type="revision",
            minutes=10,
            status="archived",
            tags=["draft"],
            description="Second pass with a dragon",
            ai_parameters=AIParameters(model="sdxl", provider="replicate"),
            file_size_bytes=5_000,
        ),
        make_node(
            "R-alt",
            parent="R",
            root="R",
            number="2.0",
            version_type="branch",
            minutes=20,
            branch="alt",
            tags=["hero", "draft"],
            file_size_bytes=20_000,
        ),
    ]


def test_empty_filter_keeps_everything_in_order(nodes):
    assert ids(filter_versions(nodes, VersionFilter())) == ["R", "R-rev", "R-alt"]


def test_date_range_is_inclusive(nodes):
    version_filter = VersionFilter(created_from=at(10), created_to=at(20))
    assert ids(filter_versions(nodes, version_filter)) == ["R-rev", "R-alt"]
    assert ids(filter_versions(nodes, VersionFilter(created_to=at(0)))) == ["R"]


def test_statuses_and_types(nodes):
    assert ids(filter_versions(nodes, VersionFilter(statuses=[VersionStatus.ARCHIVED]))) == [
        "R-rev"
    ]
    version_filter = VersionFilter(types=[VersionType.ORIGINAL, VersionType.BRANCH])
    assert ids(filter_versions(nodes, version_filter)) == ["R", "R-alt"]


def test_any_listed_tag_matches(nodes):
    assert ids(filter_versions(nodes, VersionFilter(tags=["hero"]))) == ["R", "R-alt"]
    assert ids(filter_versions(nodes, VersionFilter(tags=["draft", "missing"]))) == [
        "R-rev",
        "R-alt",
    ]


def test_unnamed_branch_counts_as_main(nodes):
    assert ids(filter_versions(nodes, VersionFilter(branches=["main"]))) == ["R", "R-rev"]
    assert ids(filter_versions(nodes, VersionFilter(branches=["alt"]))) == ["R-alt"]


@pytest.mark.parametrize(
    "keyword, expected",
    [
        ("MISTY", ["R"]),
        ("dawn", ["R"]),
        ("dragon", ["R-rev"]),
        ("nothing like this", []),
        ("  ", ["R", "R-rev", "R-alt"]),
    ],
)
def test_keyword_searches_prompt_title_and_description(nodes, keyword, expected):
    assert ids(filter_versions(nodes, VersionFilter(keyword=keyword))) == expected


def test_model_and_provider_skip_nodes_without_parameters(nodes):
    assert ids(filter_versions(nodes, VersionFilter(model="flux"))) == ["R"]
    assert ids(filter_versions(nodes, VersionFilter(provider="replicate"))) == ["R-rev"]


def test_file_size_range_is_inclusive(nodes):
    version_filter = VersionFilter(min_file_size=5_000, max_file_size=20_000)
    assert ids(filter_versions(nodes, version_filter)) == ["R-rev", "R-alt"]


def test_filters_and_together(nodes):
    version_filter = VersionFilter(tags=["hero"], types=[VersionType.BRANCH])
    assert ids(filter_versions(nodes, version_filter)) == ["R-alt"]


def test_input_is_not_mutated(nodes):
    before = ids(nodes)
    filter_versions(nodes, VersionFilter(tags=["hero"]))
    assert ids(nodes) == before


@pytest.mark.parametrize(
    "fields",
    [
        {"created_from": at(5), "created_to": at(1)},
        {"min_file_size": 10, "max_file_size": 1},
        {"min_file_size": -1},
        {"colour": "red"},
    ],
)
def test_invalid_filters_are_rejected(fields):
    with pytest.raises(ValidationError):
        VersionFilter(**fields)
