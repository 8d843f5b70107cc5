"""
Tests for the gallery query façade.

Verifies filters (AND composition, free-text search) and every sort key,
including stability of the custom order.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from illustration_versions.versioning import (
    EnrichedViewRecord,
    GalleryQuery,
    LineageFilter,
    SortKey,
    StatusFilter,
    VersionType,
    apply_query,
    filter_records,
    sort_records,
)

from factories import make_generation


def _record(record_id, minutes=0, version=None, **fields) -> EnrichedViewRecord:
    generation_fields = {
        key: fields.pop(key)
        for key in ("project_id", "prompt", "provider", "model", "status", "enhanced_prompt")
        if key in fields
    }
    generation = make_generation(record_id, minutes=minutes, **generation_fields)
    if version is not None:
        fields.setdefault("version_id", f"v-{record_id}")
        fields["version_number"] = Decimal(version)
    return EnrichedViewRecord.from_generation(generation, **fields)


@pytest.fixture
def records():
    return [
        _record(
            "a",
            minutes=1,
            prompt="A red dragon",
            provider="pollinations",
            model="flux",
            version="1.1",
            version_type=VersionType.REVISION,
            is_latest_version=False,
            total_versions=3,
            version_tags=["Hero"],
        ),
        _record(
            "b",
            minutes=3,
            prompt="Blue castle at dusk",
            provider="openai",
            model="dall-e-3",
            status="failed",
            version="1.0",
            version_type=VersionType.ORIGINAL,
            is_latest_version=True,
            total_versions=1,
        ),
        _record(
            "c",
            minutes=2,
            prompt="green forest",
            enhanced_prompt="lush green forest with a hidden DRAGON",
            provider="pollinations",
            model="turbo",
        ),
        _record(
            "d",
            minutes=0,
            prompt="portrait of the queen",
            provider="stability",
            model="sdxl",
            project_id="proj-2",
            version="2.0",
            version_type=VersionType.BRANCH,
            is_latest_version=True,
            total_versions=3,
        ),
    ]


def ids(records):
    return [record.id for record in records]


class TestFilters:
    def test_default_query_keeps_everything(self, records):
        assert ids(filter_records(records, GalleryQuery())) == ["a", "b", "c", "d"]

    def test_project_filter(self, records):
        assert ids(filter_records(records, GalleryQuery(project_id="proj-2"))) == ["d"]

    def test_provider_filter(self, records):
        assert ids(filter_records(records, GalleryQuery(provider="pollinations"))) == ["a", "c"]

    def test_status_filter(self, records):
        assert ids(filter_records(records, GalleryQuery(status=StatusFilter.FAILED))) == ["b"]
        assert ids(filter_records(records, GalleryQuery(status=StatusFilter.COMPLETED))) == [
            "a",
            "c",
            "d",
        ]

    def test_lineage_filters(self, records):
        assert ids(filter_records(records, GalleryQuery(lineage=LineageFilter.LATEST))) == ["b", "d"]
        assert ids(filter_records(records, GalleryQuery(lineage=LineageFilter.ORIGINAL))) == ["b"]
        assert ids(filter_records(records, GalleryQuery(lineage=LineageFilter.MULTIPLE))) == ["a", "d"]

    def test_records_without_version_data_fail_lineage_filters(self, records):
        for lineage in (LineageFilter.LATEST, LineageFilter.ORIGINAL, LineageFilter.MULTIPLE):
            assert "c" not in ids(filter_records(records, GalleryQuery(lineage=lineage)))

    def test_search_matches_prompts_case_insensitively(self, records):
        assert ids(filter_records(records, GalleryQuery(search="dragon"))) == ["a", "c"]

    def test_search_matches_formatted_version(self, records):
        assert ids(filter_records(records, GalleryQuery(search="v2.0"))) == ["d"]

    def test_search_matches_tags(self, records):
        assert ids(filter_records(records, GalleryQuery(search="hero"))) == ["a"]

    def test_blank_search_matches_everything(self, records):
        assert len(filter_records(records, GalleryQuery(search="   "))) == 4

    def test_filters_compose_with_and(self, records):
        query = GalleryQuery(provider="pollinations", search="dragon", lineage=LineageFilter.MULTIPLE)
        assert ids(filter_records(records, query)) == ["a"]

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValidationError):
            GalleryQuery(colour="red")


class TestSorting:
    def test_date_sorts_newest_first(self, records):
        assert ids(sort_records(records, SortKey.DATE)) == ["b", "c", "a", "d"]

    def test_provider_sorts_lexicographically(self, records):
        assert ids(sort_records(records, SortKey.PROVIDER)) == ["b", "a", "c", "d"]

    def test_model_sorts_lexicographically(self, records):
        assert ids(sort_records(records, SortKey.MODEL)) == ["b", "a", "d", "c"]

    def test_version_sorts_by_lineage_size_then_number(self, records):
        assert ids(sort_records(records, SortKey.VERSION)) == ["d", "a", "b", "c"]

    def test_custom_order(self, records):
        assert ids(sort_records(records, SortKey.CUSTOM, ["c", "a", "d", "b"])) == ["c", "a", "d", "b"]

    def test_custom_order_puts_unknown_ids_last_in_original_order(self):
        records = [_record(record_id) for record_id in ("a", "x", "b", "y", "c")]
        assert ids(sort_records(records, SortKey.CUSTOM, ["x", "y"])) == ["x", "y", "a", "b", "c"]

    def test_custom_order_ignores_ids_not_in_records(self):
        records = [_record(record_id) for record_id in ("a", "b")]
        assert ids(sort_records(records, SortKey.CUSTOM, ["zzz", "b"])) == ["b", "a"]

    def test_sorting_is_stable_for_equal_keys(self):
        records = [_record(record_id, provider="same") for record_id in ("q", "w", "e")]
        assert ids(sort_records(records, SortKey.PROVIDER)) == ["q", "w", "e"]
        assert ids(sort_records(records, SortKey.DATE)) == ["q", "w", "e"]

    def test_sorting_does_not_mutate_input(self, records):
        before = ids(records)
        sort_records(records, SortKey.VERSION)
        assert ids(records) == before


def test_apply_query_filters_then_sorts(records):
    query = GalleryQuery(provider="pollinations", sort_by=SortKey.DATE)
    assert ids(apply_query(records, query)) == ["c", "a"]
