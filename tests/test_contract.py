"""
Contract Tests.

These tests pin the enum values, validation rules and error payloads that
clients depend on. If one fails, verify the change is intentional.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from illustration_versions.config import Settings
from illustration_versions.versioning import (
    AlreadyExists,
    GenerationStatus,
    IdentityChanged,
    ImageLocation,
    InvalidParent,
    InvalidStatusTransition,
    NotFound,
    SortKey,
    VersionCreate,
    VersionMetadata,
    VersionNode,
    VersionNumberConflict,
    VersionStatus,
    VersionTag,
    VersionType,
    format_version_number,
)
from illustration_versions.versioning.generation import can_transition


class TestEnums:
    @pytest.mark.parametrize("value", ["original", "revision", "branch", "merge"])
    def test_version_type_exists(self, value: str):
        assert VersionType(value).is_known

    def test_unrecognised_version_type_degrades(self):
        assert VersionType.from_raw("remix") is VersionType.UNKNOWN
        assert VersionType.from_raw("merge") is VersionType.MERGE
        assert not VersionType.UNKNOWN.is_known

    def test_version_statuses(self):
        assert {s.value for s in VersionStatus} == {"active", "archived", "superseded"}

    def test_sort_keys(self):
        assert {k.value for k in SortKey} == {"date", "provider", "model", "version", "custom"}


class TestGenerationStatusTransitions:
    @pytest.mark.parametrize(
        "current, new",
        [
            ("pending", "processing"),
            ("pending", "completed"),
            ("pending", "failed"),
            ("processing", "completed"),
            ("processing", "failed"),
        ],
    )
    def test_forward(self, current, new):
        assert can_transition(GenerationStatus(current), GenerationStatus(new))

    @pytest.mark.parametrize("terminal", ["completed", "failed"])
    def test_terminal_states_have_no_successor(self, terminal):
        assert not any(
            can_transition(GenerationStatus(terminal), status) for status in GenerationStatus
        )


class TestImageLocation:
    def test_url_only(self):
        assert ImageLocation(url="https://x/y.png").value == "https://x/y.png"

    def test_path_only(self):
        assert ImageLocation(path="/tmp/y.png").value == "/tmp/y.png"

    @pytest.mark.parametrize("fields", [{}, {"url": "https://x/y.png", "path": "/tmp/y.png"}])
    def test_exactly_one_required(self, fields):
        with pytest.raises(ValidationError):
            ImageLocation(**fields)


class TestVersionCreate:
    def test_original_takes_no_parent(self):
        with pytest.raises(ValidationError, match="cannot have a parent"):
            VersionCreate(project_id="p", type="original", parent_version_id="x")

    @pytest.mark.parametrize("kind", ["revision", "branch", "merge"])
    def test_children_require_parent(self, kind):
        with pytest.raises(ValidationError, match="requires parent_version_id"):
            VersionCreate(project_id="p", type=kind)

    def test_branch_name_only_for_branches(self):
        with pytest.raises(ValidationError, match="only accepted for branch"):
            VersionCreate(project_id="p", type="revision", parent_version_id="x", branch_name="b")
        VersionCreate(project_id="p", type="branch", parent_version_id="x", branch_name="b")

    def test_unknown_type_cannot_be_created(self):
        with pytest.raises(ValidationError):
            VersionCreate(project_id="p", type="unknown", parent_version_id="x")

    def test_extra_fields_rejected(self):
        with pytest.raises(ValidationError):
            VersionCreate(project_id="p", type="original", version_number="1.0")


class TestVersionNode:
    def test_number_is_quantized(self):
        node = VersionNode(project_id="p", type="original", version_number=1, root_version_id="r")
        assert node.version_number == Decimal("1.0")
        assert node.label == "v1.0"

    def test_unknown_type_loads(self):
        node = VersionNode(project_id="p", type="remix", version_number="2.0", root_version_id="r")
        assert node.type is VersionType.UNKNOWN

    def test_tags_are_unique_by_name(self):
        metadata = VersionMetadata(
            tags=[VersionTag(name="hero", color="red"), VersionTag(name="hero", color="blue")]
        )
        assert [t.color for t in metadata.tags] == ["red"]

    def test_format_version_number(self):
        assert format_version_number(Decimal("1.1")) == "v1.1"
        assert format_version_number(None) == ""


class TestErrorPayloads:
    def test_not_found(self):
        assert NotFound("VersionNode", "v-1").to_dict() == {
            "error": "NOT_FOUND",
            "message": "VersionNode v-1 not found.",
            "retryable": False,
            "object_type": "VersionNode",
            "object_id": "v-1",
        }

    def test_conflict_is_retryable(self):
        data = VersionNumberConflict("r", Decimal("1.1"), attempts=3).to_dict()
        assert data["retryable"] is True
        assert data["version_number"] == "1.1"
        assert data["attempts"] == 3

    @pytest.mark.parametrize(
        "error, code",
        [
            (InvalidParent("x", "does not exist"), "INVALID_PARENT"),
            (InvalidStatusTransition("g", "completed", "pending"), "INVALID_STATUS_TRANSITION"),
            (AlreadyExists("GenerationRecord", "g"), "ALREADY_EXISTS"),
            (IdentityChanged("v", ["version_number"]), "IDENTITY_CHANGED"),
        ],
    )
    def test_codes(self, error, code):
        assert error.to_dict()["error"] == code


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = Settings(_env_file=None)
    assert settings.version_number_max_attempts == 3
    assert settings.history_page_size == 100
    assert settings.log_format == "json"


def test_settings_reject_zero_attempts():
    with pytest.raises(ValidationError):
        Settings(version_number_max_attempts=0)


def test_identity_changed_lists_fields():
    data = IdentityChanged("v-1", ["parent_version_id", "root_version_id"]).to_dict()
    assert data["fields"] == ["parent_version_id", "root_version_id"]
    assert data["retryable"] is False
