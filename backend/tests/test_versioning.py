"""Tests for workflow version helpers."""

import pytest

from builders import make_workflow, node
from credit_decisioning.core.enums import WorkflowStatus
from credit_decisioning.core.exceptions import WorkflowValidationError
from credit_decisioning.services.workflow_service import (
    archive,
    bump_version,
    create_new_version,
    parse_version,
    publish,
)


class TestVersionNumbers:
    """Tests for parse_version() and bump_version()."""

    @pytest.mark.parametrize(
        "part,expected",
        [("major", "2.0.0"), ("minor", "1.5.0"), ("patch", "1.4.3")],
    )
    def test_bump(self, part, expected):
        assert bump_version("1.4.2", part) == expected

    def test_short_versions_are_padded(self):
        assert parse_version("2") == (2, 0, 0)
        assert parse_version("v1.2") == (1, 2, 0)

    def test_versions_sort_numerically(self):
        assert parse_version("1.10.0") > parse_version("1.9.9")

    @pytest.mark.parametrize("bad", ["", "1.x.0", "1.2.3.4", "-1.0.0"])
    def test_invalid_versions(self, bad):
        with pytest.raises(ValueError):
            parse_version(bad)

    def test_unknown_part(self):
        with pytest.raises(ValueError):
            bump_version("1.0.0", "build")


class TestLifecycle:
    """Tests for create_new_version(), publish() and archive()."""

    def test_new_version_is_an_independent_draft(self, branching_workflow):
        draft = create_new_version(branching_workflow, bump="minor", created_by="analyst")

        assert draft.version == "1.1.0"
        assert draft.status == WorkflowStatus.DRAFT
        assert draft.metadata.parent_version == "1.0.0"
        assert draft.metadata.created_by == "analyst"

        draft.nodes[0].data.label = "changed"
        assert branching_workflow.nodes[0].data.label == "start"
        assert branching_workflow.status == WorkflowStatus.PUBLISHED

    def test_publish_valid_draft(self, branching_workflow):
        draft = create_new_version(branching_workflow)
        published = publish(draft)

        assert published.status == WorkflowStatus.PUBLISHED
        assert draft.status == WorkflowStatus.DRAFT

    def test_publish_invalid_draft(self):
        draft = make_workflow([node("start", "start")], [], status="draft")
        with pytest.raises(WorkflowValidationError):
            publish(draft)

    def test_archive(self, branching_workflow):
        archived = archive(branching_workflow)

        assert archived.status == WorkflowStatus.ARCHIVED
        with pytest.raises(ValueError):
            publish(archived)
