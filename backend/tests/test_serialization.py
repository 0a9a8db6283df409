"""Tests for workflow import and export."""

import json

import pytest
import yaml

from credit_decisioning.core.exceptions import WorkflowImportError
from credit_decisioning.models.schemas.simulation import TestCase
from credit_decisioning.services.serialization import (
    EXPORT_VERSION,
    dumps_workflow,
    export_bundle,
    import_bundle,
    loads_workflow,
)


@pytest.fixture
def fixtures():
    return [
        TestCase(id="good", input_data={"creditScore": 780}, expected_output={"decision": "approve"}),
        TestCase(
            id="poor",
            input_data={"creditScore": 540},
            expected_output={"decision": "decline", "flags": ["low_score"]},
            expected_path=["start", "check", "decline", "end-decline"],
        ),
    ]


class TestExportBundle:
    """Tests for export_bundle()."""

    def test_json_document_shape(self, branching_workflow):
        document = json.loads(export_bundle(branching_workflow, "json", exported_by="analyst"))

        assert document["workflow"]["id"] == "credit-workflow"
        assert "dataRequirements" in document["workflow"]
        assert "testCases" not in document
        metadata = document["metadata"]
        assert metadata["version"] == EXPORT_VERSION
        assert metadata["format"] == "json"
        assert metadata["exportedBy"] == "analyst"
        assert len(metadata["checksum"]) == 64

    def test_yaml_document(self, branching_workflow, fixtures):
        document = yaml.safe_load(export_bundle(branching_workflow, "yaml", test_cases=fixtures))

        assert document["metadata"]["format"] == "yaml"
        assert [case["id"] for case in document["testCases"]] == ["good", "poor"]

    def test_checksum_is_format_independent(self, branching_workflow):
        as_json = json.loads(export_bundle(branching_workflow, "json"))
        as_yaml = yaml.safe_load(export_bundle(branching_workflow, "yaml"))

        assert as_json["metadata"]["checksum"] == as_yaml["metadata"]["checksum"]

    def test_unknown_format(self, branching_workflow):
        with pytest.raises(WorkflowImportError):
            export_bundle(branching_workflow, "xml")


class TestImportBundle:
    """Tests for import_bundle()."""

    @pytest.mark.parametrize("fmt", ["json", "yaml"])
    def test_round_trip_is_value_equal(self, branching_workflow, fixtures, fmt):
        bundle = import_bundle(export_bundle(branching_workflow, fmt, test_cases=fixtures))

        assert bundle.workflow == branching_workflow
        assert bundle.test_cases == fixtures
        assert bundle.metadata["format"] == fmt
        assert bundle.validation.is_valid

    def test_tampered_document_is_rejected(self, branching_workflow):
        document = json.loads(export_bundle(branching_workflow, "json"))
        document["workflow"]["name"] = "Tampered"
        tampered = json.dumps(document)

        with pytest.raises(WorkflowImportError, match="Checksum mismatch"):
            import_bundle(tampered)

        assert import_bundle(tampered, verify_checksum=False).workflow.name == "Tampered"

    def test_missing_checksum(self, branching_workflow):
        text = json.dumps({"workflow": branching_workflow.to_wire()})

        with pytest.raises(WorkflowImportError, match="no checksum"):
            import_bundle(text)

    def test_malformed_documents(self):
        with pytest.raises(WorkflowImportError):
            import_bundle("{not json")
        with pytest.raises(WorkflowImportError, match="workflow"):
            import_bundle("metadata: {}\n", fmt="yaml")
        with pytest.raises(WorkflowImportError):
            import_bundle(json.dumps({"workflow": {"id": "x"}}), verify_checksum=False)

    def test_invalid_graph_still_imports_with_validation(self, branching_workflow):
        broken = branching_workflow.model_copy(update={"connections": []})
        bundle = import_bundle(export_bundle(broken, "json"))

        assert not bundle.validation.is_valid


class TestBareWorkflow:
    """Tests for dumps_workflow() / loads_workflow()."""

    def test_yaml_round_trip(self, looping_workflow):
        assert loads_workflow(dumps_workflow(looping_workflow, "yaml"), "yaml") == looping_workflow

    def test_format_is_detected(self, looping_workflow):
        assert loads_workflow(dumps_workflow(looping_workflow, "json")) == looping_workflow

    def test_non_mapping_is_rejected(self):
        with pytest.raises(WorkflowImportError):
            loads_workflow("- just\n- a list\n")
