"""Import and export of workflow definitions as JSON or YAML documents."""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence, Union

import yaml
from pydantic import ValidationError

from credit_decisioning.config import settings
from credit_decisioning.core.enums import ExportFormat
from credit_decisioning.core.exceptions import WorkflowImportError
from credit_decisioning.models.schemas.simulation import TestCase
from credit_decisioning.models.schemas.workflow import ValidationResult, WorkflowDefinition
from credit_decisioning.services.workflow_engine.validator import validate_workflow

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"


@dataclass
class ImportedBundle:
    """A workflow (and its fixtures) read back from an exported document."""

    workflow: WorkflowDefinition
    test_cases: list[TestCase] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    validation: Optional[ValidationResult] = None


def _resolve_format(fmt: Union[ExportFormat, str, None]) -> ExportFormat:
    try:
        return ExportFormat(fmt or settings.DEFAULT_EXPORT_FORMAT)
    except ValueError:
        raise WorkflowImportError(f"Unsupported format {fmt!r}; expected json or yaml")


def _encode(payload: dict[str, Any], fmt: ExportFormat) -> str:
    if fmt == ExportFormat.YAML:
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _decode(text: str, fmt: Optional[ExportFormat]) -> Any:
    """Parse a document; with no format given, JSON is tried before YAML."""
    if fmt is None:
        fmt = ExportFormat.JSON if text.lstrip().startswith(("{", "[")) else ExportFormat.YAML
    try:
        if fmt == ExportFormat.YAML:
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise WorkflowImportError(f"Invalid {fmt.value} document: {e}") from e


def compute_checksum(workflow: WorkflowDefinition, test_cases: Sequence[TestCase] = ()) -> str:
    """
    SHA-256 over the canonical JSON of the exported content.

    The checksum is computed from validated models rather than raw text, so
    it is the same whichever format the document was written in.
    """
    body = {
        "workflow": workflow.to_wire(),
        "testCases": [case.to_wire() for case in test_cases],
    }
    canonical = json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def dumps_workflow(
    workflow: WorkflowDefinition,
    fmt: Union[ExportFormat, str, None] = None,
) -> str:
    """Encode a bare workflow definition (no bundle metadata)."""
    return _encode(workflow.to_wire(), _resolve_format(fmt))


def loads_workflow(
    text: str,
    fmt: Union[ExportFormat, str, None] = None,
) -> WorkflowDefinition:
    """
    Decode a bare workflow definition.

    Raises:
        WorkflowImportError: If the text does not parse or is not a definition
    """
    data = _decode(text, _resolve_format(fmt) if fmt else None)
    if not isinstance(data, dict):
        raise WorkflowImportError("Workflow document must be a mapping")
    try:
        return WorkflowDefinition.model_validate(data)
    except ValidationError as e:
        raise WorkflowImportError(f"Invalid workflow definition: {e}") from e


def export_bundle(
    workflow: WorkflowDefinition,
    fmt: Union[ExportFormat, str, None] = None,
    test_cases: Optional[Sequence[TestCase]] = None,
    exported_by: Optional[str] = None,
) -> str:
    """
    Export a workflow, optionally with its test cases, as a document.

    Args:
        workflow: The definition to export
        fmt: "json" or "yaml"; defaults to settings.DEFAULT_EXPORT_FORMAT
        test_cases: Fixtures to ship alongside the workflow
        exported_by: Recorded in the document metadata

    Returns:
        The encoded document
    """
    resolved = _resolve_format(fmt)
    cases = list(test_cases or [])

    document: dict[str, Any] = {"workflow": workflow.to_wire()}
    if cases:
        document["testCases"] = [case.to_wire() for case in cases]
    document["metadata"] = {
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "exportedBy": exported_by,
        "version": EXPORT_VERSION,
        "format": resolved.value,
        "checksum": compute_checksum(workflow, cases),
    }

    logger.info(
        f"Exported workflow {workflow.id} v{workflow.version} as {resolved.value} "
        f"with {len(cases)} test case(s)"
    )
    return _encode(document, resolved)


def import_bundle(
    text: str,
    fmt: Union[ExportFormat, str, None] = None,
    verify_checksum: bool = True,
    validate: bool = True,
) -> ImportedBundle:
    """
    Import a document produced by export_bundle.

    Args:
        text: The document text
        fmt: "json" or "yaml"; detected from the text when omitted
        verify_checksum: Reject documents whose content no longer matches
            the recorded checksum
        validate: Run structural validation and attach the result

    Returns:
        ImportedBundle with the workflow, test cases and metadata

    Raises:
        WorkflowImportError: If the document is malformed or tampered with
    """
    data = _decode(text, _resolve_format(fmt) if fmt else None)
    if not isinstance(data, dict) or "workflow" not in data:
        raise WorkflowImportError("Document is missing the 'workflow' section")

    try:
        workflow = WorkflowDefinition.model_validate(data["workflow"])
        test_cases = [TestCase.model_validate(case) for case in data.get("testCases") or []]
    except ValidationError as e:
        raise WorkflowImportError(f"Invalid workflow document: {e}") from e

    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise WorkflowImportError("Document metadata must be a mapping")

    if verify_checksum:
        recorded = metadata.get("checksum")
        if not recorded:
            raise WorkflowImportError("Document has no checksum")
        actual = compute_checksum(workflow, test_cases)
        if actual != recorded:
            logger.warning(f"Checksum mismatch importing workflow {workflow.id}")
            raise WorkflowImportError("Checksum mismatch: the document was modified after export")

    validation = validate_workflow(workflow) if validate else None
    if validation is not None and not validation.is_valid:
        logger.info(f"Imported workflow {workflow.id} has {len(validation.errors)} validation error(s)")

    return ImportedBundle(
        workflow=workflow,
        test_cases=test_cases,
        metadata=metadata,
        validation=validation,
    )
