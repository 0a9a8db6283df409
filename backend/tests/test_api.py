"""API tests for the FastAPI service, run against a temporary SQLite store."""

import pytest
from fastapi.testclient import TestClient

from credit_decisioning.main import app
from credit_decisioning.services.serialization import export_bundle

API = "/api/v1"


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def stored_workflow(client, branching_workflow, unique_id):
    """A draft copy of the branching workflow stored under a fresh id."""
    definition = branching_workflow.model_copy(update={"id": unique_id, "status": "draft"})
    response = client.post(f"{API}/workflows/", json={"definition": definition.to_wire()})
    assert response.status_code == 201, response.text
    return definition


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client):
        response = client.get(f"{API}/health")

        assert response.status_code == 200
        assert response.json()["database"] == "healthy"


class TestStatelessWorkflowEndpoints:
    """Tests for /workflows/validate and /workflows/execute."""

    def test_validate(self, client, branching_workflow):
        response = client.post(f"{API}/workflows/validate", json=branching_workflow.to_wire())

        assert response.status_code == 200
        assert response.json() == {"isValid": True, "errors": [], "warnings": []}

    def test_validate_reports_errors(self, client, branching_workflow):
        broken = branching_workflow.model_copy(update={"connections": []}).to_wire()
        body = client.post(f"{API}/workflows/validate", json=broken).json()

        assert body["isValid"] is False
        assert body["errors"]

    def test_execute(self, client, branching_workflow):
        response = client.post(
            f"{API}/workflows/execute",
            json={"workflow": branching_workflow.to_wire(), "record": {"creditScore": 780}},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["decision"] == "approve"
        assert body["executionPath"] == ["start", "check", "approve", "end-approve"]
        assert "executionTimeMs" in body

    def test_execute_draft_needs_flag(self, client, branching_workflow):
        draft = branching_workflow.model_copy(update={"status": "draft"}).to_wire()

        response = client.post(f"{API}/workflows/execute", json={"workflow": draft, "record": {}})
        assert response.status_code == 409

        response = client.post(
            f"{API}/workflows/execute",
            json={"workflow": draft, "record": {"creditScore": 500}, "allowDraft": True},
        )
        assert response.status_code == 200
        assert response.json()["decision"] == "decline"

    def test_execute_invalid_workflow(self, client, branching_workflow):
        broken = branching_workflow.model_copy(update={"connections": []}).to_wire()
        response = client.post(f"{API}/workflows/execute", json={"workflow": broken, "record": {}})

        assert response.status_code == 422
        assert response.json()["detail"]["errors"]


class TestStoredWorkflows:
    """Tests for storing, versioning and publishing workflows."""

    def test_get_and_list(self, client, stored_workflow):
        response = client.get(f"{API}/workflows/{stored_workflow.id}")
        assert response.status_code == 200
        assert response.json()["status"] == "draft"

        listing = client.get(f"{API}/workflows/", params={"page_size": 100}).json()
        assert listing["total"] >= 1
        assert listing["pageSize"] == 100

    def test_unknown_workflow(self, client):
        assert client.get(f"{API}/workflows/does-not-exist").status_code == 404

    def test_publish_then_decide(self, client, stored_workflow):
        workflow_id = stored_workflow.id

        response = client.post(f"{API}/decisions/evaluate", json={"workflowId": workflow_id, "record": {}})
        assert response.status_code == 404

        response = client.post(f"{API}/workflows/{workflow_id}/publish")
        assert response.status_code == 200
        assert response.json()["status"] == "published"

        response = client.post(
            f"{API}/decisions/evaluate",
            json={"workflowId": workflow_id, "record": {"creditScore": 780}},
        )
        assert response.status_code == 200
        assert response.json()["decision"] == "approve"

    def test_published_version_is_immutable(self, client, stored_workflow):
        client.post(f"{API}/workflows/{stored_workflow.id}/publish")

        changed = stored_workflow.model_copy(update={"name": "Changed"})
        response = client.post(f"{API}/workflows/", json={"definition": changed.to_wire()})
        assert response.status_code == 409

    def test_draft_can_be_rewritten(self, client, stored_workflow):
        changed = stored_workflow.model_copy(update={"name": "Renamed"})
        response = client.post(f"{API}/workflows/", json={"definition": changed.to_wire()})

        assert response.status_code == 201
        assert response.json()["name"] == "Renamed"

    def test_versions(self, client, stored_workflow):
        workflow_id = stored_workflow.id
        client.post(f"{API}/workflows/{workflow_id}/publish")

        response = client.post(f"{API}/workflows/{workflow_id}/versions", json={"bump": "minor"})
        assert response.status_code == 201
        assert response.json()["version"] == "1.1.0"
        assert response.json()["status"] == "draft"

        versions = client.get(f"{API}/workflows/{workflow_id}/versions").json()
        assert [(v["version"], v["status"]) for v in versions] == [("1.0.0", "published"), ("1.1.0", "draft")]

        # Production decisions keep using the published version
        response = client.post(
            f"{API}/decisions/evaluate",
            json={"workflowId": workflow_id, "record": {"creditScore": 780}},
        )
        assert response.status_code == 200

    def test_publish_invalid_workflow(self, client, branching_workflow, unique_id):
        broken = branching_workflow.model_copy(update={"id": unique_id, "status": "draft", "connections": []})
        client.post(f"{API}/workflows/", json={"definition": broken.to_wire()})

        response = client.post(f"{API}/workflows/{unique_id}/publish")
        assert response.status_code == 422

    def test_archive(self, client, stored_workflow):
        workflow_id = stored_workflow.id
        client.post(f"{API}/workflows/{workflow_id}/publish")

        response = client.post(f"{API}/workflows/{workflow_id}/archive")
        assert response.status_code == 200
        assert response.json()["status"] == "archived"

        response = client.post(f"{API}/decisions/evaluate", json={"workflowId": workflow_id, "record": {}})
        assert response.status_code == 404

    def test_invalid_version_string(self, client, branching_workflow, unique_id):
        definition = branching_workflow.model_copy(update={"id": unique_id, "version": "latest"})
        response = client.post(f"{API}/workflows/", json={"definition": definition.to_wire()})

        assert response.status_code == 400

    def test_batch_decisions(self, client, stored_workflow):
        client.post(f"{API}/workflows/{stored_workflow.id}/publish")

        response = client.post(
            f"{API}/decisions/batch",
            json={
                "workflowId": stored_workflow.id,
                "records": [{"creditScore": 780}, {"creditScore": 560}, {"creditScore": 810}],
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert (body["approved"], body["declined"], body["review"]) == (2, 1, 0)
        assert len(body["results"]) == 3


class TestImportExport:
    """Tests for export and import over HTTP."""

    def test_export_yaml(self, client, stored_workflow):
        response = client.get(f"{API}/workflows/{stored_workflow.id}/export", params={"format": "yaml"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-yaml")
        assert "checksum:" in response.text

    def test_import(self, client, branching_workflow, unique_id):
        definition = branching_workflow.model_copy(update={"id": unique_id})
        document = export_bundle(definition, "json")

        response = client.post(f"{API}/workflows/import", json={"content": document})
        assert response.status_code == 201
        assert response.json()["status"] == "draft"

        stored = client.get(f"{API}/workflows/{unique_id}").json()
        assert stored["nodes"] == definition.to_wire()["nodes"]

    def test_import_rejects_tampering(self, client, branching_workflow, unique_id):
        definition = branching_workflow.model_copy(update={"id": unique_id})
        document = export_bundle(definition, "json").replace("Credit Workflow", "Edited Workflow")

        response = client.post(f"{API}/workflows/import", json={"content": document})
        assert response.status_code == 400
        assert "Checksum" in response.json()["detail"]


class TestRuleEndpoints:
    """Tests for /rules."""

    def test_evaluate(self, client, credit_rules):
        response = client.post(
            f"{API}/rules/evaluate",
            json={
                "rules": [rule.to_wire() for rule in credit_rules],
                "record": {"creditScore": 580, "debtToIncomeRatio": 0.45},
            },
        )

        assert response.status_code == 200
        assert response.json()["decision"] == "decline"
        assert response.json()["matchedRules"] == ["decline-high-dti"]

    def test_evaluate_requires_rules(self, client):
        assert client.post(f"{API}/rules/evaluate", json={"record": {}}).status_code == 400

    def test_validate(self, client, credit_rules):
        payload = [rule.to_wire() for rule in credit_rules]
        payload.append({"id": "empty", "name": "Empty", "conditions": [], "actions": []})

        body = client.post(f"{API}/rules/validate", json=payload).json()
        assert [item["isValid"] for item in body] == [True, True, False]

    def test_templates(self, client):
        names = client.get(f"{API}/rules/templates").json()
        assert "high_credit_score" in names

        response = client.get(f"{API}/rules/templates/high_credit_score")
        assert response.json()["id"] == "high-credit-score"
        assert client.get(f"{API}/rules/templates/unknown").status_code == 404


class TestSimulationEndpoint:
    """Tests for /simulations/run."""

    def test_run(self, client, branching_workflow):
        draft = branching_workflow.model_copy(update={"status": "draft"}).to_wire()
        response = client.post(
            f"{API}/simulations/run",
            json={
                "workflow": draft,
                "testCases": [
                    {"id": "good", "inputData": {"creditScore": 780}, "expectedOutput": {"decision": "approve"}},
                    {"id": "bad", "inputData": {"creditScore": 520}, "expectedOutput": {"decision": "approve"}},
                ],
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert (body["total"], body["passed"], body["failed"]) == (2, 1, 1)
        assert body["results"][1]["differences"][0]["field"] == "decision"

    def test_run_needs_a_target(self, client):
        response = client.post(
            f"{API}/simulations/run",
            json={"testCases": [{"id": "x", "expectedOutput": {"decision": "review"}}]},
        )
        assert response.status_code == 422
