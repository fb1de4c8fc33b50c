"""Unit tests for the HTTP entry points."""

import base64
import random
from unittest.mock import patch

import pytest

from config.errors import CostScanError, ErrorCode, ValidationError
from services.aggregator import EstimationAggregator
from services.document_analysis import NullDocumentAnalyzer
from services.exchange_rate_service import ExchangeRateService
from services.feedback_service import FeedbackService
from services.fallback_estimator import FallbackEstimator
from services.project_service import ProjectService


class FakeRequest:
    """Minimal stand-in for a Flask request."""

    def __init__(self, body=None, method="POST", headers=None):
        self.method = method
        self.headers = headers or {}
        self.content_type = "application/json"
        self.files = None
        self.form = {}
        self._body = body

    def get_json(self, force=False, silent=False):
        return self._body


@pytest.fixture
def main_module(memory_store, memory_storage, monkeypatch):
    with patch("firebase_admin.initialize_app"):
        import main

    service = ProjectService(
        store=memory_store,
        storage=memory_storage,
        analyzer=NullDocumentAnalyzer(),
        aggregator=EstimationAggregator(FallbackEstimator(rng=random.Random(3))),
    )
    monkeypatch.setattr(main, "_project_service", lambda: service)
    monkeypatch.setattr(main, "_feedback_service", lambda: FeedbackService(memory_store))
    monkeypatch.setattr(main, "_exchange_rate_service", lambda: ExchangeRateService(api_url="", store=memory_store))
    monkeypatch.setattr(main, "get_ai_config", lambda: None)
    monkeypatch.setenv("FUNCTIONS_EMULATOR", "true")
    return main


def call(endpoint, body, headers=None):
    response = endpoint(FakeRequest(body, headers=headers))
    return response.status_code, response.get_json()


@pytest.mark.parametrize("error,status", [
    (ValidationError(message="bad"), 400),
    (CostScanError(code=ErrorCode.FILE_TOO_LARGE, message="big"), 400),
    (CostScanError(code=ErrorCode.UNAUTHENTICATED, message="who"), 401),
    (CostScanError(code=ErrorCode.PROJECT_NOT_FOUND, message="gone"), 404),
    (CostScanError(code=ErrorCode.PIPELINE_INVALID_STATE, message="busy"), 409),
    (CostScanError(code=ErrorCode.FIRESTORE_WRITE_FAILED, message="down"), 500),
])
def test_status_for_error(main_module, error, status):
    assert main_module.status_for_error(error) == status


def test_error_response_shape(main_module):
    assert main_module.error_response("NO_FILES", "Upload files first") == {
        "success": False,
        "error": {"code": "NO_FILES", "message": "Upload files first", "details": {}},
    }


class TestAuthentication:
    """Tests for caller identity."""

    def test_emulator_accepts_body_user_id(self, main_module, memory_store):
        status, body = call(main_module.create_project, {"userId": "user-1", "name": "Villa", "type": "Residential"})

        assert status == 200
        assert body["data"]["status"] == "draft"
        assert memory_store.projects[("user-1", body["data"]["id"])].name == "Villa"

    def test_missing_identity_outside_emulator(self, main_module, monkeypatch):
        monkeypatch.delenv("FUNCTIONS_EMULATOR")
        monkeypatch.delenv("FIRESTORE_EMULATOR_HOST", raising=False)

        status, body = call(main_module.list_projects, {"userId": "user-1"})

        assert status == 401
        assert body["error"]["code"] == ErrorCode.UNAUTHENTICATED

    def test_bearer_token_identifies_user(self, main_module):
        with patch.object(main_module.auth, "verify_id_token", return_value={"uid": "user-9"}):
            status, body = call(
                main_module.create_project,
                {"userId": "user-1", "name": "Villa", "type": "Residential"},
                headers={"Authorization": "Bearer token-abc"},
            )
            _, listed = call(main_module.list_projects, {}, headers={"Authorization": "Bearer token-abc"})

        assert status == 200
        assert [p["id"] for p in listed["data"]] == [body["data"]["id"]]

    def test_rejected_token(self, main_module):
        with patch.object(main_module.auth, "verify_id_token", side_effect=ValueError("expired")):
            status, body = call(main_module.list_projects, {}, headers={"Authorization": "Bearer stale"})

        assert status == 401


class TestEndpoints:
    """Request/response mapping for the project endpoints."""

    def _create(self, main_module):
        _, body = call(main_module.create_project, {"userId": "user-1", "name": "Villa", "type": "Residential"})
        return body["data"]["id"]

    def test_preflight(self, main_module):
        response = main_module.create_project(FakeRequest(method="OPTIONS"))
        assert response.status_code == 204

    def test_missing_project_id(self, main_module):
        status, body = call(main_module.get_project, {"userId": "user-1"})

        assert status == 400
        assert body["error"]["code"] == ErrorCode.MISSING_FIELD

    def test_unknown_project(self, main_module):
        status, body = call(main_module.get_project, {"userId": "user-1", "projectId": "proj-nope"})

        assert status == 404
        assert body["error"]["code"] == ErrorCode.PROJECT_NOT_FOUND

    def test_non_object_body(self, main_module):
        status, _ = call(main_module.list_projects, ["user-1"])
        assert status == 400

    def test_upload_process_and_localize(self, main_module):
        project_id = self._create(main_module)
        encoded = base64.b64encode(b"Ground floor slab 120 m2").decode()

        status, uploaded = call(main_module.upload_project_files, {
            "userId": "user-1",
            "projectId": project_id,
            "files": [{"fileName": "notes.txt", "contentType": "text/plain", "data": encoded}],
        })
        assert status == 200
        assert uploaded["data"][0]["processingStatus"] == "pending"

        status, processed = call(main_module.start_processing, {"userId": "user-1", "projectId": project_id})
        assert status == 200
        assert processed["data"]["status"] == "completed"
        assert processed["data"]["source"] == "simulation"

        status, again = call(main_module.start_processing, {"userId": "user-1", "projectId": project_id})
        assert status == 409

        status, localized = call(main_module.get_localized_estimate, {
            "userId": "user-1", "projectId": project_id, "countryCode": "DE",
        })
        assert status == 200
        assert localized["data"]["currency"] == "EUR"
        assert localized["data"]["total_display"].startswith("€")

    def test_upload_rejects_bad_base64(self, main_module):
        project_id = self._create(main_module)

        status, body = call(main_module.upload_project_files, {
            "userId": "user-1",
            "projectId": project_id,
            "files": [{"fileName": "plan.pdf", "data": "not base64!"}],
        })

        assert status == 400
        assert body["error"]["code"] == ErrorCode.INVALID_FIELD

    def test_start_processing_without_files(self, main_module):
        project_id = self._create(main_module)

        status, body = call(main_module.start_processing, {"userId": "user-1", "projectId": project_id})

        assert status == 400
        assert body["error"]["code"] == ErrorCode.NO_FILES

    def test_list_countries_needs_no_auth(self, main_module, monkeypatch):
        monkeypatch.delenv("FUNCTIONS_EMULATOR")

        status, body = call(main_module.list_countries, {})

        assert status == 200
        assert body["data"]["baseCurrency"] == "USD"
        assert any(c["code"] == "JP" for c in body["data"]["countries"])

    def test_assistant_without_provider(self, main_module):
        project_id = self._create(main_module)

        status, body = call(main_module.project_assistant, {
            "userId": "user-1", "projectId": project_id, "question": "How can I reduce the budget?",
        })

        assert status == 200
        assert body["data"]["configured"] is False
        assert "cost optimization" in body["data"]["answer"]

    def test_list_countries_uses_stored_rates(self, main_module, memory_store):
        memory_store.exchange_rates = {"USD": 1.0, "EUR": 0.5}

        status, body = call(main_module.list_countries, {})

        assert status == 200
        assert body["data"]["exchangeRates"]["EUR"] == 0.5


def _completed_project(main_module):
    _, created = call(main_module.create_project, {"userId": "user-1", "name": "Villa", "type": "Residential"})
    project_id = created["data"]["id"]
    call(main_module.upload_project_files, {
        "userId": "user-1",
        "projectId": project_id,
        "files": [{"fileName": "plan.pdf", "contentType": "application/pdf",
                   "data": base64.b64encode(b"%PDF-1.4 slab").decode()}],
    })
    call(main_module.start_processing, {"userId": "user-1", "projectId": project_id})
    return project_id


class TestFeedbackEndpoints:
    """Annotations and training data over HTTP."""

    def test_annotate_collect_and_export(self, main_module):
        project_id = _completed_project(main_module)

        status, correction = call(main_module.submit_annotation, {
            "userId": "user-1", "projectId": project_id, "annotationType": "correction",
            "itemIndex": 0, "correctedValue": {"amount": 1000.0}, "notes": "Measured on site",
        })
        assert status == 200
        assert correction["data"]["annotationType"] == "correction"
        assert correction["data"]["originalValue"]["amount"] > 0

        call(main_module.submit_annotation, {
            "userId": "user-1", "projectId": project_id, "annotationType": "verification", "itemIndex": 1,
        })
        _, listed = call(main_module.list_annotations, {"userId": "user-1", "projectId": project_id})
        assert [a["annotationType"] for a in listed["data"]] == ["correction", "verification"]

        status, record = call(main_module.collect_training_data, {
            "userId": "user-1", "projectId": project_id, "region": "de",
        })
        assert status == 200
        assert record["data"]["region"] == "DE"
        assert record["data"]["annotationCount"] == 2
        assert record["data"]["costs"][0]["actualAmount"] == 1000.0
        assert record["data"]["documents"][0]["documentType"] == "drawing"

        _, stats = call(main_module.get_training_stats, {"userId": "user-1"})
        assert stats["data"]["totalProjects"] == 1
        assert stats["data"]["dataByRegion"] == {"DE": 1}

        _, exported = call(main_module.export_training_data, {"userId": "user-1", "format": "CSV"})
        assert exported["data"]["format"] == "csv"
        lines = exported["data"]["content"].splitlines()
        assert lines[0] == "project_id,project_name,project_type,quality_score,region,completion_date"
        assert lines[1].startswith(f"{project_id},Villa,Residential,")

    def test_draft_project_cannot_be_annotated(self, main_module):
        _, created = call(main_module.create_project, {"userId": "user-1", "name": "Villa", "type": "Residential"})

        status, body = call(main_module.submit_annotation, {
            "userId": "user-1", "projectId": created["data"]["id"], "annotationType": "verification", "itemIndex": 0,
        })

        assert status == 409
        assert body["error"]["code"] == ErrorCode.PIPELINE_INVALID_STATE

    def test_unknown_export_format(self, main_module):
        status, body = call(main_module.export_training_data, {"userId": "user-1", "format": "xml"})

        assert status == 400
        assert body["error"]["code"] == ErrorCode.INVALID_FIELD


class TestScheduledRefresh:
    """The daily exchange-rate refresh."""

    def test_refresh_stores_rates(self, main_module, memory_store, monkeypatch):
        async def refresh():
            await memory_store.save_exchange_rates({"USD": 1.0, "EUR": 0.8})
            return {"USD": 1.0, "EUR": 0.8}

        service = ExchangeRateService(api_url="", store=memory_store)
        monkeypatch.setattr(service, "refresh", refresh)
        monkeypatch.setattr(main_module, "_exchange_rate_service", lambda: service)

        assert main_module.run_exchange_rate_refresh() == {"USD": 1.0, "EUR": 0.8}
        assert memory_store.exchange_rates == {"USD": 1.0, "EUR": 0.8}

    def test_refresh_without_api_is_a_noop(self, main_module, memory_store):
        rates = main_module.run_exchange_rate_refresh()

        assert rates["USD"] == 1.0
        assert memory_store.exchange_rates is None

    def test_refresh_failure_is_raised(self, main_module, monkeypatch):
        async def refresh():
            raise CostScanError(code=ErrorCode.EXCHANGE_RATE_ERROR, message="Failed to fetch exchange rates: 503")

        service = ExchangeRateService(api_url="https://rates.example.com")
        monkeypatch.setattr(service, "refresh", refresh)
        monkeypatch.setattr(main_module, "_exchange_rate_service", lambda: service)

        with pytest.raises(CostScanError) as exc_info:
            main_module.run_exchange_rate_refresh()
        assert exc_info.value.code == ErrorCode.EXCHANGE_RATE_ERROR
