from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY, CollectorRegistry

from vantage_exporter.main import create_app, run

from conftest import make_transaction, page


SKILLS = "/api/publicapi/v1/skills"
ACTIVE = "/api/publicapi/v1/transactions/active"
COMPLETED = "/api/publicapi/v1/transactions/completed"


@pytest.fixture
def app_client(client):
    app = create_app(client=client, registry=CollectorRegistry(), detail_limit=0)
    return TestClient(app)


def test_health_endpoint(app_client, fake_vantage):
    response = app_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert fake_vantage.requests == []


def test_metrics_endpoint(app_client, fake_vantage):
    fake_vantage.routes[SKILLS] = [
        {"id": "s1", "name": "Invoices", "type": "Document"},
        {"id": "s2", "name": "Receipts", "type": "Document"},
    ]

    response = app_client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    body = response.text
    assert body.count("vantage_skill_info{") == 2
    assert 'skill_id="s1",skill_name="Invoices",skill_type="Document"' in body


def test_metrics_endpoint_degrades_on_upstream_failure(app_client, fake_vantage):
    fake_vantage.routes["/auth2/connect/token"] = (500, b"down")

    response = app_client.get("/metrics")

    assert response.status_code == 200
    assert "vantage_skill_info{" not in response.text


def test_transaction_details_requires_skills(app_client, fake_vantage):
    for params in ({}, {"skills": ""}, {"skills": "{}"}, {"skills": " , "}):
        response = app_client.get("/transaction-details", params=params)
        assert response.status_code == 400

    assert fake_vantage.requests == []


def test_transaction_details(app_client, fake_vantage):
    fake_vantage.routes[SKILLS] = [
        {"id": "a", "name": "Alpha"},
        {"id": "b", "name": "Beta"},
    ]
    fake_vantage.routes[ACTIVE] = page(
        make_transaction("t1", "b", page_count=6, reviewer=("Ann", ""))
    )
    fake_vantage.routes[COMPLETED] = page(
        make_transaction("t2", "a", status="Finished Successfully", page_count=3),
        make_transaction("t3", "a", status="Failed", page_count=1),
    )

    response = app_client.get("/transaction-details", params={"skills": "{a,b}"})

    assert response.status_code == 200
    data = response.json()
    assert [item["skill_id"] for item in data] == ["a", "b"]

    alpha, beta = data
    assert alpha["skill_name"] == "Alpha"
    assert alpha["total_transactions"] == 2
    assert alpha["avg_pages_per_transaction"] == 2.0
    assert alpha["completed_success"] == 1
    assert alpha["completed_failed"] == 1
    assert alpha["status_breakdown"] == {"Finished Successfully": 1, "Failed": 1}

    assert beta["active_manual_review"] == 1
    assert beta["avg_pages_per_transaction"] == 6.0
    assert set(beta) == {
        "skill_id",
        "skill_name",
        "total_transactions",
        "completed_success",
        "completed_failed",
        "active_processing",
        "active_manual_review",
        "avg_pages_per_transaction",
        "avg_documents_per_transaction",
        "business_rules_errors_total",
        "stage_breakdown",
        "status_breakdown",
        "file_type_breakdown",
    }


def test_transaction_details_fetches_each_source_once(app_client, fake_vantage):
    app_client.get("/transaction-details?skills=a,b,c")

    for path in (SKILLS, ACTIVE, COMPLETED):
        assert len(fake_vantage.calls(path)) == 1


@pytest.mark.parametrize("failing", [SKILLS, ACTIVE, COMPLETED])
def test_transaction_details_upstream_failure(app_client, fake_vantage, failing):
    fake_vantage.routes[failing] = (503, b"unavailable")

    response = app_client.get("/transaction-details?skills=a")

    assert response.status_code == 500
    assert "unavailable" in response.json()["detail"]


def test_transaction_details_with_details(client, fake_vantage):
    app = create_app(client=client, registry=CollectorRegistry(), detail_limit=5)
    fake_vantage.routes[COMPLETED] = page(make_transaction("t1", "a"))
    fake_vantage.routes["/api/publicapi/v1/transactions/t1"] = {
        "id": "t1",
        "documents": [
            {
                "resultFiles": [{"type": "Json"}],
                "businessRulesErrors": [{"type": "Error"}],
            }
        ],
    }

    response = TestClient(app).get("/transaction-details?skills=a")

    [item] = response.json()
    assert item["business_rules_errors_total"] == 1
    assert item["file_type_breakdown"] == {"Json": 1}


def test_skills_endpoint(app_client, fake_vantage):
    fake_vantage.routes[SKILLS] = [{"id": "s1", "name": "Invoices"}]

    first = app_client.get("/skills")
    second = app_client.get("/skills")

    assert first.status_code == 200
    assert first.json() == [{"value": "s1", "text": "Invoices (s1)"}]
    assert second.json() == first.json()
    assert len(fake_vantage.calls(SKILLS)) == 1


def test_skills_endpoint_upstream_failure(app_client, fake_vantage):
    fake_vantage.routes[SKILLS] = (500, b"boom")

    response = app_client.get("/skills")

    assert response.status_code == 500
    assert "failed to get skills" in response.json()["detail"]


def test_request_metrics_use_route_template(app_client):
    labels = {"endpoint": "unmatched", "method": "GET", "status_code": "404"}
    before = REGISTRY.get_sample_value("http_requests_total", labels) or 0

    app_client.get("/random-a")
    app_client.get("/random-b")
    app_client.get("/health")

    assert REGISTRY.get_sample_value("http_requests_total", labels) == before + 2
    assert (
        REGISTRY.get_sample_value(
            "http_requests_total",
            {"endpoint": "/random-a", "method": "GET", "status_code": "404"},
        )
        is None
    )
    assert REGISTRY.get_sample_value(
        "http_requests_total",
        {"endpoint": "/health", "method": "GET", "status_code": "200"},
    ) >= 1


def test_empty_env_values_use_defaults(client, monkeypatch):
    """Set-but-empty variables behave as unset"""
    monkeypatch.setenv("VANTAGE_DETAIL_LIMIT", "")
    monkeypatch.setenv("VANTAGE_METRICS_PORT", "")
    monkeypatch.setenv("LOG_LEVEL", "")

    create_app(client=client, registry=CollectorRegistry())

    with patch("vantage_exporter.main.uvicorn.run") as mock_run, patch(
        "vantage_exporter.main.create_app"
    ), patch("vantage_exporter.main.setup_logging") as mock_logging:
        run()

    assert mock_run.call_args.kwargs["port"] == 8080
    mock_logging.assert_called_once_with("vantage-exporter", "INFO")
