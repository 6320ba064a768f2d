from __future__ import annotations

import json
import logging

import pytest


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.integration
def test_healthz_endpoint(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.integration
def test_metrics_endpoint(client):
    client.get("/health")
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "dc_documents_added_total" in response.text


def test_access_log_line_carries_request_and_user(client, auth_context, caplog):
    with caplog.at_level(logging.INFO, logger="docucollect.access"):
        response = client.get("/documents", headers={"x-request-id": "req-123"})

    assert response.headers["x-request-id"] == "req-123"
    lines = [json.loads(record.getMessage()) for record in caplog.records if record.name == "docucollect.access"]
    assert lines[-1]["request_id"] == "req-123"
    assert lines[-1]["path"] == "/documents"
    assert lines[-1]["status"] == 200
    assert lines[-1]["user_id"] == auth_context["user_id"]
