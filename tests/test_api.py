import logging

import pytest
import uvicorn
from fastapi.testclient import TestClient

from a11y_aggregator.api import AggregationAPI
from a11y_aggregator.config import LOG_FORMAT, AggregatorConfig
from a11y_aggregator.integration import IntegrationHookManager
from helpers import SITE_ID, category, page_record, put_json, raw_key, snapshot_key

VERSION = "2024-01-15"


@pytest.fixture
def api(storage):
    config = AggregatorConfig(storage_backend="local", bucket_name=storage.bucket_name)
    return AggregationAPI(
        config=config,
        storage=storage,
        hook_manager=IntegrationHookManager(async_execution=False)
    )


@pytest.fixture
def client(api):
    return TestClient(api.app)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["storage_backend"] == "local"
    assert response.json()["webhooks_enabled"] is True


def test_run_aggregation(client, storage):
    put_json(storage, raw_key(VERSION, "file1.json"), page_record(
        "https://example.com/a", total=5, critical=category(3, label=3), serious=category(2, list=2), traffic=100
    ))

    response = client.post("/api/aggregations", json={"site_id": SITE_ID, "version": VERSION})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["output_key"] == snapshot_key(VERSION)
    assert body["final_result_files"]["current"]["overall"]["violations"]["total"] == 5


def test_run_aggregation_without_data(client):
    response = client.post("/api/aggregations", json={"site_id": SITE_ID, "version": VERSION})

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["reason"] == "no_data_for_site"


def test_run_aggregation_rejects_bad_input(client):
    assert client.post("/api/aggregations", json={"site_id": SITE_ID, "version": "15/01/2024"}).status_code == 422
    assert client.post("/api/aggregations", json={"site_id": SITE_ID, "audit_type": "seo"}).status_code == 400


def test_list_snapshots_and_urls(client, storage):
    put_json(storage, snapshot_key("2024-01-08"), {"overall": {}})
    put_json(storage, snapshot_key(VERSION), {
        "overall": {"violations": {"total": 1}},
        "https://example.com/a": {"violations": {}, "traffic": 3}
    })

    snapshots = client.get(f"/api/sites/{SITE_ID}/snapshots").json()
    urls = client.get(f"/api/sites/{SITE_ID}/urls").json()

    assert [s["date"] for s in snapshots] == ["2024-01-08", VERSION]
    assert urls["urls"] == [{"url": "https://example.com/a", "urlId": "example.com/a", "traffic": 3}]


def test_webhook_registration(client):
    response = client.post("/api/webhooks", json={
        "name": "ops",
        "url": "https://hooks.example.com/a11y",
        "events": ["AGGREGATION_COMPLETED"]
    })
    assert response.status_code == 200

    listed = client.get("/api/webhooks").json()
    assert listed["webhooks"] == [{"name": "ops", "type": "WebhookHook"}]


def test_webhook_registration_rejects_unknown_event(client):
    response = client.post("/api/webhooks", json={
        "name": "ops",
        "url": "https://hooks.example.com/a11y",
        "events": ["SCAN_STARTED"]
    })

    assert response.status_code == 400


def test_api_key_required_when_configured(storage):
    config = AggregatorConfig(storage_backend="local", api_key="secret")
    client = TestClient(AggregationAPI(config=config, storage=storage, enable_webhooks=False).app)

    assert client.get(f"/api/sites/{SITE_ID}/snapshots").status_code == 401
    assert client.get(f"/api/sites/{SITE_ID}/snapshots", headers={"X-API-Key": "secret"}).status_code == 200
    assert client.get("/health").status_code == 200
    assert client.get("/api/webhooks", headers={"X-API-Key": "secret"}).status_code == 501


def test_list_urls_rejects_unknown_audit_type(client):
    response = client.get(f"/api/sites/{SITE_ID}/urls", params={"audit_type": "seo"})

    assert response.status_code == 400


def test_run_configures_logging_before_serving(api, monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(("logging", kwargs)))
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append(("uvicorn", kwargs)))

    api.run(host="127.0.0.1", port=9000)

    assert calls == [
        ("logging", {"level": "INFO", "format": LOG_FORMAT}),
        ("uvicorn", {"host": "127.0.0.1", "port": 9000, "log_level": "info"}),
    ]
