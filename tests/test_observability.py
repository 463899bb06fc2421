import json

from fastapi.testclient import TestClient

from explorer.obs.context import bind_search, clear_context, request_id_var
from explorer.obs.logger import log_event
from explorer.obs.metrics import (
    get_counter,
    get_metrics_snapshot,
    inc_counter,
    record_price_source,
    record_timing,
    record_tier_outcome,
    reset_metrics,
)


def last_line(capsys):
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


def test_log_event_emits_one_json_line(capsys):
    clear_context()
    log_event("price_lookup_failed", level="WARNING", destination="BCN")
    line = last_line(capsys)
    assert line["event"] == "price_lookup_failed"
    assert line["level"] == "WARNING"
    assert line["destination"] == "BCN"
    assert line["request_id"] is None
    assert "origin" not in line


def test_log_event_carries_request_context(capsys):
    clear_context()
    request_id_var.set("req-1")
    bind_search("LHR", "beach")
    try:
        log_event("tier_succeeded", tier="static_catalog")
        line = last_line(capsys)
    finally:
        clear_context()
    assert (line["request_id"], line["origin"], line["theme"]) == ("req-1", "LHR", "beach")


def test_logger_redacts_secrets(capsys):
    log_event("token", client_secret="s3cret", access_token="abc")
    captured = capsys.readouterr().out
    assert "s3cret" not in captured
    assert "abc" not in captured


def test_log_event_survives_unencodable_values(capsys):
    log_event("odd", value=object(), nan=float("nan"))
    assert last_line(capsys)["event"] == "odd"


def test_counters_and_snapshot():
    reset_metrics()
    inc_counter("requests_total", {"route": "/health", "status": "200"})
    inc_counter("requests_total", {"status": "200", "route": "/health"}, amount=2)
    record_price_source("estimated")
    record_tier_outcome("remote_backend", "failed")
    record_timing("price_lookup_ms", 42.0)
    record_timing("price_lookup_ms", None)

    assert get_counter("requests_total", {"route": "/health", "status": "200"}) == 3
    assert get_counter("price_quotes_total", {"source": "estimated"}) == 1
    assert get_counter("tier_attempts_total", {"tier": "remote_backend", "outcome": "failed"}) == 1

    snapshot = get_metrics_snapshot()
    [hist] = [h for h in snapshot["histograms"] if h["name"] == "price_lookup_ms"]
    assert sum(hist["counts"]) == 1
    assert hist["counts"][1] == 1  # 25 < 42 <= 50
    assert hist["sum_ms"] == 42.0

    reset_metrics()
    assert get_metrics_snapshot() == {"counters": [], "histograms": []}


def test_request_metrics_recorded_by_middleware():
    from main import app
    reset_metrics()
    client = TestClient(app)

    assert client.get("/health").status_code == 200
    data = client.get("/metrics").json()

    assert any(
        c["name"] == "requests_total" and c["labels"] == {"route": "/health", "status": "200"}
        for c in data["counters"]
    )
    assert any(
        h["name"] == "request_latency_ms" and h["labels"].get("route") == "/health"
        for h in data["histograms"]
    )
