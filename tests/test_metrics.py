"""Tests for observability metrics."""

import asyncio
import threading

import pytest
from fastapi.testclient import TestClient

import voicestock.api as api_module
from voicestock.api import app
from voicestock.commands.interpreter import CommandInterpreter
from voicestock.commands.pipeline import InterpretationPipeline, TextFragment
from voicestock.metrics import get_metrics_collector, is_metrics_enabled


@pytest.fixture
def client():
    """Create a test client with a fresh session registry."""
    api_module._session_registry = None
    yield TestClient(app)
    api_module._session_registry = None


def test_metrics_collector_records_fragments():
    """Test that MetricsCollector counts fragments correctly."""
    collector = get_metrics_collector()

    collector.record_fragment(is_final=False)
    collector.record_fragment(is_final=True)
    collector.record_fragment(is_final=True, relative=True)

    snapshot = collector.get_snapshot()

    assert snapshot["interim_fragments_ignored"] == 1
    assert snapshot["fragments_processed"] == 2
    assert snapshot["relative_term_hits"] == 1


def test_metrics_collector_records_commands():
    """Test completed and partial counts."""
    collector = get_metrics_collector()

    collector.record_completed("add")
    collector.record_completed("add")
    collector.record_completed("undo")
    collector.record_partial()

    snapshot = collector.get_snapshot()

    assert snapshot["completed_counts"] == {"add": 2, "undo": 1}
    assert snapshot["partial_emissions"] == 1


def test_metrics_collector_percentiles():
    """Test latency percentile calculation."""
    collector = get_metrics_collector()

    for lat in [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]:
        collector.record_interpretation(lat)
    collector.record_interpretation(5, failed=True)

    snapshot = collector.get_snapshot()

    assert 40 <= snapshot["interpret_latency_ms"]["p50"] <= 60
    assert 85 <= snapshot["interpret_latency_ms"]["p95"] <= 100
    assert snapshot["interpret_latency_ms"]["count"] == 11
    assert snapshot["interpreter_failures"] == 1


def test_empty_latency_percentiles():
    """Test that percentiles are None before any interpretation."""
    snapshot = get_metrics_collector().get_snapshot()

    assert snapshot["interpret_latency_ms"] == {"p50": None, "p95": None, "count": 0}


def test_pipeline_records_metrics(scripted_provider, config, clock):
    """Test that the pipeline feeds the collector."""
    scripted_provider.responses["add 5 pounds of"] = [
        {"action": "add", "quantity": 5, "unit": "pounds"}
    ]
    interpreter = CommandInterpreter(scripted_provider, timeout_seconds=1.0)
    pipeline = InterpretationPipeline("s", interpreter, config=config, clock=clock)

    asyncio.run(pipeline.process_fragment(TextFragment("add 5", is_final=False)))
    asyncio.run(pipeline.process_fragment(TextFragment("add 5 pounds of")))
    asyncio.run(pipeline.process_fragment(TextFragment("undo")))

    snapshot = get_metrics_collector().get_snapshot()
    assert snapshot["interim_fragments_ignored"] == 1
    assert snapshot["fragments_processed"] == 2
    assert snapshot["partial_emissions"] == 2
    assert snapshot["completed_counts"] == {"undo": 1}
    assert snapshot["interpret_latency_ms"]["count"] == 1


def test_metrics_endpoint_disabled_by_default(client, monkeypatch):
    """Test that /v1/metrics is disabled by default."""
    monkeypatch.delenv("VOICESTOCK_ENABLE_METRICS", raising=False)

    response = client.get("/v1/metrics")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_metrics_endpoint_enabled(client, monkeypatch):
    """Test that /v1/metrics works when enabled."""
    monkeypatch.setenv("VOICESTOCK_ENABLE_METRICS", "true")

    client.post("/v1/sessions/metrics-session/fragments", json={"text": "add 5 pounds of coffee"})
    response = client.get("/v1/metrics")

    assert response.status_code == 200
    data = response.json()
    assert data["fragments_processed"] == 1
    assert data["completed_counts"] == {"add": 1}
    assert data["interpret_latency_ms"]["count"] == 1


def test_is_metrics_enabled(monkeypatch):
    """Test is_metrics_enabled function."""
    monkeypatch.delenv("VOICESTOCK_ENABLE_METRICS", raising=False)
    assert is_metrics_enabled() is False

    for value in ["true", "True", "TRUE", "1", "yes"]:
        monkeypatch.setenv("VOICESTOCK_ENABLE_METRICS", value)
        assert is_metrics_enabled() is True

    for value in ["false", "False", "FALSE", "0", "no"]:
        monkeypatch.setenv("VOICESTOCK_ENABLE_METRICS", value)
        assert is_metrics_enabled() is False


def test_metrics_collector_thread_safety():
    """Test that MetricsCollector is thread-safe."""
    collector = get_metrics_collector()

    def record_many():
        for i in range(100):
            collector.record_interpretation(float(i))
            collector.record_completed("add")

    threads = [threading.Thread(target=record_many) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    snapshot = collector.get_snapshot()
    assert snapshot["interpret_latency_ms"]["count"] == 1000
    assert snapshot["completed_counts"]["add"] == 1000
