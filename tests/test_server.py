"""Tests for the scrape app."""

from __future__ import annotations

from fastapi.testclient import TestClient

from sysmetrics.catalog import METRICS
from sysmetrics.obs.registry import Update
from sysmetrics.server import create_app


def metric_lines(body: str) -> list[str]:
    return [line for line in body.splitlines() if line and not line.startswith("#")]


class TestScrape:
    def test_fresh_registry_lists_every_metric_at_zero(self, registry, handles) -> None:
        client = TestClient(create_app(registry))
        r = client.get("/metrics")

        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/plain")
        assert metric_lines(r.text) == [f"{d.name} 0" for d in METRICS]
        for d in METRICS:
            assert f"# HELP {d.name} {d.help}" in r.text
            assert f"# TYPE {d.name} {d.kind.value}" in r.text

    def test_root_path_serves_the_same_body(self, registry, handles) -> None:
        client = TestClient(create_app(registry))
        assert client.get("/").text == client.get("/metrics").text

    def test_scrape_reflects_committed_values(self, registry, handles) -> None:
        registry.update_group([
            Update(handles["total_memory"], 1000),
            Update(handles["free_memory"], 250),
            Update(handles["used_memory"], 750),
        ])
        registry.increment_counter(handles["allocation_policy_best_fit_count"])
        registry.set_gauge(handles["best_fit_fragmentation"], 0.2)

        body = TestClient(create_app(registry)).get("/metrics").text

        lines = metric_lines(body)
        assert "total_memory 1000" in lines
        assert "free_memory 250" in lines
        assert "used_memory 750" in lines
        assert "allocation_policy_best_fit_count 1" in lines
        assert "best_fit_fragmentation 0.2" in lines
        assert len(lines) == len(METRICS)

    def test_scrape_does_not_mutate_registry(self, registry, handles) -> None:
        before = registry.snapshot()
        client = TestClient(create_app(registry))
        client.get("/metrics")
        client.get("/metrics")
        assert registry.snapshot() == before

    def test_closed_registry_returns_503(self, registry, handles) -> None:
        registry.close()
        r = TestClient(create_app(registry)).get("/metrics")
        assert r.status_code == 503


def test_health(registry, handles) -> None:
    client = TestClient(create_app(registry, state=lambda: "running"))
    assert client.get("/health").json() == {"ok": True, "state": "running", "metrics": len(METRICS)}
