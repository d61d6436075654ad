"""Tests for the Prometheus metrics."""

from datetime import datetime, timedelta, timezone

from prometheus_client import REGISTRY

from stowaway import metrics


def _sample(name: str, labels: dict | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestInitMetrics:
    """Tests for init_metrics()."""

    def test_idempotent(self):
        """A second call keeps the same collectors."""
        metrics.init_metrics()
        counter = metrics.commands_total
        metrics.init_metrics()
        assert metrics.commands_total is counter

    def test_collectors_created(self):
        """Every collector exists after initialisation."""
        metrics.init_metrics()
        assert metrics.commands_total is not None
        assert metrics.reauthentications_total is not None
        assert metrics.scheduled_deletions is not None
        assert metrics.expired_objects_total is not None
        assert metrics.expiry_failures_total is not None
        assert metrics.bytes_uploaded_total is not None
        assert metrics.bytes_downloaded_total is not None


class TestRecording:
    """Metrics recorded by the runtime."""

    def test_commands_counted(self, any_client):
        """Successful and failed commands are counted per kind."""
        metrics.init_metrics()
        labels_ok = {"command": "container_create", "status": "success"}
        labels_missing = {"command": "container_info", "status": "NotFound"}
        before_ok = _sample("stowaway_commands_total", labels_ok)
        before_missing = _sample("stowaway_commands_total", labels_missing)

        any_client.create_container("pics")
        assert not any_client.container("absent").exists()

        assert _sample("stowaway_commands_total", labels_ok) == before_ok + 1
        assert _sample("stowaway_commands_total", labels_missing) == before_missing + 1

    def test_bytes_counted(self, any_client):
        """Upload and download bodies are counted."""
        metrics.init_metrics()
        uploaded = _sample("stowaway_bytes_uploaded_total")
        downloaded = _sample("stowaway_bytes_downloaded_total")

        any_client.create_container("pics")
        any_client.upload_object("pics", "a.jpg", b"x" * 100)
        any_client.download_object("pics", "a.jpg")

        assert _sample("stowaway_bytes_uploaded_total") == uploaded + 100
        assert _sample("stowaway_bytes_downloaded_total") == downloaded + 100

    def test_expired_objects_counted(self, memory_client):
        """Objects removed by the sweeper are counted."""
        metrics.init_metrics()
        expired = _sample("stowaway_expired_objects_total")
        memory_client.create_container("tmp")
        memory_client.upload_object("tmp", "old.log", b"log")
        memory_client.container("tmp").get_object("old.log").set_delete_at(
            datetime.now(timezone.utc) - timedelta(seconds=1)
        )
        assert _sample("stowaway_scheduled_deletions") == 1

        memory_client.object_deleter.tick()

        assert _sample("stowaway_expired_objects_total") == expired + 1
        assert _sample("stowaway_scheduled_deletions") == 0
