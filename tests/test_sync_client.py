"""
Two-way sync client tests. The peer is simulated with httpx.MockTransport.
"""

import json

import httpx
import pytest

from storebook.extensions import db
from storebook.models import Product
from storebook.services.settings_service import get_settings, record_sync_result, update_settings
from storebook.services.sync_client import (
    SyncTransportError,
    resolve_remote_url,
    run_two_way_sync,
)
from storebook.services.sync_service import snapshot


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _peer_state(products=None, partners=None, transactions=None) -> dict:
    return {
        "products": products or [],
        "partners": partners or [],
        "transactions": transactions or [],
    }


class TestRemoteUrl:
    def test_argument_wins(self, db_session):
        update_settings({"remote_url": "http://from-settings.test"})
        assert resolve_remote_url("http://explicit.test") == "http://explicit.test"

    def test_settings_then_config(self, app, db_session):
        assert resolve_remote_url() == app.config["DEFAULT_REMOTE_URL"]
        update_settings({"remote_url": "http://from-settings.test"})
        assert resolve_remote_url() == "http://from-settings.test"


class TestTwoWaySync:
    def test_pushes_snapshot_then_applies_peer_state(self, mouse):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={
                "success": True,
                "received_count": {"products": 1, "partners": 0, "transactions": 0},
                "conflicts": [],
                "current_state": _peer_state(products=[
                    {"name": "Wireless Mouse", "quantity": 50, "cost_price_cents": 1000, "selling_price_cents": 2500},
                    {"name": "Desk Lamp", "quantity": 4, "cost_price_cents": 1500, "selling_price_cents": 3900},
                ]),
            })

        summary = run_two_way_sync("http://peer.test/", client=_client(handler))

        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert str(seen[0].url) == "http://peer.test/api/sync/process"
        body = json.loads(seen[0].content)
        assert [p["name"] for p in body["products"]] == ["Wireless Mouse"]

        assert summary["pushed"] == {"products": 1, "partners": 0, "transactions": 0}
        assert summary["pulled"] == {"products": 2, "partners": 0, "transactions": 0}
        assert db.session.query(Product).filter_by(name="Desk Lamp").count() == 1

        settings = get_settings()
        assert settings.last_sync_status == "success"
        assert settings.last_sync_error is None
        assert settings.last_sync_at is not None

    def test_echoing_peer_changes_nothing(self, user, mouse):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"current_state": json.loads(request.content)})

        before = snapshot()
        run_two_way_sync("http://peer.test", client=_client(handler))
        assert snapshot() == before

    def test_sends_sync_token_when_configured(self, app, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "SYNC_TOKEN", "s3cret")
        tokens = []

        def handler(request: httpx.Request) -> httpx.Response:
            tokens.append(request.headers.get("X-Sync-Token"))
            return httpx.Response(200, json={"current_state": _peer_state()})

        run_two_way_sync("http://peer.test", client=_client(handler))
        assert tokens == ["s3cret"]

    def test_non_2xx_is_a_transport_error(self, mouse):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="maintenance")

        with pytest.raises(SyncTransportError) as exc_info:
            run_two_way_sync("http://peer.test", client=_client(handler))

        assert exc_info.value.leg == "remote"
        assert exc_info.value.status_code == 503
        settings = get_settings()
        assert settings.last_sync_status == "error"
        assert "503" in settings.last_sync_error

    def test_unreachable_peer(self, db_session):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(SyncTransportError):
            run_two_way_sync("http://peer.test", client=_client(handler))
        assert get_settings().last_sync_status == "error"

    def test_missing_current_state(self, db_session):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True})

        with pytest.raises(SyncTransportError):
            run_two_way_sync("http://peer.test", client=_client(handler))

    def test_malformed_peer_state_fails_local_leg(self, db_session):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"current_state": {"products": "nope"}})

        with pytest.raises(SyncTransportError) as exc_info:
            run_two_way_sync("http://peer.test", client=_client(handler))
        assert exc_info.value.leg == "local"

    def test_unexpected_local_failure_is_recorded(self, db_session, monkeypatch):
        record_sync_result(success=True)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"current_state": _peer_state()})

        def broken_reconcile(state):
            raise RuntimeError("disk full")

        monkeypatch.setattr("storebook.services.sync_client.reconcile", broken_reconcile)

        with pytest.raises(RuntimeError):
            run_two_way_sync("http://peer.test", client=_client(handler))

        settings = get_settings()
        assert settings.last_sync_status == "error"
        assert "disk full" in settings.last_sync_error
