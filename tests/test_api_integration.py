"""
Integration tests for the Simple DeFi Token API
Tests end-to-end flows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from token_ledger import api
from token_ledger.api import app, get_token_system, TokenSystem
from token_ledger.config import TokenConfig

from tests.conftest import DEPLOYER, ADDR1, ADDR2, ADDR3

ZERO = "0x" + "0" * 40


@pytest.fixture
def system():
    return TokenSystem(config=TokenConfig(database_url="memory"), deployer=DEPLOYER)


@pytest.fixture
def client(system):
    """Test client bound to a freshly deployed token"""
    app.dependency_overrides[get_token_system] = lambda: system
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        data = r.json()
        assert data["system"] == "Simple DeFi Token"
        assert "endpoints" in data


class TestTokenQueries:
    """Test metadata, balance and allowance queries"""

    def test_token_metadata(self, client, system):
        data = client.get("/token").json()
        assert data["name"] == "Simple DeFi Token"
        assert data["symbol"] == "SDFT"
        assert data["decimals"] == 18
        assert data["total_supply"] == "1000000.0"
        assert data["total_supply_base_units"] == str(10 ** 24)
        assert data["deployer"] == DEPLOYER
        assert data["address"] == system.address
        assert data["address"].startswith("0x") and len(data["address"]) == 42

    def test_balance(self, client):
        data = client.get(f"/balances/{DEPLOYER}").json()
        assert data["balance"] == "1000000.0"
        assert client.get(f"/balances/{ADDR1}").json()["balance"] == "0.0"

    def test_balance_lookup_is_case_insensitive(self, client):
        assert client.get(f"/balances/{DEPLOYER.upper().replace('0X', '0x')}").json()["balance"] == "1000000.0"


class TestTransferFlow:
    """End-to-end transfer tests"""

    def test_transfer(self, client):
        r = client.post("/transfer", json={"sender": DEPLOYER, "recipient": ADDR1, "amount": "5"})
        assert r.status_code == 200
        data = r.json()
        assert data["sender_balance"] == "999995.0"
        assert data["recipient_balance"] == "5.0"

    def test_transfer_insufficient_balance(self, client):
        client.post("/transfer", json={"sender": DEPLOYER, "recipient": ADDR1, "amount": "5"})
        r = client.post("/transfer", json={"sender": ADDR1, "recipient": ADDR2, "amount": "10"})
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "insufficient_balance"
        assert client.get(f"/balances/{ADDR1}").json()["balance"] == "5.0"

    def test_transfer_to_zero_address(self, client):
        r = client.post("/transfer", json={"sender": DEPLOYER, "recipient": ZERO, "amount": "1"})
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "invalid_recipient"

    def test_transfer_with_burn(self, client):
        client.post("/transfer", json={"sender": DEPLOYER, "recipient": ADDR1, "amount": "1"})
        r = client.post("/transfer-with-burn", json={"sender": ADDR1, "recipient": ADDR2, "amount": "1"})
        assert r.status_code == 200
        data = r.json()
        assert data["burned"] == "0.1"
        assert data["delivered"] == "0.9"
        assert data["total_supply"] == "999999.9"
        assert client.get(f"/balances/{ADDR2}").json()["balance"] == "0.9"
        assert client.get(f"/balances/{ADDR1}").json()["balance"] == "0.0"

    @pytest.mark.parametrize("payload", [
        {"sender": DEPLOYER, "recipient": ADDR1, "amount": "-1"},
        {"sender": DEPLOYER, "recipient": ADDR1, "amount": "abc"},
        {"sender": DEPLOYER, "recipient": ADDR1, "amount": "0.0000000000000000001"},
        {"sender": "not-an-address", "recipient": ADDR1, "amount": "1"},
        {"sender": DEPLOYER, "amount": "1"},
    ])
    def test_invalid_requests(self, client, payload):
        r = client.post("/transfer", json=payload)
        assert r.status_code == 422


class TestAllowanceFlow:
    """End-to-end approve / transfer_from tests"""

    def test_approve_and_transfer_from(self, client):
        r = client.post("/approve", json={"owner": DEPLOYER, "spender": ADDR1, "amount": "10"})
        assert r.status_code == 200
        assert client.get(f"/allowances/{DEPLOYER}/{ADDR1}").json()["allowance"] == "10.0"

        r = client.post("/transfer-from", json={
            "spender": ADDR1, "owner": DEPLOYER, "recipient": ADDR3, "amount": "4"
        })
        assert r.status_code == 200
        assert r.json()["remaining_allowance"] == "6.0"
        assert client.get(f"/balances/{ADDR3}").json()["balance"] == "4.0"

    def test_transfer_from_insufficient_allowance(self, client):
        r = client.post("/transfer-from", json={
            "spender": ADDR1, "owner": DEPLOYER, "recipient": ADDR3, "amount": "4"
        })
        assert r.status_code == 400
        assert r.json()["detail"]["error"] == "insufficient_allowance"


class TestEventAndAuditEndpoints:
    """Test event log and audit queries"""

    def test_events(self, client):
        client.post("/transfer", json={"sender": DEPLOYER, "recipient": ADDR1, "amount": "1"})
        client.post("/transfer-with-burn", json={"sender": ADDR1, "recipient": ADDR2, "amount": "1"})

        events = client.get("/events").json()["events"]
        assert [e["event_type"] for e in events] == ["Transfer", "Transfer", "Burn", "Transfer"]
        assert events[2]["data"] == {"from": ADDR1, "value": str(10 ** 17)}

        burns = client.get("/events", params={"event_type": "Burn"}).json()["events"]
        assert len(burns) == 1

    def test_unknown_event_type(self, client):
        assert client.get("/events", params={"event_type": "Mint"}).status_code == 400

    def test_audit_events_and_integrity(self, client):
        client.post("/transfer", json={"sender": DEPLOYER, "recipient": ADDR1, "amount": "1"})
        client.post("/transfer", json={"sender": ADDR1, "recipient": ADDR2, "amount": "2"})

        events = client.get("/audit/events").json()["events"]
        assert [e["event_type"] for e in events] == ["token_deployed", "transfer", "operation_rejected"]

        mine = client.get("/audit/events", params={"account": ADDR1}).json()["events"]
        assert [e["event_type"] for e in mine] == ["operation_rejected"]

        integrity = client.get("/audit/integrity").json()
        assert integrity["valid"] is True
        assert integrity["total_events"] == 3

    def test_audit_disabled(self):
        system = TokenSystem(config=TokenConfig(enable_audit_logging=False), deployer=DEPLOYER)
        app.dependency_overrides[get_token_system] = lambda: system
        try:
            client = TestClient(app)
            assert client.get("/audit/integrity").status_code == 404
        finally:
            app.dependency_overrides.clear()

    def test_limit_returns_most_recent(self, client):
        client.post("/transfer", json={"sender": DEPLOYER, "recipient": ADDR1, "amount": "1"})
        client.post("/approve", json={"owner": DEPLOYER, "spender": ADDR1, "amount": "1"})

        events = client.get("/events", params={"limit": 1}).json()["events"]
        assert [e["event_type"] for e in events] == ["Approval"]
        audit = client.get("/audit/events", params={"limit": 1}).json()["events"]
        assert [e["event_type"] for e in audit] == ["approval"]

    @pytest.mark.parametrize("path", ["/events", "/audit/events"])
    @pytest.mark.parametrize("limit", [0, -2])
    def test_non_positive_limit_rejected(self, client, path, limit):
        assert client.get(path, params={"limit": limit}).status_code == 422


class TestLifespan:
    """Test application startup and shutdown"""

    def test_shutdown_closes_storage(self, monkeypatch):
        system = TokenSystem(config=TokenConfig(database_url="sqlite://:memory:"), deployer=DEPLOYER)
        monkeypatch.setattr(api, "token_system", system)

        with TestClient(app) as client:
            assert client.get("/token").json()["deployer"] == DEPLOYER

        assert system.storage._connection is None
        assert api.token_system is None
