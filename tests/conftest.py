"""
Shared fixtures for the token ledger test suite
"""

import pytest

from token_ledger.audit import AuditTrail
from token_ledger.events import EventDispatcher
from token_ledger.ledger import TokenLedger
from token_ledger.storage import InMemoryStorage
from token_ledger.units import tokens

DEPLOYER = "0x" + "d" * 40
ADDR1 = "0x" + "1" * 40
ADDR2 = "0x" + "2" * 40
ADDR3 = "0x" + "3" * 40

GENESIS_SUPPLY = tokens(1_000_000)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_trail(storage):
    return AuditTrail(storage)


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def ledger():
    """Freshly deployed token with the whole supply on the deployer"""
    token = TokenLedger()
    token.initialize(DEPLOYER, GENESIS_SUPPLY)
    return token


@pytest.fixture
def audited_ledger(audit_trail, dispatcher):
    token = TokenLedger(event_dispatcher=dispatcher, audit_trail=audit_trail)
    token.initialize(DEPLOYER, GENESIS_SUPPLY)
    return token
