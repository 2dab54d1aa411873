"""
FastAPI REST API Module

Exposes the token ledger over HTTP: token metadata, balance and allowance
queries, the four transfer operations, the event log and audit queries.
Amounts travel as decimal token strings ("0.9") and are converted to base
units at the edge.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import hashlib
import secrets

from fastapi import FastAPI, HTTPException, Depends, Query, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, validator
import uvicorn

from . import __version__
from .audit import AuditTrail
from .config import TokenConfig, get_config
from .errors import LedgerError
from .events import EventDispatcher, EventPayload, LedgerEvent
from .ledger import TokenLedger
from .logging_config import get_logger
from .storage import create_storage
from .units import to_base_units, to_decimal_string

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"


def generate_address() -> str:
    """Random 20-byte hex address"""
    return "0x" + secrets.token_hex(20)


def normalize_address(value: str) -> str:
    return value.lower()


# Pydantic models for API requests
class AmountRequest(BaseModel):
    amount: str = Field(..., description="Decimal token amount as string, e.g. \"0.9\"")

    @validator("amount")
    def validate_amount(cls, value):
        to_base_units(value)
        return value


class TransferRequest(AmountRequest):
    sender: str = Field(..., pattern=ADDRESS_PATTERN)
    recipient: str = Field(..., pattern=ADDRESS_PATTERN)


class ApproveRequest(AmountRequest):
    owner: str = Field(..., pattern=ADDRESS_PATTERN)
    spender: str = Field(..., pattern=ADDRESS_PATTERN)


class TransferFromRequest(AmountRequest):
    spender: str = Field(..., pattern=ADDRESS_PATTERN)
    owner: str = Field(..., pattern=ADDRESS_PATTERN)
    recipient: str = Field(..., pattern=ADDRESS_PATTERN)


# Token System Context
class TokenSystem:
    """Deployed token ledger with its storage, audit trail and dispatcher"""

    def __init__(self, config: Optional[TokenConfig] = None, deployer: Optional[str] = None):
        self.config = config or get_config()
        self.storage = create_storage(self.config.database_url)
        self.audit_trail = AuditTrail(self.storage) if self.config.enable_audit_logging else None
        self.event_dispatcher = EventDispatcher()
        self.deployer = normalize_address(deployer or generate_address())
        self.ledger = TokenLedger.deploy(
            self.deployer,
            config=self.config,
            event_dispatcher=self.event_dispatcher,
            audit_trail=self.audit_trail
        )
        self.address = "0x" + hashlib.sha256(
            f"{self.deployer}:{self.config.token_symbol}".encode("utf-8")
        ).hexdigest()[-40:]

    def parse_amount(self, amount: str) -> int:
        return to_base_units(amount, self.ledger.decimals())

    def format_amount(self, amount: int) -> str:
        return to_decimal_string(amount, self.ledger.decimals())

    def close(self) -> None:
        """Release the storage backend"""
        self.storage.close()


token_system: Optional[TokenSystem] = None
logger = get_logger("sdft.api")


def get_token_system() -> TokenSystem:
    global token_system
    if token_system is None:
        token_system = TokenSystem()
        logger.info(f"Deployed {token_system.ledger.symbol()} at {token_system.address}")
    return token_system


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan manager; closes the deployed token's storage on shutdown"""
    global token_system
    yield
    if token_system is not None:
        token_system.close()
        logger.info(f"Closed storage for {token_system.address}")
        token_system = None


def _event_to_dict(event: EventPayload) -> Dict[str, Any]:
    result = event.to_dict()
    result['data'] = {key: str(value) for key, value in event.data.items()}
    return result


def _raise_bad_request(error: ValueError) -> None:
    if isinstance(error, LedgerError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.to_dict())
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


app = FastAPI(
    title="Simple DeFi Token API",
    description="Fungible-token ledger with auto-burn transfers",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/token")
async def get_token(system: TokenSystem = Depends(get_token_system)):
    """Token metadata and current supply"""
    ledger = system.ledger
    total_supply = ledger.total_supply()
    return {
        "address": system.address,
        "name": ledger.name(),
        "symbol": ledger.symbol(),
        "decimals": ledger.decimals(),
        "total_supply": system.format_amount(total_supply),
        "total_supply_base_units": str(total_supply),
        "burn_rate_percent": ledger.burn_rate_percent,
        "deployer": system.deployer
    }


@app.get("/balances/{account}")
async def get_balance(account: str, system: TokenSystem = Depends(get_token_system)):
    """Balance of one account"""
    balance = system.ledger.balance_of(normalize_address(account))
    return {
        "account": normalize_address(account),
        "balance": system.format_amount(balance),
        "balance_base_units": str(balance)
    }


@app.get("/allowances/{owner}/{spender}")
async def get_allowance(owner: str, spender: str, system: TokenSystem = Depends(get_token_system)):
    """Remaining amount spender may move on owner's behalf"""
    allowance = system.ledger.allowance(normalize_address(owner), normalize_address(spender))
    return {
        "owner": normalize_address(owner),
        "spender": normalize_address(spender),
        "allowance": system.format_amount(allowance),
        "allowance_base_units": str(allowance)
    }


@app.post("/transfer")
async def transfer(request: TransferRequest, system: TokenSystem = Depends(get_token_system)):
    """Plain transfer"""
    sender, recipient = normalize_address(request.sender), normalize_address(request.recipient)
    try:
        system.ledger.transfer(sender, recipient, system.parse_amount(request.amount))
    except ValueError as e:
        _raise_bad_request(e)
    return {
        "message": "Transfer completed",
        "sender_balance": system.format_amount(system.ledger.balance_of(sender)),
        "recipient_balance": system.format_amount(system.ledger.balance_of(recipient))
    }


@app.post("/transfer-with-burn")
async def transfer_with_burn(request: TransferRequest, system: TokenSystem = Depends(get_token_system)):
    """Transfer that burns the configured share of the amount"""
    try:
        receipt = system.ledger.transfer_with_auto_burn(
            normalize_address(request.sender),
            normalize_address(request.recipient),
            system.parse_amount(request.amount)
        )
    except ValueError as e:
        _raise_bad_request(e)
    return {
        "message": "Transfer completed",
        "amount": system.format_amount(receipt.amount),
        "burned": system.format_amount(receipt.burned),
        "delivered": system.format_amount(receipt.delivered),
        "total_supply": system.format_amount(system.ledger.total_supply())
    }


@app.post("/approve")
async def approve(request: ApproveRequest, system: TokenSystem = Depends(get_token_system)):
    """Set an allowance"""
    try:
        system.ledger.approve(
            normalize_address(request.owner),
            normalize_address(request.spender),
            system.parse_amount(request.amount)
        )
    except ValueError as e:
        _raise_bad_request(e)
    return {"message": "Approval set", "allowance": request.amount}


@app.post("/transfer-from")
async def transfer_from(request: TransferFromRequest, system: TokenSystem = Depends(get_token_system)):
    """Delegated transfer consuming an allowance"""
    owner, spender = normalize_address(request.owner), normalize_address(request.spender)
    try:
        system.ledger.transfer_from(
            spender, owner, normalize_address(request.recipient), system.parse_amount(request.amount)
        )
    except ValueError as e:
        _raise_bad_request(e)
    return {
        "message": "Transfer completed",
        "remaining_allowance": system.format_amount(system.ledger.allowance(owner, spender))
    }


@app.get("/events")
async def get_events(
    event_type: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    system: TokenSystem = Depends(get_token_system)
):
    """Ledger notifications, oldest first"""
    try:
        selected = LedgerEvent(event_type) if event_type else None
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown event type: {event_type}")

    events = system.ledger.get_events(selected)[-limit:]
    return {"events": [_event_to_dict(event) for event in events]}


@app.get("/audit/events")
async def get_audit_events(
    account: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    system: TokenSystem = Depends(get_token_system)
):
    """Get audit events"""
    if not system.audit_trail:
        raise HTTPException(status_code=404, detail="Audit logging is disabled")

    if account:
        events = system.audit_trail.get_events_for_entity(normalize_address(account), limit)
    else:
        events = system.audit_trail.get_all_events(limit=limit)

    return {"events": [
        {
            "id": event.id,
            "sequence": event.sequence,
            "event_type": event.event_type.value,
            "account": event.entity_id,
            "created_at": event.created_at.isoformat(),
            "metadata": event.metadata
        }
        for event in events
    ]}


@app.get("/audit/integrity")
async def verify_audit_integrity(system: TokenSystem = Depends(get_token_system)):
    """Verify audit trail integrity"""
    if not system.audit_trail:
        raise HTTPException(status_code=404, detail="Audit logging is disabled")
    return system.audit_trail.verify_integrity()


@app.get("/")
async def root():
    """Root endpoint with system information"""
    return {
        "system": "Simple DeFi Token",
        "version": __version__,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "token": "/token",
            "balances": "/balances/{account}",
            "allowances": "/allowances/{owner}/{spender}",
            "transfer": "/transfer",
            "transfer_with_burn": "/transfer-with-burn",
            "approve": "/approve",
            "transfer_from": "/transfer-from",
            "events": "/events",
            "audit": "/audit/events"
        }
    }


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "token_ledger.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
