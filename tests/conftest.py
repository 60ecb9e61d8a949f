"""Test configuration."""
import base64
import json
import os
from collections.abc import AsyncIterator, Callable, Iterator
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import uuid4

from alembic import command
from alembic.config import Config
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite:///./gigpay_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("GIGPAY_ENV", "test")
os.environ.setdefault("ESCROW_WALLET_ADDRESS", "EscrowWa11et1111111111111111111111111111111")

from gigpay.main import app  # noqa: E402
from gigpay.db import get_db  # noqa: E402
from gigpay.models import Gig, Profile, ProfileRole  # noqa: E402
from gigpay.schemas.gig import GigCreate  # noqa: E402
from gigpay.schemas.milestone import MilestoneCreate  # noqa: E402
from gigpay.schemas.x402 import PaymentProof, SettlementResult  # noqa: E402
from gigpay.services import gigs as gig_service  # noqa: E402
from gigpay.services.settlement import get_settlement_service  # noqa: E402
from gigpay.utils.tokens import issue_token  # noqa: E402

DB_PATH = Path("./gigpay_test.db")
FREELANCER_WALLET = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


def _run_migrations() -> None:
    cfg = Config(str(Path(__file__).resolve().parents[1] / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", os.environ["DATABASE_URL"])
    command.upgrade(cfg, "head")


if DB_PATH.exists():
    DB_PATH.unlink()

engine = create_engine(
    os.environ["DATABASE_URL"],
    connect_args={"check_same_thread": False},
    future=True,
)


# pysqlite defers BEGIN until the first DML statement, which breaks SAVEPOINT
# semantics; take over transaction control so nested rollbacks stay isolated.
@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False,
    join_transaction_mode="create_savepoint",
)

_run_migrations()


@pytest.fixture
def db_session() -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(autouse=True)
def override_db_dependency(db_session: Session) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    yield
    app.dependency_overrides.pop(get_db, None)


@dataclass
class FakeSettlementService:
    """Records settled proofs and answers with a unique reference per call."""

    succeed: bool = True
    omit_reference: bool = False
    calls: list[PaymentProof] = field(default_factory=list)

    def settle(self, proof: PaymentProof) -> SettlementResult:
        self.calls.append(proof)
        if not self.succeed:
            return SettlementResult(success=False, error_reason="insufficient_funds", network=proof.network)
        reference = None if self.omit_reference else f"sig-{uuid4().hex}"
        return SettlementResult(
            success=True,
            transaction=reference,
            network=proof.network,
            payer="PayerWa11et111111111111111111111111111111111",
        )


@pytest.fixture
def settlement() -> Iterator[FakeSettlementService]:
    fake = FakeSettlementService()
    app.dependency_overrides[get_settlement_service] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_settlement_service, None)


@pytest.fixture
async def client(settlement: FakeSettlementService) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def make_profile(db_session: Session) -> Callable[..., tuple[Profile, dict[str, str]]]:
    """Factory returning a persisted profile and its bearer headers."""

    def _factory(
        role: ProfileRole = ProfileRole.CLIENT,
        *,
        wallet_address: str | None = None,
        name: str | None = None,
    ) -> tuple[Profile, dict[str, str]]:
        label = name or f"{role.value}-{uuid4().hex[:8]}"
        profile = Profile(
            email=f"{label}@gigpay.io",
            full_name=label.title(),
            role=role,
            wallet_address=wallet_address,
        )
        db_session.add(profile)
        db_session.flush()
        _, raw = issue_token(db_session, profile.id)
        db_session.commit()
        return profile, {"Authorization": f"Bearer {raw}"}

    return _factory


@pytest.fixture
def client_profile(make_profile) -> tuple[Profile, dict[str, str]]:
    return make_profile(ProfileRole.CLIENT, name="client")


@pytest.fixture
def freelancer_profile(make_profile) -> tuple[Profile, dict[str, str]]:
    return make_profile(ProfileRole.FREELANCER, wallet_address=FREELANCER_WALLET, name="freelancer")


@pytest.fixture
def make_gig(db_session: Session) -> Callable[..., Gig]:
    """Create a gig through the service layer, optionally accepted by ``freelancer``."""

    def _factory(
        client: Profile,
        *,
        budget: str = "1000.00",
        percentages: list[str] | None = None,
        freelancer: Profile | None = None,
    ) -> Gig:
        milestones = [
            MilestoneCreate(title=f"Phase {idx}", percentage=Decimal(pct))
            for idx, pct in enumerate(percentages or [], start=1)
        ]
        payload = GigCreate(
            title="Landing page",
            description="Build and ship a landing page",
            budget=Decimal(budget),
            has_milestones=bool(milestones),
            milestones=milestones,
        )
        gig = gig_service.create_gig(db_session, client, payload)
        if freelancer is not None:
            gig = gig_service.accept_gig(db_session, freelancer, gig.id)
        return gig

    return _factory


def proof_header_for(challenge: dict[str, Any], **overrides: Any) -> str:
    """Build the base64 ``X-Payment`` header answering a 402 challenge body."""

    accepted = challenge["accepts"][0]
    proof = {
        "x402Version": challenge["x402Version"],
        "scheme": accepted["scheme"],
        "network": accepted["network"],
        "payload": {"transaction": "signed-transfer-base64"},
        "resource": accepted["resource"],
        "issuedAt": accepted["extra"]["issuedAt"],
        "nonce": accepted["extra"]["nonce"],
    }
    proof.update(overrides)
    return base64.b64encode(json.dumps(proof).encode()).decode()


@pytest.fixture
def make_proof() -> Callable[..., str]:
    return proof_header_for
