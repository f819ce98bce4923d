"""
Shared fixtures: an in-memory SQLite database per test, the FastAPI app with
its database and external collaborators overridden, and helpers to seed rows
and act as each role.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-nanocart"
os.environ["DEBUG"] = "false"

import itertools
from datetime import timedelta
from typing import Any, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.security import issue_access_token
from app.core.storage import StorageClient, get_storage
from app.database import Base, build_engine, get_db
from app.db_types import utcnow
from app.main import app
from app.models import Item, ItemDetail, Partner, PhoneOTP, Role, User
from app.services.identity_service import IdentityVerificationError, get_identity_verifier
from app.services.otp_service import SMSProviderError, get_sms_provider


# ==================== Collaborator stubs ====================

class StubSMSProvider:
    """Stands in for MSG91: accepts a fixed set of codes."""

    def __init__(self):
        self.accepted_codes = {"123456"}
        self.sent: list[str] = []
        self.resent: list[tuple[str, str]] = []
        self.fail = False

    async def send_otp(self, phone: str) -> None:
        if self.fail:
            raise SMSProviderError("provider down")
        self.sent.append(phone)

    async def resend_otp(self, phone: str, channel: str) -> None:
        if self.fail:
            raise SMSProviderError("provider down")
        self.resent.append((phone, channel))

    async def verify_otp(self, phone: str, otp: str) -> bool:
        if self.fail:
            raise SMSProviderError("provider down")
        return otp in self.accepted_codes


class StubIdentityVerifier:
    """Maps known id tokens to decoded claims."""

    def __init__(self):
        self.tokens: dict[str, dict[str, Any]] = {}
        self.deleted: list[str] = []
        self.fail_delete = False

    def register(self, id_token: str, phone: str, uid: str = "firebase-uid") -> None:
        self.tokens[id_token] = {"uid": uid, "phone_number": phone}

    async def verify(self, id_token: str) -> dict[str, Any]:
        if id_token not in self.tokens:
            raise IdentityVerificationError("token rejected")
        return self.tokens[id_token]

    async def delete_account(self, uid: str) -> None:
        if self.fail_delete:
            raise RuntimeError("identity provider unavailable")
        self.deleted.append(uid)


class StubStorage(StorageClient):
    """Keeps uploads in memory and hands out predictable public URLs."""

    def __init__(self):
        super().__init__("https://storage.test", "service-key", "nanocart")
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []

    def get_public_url(self, path: str) -> str:
        return f"https://storage.test/storage/v1/object/public/{self.bucket_name}/{path}"

    def upload(self, content: bytes, path: str, content_type: str) -> str:
        self.files[path] = content
        return self.get_public_url(path)

    def delete(self, path: str) -> bool:
        if path.startswith("http"):
            path = self.extract_path_from_url(path)
        self.deleted.append(path)
        self.files.pop(path, None)
        return True


# ==================== Database ====================

@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    """Session for seeding and assertions; commit before calling the API."""
    async with session_factory() as session:
        yield session


# ==================== App client ====================

@pytest.fixture
def sms():
    return StubSMSProvider()


@pytest.fixture
def identity():
    return StubIdentityVerifier()


@pytest.fixture
def storage():
    return StubStorage()


@pytest.fixture
async def client(session_factory, sms, identity, storage):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sms_provider] = lambda: sms
    app.dependency_overrides[get_identity_verifier] = lambda: identity
    app.dependency_overrides[get_storage] = lambda: storage

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Seed helpers ====================

_phones = itertools.count(9000000001)


def next_phone() -> str:
    return str(next(_phones))


async def make_user(db: AsyncSession, role: Role = Role.USER, **fields) -> User:
    values = {
        "name": "Test User",
        "phone_number": next_phone(),
        "email": "user@example.com",
        "role": role.value,
        "is_active": True,
        "is_phone_verified": True,
    }
    values.update(fields)
    user = User(**values)
    db.add(user)
    await db.commit()
    return user


async def make_partner(db: AsyncSession, **fields) -> Partner:
    values = {
        "name": "Test Partner",
        "phone_number": next_phone(),
        "email": "partner@example.com",
        "shop_name": "Partner Shop",
        "is_verified": True,
        "is_active": True,
    }
    values.update(fields)
    partner = Partner(**values)
    db.add(partner)
    await db.commit()
    return partner


async def make_item(
    db: AsyncSession,
    name: str = "Cotton Shirt",
    images_by_color: Optional[list] = None,
    **fields,
) -> Item:
    values = {"name": name, "mrp": 1000.0, "discounted_price": 800.0, "category": "Shirts"}
    values.update(fields)
    item = Item(**values)
    db.add(item)
    await db.flush()
    if images_by_color is not None:
        db.add(ItemDetail(item_id=item.id, images_by_color=images_by_color))
    await db.commit()
    return item


async def make_otp_session(
    db: AsyncSession,
    phone: str,
    verified: bool = False,
    expires_in: timedelta = timedelta(minutes=10),
) -> PhoneOTP:
    record = PhoneOTP(phone_number=phone, is_verified=verified, expires_at=utcnow() + expires_in)
    db.add(record)
    await db.commit()
    return record


def auth_header(role: Role, principal) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_access_token(role, principal)}"}


@pytest.fixture
async def admin(db):
    return await make_user(db, role=Role.ADMIN, name="Admin")


@pytest.fixture
def admin_headers(admin):
    return auth_header(Role.ADMIN, admin)


@pytest.fixture
async def shopper(db):
    return await make_user(db, name="Shopper")


@pytest.fixture
def shopper_headers(shopper):
    return auth_header(Role.USER, shopper)
