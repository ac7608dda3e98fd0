# tests/conftest.py
import base64
import io
import itertools
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from stitchquote.config import Settings
from stitchquote.db import init_db, make_engine, make_session_factory
from stitchquote.dependencies import Services
from stitchquote.main import create_app
from stitchquote.repositories.quotes import QuoteRepository
from stitchquote.services.email import EmailError
from stitchquote.services.notifications import Mailer
from stitchquote.services.storage import LocalStorage, Storage, StorageError

SHOP_EMAIL = "shop@example.com"
CUSTOMER_EMAIL = "ann@example.com"
PHOTO_URLS = ["https://cdn.example.com/quotes/seat-1.jpg", "https://cdn.example.com/quotes/seat-2.jpg"]


def png_bytes(size=(4, 4), color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


PNG_B64 = base64.b64encode(png_bytes()).decode()

GOOD_CLASSIFICATION: Dict[str, Any] = {
    "category": "auto",
    "item": "driver seat bottom",
    "material_guess": "vinyl",
    "material_suggestions": "OEM-match automotive vinyl.",
    "damage": "Split seam along the bolster.",
    "recommended_repair": "stitch_repair",
    "recommended_repair_explained": "Remove cover, restitch seam, reinstall.",
    "complexity": "low",
    "notes": "",
}


# -------------------------
# Fakes for external services
# -------------------------
class FakeAssessor:
    def __init__(self, reply: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.reply = dict(GOOD_CLASSIFICATION if reply is None else reply)
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def classify(self, *, category, notes, photo_urls):
        self.calls.append({"category": category, "notes": notes, "photo_urls": list(photo_urls)})
        if self.error:
            raise self.error
        return dict(self.reply)


class FakeImageGenerator:
    def __init__(self, result: Optional[str] = PNG_B64, error: Optional[Exception] = None, hook=None):
        self.result = result
        self.error = error
        self.hook = hook
        self.calls: List[Dict[str, Any]] = []

    def generate(self, prompt, reference_urls):
        self.calls.append({"prompt": prompt, "reference_urls": list(reference_urls)})
        if self.hook:
            self.hook()
        if self.error:
            raise self.error
        return self.result


class FakeSender:
    """Stands in for send_postmark_email; fails for addresses in `fail_for`."""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.fail_for = set()
        self._ids = itertools.count(1)

    def __call__(self, **kwargs) -> str:
        if kwargs["to"] in self.fail_for:
            raise EmailError("postmark_send_failed:422:{'Message': 'Inactive recipient'}")
        self.sent.append(kwargs)
        return f"msg-{next(self._ids)}"

    def to(self, address: str) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m["to"] == address]


class BrokenStorage(Storage):
    def put(self, key, data, content_type):
        raise StorageError("s3_upload_failed: AccessDenied")

    def public_url(self, key):
        return f"https://bucket.example.com/{key}"


# -------------------------
# Fixtures
# -------------------------
@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        PUBLIC_BASE_URL="http://testserver",
        ADMIN_PASSWORD="s3cret",
        JWT_SECRET="test-secret",
        COOKIE_SECURE=False,
        RATE_LIMIT_ENABLED=False,
        POSTMARK_SERVER_TOKEN="postmark-token",
        POSTMARK_FROM="quotes@example.com",
        QUOTE_TO_EMAIL=SHOP_EMAIL,
        STORAGE_BACKEND="local",
        LOCAL_STORAGE_PATH=str(tmp_path / "blobs"),
        SENTRY_DSN=None,
    )


@pytest.fixture
def repo() -> QuoteRepository:
    engine = make_engine("sqlite://")
    init_db(engine)
    return QuoteRepository(make_session_factory(engine))


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def assessor() -> FakeAssessor:
    return FakeAssessor()


@pytest.fixture
def image_generator() -> FakeImageGenerator:
    return FakeImageGenerator()


@pytest.fixture
def services(settings, repo, assessor, image_generator, sender) -> Services:
    return Services(
        settings=settings,
        quotes=repo,
        assessor=assessor,
        image_generator=image_generator,
        storage=LocalStorage(settings.LOCAL_STORAGE_PATH, public_base_url=settings.PUBLIC_BASE_URL),
        mailer=Mailer(settings, send=sender),
    )


@pytest.fixture
def client(settings, services) -> TestClient:
    return TestClient(create_app(settings, services))


@pytest.fixture
def admin_client(client) -> TestClient:
    r = client.post("/api/admin/login", json={"password": "s3cret"})
    assert r.status_code == 200
    return client


@pytest.fixture
def stored_quote(repo) -> str:
    """A quote as the intake flow stores it, before any render."""
    return repo.insert(
        {
            "name": "Ann Customer",
            "email": CUSTOMER_EMAIL,
            "phone": "555-0100",
            "category": "auto",
            "notes": "Dog chewed it",
            "photo_urls": list(PHOTO_URLS),
            "assessment": dict(GOOD_CLASSIFICATION, notes="No additional notes."),
            "estimate": {"totalLow": 250, "totalHigh": 368},
            "total_low": 250,
            "total_high": 368,
        }
    )
