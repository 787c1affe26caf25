"""
Pytest configuration and shared fixtures
"""

import io
import os
import tempfile
from typing import Dict, Optional

import pytest

# Settings are read on first use; point them at throwaway locations before the app is imported
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="qc-uploads-"))
os.environ.setdefault("ENABLE_NOTIFICATIONS", "false")
os.environ.setdefault("SMTP_HOST", "")

from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from qc_dashboard.api.dependencies import get_db, get_detector, get_storage  # noqa: E402
from qc_dashboard.api.errors import ModelUnavailableError  # noqa: E402
from qc_dashboard.api.main import app  # noqa: E402
from qc_dashboard.api.security import create_access_token, hash_password  # noqa: E402
from qc_dashboard.api.services.storage import ImageStorage, StoredImage, build_object_name  # noqa: E402
from qc_dashboard.db.models import Base, Inspection, Product, User  # noqa: E402
from qc_dashboard.ml import DetectionResult  # noqa: E402
from qc_dashboard.models.enums import InspectionStatus, UserRole  # noqa: E402

PASSWORD = "secret123"


class InMemoryStorage(ImageStorage):
    """Keeps uploads in a dict so tests can inspect what was stored."""

    backend = "memory"

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.deleted = []
        self.fail_uploads = False

    def upload(self, data, filename, content_type, folder):
        if self.fail_uploads:
            from qc_dashboard.api.errors import StorageError

            raise StorageError("Image upload failed")
        key = build_object_name(filename, folder)
        self.objects[key] = data
        return StoredImage(url=f"https://images.test/{key}", key=key)

    def delete(self, key):
        self.deleted.append(key)
        return self.objects.pop(key, None) is not None


class FakeDetector:
    """Stands in for DefectDetectionService with a fixed answer."""

    def __init__(self):
        self.available = True
        self.result = DetectionResult(
            has_defect=False,
            defect_type="good",
            confidence=91,
            scores={"good": 91, "minor_defect": 6, "major_defect": 3},
        )
        self.calls = 0

    def detect(self, data: bytes) -> DetectionResult:
        if not self.available:
            raise ModelUnavailableError("AI model not available: no weights")
        self.calls += 1
        return self.result

    def is_available(self) -> bool:
        return self.available

    def status(self) -> dict:
        return {
            "status": "ready" if self.available else "unavailable",
            "available": self.available,
            "model": {
                "architecture": "cnn-3conv-2dense",
                "classes": ["good", "minor_defect", "major_defect"],
                "is_loaded": self.available,
                "error": None if self.available else "No classifier weights configured",
            },
        }

    def report_defect(self, defect_type: str = "major_defect", confidence: int = 85) -> None:
        self.result = DetectionResult(
            has_defect=True,
            defect_type=defect_type,
            confidence=confidence,
            scores={"good": 100 - confidence, "minor_defect": 0, "major_defect": confidence},
        )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def detector():
    return FakeDetector()


@pytest.fixture
def client(session_factory, storage, detector):
    """Test client wired to the in-memory database, storage and detector."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_detector] = lambda: detector

    # No context manager: the lifespan would create tables on the configured database
    yield TestClient(app)

    app.dependency_overrides.clear()


def make_user(db, name: str, role: UserRole, email: Optional[str] = None, is_active: bool = True) -> User:
    user = User(
        name=name,
        email=email or f"{name}@example.com",
        password_hash=hash_password(PASSWORD),
        role=role,
        department="Quality",
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def inspector(db_session):
    return make_user(db_session, "inspector", UserRole.INSPECTOR)


@pytest.fixture
def manager(db_session):
    return make_user(db_session, "manager", UserRole.MANAGER)


@pytest.fixture
def admin(db_session):
    return make_user(db_session, "admin", UserRole.ADMIN)


@pytest.fixture
def inspector_headers(inspector):
    return auth_headers(inspector)


@pytest.fixture
def manager_headers(manager):
    return auth_headers(manager)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def product(db_session):
    product = Product(name="Widget A", category="Widgets", description="Test widget", specs={"weight": "10g"})
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def inspection(db_session, product, inspector):
    inspection = Inspection(
        product_id=product.id,
        inspector_id=inspector.id,
        batch_number="B-001",
        total_inspected=100,
        defects_found=0,
        status=InspectionStatus.PENDING,
    )
    db_session.add(inspection)
    db_session.commit()
    db_session.refresh(inspection)
    return inspection


def make_image_bytes(fmt: str = "PNG", size=(32, 32), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return make_image_bytes()


@pytest.fixture
def user_factory(db_session):
    """Create extra users: ``user_factory("bob", UserRole.MANAGER)``."""

    def _make(name: str, role: UserRole = UserRole.INSPECTOR, **kwargs) -> User:
        return make_user(db_session, name, role, **kwargs)

    return _make


@pytest.fixture
def headers_for():
    return auth_headers
