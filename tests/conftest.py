import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import DocumentStore
from main import create_app
from schemas import RegisterRequest
from security import IdentityService
from services import ShopService


@pytest.fixture
def settings(tmp_path):
    return Settings(data_file=str(tmp_path / "database.json"), secret_key="test-secret", bcrypt_rounds=4)


@pytest.fixture
def store(settings):
    return DocumentStore(settings.data_file)


@pytest.fixture
def identity_service(settings):
    return IdentityService(settings)


@pytest.fixture
def shop(store, identity_service):
    return ShopService(store, identity_service)


@pytest.fixture
def admin(shop):
    """First registered user, therefore the admin."""
    return shop.register(RegisterRequest(email="admin@pogo.io", password="secret", name="Ada"))


@pytest.fixture
def customer(shop, admin):
    return shop.register(RegisterRequest(email="bob@pogo.io", password="hunter2", name="Bob"))


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c
