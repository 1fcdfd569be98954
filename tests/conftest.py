import mongomock
import pytest
from fastapi.testclient import TestClient

from accounts import AccountService
from cart import CartEngine
from database import ensure_indexes
from main import create_app
from security import TokenService
from settings import Settings
from stores import ProductStore, UserStore

TEST_SECRET = "test-secret"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        secret_key=TEST_SECRET,
        upload_dir=str(tmp_path / "images"),
        public_base_url="http://testserver",
        database_name="shop_test",
    )


@pytest.fixture
def db():
    database = mongomock.MongoClient()["shop_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def tokens():
    return TokenService(TEST_SECRET)


@pytest.fixture
def users(db):
    return UserStore(db)


@pytest.fixture
def products(db):
    return ProductStore(db)


@pytest.fixture
def accounts(users, tokens):
    return AccountService(users, tokens)


@pytest.fixture
def cart(users):
    return CartEngine(users)


@pytest.fixture
def test_client(settings, db):
    app = create_app(settings, db)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers(test_client):
    response = test_client.post(
        "/signup", json={"username": "alice", "email": "a@x.com", "password": "p"}
    )
    assert response.status_code == 200
    return {"auth-token": response.json()["token"]}
