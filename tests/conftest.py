import pytest
from httpx import AsyncClient, ASGITransport
import os
from datetime import datetime, timedelta

# Set up test environment variables before anything else
worker_id = os.environ.get("PYTEST_XDIST_WORKER", "master")
db_name = f"bizhub_test_{worker_id}"

os.environ["ENV"] = "testing"
os.environ["DB_NAME"] = db_name
os.environ["SECRET_KEY"] = "test_secret_key_12345"
os.environ["CREATE_INDEXES_ON_STARTUP"] = "false"

from config import config
config.ENV = "testing"
config.DB_NAME = db_name

from main import app
from database import INDEX_SPECS
from routes.deps import create_access_token
from utils.security import hash_password

from bson import ObjectId
from pymongo import MongoClient
from pymongo.errors import PyMongoError

# Setup sync client for testing fixtures
sync_client = MongoClient(config.MONGO_URI, serverSelectionTimeoutMS=2000)
sync_db = sync_client[config.DB_NAME]

TEST_PASSWORD = "secret123"


@pytest.fixture(scope="session")
def test_db_session():
    try:
        sync_client.admin.command("ping")
    except PyMongoError as e:
        pytest.skip(f"MongoDB not reachable at {config.MONGO_URI}: {e}")
    # Ensure clean state from any previously crashed runs on startup
    sync_client.drop_database(config.DB_NAME)
    yield sync_db
    # Teardown: drop the database after tests are done
    sync_client.drop_database(config.DB_NAME)


@pytest.fixture(scope="function")
def clean_db(test_db_session):
    """Drop all collections and rebuild the indexes so every test starts empty."""
    for collection in sync_db.list_collection_names():
        sync_db.drop_collection(collection)
    for collection_name, specs in INDEX_SPECS.items():
        for keys, options in specs:
            sync_db[collection_name].create_index(keys, **options)
    yield sync_db


@pytest.fixture(scope="function")
async def async_client(clean_db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture(scope="function", autouse=True)
def reset_motor_client():
    from database import client
    client.reset()


# ── Users & tokens ────────────────────────────────────────────────────────────

def _insert_user(name: str, email: str, role: str) -> dict:
    doc = {
        "name": name,
        "email": email,
        "password_hash": hash_password(TEST_PASSWORD),
        "role": role,
        "manager_id": None,
        "theme": "light",
        "created_at": datetime.now(),
    }
    result = sync_db.users.insert_one(doc)
    return {"id": str(result.inserted_id), "name": name, "email": email, "role": role}


def _headers_for(user: dict) -> dict:
    token = create_access_token(
        data={"sub": user["id"], "role": user["role"]},
        expires_delta=timedelta(minutes=60)
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def admin_user(clean_db):
    return _insert_user("Test Admin", "admin@test.com", "admin")


@pytest.fixture(scope="function")
def manager_user(clean_db):
    return _insert_user("Test Manager", "manager@test.com", "manager")


@pytest.fixture(scope="function")
def regular_user(clean_db):
    return _insert_user("Test User", "user@test.com", "user")


@pytest.fixture(scope="function")
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope="function")
def manager_headers(manager_user):
    return _headers_for(manager_user)


@pytest.fixture(scope="function")
def user_headers(regular_user):
    return _headers_for(regular_user)


# ── Domain seed data ──────────────────────────────────────────────────────────

@pytest.fixture(scope="function")
def company(clean_db):
    doc = {
        "name": "Acme Industries",
        "address": {"street": "1 Main St", "city": "Pune", "state": "MH", "zip_code": "411001", "country": "India"},
        "contact_info": {"email": "contact@acme.com", "phone": "555-0100"},
        "managers": [],
        "projects": [],
        "created_at": datetime.now(),
        "updated_at": datetime.now(),
    }
    doc["_id"] = sync_db.companies.insert_one(doc).inserted_id
    return {"id": str(doc["_id"]), "name": doc["name"]}


@pytest.fixture(scope="function")
def project(company):
    doc = {
        "name": "Plant Retrofit",
        "company_id": ObjectId(company["id"]),
        "description": "Retrofit of line 2",
        "start_date": datetime(2026, 1, 1),
        "end_date": None,
        "status": "in-progress",
        "budget": 100000.0,
        "managers": [],
        "team": [],
        "manpower_allocated": 0.0,
        "created_at": datetime.now(),
        "updated_at": datetime.now(),
    }
    doc["_id"] = sync_db.projects.insert_one(doc).inserted_id
    sync_db.companies.update_one({"_id": ObjectId(company["id"])}, {"$addToSet": {"projects": doc["_id"]}})
    return {"id": str(doc["_id"]), "name": doc["name"], "company_id": company["id"]}


@pytest.fixture(scope="function")
def resource(clean_db):
    doc = {
        "name": "Ravi Welder",
        "role": "welder",
        "hourly_rate": 100.0,
        "skills": ["tig", "mig"],
        "email": None,
        "phone": None,
        "is_active": True,
        "created_at": datetime.now(),
        "updated_at": datetime.now(),
    }
    doc["_id"] = sync_db.resources.insert_one(doc).inserted_id
    return {"id": str(doc["_id"]), "name": doc["name"], "hourly_rate": doc["hourly_rate"]}
