from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from logging_config import get_logger
from config import config
import certifi

logger = get_logger("database")

uri = config.MONGO_URI

if uri:
    logger.info(f"MongoDB connection string found: {uri[:20]}...")
else:
    logger.error("MONGO_URI not found in configuration!")

class DatabaseProxy:
    """Creates the motor client lazily so it binds to the running event loop."""

    def __init__(self):
        self._client = None

    def initialize(self):
        if self._client is None:
            if config.ENV == "production":
                self._client = AsyncIOMotorClient(uri, tlsCAFile=certifi.where())
            else:
                self._client = AsyncIOMotorClient(uri)
            logger.info(f"Database client initialized on DB: {config.DB_NAME}")

    def reset(self):
        if self._client is not None:
            self._client.close()
            self._client = None

    def __getattr__(self, name):
        self.initialize()
        return getattr(self._client, name)

    def __getitem__(self, name):
        self.initialize()
        return self._client[name]


client = DatabaseProxy()

class DBProxy:
    # DB_NAME is read on every access so tests can point at a throwaway database
    def get_collection(self, name):
        return client[config.DB_NAME][name]

    def __getattr__(self, attr):
        return client[config.DB_NAME][attr]

    def __getitem__(self, key):
        return client[config.DB_NAME][key]

db = DBProxy()

class AsyncCollectionProxy:
    def __init__(self, name):
        self.name = name

    def _get_collection(self):
        return db.get_collection(self.name)

    def __getattr__(self, attr):
        return getattr(self._get_collection(), attr)

    def __getitem__(self, key):
        return self._get_collection()[key]

users_collection = AsyncCollectionProxy("users")
companies_collection = AsyncCollectionProxy("companies")
projects_collection = AsyncCollectionProxy("projects")

# Finance Collections
transactions_collection = AsyncCollectionProxy("transactions")
expense_categories_collection = AsyncCollectionProxy("expense_categories")

# Manpower Collections
resources_collection = AsyncCollectionProxy("resources")
allocations_collection = AsyncCollectionProxy("project_resources")
attendance_collection = AsyncCollectionProxy("attendance")

# Material Collections
material_requests_collection = AsyncCollectionProxy("material_requests")
material_purchases_collection = AsyncCollectionProxy("material_purchases")


# collection name -> list of (keys, options)
INDEX_SPECS = {
    "users": [
        ([("email", ASCENDING)], {"unique": True}),
    ],
    "companies": [
        ([("contact_info.email", ASCENDING)], {}),
    ],
    "projects": [
        ([("company_id", ASCENDING)], {}),
        ([("created_at", DESCENDING)], {}),
    ],
    "transactions": [
        ([("project_id", ASCENDING), ("date", DESCENDING)], {}),
        ([("type", ASCENDING), ("approval_status", ASCENDING)], {}),
    ],
    "expense_categories": [
        ([("name", ASCENDING)], {"unique": True}),
    ],
    "project_resources": [
        # A resource may hold at most one active allocation
        ([("resource_id", ASCENDING)], {
            "unique": True,
            "partialFilterExpression": {"is_active": True},
            "name": "resource_id_active_unique",
        }),
        ([("project_id", ASCENDING), ("is_active", ASCENDING)], {}),
    ],
    "attendance": [
        ([("project_resource_id", ASCENDING), ("date", ASCENDING)], {"unique": True}),
    ],
    "material_requests": [
        ([("project_id", ASCENDING), ("status", ASCENDING)], {}),
    ],
    "material_purchases": [
        ([("project_id", ASCENDING)], {}),
        ([("expense_id", ASCENDING)], {}),
    ],
}


async def ensure_indexes():
    """Create every declared index. Safe to run repeatedly."""
    for collection_name, specs in INDEX_SPECS.items():
        collection = db.get_collection(collection_name)
        for keys, options in specs:
            await collection.create_index(keys, **options)
    logger.info("Indexes ensured", extra={"data": {"collections": list(INDEX_SPECS)}})
