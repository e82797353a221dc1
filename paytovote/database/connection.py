import logging

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from paytovote import config

logger = logging.getLogger(__name__)

USERS_COLLECTION_NAME = "users"
PROFILES_COLLECTION_NAME = "profiles"
POLLS_COLLECTION_NAME = "polls"
CANDIDATES_COLLECTION_NAME = "candidates"
VOTES_COLLECTION_NAME = "votes"
DRAFTS_COLLECTION_NAME = "workflow_drafts"
REVOKED_TOKENS_COLLECTION_NAME = "revoked_tokens"


class MongoConnector:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super(MongoConnector, cls).__new__(cls)
            try:
                instance.client = MongoClient(config.MONGO_URI, tz_aware=True)
                instance.db = instance.client[config.MONGO_DB]
                instance.client.server_info()
                logger.info(f"Connected to MongoDB: {config.MONGO_DB}")
            except Exception as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise
            cls._instance = instance
        return cls._instance


def get_database() -> Database:
    return MongoConnector().db


def ensure_indexes(db: Database, live_vote_constraint: bool = config.LIVE_VOTE_UNIQUE_INDEX) -> None:
    """Create the indexes the services rely on. Safe to call repeatedly."""
    db[USERS_COLLECTION_NAME].create_index("login_identifier", unique=True)
    db[PROFILES_COLLECTION_NAME].create_index("institution_key", unique=True)
    db[PROFILES_COLLECTION_NAME].create_index("display_name_key", unique=True)
    db[POLLS_COLLECTION_NAME].create_index([("is_active", ASCENDING), ("created_at", ASCENDING)])
    db[CANDIDATES_COLLECTION_NAME].create_index([("poll_id", ASCENDING), ("position", ASCENDING)])
    db[VOTES_COLLECTION_NAME].create_index([("status", ASCENDING), ("created_at", ASCENDING)])
    db[VOTES_COLLECTION_NAME].create_index([("poll_id", ASCENDING), ("user_id", ASCENDING)])
    db[DRAFTS_COLLECTION_NAME].create_index([("user_id", ASCENDING), ("poll_id", ASCENDING)], unique=True)
    db[REVOKED_TOKENS_COLLECTION_NAME].create_index("jti", unique=True)
    db[REVOKED_TOKENS_COLLECTION_NAME].create_index("expires_at", expireAfterSeconds=0)

    if live_vote_constraint:
        # At most one PENDING/APPROVED vote per (poll, user); is_live mirrors that status set
        db[VOTES_COLLECTION_NAME].create_index(
            [("poll_id", ASCENDING), ("user_id", ASCENDING)],
            name="one_live_vote_per_user_poll",
            unique=True,
            partialFilterExpression={"is_live": True},
        )
    logger.info("MongoDB indexes ensured")
