from .connection import (
    CANDIDATES_COLLECTION_NAME,
    DRAFTS_COLLECTION_NAME,
    POLLS_COLLECTION_NAME,
    PROFILES_COLLECTION_NAME,
    REVOKED_TOKENS_COLLECTION_NAME,
    USERS_COLLECTION_NAME,
    VOTES_COLLECTION_NAME,
    MongoConnector,
    ensure_indexes,
    get_database,
)
