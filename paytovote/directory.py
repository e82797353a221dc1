"""Profile directory: human login identifiers -> identity-provider logins.

Students log in with an institution ID (e.g. ``FPE/CS/21/0042``) or a chosen
username, while the identity provider needs an address-shaped identifier.
The mapping is:

* ``normalize_identifier`` lowercases and strips every non-alphanumeric
  character, so ``FPE/CS/21/0042`` and ``fpe-cs-21-0042`` are the same key;
* the provider login is ``<normalized institution id>@<LOGIN_EMAIL_DOMAIN>``;
* lookups try the normalized institution id first, then the display name
  (case-insensitive);
* a display name whose normalized form equals another user's institution key
  is refused, and so is the reverse, so a lookup never lands on the wrong
  account.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from paytovote import config
from paytovote.database import PROFILES_COLLECTION_NAME
from paytovote.errors import IdentityLookupError, NotFoundError, PersistenceError, ValidationError
from paytovote.models.user_model import User

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_identifier(raw: str) -> str:
    key = _NON_ALNUM.sub("", (raw or "").strip().lower())
    if not key:
        raise ValidationError("Identifier must contain letters or digits.")
    return key


def login_identifier_for(institution_id: str, domain: str = config.LOGIN_EMAIL_DOMAIN) -> str:
    return f"{normalize_identifier(institution_id)}@{domain}"


def _display_name_norm(display_name: str) -> Optional[str]:
    return _NON_ALNUM.sub("", display_name.strip().lower()) or None


def _to_user(doc: dict) -> User:
    return User(
        id=str(doc["_id"]),
        login_identifier=doc["login_identifier"],
        display_name=doc["display_name"],
        institution_id=doc["institution_id"],
        created_at=doc["created_at"],
    )


class ProfileDirectory:
    def __init__(self, db: Database, domain: str = config.LOGIN_EMAIL_DOMAIN):
        self.profiles = db[PROFILES_COLLECTION_NAME]
        self.domain = domain

    def login_identifier_for(self, institution_id: str) -> str:
        return login_identifier_for(institution_id, self.domain)

    def display_name_taken(self, display_name: str, exclude_user_id: Optional[str] = None) -> bool:
        """True if the name, or its normalized form as an institution key, belongs to someone else."""
        key = display_name.strip().lower()
        clauses = [{"display_name_key": key}]
        norm = _NON_ALNUM.sub("", key)
        if norm:
            clauses.append({"institution_key": norm})
        query = {"$or": clauses}
        if exclude_user_id is not None and ObjectId.is_valid(exclude_user_id):
            query["_id"] = {"$ne": ObjectId(exclude_user_id)}
        return self.profiles.find_one(query, {"_id": 1}) is not None

    def institution_registered(self, institution_id: str) -> bool:
        key = normalize_identifier(institution_id)
        return self.profiles.find_one({"institution_key": key}, {"_id": 1}) is not None

    def institution_shadows_display_name(self, institution_id: str) -> bool:
        key = normalize_identifier(institution_id)
        return self.profiles.find_one({"display_name_norm": key}, {"_id": 1}) is not None

    def register(self, user_id: str, display_name: str, institution_id: str, login_identifier: str) -> User:
        doc = {
            "_id": ObjectId(user_id),
            "display_name": display_name.strip(),
            "display_name_key": display_name.strip().lower(),
            "display_name_norm": _display_name_norm(display_name),
            "institution_id": institution_id.strip(),
            "institution_key": normalize_identifier(institution_id),
            "login_identifier": login_identifier,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            self.profiles.insert_one(doc)
        except DuplicateKeyError:
            logger.warning(f"Profile for {login_identifier} lost a race for display name '{display_name}'")
            raise ValidationError("This username is already taken.")
        except PyMongoError as e:
            logger.error(f"Profile creation failed for {login_identifier}: {e}")
            raise PersistenceError("Signup failed. Please try again.")
        return _to_user(doc)

    def resolve(self, identifier: str) -> str:
        """Map an institution ID or display name to the provider login."""
        term = (identifier or "").strip()
        if not term:
            raise IdentityLookupError()
        doc = None
        key = _NON_ALNUM.sub("", term.lower())
        if key:
            doc = self.profiles.find_one({"institution_key": key}, {"login_identifier": 1})
        if doc is None:
            doc = self.profiles.find_one({"display_name_key": term.lower()}, {"login_identifier": 1})
        if doc is None:
            raise IdentityLookupError()
        return doc["login_identifier"]

    def get(self, user_id: str) -> User:
        try:
            doc = self.profiles.find_one({"_id": ObjectId(user_id)})
        except InvalidId:
            doc = None
        if not doc:
            raise NotFoundError("User not found.")
        return _to_user(doc)

    def find_many(self, user_ids) -> dict:
        ids = [ObjectId(u) for u in set(user_ids) if ObjectId.is_valid(u)]
        return {str(doc["_id"]): _to_user(doc) for doc in self.profiles.find({"_id": {"$in": ids}})}

    def update_display_name(self, user_id: str, display_name: str) -> User:
        name = display_name.strip()
        if len(name) < 3:
            raise ValidationError("Username must be at least 3 characters.")
        if self.display_name_taken(name, exclude_user_id=user_id):
            raise ValidationError("This username is already taken.")
        try:
            result = self.profiles.find_one_and_update(
                {"_id": ObjectId(user_id)},
                {"$set": {"display_name": name, "display_name_key": name.lower(),
                          "display_name_norm": _display_name_norm(name)}},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise ValidationError("This username is already taken.")
        if not result:
            raise NotFoundError("User not found.")
        return _to_user(result)
