"""Credential store and session issuing.

The identity provider only knows address-shaped login identifiers and
password hashes; human-facing identifiers live in the profile directory.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from paytovote import config
from paytovote.database import REVOKED_TOKENS_COLLECTION_NAME, USERS_COLLECTION_NAME
from paytovote.errors import AuthError, PersistenceError
from paytovote.models.user_model import Session, User
from paytovote.security import create_access_token, decode_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

SessionListener = Callable[[str, Optional[Session]], None]


class IdentityProvider:
    def __init__(self, db: Database, secret_key: str = config.SECRET_KEY,
                 expires_minutes: int = config.ACCESS_TOKEN_EXPIRE_MINUTES):
        self.users = db[USERS_COLLECTION_NAME]
        self.revoked = db[REVOKED_TOKENS_COLLECTION_NAME]
        self.secret_key = secret_key
        self.expires_minutes = expires_minutes
        self._listeners: List[SessionListener] = []

    def sign_up(self, login_identifier: str, password: str, metadata: Optional[dict] = None) -> str:
        if self.users.find_one({"login_identifier": login_identifier}, {"_id": 1}):
            raise AuthError("This Matric Number is already registered.")
        doc = {
            "login_identifier": login_identifier,
            "password_hash": hash_password(password),
            "metadata": metadata or {},
            "created_at": datetime.now(timezone.utc),
        }
        try:
            result = self.users.insert_one(doc)
        except DuplicateKeyError:
            raise AuthError("This Matric Number is already registered.")
        except PyMongoError as e:
            logger.error(f"Failed to create identity for {login_identifier}: {e}")
            raise PersistenceError("Signup failed. Please try again.")
        logger.info(f"Identity created for {login_identifier}")
        return str(result.inserted_id)

    def delete(self, user_id: str) -> None:
        self.users.delete_one({"_id": ObjectId(user_id)})
        logger.info(f"Identity {user_id} deleted")

    def sign_in(self, login_identifier: str, password: str) -> Session:
        user = self.users.find_one({"login_identifier": login_identifier})
        if not user or not verify_password(password, user["password_hash"]):
            logger.warning(f"Failed sign-in for {login_identifier}")
            raise AuthError()

        token, claims = create_access_token(
            {"sub": str(user["_id"]), "login": login_identifier},
            secret_key=self.secret_key,
            expires_minutes=self.expires_minutes,
        )
        session = Session(
            access_token=token,
            user_id=str(user["_id"]),
            login_identifier=login_identifier,
            expires_at=claims["exp"],
            jti=claims["jti"],
        )
        self._notify("SIGNED_IN", session)
        return session

    def sign_out(self, token: str) -> None:
        session = self.current_session(token)
        if session is None:
            return
        self.revoked.update_one(
            {"jti": session.jti},
            {"$setOnInsert": {"expires_at": session.expires_at}},
            upsert=True,
        )
        logger.info(f"Signed out {session.login_identifier}")
        self._notify("SIGNED_OUT", None)

    def current_session(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        try:
            claims = decode_access_token(token, self.secret_key)
        except AuthError:
            return None
        if self.revoked.find_one({"jti": claims.get("jti")}, {"_id": 1}):
            return None
        return Session(
            access_token=token,
            user_id=claims["sub"],
            login_identifier=claims["login"],
            expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
            jti=claims.get("jti"),
        )

    def on_session_change(self, callback: SessionListener) -> Callable[[], None]:
        """Register ``callback(event, session)``; returns an unsubscribe function."""
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def _notify(self, event: str, session: Optional[Session]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.error(f"Session listener failed on {event}", exc_info=True)


class AdminPolicy:
    """Exact-match allow-list of administrator login identifiers."""

    def __init__(self, admin_identifiers: Iterable[str] = None):
        if admin_identifiers is None:
            admin_identifiers = config.ADMIN_LOGIN_IDENTIFIERS
        self.admin_identifiers = frozenset(admin_identifiers)

    def is_admin(self, user: Optional[User]) -> bool:
        return user is not None and user.login_identifier in self.admin_identifiers

    def is_admin_identifier(self, login_identifier: str) -> bool:
        return login_identifier in self.admin_identifiers
