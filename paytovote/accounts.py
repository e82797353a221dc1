import logging

from paytovote.directory import ProfileDirectory
from paytovote.errors import AuthError, ForbiddenError, IdentityLookupError, PayToVoteError, ValidationError
from paytovote.identity import AdminPolicy, IdentityProvider
from paytovote.models.user_model import Session, SignUpRequest, User

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, identity: IdentityProvider, directory: ProfileDirectory, policy: AdminPolicy):
        self.identity = identity
        self.directory = directory
        self.policy = policy

    # Create a student account: identity first, then the directory profile
    def sign_up(self, data: SignUpRequest) -> User:
        institution_id = data.institution_id.strip()
        display_name = data.display_name.strip()
        if not institution_id or not data.password or len(display_name) < 3:
            raise ValidationError("Please fill in Matric Number, Username, and Password.")
        if self.directory.display_name_taken(display_name):
            raise ValidationError("This username is already taken.")
        if self.directory.institution_registered(institution_id):
            raise AuthError("This Matric Number is already registered.")
        if self.directory.institution_shadows_display_name(institution_id):
            raise ValidationError("This Matric Number matches an existing username.")

        login_identifier = self.directory.login_identifier_for(institution_id)
        user_id = self.identity.sign_up(
            login_identifier,
            data.password,
            {"display_name": display_name, "institution_id": institution_id},
        )
        try:
            user = self.directory.register(user_id, display_name, institution_id, login_identifier)
        except PayToVoteError:
            self._discard_identity(user_id)
            raise
        logger.info(f"Signup completed for {login_identifier}")
        return user

    def _discard_identity(self, user_id: str) -> None:
        try:
            self.identity.delete(user_id)
        except Exception:
            logger.error(f"Could not remove identity {user_id} after failed signup", exc_info=True)

    def login(self, identifier: str, password: str) -> Session:
        try:
            login_identifier = self.directory.resolve(identifier)
        except IdentityLookupError:
            logger.warning(f"Login identifier not found: {identifier!r}")
            raise
        if not password:
            raise IdentityLookupError()
        return self.identity.sign_in(login_identifier, password)

    def admin_login(self, identifier: str, password: str) -> Session:
        """Admin login; refuses identifiers outside the allow-list before checking credentials."""
        term = (identifier or "").strip()
        if "@" in term:
            login_identifier = term
        else:
            login_identifier = self.directory.resolve(term)
        if not self.policy.is_admin_identifier(login_identifier):
            logger.warning(f"Admin login refused for {login_identifier}")
            raise ForbiddenError("Login failed: the entered identifier is not recognized as an administrator.")
        return self.identity.sign_in(login_identifier, password)

    def session_user(self, token: str) -> User:
        session = self.identity.current_session(token)
        if session is None:
            raise AuthError("Not authenticated.")
        return self.directory.get(session.user_id)

    def logout(self, token: str) -> None:
        self.identity.sign_out(token)
