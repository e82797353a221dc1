"""Error taxonomy shared by the workflow, the review queue and the routes.

Every error carries the HTTP status it maps to and a message that is safe to
show to the user; ``paytovote.main`` installs a single handler for them.
"""


class PayToVoteError(Exception):
    status_code = 500
    default_message = "Unexpected error."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PayToVoteError):
    """Bad or missing user input, raised before any network call."""
    status_code = 400
    default_message = "Invalid input."


class AuthError(PayToVoteError):
    status_code = 401
    default_message = "Login failed. Please check your credentials."


class IdentityLookupError(AuthError):
    """A login identifier could not be resolved to a provider identity."""
    default_message = "Login failed. Invalid Matric/Username or Password."


class ForbiddenError(PayToVoteError):
    status_code = 403
    default_message = "Admin privileges required."


class NotFoundError(PayToVoteError):
    status_code = 404
    default_message = "Not found."


class ConflictError(PayToVoteError):
    """A live vote already exists for this user and poll."""
    status_code = 409
    default_message = "You already have a vote pending or approved for this poll."


class StaleStateError(PayToVoteError):
    """Disposition attempted on a vote that is no longer PENDING."""
    status_code = 409
    default_message = "This vote has already been reviewed. Refresh the queue."


class InvalidTransitionError(PayToVoteError):
    status_code = 409
    default_message = "That action is not available at this step."


class UploadError(PayToVoteError):
    status_code = 502
    default_message = "Proof upload failed. Please try again."


class PersistenceError(PayToVoteError):
    status_code = 500
    default_message = "Could not save your changes. Please try again."
