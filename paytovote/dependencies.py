from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from paytovote.errors import ForbiddenError
from paytovote.models.user_model import User
from paytovote.services import Services

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_current_token(token: str = Depends(oauth2_scheme)) -> str:
    return token


def get_current_user(token: str = Depends(get_current_token),
                     services: Services = Depends(get_services)) -> User:
    return services.accounts.session_user(token)


# Checked against the stored profile on every request, never the token claims
def require_admin(user: User = Depends(get_current_user),
                  services: Services = Depends(get_services)) -> User:
    if not services.policy.is_admin(user):
        raise ForbiddenError()
    return user
