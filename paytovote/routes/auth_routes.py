from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel

from paytovote.dependencies import get_current_token, get_current_user, get_services
from paytovote.models.user_model import LoginRequest, Session, SignUpRequest, User
from paytovote.services import Services

router = APIRouter(prefix="/auth", tags=["Auth"])


class DisplayNameUpdate(BaseModel):
    display_name: str


@router.post("/signup", response_model=User, status_code=status.HTTP_201_CREATED)
def signup(data: SignUpRequest, services: Services = Depends(get_services)):
    return services.accounts.sign_up(data)


@router.post("/login", response_model=Session)
def login(data: LoginRequest, services: Services = Depends(get_services)):
    return services.accounts.login(data.identifier, data.password)


# OAuth2 password flow, used by the interactive docs
@router.post("/token")
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(),
                           services: Services = Depends(get_services)):
    session = services.accounts.login(form_data.username, form_data.password)
    return {"access_token": session.access_token, "token_type": "bearer"}


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(token: str = Depends(get_current_token), services: Services = Depends(get_services)):
    services.accounts.logout(token)


@router.get("/session", response_model=User)
def current_user(user: User = Depends(get_current_user)):
    return user


@router.patch("/profile", response_model=User)
def update_profile(data: DisplayNameUpdate, user: User = Depends(get_current_user),
                   services: Services = Depends(get_services)):
    return services.directory.update_display_name(user.id, data.display_name)
