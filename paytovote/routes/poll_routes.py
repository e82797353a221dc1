from typing import List

from fastapi import APIRouter, Depends

from paytovote.dependencies import get_current_user, get_services
from paytovote.models.poll_model import Poll
from paytovote.models.user_model import User
from paytovote.services import Services

router = APIRouter(prefix="/polls", tags=["Polls"])


@router.get("", response_model=List[Poll])
def list_active_polls(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    return services.catalog.list_active()


@router.get("/{poll_id}", response_model=Poll)
def get_poll(poll_id: str, user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    return services.catalog.get(poll_id)
