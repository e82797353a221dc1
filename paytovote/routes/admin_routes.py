import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder

from paytovote.dependencies import get_services, require_admin
from paytovote.errors import PayToVoteError
from paytovote.models.poll_model import Candidate, CandidateIn, Poll, PollCreate, PollStatusUpdate
from paytovote.models.user_model import LoginRequest, Session, User
from paytovote.models.vote_model import DispositionRequest, PendingVote, Vote
from paytovote.services import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/login", response_model=Session)
def admin_login(data: LoginRequest, services: Services = Depends(get_services)):
    return services.accounts.admin_login(data.identifier, data.password)


# --- Poll management ---

@router.post("/polls", response_model=Poll, status_code=status.HTTP_201_CREATED)
def create_poll(poll: PollCreate, admin: User = Depends(require_admin),
                services: Services = Depends(get_services)):
    return services.catalog.create(poll, created_by=admin.id)


@router.patch("/polls/{poll_id}/status", response_model=Poll)
def update_poll_status(poll_id: str, data: PollStatusUpdate, admin: User = Depends(require_admin),
                       services: Services = Depends(get_services)):
    return services.catalog.set_active(poll_id, data.is_active)


@router.post("/polls/{poll_id}/candidates", response_model=Candidate, status_code=status.HTTP_201_CREATED)
def add_candidate_to_poll(poll_id: str, candidate: CandidateIn, admin: User = Depends(require_admin),
                          services: Services = Depends(get_services)):
    return services.catalog.add_candidate(poll_id, candidate)


# --- Review queue ---

@router.get("/votes/pending", response_model=List[PendingVote])
def list_pending_votes(q: Optional[str] = None, refresh: bool = False, admin: User = Depends(require_admin),
                       services: Services = Depends(get_services)):
    if refresh:
        services.queue.refresh()
    if q:
        return services.queue.search(q)
    return services.queue.list_pending()


@router.post("/votes/refresh", response_model=List[PendingVote])
def refresh_pending_votes(admin: User = Depends(require_admin), services: Services = Depends(get_services)):
    return services.queue.refresh()


@router.patch("/votes/{vote_id}/status", response_model=Vote)
def patch_vote_status(vote_id: str, data: DispositionRequest, admin: User = Depends(require_admin),
                      services: Services = Depends(get_services)):
    return services.queue.disposition(vote_id, data.status, admin.id)


@router.websocket("/ws/pending")
async def pending_vote_feed(websocket: WebSocket, token: str = Query("")):
    services: Services = websocket.app.state.services
    try:
        user = await run_in_threadpool(services.accounts.session_user, token)
    except PayToVoteError:
        user = None
    if not services.policy.is_admin(user):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    loop = asyncio.get_running_loop()
    arrivals: asyncio.Queue = asyncio.Queue()
    # Subscribe before accepting so nothing published after the handshake is missed
    unsubscribe = services.feed.subscribe(lambda vote: loop.call_soon_threadsafe(arrivals.put_nowait, vote))
    await websocket.accept()

    async def push():
        while True:
            vote = await arrivals.get()
            pending = await run_in_threadpool(services.queue.describe, vote)
            await websocket.send_json(jsonable_encoder(pending))

    async def watch():
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    tasks = {asyncio.create_task(push()), asyncio.create_task(watch())}
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None \
                    and not isinstance(task.exception(), WebSocketDisconnect):
                logger.error("Pending feed failed", exc_info=task.exception())
    finally:
        for task in tasks:
            task.cancel()
        unsubscribe()
        logger.info(f"Admin {user.login_identifier} disconnected from pending feed")
