from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from paytovote.dependencies import get_current_user, get_services
from paytovote.models.user_model import User
from paytovote.models.vote_model import SelectCandidateRequest, Vote, WorkflowView
from paytovote.services import Services
from paytovote.storage import ProofImage

vote_router = APIRouter(tags=["Vote"])


# ------------------------------
# Workflow: select -> pay -> upload proof
# ------------------------------
@vote_router.get("/polls/{poll_id}/workflow", response_model=WorkflowView)
def enter_workflow(poll_id: str, user: User = Depends(get_current_user),
                   services: Services = Depends(get_services)):
    """
    Current step for this user and poll. A pending or approved vote is
    returned read-only instead of the candidate selection step.
    """
    return services.workflow.enter(user.id, poll_id)


@vote_router.post("/polls/{poll_id}/workflow/select", response_model=WorkflowView)
def select_candidate(poll_id: str, data: SelectCandidateRequest, user: User = Depends(get_current_user),
                     services: Services = Depends(get_services)):
    return services.workflow.select(user.id, poll_id, data.candidate_id)


@vote_router.post("/polls/{poll_id}/workflow/confirm", response_model=WorkflowView)
def confirm_payment(poll_id: str, user: User = Depends(get_current_user),
                    services: Services = Depends(get_services)):
    return services.workflow.confirm(user.id, poll_id)


@vote_router.post("/polls/{poll_id}/workflow/cancel", response_model=WorkflowView)
def cancel_selection(poll_id: str, user: User = Depends(get_current_user),
                     services: Services = Depends(get_services)):
    return services.workflow.cancel(user.id, poll_id)


@vote_router.post("/polls/{poll_id}/workflow/back", response_model=WorkflowView)
def back_to_payment(poll_id: str, user: User = Depends(get_current_user),
                    services: Services = Depends(get_services)):
    return services.workflow.back(user.id, poll_id)


@vote_router.post("/polls/{poll_id}/workflow/restart", response_model=WorkflowView)
def restart_after_rejection(poll_id: str, user: User = Depends(get_current_user),
                            services: Services = Depends(get_services)):
    return services.workflow.restart(user.id, poll_id)


@vote_router.post("/polls/{poll_id}/workflow/submit", response_model=Vote, status_code=status.HTTP_201_CREATED)
def submit_proof(
    poll_id: str,
    transaction_ref: str = Form(""),
    proof: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    image = None
    if proof is not None:
        image = ProofImage(filename=proof.filename, content_type=proof.content_type, data=proof.file.read())
    return services.workflow.submit(user.id, poll_id, transaction_ref, image)


@vote_router.get("/votes/mine", response_model=List[Vote])
def voting_history(user: User = Depends(get_current_user), services: Services = Depends(get_services)):
    return services.workflow.history(user.id)
