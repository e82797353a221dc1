from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class VoteStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


LIVE_STATUSES = (VoteStatus.PENDING.value, VoteStatus.APPROVED.value)


class Vote(BaseModel):
    id: str
    poll_id: str
    user_id: str
    candidate_id: str
    transaction_ref: str
    proof_url: str
    proof_path: Optional[str] = None
    status: VoteStatus
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime

    @property
    def is_live(self) -> bool:
        return self.status.value in LIVE_STATUSES


class PendingVote(BaseModel):
    """A PENDING vote joined with what the reviewer needs to see."""
    id: str
    poll_id: str
    poll_title: Optional[str] = None
    candidate_id: str
    candidate_name: Optional[str] = None
    user_id: str
    voter_display_name: Optional[str] = None
    voter_institution_id: Optional[str] = None
    voter_login: Optional[str] = None
    transaction_ref: str
    proof_url: str
    created_at: datetime


class DispositionRequest(BaseModel):
    status: VoteStatus


class SelectCandidateRequest(BaseModel):
    candidate_id: str


class PaymentInstructions(BaseModel):
    amount: int
    account_name: str
    account_number: str
    bank_name: str


class WorkflowView(BaseModel):
    poll_id: str
    state: str
    candidate_id: Optional[str] = None
    payment: Optional[PaymentInstructions] = None
    vote: Optional[Vote] = None
