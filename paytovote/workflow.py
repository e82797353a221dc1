"""Vote workflow: candidate selection -> payment -> proof -> admin review.

State per (user, poll)::

    SELECTING --select--> AWAITING_PAYMENT --confirm--> UPLOADING_PROOF
        ^                      |    ^                        |
        +------- cancel -------+    +-------- back ----------+
                                                             | submit
                                                             v
                        APPROVED <-- admin -- SUBMITTED_PENDING -- admin --> REJECTED
                                                                               |
                                                  restart / select ------------+

Nothing is persisted as a vote until ``submit``; the pre-submission steps are
kept in the ``workflow_drafts`` collection so they survive between requests.
PENDING and APPROVED votes are re-read on every entry, so a user never sees
the selection screen while a live vote exists.
"""
import logging
import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from paytovote import config
from paytovote.catalog import PollCatalog
from paytovote.database import DRAFTS_COLLECTION_NAME
from paytovote.errors import (
    ConflictError,
    InvalidTransitionError,
    PersistenceError,
    UploadError,
    ValidationError,
)
from paytovote.models.poll_model import Poll
from paytovote.models.vote_model import PaymentInstructions, Vote, VoteStatus, WorkflowView
from paytovote.notifications import VoteFeed
from paytovote.storage import ProofImage, ProofStore, validate_proof
from paytovote.votes import VoteRepository

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    SELECTING = "SELECTING"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    UPLOADING_PROOF = "UPLOADING_PROOF"
    SUBMITTED_PENDING = "SUBMITTED_PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Event(str, Enum):
    SELECT = "select"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    BACK = "back"
    RESTART = "restart"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"


TRANSITIONS = {
    (WorkflowState.SELECTING, Event.SELECT): WorkflowState.AWAITING_PAYMENT,
    (WorkflowState.AWAITING_PAYMENT, Event.CONFIRM): WorkflowState.UPLOADING_PROOF,
    (WorkflowState.AWAITING_PAYMENT, Event.CANCEL): WorkflowState.SELECTING,
    (WorkflowState.UPLOADING_PROOF, Event.BACK): WorkflowState.AWAITING_PAYMENT,
    (WorkflowState.UPLOADING_PROOF, Event.SUBMIT): WorkflowState.SUBMITTED_PENDING,
    (WorkflowState.SUBMITTED_PENDING, Event.APPROVE): WorkflowState.APPROVED,
    (WorkflowState.SUBMITTED_PENDING, Event.REJECT): WorkflowState.REJECTED,
    (WorkflowState.REJECTED, Event.RESTART): WorkflowState.SELECTING,
    (WorkflowState.REJECTED, Event.SELECT): WorkflowState.AWAITING_PAYMENT,
}

DRAFT_STATES = (WorkflowState.SELECTING, WorkflowState.AWAITING_PAYMENT, WorkflowState.UPLOADING_PROOF)

_STATE_FOR_STATUS = {
    VoteStatus.PENDING: WorkflowState.SUBMITTED_PENDING,
    VoteStatus.APPROVED: WorkflowState.APPROVED,
    VoteStatus.REJECTED: WorkflowState.REJECTED,
}


def next_state(state: WorkflowState, event: Event) -> WorkflowState:
    key = (WorkflowState(state), Event(event))
    if key not in TRANSITIONS:
        raise InvalidTransitionError(f"Cannot {key[1].value} while {key[0].value}.")
    return TRANSITIONS[key]


def proof_path(user_id: str, poll_id: str, ext: str) -> str:
    return f"{user_id}/{poll_id}_{int(time.time() * 1000)}_{uuid.uuid4().hex}.{ext}"


class VoteWorkflowEngine:
    def __init__(self, db: Database, catalog: PollCatalog, votes: VoteRepository,
                 proof_store: ProofStore, feed: Optional[VoteFeed] = None,
                 reject_reused_ref: bool = config.REJECT_REUSED_TRANSACTION_REF):
        self.drafts = db[DRAFTS_COLLECTION_NAME]
        self.catalog = catalog
        self.votes = votes
        self.proof_store = proof_store
        self.feed = feed
        self.reject_reused_ref = reject_reused_ref

    # --- state resolution ---

    def _resolve(self, user_id: str, poll_id: str) -> Tuple[WorkflowState, Optional[str], Optional[Vote]]:
        live = self.votes.find_live(poll_id, user_id)
        if live is not None:
            return _STATE_FOR_STATUS[live.status], live.candidate_id, live

        draft = self.drafts.find_one({"user_id": user_id, "poll_id": poll_id})
        if draft:
            return WorkflowState(draft["state"]), draft.get("candidate_id"), None

        latest = self.votes.latest(poll_id, user_id)
        if latest is not None and latest.status == VoteStatus.REJECTED:
            return WorkflowState.REJECTED, latest.candidate_id, latest
        return WorkflowState.SELECTING, None, None

    def _view(self, poll: Poll, state: WorkflowState, candidate_id: Optional[str],
              vote: Optional[Vote]) -> WorkflowView:
        payment = None
        if state in (WorkflowState.AWAITING_PAYMENT, WorkflowState.UPLOADING_PROOF):
            payment = PaymentInstructions(
                amount=poll.cost_per_vote,
                account_name=config.PAYMENT_ACCOUNT_NAME,
                account_number=config.PAYMENT_ACCOUNT_NUMBER,
                bank_name=config.PAYMENT_BANK_NAME,
            )
        return WorkflowView(poll_id=poll.id, state=state.value, candidate_id=candidate_id,
                            payment=payment, vote=vote)

    def _save_draft(self, user_id: str, poll_id: str, state: WorkflowState, candidate_id: Optional[str]):
        self.drafts.update_one(
            {"user_id": user_id, "poll_id": poll_id},
            {"$set": {"state": state.value, "candidate_id": candidate_id,
                      "updated_at": datetime.now(timezone.utc)}},
            upsert=True,
        )

    # --- operations ---

    def enter(self, user_id: str, poll_id: str) -> WorkflowView:
        poll = self.catalog.get(poll_id)
        state, candidate_id, vote = self._resolve(user_id, poll_id)
        return self._view(poll, state, candidate_id, vote)

    def _step(self, user_id: str, poll_id: str, event: Event, candidate_id: Optional[str] = None) -> WorkflowView:
        poll = self.catalog.get(poll_id)
        state, current_candidate, _ = self._resolve(user_id, poll_id)
        new_state = next_state(state, event)

        if event == Event.SELECT:
            if not poll.is_active:
                raise ValidationError("This poll is not open for voting.")
            if not candidate_id or poll.candidate(candidate_id) is None:
                raise ValidationError("Please select a candidate from this poll.")
            current_candidate = candidate_id
        if new_state == WorkflowState.SELECTING:
            current_candidate = None

        self._save_draft(user_id, poll_id, new_state, current_candidate)
        return self._view(poll, new_state, current_candidate, None)

    def select(self, user_id: str, poll_id: str, candidate_id: str) -> WorkflowView:
        return self._step(user_id, poll_id, Event.SELECT, candidate_id)

    def confirm(self, user_id: str, poll_id: str) -> WorkflowView:
        return self._step(user_id, poll_id, Event.CONFIRM)

    def cancel(self, user_id: str, poll_id: str) -> WorkflowView:
        return self._step(user_id, poll_id, Event.CANCEL)

    def back(self, user_id: str, poll_id: str) -> WorkflowView:
        return self._step(user_id, poll_id, Event.BACK)

    def restart(self, user_id: str, poll_id: str) -> WorkflowView:
        return self._step(user_id, poll_id, Event.RESTART)

    def submit(self, user_id: str, poll_id: str, transaction_ref: str,
               image: Optional[ProofImage]) -> Vote:
        ref = (transaction_ref or "").strip()
        if not ref:
            raise ValidationError("Please provide both the transaction reference and the screenshot.")
        ext = validate_proof(image)

        poll = self.catalog.get(poll_id)
        if self.votes.find_live(poll_id, user_id) is not None:
            logger.warning(f"Duplicate submission blocked for user {user_id} on poll {poll_id}")
            raise ConflictError()
        state, candidate_id, _ = self._resolve(user_id, poll_id)
        next_state(state, Event.SUBMIT)
        if not poll.is_active:
            raise ValidationError("This poll is not open for voting.")
        if poll.candidate(candidate_id) is None:
            raise ValidationError("Please select a candidate from this poll.")
        if self.reject_reused_ref and ref.lower() in self.votes.rejected_refs(poll_id, user_id):
            raise ConflictError("This transaction reference was already rejected for this poll.")

        path = proof_path(user_id, poll_id, ext)
        try:
            self.proof_store.upload(path, image.data)
        except UploadError:
            logger.error(f"Proof upload failed for user {user_id} on poll {poll_id}", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Proof upload failed for user {user_id} on poll {poll_id}: {e}")
            raise UploadError()
        try:
            proof_url = self.proof_store.get_public_url(path)
        except Exception as e:
            logger.error(f"Could not resolve proof URL for {path}: {e}")
            self._discard_proof(path)
            raise UploadError()

        try:
            vote = self.votes.insert(poll_id, user_id, candidate_id, ref, proof_url, path)
        except DuplicateKeyError:
            self._discard_proof(path)
            raise ConflictError()
        except PyMongoError as e:
            logger.error(f"Vote insert failed for user {user_id} on poll {poll_id}: {e}")
            self._discard_proof(path)
            raise PersistenceError("Submission failed. Your vote was not recorded.")

        self.drafts.delete_one({"user_id": user_id, "poll_id": poll_id})
        logger.info(f"Vote {vote.id} submitted by user {user_id} on poll {poll_id}, pending approval")
        if self.feed is not None:
            self.feed.publish(vote)
        return vote

    def _discard_proof(self, path: str) -> None:
        try:
            self.proof_store.remove(path)
        except Exception:
            logger.error(f"Could not remove orphaned proof {path}", exc_info=True)

    def history(self, user_id: str) -> List[Vote]:
        return self.votes.list_for_user(user_id)
