import logging
from datetime import datetime, timezone
from typing import List, Optional, Set

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from paytovote.database import VOTES_COLLECTION_NAME
from paytovote.errors import NotFoundError, StaleStateError, ValidationError
from paytovote.models.vote_model import LIVE_STATUSES, Vote, VoteStatus

logger = logging.getLogger(__name__)

OLDEST_FIRST = [("created_at", ASCENDING), ("_id", ASCENDING)]
NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def _to_vote(doc: dict) -> Vote:
    return Vote(
        id=str(doc["_id"]),
        poll_id=doc["poll_id"],
        user_id=doc["user_id"],
        candidate_id=doc["candidate_id"],
        transaction_ref=doc["transaction_ref"],
        proof_url=doc["proof_url"],
        proof_path=doc.get("proof_path"),
        status=doc["status"],
        approved_by=doc.get("approved_by"),
        approved_at=doc.get("approved_at"),
        created_at=doc["created_at"],
    )


class VoteRepository:
    def __init__(self, db: Database):
        self.votes = db[VOTES_COLLECTION_NAME]

    def insert(self, poll_id: str, user_id: str, candidate_id: str, transaction_ref: str,
               proof_url: str, proof_path: str) -> Vote:
        doc = {
            "poll_id": poll_id,
            "user_id": user_id,
            "candidate_id": candidate_id,
            "transaction_ref": transaction_ref,
            "proof_url": proof_url,
            "proof_path": proof_path,
            "status": VoteStatus.PENDING.value,
            "is_live": True,
            "approved_by": None,
            "approved_at": None,
            "created_at": datetime.now(timezone.utc),
        }
        doc["_id"] = self.votes.insert_one(doc).inserted_id
        return _to_vote(doc)

    def get(self, vote_id: str) -> Vote:
        try:
            doc = self.votes.find_one({"_id": ObjectId(vote_id)})
        except (InvalidId, TypeError):
            doc = None
        if not doc:
            raise NotFoundError("Vote not found.")
        return _to_vote(doc)

    def find_live(self, poll_id: str, user_id: str) -> Optional[Vote]:
        """The user's live vote for the poll; APPROVED wins over a duplicate PENDING."""
        docs = list(
            self.votes.find({"poll_id": poll_id, "user_id": user_id, "status": {"$in": list(LIVE_STATUSES)}})
            .sort(OLDEST_FIRST)
        )
        if not docs:
            return None
        approved = [d for d in docs if d["status"] == VoteStatus.APPROVED.value]
        return _to_vote(approved[0] if approved else docs[0])

    def latest(self, poll_id: str, user_id: str) -> Optional[Vote]:
        docs = list(
            self.votes.find({"poll_id": poll_id, "user_id": user_id})
            .sort(NEWEST_FIRST)
            .limit(1)
        )
        return _to_vote(docs[0]) if docs else None

    def rejected_refs(self, poll_id: str, user_id: str) -> Set[str]:
        cursor = self.votes.find(
            {"poll_id": poll_id, "user_id": user_id, "status": VoteStatus.REJECTED.value},
            {"transaction_ref": 1},
        )
        return {d["transaction_ref"].strip().lower() for d in cursor}

    def list_for_user(self, user_id: str) -> List[Vote]:
        return [_to_vote(d) for d in self.votes.find({"user_id": user_id}).sort(NEWEST_FIRST)]

    def list_pending(self) -> List[Vote]:
        cursor = self.votes.find({"status": VoteStatus.PENDING.value}).sort(OLDEST_FIRST)
        return [_to_vote(d) for d in cursor]

    def dispose(self, vote_id: str, outcome: VoteStatus, admin_id: str) -> Vote:
        """Atomically move a PENDING vote to ``outcome``."""
        outcome = VoteStatus(outcome)
        if outcome == VoteStatus.PENDING:
            raise ValidationError("Status must be 'APPROVED' or 'REJECTED'")
        try:
            oid = ObjectId(vote_id)
        except (InvalidId, TypeError):
            raise NotFoundError("Vote not found.")

        result = self.votes.find_one_and_update(
            {"_id": oid, "status": VoteStatus.PENDING.value},
            {"$set": {
                "status": outcome.value,
                "is_live": outcome == VoteStatus.APPROVED,
                "approved_by": admin_id,
                "approved_at": datetime.now(timezone.utc),
            }},
            return_document=ReturnDocument.AFTER,
        )
        if result:
            return _to_vote(result)
        if self.votes.find_one({"_id": oid}, {"_id": 1}) is None:
            raise NotFoundError("Vote not found.")
        raise StaleStateError()
