import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from paytovote.config import MANIFESTO_MAX_LENGTH, MIN_CANDIDATES
from paytovote.database import CANDIDATES_COLLECTION_NAME, POLLS_COLLECTION_NAME
from paytovote.errors import NotFoundError, PersistenceError, ValidationError
from paytovote.models.poll_model import Candidate, CandidateIn, Poll, PollCreate

logger = logging.getLogger(__name__)


def _object_id(value: str, what: str = "Poll") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{what} not found.")


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def _to_candidate(doc: dict) -> Candidate:
    return Candidate(
        id=str(doc["_id"]),
        poll_id=doc["poll_id"],
        name=doc["name"],
        picture_url=doc.get("picture_url"),
        manifesto_summary=doc.get("manifesto_summary"),
        position=doc.get("position", 0),
    )


def _to_poll(doc: dict, candidates: List[Candidate]) -> Poll:
    return Poll(
        id=str(doc["_id"]),
        title=doc["title"],
        cost_per_vote=doc["cost_per_vote"],
        is_active=doc["is_active"],
        created_at=doc["created_at"],
        created_by=doc.get("created_by"),
        candidates=candidates,
    )


def _candidate_record(poll_id: str, candidate: CandidateIn, position: int, now: datetime) -> dict:
    summary = _clean(candidate.manifesto_summary)
    if summary and len(summary) > MANIFESTO_MAX_LENGTH:
        raise ValidationError(f"Manifesto summary must be at most {MANIFESTO_MAX_LENGTH} characters.")
    return {
        "poll_id": poll_id,
        "name": candidate.name.strip(),
        "picture_url": _clean(candidate.picture_url),
        "manifesto_summary": summary,
        "position": position,
        "created_at": now,
    }


class PollCatalog:
    def __init__(self, db: Database):
        self.polls = db[POLLS_COLLECTION_NAME]
        self.candidates = db[CANDIDATES_COLLECTION_NAME]

    def _candidates_by_poll(self, poll_ids: List[str]) -> Dict[str, List[Candidate]]:
        grouped: Dict[str, List[Candidate]] = {pid: [] for pid in poll_ids}
        cursor = self.candidates.find({"poll_id": {"$in": poll_ids}}).sort("position", ASCENDING)
        for doc in cursor:
            grouped.setdefault(doc["poll_id"], []).append(_to_candidate(doc))
        return grouped

    def list_active(self) -> List[Poll]:
        docs = list(self.polls.find({"is_active": True}).sort([("created_at", DESCENDING), ("_id", DESCENDING)]))
        grouped = self._candidates_by_poll([str(d["_id"]) for d in docs])
        return [_to_poll(d, grouped.get(str(d["_id"]), [])) for d in docs]

    def get(self, poll_id: str) -> Poll:
        doc = self.polls.find_one({"_id": _object_id(poll_id)})
        if not doc:
            raise NotFoundError("Poll not found.")
        return _to_poll(doc, self._candidates_by_poll([poll_id]).get(poll_id, []))

    def titles(self, poll_ids) -> Dict[str, str]:
        ids = [ObjectId(p) for p in set(poll_ids) if ObjectId.is_valid(p)]
        return {str(d["_id"]): d["title"] for d in self.polls.find({"_id": {"$in": ids}}, {"title": 1})}

    def candidate_names(self, candidate_ids) -> Dict[str, str]:
        ids = [ObjectId(c) for c in set(candidate_ids) if ObjectId.is_valid(c)]
        return {str(d["_id"]): d["name"] for d in self.candidates.find({"_id": {"$in": ids}}, {"name": 1})}

    def create(self, poll: PollCreate, created_by: Optional[str] = None) -> Poll:
        title = poll.title.strip()
        valid_candidates = [c for c in poll.candidates if c.name.strip()]
        if not title or len(valid_candidates) < MIN_CANDIDATES or poll.cost_per_vote <= 0:
            raise ValidationError(
                "Please enter a title, at least two candidate names, and a cost greater than zero."
            )

        now = datetime.now(timezone.utc)
        # Inserted inactive; only activated once its candidates are stored
        poll_doc = {
            "title": title,
            "cost_per_vote": poll.cost_per_vote,
            "is_active": False,
            "created_at": now,
            "created_by": created_by,
        }
        records = [_candidate_record("", c, i, now) for i, c in enumerate(valid_candidates)]
        try:
            poll_id = str(self.polls.insert_one(poll_doc).inserted_id)
        except PyMongoError as e:
            logger.error(f"Failed to insert poll '{title}': {e}")
            raise PersistenceError("Failed to publish poll.")

        for record in records:
            record["poll_id"] = poll_id
        try:
            self.candidates.insert_many(records)
        except PyMongoError as e:
            logger.error(f"Candidate insert failed; poll {poll_id} left inactive: {e}")
            raise PersistenceError("Failed to publish poll: candidates could not be saved.")

        if poll.is_active:
            try:
                self.polls.update_one({"_id": ObjectId(poll_id)}, {"$set": {"is_active": True}})
            except PyMongoError as e:
                logger.error(f"Poll {poll_id} stored but could not be activated: {e}")
                raise PersistenceError("Poll saved but could not be opened. Open it from the poll list.")
        logger.info(f"Poll '{title}' created with {len(records)} candidates by {created_by}")
        return self.get(poll_id)

    def set_active(self, poll_id: str, is_active: bool) -> Poll:
        result = self.polls.update_one({"_id": _object_id(poll_id)}, {"$set": {"is_active": is_active}})
        if result.matched_count == 0:
            raise NotFoundError("Poll not found.")
        logger.info(f"Poll {poll_id} {'opened' if is_active else 'closed'}")
        return self.get(poll_id)

    def add_candidate(self, poll_id: str, candidate: CandidateIn) -> Candidate:
        if not candidate.name.strip():
            raise ValidationError("Candidate name is required.")
        if not self.polls.find_one({"_id": _object_id(poll_id)}, {"_id": 1}):
            raise NotFoundError("Poll not found.")
        position = self.candidates.count_documents({"poll_id": poll_id})
        record = _candidate_record(poll_id, candidate, position, datetime.now(timezone.utc))
        try:
            record["_id"] = self.candidates.insert_one(record).inserted_id
        except PyMongoError as e:
            logger.error(f"Failed to add candidate to poll {poll_id}: {e}")
            raise PersistenceError("Failed to add candidate.")
        return _to_candidate(record)
