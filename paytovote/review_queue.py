import logging
import threading
from typing import Callable, List, Optional

from paytovote.catalog import PollCatalog
from paytovote.directory import ProfileDirectory
from paytovote.errors import NotFoundError, PayToVoteError, StaleStateError, ValidationError
from paytovote.models.vote_model import PendingVote, Vote, VoteStatus
from paytovote.notifications import VoteFeed
from paytovote.votes import VoteRepository
from paytovote.workflow import Event, WorkflowState, next_state

logger = logging.getLogger(__name__)

_EVENT_FOR_OUTCOME = {
    VoteStatus.APPROVED: Event.APPROVE,
    VoteStatus.REJECTED: Event.REJECT,
}


class ReviewQueue:
    """Pending votes awaiting an admin decision, oldest first.

    The list is cached after the first load; ``refresh`` refetches it and is
    always a valid recovery path if a feed notification was missed.
    """

    def __init__(self, votes: VoteRepository, catalog: PollCatalog, directory: ProfileDirectory):
        self.votes = votes
        self.catalog = catalog
        self.directory = directory
        self._pending: Optional[List[PendingVote]] = None
        self._lock = threading.RLock()
        self._unsubscribe: Optional[Callable[[], None]] = None

    def _join(self, votes: List[Vote]) -> List[PendingVote]:
        titles = self.catalog.titles(v.poll_id for v in votes)
        names = self.catalog.candidate_names(v.candidate_id for v in votes)
        voters = self.directory.find_many(v.user_id for v in votes)
        joined = []
        for v in votes:
            voter = voters.get(v.user_id)
            joined.append(PendingVote(
                id=v.id,
                poll_id=v.poll_id,
                poll_title=titles.get(v.poll_id),
                candidate_id=v.candidate_id,
                candidate_name=names.get(v.candidate_id),
                user_id=v.user_id,
                voter_display_name=voter.display_name if voter else None,
                voter_institution_id=voter.institution_id if voter else None,
                voter_login=voter.login_identifier if voter else None,
                transaction_ref=v.transaction_ref,
                proof_url=v.proof_url,
                created_at=v.created_at,
            ))
        return joined

    def describe(self, vote: Vote) -> PendingVote:
        return self._join([vote])[0]

    def refresh(self) -> List[PendingVote]:
        pending = self._join(self.votes.list_pending())
        with self._lock:
            self._pending = pending
            logger.info(f"Review queue refreshed: {len(pending)} pending")
            return list(pending)

    def list_pending(self) -> List[PendingVote]:
        with self._lock:
            if self._pending is not None:
                return list(self._pending)
        return self.refresh()

    def search(self, term: str) -> List[PendingVote]:
        needle = (term or "").strip().lower()
        pending = self.list_pending()
        if not needle:
            return pending

        def matches(item: PendingVote) -> bool:
            fields = (
                item.voter_display_name,
                item.voter_institution_id,
                item.voter_login,
                item.poll_title,
                item.transaction_ref,
            )
            return any(needle in f.lower() for f in fields if f)

        return [item for item in pending if matches(item)]

    def disposition(self, vote_id: str, outcome: VoteStatus, admin_id: str) -> Vote:
        outcome = VoteStatus(outcome)
        if outcome not in _EVENT_FOR_OUTCOME:
            raise ValidationError("Status must be 'APPROVED' or 'REJECTED'")
        next_state(WorkflowState.SUBMITTED_PENDING, _EVENT_FOR_OUTCOME[outcome])
        try:
            vote = self.votes.dispose(vote_id, outcome, admin_id)
        except (StaleStateError, NotFoundError) as e:
            logger.warning(f"Disposition of vote {vote_id} by {admin_id} failed: {e.message}")
            # No longer PENDING
            self._drop(vote_id)
            raise
        except PayToVoteError as e:
            logger.warning(f"Disposition of vote {vote_id} by {admin_id} failed: {e.message}")
            raise
        self._drop(vote_id)
        logger.info(f"Vote {vote_id} {outcome.value} by admin {admin_id}")
        return vote

    def _drop(self, vote_id: str) -> None:
        with self._lock:
            if self._pending is not None:
                self._pending = [p for p in self._pending if p.id != vote_id]

    def on_vote_inserted(self, vote: Vote) -> None:
        if vote.status != VoteStatus.PENDING:
            return
        with self._lock:
            if self._pending is None or any(p.id == vote.id for p in self._pending):
                return
        joined = self._join([vote])
        with self._lock:
            if self._pending is not None and not any(p.id == vote.id for p in self._pending):
                # Newest submission goes last to keep the oldest-first order
                self._pending.append(joined[0])

    def subscribe(self, feed: VoteFeed) -> None:
        self._unsubscribe = feed.subscribe(self.on_vote_inserted)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
