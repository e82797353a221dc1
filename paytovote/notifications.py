import logging
import threading
from typing import Callable, List

from paytovote.models.vote_model import Vote

logger = logging.getLogger(__name__)

VoteListener = Callable[[Vote], None]


class VoteFeed:
    """In-process push channel for newly inserted votes.

    Delivery is best effort; consumers must be able to recover with a refetch.
    """

    def __init__(self):
        self._listeners: List[VoteListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: VoteListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, vote: Vote) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(vote)
            except Exception:
                logger.error(f"Vote listener failed for vote {vote.id}", exc_info=True)
