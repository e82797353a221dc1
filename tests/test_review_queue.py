import pytest

from paytovote.errors import NotFoundError, StaleStateError, ValidationError
from paytovote.models.vote_model import VoteStatus

from .conftest import candidate_id, png_proof, walk_to_upload


def _submit(services, user, poll, ref, name="Alice"):
    walk_to_upload(services.workflow, user.id, poll, name)
    return services.workflow.submit(user.id, poll.id, ref, png_proof())


def test_pending_votes_are_joined_oldest_first(services, student, other_student, poll):
    first = _submit(services, student, poll, "TXN-A")
    second = _submit(services, other_student, poll, "TXN-B", "Bob")

    pending = services.queue.list_pending()
    assert [p.id for p in pending] == [first.id, second.id]
    assert pending[0].poll_title == "HOD Election"
    assert pending[0].candidate_name == "Alice"
    assert pending[0].voter_display_name == "jdoe"
    assert pending[0].voter_institution_id == "FPE/CS/21/0042"
    assert pending[1].candidate_name == "Bob"


@pytest.mark.parametrize(
    "term,expected",
    [
        ("doe", ["jdoe"]),
        ("MARY", ["mary"]),
        ("cs/21/0099", ["mary"]),
        ("txn-a", ["jdoe"]),
        ("hod", ["jdoe", "mary"]),
        ("", ["jdoe", "mary"]),
        ("nothing-matches", []),
    ],
)
def test_search(services, student, other_student, poll, term, expected):
    _submit(services, student, poll, "TXN-A")
    _submit(services, other_student, poll, "TXN-B")
    assert [p.voter_display_name for p in services.queue.search(term)] == expected


def test_scenario_approval_leaves_the_queue(services, student, poll, admin):
    vote = _submit(services, student, poll, "TXN123")
    assert [p.id for p in services.queue.list_pending()] == [vote.id]

    approved = services.queue.disposition(vote.id, VoteStatus.APPROVED, admin.id)
    assert approved.status == VoteStatus.APPROVED
    assert approved.approved_by == admin.id
    assert approved.approved_at is not None
    assert services.queue.list_pending() == []
    assert services.queue.refresh() == []


def test_second_disposition_is_stale_and_changes_nothing(services, student, poll, admin):
    vote = _submit(services, student, poll, "TXN1")
    approved = services.queue.disposition(vote.id, VoteStatus.APPROVED, admin.id)

    with pytest.raises(StaleStateError):
        services.queue.disposition(vote.id, VoteStatus.REJECTED, "another-admin")
    stored = services.votes.get(vote.id)
    assert stored.status == VoteStatus.APPROVED
    assert stored.approved_by == admin.id
    assert stored.approved_at == approved.approved_at


def test_rejection_frees_the_live_slot(services, student, poll, admin):
    vote = _submit(services, student, poll, "TXN1")
    services.queue.disposition(vote.id, VoteStatus.REJECTED, admin.id)
    assert services.votes.find_live(poll.id, student.id) is None
    assert services.votes.rejected_refs(poll.id, student.id) == {"txn1"}


def test_disposition_errors(services, admin, student, poll):
    with pytest.raises(NotFoundError):
        services.queue.disposition("0123456789abcdef01234567", VoteStatus.APPROVED, admin.id)
    with pytest.raises(NotFoundError):
        services.queue.disposition("junk", VoteStatus.APPROVED, admin.id)
    vote = _submit(services, student, poll, "TXN1")
    with pytest.raises(ValidationError):
        services.queue.disposition(vote.id, VoteStatus.PENDING, admin.id)
    assert services.votes.get(vote.id).status == VoteStatus.PENDING


def test_feed_arrivals_match_a_refresh(services, student, other_student, poll):
    assert services.queue.list_pending() == []
    _submit(services, student, poll, "TXN-A")
    _submit(services, other_student, poll, "TXN-B")

    cached = services.queue.list_pending()
    assert [p.id for p in cached] == [p.id for p in services.queue.refresh()]


def test_feed_is_ignored_until_first_load(services, student, poll):
    vote = _submit(services, student, poll, "TXN-A")
    assert services.queue._pending is None
    assert [p.id for p in services.queue.list_pending()] == [vote.id]


def test_duplicate_arrivals_are_collapsed(services, student, poll):
    services.queue.list_pending()
    vote = _submit(services, student, poll, "TXN-A")
    services.queue.on_vote_inserted(vote)
    assert [p.id for p in services.queue.list_pending()] == [vote.id]


def test_duplicate_pending_rows_are_tolerated(services, student, poll, admin):
    vote = _submit(services, student, poll, "TXN-A")
    # A second PENDING row for the same user and poll, as left by a racing client
    duplicate = services.votes.insert(poll.id, student.id, candidate_id(poll, "Bob"), "TXN-B",
                                      "http://testserver/x.png", "x.png")
    assert [p.id for p in services.queue.refresh()] == [vote.id, duplicate.id]

    services.queue.disposition(duplicate.id, VoteStatus.APPROVED, admin.id)
    assert services.votes.find_live(poll.id, student.id).id == duplicate.id
    assert services.workflow.enter(student.id, poll.id).state == "APPROVED"


def test_closed_queue_stops_listening(services, student, poll):
    services.queue.list_pending()
    services.queue.close()
    _submit(services, student, poll, "TXN-A")
    assert services.queue.list_pending() == []
    assert len(services.queue.refresh()) == 1


def test_losing_a_disposition_race_drops_the_cached_entry(services, student, poll, admin):
    vote = _submit(services, student, poll, "TXN-A")
    assert [p.id for p in services.queue.list_pending()] == [vote.id]

    # Another admin session decides first, bypassing this queue's cache
    services.votes.dispose(vote.id, VoteStatus.APPROVED, "other-admin")
    with pytest.raises(StaleStateError):
        services.queue.disposition(vote.id, VoteStatus.REJECTED, admin.id)
    assert services.queue.list_pending() == []
