import pytest
from pymongo.errors import DuplicateKeyError

from paytovote.database import (
    DRAFTS_COLLECTION_NAME,
    PROFILES_COLLECTION_NAME,
    USERS_COLLECTION_NAME,
    ensure_indexes,
)
from paytovote.errors import ConflictError, ValidationError
from paytovote.models.user_model import SignUpRequest
from paytovote.models.vote_model import VoteStatus

from .conftest import PASSWORD, candidate_id, png_proof, stored_proofs, walk_to_upload


@pytest.fixture(autouse=True)
def indexes(db):
    ensure_indexes(db)


def _insert(services, user, poll, ref):
    return services.votes.insert(poll.id, user.id, candidate_id(poll, "Alice"), ref,
                                 "http://testserver/x.png", f"{ref}.png")


def test_ensure_indexes_is_repeatable(db):
    ensure_indexes(db)
    assert "one_live_vote_per_user_poll" in db["votes"].index_information()


def test_one_live_vote_per_user_and_poll(services, student, other_student, poll):
    _insert(services, student, poll, "TXN1")
    with pytest.raises(DuplicateKeyError):
        _insert(services, student, poll, "TXN2")
    _insert(services, other_student, poll, "TXN3")


def test_approved_vote_still_holds_the_slot(services, student, poll, admin):
    vote = _insert(services, student, poll, "TXN1")
    services.votes.dispose(vote.id, VoteStatus.APPROVED, admin.id)
    with pytest.raises(DuplicateKeyError):
        _insert(services, student, poll, "TXN2")


def test_rejection_releases_the_slot(services, student, poll, admin):
    vote = _insert(services, student, poll, "TXN1")
    services.votes.dispose(vote.id, VoteStatus.REJECTED, admin.id)

    walk_to_upload(services.workflow, student.id, poll)
    resubmitted = services.workflow.submit(student.id, poll.id, "TXN2", png_proof())
    assert resubmitted.status == VoteStatus.PENDING
    assert services.votes.votes.count_documents({"user_id": student.id}) == 2


def test_racing_submission_is_refused_by_the_index(services, student, poll, proof_store, monkeypatch):
    walk_to_upload(services.workflow, student.id, poll)
    # The other session inserted after this one's live-vote check
    _insert(services, student, poll, "TXN-OTHER")
    monkeypatch.setattr(services.votes, "find_live", lambda poll_id, user_id: None)

    with pytest.raises(ConflictError):
        services.workflow.submit(student.id, poll.id, "TXN1", png_proof())
    assert services.votes.votes.count_documents({"user_id": student.id}) == 1
    assert stored_proofs(proof_store) == []


def test_identity_and_profile_keys_are_unique(db, student):
    with pytest.raises(DuplicateKeyError):
        db[USERS_COLLECTION_NAME].insert_one({"login_identifier": student.login_identifier})
    with pytest.raises(DuplicateKeyError):
        db[PROFILES_COLLECTION_NAME].insert_one({"display_name_key": "jdoe", "institution_key": "unused"})
    with pytest.raises(DuplicateKeyError):
        db[PROFILES_COLLECTION_NAME].insert_one({"display_name_key": "unused", "institution_key": "fpecs210042"})


def test_one_draft_per_user_and_poll(db):
    db[DRAFTS_COLLECTION_NAME].insert_one({"user_id": "u1", "poll_id": "p1", "state": "SELECTING"})
    with pytest.raises(DuplicateKeyError):
        db[DRAFTS_COLLECTION_NAME].insert_one({"user_id": "u1", "poll_id": "p1", "state": "AWAITING_PAYMENT"})


def test_signup_losing_a_display_name_race_leaves_no_identity(services, student, monkeypatch):
    monkeypatch.setattr(services.directory, "display_name_taken", lambda name, exclude_user_id=None: False)
    with pytest.raises(ValidationError, match="already taken"):
        services.accounts.sign_up(SignUpRequest(institution_id="FPE/CS/21/0100", display_name="JDOE",
                                                password=PASSWORD))
    assert services.identity.users.count_documents({}) == 1
