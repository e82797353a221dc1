import pytest
from pymongo.errors import PyMongoError

from paytovote.errors import NotFoundError, PersistenceError, ValidationError
from paytovote.models.poll_model import CandidateIn, PollCreate


def _poll(title="Course Rep", cost=50, names=("Ada", "Grace"), **kwargs):
    return PollCreate(title=title, cost_per_vote=cost, candidates=[CandidateIn(name=n) for n in names], **kwargs)


def test_create_keeps_candidate_order(services, admin):
    poll = services.catalog.create(_poll(names=("Ada", "Grace", "Linus")), created_by=admin.id)
    assert poll.is_active
    assert poll.created_by == admin.id
    assert [c.name for c in poll.candidates] == ["Ada", "Grace", "Linus"]
    assert all(c.poll_id == poll.id for c in poll.candidates)


def test_blank_candidate_rows_are_dropped(services):
    poll = services.catalog.create(_poll(names=("Ada", "   ", "Grace", "")))
    assert [c.name for c in poll.candidates] == ["Ada", "Grace"]


@pytest.mark.parametrize(
    "payload",
    [
        _poll(title="   "),
        _poll(cost=0),
        _poll(cost=-5),
        _poll(names=("Ada", " ")),
    ],
)
def test_create_validation(services, payload):
    with pytest.raises(ValidationError):
        services.catalog.create(payload)
    assert services.catalog.polls.count_documents({}) == 0


def test_list_active_is_newest_first_and_hides_closed_polls(services):
    first = services.catalog.create(_poll(title="First"))
    second = services.catalog.create(_poll(title="Second"))
    services.catalog.create(_poll(title="Draft", is_active=False))
    assert [p.id for p in services.catalog.list_active()] == [second.id, first.id]

    services.catalog.set_active(second.id, False)
    assert [p.title for p in services.catalog.list_active()] == ["First"]


def test_get_unknown_poll(services):
    with pytest.raises(NotFoundError):
        services.catalog.get("not-an-id")
    with pytest.raises(NotFoundError):
        services.catalog.get("0123456789abcdef01234567")
    with pytest.raises(NotFoundError):
        services.catalog.set_active("0123456789abcdef01234567", True)


def test_add_candidate_appends_at_the_end(services, poll):
    added = services.catalog.add_candidate(poll.id, CandidateIn(name="Carol", manifesto_summary=" Fix the lab "))
    assert added.position == 2
    assert added.manifesto_summary == "Fix the lab"
    assert [c.name for c in services.catalog.get(poll.id).candidates] == ["Alice", "Bob", "Carol"]
    with pytest.raises(ValidationError):
        services.catalog.add_candidate(poll.id, CandidateIn(name=" "))


def test_failed_candidate_insert_leaves_poll_inactive(services, monkeypatch):
    def broken_insert_many(*args, **kwargs):
        raise PyMongoError("write failed")

    monkeypatch.setattr(services.catalog.candidates, "insert_many", broken_insert_many)
    with pytest.raises(PersistenceError):
        services.catalog.create(_poll(title="Orphan"))

    orphan = services.catalog.polls.find_one({"title": "Orphan"})
    assert orphan is not None and orphan["is_active"] is False
    assert services.catalog.list_active() == []


def test_titles_and_candidate_names(services, poll):
    assert services.catalog.titles([poll.id, "junk"]) == {poll.id: "HOD Election"}
    names = services.catalog.candidate_names([c.id for c in poll.candidates])
    assert sorted(names.values()) == ["Alice", "Bob"]


def test_failed_activation_is_a_persistence_error(services, monkeypatch):
    def broken_update_one(*args, **kwargs):
        raise PyMongoError("write failed")

    monkeypatch.setattr(services.catalog.polls, "update_one", broken_update_one)
    with pytest.raises(PersistenceError):
        services.catalog.create(_poll(title="Unopened"))

    stored = services.catalog.polls.find_one({"title": "Unopened"})
    assert stored["is_active"] is False
    assert services.catalog.candidates.count_documents({"poll_id": str(stored["_id"])}) == 2
