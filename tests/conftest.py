import mongomock
import pytest
from fastapi.testclient import TestClient

from paytovote.main import create_app
from paytovote.models.poll_model import CandidateIn, PollCreate
from paytovote.models.user_model import SignUpRequest
from paytovote.services import build_services
from paytovote.storage import LocalProofStore, ProofImage
from paytovote.workflow import WorkflowState

LOGIN_DOMAIN = "dept.edu"
ADMIN_INSTITUTION_ID = "HODADMIN"
ADMIN_LOGIN = "hodadmin@dept.edu"
PASSWORD = "secret123"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64
GIF_BYTES = b"GIF89a" + b"\x00" * 64


def png_proof() -> ProofImage:
    return ProofImage(filename="receipt.png", content_type="image/png", data=PNG_BYTES)


def stored_proofs(store: LocalProofStore):
    return [p for p in store.root.rglob("*") if p.is_file()]


def candidate_id(poll, name: str) -> str:
    return next(c.id for c in poll.candidates if c.name == name)


def walk_to_upload(workflow, user_id: str, poll, name: str = "Alice"):
    workflow.select(user_id, poll.id, candidate_id(poll, name))
    view = workflow.confirm(user_id, poll.id)
    assert view.state == WorkflowState.UPLOADING_PROOF.value
    return view


@pytest.fixture
def db():
    return mongomock.MongoClient()["paytovote_test"]


@pytest.fixture
def proof_store(tmp_path):
    return LocalProofStore(root=str(tmp_path / "proofs"), base_url="http://testserver")


@pytest.fixture
def services(db, proof_store):
    return build_services(db, proof_store, admin_identifiers=[ADMIN_LOGIN], login_domain=LOGIN_DOMAIN)


@pytest.fixture
def student(services):
    return services.accounts.sign_up(
        SignUpRequest(institution_id="FPE/CS/21/0042", display_name="jdoe", password=PASSWORD)
    )


@pytest.fixture
def other_student(services):
    return services.accounts.sign_up(
        SignUpRequest(institution_id="FPE/CS/21/0099", display_name="mary", password=PASSWORD)
    )


@pytest.fixture
def admin(services):
    return services.accounts.sign_up(
        SignUpRequest(institution_id=ADMIN_INSTITUTION_ID, display_name="Department Admin", password=PASSWORD)
    )


@pytest.fixture
def poll(services, admin):
    return services.catalog.create(
        PollCreate(
            title="HOD Election",
            cost_per_vote=100,
            candidates=[CandidateIn(name="Alice"), CandidateIn(name="Bob")],
        ),
        created_by=admin.id,
    )


@pytest.fixture
def app(db, proof_store):
    return create_app(
        database=db,
        proof_store=proof_store,
        admin_identifiers=[ADMIN_LOGIN],
        setup_indexes=False,
        login_domain=LOGIN_DOMAIN,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
