from dataclasses import dataclass
from typing import Iterable, Optional

from pymongo.database import Database

from paytovote import config
from paytovote.accounts import AccountService
from paytovote.catalog import PollCatalog
from paytovote.directory import ProfileDirectory
from paytovote.identity import AdminPolicy, IdentityProvider
from paytovote.notifications import VoteFeed
from paytovote.review_queue import ReviewQueue
from paytovote.storage import ProofStore
from paytovote.votes import VoteRepository
from paytovote.workflow import VoteWorkflowEngine


@dataclass
class Services:
    identity: IdentityProvider
    directory: ProfileDirectory
    policy: AdminPolicy
    accounts: AccountService
    catalog: PollCatalog
    votes: VoteRepository
    feed: VoteFeed
    workflow: VoteWorkflowEngine
    queue: ReviewQueue
    proof_store: ProofStore


def build_services(db: Database, proof_store: ProofStore, admin_identifiers: Optional[Iterable[str]] = None,
                   secret_key: str = config.SECRET_KEY, login_domain: str = config.LOGIN_EMAIL_DOMAIN,
                   reject_reused_ref: bool = config.REJECT_REUSED_TRANSACTION_REF) -> Services:
    identity = IdentityProvider(db, secret_key=secret_key)
    directory = ProfileDirectory(db, domain=login_domain)
    policy = AdminPolicy(admin_identifiers)
    catalog = PollCatalog(db)
    votes = VoteRepository(db)
    feed = VoteFeed()
    workflow = VoteWorkflowEngine(db, catalog, votes, proof_store, feed, reject_reused_ref=reject_reused_ref)
    queue = ReviewQueue(votes, catalog, directory)
    queue.subscribe(feed)
    return Services(
        identity=identity,
        directory=directory,
        policy=policy,
        accounts=AccountService(identity, directory, policy),
        catalog=catalog,
        votes=votes,
        feed=feed,
        workflow=workflow,
        queue=queue,
        proof_store=proof_store,
    )
