"""Register the department administrator account.

Usage:
    python -m paytovote.create_admin ADMIN_ID "Display Name" PASSWORD

The resulting login identifier must also be listed in ADMIN_LOGIN_IDENTIFIERS.
"""
import argparse

from paytovote import config
from paytovote.database import ensure_indexes, get_database
from paytovote.errors import PayToVoteError
from paytovote.models.user_model import SignUpRequest
from paytovote.services import build_services
from paytovote.storage import ProofStore


def create_admin(institution_id: str, display_name: str, password: str, db=None) -> str:
    db = db if db is not None else get_database()
    services = build_services(db, ProofStore())
    user = services.accounts.sign_up(
        SignUpRequest(institution_id=institution_id, display_name=display_name, password=password)
    )
    return user.login_identifier


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("institution_id")
    parser.add_argument("display_name")
    parser.add_argument("password")
    args = parser.parse_args(argv)

    ensure_indexes(get_database())
    try:
        login_identifier = create_admin(args.institution_id, args.display_name, args.password)
    except PayToVoteError as e:
        print(f"Could not create admin: {e.message}")
        return 1
    print(f"Created account {login_identifier}")
    if login_identifier not in config.ADMIN_LOGIN_IDENTIFIERS:
        print(f"Add {login_identifier} to ADMIN_LOGIN_IDENTIFIERS to grant admin access.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
