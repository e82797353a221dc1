# main.py
import logging
from typing import Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database

from paytovote import config
from paytovote.database import ensure_indexes, get_database
from paytovote.errors import PayToVoteError
from paytovote.routes.admin_routes import router as admin_router
from paytovote.routes.auth_routes import router as auth_router
from paytovote.routes.poll_routes import router as poll_router
from paytovote.routes.vote_routes import vote_router
from paytovote.services import build_services
from paytovote.storage import LocalProofStore, ProofStore, build_proof_store

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def _log_session_change(event: str, session) -> None:
    if session is not None:
        logger.info(f"Session {event}: {session.login_identifier}")
    else:
        logger.info(f"Session {event}")


def create_app(database: Optional[Database] = None, proof_store: Optional[ProofStore] = None,
               admin_identifiers: Optional[Iterable[str]] = None, setup_indexes: bool = True,
               **service_options) -> FastAPI:
    db = database if database is not None else get_database()
    if setup_indexes:
        ensure_indexes(db)
    if proof_store is None:
        proof_store = build_proof_store()

    services = build_services(db, proof_store, admin_identifiers, **service_options)
    services.identity.on_session_change(_log_session_change)

    app = FastAPI(title="PayToVote - Departmental Polling API")
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PayToVoteError)
    async def handle_app_error(request: Request, exc: PayToVoteError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    app.include_router(auth_router)
    app.include_router(poll_router)
    app.include_router(vote_router)
    app.include_router(admin_router)

    if isinstance(proof_store, LocalProofStore):
        app.mount("/uploads/proofs", StaticFiles(directory=str(proof_store.root)), name="proofs")

    @app.get("/", tags=["Root"])
    def read_root():
        return {"message": "Welcome to the PayToVote API"}

    @app.get("/health", tags=["Root"])
    def health_check():
        return {"status": "healthy", "database": "MongoDB"}

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    logger.info("PayToVote API initialised")
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("paytovote.main:create_app", factory=True, host="0.0.0.0", port=8000)
