# SPDX-License-Identifier: Apache-2.0
"""FastAPI app factory. Thin layer: security middleware + routers only."""
import logging

from fastapi import FastAPI

from gwasledger.config import MAX_PAYLOAD_BYTES, settings
from gwasledger.core.security import add_security_middleware
from gwasledger.database import create_db_and_tables, engine
from gwasledger.routers import datasets, kv, oracle, system
from gwasledger.services.ledger_service import GwasLedger

logger = logging.getLogger("gwasledger")


def build_ledger() -> GwasLedger:
    """Wire the TenSEAL backend, the in-process oracle and the ledger from settings."""
    from gwasledger.services.fhe_service import TenSealBackend
    from gwasledger.services.oracle_service import DecryptionOracle, ProofVerifier

    secret_backend = TenSealBackend.from_settings(settings)
    public_backend = TenSealBackend.from_bytes(secret_backend.public_context())
    return GwasLedger(
        engine,
        backend=public_backend,
        oracle=DecryptionOracle(secret_backend, settings.oracle_proof_key),
        verifier=ProofVerifier(settings.oracle_proof_key),
        association_test=settings.association_test,
        max_payload_bytes=MAX_PAYLOAD_BYTES,
    )


def create_app(ledger: GwasLedger | None = None) -> FastAPI:
    app = FastAPI(title="FHE-GWAS Ledger API", version="0.1.0")
    app.state.ledger = ledger
    logging.getLogger("gwasledger").setLevel(settings.log_level.upper())

    add_security_middleware(app)

    @app.on_event("startup")
    def on_startup():
        create_db_and_tables()
        if app.state.ledger is None:
            app.state.ledger = build_ledger()
        logger.info("Ledger ready (association test: %s)", app.state.ledger.association_test)

    app.include_router(datasets.router, prefix="/datasets")
    app.include_router(oracle.router, prefix="/oracle")
    app.include_router(kv.router, prefix="/kv")
    app.include_router(system.router, prefix="/system")

    return app


app = create_app()
