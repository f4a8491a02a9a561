# SPDX-License-Identifier: Apache-2.0
"""Decryption oracle callbacks and the in-process relayer."""
from fastapi import APIRouter, Depends, Request

from gwasledger.core.security import rate_limit, require_oracle
from gwasledger.schemas import OracleCallback, b64decode_field
from gwasledger.services.ledger_service import GwasLedger, get_ledger

router = APIRouter(tags=["oracle"], dependencies=[Depends(require_oracle)])


def _decode(body: OracleCallback) -> tuple[str, bytes, bytes]:
    return body.request_id, b64decode_field(body.cleartext, "cleartext"), b64decode_field(body.proof, "proof")


@router.post("/callbacks/analysis")
def oracle_complete_analysis(body: OracleCallback, ledger: GwasLedger = Depends(get_ledger)):
    ledger.complete_analysis(*_decode(body))
    ledger.oracle.discard(body.request_id)
    return ledger.get_dataset(ledger.dataset_for_request(body.request_id))


@router.post("/callbacks/reveal")
def oracle_complete_reveal(body: OracleCallback, ledger: GwasLedger = Depends(get_ledger)):
    ledger.complete_reveal(*_decode(body))
    ledger.oracle.discard(body.request_id)
    return ledger.get_dataset(ledger.dataset_for_request(body.request_id))


@router.get("/requests")
def oracle_pending(ledger: GwasLedger = Depends(get_ledger)):
    """Requests accepted by the in-process oracle and not yet fulfilled."""
    return [
        {"request_id": p.request_id, "callback": p.callback, "ciphertexts": len(p.handles), "created_at": p.created_at.isoformat()}
        for p in ledger.oracle.pending_requests()
    ]


@router.post("/relay")
@rate_limit("120/hour")
def oracle_relay(request: Request, ledger: GwasLedger = Depends(get_ledger)):
    """Fulfil every pending request and deliver it to the ledger callbacks."""
    return {"delivered": ledger.oracle.relay(ledger)}
