# SPDX-License-Identifier: Apache-2.0
"""Dataset submit, list, get, analysis request, result, reveal request."""
from fastapi import APIRouter, Depends, Request

from gwasledger.core.security import get_caller, rate_limit
from gwasledger.schemas import DatasetSubmit, b64decode_field, b64encode_bytes
from gwasledger.services.ledger_service import GwasLedger, get_ledger

router = APIRouter(tags=["datasets"])


@router.post("")
@rate_limit("60/hour")
def datasets_submit(
    request: Request,
    body: DatasetSubmit,
    caller: str = Depends(get_caller),
    ledger: GwasLedger = Depends(get_ledger),
):
    """Store two ciphertexts under the calling institution. Status starts as pending."""
    genotype = b64decode_field(body.encrypted_genotype, "encrypted_genotype")
    phenotype = b64decode_field(body.encrypted_phenotype, "encrypted_phenotype")
    dataset_id = ledger.submit(caller, genotype, phenotype)
    return {"dataset_id": dataset_id, "status": "pending"}


@router.get("")
def datasets_list(institution: str = "", status: str = "", ledger: GwasLedger = Depends(get_ledger)):
    """All datasets, optionally filtered by institution and status (no ciphertexts)."""
    return ledger.list_datasets(institution=institution or None, status=status or None)


@router.get("/{dataset_id}")
def datasets_get(dataset_id: int, ledger: GwasLedger = Depends(get_ledger)):
    return ledger.get_dataset(dataset_id)


@router.post("/{dataset_id}/analysis")
@rate_limit("120/hour")
def datasets_request_analysis(
    request: Request,
    dataset_id: int,
    caller: str = Depends(get_caller),
    ledger: GwasLedger = Depends(get_ledger),
):
    """Owner only. Issues an oracle decryption request; status changes when the callback lands."""
    request_id = ledger.request_analysis(caller, dataset_id)
    return {"dataset_id": dataset_id, "request_id": request_id}


@router.get("/{dataset_id}/result")
def datasets_result(dataset_id: int, ledger: GwasLedger = Depends(get_ledger)):
    """Encrypted statistic and ratio (zero placeholders until analyzed)."""
    result = ledger.get_result(dataset_id)
    return {
        "dataset_id": dataset_id,
        "statistic": b64encode_bytes(result.statistic),
        "ratio": b64encode_bytes(result.ratio),
        "revealed": result.revealed,
    }


@router.post("/{dataset_id}/reveal")
@rate_limit("120/hour")
def datasets_request_reveal(
    request: Request,
    dataset_id: int,
    caller: str = Depends(get_caller),
    ledger: GwasLedger = Depends(get_ledger),
):
    """Owner only, after analysis. Issues the second oracle decryption request."""
    request_id = ledger.request_reveal(caller, dataset_id)
    return {"dataset_id": dataset_id, "request_id": request_id}
