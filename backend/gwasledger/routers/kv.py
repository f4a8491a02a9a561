# SPDX-License-Identifier: Apache-2.0
"""Generic getData/setData key/value surface used by the client synchronizer."""
from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from gwasledger.core.security import rate_limit
from gwasledger.database import get_session
from gwasledger.schemas import KeyValueWrite, b64decode_field, b64encode_bytes
from gwasledger.services.kv_service import read_value, write_value

router = APIRouter(tags=["kv"])


@router.get("/{key}")
def kv_get(key: str, session: Session = Depends(get_session)):
    """Stored value (base64) and version; empty value and version 0 when never written."""
    value, version = read_value(session, key)
    return {"key": key, "value": b64encode_bytes(value), "version": version}


@router.put("/{key}")
@rate_limit("600/hour")
def kv_put(request: Request, key: str, body: KeyValueWrite, session: Session = Depends(get_session)):
    """Last-write-wins, or compare-and-swap when expected_version is given (409 on conflict)."""
    value = b64decode_field(body.value, "value")
    version = write_value(session, key, value, body.expected_version)
    session.commit()
    return {"key": key, "version": version}
