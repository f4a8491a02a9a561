# SPDX-License-Identifier: Apache-2.0
"""Versioned key/value entries behind the getData/setData surface."""
from __future__ import annotations

import re

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from gwasledger.config import KV_KEY_PATTERN, KV_MAX_VALUE_BYTES, settings
from gwasledger.core.clock import utcnow
from gwasledger.core.exceptions import ValidationError, VersionConflictError
from gwasledger.models import KeyValueEntry

_KEY_RE = re.compile(KV_KEY_PATTERN)


def validate_key(key: str) -> str:
    if not _KEY_RE.match(key or ""):
        raise ValidationError(f"Invalid key {key!r}: allowed characters are letters, digits and _.:-")
    return key


def read_value(session, key: str) -> tuple[bytes, int]:
    """Stored bytes and version; (b"", 0) when the key was never written."""
    entry = session.get(KeyValueEntry, validate_key(key))
    if entry is None:
        return b"", 0
    return entry.value, entry.version


def write_value(session, key: str, value: bytes, expected_version: int | None = None) -> int:
    """
    Write value under key and return the new version.
    expected_version=None is last-write-wins; otherwise the write only lands
    if the stored version still equals expected_version (0 = key absent).
    Caller commits.
    """
    validate_key(key)
    if len(value) > KV_MAX_VALUE_BYTES:
        raise ValidationError(f"Value too large (max {settings.kv_max_value_kb} KB)")
    entry = session.get(KeyValueEntry, key)
    current = entry.version if entry is not None else 0
    if expected_version is None:
        if entry is None:
            session.add(KeyValueEntry(key=key, value=value, version=1))
            try:
                session.flush()
                return 1
            except IntegrityError:
                # another writer created the key first; overwrite its value
                session.rollback()
                entry = session.get(KeyValueEntry, key)
                if entry is None:
                    raise VersionConflictError(key, 0, -1)
                current = entry.version
        entry.value = value
        entry.version = current + 1
        entry.updated_at = utcnow()
        session.add(entry)
        session.flush()
        return entry.version
    if expected_version != current:
        raise VersionConflictError(key, expected_version, current)
    if current == 0:
        session.add(KeyValueEntry(key=key, value=value, version=1))
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            raise VersionConflictError(key, expected_version, -1)
        return 1
    result = session.execute(
        update(KeyValueEntry)
        .where(KeyValueEntry.key == key, KeyValueEntry.version == expected_version)
        .values(value=value, version=expected_version + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise VersionConflictError(key, expected_version, -1)
    session.expire(entry)
    return expected_version + 1
