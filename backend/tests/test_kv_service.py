# SPDX-License-Identifier: Apache-2.0
"""Versioned key/value entries."""
import pytest
from sqlmodel import Session

from gwasledger.config import settings
from gwasledger.core.exceptions import ValidationError, VersionConflictError
from gwasledger.database import engine
from gwasledger.services.kv_service import read_value, validate_key, write_value


def _write(key, value, expected_version=None):
    with Session(engine) as session:
        version = write_value(session, key, value, expected_version)
        session.commit()
        return version


def _read(key):
    with Session(engine) as session:
        return read_value(session, key)


def test_missing_key_reads_empty():
    assert _read("gwas_keys") == (b"", 0)


def test_last_write_wins_bumps_version():
    assert _write("gwas_keys", b"[]") == 1
    assert _write("gwas_keys", b'["a"]') == 2
    assert _read("gwas_keys") == (b'["a"]', 2)


def test_last_write_wins_create_race_overwrites(monkeypatch):
    _write("gwas_keys", b"[]")
    with Session(engine) as session:
        real_get = session.get
        calls = []

        def racing_get(model, key):
            # first lookup misses, as if another writer inserted the key right after it
            calls.append(key)
            return None if len(calls) == 1 else real_get(model, key)

        monkeypatch.setattr(session, "get", racing_get)
        version = write_value(session, "gwas_keys", b'["a"]')
        session.commit()
    assert version == 2
    assert len(calls) == 2
    assert _read("gwas_keys") == (b'["a"]', 2)


def test_compare_and_set_create():
    assert _write("gwas_x", b"one", expected_version=0) == 1
    with pytest.raises(VersionConflictError):
        _write("gwas_x", b"two", expected_version=0)
    assert _read("gwas_x") == (b"one", 1)


def test_compare_and_set_update():
    _write("gwas_x", b"one")
    assert _write("gwas_x", b"two", expected_version=1) == 2
    with pytest.raises(VersionConflictError) as exc:
        _write("gwas_x", b"stale", expected_version=1)
    assert exc.value.current == 2
    assert _read("gwas_x") == (b"two", 2)


def test_conflict_reports_status_409():
    _write("k", b"v")
    with pytest.raises(VersionConflictError) as exc:
        _write("k", b"w", expected_version=5)
    assert exc.value.status_code == 409


@pytest.mark.parametrize("key", ["", "has space", "semi;colon", "x" * 201, "slash/key"])
def test_invalid_keys(key):
    with pytest.raises(ValidationError):
        validate_key(key)


def test_valid_keys():
    for key in ["gwas_keys", "gwas_1700000000000-abc1234", "a.b:c-d"]:
        assert validate_key(key) == key


def test_oversized_value_rejected():
    with pytest.raises(ValidationError):
        _write("big", b"x" * (settings.kv_max_value_bytes + 1))
    assert _read("big") == (b"", 0)
