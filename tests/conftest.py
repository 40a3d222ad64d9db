"""
Shared fixtures.

Stores are built on in-memory storage pre-populated with empty
namespaces, so tests start from a blank ledger instead of the seed data.
"""

import itertools
from decimal import Decimal

import pytest

from paisegone.audit import AuditLogger
from paisegone.ledger import LedgerStore
from paisegone.models.ledger import GroupSettings
from paisegone.services.storage import InMemoryAuditStorage, InMemoryKeyValueStorage
from paisegone.services.storage.codec import (
    EXPENSES,
    MEMBERS,
    SETTINGS,
    encode_expenses,
    encode_members,
    encode_settings,
)
from paisegone.validation import LedgerValidator


def empty_ledger_blobs() -> dict[str, str]:
    return {
        MEMBERS: encode_members([], set()),
        EXPENSES: encode_expenses([]),
        SETTINGS: encode_settings(GroupSettings()),
    }


def counting_ids(prefix: str = "id"):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


@pytest.fixture
def storage():
    return InMemoryKeyValueStorage(empty_ledger_blobs())


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def validator():
    return LedgerValidator(tolerance=Decimal("0.001"))


@pytest.fixture
def store(storage, audit_logger, validator):
    return LedgerStore(
        storage,
        audit_logger=audit_logger,
        validator=validator,
        id_factory=counting_ids(),
    )
