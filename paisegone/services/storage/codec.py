"""
Versioned (de)serialization of ledger namespaces.

Every blob is a JSON envelope:

    {"schema_version": 1, "namespace": "expenses",
     "saved_at": "...", "payload": {...}}

The payload uses record models of its own, so the stored format can
evolve separately from the in-memory entities. Blobs written by the
first version of the app (bare JSON lists with ``phone`` and ``paidBy``
keys, or a bare settings object) are upgraded on read.

Anything that cannot be decoded raises CorruptBlobError; the store
decides what to fall back to.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from paisegone.models.ledger import Expense, GroupSettings, Member
from paisegone.services.storage.interface import CorruptBlobError


SCHEMA_VERSION = 1

MEMBERS = "members"
EXPENSES = "expenses"
SETTINGS = "settings"


# =============================================================================
# PERSISTED RECORDS
# =============================================================================

class MemberRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    contact: Optional[str] = None


class MembersDocument(BaseModel):
    members: list[MemberRecord] = Field(default_factory=list)
    retired_ids: list[str] = Field(
        default_factory=list,
        description="Ids of removed members still referenced as contributors"
    )


class ExpenseRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    date: date
    details: str
    cost: Decimal
    contributions: dict[str, Decimal] = Field(default_factory=dict)


class ExpensesDocument(BaseModel):
    expenses: list[ExpenseRecord] = Field(default_factory=list)


class SettingsDocument(BaseModel):
    settings: dict[str, Any] = Field(default_factory=dict)


class Envelope(BaseModel):
    schema_version: int = Field(ge=1)
    namespace: str
    saved_at: datetime = Field(default_factory=datetime.utcnow)
    payload: dict[str, Any]


# =============================================================================
# LEGACY UPGRADES
# =============================================================================

def _optional_str(value: Any) -> Optional[str]:
    return None if value in (None, "") else str(value)


def _upgrade_legacy(namespace: str, raw: Any) -> dict[str, Any]:
    """Map an un-enveloped blob from the first app version to a payload."""
    if isinstance(raw, list) and not all(isinstance(item, dict) for item in raw):
        raise CorruptBlobError(namespace, "legacy list contains non-object entries")
    if namespace == MEMBERS and isinstance(raw, list):
        return {
            "members": [
                {
                    "id": str(item.get("id", "")),
                    "name": item.get("name", ""),
                    "contact": _optional_str(item.get("contact") or item.get("phone")),
                }
                for item in raw
            ]
        }
    if namespace == EXPENSES and isinstance(raw, list):
        return {
            "expenses": [
                {
                    "id": str(item.get("id", "")),
                    "date": item.get("date"),
                    "details": item.get("details", ""),
                    "cost": item.get("cost"),
                    "contributions": item.get("contributions") or item.get("paidBy") or {},
                }
                for item in raw
            ]
        }
    if namespace == SETTINGS and isinstance(raw, dict):
        upgraded = dict(raw)
        if "currency" in upgraded and "currency_symbol" not in upgraded:
            upgraded["currency_symbol"] = upgraded.pop("currency")
        return {"settings": upgraded}
    raise CorruptBlobError(namespace, f"unrecognised legacy shape ({type(raw).__name__})")


def _payload(namespace: str, text: str) -> dict[str, Any]:
    try:
        raw = json.loads(text)
    except (TypeError, ValueError) as e:
        raise CorruptBlobError(namespace, f"invalid JSON: {e}") from e

    if not (isinstance(raw, dict) and "schema_version" in raw):
        return _upgrade_legacy(namespace, raw)

    try:
        envelope = Envelope.model_validate(raw)
    except PydanticValidationError as e:
        raise CorruptBlobError(namespace, f"invalid envelope: {e}") from e

    if envelope.schema_version > SCHEMA_VERSION:
        raise CorruptBlobError(
            namespace,
            f"schema version {envelope.schema_version} is newer than {SCHEMA_VERSION}",
        )
    if envelope.namespace != namespace:
        raise CorruptBlobError(
            namespace,
            f"blob belongs to namespace '{envelope.namespace}'",
        )
    return envelope.payload


def _encode(namespace: str, payload: BaseModel) -> str:
    envelope = Envelope(
        schema_version=SCHEMA_VERSION,
        namespace=namespace,
        payload=payload.model_dump(mode="json"),
    )
    return envelope.model_dump_json()


# =============================================================================
# PUBLIC API
# =============================================================================

def encode_members(members: list[Member], retired_ids: set[str]) -> str:
    document = MembersDocument(
        members=[MemberRecord(id=m.id, name=m.name, contact=m.contact) for m in members],
        retired_ids=sorted(retired_ids),
    )
    return _encode(MEMBERS, document)


def decode_members(text: str) -> tuple[list[Member], set[str]]:
    payload = _payload(MEMBERS, text)
    try:
        document = MembersDocument.model_validate(payload)
        members = [
            Member(id=r.id, name=r.name, contact=r.contact)
            for r in document.members
        ]
    except PydanticValidationError as e:
        raise CorruptBlobError(MEMBERS, str(e)) from e

    ids = [m.id for m in members]
    if len(ids) != len(set(ids)):
        raise CorruptBlobError(MEMBERS, "duplicate member ids")
    return members, set(document.retired_ids) - set(ids)


def encode_expenses(expenses: list[Expense]) -> str:
    document = ExpensesDocument(
        expenses=[
            ExpenseRecord(
                id=e.id,
                date=e.date,
                details=e.details,
                cost=e.cost,
                contributions=dict(e.contributions),
            )
            for e in expenses
        ]
    )
    return _encode(EXPENSES, document)


def decode_expenses(text: str) -> list[Expense]:
    payload = _payload(EXPENSES, text)
    try:
        document = ExpensesDocument.model_validate(payload)
        expenses = [Expense.model_validate(r.model_dump()) for r in document.expenses]
    except PydanticValidationError as e:
        raise CorruptBlobError(EXPENSES, str(e)) from e

    ids = [e.id for e in expenses]
    if len(ids) != len(set(ids)):
        raise CorruptBlobError(EXPENSES, "duplicate expense ids")
    return expenses


def encode_settings(settings: GroupSettings) -> str:
    return _encode(SETTINGS, SettingsDocument(settings=settings.model_dump()))


def decode_settings(text: str) -> GroupSettings:
    payload = _payload(SETTINGS, text)
    try:
        document = SettingsDocument.model_validate(payload)
        return GroupSettings.model_validate(document.settings)
    except PydanticValidationError as e:
        raise CorruptBlobError(SETTINGS, str(e)) from e
