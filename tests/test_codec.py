"""
Tests for the versioned namespace codec.
"""

import json
import pytest
from datetime import date
from decimal import Decimal

from paisegone.models.ledger import Expense, GroupSettings, Member
from paisegone.services.storage import CorruptBlobError
from paisegone.services.storage.codec import (
    EXPENSES,
    MEMBERS,
    SCHEMA_VERSION,
    decode_expenses,
    decode_members,
    decode_settings,
    encode_expenses,
    encode_members,
    encode_settings,
)


def envelope(namespace, payload, version=SCHEMA_VERSION):
    return json.dumps({
        "schema_version": version,
        "namespace": namespace,
        "saved_at": "2024-10-01T00:00:00",
        "payload": payload,
    })


class TestEnvelope:
    """Tests for the envelope written around every namespace."""

    def test_encoded_blob_is_enveloped(self):
        """Test that encoded blobs carry version and namespace."""
        blob = json.loads(encode_members([Member(id="1", name="Rahim")], set()))
        assert blob["schema_version"] == SCHEMA_VERSION
        assert blob["namespace"] == MEMBERS
        assert blob["payload"]["members"][0]["name"] == "Rahim"

    def test_amounts_stored_as_strings(self):
        """Test that money survives without float rounding."""
        expense = Expense(
            id="e1",
            date=date(2024, 10, 1),
            details="Rice",
            cost=Decimal("100.10"),
            contributions={"1": Decimal("100.10")},
        )
        blob = json.loads(encode_expenses([expense]))
        assert blob["payload"]["expenses"][0]["cost"] == "100.10"
        assert decode_expenses(encode_expenses([expense])) == [expense]

    def test_newer_schema_rejected(self):
        """Test that blobs from a newer app version are not guessed at."""
        with pytest.raises(CorruptBlobError, match="newer"):
            decode_members(envelope(MEMBERS, {"members": []}, version=SCHEMA_VERSION + 1))

    def test_wrong_namespace_rejected(self):
        """Test that a blob stored under the wrong key is rejected."""
        with pytest.raises(CorruptBlobError, match="namespace 'expenses'"):
            decode_members(envelope(EXPENSES, {"expenses": []}))

    def test_invalid_json(self):
        """Test that unparseable text raises CorruptBlobError."""
        with pytest.raises(CorruptBlobError, match="invalid JSON"):
            decode_expenses("{oops")

    def test_invalid_envelope(self):
        """Test that a malformed envelope raises CorruptBlobError."""
        with pytest.raises(CorruptBlobError, match="invalid envelope"):
            decode_members(json.dumps({"schema_version": "x", "namespace": MEMBERS}))


class TestMembersNamespace:
    """Tests for the members document."""

    def test_retired_ids_round_trip(self):
        """Test that removed member ids are persisted alongside the roster."""
        members = [Member(id="2", name="Karim", contact="017")]
        decoded, retired = decode_members(encode_members(members, {"1", "9"}))
        assert decoded == members
        assert retired == {"1", "9"}

    def test_live_ids_not_retired(self):
        """Test that an id on the roster is never reported as retired."""
        blob = envelope(MEMBERS, {
            "members": [{"id": "1", "name": "Rahim"}],
            "retired_ids": ["1", "2"],
        })
        _, retired = decode_members(blob)
        assert retired == {"2"}

    def test_duplicate_ids_rejected(self):
        """Test that a roster with duplicate ids is corrupt."""
        blob = envelope(MEMBERS, {"members": [
            {"id": "1", "name": "Rahim"},
            {"id": "1", "name": "Karim"},
        ]})
        with pytest.raises(CorruptBlobError, match="duplicate member ids"):
            decode_members(blob)

    def test_blank_name_rejected(self):
        """Test that stored records still pass entity validation."""
        blob = envelope(MEMBERS, {"members": [{"id": "1", "name": ""}]})
        with pytest.raises(CorruptBlobError):
            decode_members(blob)


class TestExpensesNamespace:
    """Tests for the expenses document."""

    def test_duplicate_ids_rejected(self):
        """Test that duplicate expense ids are corrupt."""
        record = {
            "id": "1", "date": "2024-10-01", "details": "Rice",
            "cost": "100", "contributions": {"1": "100"},
        }
        with pytest.raises(CorruptBlobError, match="duplicate expense ids"):
            decode_expenses(envelope(EXPENSES, {"expenses": [record, record]}))

    def test_negative_cost_rejected(self):
        """Test that invalid amounts make the blob corrupt."""
        record = {"id": "1", "date": "2024-10-01", "details": "Rice", "cost": "-5"}
        with pytest.raises(CorruptBlobError):
            decode_expenses(envelope(EXPENSES, {"expenses": [record]}))


class TestSettingsNamespace:
    """Tests for the settings blob."""

    def test_round_trip_keeps_extra_keys(self):
        """Test that unknown keys written by other clients survive."""
        settings = GroupSettings(currency_symbol="৳", language="bn")
        decoded = decode_settings(encode_settings(settings))
        assert decoded.currency_symbol == "৳"
        assert decoded.model_dump()["language"] == "bn"

    def test_invalid_theme_rejected(self):
        """Test that invalid settings raise CorruptBlobError."""
        with pytest.raises(CorruptBlobError):
            decode_settings(envelope("settings", {"settings": {"theme": "neon"}}))


class TestLegacyBlobs:
    """Tests for data written before the envelope existed."""

    def test_members_with_phone(self):
        """Test that 'phone' becomes contact and numeric ids become strings."""
        members, retired = decode_members(json.dumps([
            {"id": 1, "name": "Shuvo", "phone": 8801711000000},
            {"id": "2", "name": "Rafi", "phone": ""},
        ]))
        assert members[0].id == "1"
        assert members[0].contact == "8801711000000"
        assert members[1].contact is None
        assert retired == set()

    def test_expenses_with_paid_by(self):
        """Test that 'paidBy' becomes contributions."""
        expenses = decode_expenses(json.dumps([{
            "id": "1700000000000",
            "date": "2024-10-01",
            "details": "Chicken, Potato",
            "cost": 800,
            "addedBy": ["Member 2", "Member 3"],
            "paidBy": {"2": 400, "3": 400},
        }]))
        assert expenses[0].contributions == {"2": Decimal("400"), "3": Decimal("400")}

    def test_settings_currency_renamed(self):
        """Test that 'currency' becomes currency_symbol."""
        settings = decode_settings(json.dumps({"currency": "৳"}))
        assert settings.currency_symbol == "৳"

    def test_non_object_entries_rejected(self):
        """Test that a legacy list of scalars is corrupt."""
        with pytest.raises(CorruptBlobError, match="non-object"):
            decode_members(json.dumps(["Rahim", "Karim"]))

    def test_unrecognised_shape_rejected(self):
        """Test that a bare string is corrupt."""
        with pytest.raises(CorruptBlobError, match="unrecognised legacy shape"):
            decode_expenses(json.dumps("hello"))
