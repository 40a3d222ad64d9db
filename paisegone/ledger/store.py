"""
Ledger Store

DESIGN DECISION: The store is the single owner of the member roster,
the expense list and the group settings. It guarantees:
1. Nothing reaches memory or storage without passing validation
2. Every mutator is atomic - a rejected or failed write changes nothing
3. Every successful mutation is persisted, audited and announced
4. Readers get immutable snapshots, never live collections

The store does NOT compute balances. Settlement is a pure function of
a snapshot (see paisegone.settlement).
"""

import uuid
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Union

import structlog

from paisegone.audit import AuditLogger
from paisegone.errors import LedgerError, NotFoundError, ValidationError
from paisegone.ledger.seed import seed_expenses, seed_members
from paisegone.models.ledger import (
    ChangeKind,
    Expense,
    ExpenseDraft,
    GroupSettings,
    LedgerChange,
    LedgerSnapshot,
    Member,
)
from paisegone.services.storage import (
    CorruptBlobError,
    KeyValueStorageInterface,
    StorageError,
)
from paisegone.services.storage.codec import (
    EXPENSES,
    MEMBERS,
    SETTINGS,
    decode_expenses,
    decode_members,
    decode_settings,
    encode_expenses,
    encode_members,
    encode_settings,
)
from paisegone.validation import LedgerValidator


logger = structlog.get_logger(__name__)

NAMESPACES = (MEMBERS, EXPENSES, SETTINGS)

Listener = Callable[[LedgerChange], None]

MAX_ID_ATTEMPTS = 100


def _default_id() -> str:
    return uuid.uuid4().hex


class LedgerStore:
    """
    Owns members, expenses and settings for one group.

    Usage:
        store = LedgerStore(InMemoryKeyValueStorage())
        alice = store.add_member("Alice")
        store.add_expense(date.today(), "Rice", 1200, {alice.id: 1200})
        snapshot = store.snapshot()
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        id_factory: Optional[Callable[[], str]] = None,
        namespace_keys: Optional[Mapping[str, str]] = None,
        autoload: bool = True,
    ):
        """
        Initialize the store.

        Args:
            storage: Key-value medium holding the three namespaces
            audit_logger: Audit trail; if None, only structlog output is produced
            validator: Write-boundary validator
            id_factory: Generates candidate ids (uuid4 hex by default)
            namespace_keys: Storage key per namespace, defaults to the namespace name
            autoload: Read initial state from storage immediately
        """
        self._storage = storage
        self._audit = audit_logger
        self._validator = validator or LedgerValidator()
        self._id_factory = id_factory or _default_id
        self._keys = {ns: ns for ns in NAMESPACES}
        self._keys.update(namespace_keys or {})

        self._members: list[Member] = []
        self._retired_ids: set[str] = set()
        self._expenses: list[Expense] = []
        self._settings = GroupSettings()

        self._issued_ids: set[str] = set()
        self._last_blobs: dict[str, Optional[str]] = {}
        self._listeners: list[Listener] = []

        if autoload:
            self.load()

    # =========================================================================
    # LOADING
    # =========================================================================

    def _fallback(self, namespace: str) -> Any:
        if namespace == MEMBERS:
            return seed_members(), set()
        if namespace == EXPENSES:
            return seed_expenses()
        return GroupSettings()

    def _decode(self, namespace: str, raw: str) -> Any:
        if namespace == MEMBERS:
            return decode_members(raw)
        if namespace == SETTINGS:
            return decode_settings(raw)

        expenses = decode_expenses(raw)
        for expense in expenses:
            # Contributors are not checked here: removed members are expected
            _, result = self._validator.validate_expense(
                expense, expense.contributions.keys(), operation="load_expenses"
            )
            if not result.is_valid:
                raise CorruptBlobError(
                    EXPENSES,
                    f"expense {expense.id}: "
                    + "; ".join(i.message for i in result.errors),
                )
        return expenses

    def _apply(self, namespace: str, value: Any) -> None:
        if namespace == MEMBERS:
            members, retired_ids = value
            self._members = list(members)
            self._retired_ids = set(retired_ids)
            self._issued_ids.update(m.id for m in self._members)
            self._issued_ids.update(self._retired_ids)
        elif namespace == EXPENSES:
            self._expenses = list(value)
            self._issued_ids.update(e.id for e in self._expenses)
        else:
            self._settings = value

    def load(self) -> None:
        """
        Read all namespaces from storage.

        A namespace that is missing or cannot be decoded is replaced by the
        built-in seed data. This never raises: a damaged store still starts.
        """
        for namespace in NAMESPACES:
            key = self._keys[namespace]
            raw = None
            try:
                raw = self._storage.read(key)
                if raw is None:
                    logger.info("ledger_namespace_missing", namespace=namespace, key=key)
                    value = self._fallback(namespace)
                else:
                    value = self._decode(namespace, raw)
            except StorageError as e:
                logger.warning(
                    "ledger_namespace_unusable",
                    namespace=namespace,
                    key=key,
                    error=str(e),
                )
                if self._audit:
                    self._audit.log_storage_fallback(namespace, str(e))
                value = self._fallback(namespace)

            self._apply(namespace, value)
            self._last_blobs[namespace] = raw

    def sync(self) -> bool:
        """
        Pick up changes written to storage by another process.

        Namespaces whose stored blob differs from what this store last
        read or wrote are reloaded and subscribers get one
        EXTERNAL_RELOAD change. A blob that cannot be decoded is logged
        and ignored; the current in-memory state is kept.

        Returns:
            True if anything was reloaded
        """
        changed = []
        for namespace in NAMESPACES:
            key = self._keys[namespace]
            try:
                raw = self._storage.read(key)
            except StorageError as e:
                logger.warning("ledger_sync_read_failed", namespace=namespace, error=str(e))
                continue

            if raw == self._last_blobs.get(namespace):
                continue
            self._last_blobs[namespace] = raw

            if raw is None:
                logger.warning("ledger_sync_namespace_deleted", namespace=namespace, key=key)
                continue
            try:
                value = self._decode(namespace, raw)
            except StorageError as e:
                logger.warning("ledger_sync_blob_unusable", namespace=namespace, error=str(e))
                continue

            self._apply(namespace, value)
            changed.append(namespace)

        if changed:
            if self._audit:
                self._audit.log_external_reload(changed)
            self._notify(LedgerChange(
                kind=ChangeKind.EXTERNAL_RELOAD,
                namespaces=tuple(changed),
            ))
        return bool(changed)

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for ledger changes.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: LedgerChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                # Already committed; remaining listeners still run
                logger.exception(
                    "ledger_listener_failed",
                    kind=change.kind.value,
                    entity_id=change.entity_id,
                )
                if self._audit:
                    self._audit.log_error(
                        type(e).__name__,
                        str(e),
                        {"kind": change.kind.value, "entity_id": change.entity_id},
                    )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _new_id(self, taken: set[str]) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate not in taken and candidate not in self._issued_ids:
                return candidate
        raise LedgerError("Could not generate a unique id")

    def _persist(self, namespace: str, blob: str) -> None:
        try:
            self._storage.write(self._keys[namespace], blob)
        except StorageError as e:
            if self._audit:
                self._audit.log_save_failed(namespace, str(e))
            raise
        self._last_blobs[namespace] = blob

    def _known_member_ids(self) -> set[str]:
        known = {m.id for m in self._members} | self._retired_ids
        for expense in self._expenses:
            known.update(expense.contributions)
        return known

    def _find_member(self, member_id: str) -> tuple[int, Member]:
        for idx, member in enumerate(self._members):
            if member.id == member_id:
                return idx, member
        raise NotFoundError("member", member_id)

    def _find_expense(self, expense_id: str) -> tuple[int, Expense]:
        for idx, expense in enumerate(self._expenses):
            if expense.id == expense_id:
                return idx, expense
        raise NotFoundError("expense", expense_id)

    def _build_member(self, operation: str, member_id: str, name: str, contact: Optional[str]) -> Member:
        try:
            return self._validator.build_member(member_id, name, contact)
        except ValidationError as e:
            if self._audit:
                self._audit.log_validation_failed(operation, e.issues, member_id)
            raise

    def _check_expense(
        self,
        record: Union[ExpenseDraft, Mapping[str, Any]],
        operation: str,
        expense_id: Optional[str] = None,
    ) -> ExpenseDraft:
        try:
            return self._validator.check_expense(record, self._known_member_ids(), operation)
        except ValidationError as e:
            if self._audit:
                self._audit.log_validation_failed(operation, e.issues, expense_id)
            raise

    def _commit_members(self, members: list[Member], retired_ids: set[str]) -> None:
        self._persist(MEMBERS, encode_members(members, retired_ids))
        self._members = members
        self._retired_ids = retired_ids

    def _commit_expenses(self, expenses: list[Expense]) -> None:
        self._persist(EXPENSES, encode_expenses(expenses))
        self._expenses = expenses

    # =========================================================================
    # MEMBERS
    # =========================================================================

    def get_member(self, member_id: str) -> Member:
        return self._find_member(member_id)[1]

    def add_member(self, name: str, contact: Optional[str] = None) -> Member:
        """
        Add a member with a freshly issued id.

        Raises:
            ValidationError: If the name is empty or whitespace
        """
        member_id = self._new_id(self._known_member_ids())
        member = self._build_member("add_member", member_id, name, contact)

        self._commit_members(self._members + [member], self._retired_ids)
        self._issued_ids.add(member.id)

        if self._audit:
            self._audit.log_member_added(member)
        self._notify(LedgerChange(
            kind=ChangeKind.MEMBER_ADDED, entity_id=member.id, namespaces=(MEMBERS,)
        ))
        return member

    def rename_member(self, member_id: str, name: str) -> None:
        """
        Rename a member in place. Renaming to the current name is a no-op.

        Raises:
            NotFoundError: If the id is unknown
            ValidationError: If the name is empty
        """
        idx, current = self._find_member(member_id)
        renamed = self._build_member("rename_member", member_id, name, current.contact)
        if renamed.name == current.name:
            return

        members = list(self._members)
        members[idx] = renamed
        self._commit_members(members, self._retired_ids)

        if self._audit:
            self._audit.log_member_renamed(member_id, current.name, renamed.name)
        self._notify(LedgerChange(
            kind=ChangeKind.MEMBER_RENAMED, entity_id=member_id, namespaces=(MEMBERS,)
        ))

    def update_member_contact(self, member_id: str, contact: Optional[str]) -> None:
        """
        Set or clear the member's phone/chat address.

        Raises:
            NotFoundError: If the id is unknown
            ValidationError: If the contact is too long
        """
        idx, current = self._find_member(member_id)
        updated = self._build_member("update_member_contact", member_id, current.name, contact)
        if updated.contact == current.contact:
            return

        members = list(self._members)
        members[idx] = updated
        self._commit_members(members, self._retired_ids)

        if self._audit:
            self._audit.log_member_contact_updated(updated)
        self._notify(LedgerChange(
            kind=ChangeKind.MEMBER_CONTACT_UPDATED, entity_id=member_id, namespaces=(MEMBERS,)
        ))

    def remove_member(self, member_id: str) -> None:
        """
        Remove a member from the roster.

        Their past contributions stay on the expenses and keep counting
        toward totals; renderers show them as an unknown contributor.

        Raises:
            NotFoundError: If the id is unknown
        """
        idx, member = self._find_member(member_id)
        members = self._members[:idx] + self._members[idx + 1:]
        self._commit_members(members, self._retired_ids | {member_id})

        if self._audit:
            contributed = sum(1 for e in self._expenses if member_id in e.contributions)
            self._audit.log_member_removed(member, contributed)
        self._notify(LedgerChange(
            kind=ChangeKind.MEMBER_REMOVED, entity_id=member_id, namespaces=(MEMBERS,)
        ))

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def get_expense(self, expense_id: str) -> Expense:
        return self._find_expense(expense_id)[1]

    def add_expense(
        self,
        expense_date: date,
        details: str,
        cost: Union[Decimal, int, float, str],
        contributions: Mapping[str, Union[Decimal, int, float, str]],
    ) -> Expense:
        """
        Record a new expense. Stored in insertion order.

        Raises:
            ValidationError: If the record is malformed, contributions do not
                add up to the cost, or a contributor is not a (former) member
        """
        draft = self._check_expense(
            {
                "date": expense_date,
                "details": details,
                "cost": cost,
                "contributions": dict(contributions or {}),
            },
            "add_expense",
        )
        expense = Expense(
            id=self._new_id({e.id for e in self._expenses}),
            **draft.model_dump(),
        )

        self._commit_expenses(self._expenses + [expense])
        self._issued_ids.add(expense.id)

        if self._audit:
            self._audit.log_expense_added(expense)
        self._notify(LedgerChange(
            kind=ChangeKind.EXPENSE_ADDED, entity_id=expense.id, namespaces=(EXPENSES,)
        ))
        return expense

    def update_expense(
        self,
        expense_id: str,
        record: Union[ExpenseDraft, Mapping[str, Any]],
    ) -> Expense:
        """
        Replace an expense with a full new record (no partial patches).

        Raises:
            NotFoundError: If the id is unknown
            ValidationError: If the replacement record is invalid
        """
        idx, current = self._find_expense(expense_id)
        draft = self._check_expense(record, "update_expense", expense_id)
        replacement = Expense(id=expense_id, **draft.model_dump())

        expenses = list(self._expenses)
        expenses[idx] = replacement
        self._commit_expenses(expenses)

        if self._audit:
            self._audit.log_expense_updated(current, replacement)
        self._notify(LedgerChange(
            kind=ChangeKind.EXPENSE_UPDATED, entity_id=expense_id, namespaces=(EXPENSES,)
        ))
        return replacement

    def remove_expense(self, expense_id: str) -> None:
        """
        Delete an expense.

        Raises:
            NotFoundError: If the id is unknown
        """
        idx, expense = self._find_expense(expense_id)
        self._commit_expenses(self._expenses[:idx] + self._expenses[idx + 1:])

        if self._audit:
            self._audit.log_expense_removed(expense)
        self._notify(LedgerChange(
            kind=ChangeKind.EXPENSE_REMOVED, entity_id=expense_id, namespaces=(EXPENSES,)
        ))

    # =========================================================================
    # SETTINGS
    # =========================================================================

    @property
    def settings(self) -> GroupSettings:
        return self._settings

    def update_settings(self, **changes: Any) -> GroupSettings:
        """
        Merge changes into the group settings blob.

        Raises:
            ValidationError: If the merged settings are invalid
        """
        try:
            updated = self._validator.build_settings(self._settings, changes)
        except ValidationError as e:
            if self._audit:
                self._audit.log_validation_failed("update_settings", e.issues)
            raise

        self._persist(SETTINGS, encode_settings(updated))
        self._settings = updated

        if self._audit:
            self._audit.log_settings_updated(sorted(changes))
        self._notify(LedgerChange(kind=ChangeKind.SETTINGS_UPDATED, namespaces=(SETTINGS,)))
        return updated

    # =========================================================================
    # READS
    # =========================================================================

    def snapshot(self) -> LedgerSnapshot:
        """Point-in-time copy of members, expenses and settings."""
        return LedgerSnapshot(
            members=tuple(self._members),
            expenses=tuple(e.model_copy(deep=True) for e in self._expenses),
            settings=self._settings.model_copy(deep=True),
        )
