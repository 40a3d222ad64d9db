"""
Main Orchestrator for PaiseGone

This module ties together all the components and defines the
end-to-end flows for:
1. Settlement (snapshot → summary → payment plan)
2. Notices (settlement → per-member message → chat link)
3. Live views (store change → recompute → callback)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Settlement always reads one snapshot, never live collections
- An inconsistent ledger halts settlement instead of producing a plan
- Every computation and every violation is audited

This is the "glue" a UI, CLI or scheduled job talks to.
"""

from collections.abc import Callable
from decimal import Decimal
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict

from paisegone.audit import AuditLogger
from paisegone.config import Settings, get_settings
from paisegone.errors import InternalConsistencyError, NotFoundError
from paisegone.ledger import LedgerStore
from paisegone.models.ledger import DateRange, LedgerChange, LedgerSnapshot
from paisegone.models.settlement import BalanceStatus, SettlementPlan, SettlementSummary
from paisegone.notifications import MissingContactError, SettlementNoticeFormatter
from paisegone.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsKeyValueStorage,
    InMemoryAuditStorage,
    InMemoryKeyValueStorage,
    JsonFileKeyValueStorage,
    KeyValueStorageInterface,
)
from paisegone.services.storage.codec import EXPENSES, MEMBERS, SETTINGS
from paisegone.settlement import settle
from paisegone.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class MemberNotice(BaseModel):
    """Rendered settlement notice for one member."""
    model_config = ConfigDict(frozen=True)

    member_id: str
    name: str
    status: BalanceStatus
    message: str
    chat_link: Optional[str] = None  # None when the member has no contact number


class SettlementFlow:
    """
    Orchestrates settlement.

    Flow:
    1. Snapshot → one consistent copy of members and expenses
    2. Summarize → totals, share, balances, partitions
    3. Plan → greedy payer/receiver matching
    4. Audit → computation logged, violations logged at critical severity
    """

    def __init__(
        self,
        store: LedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        epsilon: Optional[Decimal] = None,
        contribution_tolerance: Optional[Decimal] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        app_settings = None
        if epsilon is None or contribution_tolerance is None:
            app_settings = get_settings().app
        self._epsilon = epsilon if epsilon is not None else app_settings.settlement_epsilon
        self._contribution_tolerance = (
            contribution_tolerance if contribution_tolerance is not None
            else app_settings.contribution_tolerance
        )

    @property
    def store(self) -> LedgerStore:
        return self._store

    def calculate(
        self,
        date_range: Optional[DateRange] = None,
        snapshot: Optional[LedgerSnapshot] = None,
    ) -> SettlementPlan:
        """
        Compute the settlement plan for the current ledger.

        Args:
            date_range: Inclusive period to settle; None for everything
            snapshot: Settle this snapshot instead of taking a fresh one

        Raises:
            InternalConsistencyError: If balances do not net to zero.
                Audited, then re-raised; no plan is returned.
        """
        if snapshot is None:
            snapshot = self._store.snapshot()
        try:
            plan = settle(snapshot, date_range, self._epsilon, self._contribution_tolerance)
        except InternalConsistencyError as e:
            if self._audit_logger:
                self._audit_logger.log_consistency_violation(str(e), e.details)
            raise

        if self._audit_logger:
            self._audit_logger.log_settlement_computed(
                total_expense=str(plan.summary.total_expense),
                member_count=plan.summary.member_count,
                transaction_count=plan.transaction_count,
            )
        return plan


class NoticeFlow:
    """
    Builds settlement notices from a fresh settlement.

    Members without a contact number still get a message; only the
    chat link is left out.
    """

    def __init__(
        self,
        settlement_flow: SettlementFlow,
        app_signature: Optional[str] = None,
    ):
        self._settlement_flow = settlement_flow
        self._app_signature = app_signature

    def _settle(
        self,
        date_range: Optional[DateRange],
    ) -> tuple[SettlementSummary, SettlementNoticeFormatter]:
        # Figures and currency/timezone must come from the same instant
        snapshot = self._settlement_flow.store.snapshot()
        summary = self._settlement_flow.calculate(date_range, snapshot).summary
        formatter = SettlementNoticeFormatter.from_group_settings(
            snapshot.settings,
            self._app_signature,
        )
        return summary, formatter

    def _notice(self, formatter, balance, summary) -> MemberNotice:
        message = formatter.render_notice(balance, summary)
        try:
            link = formatter.chat_link(balance, summary)
        except MissingContactError:
            link = None
        return MemberNotice(
            member_id=balance.member_id,
            name=balance.name,
            status=balance.status(summary.epsilon),
            message=message,
            chat_link=link,
        )

    def preview_notice(
        self,
        member_id: str,
        date_range: Optional[DateRange] = None,
    ) -> MemberNotice:
        """
        Notice for one member.

        Raises:
            NotFoundError: If the member is not on the roster
        """
        summary, formatter = self._settle(date_range)
        balance = summary.balance_for(member_id)
        if balance is None:
            raise NotFoundError("member", member_id)
        return self._notice(formatter, balance, summary)

    def notices(self, date_range: Optional[DateRange] = None) -> list[MemberNotice]:
        """Notices for the whole roster, in roster order."""
        summary, formatter = self._settle(date_range)
        return [self._notice(formatter, b, summary) for b in summary.balances]


class SettlementView:
    """
    Keeps a settlement plan current as the ledger changes.

    Subscribes to the store; every change (including an external reload
    picked up by store.sync()) recomputes the plan and calls on_update.
    """

    def __init__(
        self,
        settlement_flow: SettlementFlow,
        date_range: Optional[DateRange] = None,
        on_update: Optional[Callable[[SettlementPlan], None]] = None,
    ):
        self._flow = settlement_flow
        self._date_range = date_range
        self._on_update = on_update
        self._plan: Optional[SettlementPlan] = None
        self._last_error: Optional[InternalConsistencyError] = None
        self._unsubscribe = settlement_flow.store.subscribe(self._handle_change)
        self.refresh()

    @property
    def plan(self) -> Optional[SettlementPlan]:
        """Latest plan, or None if the last recomputation failed."""
        return self._plan

    @property
    def last_error(self) -> Optional[InternalConsistencyError]:
        return self._last_error

    def set_date_range(self, date_range: Optional[DateRange]) -> None:
        self._date_range = date_range
        self.refresh()

    def refresh(self) -> Optional[SettlementPlan]:
        try:
            self._plan = self._flow.calculate(self._date_range)
            self._last_error = None
        except InternalConsistencyError as e:
            self._plan = None
            self._last_error = e
            logger.error("settlement_view_inconsistent", error=str(e), details=e.details)
            return None

        if self._on_update:
            self._on_update(self._plan)
        return self._plan

    def _handle_change(self, change: LedgerChange) -> None:
        logger.debug("settlement_view_refresh", kind=change.kind.value)
        self.refresh()

    def close(self) -> None:
        """Stop following the store."""
        self._unsubscribe()


def create_storage(
    settings: Optional[Settings] = None,
    sheets_client: Optional[GoogleSheetsClient] = None,
) -> tuple[KeyValueStorageInterface, Optional[AuditStorageInterface]]:
    """
    Build the configured key-value backend and, if enabled, an audit backend.

    Returns:
        (ledger_storage, audit_storage or None)
    """
    settings = settings or get_settings()
    storage_settings = settings.storage
    persist_audit = settings.app.persist_audit_events

    if storage_settings.backend == "google_sheets":
        client = sheets_client or GoogleSheetsClient(settings.google_sheets)
        audit_storage = GoogleSheetsAuditStorage(client) if persist_audit else None
        return GoogleSheetsKeyValueStorage(client), audit_storage

    audit_storage = InMemoryAuditStorage() if persist_audit else None
    if storage_settings.backend == "memory":
        return InMemoryKeyValueStorage(), audit_storage
    return JsonFileKeyValueStorage(storage_settings.data_path), audit_storage


def create_app_components(
    settings: Optional[Settings] = None,
    storage: Optional[KeyValueStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[LedgerStore, SettlementFlow, NoticeFlow]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from; defaults to get_settings()
        storage: Use this key-value backend instead of the configured one
        audit_storage: Use this audit backend instead of the configured one

    Returns:
        (ledger_store, settlement_flow, notice_flow)
    """
    settings = settings or get_settings()
    app_settings = settings.app

    if storage is None:
        storage, configured_audit = create_storage(settings)
        audit_storage = audit_storage or configured_audit

    audit_logger = AuditLogger(audit_storage)

    storage_settings = settings.storage
    store = LedgerStore(
        storage,
        audit_logger=audit_logger,
        validator=LedgerValidator(app_settings.contribution_tolerance),
        namespace_keys={
            MEMBERS: storage_settings.members_key,
            EXPENSES: storage_settings.expenses_key,
            SETTINGS: storage_settings.settings_key,
        },
    )

    settlement_flow = SettlementFlow(
        store,
        audit_logger=audit_logger,
        epsilon=app_settings.settlement_epsilon,
        contribution_tolerance=app_settings.contribution_tolerance,
    )
    notice_flow = NoticeFlow(settlement_flow, app_signature=app_settings.app_signature)

    logger.info(
        "app_components_created",
        backend=storage_settings.backend,
        environment=app_settings.app_environment,
    )
    return store, settlement_flow, notice_flow
