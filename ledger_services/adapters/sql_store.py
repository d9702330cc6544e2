"""
ledger_services.adapters.sql_store -- SQLAlchemy-backed record store.

Responsibility:
    Implements every store port on the ORM models of ``ledger_kernel.models``
    and translates rows into domain records.  Raw role strings and stored
    category labels are normalized here and nowhere else.

Architecture position:
    Services > Adapters.  Uses ``ledger_kernel.db.session_scope`` for one
    transaction per operation; nothing spans operations.

Invariants enforced:
    - Expenses are unique by natural key and P&L lines by
      (project, period, category, label); the database constraints back
      the reconciler's lookup-before-write.
    - Updating a commission's linked sales adds and removes only the
      difference, so the (commission, sale) constraint is never violated
      mid-flush.

Failure modes:
    - ``OperationalError`` (connection lost, database locked) ->
      ``StoreUnavailableError``; the paced wrapper retries writes.
    - ``IntegrityError`` -> ``WriteFailureError`` (not retried).
    - Unknown record id on update -> ``LookupFailureError``.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.engine import session_scope
from ledger_kernel.domain.categories import ExpenseCategory, PnLCategory
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import (
    DebtSettlement,
    DerivedExpense,
    ExpenseDraft,
    ExpenseKind,
    MonthlyCommissionRecord,
    Payee,
    PnLLine,
    PnLLineDraft,
    Role,
    Sale,
    SourceTag,
    normalize_role,
)
from ledger_kernel.exceptions import LookupFailureError, StoreUnavailableError, WriteFailureError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import (
    CommissionSaleLink,
    DebtSettlementModel,
    ExpenseModel,
    MonthlyCommissionModel,
    PayeeModel,
    PnLLineModel,
    SaleModel,
)
from ledger_services.ports import EXPENSE_MUTABLE_FIELDS, PNL_MUTABLE_FIELDS, check_changes

logger = get_logger("services.sql_store")

T = TypeVar("T")


def _split_roles(raw: str) -> list[str]:
    return [part for part in (raw or "").split(",") if part.strip()]


def _role_set(raw: str) -> frozenset[Role]:
    roles = (normalize_role(label) for label in _split_roles(raw))
    return frozenset(r for r in roles if r is not None)


def _as_uuid(value: str) -> UUID | None:
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _period_of(row: Any) -> PeriodKey:
    return PeriodKey(row.period_month, row.period_year)


# ---------------------------------------------------------------------------
# Row -> domain
# ---------------------------------------------------------------------------


def sale_from_row(row: SaleModel) -> Sale:
    return Sale(
        id=str(row.id),
        period=_period_of(row),
        project=row.project,
        amount_excl_vat=row.amount_excl_vat,
        amount_incl_vat=row.amount_incl_vat,
        payment_method=row.payment_method,
        campaign_tag=row.campaign_tag,
        commission_amount=row.commission_amount,
    )


def commission_from_row(row: MonthlyCommissionModel) -> MonthlyCommissionRecord:
    return MonthlyCommissionRecord(
        id=str(row.id),
        payee_ref=str(row.payee_id),
        payee_name=row.payee_name,
        period=_period_of(row),
        role=normalize_role(_split_roles(row.roles)),
        final_commission=row.final_commission,
        linked_sale_ids=row.linked_sale_ids,
        setter_caller_commission=row.setter_caller_commission,
        name=row.name,
    )


def payee_from_row(row: PayeeModel) -> Payee:
    return Payee(id=str(row.id), name=row.name, role=normalize_role(_split_roles(row.roles)))


def expense_from_row(row: ExpenseModel) -> DerivedExpense:
    return DerivedExpense(
        record_id=str(row.id),
        natural_key=row.natural_key,
        project=row.project,
        category=ExpenseCategory.parse(row.category),
        amount=row.amount,
        period=_period_of(row),
        description=row.description,
        source=SourceTag(row.source),
        kind=ExpenseKind(row.kind) if row.kind else None,
        vat_included=row.vat_included,
        display_name=row.display_name,
        associated_sale_ids=frozenset(row.associated_sale_ids or ()),
        category_label=row.category,
        updated_at=row.updated_at,
    )


def pnl_line_from_row(row: PnLLineModel) -> PnLLine:
    return PnLLine(
        record_id=str(row.id),
        project=row.project,
        period=_period_of(row),
        category=PnLCategory(row.category),
        label=row.label,
        description=row.description,
        amount_ron=row.amount_ron,
        amount_eur=row.amount_eur,
        source=SourceTag(row.source),
        updated_at=row.updated_at,
    )


def settlement_from_row(row: DebtSettlementModel) -> DebtSettlement:
    return DebtSettlement(
        debt_record_id=row.debt_record_id,
        payee_ref=row.payee_ref,
        settling_period=_period_of(row),
        amount=row.amount,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SqlRecordStore:
    """
    Contract:
        Implements ``ledger_services.ports.RecordStore``.  Each method opens
        and commits its own session.

    Non-goals:
        - No pacing and no retries; wrap in ``PacedRecordStore`` for that.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
    ):
        self._factory = session_factory
        self._clock = clock or SystemClock()

    def _read(self, operation: str, fn: Callable[[Session], T]) -> T:
        try:
            with session_scope(self._factory) as session:
                return fn(session)
        except OperationalError as exc:
            raise StoreUnavailableError(operation, str(exc.orig)) from exc

    def _write(self, operation: str, key: str, fn: Callable[[Session], T]) -> T:
        try:
            with session_scope(self._factory) as session:
                return fn(session)
        except IntegrityError as exc:
            raise WriteFailureError(operation, key, 1, str(exc.orig)) from exc
        except OperationalError as exc:
            raise StoreUnavailableError(operation, str(exc.orig)) from exc

    def _now(self) -> datetime:
        return self._clock.now()

    @staticmethod
    def _require(session: Session, model: type, record_id: str, operation: str) -> Any:
        uid = _as_uuid(record_id)
        row = session.get(model, uid) if uid is not None else None
        if row is None:
            raise LookupFailureError(operation, record_id, "record not found")
        return row

    # ------------------------------------------------------------------
    # SalesSource
    # ------------------------------------------------------------------

    async def fetch_sales_for_period(self, period: PeriodKey) -> list[Sale]:
        def query(session: Session) -> list[Sale]:
            rows = session.scalars(
                select(SaleModel)
                .where(SaleModel.period_year == period.year, SaleModel.period_month == period.month)
                .order_by(SaleModel.id)
            )
            return [sale_from_row(r) for r in rows]

        return self._read("fetch_sales_for_period", query)

    async def fetch_sale_periods(self) -> list[PeriodKey]:
        def query(session: Session) -> list[PeriodKey]:
            rows = session.execute(
                select(SaleModel.period_month, SaleModel.period_year).distinct()
            )
            return sorted(PeriodKey(month, year) for month, year in rows)

        return self._read("fetch_sale_periods", query)

    async def fetch_sales_by_ids(self, sale_ids: Collection[str]) -> list[Sale]:
        uids = [u for u in (_as_uuid(i) for i in sale_ids) if u is not None]
        if not uids:
            return []

        def query(session: Session) -> list[Sale]:
            rows = session.scalars(select(SaleModel).where(SaleModel.id.in_(uids)).order_by(SaleModel.id))
            return [sale_from_row(r) for r in rows]

        return self._read("fetch_sales_by_ids", query)

    # ------------------------------------------------------------------
    # CommissionSource
    # ------------------------------------------------------------------

    async def fetch_monthly_commissions(
        self, period: PeriodKey, roles: Collection[Role],
    ) -> list[MonthlyCommissionRecord]:
        wanted = set(roles)

        def query(session: Session) -> list[MonthlyCommissionRecord]:
            rows = session.scalars(
                select(MonthlyCommissionModel).where(
                    MonthlyCommissionModel.period_year == period.year,
                    MonthlyCommissionModel.period_month == period.month,
                ).order_by(MonthlyCommissionModel.id)
            )
            records = [commission_from_row(r) for r in rows]
            return [r for r in records if r.role in wanted]

        return self._read("fetch_monthly_commissions", query)

    async def fetch_negative_commissions(self, payee_ref: str) -> list[MonthlyCommissionRecord]:
        uid = _as_uuid(payee_ref)
        if uid is None:
            return []

        def query(session: Session) -> list[MonthlyCommissionRecord]:
            rows = session.scalars(
                select(MonthlyCommissionModel).where(MonthlyCommissionModel.payee_id == uid)
            )
            return [commission_from_row(r) for r in rows if r.final_commission < 0]

        return self._read("fetch_negative_commissions", query)

    async def find_monthly_commission(
        self, payee_ref: str, period: PeriodKey, role: Role,
    ) -> MonthlyCommissionRecord | None:
        uid = _as_uuid(payee_ref)
        if uid is None:
            return None

        def query(session: Session) -> MonthlyCommissionRecord | None:
            rows = session.scalars(
                select(MonthlyCommissionModel).where(
                    MonthlyCommissionModel.payee_id == uid,
                    MonthlyCommissionModel.period_year == period.year,
                    MonthlyCommissionModel.period_month == period.month,
                )
            )
            for row in rows:
                record = commission_from_row(row)
                if record.role is role:
                    return record
            return None

        return self._read("find_monthly_commission", query)

    async def create_monthly_commission(
        self,
        *,
        payee_ref: str,
        payee_name: str,
        period: PeriodKey,
        role: Role,
        final_commission: Decimal,
        linked_sale_ids: Collection[str],
        name: str,
    ) -> MonthlyCommissionRecord:
        def write(session: Session) -> MonthlyCommissionRecord:
            now = self._now()
            row = MonthlyCommissionModel(
                payee_id=UUID(payee_ref),
                payee_name=payee_name,
                period_month=period.month,
                period_year=period.year,
                roles=role.value,
                final_commission=final_commission,
                name=name,
                created_at=now,
                updated_at=now,
            )
            row.links = [CommissionSaleLink(sale_id=UUID(i)) for i in sorted(linked_sale_ids)]
            session.add(row)
            session.flush()
            return commission_from_row(row)

        return self._write("create_monthly_commission", f"{payee_ref}|{period.label}", write)

    async def update_monthly_commission(
        self,
        record_id: str,
        *,
        final_commission: Decimal,
        linked_sale_ids: Collection[str],
        name: str,
    ) -> MonthlyCommissionRecord:
        def write(session: Session) -> MonthlyCommissionRecord:
            row = self._require(session, MonthlyCommissionModel, record_id, "update_monthly_commission")
            wanted = {UUID(i) for i in linked_sale_ids}
            for link in list(row.links):
                if link.sale_id not in wanted:
                    row.links.remove(link)
            present = {link.sale_id for link in row.links}
            for sale_id in sorted(wanted - present):
                row.links.append(CommissionSaleLink(sale_id=sale_id))
            row.final_commission = final_commission
            row.name = name
            row.updated_at = self._now()
            session.flush()
            return commission_from_row(row)

        return self._write("update_monthly_commission", record_id, write)

    # ------------------------------------------------------------------
    # PayeeDirectory
    # ------------------------------------------------------------------

    async def fetch_payee_by_name(self, name: str) -> Payee | None:
        wanted = name.strip().casefold()

        def query(session: Session) -> Payee | None:
            for row in session.scalars(select(PayeeModel).order_by(PayeeModel.name)):
                if row.name.strip().casefold() == wanted:
                    return payee_from_row(row)
            return None

        return self._read("fetch_payee_by_name", query)

    async def list_payees(self, roles: Collection[Role] | None = None) -> list[Payee]:
        wanted = None if roles is None else set(roles)

        def query(session: Session) -> list[Payee]:
            rows = session.scalars(select(PayeeModel).order_by(PayeeModel.name))
            return [
                payee_from_row(r) for r in rows
                if wanted is None or _role_set(r.roles) & wanted
            ]

        return self._read("list_payees", query)

    # ------------------------------------------------------------------
    # ExpenseStore
    # ------------------------------------------------------------------

    async def find_expense_by_key(self, natural_key: str) -> DerivedExpense | None:
        def query(session: Session) -> DerivedExpense | None:
            row = session.scalars(
                select(ExpenseModel).where(ExpenseModel.natural_key == natural_key)
            ).first()
            return None if row is None else expense_from_row(row)

        return self._read("find_expense_by_key", query)

    async def create_expense(self, draft: ExpenseDraft) -> DerivedExpense:
        def write(session: Session) -> DerivedExpense:
            now = self._now()
            row = ExpenseModel(
                natural_key=draft.natural_key,
                kind=draft.kind.value,
                project=draft.project,
                category=draft.category.value,
                amount=draft.amount,
                vat_included=draft.vat_included,
                period_month=draft.period.month,
                period_year=draft.period.year,
                description=draft.description,
                display_name=draft.display_name,
                source=draft.source.value,
                associated_sale_ids=sorted(draft.associated_sale_ids),
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            return expense_from_row(row)

        return self._write("create_expense", draft.natural_key, write)

    async def update_expense(self, record_id: str, changes: Mapping[str, Any]) -> DerivedExpense:
        check_changes(changes, EXPENSE_MUTABLE_FIELDS)

        def write(session: Session) -> DerivedExpense:
            row = self._require(session, ExpenseModel, record_id, "update_expense")
            for field_name, value in changes.items():
                match field_name:
                    case "category":
                        row.category = ExpenseCategory(value).value
                    case "associated_sale_ids":
                        row.associated_sale_ids = sorted(value)
                    case _:
                        setattr(row, field_name, value)
            row.updated_at = self._now()
            session.flush()
            return expense_from_row(row)

        return self._write("update_expense", record_id, write)

    async def list_expenses(
        self, period: PeriodKey, source: SourceTag | None = None,
    ) -> list[DerivedExpense]:
        def query(session: Session) -> list[DerivedExpense]:
            stmt = select(ExpenseModel).where(
                ExpenseModel.period_year == period.year,
                ExpenseModel.period_month == period.month,
            )
            if source is not None:
                stmt = stmt.where(ExpenseModel.source == source.value)
            return self._expenses(session.scalars(stmt.order_by(ExpenseModel.created_at)))

        return self._read("list_expenses", query)

    async def list_all_expenses(self) -> list[DerivedExpense]:
        def query(session: Session) -> list[DerivedExpense]:
            return self._expenses(session.scalars(select(ExpenseModel).order_by(ExpenseModel.created_at)))

        return self._read("list_all_expenses", query)

    @staticmethod
    def _expenses(rows) -> list[DerivedExpense]:
        expenses = []
        for row in rows:
            try:
                expenses.append(expense_from_row(row))
            except ValueError:
                logger.warning("expense_category_unknown", extra={
                    "record_id": str(row.id), "category": row.category,
                })
        return expenses

    async def delete_expense(self, record_id: str) -> None:
        def write(session: Session) -> None:
            session.delete(self._require(session, ExpenseModel, record_id, "delete_expense"))

        self._write("delete_expense", record_id, write)

    # ------------------------------------------------------------------
    # PnLStore
    # ------------------------------------------------------------------

    async def find_pnl_line(
        self, project: str, period: PeriodKey, category: PnLCategory, label: str,
    ) -> PnLLine | None:
        def query(session: Session) -> PnLLine | None:
            row = session.scalars(
                select(PnLLineModel).where(
                    PnLLineModel.project == project,
                    PnLLineModel.period_year == period.year,
                    PnLLineModel.period_month == period.month,
                    PnLLineModel.category == category.value,
                    PnLLineModel.label == label,
                )
            ).first()
            return None if row is None else pnl_line_from_row(row)

        return self._read("find_pnl_line", query)

    async def create_pnl_line(self, draft: PnLLineDraft) -> PnLLine:
        def write(session: Session) -> PnLLine:
            now = self._now()
            row = PnLLineModel(
                project=draft.project,
                period_month=draft.period.month,
                period_year=draft.period.year,
                category=draft.category.value,
                label=draft.label,
                description=draft.description,
                amount_ron=draft.amount_ron,
                amount_eur=draft.amount_eur,
                source=draft.source.value,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            return pnl_line_from_row(row)

        key = f"{draft.project}|{draft.period.label}|{draft.category.value}|{draft.label}"
        return self._write("create_pnl_line", key, write)

    async def update_pnl_line(self, record_id: str, changes: Mapping[str, Any]) -> PnLLine:
        check_changes(changes, PNL_MUTABLE_FIELDS)

        def write(session: Session) -> PnLLine:
            row = self._require(session, PnLLineModel, record_id, "update_pnl_line")
            for field_name, value in changes.items():
                setattr(row, field_name, value)
            row.updated_at = self._now()
            session.flush()
            return pnl_line_from_row(row)

        return self._write("update_pnl_line", record_id, write)

    async def list_pnl_lines(self, period: PeriodKey) -> list[PnLLine]:
        def query(session: Session) -> list[PnLLine]:
            rows = session.scalars(
                select(PnLLineModel).where(
                    PnLLineModel.period_year == period.year,
                    PnLLineModel.period_month == period.month,
                ).order_by(PnLLineModel.created_at)
            )
            return [pnl_line_from_row(r) for r in rows]

        return self._read("list_pnl_lines", query)

    # ------------------------------------------------------------------
    # SettlementStore
    # ------------------------------------------------------------------

    async def fetch_debt_settlements(self, payee_ref: str) -> list[DebtSettlement]:
        def query(session: Session) -> list[DebtSettlement]:
            rows = session.scalars(
                select(DebtSettlementModel).where(DebtSettlementModel.payee_ref == payee_ref)
            )
            return [settlement_from_row(r) for r in rows]

        return self._read("fetch_debt_settlements", query)

    async def upsert_debt_settlement(self, key: str, settlement: DebtSettlement) -> None:
        def write(session: Session) -> None:
            now = self._now()
            row = session.scalars(
                select(DebtSettlementModel).where(DebtSettlementModel.settlement_key == key)
            ).first()
            if row is None:
                row = DebtSettlementModel(settlement_key=key, created_at=now)
                session.add(row)
            row.debt_record_id = settlement.debt_record_id
            row.payee_ref = settlement.payee_ref
            row.period_month = settlement.settling_period.month
            row.period_year = settlement.settling_period.year
            row.amount = settlement.amount
            row.updated_at = now

        self._write("upsert_debt_settlement", key, write)
