"""
Tests for the six allocation kinds against the in-memory store.

Each kind is run for Octombrie 2025 and checked for the expenses it
derives: natural keys, amounts, descriptions, linked sales and the
counters of its KindResult.
"""

import asyncio
from dataclasses import replace
from decimal import Decimal

import pytest

from ledger_kernel.domain.categories import ExpenseCategory
from ledger_kernel.domain.keys import (
    ad_spend_key,
    copywriting_key,
    debt_settlement_key,
    payment_fee_key,
    sales_rep_key,
    setter_caller_key,
    team_leader_key,
)
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import AdSpendReport, Payee, Role
from ledger_kernel.exceptions import LookupFailureError, StoreUnavailableError
from ledger_services.kinds import (
    AdSpendKind,
    CopywritingKind,
    PaymentFeeKind,
    SalesRepKind,
    SetterCallerKind,
    TeamLeaderKind,
)
from ledger_services.kinds.base import format_amount

SEP = PeriodKey(9, 2025)


class StaticAdSpend:
    def __init__(self, report: AdSpendReport):
        self.report = report

    async def fetch_ad_spend(self, period):
        return self.report


def test_format_amount():
    assert format_amount(Decimal("125184.4")) == "125,184"
    assert format_amount(Decimal("999.5")) == "1,000"


# =============================================================================
# Sales representatives
# =============================================================================


class TestSalesRepKind:
    def _seed(self, store, payees, make_sale, make_commission, amount="1000"):
        s1 = make_sale("CODCOM", "3000", sale_id="sale-001")
        s2 = make_sale("Artok Academy", "1000", sale_id="sale-002")
        store.add_sales(s1, s2)
        return store.add_commission(
            make_commission(payees["ana"], amount, [s1, s2], record_id="mc-ana")
        )

    def test_split_by_amount_excluding_vat(
        self, store, payees, make_sale, make_commission, make_context, period, expenses_by_key,
    ):
        self._seed(store, payees, make_sale, make_commission)
        result = asyncio.run(SalesRepKind(make_context()).run(period))

        assert (result.created, result.errors) == (2, 0)
        expenses = expenses_by_key()
        codcom = expenses[sales_rep_key("mc-ana", "CODCOM")]
        artok = expenses[sales_rep_key("mc-ana", "Artok Academy")]
        assert codcom.amount == Decimal("750.00")
        assert artok.amount == Decimal("250.00")
        assert codcom.category is ExpenseCategory.REPRESENTATIVES
        assert codcom.description == "Ana Ionescu - Octombrie 2025"
        assert codcom.display_name == "Ana Ionescu"
        assert codcom.associated_sale_ids == {"sale-001"}
        assert not codcom.vat_included

    def test_rerun_is_idempotent(
        self, store, payees, make_sale, make_commission, make_context, period,
    ):
        self._seed(store, payees, make_sale, make_commission)
        asyncio.run(SalesRepKind(make_context()).run(period))
        writes = len(store.write_log)

        again = asyncio.run(SalesRepKind(make_context()).run(period))
        assert (again.created, again.updated, again.skipped) == (0, 0, 2)
        assert len(store.write_log) == writes

    def test_prior_debt_reduces_net(
        self, store, payees, make_sale, make_commission, make_context, period, expenses_by_key,
    ):
        self._seed(store, payees, make_sale, make_commission)
        store.add_commission(
            make_commission(payees["ana"], "-300", record_period=SEP, record_id="mc-sep")
        )
        result = asyncio.run(SalesRepKind(make_context()).run(period))

        assert result.created == 2
        assert result.side_writes == 1
        expenses = expenses_by_key()
        codcom = expenses[sales_rep_key("mc-ana", "CODCOM")]
        assert codcom.amount == Decimal("525.00")
        assert expenses[sales_rep_key("mc-ana", "Artok Academy")].amount == Decimal("175.00")
        assert codcom.description == (
            "Ana Ionescu - Octombrie 2025 "
            "(Comision: 1000.00 RON - Datorie: 300.00 RON = Net: 700.00 RON)"
        )
        settlement = store.settlements[debt_settlement_key("mc-sep", period)]
        assert settlement.amount == Decimal("300")

        again = asyncio.run(SalesRepKind(make_context()).run(period))
        assert (again.created, again.updated, again.side_writes) == (0, 0, 0)

    def test_debt_covering_commission_skips_and_settles(
        self, store, payees, make_sale, make_commission, make_context, period,
    ):
        self._seed(store, payees, make_sale, make_commission, amount="200")
        store.add_commission(
            make_commission(payees["ana"], "-300", record_period=SEP, record_id="mc-sep")
        )
        result = asyncio.run(SalesRepKind(make_context()).run(period))

        assert (result.created, result.skipped, result.side_writes) == (0, 1, 1)
        assert store.expenses == {}
        assert store.settlements[debt_settlement_key("mc-sep", period)].amount == Decimal("200")

    def test_invalid_records_skipped(
        self, store, payees, make_sale, make_commission, make_context, period,
    ):
        sale = make_sale("CODCOM", "1000")
        store.add_sales(sale)
        store.add_commission(make_commission(payees["ana"], "0", [sale]))
        store.add_commission(make_commission(payees["mihai"], "400"))
        orphan = make_sale(None, "1000")
        store.add_sales(orphan)
        store.add_commission(make_commission(payees["ana"], "100", [orphan], record_id="mc-x"))

        result = asyncio.run(SalesRepKind(make_context()).run(period))
        assert (result.created, result.skipped, result.errors) == (0, 3, 0)

    @pytest.mark.parametrize("failing_first", [True, False])
    def test_lookup_failure_isolated_to_one_payee(
        self, store, payees, make_sale, make_commission, make_context, period,
        expenses_by_key, monkeypatch, failing_first,
    ):
        s1 = make_sale("CODCOM", "1000")
        s2 = make_sale("CODCOM", "2000")
        store.add_sales(s1, s2)
        ana = make_commission(payees["ana"], "500", [s1], record_id="mc-ana")
        mihai = make_commission(payees["mihai"], "300", [s2], record_id="mc-mihai")
        for record in ([ana, mihai] if failing_first else [mihai, ana]):
            store.add_commission(record)

        healthy = store.fetch_negative_commissions

        async def fetch_negative_commissions(payee_ref):
            if payee_ref == "p-ana":
                raise LookupFailureError("fetch_negative_commissions", payee_ref, "timeout")
            return await healthy(payee_ref)

        monkeypatch.setattr(store, "fetch_negative_commissions", fetch_negative_commissions)
        result = asyncio.run(SalesRepKind(make_context()).run(period))

        assert (result.created, result.errors) == (1, 1)
        assert "LOOKUP_FAILURE" in result.error_messages[0]
        assert "mc-ana" in result.error_messages[0]
        assert list(expenses_by_key()) == [sales_rep_key("mc-mihai", "CODCOM")]

    def test_unavailable_store_on_read_isolated(
        self, store, payees, make_sale, make_commission, make_context, period,
        expenses_by_key, monkeypatch,
    ):
        s1 = make_sale("CODCOM", "1000")
        s2 = make_sale("Artok Academy", "1000")
        store.add_sales(s1, s2)
        store.add_commission(make_commission(payees["ana"], "500", [s1], record_id="mc-ana"))
        store.add_commission(make_commission(payees["mihai"], "300", [s2], record_id="mc-mihai"))

        healthy = store.fetch_sales_by_ids

        async def fetch_sales_by_ids(ids):
            if s1.id in ids:
                raise StoreUnavailableError("fetch_sales_by_ids", "503")
            return await healthy(ids)

        monkeypatch.setattr(store, "fetch_sales_by_ids", fetch_sales_by_ids)
        result = asyncio.run(SalesRepKind(make_context()).run(period))

        assert (result.created, result.errors) == (1, 1)
        assert "STORE_UNAVAILABLE" in result.error_messages[0]
        assert list(expenses_by_key()) == [sales_rep_key("mc-mihai", "Artok Academy")]


# =============================================================================
# Setters and callers
# =============================================================================


class TestSetterCallerKind:
    def test_split_by_sale_commission(
        self, store, payees, make_sale, make_commission, make_context, period, expenses_by_key,
    ):
        s1 = make_sale("CODCOM", "1000", commission="30")
        s2 = make_sale("Artok Academy", "1000", commission="10")
        store.add_sales(s1, s2)
        store.add_commission(make_commission(payees["setter"], "500", [s1, s2], setter_caller="400"))

        result = asyncio.run(SetterCallerKind(make_context()).run(period))

        assert result.created == 2
        expenses = expenses_by_key()
        codcom = expenses[setter_caller_key(Role.SETTER, "Ioana Setter", "CODCOM", period)]
        assert codcom.amount == Decimal("300.00")
        assert codcom.category is ExpenseCategory.SETTER
        artok = expenses[setter_caller_key(Role.SETTER, "Ioana Setter", "Artok Academy", period)]
        assert artok.amount == Decimal("100.00")

    def test_falls_back_to_final_commission(
        self, store, payees, make_sale, make_commission, make_context, period, expenses_by_key,
    ):
        sale = make_sale("CODCOM", "1000", commission="50")
        store.add_sales(sale)
        store.add_commission(make_commission(payees["caller"], "120", [sale]))

        asyncio.run(SetterCallerKind(make_context()).run(period))

        expense = expenses_by_key()[setter_caller_key(Role.CALLER, "Vlad Caller", "CODCOM", period)]
        assert expense.amount == Decimal("120.00")
        assert expense.category is ExpenseCategory.CALLER

    def test_no_positive_commission_skipped(
        self, store, payees, make_sale, make_commission, make_context, period,
    ):
        sale = make_sale("CODCOM", "1000")
        store.add_sales(sale)
        store.add_commission(make_commission(payees["setter"], "120", [sale]))

        result = asyncio.run(SetterCallerKind(make_context()).run(period))
        assert (result.created, result.skipped) == (0, 1)


# =============================================================================
# Team leaders
# =============================================================================


class TestTeamLeaderKind:
    def test_rate_on_led_sales(
        self, store, payees, make_sale, make_commission, make_context, period, expenses_by_key,
    ):
        s1 = make_sale("CODCOM", "1000")
        s2 = make_sale("CODCOM", "2000")
        refund = make_sale("Artok Academy", "-500")
        store.add_sales(s1, s2, refund)
        store.add_commission(make_commission(payees["setter"], "300", [s1, s2, refund]))

        result = asyncio.run(TeamLeaderKind(make_context()).run(period))

        assert (result.created, result.skipped, result.side_writes) == (1, 1, 1)
        expense = expenses_by_key()[team_leader_key(Role.SETTER, "CODCOM", period)]
        assert expense.amount == Decimal("150.00")
        assert expense.description == "Teamleader Setter: George Coapsi (2 vanzari)"
        assert expense.category is ExpenseCategory.TEAM_LEADER
        assert expense.display_name == "George Coapsi"

        monthly = [r for r in store.commissions.values() if r.role is Role.TEAM_LEADER]
        assert len(monthly) == 1
        assert monthly[0].payee_ref == "p-george"
        assert monthly[0].final_commission == Decimal("125.00")
        assert monthly[0].linked_sale_ids == {s1.id, s2.id, refund.id}

    def test_rerun_updates_monthly_record_once(
        self, store, payees, make_sale, make_commission, make_context, period,
    ):
        s1 = make_sale("CODCOM", "1000")
        store.add_sales(s1)
        store.add_commission(make_commission(payees["caller"], "100", [s1]))
        asyncio.run(TeamLeaderKind(make_context()).run(period))

        store.sales[s1.id] = replace(s1, amount_excl_vat=Decimal("1500"))
        result = asyncio.run(TeamLeaderKind(make_context()).run(period))

        assert (result.created, result.updated, result.side_writes) == (0, 1, 1)
        (monthly,) = [r for r in store.commissions.values() if r.role is Role.TEAM_LEADER]
        assert monthly.payee_ref == "p-alex"
        assert monthly.final_commission == Decimal("30.00")

    def test_no_led_sales_writes_nothing(self, store, payees, make_context, period):
        result = asyncio.run(TeamLeaderKind(make_context()).run(period))
        assert (result.created, result.updated) == (0, 0)
        assert store.write_log == []

    def test_directory_failure_for_one_leader_isolated(
        self, store, payees, make_sale, make_commission, make_context, period,
        expenses_by_key, monkeypatch,
    ):
        s1 = make_sale("CODCOM", "1000")
        s2 = make_sale("Artok Academy", "1000")
        store.add_sales(s1, s2)
        store.add_commission(make_commission(payees["setter"], "100", [s1]))
        store.add_commission(make_commission(payees["caller"], "100", [s2]))

        healthy = store.fetch_payee_by_name

        async def fetch_payee_by_name(name):
            if name == "George Coapsi":
                raise LookupFailureError("fetch_payee_by_name", name, "timeout")
            return await healthy(name)

        monkeypatch.setattr(store, "fetch_payee_by_name", fetch_payee_by_name)
        result = asyncio.run(TeamLeaderKind(make_context()).run(period))

        assert (result.created, result.errors, result.side_writes) == (2, 1, 1)
        assert "George Coapsi" in result.error_messages[0]
        assert team_leader_key(Role.CALLER, "Artok Academy", period) in expenses_by_key()
        (monthly,) = [r for r in store.commissions.values() if r.role is Role.TEAM_LEADER]
        assert monthly.payee_ref == "p-alex"


# =============================================================================
# Payment processor fees
# =============================================================================


class TestPaymentFeeKind:
    def test_fee_on_link_payments(
        self, store, make_sale, make_context, period, expenses_by_key,
    ):
        store.add_sales(
            make_sale("CODCOM", "1000", "1190", payment_method="Stripe Link"),
            make_sale("CODCOM", "2000", "2380", payment_method="payment LINK"),
            make_sale("CODCOM", "5000", "5950", payment_method="transfer bancar"),
            make_sale(None, "1000", "1190", payment_method="link"),
        )
        result = asyncio.run(PaymentFeeKind(make_context()).run(period))

        assert (result.created, result.skipped) == (1, 1)
        expense = expenses_by_key()[payment_fee_key("CODCOM", period)]
        assert expense.amount == Decimal("71.40")
        assert expense.category is ExpenseCategory.PAYMENT_PROCESSING
        assert expense.vat_included
        assert expense.description == (
            "Comision procesare plati Stripe - CODCOM (2 tranzactii, 3,570 RON procesate)"
        )
        assert len(expense.associated_sale_ids) == 2

    def test_no_link_payments(self, store, make_sale, make_context, period):
        store.add_sales(make_sale("CODCOM", payment_method="cash"))
        result = asyncio.run(PaymentFeeKind(make_context()).run(period))
        assert (result.created, result.updated) == (0, 0)


# =============================================================================
# Advertising spend
# =============================================================================


class TestAdSpendKind:
    def test_campaigns_mapped_to_projects(
        self, store, config, make_context, ad_spend_source, period, expenses_by_key,
    ):
        result = asyncio.run(AdSpendKind(make_context(ad_spend=ad_spend_source)).run(period))

        assert (result.created, result.skipped, result.errors) == (2, 1, 0)
        expenses = expenses_by_key()
        codcom = expenses[ad_spend_key("CODCOM", period)]
        assert codcom.amount == Decimal("2000.00")
        assert codcom.description == "Facebook Ads - CODCOM (2 campanii, 2,000 RON)"
        assert codcom.category is ExpenseCategory.ADVERTISING
        shared = expenses[ad_spend_key(config.projects.shared_bucket, period)]
        assert shared.amount == Decimal("300.00")

    def test_missing_source_aborts(self, make_context, period, captured_logs):
        result = asyncio.run(AdSpendKind(make_context()).run(period))
        assert result.aborted
        assert result.errors == 1
        assert any(r["message"] == "allocation_aborted" for r in captured_logs())

    def test_wrong_currency_aborts(self, store, make_context, period):
        source = StaticAdSpend(AdSpendReport(account_currency="EUR", rows=()))
        result = asyncio.run(AdSpendKind(make_context(ad_spend=source)).run(period))
        assert result.aborted
        assert "EUR" in result.abort_reason
        assert store.write_log == []


# =============================================================================
# Copywriting
# =============================================================================


class TestCopywritingKind:
    def test_configured_identifier(
        self, store, payees, make_sale, make_context, period, expenses_by_key,
    ):
        store.add_sales(
            make_sale("CODCOM", "30000", campaign_tag="Lansare - DianaNastase"),
            make_sale("Artok Academy", "20000", campaign_tag="webinar_diananastase_oct"),
            make_sale("CODCOM", "9999", campaign_tag="generic"),
        )
        result = asyncio.run(CopywritingKind(make_context()).run(period))

        # 50000 RON = 10000 EUR -> 500 EUR -> 2500 RON
        assert (result.created, result.side_writes) == (2, 1)
        expenses = expenses_by_key()
        codcom = expenses[copywriting_key("Diana Nastase", "CODCOM", period)]
        artok = expenses[copywriting_key("Diana Nastase", "Artok Academy", period)]
        assert codcom.amount == Decimal("1500.00")
        assert artok.amount == Decimal("1000.00")
        assert codcom.description == "Copywriter: Diana Nastase"
        assert codcom.category is ExpenseCategory.COPYWRITING

        (monthly,) = [r for r in store.commissions.values() if r.role is Role.COPYWRITER]
        assert monthly.payee_ref == "p-diana"
        assert monthly.final_commission == Decimal("2500.00")

    def test_fuzzy_name_from_campaign_tag(
        self, store, payees, make_sale, make_context, period, expenses_by_key,
    ):
        store.add_payee(Payee("p-andrei", "Andrei Popescu", Role.COPYWRITER))
        store.add_sales(make_sale("CODCOM", "20000", campaign_tag="fb - AndreiPopescu | retarget"))

        result = asyncio.run(CopywritingKind(make_context()).run(period))

        # 20000 RON = 4000 EUR -> 200 EUR -> 1000 RON
        assert result.created == 1
        expense = expenses_by_key()[copywriting_key("Andrei Popescu", "CODCOM", period)]
        assert expense.amount == Decimal("1000.00")
        (monthly,) = [r for r in store.commissions.values() if r.role is Role.COPYWRITER]
        assert monthly.payee_ref == "p-andrei"

    def test_unresolved_name_ignored(self, store, payees, make_sale, make_context, period):
        store.add_sales(make_sale("CODCOM", "20000", campaign_tag="fb - MariusNecunoscut"))
        result = asyncio.run(CopywritingKind(make_context()).run(period))
        assert (result.created, result.updated) == (0, 0)
        assert store.write_log == []
