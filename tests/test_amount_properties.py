"""Property-based tests for expense and settlement arithmetic."""

from decimal import Decimal
from types import SimpleNamespace

from hypothesis import assume, given, settings, strategies as st

from advance_tracker.services.amounts import (
    InvoiceItem,
    approved_total,
    compose_expense_amount,
    settlement_figures,
)

money = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("10000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
positive_money = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
items = st.lists(
    st.builds(
        InvoiceItem,
        item_name=st.sampled_from(["Cement", "Rebar", "Fuel", "Gloves"]),
        quantity=st.integers(min_value=1, max_value=50).map(Decimal),
        unit_price=money,
    ),
    min_size=1,
    max_size=8,
)
statuses = st.sampled_from(["PENDING", "APPROVED", "REJECTED"])


class TestInvoiceProperties:
    @given(invoice_items=items, additional=money)
    @settings(max_examples=100)
    def test_amount_is_item_totals_plus_additional(self, invoice_items, additional):
        base = sum((item.total for item in invoice_items), Decimal("0"))
        assume(base + additional > 0)

        composed = compose_expense_amount(
            invoice_items=invoice_items, additional_amount=additional
        )

        assert composed.amount == base + additional
        assert sum(Decimal(str(i["total"])) for i in composed.invoice_items) == base

    @given(invoice_items=items)
    @settings(max_examples=50)
    def test_item_total_is_quantity_times_price(self, invoice_items):
        for item in invoice_items:
            assert item.total == item.quantity * item.unit_price


class TestSettlementProperties:
    @given(
        amount=positive_money,
        expenses=st.lists(st.tuples(positive_money, statuses), max_size=10),
        returned=money,
    )
    @settings(max_examples=100)
    def test_reconciliation_balances(self, amount, expenses, returned):
        records = [SimpleNamespace(amount=a, status=s) for a, s in expenses]

        figures = settlement_figures(amount, records, returned)

        assert figures.approved_expenses + figures.returned_cash + figures.deficit == amount
        assert figures.requires_carry_forward == (figures.deficit > 0)

    @given(expenses=st.lists(st.tuples(positive_money, statuses), max_size=10))
    @settings(max_examples=50)
    def test_only_approved_expenses_count(self, expenses):
        records = [SimpleNamespace(amount=a, status=s) for a, s in expenses]

        expected = sum((a for a, s in expenses if s == "APPROVED"), Decimal("0"))

        assert approved_total(records) == expected
