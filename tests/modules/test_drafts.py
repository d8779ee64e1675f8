"""Tests for draft multiplier / rate text (fx_modules/profit/drafts.py)."""

from decimal import Decimal
from uuid import uuid4

import pytest

from fx_engines.profit import MultiplierEntry
from fx_modules.profit.drafts import DraftBook, parse_draft


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2", Decimal("2")),
        (" 1.25 ", Decimal("1.25")),
        ("-1", Decimal("-1")),
        ("", None),
        ("   ", None),
        (None, None),
        ("abc", None),
        ("1.2.3", None),
        ("NaN", None),
    ],
)
def test_parse_draft(text, expected):
    assert parse_draft(text) == expected


class TestDraftBook:

    def test_overlay_replaces_multiplier_keeps_group(self):
        account, group = uuid4(), uuid4()
        book = DraftBook()
        book.set_multiplier(account, "4")
        entries, _ = book.overlay([MultiplierEntry(account, Decimal("1"), group)], {})
        assert entries == [MultiplierEntry(account, Decimal("4"), group)]

    def test_overlay_adds_entry_and_clamps(self):
        account = uuid4()
        book = DraftBook()
        book.set_multiplier(account, "-2")
        entries, _ = book.overlay([], {})
        assert entries == [MultiplierEntry(account, Decimal("0"))]

    def test_overlay_skips_unparseable(self):
        account = uuid4()
        book = DraftBook()
        book.set_multiplier(account, "x")
        book.set_rate("PKR", "USD", "")
        entries, rates = book.overlay([], {("PKR", "USD"): Decimal("0.0035")})
        assert entries == []
        assert rates == {("PKR", "USD"): Decimal("0.0035")}

    def test_overlay_rate(self):
        book = DraftBook()
        book.set_rate("PKR", "USD", "0.004")
        _, rates = book.overlay([], {})
        assert rates == {("PKR", "USD"): Decimal("0.004")}

    def test_discard_and_clear(self):
        account = uuid4()
        book = DraftBook()
        book.set_multiplier(account, "2")
        book.set_rate("PKR", "USD", "1")
        assert len(book) == 2
        book.discard_multiplier(account)
        assert len(book) == 1
        book.clear()
        assert len(book) == 0
