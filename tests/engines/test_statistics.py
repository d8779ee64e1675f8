"""Tests for the dashboard roll-up (fx_engines/statistics.py)."""

from decimal import Decimal

from fx_engines.statistics import MoneyLine, compute_dashboard_statistics


class TestDashboardStatistics:

    def test_profit_grouped_by_currency(self):
        stats = compute_dashboard_statistics(
            order_profits=[
                MoneyLine(Decimal("10"), "USDT"),
                MoneyLine(Decimal("2500"), "PKR"),
                MoneyLine(Decimal("5"), "USDT"),
            ],
        )
        assert stats.profit_by_currency == {"USDT": Decimal("15"), "PKR": Decimal("2500")}
        assert stats.profit_order_count == 3
        assert stats.net_by_currency == {"PKR": Decimal("2500"), "USDT": Decimal("15")}

    def test_orders_without_profit_are_skipped(self):
        stats = compute_dashboard_statistics(
            order_profits=[MoneyLine(None, None), MoneyLine(Decimal("0"), "USDT")],
        )
        assert stats.profit_order_count == 0
        assert stats.profit_total == Decimal("0")

    def test_expenses_and_fees_reduce_net(self):
        stats = compute_dashboard_statistics(
            order_profits=[MoneyLine(Decimal("20"), "USDT")],
            expenses=[MoneyLine(Decimal("5"), "USDT")],
            transfer_fees=[MoneyLine(Decimal("1"), "USDT"), MoneyLine(Decimal("0"), "USDT")],
        )
        assert stats.expense_by_currency == {"USDT": Decimal("6")}
        assert stats.expense_count == 1
        assert stats.transfer_fee_count == 1
        assert stats.net_by_currency == {"USDT": Decimal("14")}
        assert stats.net_total == Decimal("14")

    def test_zero_net_currencies_omitted(self):
        stats = compute_dashboard_statistics(
            order_profits=[MoneyLine(Decimal("7"), "PKR")],
            expenses=[MoneyLine(Decimal("7"), "PKR")],
        )
        assert stats.net_by_currency == {}
