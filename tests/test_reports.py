"""Tests for reports module: period filters and rollups."""

import pytest

from errors import ValidationError
from reports import (
    compute_period_summary,
    expenses_by_category,
    filter_by_period,
    outstanding_dues,
    top_players_by_games,
    total_dues,
)

TODAY = '2024-05-15'


@pytest.fixture
def ledger(store, alice, bob, carol):
    """A small month of club activity."""
    store.add_match(alice.id, bob.id, 20, 'BOTH', date='2024-05-15')
    store.add_match(alice.id, carol.id, 10, 'LOSER', winner_id=alice.id, date='2024-05-02')
    store.add_match(bob.id, carol.id, 20, 'PLAYER_A', date='2024-04-30')
    store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 15},
                                 {'player_id': bob.id, 'amount': 10, 'discount': 5}], 'CASH', date='2024-05-15')
    store.add_payment(carol.id, [{'player_id': carol.id, 'amount': 20}], 'ONLINE', date='2024-05-03')
    store.add_expense('RENT', 100, 'ONLINE', date='2024-05-01')
    store.add_expense('BALLS', 12, 'CASH', date='2024-05-15')
    return store


class TestFilterByPeriod:

    def test_today(self, ledger):
        assert len(filter_by_period(ledger.matches, 'today', today=TODAY)) == 1

    def test_month_prefix(self, ledger):
        assert len(filter_by_period(ledger.matches, 'month', today=TODAY)) == 2

    def test_custom_inclusive(self, ledger):
        found = filter_by_period(ledger.matches, 'custom', start='2024-04-30', end='2024-05-02')
        assert len(found) == 2

    def test_custom_open_ended(self, ledger):
        assert len(filter_by_period(ledger.matches, 'custom', start='2024-05-02')) == 2

    def test_all(self, ledger):
        assert len(filter_by_period(ledger.matches, 'all')) == 3

    def test_unknown_period(self, ledger):
        with pytest.raises(ValidationError):
            filter_by_period(ledger.matches, 'week', today=TODAY)


class TestSummary:

    def test_month_rollup(self, ledger):
        s = compute_period_summary(ledger.state, 'month', today=TODAY)
        assert s.match_count == 2
        assert s.gross_revenue == 50
        assert s.discount_total == 5
        assert s.net_revenue == 45
        assert s.collected_cash == 25
        assert s.collected_online == 20
        assert s.collected_total == 45
        assert s.expense_total == 112
        assert s.net_cash_flow == -67

    def test_today_rollup(self, ledger):
        s = compute_period_summary(ledger.state, 'today', today=TODAY)
        assert s.gross_revenue == 30
        assert s.collected_total == 25
        assert s.expense_total == 12

    def test_empty_period(self, ledger):
        s = compute_period_summary(ledger.state, 'today', today='2030-01-01')
        assert s.match_count == 0
        assert s.net_cash_flow == 0


class TestDues:

    def test_total_dues_ignores_credit(self, ledger, alice, bob, carol):
        # alice: 15 + 0 - 15 = 0; bob: 15 + 30 - 10 - 5 = 30; carol: 20 - 20 = 0
        ledger.update_player(alice.id, initial_balance=100)
        assert ledger.get_player_dues(alice.id) == -100
        assert total_dues(ledger.state) == 30

    def test_outstanding_dues_largest_first(self, ledger, alice, bob, carol):
        ledger.update_player(carol.id, initial_balance=-50)
        ranked = outstanding_dues(ledger.state)
        assert [(p.id, due) for p, due in ranked] == [(carol.id, 50), (bob.id, 30)]


class TestBreakdowns:

    def test_expenses_by_category(self, ledger):
        totals = expenses_by_category(ledger.expenses)
        assert totals['RENT'] == 100
        assert totals['BALLS'] == 12
        assert totals['OTHER'] == 0

    def test_top_players_by_games(self, ledger, alice, bob, carol):
        month = filter_by_period(ledger.matches, 'month', today=TODAY)
        ranked = top_players_by_games(ledger.state, month)
        assert ranked[0] == (alice, 2)
        assert {p.id for p, _ in ranked} == {alice.id, bob.id, carol.id}
