"""
Period filtering and financial rollups for ClubLedger
"""
from __future__ import annotations
from typing import Dict, List, Optional, Sequence, Tuple

from computations import get_player_stats
from errors import ValidationError
from models import MODE_CASH, MODE_ONLINE, EXPENSE_CATEGORIES, ClubState, Expense, Match, Payment, PeriodSummary, Player
from utils import month_str, today_str

PERIOD_TODAY = "today"
PERIOD_MONTH = "month"
PERIOD_CUSTOM = "custom"
PERIOD_ALL = "all"
PERIODS = (PERIOD_TODAY, PERIOD_MONTH, PERIOD_CUSTOM, PERIOD_ALL)


def filter_by_period(
    records: Sequence,
    period: str,
    today: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> list:
    """
    Filter any records carrying a YYYY-MM-DD `date` attribute.
    today  -> same day
    month  -> same YYYY-MM as today
    custom -> start <= date <= end (either bound may be omitted)
    all    -> everything
    """
    if period == PERIOD_ALL:
        return list(records)
    today = today or today_str()
    if period == PERIOD_TODAY:
        return [r for r in records if r.date == today]
    if period == PERIOD_MONTH:
        prefix = month_str(today)
        return [r for r in records if r.date.startswith(prefix)]
    if period == PERIOD_CUSTOM:
        out = []
        for r in records:
            if start and r.date < start:
                continue
            if end and r.date > end:
                continue
            out.append(r)
        return out
    raise ValidationError(f"Unknown period: {period!r}")


def discount_total(payments: Sequence[Payment]) -> float:
    return sum(a.discount or 0 for p in payments for a in p.allocations)


def collected_by_mode(payments: Sequence[Payment]) -> Dict[str, float]:
    out = {MODE_CASH: 0, MODE_ONLINE: 0}
    for p in payments:
        out[p.mode] = out.get(p.mode, 0) + p.total_amount
    return out


def summarize(matches: Sequence[Match], payments: Sequence[Payment], expenses: Sequence[Expense]) -> PeriodSummary:
    """Rollups over already-filtered records"""
    gross = sum(m.total_value for m in matches)
    discounts = discount_total(payments)
    collected = collected_by_mode(payments)
    cash = collected[MODE_CASH]
    online = collected[MODE_ONLINE]
    spent = sum(e.amount for e in expenses)
    return PeriodSummary(
        gross_revenue=gross,
        discount_total=discounts,
        net_revenue=gross - discounts,
        collected_cash=cash,
        collected_online=online,
        collected_total=cash + online,
        expense_total=spent,
        net_cash_flow=cash + online - spent,
        match_count=len(matches),
    )


def compute_period_summary(
    state: ClubState,
    period: str = PERIOD_ALL,
    today: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> PeriodSummary:
    """Filter every collection by the period, then roll it up"""
    return summarize(
        filter_by_period(state.matches, period, today, start, end),
        filter_by_period(state.payments, period, today, start, end),
        filter_by_period(state.expenses, period, today, start, end),
    )


def total_dues(state: ClubState) -> float:
    """Receivables: sum of positive dues. Credit does not offset other players' debt."""
    total = 0
    for p in state.players:
        pending = get_player_stats(state, p.id).pending
        if pending > 0:
            total += pending
    return total


def outstanding_dues(state: ClubState) -> List[Tuple[Player, float]]:
    """Players who owe money, largest debt first"""
    out = []
    for p in state.players:
        pending = get_player_stats(state, p.id).pending
        if pending > 0:
            out.append((p, pending))
    out.sort(key=lambda x: x[1], reverse=True)
    return out


def expenses_by_category(expenses: Sequence[Expense]) -> Dict[str, float]:
    out = {c: 0 for c in EXPENSE_CATEGORIES}
    for e in expenses:
        out[e.category] = out.get(e.category, 0) + e.amount
    return out


def top_players_by_games(state: ClubState, matches: Sequence[Match], limit: int = 10) -> List[Tuple[Player, int]]:
    """Most active players within the given (filtered) matches"""
    counts = {}
    for m in matches:
        for pid in (m.player_a_id, m.player_b_id):
            counts[pid] = counts.get(pid, 0) + 1
    ranked = [(p, counts[p.id]) for p in state.players if counts.get(p.id)]
    ranked.sort(key=lambda x: x[1], reverse=True)
    return ranked[:limit]
