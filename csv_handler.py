"""
CSV export functionality for ClubLedger
"""
from __future__ import annotations
import csv
import logging
from typing import Optional

from computations import find_player, get_player_stats
from models import ClubState
from utils import today_str

log = logging.getLogger(__name__)

PLAYER_STATS_COLUMNS = [
    'Name', 'Nickname', 'Games Played', 'Lifetime Value', 'Total Paid', 'Total Discounted', 'Current Pending',
]


def default_report_filename(period: str, today: Optional[str] = None) -> str:
    return f"Club_Report_{period}_{today or today_str()}.csv"


def export_player_stats_to_csv(state: ClubState, filepath: str) -> int:
    """
    Export one row of derived stats per player.
    CSV columns: Name, Nickname, Games Played, Lifetime Value, Total Paid, Total Discounted, Current Pending
    Returns number of rows written.
    """
    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(PLAYER_STATS_COLUMNS)
        for p in state.players:
            s = get_player_stats(state, p.id)
            writer.writerow([
                p.name,
                p.nickname or '',
                s.games,
                s.total_spent,
                s.total_paid,
                s.total_discounted,
                s.pending,
            ])
    log.info("Wrote stats for %d players to %s", len(state.players), filepath)
    return len(state.players)


def _name(state: ClubState, player_id: Optional[str]) -> str:
    if not player_id:
        return ''
    p = find_player(state, player_id)
    return p.name if p else player_id


def export_matches_to_csv(state: ClubState, filepath: str) -> int:
    """
    Export the match log
    CSV columns: id, date, player_a, player_b, points, payer_option, winner, total_value, charges, table, recorded_by
    """
    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(['id', 'date', 'player_a', 'player_b', 'points', 'payer_option', 'winner',
                         'total_value', 'charges', 'table', 'recorded_by'])
        for m in state.matches:
            # charges dict as "name:amount;name:amount"
            charges_str = ';'.join(f"{_name(state, k)}:{v}" for k, v in m.charges.items())
            writer.writerow([
                m.id,
                m.date,
                _name(state, m.player_a_id),
                _name(state, m.player_b_id),
                m.points,
                m.payer_option,
                _name(state, m.winner_id),
                m.total_value,
                charges_str,
                m.table or '',
                f"{m.recorded_by.name} ({m.recorded_by.role})",
            ])
    return len(state.matches)


def export_payments_to_csv(state: ClubState, filepath: str) -> int:
    """
    Export payments
    CSV columns: id, date, payer, mode, total_amount, allocations, notes
    """
    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(['id', 'date', 'payer', 'mode', 'total_amount', 'allocations', 'notes'])
        for p in state.payments:
            alloc_str = ';'.join(
                f"{_name(state, a.player_id)}:{a.amount}" + (f"-{a.discount}" if a.discount else '')
                for a in p.allocations
            )
            writer.writerow([
                p.id,
                p.date,
                _name(state, p.primary_payer_id),
                p.mode,
                p.total_amount,
                alloc_str,
                p.notes or '',
            ])
    return len(state.payments)
