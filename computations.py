"""
Business logic and computations for ClubLedger: billing, balances, settlement
"""
from __future__ import annotations
import logging
from typing import Dict, List, Optional, Tuple

from models import (
    MATCH_VALUES,
    PAYER_BOTH,
    PAYER_LOSER,
    PAYER_PLAYER_A,
    PAYER_PLAYER_B,
    ClubState,
    Match,
    Payment,
    Player,
    PlayerStats,
)

log = logging.getLogger(__name__)


def match_total_value(points: int) -> float:
    """Total value billed for a match of the given format"""
    return MATCH_VALUES[points]


def compute_charges(
    points: int,
    payer_option: str,
    player_a_id: str,
    player_b_id: str,
    winner_id: Optional[str] = None,
) -> Tuple[float, Dict[str, float]]:
    """
    Apply the billing rule to a match.
    Returns (total_value, charges) where charges only holds nonzero amounts.
    LOSER without a winner is deferred billing: charges is empty.
    """
    total = match_total_value(points)
    a = b = 0
    if payer_option == PAYER_BOTH:
        a = b = total / 2
    elif payer_option == PAYER_LOSER:
        if winner_id:
            if winner_id == player_a_id:
                b = total
            else:
                a = total
    elif payer_option == PAYER_PLAYER_A:
        a = total
    elif payer_option == PAYER_PLAYER_B:
        b = total

    charges = {}
    if a > 0:
        charges[player_a_id] = _as_int_if_whole(a)
    if b > 0:
        charges[player_b_id] = _as_int_if_whole(b)
    return total, charges


def _as_int_if_whole(x: float):
    return int(x) if float(x).is_integer() else x


def find_player(state: ClubState, player_id: str) -> Optional[Player]:
    for p in state.players:
        if p.id == player_id:
            return p
    return None


def player_matches(state: ClubState, player_id: str) -> List[Match]:
    """Matches the player took part in, charged or not"""
    return [m for m in state.matches if player_id in (m.player_a_id, m.player_b_id)]


def player_payments(state: ClubState, player_id: str) -> List[Payment]:
    """Payments with an allocation for the player"""
    return [p for p in state.payments if any(a.player_id == player_id for a in p.allocations)]


def get_player_stats(state: ClubState, player_id: str) -> PlayerStats:
    """
    Derive a player's financial position from the full record set.
    pending = total_spent - total_paid - total_discounted - initial_balance
    """
    player = find_player(state, player_id)
    if player is None:
        log.debug("Stats requested for unknown player %s", player_id)

    games = len(player_matches(state, player_id))
    total_spent = sum(m.charges.get(player_id, 0) for m in state.matches)

    total_paid = 0
    total_discounted = 0
    for p in state.payments:
        for a in p.allocations:
            if a.player_id == player_id:
                total_paid += a.amount or 0
                total_discounted += a.discount or 0
                break

    initial_balance = player.initial_balance if player else 0
    return PlayerStats(
        games=games,
        total_spent=total_spent,
        total_paid=total_paid,
        total_discounted=total_discounted,
        initial_balance=initial_balance,
        pending=total_spent - total_paid - total_discounted - initial_balance,
    )


def get_player_dues(state: ClubState, player_id: str) -> float:
    return get_player_stats(state, player_id).pending


def suggest_allocation(state: ClubState, player_id: str) -> Dict[str, float]:
    """Default allocation for a payer: whatever they currently owe, never negative"""
    dues = get_player_dues(state, player_id)
    return {"player_id": player_id, "amount": dues if dues > 0 else 0, "discount": 0}


# ---------- Settlement ----------

def is_pending_result(match: Match) -> bool:
    """LOSER billing with no winner yet: charge cannot be resolved"""
    return match.payer_option == PAYER_LOSER and not match.winner_id


def charge_history(state: ClubState, player_id: str) -> List[Match]:
    """Matches that billed the player, oldest recorded first"""
    charged = [m for m in state.matches if player_id in m.charges]
    return sorted(charged, key=lambda m: m.recorded_at)


def is_match_settled(state: ClubState, match: Match, player_id: str) -> bool:
    """
    FIFO settlement: the player's all-time resources (paid + discounted +
    initial balance) clear their charges oldest first. The match is settled
    when resources cover every charge up to and including this one.

    Resources are matched by amount and order only, not by date or by
    explicit payment/match linkage.
    """
    # callers may hold a copy from before an update
    match = next((m for m in state.matches if m.id == match.id), match)
    if not match.charges.get(player_id):
        return True

    cumulative = 0
    for m in charge_history(state, player_id):
        cumulative += m.charges.get(player_id, 0)
        if m.id == match.id:
            break

    stats = get_player_stats(state, player_id)
    resources = stats.total_paid + stats.initial_balance + stats.total_discounted
    return resources >= cumulative


def unpaid_players(state: ClubState, match: Match) -> List[str]:
    """Charged participants whose share of this match is not yet cleared"""
    out = []
    for pid in (match.player_a_id, match.player_b_id):
        if not match.charges.get(pid):
            continue
        if not is_match_settled(state, match, pid):
            out.append(pid)
    return out


def match_needs_attention(state: ClubState, match: Match) -> bool:
    return is_pending_result(match) or bool(unpaid_players(state, match))


# ---------- History views ----------

STATUS_ALL = "ALL"
STATUS_PENDING_RESULT = "PENDING_RESULT"
STATUS_PENDING_PAYMENT = "PENDING_PAYMENT"
HISTORY_STATUSES = (STATUS_ALL, STATUS_PENDING_RESULT, STATUS_PENDING_PAYMENT)


def _player_matches_term(player: Optional[Player], term: str) -> bool:
    if player is None:
        return False
    if term in player.name.lower():
        return True
    return bool(player.nickname) and term in player.nickname.lower()


def search_players(state: ClubState, query: str) -> List[Player]:
    """Case-insensitive substring search over name and nickname"""
    term = query.strip().lower()
    if not term:
        return list(state.players)
    return [p for p in state.players if _player_matches_term(p, term)]


def filter_match_history(
    state: ClubState,
    date: Optional[str] = None,
    search: str = "",
    status: str = STATUS_ALL,
) -> List[Match]:
    """
    Filter the match log for the history view.
    search is a comma separated list of terms; every term has to match
    player A or player B (name or nickname).
    """
    terms = [t.strip().lower() for t in search.split(",") if t.strip()]
    out = []
    for m in state.matches:
        if date and m.date != date:
            continue
        if terms:
            pa = find_player(state, m.player_a_id)
            pb = find_player(state, m.player_b_id)
            if not all(_player_matches_term(pa, t) or _player_matches_term(pb, t) for t in terms):
                continue
        if status == STATUS_PENDING_RESULT and not is_pending_result(m):
            continue
        if status == STATUS_PENDING_PAYMENT and not match_needs_attention(state, m):
            continue
        out.append(m)
    return out


def payer_label(state: ClubState, match: Match) -> str:
    """Who pays for this match, for display"""
    def name(pid, fallback):
        p = find_player(state, pid)
        return p.name if p else fallback

    if match.payer_option == PAYER_BOTH:
        return "Both Pay (Split)"
    if match.payer_option == PAYER_PLAYER_A:
        return f"{name(match.player_a_id, 'A')} Pays"
    if match.payer_option == PAYER_PLAYER_B:
        return f"{name(match.player_b_id, 'B')} Pays"
    if match.payer_option == PAYER_LOSER:
        if not match.winner_id:
            return "Loser Pays (Pending Result)"
        loser = match.player_b_id if match.winner_id == match.player_a_id else match.player_a_id
        return f"{name(loser, 'Loser')} Pays (Loser)"
    return match.payer_option.replace("_", " ")


def format_elapsed(seconds: int) -> str:
    """Live match timer text"""
    seconds = max(0, int(seconds))
    hrs = seconds // 3600
    mins = (seconds % 3600) // 60
    secs = seconds % 60
    if hrs > 0:
        return f"{hrs}h {mins}m"
    return f"{mins}m {secs}s"


def player_history(state: ClubState, player_id: str, limit: int = 10) -> Tuple[List[Match], List[Payment]]:
    """Most recent matches and payments touching a player"""
    return player_matches(state, player_id)[:limit], player_payments(state, player_id)[:limit]
