"""
Data models for ClubLedger
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Match format -> total match value billed across both players
MATCH_VALUES = {
    10: 20,
    20: 30,
}

PAYER_BOTH = "BOTH"
PAYER_LOSER = "LOSER"
PAYER_PLAYER_A = "PLAYER_A"
PAYER_PLAYER_B = "PLAYER_B"
PAYER_OPTIONS = (PAYER_BOTH, PAYER_LOSER, PAYER_PLAYER_A, PAYER_PLAYER_B)

MODE_CASH = "CASH"
MODE_ONLINE = "ONLINE"
PAYMENT_MODES = (MODE_CASH, MODE_ONLINE)

EXPENSE_CATEGORIES = ("RENT", "BALLS", "MAINTENANCE", "LIGHTS", "OTHER")

ROLE_ADMIN = "ADMIN"
ROLE_STAFF = "STAFF"
USER_ROLES = (ROLE_ADMIN, ROLE_STAFF)

DEFAULT_TABLE = "Table 1"


@dataclass
class Player:
    """Registered club player"""
    id: str
    name: str
    nickname: Optional[str] = None
    phone: Optional[str] = None
    initial_balance: float = 0  # positive = credit, negative = carried-over debt
    created_at: int = 0  # epoch ms


@dataclass
class UserSnapshot:
    """Role + name of whoever is operating the ledger"""
    role: str
    name: str


@dataclass
class Match:
    """Single game and what it bills to each player"""
    id: str
    date: str  # YYYY-MM-DD
    recorded_at: int  # epoch ms, FIFO order for settlement
    recorded_by: UserSnapshot
    points: int  # 10 or 20
    player_a_id: str
    player_b_id: str
    payer_option: str
    total_value: float
    charges: Dict[str, float]  # player id -> amount, nonzero entries only
    winner_id: Optional[str] = None
    table: Optional[str] = None


@dataclass
class OngoingMatch:
    """Game currently being played and timed live"""
    id: str
    player_a_id: str
    player_b_id: str
    points: int
    table: str
    start_time: int  # epoch ms


@dataclass
class PaymentAllocation:
    """One player's share of a payment"""
    player_id: str
    amount: float = 0
    discount: Optional[float] = None  # waived, not received


@dataclass
class Payment:
    """Money handed over, possibly covering several players"""
    id: str
    primary_payer_id: str
    total_amount: float  # sum of allocation amounts, discounts excluded
    allocations: List[PaymentAllocation]
    mode: str  # CASH/ONLINE
    date: str
    notes: Optional[str] = None


@dataclass
class Expense:
    """Club running cost"""
    id: str
    date: str
    category: str
    amount: float
    mode: str
    notes: Optional[str] = None


@dataclass
class ClubState:
    """Complete club ledger"""
    players: List[Player] = field(default_factory=list)
    matches: List[Match] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    ongoing_match: Optional[OngoingMatch] = None
    current_user: UserSnapshot = field(default_factory=lambda: UserSnapshot(ROLE_ADMIN, "Partner 1"))
    version: int = 1


@dataclass(frozen=True)
class PlayerStats:
    """Derived financial position of one player"""
    games: int
    total_spent: float
    total_paid: float
    total_discounted: float
    initial_balance: float
    pending: float  # positive -> owes the club; zero/negative -> paid up or in credit


@dataclass(frozen=True)
class PeriodSummary:
    """Rollups for a reporting period"""
    gross_revenue: float
    discount_total: float
    net_revenue: float
    collected_cash: float
    collected_online: float
    collected_total: float
    expense_total: float
    net_cash_flow: float
    match_count: int
