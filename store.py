"""
Record store for ClubLedger.

ClubStore is the single owner of a ClubState. Every change goes through one
of its methods, which validate first and only then touch the collections, so
a rejected call leaves the state exactly as it was. After each change the
optional on_change callback runs (the application uses it to save the
ledger); a failing callback is logged, never raised, and the in-memory state
stays authoritative.
"""
from __future__ import annotations
import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Union

import computations
from config import get_default_state, restore_state, serialize_state
from errors import NotFoundError, ValidationError
from models import (
    DEFAULT_TABLE,
    EXPENSE_CATEGORIES,
    MATCH_VALUES,
    PAYER_OPTIONS,
    PAYMENT_MODES,
    USER_ROLES,
    ClubState,
    Expense,
    Match,
    OngoingMatch,
    Payment,
    PaymentAllocation,
    Player,
    PlayerStats,
    UserSnapshot,
)
from utils import (
    check_amount,
    check_choice,
    check_date,
    check_signed_amount,
    new_id,
    now_ms,
    today_str,
)

log = logging.getLogger(__name__)

PLAYER_FIELDS = {"name", "nickname", "phone", "initial_balance"}
MATCH_FIELDS = {"points", "player_a_id", "player_b_id", "winner_id", "payer_option", "table", "date"}
PAYMENT_FIELDS = {"primary_payer_id", "allocations", "mode", "date", "notes"}

AllocationInput = Union[PaymentAllocation, dict]


def _clean_optional(value: Optional[str]) -> Optional[str]:
    """Blank strings are stored as absent"""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _check_fields(kind: str, fields: dict, allowed: set) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValidationError(f"Cannot update {kind} field(s): {', '.join(sorted(unknown))}")


class ClubStore:
    """Owns the club's records and is the only place they are mutated"""

    def __init__(self, state: Optional[ClubState] = None, on_change: Optional[Callable] = None):
        self.state = state if state is not None else get_default_state()
        self.on_change = on_change
        self._last_recorded_at = max((m.recorded_at for m in self.state.matches), default=0)

    # ---------- Accessors ----------
    @property
    def players(self) -> List[Player]:
        return list(self.state.players)

    @property
    def matches(self) -> List[Match]:
        return list(self.state.matches)

    @property
    def payments(self) -> List[Payment]:
        return list(self.state.payments)

    @property
    def expenses(self) -> List[Expense]:
        return list(self.state.expenses)

    @property
    def ongoing_match(self) -> Optional[OngoingMatch]:
        return self.state.ongoing_match

    @property
    def current_user(self) -> UserSnapshot:
        return self.state.current_user

    def get_player(self, player_id: str) -> Player:
        p = computations.find_player(self.state, player_id)
        if p is None:
            raise NotFoundError("Player", player_id)
        return p

    def get_match(self, match_id: str) -> Match:
        for m in self.state.matches:
            if m.id == match_id:
                return m
        raise NotFoundError("Match", match_id)

    def get_payment(self, payment_id: str) -> Payment:
        for p in self.state.payments:
            if p.id == payment_id:
                return p
        raise NotFoundError("Payment", payment_id)

    # ---------- Players ----------
    def add_player(
        self,
        name: str,
        nickname: Optional[str] = None,
        phone: Optional[str] = None,
        initial_balance: float = 0,
    ) -> Player:
        player = Player(
            id=new_id(),
            name=self._check_name(name),
            nickname=_clean_optional(nickname),
            phone=_clean_optional(phone),
            initial_balance=check_signed_amount(initial_balance, "initial_balance"),
            created_at=now_ms(),
        )
        self.state.players.insert(0, player)
        log.info("Registered player %s (%s)", player.name, player.id)
        self._changed()
        return player

    def update_player(self, player_id: str, **fields) -> Player:
        _check_fields("player", fields, PLAYER_FIELDS)
        current = self.get_player(player_id)
        if "name" in fields:
            fields["name"] = self._check_name(fields["name"])
        for key in ("nickname", "phone"):
            if key in fields:
                fields[key] = _clean_optional(fields[key])
        if "initial_balance" in fields:
            check_signed_amount(fields["initial_balance"], "initial_balance")

        updated = replace(current, **fields)
        self._swap(self.state.players, current, updated)
        log.info("Updated player %s: %s", player_id, ", ".join(sorted(fields)))
        self._changed()
        return updated

    @staticmethod
    def _check_name(name) -> str:
        name = _clean_optional(name)
        if not name:
            raise ValidationError("Player name is required")
        return name

    # ---------- Matches ----------
    def add_match(
        self,
        player_a_id: str,
        player_b_id: str,
        points: int,
        payer_option: str,
        winner_id: Optional[str] = None,
        table: Optional[str] = None,
        date: Optional[str] = None,
        recorded_at: Optional[int] = None,
    ) -> Match:
        """
        Log a finished (or result-pending) match and bill it.
        Logging the pair currently on the live table finalizes that live match.
        """
        winner_id = winner_id or None
        self._check_match_fields(player_a_id, player_b_id, points, payer_option, winner_id)
        date = check_date(date, "date") if date else today_str()
        if recorded_at is None:
            recorded_at = self._next_recorded_at()
        elif isinstance(recorded_at, bool) or not isinstance(recorded_at, int):
            raise ValidationError(f"recorded_at must be epoch milliseconds, got {recorded_at!r}")
        else:
            self._last_recorded_at = max(self._last_recorded_at, recorded_at)

        total, charges = computations.compute_charges(points, payer_option, player_a_id, player_b_id, winner_id)
        match = Match(
            id=new_id(),
            date=date,
            recorded_at=recorded_at,
            recorded_by=replace(self.state.current_user),
            points=points,
            player_a_id=player_a_id,
            player_b_id=player_b_id,
            payer_option=payer_option,
            total_value=total,
            charges=charges,
            winner_id=winner_id,
            table=_clean_optional(table),
        )
        self.state.matches.insert(0, match)
        log.info("Logged match %s: %s vs %s, charges %s", match.id, player_a_id, player_b_id, charges)

        live = self.state.ongoing_match
        if live and live.player_a_id == player_a_id and live.player_b_id == player_b_id:
            self.state.ongoing_match = None
            log.info("Live match %s finalized as %s", live.id, match.id)

        self._changed()
        return match

    def update_match(self, match_id: str, **fields) -> Match:
        """Partial update; charges and total value are re-derived from the merged record"""
        _check_fields("match", fields, MATCH_FIELDS)
        current = self.get_match(match_id)
        if "winner_id" in fields:
            fields["winner_id"] = fields["winner_id"] or None
        if "table" in fields:
            fields["table"] = _clean_optional(fields["table"])
        if "date" in fields:
            fields["date"] = check_date(fields["date"], "date")

        merged = replace(current, **fields)
        self._check_match_fields(
            merged.player_a_id, merged.player_b_id, merged.points, merged.payer_option, merged.winner_id
        )
        merged.total_value, merged.charges = computations.compute_charges(
            merged.points, merged.payer_option, merged.player_a_id, merged.player_b_id, merged.winner_id
        )
        self._swap(self.state.matches, current, merged)
        log.info("Updated match %s, charges now %s", match_id, merged.charges)
        self._changed()
        return merged

    def _check_match_fields(self, player_a_id, player_b_id, points, payer_option, winner_id) -> None:
        self.get_player(player_a_id)
        self.get_player(player_b_id)
        if player_a_id == player_b_id:
            raise ValidationError("A match needs two different players")
        if isinstance(points, bool) or points not in MATCH_VALUES:
            raise ValidationError(f"points must be one of {sorted(MATCH_VALUES)}, got {points!r}")
        check_choice(payer_option, PAYER_OPTIONS, "payer_option")
        if winner_id is not None and winner_id not in (player_a_id, player_b_id):
            self.get_player(winner_id)
            raise ValidationError(f"Winner {winner_id} did not play in this match")

    def _next_recorded_at(self) -> int:
        """Strictly increasing, so matches logged in the same millisecond keep their order"""
        ts = max(now_ms(), self._last_recorded_at + 1)
        self._last_recorded_at = ts
        return ts

    # ---------- Live match ----------
    def start_ongoing_match(
        self,
        player_a_id: str,
        player_b_id: str,
        points: int,
        table: str = DEFAULT_TABLE,
        start_time: Optional[int] = None,
    ) -> OngoingMatch:
        """Put a match on the live table. An active live match is replaced without confirmation."""
        self.get_player(player_a_id)
        self.get_player(player_b_id)
        if player_a_id == player_b_id:
            raise ValidationError("A match needs two different players")
        if isinstance(points, bool) or points not in MATCH_VALUES:
            raise ValidationError(f"points must be one of {sorted(MATCH_VALUES)}, got {points!r}")

        previous = self.state.ongoing_match
        if previous is not None:
            log.warning("Replacing live match %s (%s vs %s)", previous.id, previous.player_a_id, previous.player_b_id)

        live = OngoingMatch(
            id=new_id(),
            player_a_id=player_a_id,
            player_b_id=player_b_id,
            points=points,
            table=_clean_optional(table) or DEFAULT_TABLE,
            start_time=start_time if start_time is not None else now_ms(),
        )
        self.state.ongoing_match = live
        log.info("Live match %s started on %s", live.id, live.table)
        self._changed()
        return live

    def clear_ongoing_match(self) -> None:
        if self.state.ongoing_match is None:
            return
        log.info("Live match %s cleared", self.state.ongoing_match.id)
        self.state.ongoing_match = None
        self._changed()

    def finish_ongoing_match(
        self,
        payer_option: str,
        winner_id: Optional[str] = None,
        date: Optional[str] = None,
    ) -> Match:
        """Promote the live match into a billed Match record"""
        live = self.state.ongoing_match
        if live is None:
            raise ValidationError("No live match in progress")
        return self.add_match(
            live.player_a_id,
            live.player_b_id,
            live.points,
            payer_option,
            winner_id=winner_id,
            table=live.table,
            date=date,
        )

    # ---------- Payments ----------
    def add_payment(
        self,
        primary_payer_id: str,
        allocations: Iterable[AllocationInput],
        mode: str,
        date: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Payment:
        self.get_player(primary_payer_id)
        check_choice(mode, PAYMENT_MODES, "mode")
        allocs = self._build_allocations(allocations)
        payment = Payment(
            id=new_id(),
            primary_payer_id=primary_payer_id,
            total_amount=sum(a.amount for a in allocs),
            allocations=allocs,
            mode=mode,
            date=check_date(date, "date") if date else today_str(),
            notes=_clean_optional(notes),
        )
        self.state.payments.insert(0, payment)
        log.info("Recorded %s payment %s of %s from %s", mode, payment.id, payment.total_amount, primary_payer_id)
        self._changed()
        return payment

    def update_payment(self, payment_id: str, **fields) -> Payment:
        """Partial update; total_amount is always re-derived from the allocations"""
        _check_fields("payment", fields, PAYMENT_FIELDS)
        current = self.get_payment(payment_id)
        if "primary_payer_id" in fields:
            self.get_player(fields["primary_payer_id"])
        if "mode" in fields:
            check_choice(fields["mode"], PAYMENT_MODES, "mode")
        if "date" in fields:
            fields["date"] = check_date(fields["date"], "date")
        if "notes" in fields:
            fields["notes"] = _clean_optional(fields["notes"])
        if "allocations" in fields:
            fields["allocations"] = self._build_allocations(fields["allocations"])

        updated = replace(current, **fields)
        updated.total_amount = sum(a.amount for a in updated.allocations)
        self._swap(self.state.payments, current, updated)
        log.info("Updated payment %s, total now %s", payment_id, updated.total_amount)
        self._changed()
        return updated

    def _build_allocations(self, allocations: Iterable[AllocationInput]) -> List[PaymentAllocation]:
        """Validate allocations and drop the ones carrying neither amount nor discount"""
        out = []
        seen = set()
        for raw in allocations:
            try:
                a = PaymentAllocation(**raw) if isinstance(raw, dict) else replace(raw)
            except TypeError as ex:
                raise ValidationError(f"Bad allocation {raw!r}: {ex}") from None
            self.get_player(a.player_id)
            check_amount(a.amount, "allocation amount")
            if a.discount is not None:
                check_amount(a.discount, "allocation discount")
            if a.amount <= 0 and not a.discount:
                continue
            if a.player_id in seen:
                raise ValidationError(f"Player {a.player_id} appears twice in one payment")
            seen.add(a.player_id)
            a.discount = a.discount or None
            out.append(a)
        if not out:
            raise ValidationError("A payment needs at least one allocation with an amount or discount")
        return out

    # ---------- Expenses ----------
    def add_expense(
        self,
        category: str,
        amount: float,
        mode: str,
        date: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Expense:
        check_choice(category, EXPENSE_CATEGORIES, "category")
        check_amount(amount, "amount")
        check_choice(mode, PAYMENT_MODES, "mode")
        expense = Expense(
            id=new_id(),
            date=check_date(date, "date") if date else today_str(),
            category=category,
            amount=amount,
            mode=mode,
            notes=_clean_optional(notes),
        )
        self.state.expenses.insert(0, expense)
        log.info("Recorded %s expense %s of %s", category, expense.id, amount)
        self._changed()
        return expense

    # ---------- Operator ----------
    def switch_role(self, role: str, name: Optional[str] = None) -> UserSnapshot:
        """Change the cosmetic role label stamped on new matches"""
        check_choice(role, USER_ROLES, "role")
        name = _clean_optional(name) or self.state.current_user.name
        self.state.current_user = UserSnapshot(role, name)
        self._changed()
        return self.state.current_user

    # ---------- Queries ----------
    def get_player_stats(self, player_id: str) -> PlayerStats:
        self.get_player(player_id)
        return computations.get_player_stats(self.state, player_id)

    def get_player_dues(self, player_id: str) -> float:
        return self.get_player_stats(player_id).pending

    def is_match_settled(self, match: Union[Match, str], player_id: str) -> bool:
        if isinstance(match, str):
            match = self.get_match(match)
        self.get_player(player_id)
        return computations.is_match_settled(self.state, match, player_id)

    # ---------- Persistence ----------
    def serialize(self) -> str:
        return serialize_state(self.state)

    @classmethod
    def restore(cls, blob: str, on_change: Optional[Callable] = None) -> "ClubStore":
        return cls(restore_state(blob), on_change=on_change)

    def _changed(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self)
        except Exception as ex:
            log.warning("Could not persist ledger, keeping in-memory state: %s", ex)

    @staticmethod
    def _swap(records: list, old, new) -> None:
        for i, r in enumerate(records):
            if r is old:
                records[i] = new
                return
