"""
Configuration and data loading/saving for ClubLedger
"""
from __future__ import annotations
import json
import logging
import os
from dataclasses import asdict
from typing import Optional

from errors import LedgerFileError
from models import (
    ROLE_ADMIN,
    ClubState,
    Expense,
    Match,
    OngoingMatch,
    Payment,
    PaymentAllocation,
    Player,
    UserSnapshot,
)
from utils import app_dir

log = logging.getLogger(__name__)

STATE_FILENAME = "club.json"


def default_state_path() -> str:
    return os.path.join(app_dir(), STATE_FILENAME)


def get_default_state() -> ClubState:
    """Empty club with the default operator"""
    return ClubState(current_user=UserSnapshot(ROLE_ADMIN, "Partner 1"))


def state_to_dict(state: ClubState) -> dict:
    """Convert ClubState object to dictionary for JSON serialization"""
    return {
        "version": state.version,
        "players": [asdict(p) for p in state.players],
        "matches": [asdict(m) for m in state.matches],
        "payments": [asdict(p) for p in state.payments],
        "expenses": [asdict(e) for e in state.expenses],
        "ongoing_match": asdict(state.ongoing_match) if state.ongoing_match else None,
        "current_user": asdict(state.current_user),
    }


def _player_from_dict(d: dict) -> Player:
    d = dict(d)
    # older snapshots predate opening balances
    if d.get("initial_balance") is None:
        d["initial_balance"] = 0
    return Player(**d)


def _match_from_dict(d: dict) -> Match:
    d = dict(d)
    d["recorded_by"] = UserSnapshot(**d["recorded_by"])
    d["charges"] = dict(d.get("charges") or {})
    return Match(**d)


def _payment_from_dict(d: dict) -> Payment:
    d = dict(d)
    d["allocations"] = [PaymentAllocation(**a) for a in d.get("allocations", [])]
    return Payment(**d)


def dict_to_state(d: dict) -> ClubState:
    """Convert dictionary from JSON to ClubState object, filling defaults for older files"""
    ongoing = d.get("ongoing_match")
    user = d.get("current_user")
    return ClubState(
        version=d.get("version", 1),
        players=[_player_from_dict(p) for p in d.get("players", [])],
        matches=[_match_from_dict(m) for m in d.get("matches", [])],
        payments=[_payment_from_dict(p) for p in d.get("payments", [])],
        expenses=[Expense(**e) for e in d.get("expenses", [])],
        ongoing_match=OngoingMatch(**ongoing) if ongoing else None,
        current_user=UserSnapshot(**user) if user else UserSnapshot(ROLE_ADMIN, "Partner 1"),
    )


def serialize_state(state: ClubState) -> str:
    """Snapshot the whole state into one JSON blob"""
    return json.dumps(state_to_dict(state), ensure_ascii=False, indent=2)


def restore_state(blob: str, source: str = "snapshot") -> ClubState:
    """Rebuild state from a JSON blob; malformed content raises LedgerFileError"""
    try:
        return dict_to_state(json.loads(blob))
    except (AttributeError, KeyError, TypeError, ValueError) as ex:
        raise LedgerFileError(f"Cannot read ledger {source}: {ex}") from ex


def load_state(path: Optional[str] = None) -> ClubState:
    """Load state from JSON file; a missing file gives an empty club"""
    path = path or default_state_path()
    try:
        with open(path, "r", encoding="utf-8") as f:
            blob = f.read()
    except FileNotFoundError:
        log.info("No ledger at %s, starting empty", path)
        return get_default_state()
    return restore_state(blob, path)


def save_state(state: ClubState, path: Optional[str] = None) -> None:
    """Write state to JSON file atomically (temp file + replace)"""
    path = path or default_state_path()
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(serialize_state(state))
    os.replace(tmp, path)
    log.debug("Saved ledger to %s", path)
