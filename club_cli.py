"""
ClubLedger command line

Run:
  club-ledger add-player "Amaan Tak" --balance -40
  club-ledger start-live Amaan Hamza --points 20
  club-ledger finish-live --payer LOSER --winner Hamza
  club-ledger pay Amaan --alloc Amaan:30 --mode CASH
  club-ledger report --period month

The ledger lives in a JSON file (--data, default ~/.club_ledger/club.json)
and is saved after every change.
"""
from __future__ import annotations
import argparse
import logging
import sys
from typing import List, Optional

from computations import (
    HISTORY_STATUSES,
    STATUS_ALL,
    filter_match_history,
    find_player,
    format_elapsed,
    is_pending_result,
    payer_label,
    player_history,
    search_players,
    suggest_allocation,
    unpaid_players,
)
from config import default_state_path, load_state, save_state
from csv_handler import default_report_filename, export_player_stats_to_csv
from errors import ClubError, ValidationError
from excel_export import export_excel
from models import (
    DEFAULT_TABLE,
    EXPENSE_CATEGORIES,
    MATCH_VALUES,
    PAYER_OPTIONS,
    PAYMENT_MODES,
    USER_ROLES,
    Player,
)
from reports import PERIOD_ALL, PERIODS, compute_period_summary, outstanding_dues, total_dues
from store import ClubStore
from utils import now_ms


def _amount(text: str):
    """argparse type for money values; whole numbers stay ints"""
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}") from None
    return int(value) if value.is_integer() else value


def _allocation(text: str) -> dict:
    """PLAYER:AMOUNT[:DISCOUNT]"""
    parts = text.rsplit(":", 2)
    if len(parts) < 2 or not parts[0]:
        raise argparse.ArgumentTypeError(f"expected PLAYER:AMOUNT[:DISCOUNT], got {text!r}")
    try:
        amount = _amount(parts[1])
        discount = _amount(parts[2]) if len(parts) == 3 else None
    except argparse.ArgumentTypeError:
        raise argparse.ArgumentTypeError(f"expected PLAYER:AMOUNT[:DISCOUNT], got {text!r}") from None
    return {"player": parts[0], "amount": amount, "discount": discount}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        description='Table tennis club ledger: players, matches, payments, expenses and dues.',
        prog='club-ledger',
    )
    parser.add_argument('--data', help='Ledger JSON file (default: ~/.club_ledger/club.json)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('add-player', help='Register a player')
    p.add_argument('name')
    p.add_argument('--nickname')
    p.add_argument('--phone')
    p.add_argument('--balance', type=_amount, default=0,
                   help='Opening balance: positive = credit, negative = carried-over dues')

    p = sub.add_parser('update-player', help='Change a player\'s details')
    p.add_argument('player')
    p.add_argument('--name')
    p.add_argument('--nickname')
    p.add_argument('--phone')
    p.add_argument('--balance', type=_amount)

    p = sub.add_parser('players', help='List players with their dues')
    p.add_argument('--search', default='')

    p = sub.add_parser('start-live', help='Put a match on the live table')
    p.add_argument('player_a')
    p.add_argument('player_b')
    p.add_argument('--points', type=int, choices=sorted(MATCH_VALUES), default=20)
    p.add_argument('--table', default=DEFAULT_TABLE)

    p = sub.add_parser('finish-live', help='Record the result of the live match')
    p.add_argument('--payer', choices=PAYER_OPTIONS, default='LOSER')
    p.add_argument('--winner')

    sub.add_parser('clear-live', help='Drop the live match without billing it')

    p = sub.add_parser('log-match', help='Record a match directly')
    p.add_argument('player_a')
    p.add_argument('player_b')
    p.add_argument('--points', type=int, choices=sorted(MATCH_VALUES), default=20)
    p.add_argument('--payer', choices=PAYER_OPTIONS, default='LOSER')
    p.add_argument('--winner')
    p.add_argument('--table')
    p.add_argument('--date')

    p = sub.add_parser('set-winner', help='Fill in the winner of a logged match')
    p.add_argument('match_id')
    p.add_argument('winner')

    p = sub.add_parser('history', help='Match log')
    p.add_argument('--date')
    p.add_argument('--search', default='', help='Comma separated player names')
    p.add_argument('--status', choices=HISTORY_STATUSES, default=STATUS_ALL)

    p = sub.add_parser('pay', help='Record a payment')
    p.add_argument('payer')
    p.add_argument('--alloc', type=_allocation, action='append', default=[],
                   help='PLAYER:AMOUNT[:DISCOUNT], repeatable (default: payer clears own dues)')
    p.add_argument('--mode', choices=PAYMENT_MODES, default='CASH')
    p.add_argument('--date')
    p.add_argument('--notes')

    p = sub.add_parser('expense', help='Record a club expense')
    p.add_argument('category', choices=EXPENSE_CATEGORIES)
    p.add_argument('amount', type=_amount)
    p.add_argument('--mode', choices=PAYMENT_MODES, default='CASH')
    p.add_argument('--date')
    p.add_argument('--notes')

    p = sub.add_parser('stats', help='One player\'s balance and recent activity')
    p.add_argument('player')

    sub.add_parser('dues', help='Players who owe money')

    for name, help_text in (('report', 'Period summary'), ('export-excel', 'Excel audit workbook')):
        p = sub.add_parser(name, help=help_text)
        if name == 'export-excel':
            p.add_argument('output')
        p.add_argument('--period', choices=PERIODS, default='today')
        p.add_argument('--start')
        p.add_argument('--end')

    p = sub.add_parser('export-csv', help='Per-player stats as CSV')
    p.add_argument('--output')

    p = sub.add_parser('role', help='Switch operator role')
    p.add_argument('role', choices=USER_ROLES)
    p.add_argument('--name')
    return parser


def resolve_player(store: ClubStore, ref: str) -> Player:
    """Find a player by id, or by a name/nickname fragment that matches exactly one player"""
    player = find_player(store.state, ref)
    if player:
        return player
    exact = [p for p in store.players if ref.lower() in (p.name.lower(), (p.nickname or '').lower())]
    found = exact or search_players(store.state, ref)
    if len(found) == 1:
        return found[0]
    if not found:
        return store.get_player(ref)  # raises NotFoundError
    names = ', '.join(p.name for p in found)
    raise ValidationError(f"'{ref}' matches several players: {names}")


def _label(p: Player) -> str:
    return f"{p.name} ({p.nickname})" if p.nickname else p.name


def _print_match(store: ClubStore, m) -> None:
    state = store.state
    a = find_player(state, m.player_a_id)
    b = find_player(state, m.player_b_id)
    if is_pending_result(m):
        status = 'RESULT PENDING'
    else:
        unpaid = unpaid_players(state, m)
        status = 'unpaid: ' + ', '.join(find_player(state, pid).name for pid in unpaid) if unpaid else 'cleared'
    print(f"{m.date}  {m.id[:8]}  {a.name if a else '?'} vs {b.name if b else '?'}  "
          f"{m.points}p  {m.total_value}  {payer_label(state, m)}  [{status}]")


def run(args: argparse.Namespace, store: ClubStore) -> None:
    """Dispatch one sub-command against the store."""
    cmd = args.command

    if cmd == 'add-player':
        p = store.add_player(args.name, args.nickname, args.phone, args.balance)
        print(f"Registered {_label(p)}  id={p.id}")

    elif cmd == 'update-player':
        p = resolve_player(store, args.player)
        fields = {}
        if args.name is not None:
            fields['name'] = args.name
        if args.nickname is not None:
            fields['nickname'] = args.nickname
        if args.phone is not None:
            fields['phone'] = args.phone
        if args.balance is not None:
            fields['initial_balance'] = args.balance
        p = store.update_player(p.id, **fields)
        print(f"Updated {_label(p)}")

    elif cmd == 'players':
        for p in search_players(store.state, args.search):
            s = store.get_player_stats(p.id)
            print(f"{_label(p):30} games={s.games:<4} pending={s.pending}")

    elif cmd == 'start-live':
        a = resolve_player(store, args.player_a)
        b = resolve_player(store, args.player_b)
        live = store.start_ongoing_match(a.id, b.id, args.points, args.table)
        print(f"LIVE on {live.table}: {a.name} vs {b.name} ({live.points}p)")

    elif cmd == 'finish-live':
        live = store.ongoing_match
        if live is None:
            raise ValidationError("No live match in progress")
        winner = resolve_player(store, args.winner).id if args.winner else None
        elapsed = format_elapsed((now_ms() - live.start_time) // 1000)
        m = store.finish_ongoing_match(args.payer, winner)
        print(f"Match finished after {elapsed}")
        _print_match(store, m)

    elif cmd == 'clear-live':
        store.clear_ongoing_match()
        print("Live table cleared")

    elif cmd == 'log-match':
        a = resolve_player(store, args.player_a)
        b = resolve_player(store, args.player_b)
        winner = resolve_player(store, args.winner).id if args.winner else None
        m = store.add_match(a.id, b.id, args.points, args.payer, winner, args.table, args.date)
        _print_match(store, m)

    elif cmd == 'set-winner':
        matches = [m for m in store.matches if m.id.startswith(args.match_id)]
        if len(matches) != 1:
            match_id = args.match_id  # let the store report the unknown id
        else:
            match_id = matches[0].id
        winner = resolve_player(store, args.winner)
        m = store.update_match(match_id, winner_id=winner.id)
        _print_match(store, m)

    elif cmd == 'history':
        live = store.ongoing_match
        if live:
            a = find_player(store.state, live.player_a_id)
            b = find_player(store.state, live.player_b_id)
            elapsed = format_elapsed((now_ms() - live.start_time) // 1000)
            print(f"LIVE {live.table}: {a.name} vs {b.name} ({elapsed})")
        for m in filter_match_history(store.state, args.date, args.search, args.status):
            _print_match(store, m)

    elif cmd == 'pay':
        payer = resolve_player(store, args.payer)
        if args.alloc:
            allocations = [
                {"player_id": resolve_player(store, a["player"]).id, "amount": a["amount"], "discount": a["discount"]}
                for a in args.alloc
            ]
        else:
            allocations = [suggest_allocation(store.state, payer.id)]
        pay = store.add_payment(payer.id, allocations, args.mode, args.date, args.notes)
        print(f"Recorded {pay.mode} payment of {pay.total_amount} from {payer.name}")
        for a in pay.allocations:
            print(f"  {find_player(store.state, a.player_id).name}: now pending {store.get_player_dues(a.player_id)}")

    elif cmd == 'expense':
        e = store.add_expense(args.category, args.amount, args.mode, args.date, args.notes)
        print(f"Recorded {e.category} expense of {e.amount}")

    elif cmd == 'stats':
        p = resolve_player(store, args.player)
        s = store.get_player_stats(p.id)
        print(_label(p))
        print(f"  games:          {s.games}")
        print(f"  lifetime value: {s.total_spent}")
        print(f"  paid:           {s.total_paid}")
        print(f"  discounted:     {s.total_discounted}")
        print(f"  opening:        {s.initial_balance}")
        print(f"  pending:        {s.pending}")
        recent_matches, _ = player_history(store.state, p.id)
        for m in recent_matches:
            _print_match(store, m)

    elif cmd == 'dues':
        for p, pending in outstanding_dues(store.state):
            print(f"{_label(p):30} {pending}")
        print(f"TOTAL DUES: {total_dues(store.state)}")

    elif cmd == 'report':
        s = compute_period_summary(store.state, args.period, start=args.start, end=args.end)
        print(f"Period: {args.period}")
        print(f"  matches:         {s.match_count}")
        print(f"  gross revenue:   {s.gross_revenue}")
        print(f"  discounts:       {s.discount_total}")
        print(f"  net revenue:     {s.net_revenue}")
        print(f"  collected cash:  {s.collected_cash}")
        print(f"  collected online:{s.collected_online}")
        print(f"  expenses:        {s.expense_total}")
        print(f"  net cash flow:   {s.net_cash_flow}")
        print(f"  total dues:      {total_dues(store.state)}")

    elif cmd == 'export-csv':
        output = args.output or default_report_filename(PERIOD_ALL)
        export_player_stats_to_csv(store.state, output)
        logging.info("CSV-Report written: %s", output)

    elif cmd == 'export-excel':
        export_excel(store.state, args.output, args.period, start=args.start, end=args.end)

    elif cmd == 'role':
        user = store.switch_role(args.role, args.name)
        print(f"Operating as {user.name} ({user.role})")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s: %(message)s',
    )

    path = args.data or default_state_path()
    try:
        store = ClubStore(load_state(path), on_change=lambda s: save_state(s.state, path))
        run(args, store)
    except ClubError as ex:
        print(f"error: {ex}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
