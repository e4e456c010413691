"""
Excel export functionality for ClubLedger
"""
from __future__ import annotations
import logging
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from computations import find_player, get_player_stats, is_pending_result, payer_label, unpaid_players
from models import ClubState
from reports import (
    PERIOD_ALL,
    compute_period_summary,
    expenses_by_category,
    filter_by_period,
    outstanding_dues,
    top_players_by_games,
    total_dues,
)

log = logging.getLogger(__name__)

MONEY_FORMAT = "0.00"


def _style_header(ws, row=1):
    """Apply header styling to worksheet row"""
    header_font = Font(bold=True, color="FFFFFF")
    fill = PatternFill("solid", fgColor="4F81BD")
    align = Alignment(horizontal="center", vertical="center")
    thin = Side(style="thin", color="A0A0A0")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    for cell in ws[row]:
        cell.font = header_font
        cell.fill = fill
        cell.alignment = align
        cell.border = border


def _autosize_columns(ws, min_width=10, max_width=45):
    """Auto-size columns based on content"""
    for col in range(1, ws.max_column + 1):
        letter = get_column_letter(col)
        max_len = 0
        for cell in ws[letter]:
            if cell.value is None:
                continue
            max_len = max(max_len, len(str(cell.value)))
        ws.column_dimensions[letter].width = max(min_width, min(max_width, max_len + 2))


def _money_columns(ws, cols, first_row=2):
    for r in range(first_row, ws.max_row + 1):
        for c in cols:
            ws.cell(r, c).number_format = MONEY_FORMAT


def _new_sheet(wb, title, headers):
    ws = wb.create_sheet(title)
    ws.append(headers)
    _style_header(ws, 1)
    ws.freeze_panes = "A2"
    return ws


def _name(state, player_id):
    p = find_player(state, player_id) if player_id else None
    return p.name if p else (player_id or "")


def export_excel(
    state: ClubState,
    filepath: str,
    period: str = PERIOD_ALL,
    today: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> None:
    """
    Export an audit workbook for the period:
    - Summary (period rollups, expense categories, lifetime receivables)
    - Players (lifetime stats per player)
    - Dues (players who owe, largest first)
    - Matches / Payments / Expenses for the period
    """
    wb = Workbook()
    # remove default sheet
    wb.remove(wb.active)

    matches = filter_by_period(state.matches, period, today, start, end)
    payments = filter_by_period(state.payments, period, today, start, end)
    expenses = filter_by_period(state.expenses, period, today, start, end)
    summary = compute_period_summary(state, period, today, start, end)

    # Summary sheet
    ws = _new_sheet(wb, "Summary", ["Metric", "Value"])
    rows = [
        ("Matches", summary.match_count),
        ("Gross Revenue", summary.gross_revenue),
        ("Discounts", summary.discount_total),
        ("Net Revenue", summary.net_revenue),
        ("Collected (Cash)", summary.collected_cash),
        ("Collected (Online)", summary.collected_online),
        ("Collected (Total)", summary.collected_total),
        ("Expenses", summary.expense_total),
        ("Net Cash Flow", summary.net_cash_flow),
        ("Total Dues (lifetime)", total_dues(state)),
    ]
    for label, value in rows:
        ws.append([label, value])
    _money_columns(ws, [2], first_row=3)

    ws.append([])
    ws.append(["Expense Category", "Amount"])
    ws.cell(ws.max_row, 1).font = Font(bold=True)
    ws.cell(ws.max_row, 2).font = Font(bold=True)
    for category, amount in expenses_by_category(expenses).items():
        ws.append([category, amount])
        ws.cell(ws.max_row, 2).number_format = MONEY_FORMAT

    ws.append([])
    ws.append(["Most Active", "Games"])
    ws.cell(ws.max_row, 1).font = Font(bold=True)
    ws.cell(ws.max_row, 2).font = Font(bold=True)
    for player, games in top_players_by_games(state, matches):
        ws.append([player.name, games])
    _autosize_columns(ws)

    # Players sheet
    ws = _new_sheet(wb, "Players", ["Name", "Nickname", "Games", "Lifetime Value", "Paid",
                                    "Discounted", "Opening Balance", "Pending"])
    for p in state.players:
        s = get_player_stats(state, p.id)
        ws.append([p.name, p.nickname or "", s.games, s.total_spent, s.total_paid,
                   s.total_discounted, s.initial_balance, s.pending])
    _money_columns(ws, range(4, 9))
    _autosize_columns(ws)

    # Dues sheet
    ws = _new_sheet(wb, "Dues", ["Name", "Phone", "Pending"])
    for p, pending in outstanding_dues(state):
        ws.append([p.name, p.phone or "", pending])
    _money_columns(ws, [3])
    _autosize_columns(ws)

    # Matches sheet
    ws = _new_sheet(wb, "Matches", ["Date", "Table", "Player A", "Player B", "Points", "Who Pays",
                                    "Winner", "Value", "Status"])
    for m in sorted(matches, key=lambda m: m.recorded_at):
        if is_pending_result(m):
            status = "Result Pending"
        else:
            unpaid = unpaid_players(state, m)
            status = "Unpaid: " + ", ".join(_name(state, pid) for pid in unpaid) if unpaid else "Cleared"
        ws.append([m.date, m.table or "", _name(state, m.player_a_id), _name(state, m.player_b_id),
                   m.points, payer_label(state, m), _name(state, m.winner_id), m.total_value, status])
        if status != "Cleared":
            ws.cell(ws.max_row, 9).font = Font(bold=True, color="C00000")
    _money_columns(ws, [8])
    _autosize_columns(ws)

    # Payments sheet: one row per allocation
    ws = _new_sheet(wb, "Payments", ["Date", "Paid By", "Mode", "For", "Amount", "Discount", "Notes"])
    for pay in sorted(payments, key=lambda p: p.date):
        for a in pay.allocations:
            ws.append([pay.date, _name(state, pay.primary_payer_id), pay.mode, _name(state, a.player_id),
                       a.amount, a.discount or 0, pay.notes or ""])
    _money_columns(ws, [5, 6])
    _autosize_columns(ws)

    # Expenses sheet
    ws = _new_sheet(wb, "Expenses", ["Date", "Category", "Mode", "Amount", "Notes"])
    for e in sorted(expenses, key=lambda e: e.date):
        ws.append([e.date, e.category, e.mode, e.amount, e.notes or ""])
    if expenses:
        ws.append(["TOTAL", "", "", f"=SUM(D2:D{ws.max_row})", ""])
        ws.cell(ws.max_row, 1).font = Font(bold=True)
    _money_columns(ws, [4])
    _autosize_columns(ws)

    wb.save(filepath)
    log.info("Excel report (%s) written to %s", period, filepath)
