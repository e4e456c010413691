"""Tests for csv_handler and excel_export."""

import csv

from openpyxl import load_workbook

from csv_handler import (
    PLAYER_STATS_COLUMNS,
    default_report_filename,
    export_matches_to_csv,
    export_payments_to_csv,
    export_player_stats_to_csv,
)
from excel_export import export_excel


def _read_csv(path):
    with open(path, newline='', encoding='utf-8') as f:
        return list(csv.reader(f))


class TestCsv:

    def test_player_stats(self, tmp_path, store, alice, bob):
        store.add_match(alice.id, bob.id, 20, 'BOTH')
        store.add_payment(bob.id, [{'player_id': bob.id, 'amount': 10, 'discount': 5}], 'CASH')
        path = tmp_path / 'stats.csv'
        assert export_player_stats_to_csv(store.state, str(path)) == 2

        rows = _read_csv(path)
        assert rows[0] == PLAYER_STATS_COLUMNS
        by_name = {r[0]: r for r in rows[1:]}
        assert by_name['Alice Khan'] == ['Alice Khan', 'Ace', '1', '15', '0', '0', '15']
        assert by_name['Bob Shah'] == ['Bob Shah', '', '1', '15', '10', '5', '0']

    def test_matches_and_payments(self, tmp_path, store, alice, bob):
        store.add_match(alice.id, bob.id, 20, 'LOSER', winner_id=bob.id)
        store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 25, 'discount': 5}], 'ONLINE')

        assert export_matches_to_csv(store.state, str(tmp_path / 'm.csv')) == 1
        row = _read_csv(tmp_path / 'm.csv')[1]
        assert row[6] == 'Bob Shah'
        assert row[8] == 'Alice Khan:30'

        assert export_payments_to_csv(store.state, str(tmp_path / 'p.csv')) == 1
        row = _read_csv(tmp_path / 'p.csv')[1]
        assert row[4] == '25'
        assert row[5] == 'Alice Khan:25-5'

    def test_default_filename(self):
        assert default_report_filename('month', '2024-05-15') == 'Club_Report_month_2024-05-15.csv'


class TestExcel:

    def test_workbook_layout(self, tmp_path, store, alice, bob):
        store.add_match(alice.id, bob.id, 20, 'BOTH', date='2024-05-15')
        store.add_match(alice.id, bob.id, 10, 'LOSER', date='2024-05-15')
        store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 15}], 'CASH', date='2024-05-15')
        store.add_expense('RENT', 100, 'ONLINE', date='2024-05-01')
        path = tmp_path / 'audit.xlsx'

        export_excel(store.state, str(path), 'month', today='2024-05-15')

        wb = load_workbook(path)
        assert wb.sheetnames == ['Summary', 'Players', 'Dues', 'Matches', 'Payments', 'Expenses']

        summary = {row[0]: row[1] for row in wb['Summary'].iter_rows(min_row=2, max_row=11, values_only=True)}
        assert summary['Matches'] == 2
        assert summary['Gross Revenue'] == 50
        assert summary['Net Cash Flow'] == -85
        assert summary['Total Dues (lifetime)'] == 15

        statuses = [row[8] for row in wb['Matches'].iter_rows(min_row=2, values_only=True)]
        assert statuses == ['Unpaid: Bob Shah', 'Result Pending']

        dues = list(wb['Dues'].iter_rows(min_row=2, values_only=True))
        assert len(dues) == 1
        assert dues[0][0] == 'Bob Shah'
        assert dues[0][2] == 15
