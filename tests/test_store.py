"""Tests for store module: mutations, validation, live match, persistence hook."""

import logging

import pytest

from errors import NotFoundError, ValidationError
from models import PaymentAllocation
from store import ClubStore


class TestPlayers:

    def test_add_prepends(self, store, alice, bob):
        assert [p.id for p in store.players] == [bob.id, alice.id]

    def test_blank_optional_fields_are_absent(self, store):
        p = store.add_player('  Faisal  ', nickname='', phone='  ')
        assert p.name == 'Faisal'
        assert p.nickname is None
        assert p.phone is None

    def test_name_required(self, store):
        with pytest.raises(ValidationError):
            store.add_player('   ')

    def test_initial_balance_must_be_number(self, store):
        with pytest.raises(ValidationError):
            store.add_player('Gul', initial_balance='ten')
        assert store.players == []

    def test_initial_balance_must_be_finite(self, store):
        with pytest.raises(ValidationError):
            store.add_player('Dana Mir', initial_balance=float('-inf'))
        assert store.players == []

    def test_update_is_partial(self, store, alice):
        updated = store.update_player(alice.id, phone='555-0199')
        assert updated.phone == '555-0199'
        assert updated.nickname == 'Ace'
        assert updated.created_at == alice.created_at
        assert store.get_player(alice.id) is updated

    def test_update_unknown_id(self, store):
        with pytest.raises(NotFoundError) as exc:
            store.update_player('missing', name='X')
        assert exc.value.record_id == 'missing'

    def test_id_is_immutable(self, store, alice):
        with pytest.raises(ValidationError):
            store.update_player(alice.id, id='other')


class TestMatches:

    def test_add_match_bills_and_stamps_operator(self, store, alice, bob):
        m = store.add_match(alice.id, bob.id, 20, 'LOSER', winner_id=alice.id, table='Table 2')
        assert m.total_value == 30
        assert m.charges == {bob.id: 30}
        assert m.recorded_by.role == 'ADMIN'
        assert m.table == 'Table 2'
        assert store.matches[0] is m

    def test_recorded_at_strictly_increasing(self, store, alice, bob):
        first = store.add_match(alice.id, bob.id, 20, 'BOTH')
        second = store.add_match(alice.id, bob.id, 20, 'BOTH')
        assert second.recorded_at > first.recorded_at

    def test_unknown_player_rejected(self, store, alice):
        with pytest.raises(NotFoundError):
            store.add_match(alice.id, 'ghost', 20, 'BOTH')
        assert store.matches == []

    def test_same_player_twice_rejected(self, store, alice):
        with pytest.raises(ValidationError):
            store.add_match(alice.id, alice.id, 20, 'BOTH')

    def test_bad_points_rejected(self, store, alice, bob):
        with pytest.raises(ValidationError):
            store.add_match(alice.id, bob.id, 15, 'BOTH')

    def test_winner_must_have_played(self, store, alice, bob, carol):
        with pytest.raises(ValidationError):
            store.add_match(alice.id, bob.id, 20, 'LOSER', winner_id=carol.id)

    def test_update_winner_recomputes_charges(self, store, alice, bob):
        m = store.add_match(alice.id, bob.id, 10, 'LOSER')
        assert m.charges == {}
        m = store.update_match(m.id, winner_id=bob.id)
        assert m.charges == {alice.id: 20}
        assert store.get_player_dues(alice.id) == 20

    def test_update_points_recomputes_total(self, store, alice, bob):
        m = store.add_match(alice.id, bob.id, 10, 'BOTH')
        m = store.update_match(m.id, points=20)
        assert m.total_value == 30
        assert m.charges == {alice.id: 15, bob.id: 15}

    def test_invalid_update_leaves_match_untouched(self, store, alice, bob, carol):
        m = store.add_match(alice.id, bob.id, 20, 'BOTH')
        with pytest.raises(ValidationError):
            store.update_match(m.id, winner_id=carol.id)
        assert store.get_match(m.id) is m

    def test_update_unknown_match(self, store):
        with pytest.raises(NotFoundError):
            store.update_match('nope', points=10)


class TestLiveMatch:

    def test_start_and_clear(self, store, alice, bob):
        live = store.start_ongoing_match(alice.id, bob.id, 20, 'Table 3')
        assert store.ongoing_match is live
        store.clear_ongoing_match()
        assert store.ongoing_match is None

    def test_second_start_overwrites(self, store, alice, bob, carol, caplog):
        store.start_ongoing_match(alice.id, bob.id, 20)
        with caplog.at_level(logging.WARNING):
            live = store.start_ongoing_match(bob.id, carol.id, 10)
        assert store.ongoing_match is live
        assert 'Replacing live match' in caplog.text

    def test_finish_promotes_and_clears(self, store, alice, bob):
        store.start_ongoing_match(alice.id, bob.id, 10, 'Table 2')
        m = store.finish_ongoing_match('LOSER', winner_id=alice.id)
        assert store.ongoing_match is None
        assert m.table == 'Table 2'
        assert m.charges == {bob.id: 20}

    def test_logging_same_pair_finalizes_live(self, store, alice, bob):
        store.start_ongoing_match(alice.id, bob.id, 20)
        store.add_match(alice.id, bob.id, 20, 'BOTH')
        assert store.ongoing_match is None

    def test_other_pair_keeps_live(self, store, alice, bob, carol):
        store.start_ongoing_match(alice.id, bob.id, 20)
        store.add_match(alice.id, carol.id, 20, 'BOTH')
        assert store.ongoing_match is not None

    def test_finish_without_live(self, store):
        with pytest.raises(ValidationError):
            store.finish_ongoing_match('BOTH')


class TestPayments:

    def test_total_excludes_discounts(self, store, alice, bob):
        pay = store.add_payment(alice.id, [PaymentAllocation(alice.id, 20, 10),
                                           PaymentAllocation(bob.id, 5)], 'CASH', notes='  ')
        assert pay.total_amount == 25
        assert pay.notes is None

    def test_zero_allocations_dropped(self, store, alice, bob):
        pay = store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 30},
                                           {'player_id': bob.id, 'amount': 0, 'discount': 0}], 'CASH')
        assert [a.player_id for a in pay.allocations] == [alice.id]

    def test_all_zero_rejected(self, store, alice):
        with pytest.raises(ValidationError):
            store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 0}], 'CASH')
        assert store.payments == []

    def test_negative_amount_rejected(self, store, alice):
        with pytest.raises(ValidationError):
            store.add_payment(alice.id, [{'player_id': alice.id, 'amount': -5}], 'CASH')

    def test_non_numeric_amount_rejected(self, store, alice):
        with pytest.raises(ValidationError):
            store.add_payment(alice.id, [{'player_id': alice.id, 'amount': '30'}], 'CASH')

    def test_infinite_amount_rejected(self, store, alice):
        with pytest.raises(ValidationError, match='finite'):
            store.add_payment(alice.id, [{'player_id': alice.id, 'amount': float('inf')}], 'CASH')
        with pytest.raises(ValidationError):
            store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 10, 'discount': float('inf')}], 'CASH')
        assert store.payments == []

    def test_duplicate_player_rejected(self, store, alice):
        with pytest.raises(ValidationError):
            store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 5},
                                         {'player_id': alice.id, 'amount': 5}], 'CASH')

    def test_unknown_allocation_player(self, store, alice):
        with pytest.raises(NotFoundError):
            store.add_payment(alice.id, [{'player_id': 'ghost', 'amount': 5}], 'CASH')

    def test_bad_mode(self, store, alice):
        with pytest.raises(ValidationError):
            store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 5}], 'CHEQUE')

    def test_update_rederives_total(self, store, alice, bob):
        pay = store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 30}], 'CASH')
        pay = store.update_payment(pay.id, allocations=[{'player_id': alice.id, 'amount': 10},
                                                        {'player_id': bob.id, 'amount': 15, 'discount': 5}])
        assert pay.total_amount == 25
        assert store.get_player_stats(bob.id).total_discounted == 5

    def test_update_mode_only(self, store, alice):
        pay = store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 30}], 'CASH', date='2024-03-01')
        pay = store.update_payment(pay.id, mode='ONLINE')
        assert pay.mode == 'ONLINE'
        assert pay.total_amount == 30
        assert pay.date == '2024-03-01'


class TestExpensesAndRole:

    def test_add_expense(self, store):
        e = store.add_expense('RENT', 500, 'ONLINE', date='2024-03-01')
        assert store.expenses == [e]

    def test_expense_validation(self, store):
        with pytest.raises(ValidationError):
            store.add_expense('SNACKS', 5, 'CASH')
        with pytest.raises(ValidationError):
            store.add_expense('BALLS', -5, 'CASH')
        with pytest.raises(ValidationError):
            store.add_expense('BALLS', 5, 'CASH', date='03/01/2024')
        with pytest.raises(ValidationError):
            store.add_expense('RENT', float('inf'), 'CASH')
        assert store.expenses == []

    def test_switch_role_stamps_new_matches(self, store, alice, bob):
        store.switch_role('STAFF', name='Desk')
        m = store.add_match(alice.id, bob.id, 20, 'BOTH')
        assert m.recorded_by.role == 'STAFF'
        assert m.recorded_by.name == 'Desk'


class TestPersistenceHook:

    def test_called_after_every_mutation(self):
        calls = []
        store = ClubStore(on_change=calls.append)
        p = store.add_player('Hina')
        store.update_player(p.id, nickname='H')
        store.add_expense('LIGHTS', 40, 'CASH')
        assert len(calls) == 3
        assert calls[0] is store

    def test_not_called_on_rejected_mutation(self):
        calls = []
        store = ClubStore(on_change=calls.append)
        with pytest.raises(ValidationError):
            store.add_player('')
        assert calls == []

    def test_failure_is_logged_not_raised(self, caplog):
        def broken(_store):
            raise OSError('quota exceeded')

        store = ClubStore(on_change=broken)
        with caplog.at_level(logging.WARNING):
            p = store.add_player('Imran')
        assert store.get_player(p.id) is p
        assert 'quota exceeded' in caplog.text

    def test_serialize_restore(self, store, alice, bob):
        m = store.add_match(alice.id, bob.id, 20, 'BOTH')
        store.add_payment(alice.id, [{'player_id': alice.id, 'amount': 15}], 'CASH')
        restored = ClubStore.restore(store.serialize())
        assert restored.get_player_stats(alice.id) == store.get_player_stats(alice.id)
        assert restored.is_match_settled(m.id, alice.id)
        later = restored.add_match(alice.id, bob.id, 20, 'BOTH')
        assert later.recorded_at > m.recorded_at
