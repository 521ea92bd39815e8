import copy
import sys
import os
import logging
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from playahead.battle_engine import TurnEngine, get_state_log_lines
from playahead.decisions import DecisionKind
from playahead.errors import InvalidSideReference, NoActiveCombatant, UnknownMove
from tests.test_utils import create_engine, create_test_dex, make_mon, make_state


class TestTurnEngine(unittest.TestCase):
    def setUp(self):
        logging.basicConfig(level=logging.ERROR)

    def test_both_actions_run(self):
        engine = create_engine({'Tackle': (20, 30)})
        state = make_state(make_mon('Fast', spe=300), make_mon('Slow', spe=100))
        result = engine.run(state, 'p1', 'p2', 'Tackle', 'Tackle')

        self.assertEqual(len(result.outcomes), 2)
        first, second = result.outcomes
        self.assertEqual((first.side, first.order, first.moves_first), ('p1', 1, True))
        self.assertEqual((second.side, second.order, second.moves_first), ('p2', 2, False))
        self.assertEqual(first.damage_dealt, 25)
        self.assertEqual(first.damage_range, (20, 30))
        self.assertEqual(first.damage_percent, 'Tackle test damage')
        self.assertEqual(first.effective_speed, 300)
        self.assertEqual(result.order.reason, 'speed')
        self.assertEqual(result.snapshot.get_active('p1')['current_hp'], 75)
        self.assertEqual(result.snapshot.get_active('p2')['current_hp'], 75)
        self.assertFalse(result.faulted)

    def test_first_action_ko_short_circuits(self):
        engine = create_engine({'Tackle': 150, 'Double-Edge': 50})
        state = make_state(make_mon('Fast', spe=300), make_mon('Slow', spe=100))
        result = engine.run(state, 'p1', 'p2', 'Tackle', 'Double-Edge')

        self.assertEqual(len(result.outcomes), 1)
        self.assertTrue(result.target_removed)
        self.assertEqual(result.snapshot.get_active('p1')['current_hp'], 100)
        self.assertEqual(result.snapshot.get_active('p2')['current_hp'], 0)
        # The second move never asked for a matchup
        moves_calced = [c.args[2] for c in engine.damage_calculator.calc_matchup.call_args_list]
        self.assertEqual(moves_calced, ['Tackle'])

    def test_recoil_ko_short_circuits(self):
        engine = create_engine({'Double-Edge': 90})
        state = make_state(make_mon('Fast', hp=20, max_hp=150, spe=300), make_mon('Slow', hp=200, spe=100))
        result = engine.run(state, 'p1', 'p2', 'Double-Edge', 'Tackle')
        self.assertEqual(len(result.outcomes), 1)
        self.assertTrue(result.actor_removed)
        self.assertEqual(result.snapshot.get_active('p2')['current_hp'], 110)

    def test_input_snapshot_untouched(self):
        engine = create_engine({'Tackle': 40})
        state = make_state(make_mon('A', spe=300), make_mon('B', spe=100))
        before = state.get_hash()
        result = engine.run(state, 'p1', 'p2', 'Tackle', 'Tackle')
        self.assertEqual(state.get_hash(), before)
        self.assertEqual(state.fields['turn'], 0)
        self.assertEqual(result.snapshot.fields['turn'], 1)
        self.assertIsNot(result.snapshot.get_active('p1'), state.get_active('p1'))

    def test_input_conditions_untouched(self):
        engine = create_engine({'Tackle': 40})
        state = make_state(make_mon('A', spe=300, item='Sitrus Berry'), make_mon('B', spe=100),
                           fields={'weather': 'RainDance', 'weather_turns': 3, 'gravity': 2})
        state.sides['p1']['conditions']['tailwind'] = 2
        before = copy.deepcopy(state)
        for moves in (('Reflect', 'Stealth Rock'), ('Rain Dance', 'Trick Room'), ('Tackle', 'Tackle')):
            with self.subTest(moves=moves):
                engine.run(state, 'p1', 'p2', *moves)
                self.assertEqual(state.sides, before.sides)
                self.assertEqual(state.fields, before.fields)

    def test_priority_move_goes_first(self):
        engine = create_engine({'Quick Attack': 100, 'Tackle': 10})
        state = make_state(make_mon('Slow', spe=250), make_mon('Fast', spe=400))
        result = engine.run(state, 'p1', 'p2', 'Quick Attack', 'Tackle')
        self.assertEqual(result.order.reason, 'priority')
        self.assertEqual(len(result.outcomes), 1)
        self.assertEqual(result.outcomes[0].side, 'p1')

    def test_decisions_collected_without_blocking(self):
        engine = create_engine({'Scald': 30, 'Bullet Seed': 10})
        state = make_state(make_mon('A', hp=200, spe=300), make_mon('B', hp=200, spe=100))
        result = engine.run(state, 'p1', 'p2', 'Scald', 'Bullet Seed')
        kinds = [d.kind for d in result.pending_decisions]
        self.assertEqual(kinds, [DecisionKind.PROBABILISTIC_EFFECT, DecisionKind.HIT_COUNT])
        self.assertEqual(len(result.outcomes), 2)

    def test_flinch_stops_slower_side(self):
        engine = create_engine({'Fake Out': 20, 'Tackle': 30})
        state = make_state(make_mon('A', spe=100), make_mon('B', spe=300))
        result = engine.run(state, 'p1', 'p2', 'Fake Out', 'Tackle')
        self.assertEqual(len(result.outcomes), 2)
        self.assertEqual(result.snapshot.get_active('p1')['current_hp'], 100)
        self.assertIn('flinched', result.outcomes[1].description)
        # Flinch does not survive the turn
        self.assertNotIn('flinch', result.snapshot.get_active('p2')['volatiles'])

    def test_protect_blocks_and_expires(self):
        engine = create_engine({'Tackle': 30})
        state = make_state(make_mon('A', spe=100), make_mon('B', spe=300))
        result = engine.run(state, 'p1', 'p2', 'Protect', 'Tackle')
        self.assertEqual(result.outcomes[0].side, 'p1')
        self.assertEqual(result.snapshot.get_active('p1')['current_hp'], 100)
        self.assertEqual(result.snapshot.get_active('p1')['volatiles'], [])

    def test_field_counters_tick(self):
        engine = create_engine()
        state = make_state(make_mon('A', spe=300), make_mon('B', spe=100))
        result = engine.run(state, 'p1', 'p2', 'Rain Dance', 'Splash')
        self.assertEqual(result.snapshot.fields['weather'], 'RainDance')
        self.assertEqual(result.snapshot.fields['weather_turns'], 4)

        state = make_state(make_mon('A', spe=300), make_mon('B', spe=100),
                           fields={'weather': 'RainDance', 'weather_turns': 1})
        result = engine.run(state, 'p1', 'p2', 'Splash', 'Splash')
        self.assertIsNone(result.snapshot.fields['weather'])

    def test_trick_room_flips_next_turn(self):
        engine = create_engine({'Tackle': 5})
        state = make_state(make_mon('Fast', spe=300), make_mon('Slow', spe=100))
        result = engine.run(state, 'p1', 'p2', 'Trick Room', 'Tackle')
        self.assertEqual(result.outcomes[0].side, 'p2')
        self.assertEqual(result.snapshot.fields['trick_room'], 4)

        result = engine.run(result.snapshot, 'p1', 'p2', 'Tackle', 'Tackle')
        self.assertEqual(result.order.reason, 'reversed-field')
        self.assertEqual(result.outcomes[0].side, 'p2')

    def test_invalid_side(self):
        engine = create_engine()
        state = make_state(make_mon('A'), make_mon('B'))
        result = engine.run(state, 'p1', 'p9', 'Tackle', 'Tackle')
        self.assertEqual(result.outcomes, ())
        self.assertIsNone(result.order)
        self.assertIsInstance(result.errors[0], InvalidSideReference)
        self.assertEqual(result.snapshot.get_hash(), state.get_hash())

    def test_no_active_combatant(self):
        engine = create_engine()
        state = make_state(make_mon('A'), make_mon('B', hp=0, max_hp=100))
        result = engine.run(state, 'p1', 'p2', 'Tackle', 'Tackle')
        self.assertTrue(result.faulted)
        self.assertIsInstance(result.errors[0], NoActiveCombatant)

    def test_unknown_move_recorded(self):
        engine = create_engine({'Tackle': 10})
        state = make_state(make_mon('A', spe=300), make_mon('B', spe=100))
        result = engine.run(state, 'p1', 'p2', 'Nonexistent', 'Tackle')
        self.assertEqual(len(result.outcomes), 2)
        self.assertIsInstance(result.errors[0], UnknownMove)
        self.assertEqual(result.snapshot.get_active('p2')['current_hp'], 100)
        self.assertEqual(result.snapshot.get_active('p1')['current_hp'], 90)

    def test_default_collaborators(self):
        engine = TurnEngine(dex=create_test_dex())
        state = make_state(make_mon('A', spe=300), make_mon('B', spe=100))
        result = engine.run(state, 'p1', 'p2', 'Tackle', 'Tackle')
        # Local formula: level 50 Tackle into 100 Def is 24-28
        self.assertEqual(result.outcomes[0].damage_range, (24, 28))
        self.assertEqual(result.snapshot.get_active('p2')['current_hp'], 74)

    def test_state_log_lines(self):
        state = make_state(make_mon('Pikachu', hp=50, max_hp=100, status='par'), make_mon('Eevee'),
                           fields={'weather': 'RainDance', 'weather_turns': 3})
        lines = get_state_log_lines(state)
        self.assertIn('  Player Active: Pikachu (50/100 HP)', lines)
        self.assertTrue(any('Weather: RainDance (3 turns left)' in l for l in lines))
        self.assertIn('  p1 Status: PAR', lines)


if __name__ == '__main__':
    unittest.main()
