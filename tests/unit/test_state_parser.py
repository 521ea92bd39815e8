import sys
import os
import json
import tempfile
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from playahead.battle_engine import BattleState
from playahead.state_parser import normalize_keys, parse_snapshot, parse_state, to_snake_case

LIVE_SNAPSHOT = {
    'battleId': 'battle-gen9ou-42',
    'format': 'gen9ou',
    'field': {'weather': 'RainDance', 'weatherTurns': 3, 'trickRoom': 0},
    'sides': {
        'p1': {
            'name': 'Ash',
            'activeIndex': 0,
            'party': [
                {'species': 'Pikachu', 'currentHp': 80, 'maxHp': 110, 'statStages': {'spe': 1},
                 'stats': {'spe': 200}, 'heldItem': 'Light Ball'},
            ],
        },
        'p2': {
            'name': 'Gary',
            'active': 1,
            'party': [
                {'species': 'Eevee', 'hp': 0, 'maxhp': 120},
                {'species': 'Blastoise', 'hp': 150, 'maxhp': 160, 'boosts': {'def': 2}},
            ],
        },
    },
}


class TestKeyNormalization(unittest.TestCase):
    def test_to_snake_case(self):
        self.assertEqual(to_snake_case('currentHp'), 'current_hp')
        self.assertEqual(to_snake_case('maxHP'), 'max_hp')
        self.assertEqual(to_snake_case('trickRoom'), 'trick_room')
        self.assertEqual(to_snake_case('species'), 'species')

    def test_normalize_nested(self):
        data = normalize_keys({'outerKey': [{'innerKey': 1}], 'plain': {'deepKey': True}})
        self.assertEqual(data, {'outer_key': [{'inner_key': 1}], 'plain': {'deep_key': True}})

    def test_side_keys_preserved(self):
        data = normalize_keys({'sides': {'sideA': {'activeIndex': 0}}})
        self.assertIn('sideA', data['sides'])
        self.assertEqual(data['sides']['sideA']['active_index'], 0)


class TestParseSnapshot(unittest.TestCase):
    def test_live_snapshot(self):
        state = parse_snapshot(LIVE_SNAPSHOT)
        self.assertIsInstance(state, BattleState)
        self.assertEqual(state.battle_id, 'battle-gen9ou-42')
        self.assertEqual(state.format, 'gen9ou')
        self.assertEqual(state.fields['weather'], 'RainDance')
        self.assertEqual(state.fields['weather_turns'], 3)
        self.assertEqual(state.fields['turn'], 0)

        pikachu = state.get_active('p1')
        self.assertEqual(pikachu['current_hp'], 80)
        self.assertEqual(pikachu['max_hp'], 110)
        self.assertEqual(pikachu['stat_stages'], {'spe': 1})
        self.assertEqual(pikachu['name'], 'Pikachu')
        self.assertEqual(pikachu['volatiles'], [])

        blastoise = state.get_active('p2')
        self.assertEqual(blastoise['species'], 'Blastoise')
        self.assertEqual(blastoise['current_hp'], 150)
        self.assertEqual(blastoise['stat_stages'], {'def': 2})
        self.assertEqual(state.bench_indices('p2'), [])

    def test_top_level_sides(self):
        state = parse_snapshot({'p1': {'party': [{'species': 'A', 'maxHp': 10}]},
                                'p2': {'party': [{'species': 'B', 'maxHp': 20}]}})
        self.assertEqual(set(state.sides), {'p1', 'p2'})
        self.assertEqual(state.get_active('p2')['current_hp'], 20)
        self.assertEqual(state.sides['p1']['name'], 'p1')

    def test_input_not_mutated(self):
        before = json.dumps(LIVE_SNAPSHOT, sort_keys=True)
        parse_snapshot(LIVE_SNAPSHOT)
        self.assertEqual(json.dumps(LIVE_SNAPSHOT, sort_keys=True), before)

    def test_battle_state_copied(self):
        state = parse_snapshot(LIVE_SNAPSHOT)
        copy = parse_snapshot(state)
        self.assertIsNot(copy, state)
        self.assertEqual(copy.get_hash(), state.get_hash())


class TestParseStateFile(unittest.TestCase):
    def test_reads_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'state.json')
            with open(path, 'w') as f:
                json.dump(LIVE_SNAPSHOT, f)
            state = parse_state(path)
        self.assertEqual(state.get_active('p1')['species'], 'Pikachu')

    def test_missing_file(self):
        self.assertIsNone(parse_state('/nonexistent/state.json', retries=1))


if __name__ == '__main__':
    unittest.main()
