import sys
import os
import json
import tempfile
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from playahead.dex import Dex, format_gen, load_mechanics, to_slug


class TestPackagedDex(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.dex = Dex()

    def test_lookup_by_display_name(self):
        move = self.dex.get_move('Quick Attack')
        self.assertEqual(move['priority'], 1)
        self.assertEqual(self.dex.get_move('quick-attack')['name'], 'Quick Attack')

    def test_priority_defaults(self):
        self.assertEqual(self.dex.get_move_priority('Trick Room'), -7)
        self.assertEqual(self.dex.get_move_priority('Tackle'), 0)
        self.assertEqual(self.dex.get_move_priority('No Such Move'), 0)

    def test_unknown_move(self):
        self.assertIsNone(self.dex.get_move('No Such Move'))
        self.assertFalse(self.dex.has_move('No Such Move'))
        self.assertTrue(self.dex.has_move('Tackle'))

    def test_format_overrides(self):
        self.assertEqual(self.dex.get_move('Tackle')['basePower'], 40)
        self.assertEqual(self.dex.get_move('Tackle', 'gen4ou')['basePower'], 35)
        self.assertEqual(self.dex.get_move('Tackle', 'gen5')['basePower'], 50)
        # Overrides never leak into the base entry
        self.assertEqual(self.dex.get_move('Tackle')['basePower'], 40)

    def test_returned_entries_are_copies(self):
        move = self.dex.get_move('Double-Edge')
        move['recoil'] = [1, 1]
        self.assertEqual(self.dex.get_move('Double-Edge')['recoil'], [33, 100])

    def test_items_and_abilities(self):
        self.assertTrue(self.dex.get_item('Sitrus Berry')['isBerry'])
        self.assertEqual(self.dex.get_ability('Static')['onContact']['status'], 'par')
        self.assertIsNone(self.dex.get_item(None))


class TestDexHelpers(unittest.TestCase):
    def test_to_slug(self):
        self.assertEqual(to_slug("King's Rock"), 'kingsrock')
        self.assertEqual(to_slug('U-turn'), 'uturn')
        self.assertEqual(to_slug('Mr. Mime'), 'mrmime')

    def test_format_gen(self):
        self.assertEqual(format_gen('gen4ou'), 'gen4')
        self.assertEqual(format_gen('Gen9Randombattle'), 'gen9')
        self.assertEqual(format_gen(8), 'gen8')
        self.assertIsNone(format_gen(None))
        self.assertIsNone(format_gen('ou'))

    def test_add_entries(self):
        dex = Dex({})
        dex.add_move('Test Move', category='Special', basePower=10, effect={'self': {'boosts': {'spa': 1}}})
        move = dex.get_move('test move')
        self.assertEqual(move['category'], 'Special')
        self.assertEqual(move['self'], {'boosts': {'spa': 1}})
        dex.add_item('Test Item', isBerry=True)
        self.assertTrue(dex.get_item('Test Item')['isBerry'])
        dex.add_ability('Test Ability')
        self.assertEqual(dex.get_ability('Test Ability')['name'], 'Test Ability')

    def test_from_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'mechanics.json')
            with open(path, 'w') as f:
                json.dump({'moves': {'zap': {'name': 'Zap', 'priority': 2}}}, f)
            dex = Dex.from_file(path)
        self.assertEqual(dex.get_move_priority('Zap'), 2)

    def test_missing_file_gives_empty_dex(self):
        self.assertEqual(load_mechanics('/nonexistent/mechanics.json'), {})
        dex = Dex.from_file('/nonexistent/mechanics.json')
        self.assertIsNone(dex.get_move('Tackle'))


if __name__ == '__main__':
    unittest.main()
