"""
Local damage calculation module.
Fallback for the external calc service: Gen 5+ damage formula with the
16 random rolls, STAB, type effectiveness, weather, burn and screens.
"""
from playahead.mechanics import Mechanics

RAIN = ["RainDance", "Rain", "PrimordialSea"]
SUN = ["SunnyDay", "Sun", "DesolateLand"]


def _no_damage(effectiveness=1.0):
    return {
        'damage_rolls': [0], 'effectiveness': effectiveness,
        'is_stab': False, 'can_crit': False,
    }


def calculate_damage(attacker, defender, move_data, field=None, defender_conditions=None):
    """
    Calculate damage using strict integer arithmetic and modifier order:
    Base -> Random (85-100%) -> STAB -> Type Effectiveness -> Screens -> Weather
    Burn is already folded into the attack stat by Mechanics.
    """
    if field is None:
        field = {}
    category = move_data.get('category', 'Physical')

    # Status moves do no damage
    if category == 'Status':
        return _no_damage()

    move_type = move_data.get('type', 'Normal')
    effectiveness = Mechanics.get_type_effectiveness(move_type, defender.get('types', []))

    # Fixed Damage (Seismic Toss, Dragon Rage, ...)
    if 'damage' in move_data:
        fixed_dmg = move_data['damage']
        if fixed_dmg == 'level':
            fixed_dmg = attacker.get('level', 50)
        if effectiveness == 0:
            fixed_dmg = 0
        return {
            'damage_rolls': [fixed_dmg] * 16, 'effectiveness': effectiveness,
            'is_stab': False, 'can_crit': False,
        }

    power = move_data.get('basePower', 0)
    if not power or effectiveness == 0:
        return _no_damage(effectiveness)

    level = attacker.get('level', 50)

    if category == 'Physical':
        atk = Mechanics.get_effective_stat(attacker, 'atk', field)
        defense = Mechanics.get_effective_stat(defender, 'def', field)
    else:
        atk = Mechanics.get_effective_stat(attacker, 'spa', field)
        defense = Mechanics.get_effective_stat(defender, 'spd', field)
    defense = max(1, defense)

    level_factor = (2 * level // 5) + 2
    base_calc = ((level_factor * power * atk) // defense) // 50 + 2

    is_stab = move_type in attacker.get('types', [])
    stab_mult = 2.0 if is_stab and attacker.get('ability') == 'Adaptability' else 1.5

    screen_mult = 1.0
    if defender_conditions:
        if defender_conditions.get('aurora_veil', 0) > 0:
            screen_mult = 0.5
        elif category == 'Physical' and defender_conditions.get('reflect', 0) > 0:
            screen_mult = 0.5
        elif category == 'Special' and defender_conditions.get('light_screen', 0) > 0:
            screen_mult = 0.5

    weather = field.get('weather')
    weather_mult = 1.0
    if weather in RAIN:
        weather_mult = 1.5 if move_type == 'Water' else 0.5 if move_type == 'Fire' else 1.0
    elif weather in SUN:
        weather_mult = 1.5 if move_type == 'Fire' else 0.5 if move_type == 'Water' else 1.0

    damage_rolls = []
    for roll in range(85, 101):
        r_dmg = (base_calc * roll) // 100
        if is_stab:
            r_dmg = int(r_dmg * stab_mult)
        r_dmg = int(r_dmg * effectiveness)
        r_dmg = int(r_dmg * screen_mult)
        r_dmg = int(r_dmg * weather_mult)
        damage_rolls.append(max(1, r_dmg))

    return {
        'damage_rolls': damage_rolls,
        'effectiveness': effectiveness,
        'is_stab': is_stab,
        'can_crit': True,
    }
