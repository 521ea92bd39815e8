from dataclasses import dataclass
from typing import List, Optional, Tuple, Union
import logging
import math

from playahead import local_damage_calc


def midpoint_damage(damage_range) -> int:
    """
    Damage actually applied for a calc result: the floored midpoint of a
    (low, high) range, or the floored scalar.
    """
    if damage_range is None:
        return 0
    if isinstance(damage_range, (int, float)):
        return int(math.floor(damage_range))
    values = list(damage_range)
    if not values:
        return 0
    if len(values) == 1:
        return int(math.floor(values[0]))
    return int(math.floor((values[0] + values[-1]) / 2))


def describe_ko_chance(rolls: List[int], target_hp: int) -> Optional[str]:
    if not rolls or max(rolls) <= 0 or target_hp <= 0:
        return None
    low, high = min(rolls), max(rolls)
    if low >= target_hp:
        return "guaranteed OHKO"
    if high >= target_hp:
        hits = sum(1 for r in rolls if r >= target_hp)
        return f"{hits / len(rolls) * 100:.1f}% chance to OHKO"
    best = math.ceil(target_hp / high)
    worst = math.ceil(target_hp / max(1, low))
    if best == worst:
        return f"guaranteed {best}HKO"
    return f"possible {best}HKO"


@dataclass(frozen=True)
class MatchupResult:
    damage_range: Optional[Union[Tuple[int, int], int]] = None
    description: Optional[str] = None
    ko_chance: Optional[str] = None

    @property
    def applied_damage(self) -> int:
        return midpoint_damage(self.damage_range)

    @classmethod
    def from_rolls(cls, rolls, defender, description=None, ko_chance=None):
        rolls = [int(r) for r in (rolls or [0])]
        low, high = min(rolls), max(rolls)
        if high <= 0:
            return cls(None, description or "No damage", None)
        max_hp = max(1, defender.get("max_hp", 1))
        if description is None:
            description = f"{low / max_hp * 100:.1f} - {high / max_hp * 100:.1f}%"
        if ko_chance is None:
            ko_chance = describe_ko_chance(rolls, defender.get("current_hp", max_hp))
        return cls((low, high), description, ko_chance)


class DamageCalculator:
    """
    Matchup source for the turn engine.

    Asks the calc service first (calc_client.calc_damage) and falls back to
    the local formula when no client is configured or the service is down.
    """

    def __init__(self, calc_client=None, dex=None, use_local_fallback=True):
        self.calc_client = calc_client
        self.dex = dex
        self.use_local_fallback = use_local_fallback

    def calc_matchup(self, attacker, defender, move_name, state, defender_side=None) -> MatchupResult:
        move_data = self.dex.get_move(move_name, state.format) if self.dex else None
        if move_data and move_data.get("category") == "Status":
            return MatchupResult(None, "No damage", None)

        result = None
        if self.calc_client:
            try:
                result = self.calc_client.calc_damage(
                    attacker, defender, move_name, state.fields, state.format
                )
            except Exception as e:
                logging.error(f"Error in calc service for {move_name}: {e}")
                result = None

        if result is None:
            if not (self.use_local_fallback and move_data):
                return MatchupResult()
            conditions = state.sides.get(defender_side, {}).get("conditions") if defender_side else None
            result = local_damage_calc.calculate_damage(
                attacker, defender, move_data, state.fields, defender_conditions=conditions
            )

        rolls = result.get("damage_rolls", result.get("damage", [0]))
        if isinstance(rolls, (int, float)):
            rolls = [rolls]
        return MatchupResult.from_rolls(
            rolls,
            defender,
            description=result.get("desc"),
            ko_chance=result.get("koChance", result.get("ko_chance")),
        )
