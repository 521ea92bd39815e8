from typing import List, Optional
import logging
import random

from playahead.dex import Dex
from playahead.errors import InvalidSideReference, NoActiveCombatant
from playahead.mechanics import Mechanics
from .state import (
    ActionSpec,
    BattleState,
    MoveOutcome,
    OrderDecision,
    TurnResult,
    mon_name,
)
from .order import OrderResolver, is_speed_reversed
from .effects import EffectPipeline, EffectResult
from .damage import DamageCalculator, MatchupResult


class TurnEngine:
    """
    Plays one speculative turn between two sides.

    Order is resolved once; the first action goes through the effect
    pipeline, and the second only runs if nobody was knocked out by the
    first. Decisions raised by either action are collected on the result
    without stopping the turn.
    """

    def __init__(self, dex=None, damage_calculator=None, calc_client=None, rng=None,
                 speed_calculator=None, pipeline=None):
        self.dex = dex or Dex()
        self.rng = rng or random.Random()
        self.damage_calculator = damage_calculator or DamageCalculator(calc_client, self.dex)
        self.order_resolver = OrderResolver(self.dex, speed_calculator, self.rng)
        self.pipeline = pipeline or EffectPipeline(self.dex)

    def run(self, state: BattleState, side_a, side_b, move_a, move_b) -> TurnResult:
        snapshot = state.deep_copy()

        errors = []
        for side in (side_a, side_b):
            if side not in snapshot.sides:
                errors.append(InvalidSideReference(f"Unknown side '{side}'"))
            elif not snapshot.get_eligible_active(side):
                errors.append(NoActiveCombatant(f"Side '{side}' has no active combatant"))
        if errors:
            logging.warning(f"Turn not run: {', '.join(str(e) for e in errors)}")
            return TurnResult(snapshot=snapshot, errors=errors)

        order = self.order_resolver.resolve(snapshot, side_a, move_a, side_b, move_b)
        actions = [
            (ActionSpec(order.first_side, order.first_move), order.first_priority, order.first_speed),
            (ActionSpec(order.second_side, order.second_move), order.second_priority, order.second_speed),
        ]

        outcomes = []
        pending = []
        for position, (action, priority, speed) in enumerate(actions, start=1):
            target_side = order.second_side if position == 1 else order.first_side
            if position == 2 and (outcomes[0].target_removed or outcomes[0].actor_removed):
                logging.debug(f"{action.side}'s {action.move} skipped: a combatant was knocked out")
                break
            if not snapshot.get_eligible_active(action.side):
                break

            actor = snapshot.get_active(action.side)
            matchup = self._calc_matchup(snapshot, action, target_side)
            result = self.pipeline.apply(snapshot, action.side, target_side, action.move, matchup)

            outcomes.append(self._build_outcome(action, actor, position, priority, speed, matchup, result))
            pending.extend(result.pending_decisions)
            errors.extend(result.errors)
            snapshot = result.snapshot

        self._end_of_turn(snapshot)
        snapshot.fields["turn"] = snapshot.fields.get("turn", 0) + 1

        return TurnResult(
            outcomes=tuple(outcomes),
            order=order,
            snapshot=snapshot,
            pending_decisions=pending,
            errors=errors,
        )

    def _calc_matchup(self, snapshot, action: ActionSpec, target_side) -> Optional[MatchupResult]:
        attacker = snapshot.get_active(action.side)
        defender = snapshot.get_active(target_side)
        return self.damage_calculator.calc_matchup(
            attacker, defender, action.move, snapshot, defender_side=target_side
        )

    @staticmethod
    def _build_outcome(action, actor, position, priority, speed, matchup, result: EffectResult) -> MoveOutcome:
        damage_range = getattr(matchup, "damage_range", None)
        return MoveOutcome(
            side=action.side,
            actor=mon_name(actor),
            move=action.move,
            order=position,
            moves_first=position == 1,
            priority=priority,
            effective_speed=speed,
            damage_range=tuple(damage_range) if isinstance(damage_range, (list, tuple)) else damage_range,
            damage_percent=getattr(matchup, "description", None),
            ko_chance=getattr(matchup, "ko_chance", None),
            damage_dealt=result.damage_dealt,
            actor_hp_delta=result.actor_hp_delta,
            target_hp_delta=result.target_hp_delta,
            target_removed=result.target_removed,
            actor_removed=result.actor_removed,
            description=result.description,
        )

    @staticmethod
    def _end_of_turn(state: BattleState):
        """Ticks field and side counters down; drops single-turn volatiles."""
        fields = state.fields
        for key in ("weather", "terrain"):
            turns_key = f"{key}_turns"
            if fields.get(key) and fields.get(turns_key, 0) > 0:
                fields[turns_key] -= 1
                if fields[turns_key] == 0:
                    logging.debug(f"{fields[key]} ended")
                    fields[key] = None
        for key in ("trick_room", "gravity"):
            if fields.get(key, 0) > 0:
                fields[key] -= 1

        for side in state.sides.values():
            conditions = side.get("conditions", {})
            for key in ("reflect", "light_screen", "aurora_veil", "tailwind"):
                if conditions.get(key, 0) > 0:
                    conditions[key] -= 1
            for mon in side.get("party", []):
                vols = mon.get("volatiles", [])
                mon["volatiles"] = [v for v in vols if v not in ("flinch", "protect")]


def get_state_log_lines(state: BattleState) -> List[str]:
    lines = []
    fields = state.fields
    for key, side in state.sides.items():
        mon = state.get_active(key)
        label = side.get("name") or key
        if mon:
            lines.append(f"  {label} Active: {mon_name(mon)} ({mon.get('current_hp', 0)}/{mon.get('max_hp', 0)} HP)")
        else:
            lines.append(f"  {label} Active: none")

    field_info = []
    if fields.get("weather"):
        field_info.append(f"Weather: {fields['weather']} ({fields.get('weather_turns', 0)} turns left)")
    if fields.get("terrain"):
        field_info.append(f"Terrain: {fields['terrain']} ({fields.get('terrain_turns', 0)} turns left)")
    if is_speed_reversed(fields):
        field_info.append(f"Trick Room ({fields.get('trick_room', 0)} turns left)")
    for key, side in state.sides.items():
        conditions = side.get("conditions", {})
        effs = []
        hazards = conditions.get("hazards", [])
        if "Stealth Rock" in hazards: effs.append("Stealth Rock")
        if hazards.count("Spikes"): effs.append(f"Spikes(x{hazards.count('Spikes')})")
        if conditions.get("reflect"): effs.append("Reflect")
        if conditions.get("light_screen"): effs.append("Light Screen")
        if conditions.get("aurora_veil"): effs.append("Aurora Veil")
        if conditions.get("tailwind"): effs.append("Tailwind")
        if effs: field_info.append(f"{key.upper()} Field: {', '.join(effs)}")
    if field_info:
        lines.append(f"  Field Effects: {' | '.join(field_info)}")

    for key in state.sides:
        mon = state.get_active(key)
        if not mon:
            continue
        stats = mon.get("stats", {})
        stages = mon.get("stat_stages", {})
        s_str = []
        for s in ["atk", "def", "spa", "spd", "spe"]:
            val = Mechanics.get_effective_stat(mon, s, fields)
            s_str.append(f"{s.upper()}:{val} ({stats.get(s, 0)}{'+' if stages.get(s, 0) >= 0 else ''}{stages.get(s, 0)})")
        lines.append(f"  {key} Stats: {' '.join(s_str)}")
        if mon.get("status"):
            lines.append(f"  {key} Status: {mon['status'].upper()}")
        if mon.get("volatiles"):
            lines.append(f"  {key} Volatiles: {', '.join(mon['volatiles'])}")
    return lines


__all__ = [
    "ActionSpec",
    "BattleState",
    "DamageCalculator",
    "EffectPipeline",
    "EffectResult",
    "MatchupResult",
    "MoveOutcome",
    "OrderDecision",
    "OrderResolver",
    "TurnEngine",
    "TurnResult",
    "get_state_log_lines",
]
