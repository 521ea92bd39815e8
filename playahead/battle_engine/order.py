import logging
import random

from playahead.mechanics import Mechanics
from .state import BattleState, OrderDecision


def is_speed_reversed(fields) -> bool:
    """Trick Room (or any explicit reversal flag) makes slower act first."""
    if not fields:
        return False
    return fields.get("trick_room", 0) > 0 or bool(fields.get("speed_reversed"))


class OrderResolver:
    """
    Decides which of two actions runs first.

    Priority bracket beats speed; equal priority compares effective speed
    (reversed under Trick Room); equal speed is a coin flip drawn from the
    injected rng so tests can seed it.
    """

    def __init__(self, dex, speed_calculator=None, rng=None):
        self.dex = dex
        self.speed_calculator = speed_calculator or Mechanics.get_effective_speed
        self.rng = rng or random.Random()

    def get_move_priority(self, move_name, fmt=None) -> int:
        # Unknown moves default to priority 0
        return self.dex.get_move_priority(move_name, fmt)

    def get_speed(self, state: BattleState, side) -> int:
        mon = state.get_active(side)
        if not mon:
            return 0
        conditions = state.sides.get(side, {}).get("conditions")
        return int(self.speed_calculator(mon, state.fields, conditions, state.format))

    def resolve(self, state: BattleState, side_a, move_a, side_b, move_b) -> OrderDecision:
        prio_a = self.get_move_priority(move_a, state.format)
        prio_b = self.get_move_priority(move_b, state.format)
        speed_a = self.get_speed(state, side_a)
        speed_b = self.get_speed(state, side_b)

        if prio_a != prio_b:
            a_first = prio_a > prio_b
            reason = "priority"
        elif speed_a == speed_b:
            a_first = self.rng.random() < 0.5
            reason = "random"
        elif is_speed_reversed(state.fields):
            a_first = speed_a < speed_b
            reason = "reversed-field"
        else:
            a_first = speed_a > speed_b
            reason = "speed"

        if a_first:
            order = OrderDecision(side_a, side_b, move_a, move_b, prio_a, prio_b, speed_a, speed_b, reason)
        else:
            order = OrderDecision(side_b, side_a, move_b, move_a, prio_b, prio_a, speed_b, speed_a, reason)

        logging.debug(
            f"Move order: {order.first_side} ({order.first_move}, prio {order.first_priority}, "
            f"spe {order.first_speed}) before {order.second_side} ({order.second_move}, "
            f"prio {order.second_priority}, spe {order.second_speed}) by {reason}"
        )
        return order
