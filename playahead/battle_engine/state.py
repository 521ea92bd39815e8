from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import copy


def default_fields() -> Dict:
    return {
        "weather": None,
        "weather_turns": 0,
        "terrain": None,
        "terrain_turns": 0,
        "trick_room": 0,
        "gravity": 0,
        "turn": 0,
    }


def default_side_conditions() -> Dict:
    return {
        "reflect": 0,
        "light_screen": 0,
        "aurora_veil": 0,
        "tailwind": 0,
        "hazards": [],
    }


def mon_name(mon: Optional[Dict]) -> str:
    if not mon:
        return "???"
    return mon.get("name") or mon.get("species") or "???"


@dataclass
class BattleState:
    """
    One snapshot of a 1v1 battle.

    `sides` maps a side key ("p1", "p2", ...) to a side dict:
    {"name", "party": [mon dicts], "active_index", "conditions"}.
    Snapshots handed around by the engine are never mutated once produced;
    anything that changes state works on `deep_copy()`.
    """

    sides: Dict[str, Dict]
    fields: Dict = field(default_factory=default_fields)
    format: str = "gen9"
    battle_id: Optional[str] = None

    def __post_init__(self):
        # Ensure fields has defaults if some keys are missing
        if not self.fields:
            self.fields = default_fields()
        else:
            for k, v in default_fields().items():
                self.fields.setdefault(k, v)

        for side in self.sides.values():
            side.setdefault("party", [])
            side.setdefault("active_index", 0)
            conditions = side.setdefault("conditions", {})
            for k, v in default_side_conditions().items():
                conditions.setdefault(k, v)
            for mon in side["party"]:
                mon.setdefault("stat_stages", {})
                mon.setdefault("volatiles", [])
                mon.setdefault("status", None)
                if "current_hp" not in mon:
                    mon["current_hp"] = mon.get("max_hp", 0)

    def deep_copy(self):
        return copy.deepcopy(self)

    def get_side(self, key) -> Optional[Dict]:
        return self.sides.get(key)

    def get_active(self, key) -> Optional[Dict]:
        """Returns the active combatant of a side, fainted or not."""
        side = self.sides.get(key)
        if not side:
            return None
        party = side.get("party", [])
        idx = side.get("active_index", 0)
        if idx is None or not 0 <= idx < len(party):
            return None
        return party[idx]

    def get_eligible_active(self, key) -> Optional[Dict]:
        mon = self.get_active(key)
        if mon and mon.get("current_hp", 0) > 0:
            return mon
        return None

    def bench_indices(self, key) -> List[int]:
        """Party indices of healthy members that could replace the active one."""
        side = self.sides.get(key)
        if not side:
            return []
        active_idx = side.get("active_index", 0)
        return [
            i
            for i, m in enumerate(side.get("party", []))
            if i != active_idx and m.get("current_hp", 0) > 0
        ]

    def get_hash(self):
        """Returns a stable hash for the core state variables."""

        def get_mon_hash(m):
            return (
                m.get("species"),
                m.get("current_hp"),
                m.get("status"),
                tuple(sorted(m.get("stat_stages", {}).items())),
                tuple(sorted(m.get("volatiles", []))),
            )

        sides_h = tuple(
            (
                key,
                side.get("active_index"),
                tuple(get_mon_hash(m) for m in side.get("party", [])),
            )
            for key, side in sorted(self.sides.items())
        )
        f = self.fields
        fields_h = (
            f.get("weather"),
            f.get("weather_turns"),
            f.get("terrain"),
            f.get("terrain_turns"),
            f.get("trick_room"),
            f.get("turn"),
        )
        return hash((sides_h, fields_h))


@dataclass(frozen=True)
class ActionSpec:
    side: str
    move: str


@dataclass(frozen=True)
class OrderDecision:
    first_side: str
    second_side: str
    first_move: str
    second_move: str
    first_priority: int
    second_priority: int
    first_speed: int
    second_speed: int
    reason: str  # "priority" | "speed" | "reversed-field" | "random"


@dataclass(frozen=True)
class MoveOutcome:
    side: str
    actor: str
    move: str
    order: int
    moves_first: bool
    priority: int
    effective_speed: int
    damage_range: Optional[Tuple[int, int]] = None
    damage_percent: Optional[str] = None
    ko_chance: Optional[str] = None
    damage_dealt: int = 0
    actor_hp_delta: int = 0
    target_hp_delta: int = 0
    target_removed: bool = False
    actor_removed: bool = False
    description: str = ""


@dataclass
class TurnResult:
    outcomes: Tuple[MoveOutcome, ...] = ()
    order: Optional[OrderDecision] = None
    snapshot: Optional[BattleState] = None
    pending_decisions: List = field(default_factory=list)
    errors: List = field(default_factory=list)

    @property
    def faulted(self) -> bool:
        return bool(self.errors)

    @property
    def target_removed(self) -> bool:
        return any(o.target_removed for o in self.outcomes)

    @property
    def actor_removed(self) -> bool:
        return any(o.actor_removed for o in self.outcomes)
