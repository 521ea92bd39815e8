from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional


class DecisionKind(str, Enum):
    REPLACEMENT = "replacement-selection"
    PROBABILISTIC_EFFECT = "probabilistic-effect"
    HIT_COUNT = "hit-count-selection"
    ITEM_ACTIVATION = "item-activation"
    ABILITY_TRIGGER = "ability-trigger"


@dataclass
class PendingDecision:
    """
    A branch point the engine cannot settle on its own.

    metadata keys by kind:
      replacement-selection: candidates (party indices)
      probabilistic-effect:  probability, effect_name, effect, target_side
      hit-count-selection:   hit_range, hits_applied, per_hit_damage, target_side
      item-activation:       trigger_name, effect
      ability-trigger:       trigger_name, probability, effect, target_side
    """

    kind: DecisionKind
    side: str
    prompt: str
    move: Optional[str] = None
    metadata: Dict = field(default_factory=dict)

    @property
    def candidates(self) -> List[int]:
        return list(self.metadata.get("candidates", []))

    @property
    def probability(self) -> Optional[float]:
        return self.metadata.get("probability")

    @property
    def hit_range(self):
        return self.metadata.get("hit_range")

    @property
    def trigger_name(self) -> Optional[str]:
        return self.metadata.get("trigger_name")


class DecisionQueue:
    """FIFO of unresolved decisions. Nothing may advance while it is non-empty."""

    def __init__(self, decisions=None):
        self._items: List[PendingDecision] = list(decisions or [])

    def enqueue(self, decision: PendingDecision):
        self._items.append(decision)

    def extend(self, decisions):
        for d in decisions:
            self.enqueue(d)

    def peek(self) -> Optional[PendingDecision]:
        return self._items[0] if self._items else None

    def resolve(self, index: int) -> PendingDecision:
        """
        Removes and returns the entry at `index`; later entries shift down.

        The queue only tracks what is outstanding. Applying a chosen outcome
        is SimulationSession.resolve_decision(index, resolution), which checks
        the resolution against the snapshot first and only then pops the entry.
        """
        if not 0 <= index < len(self._items):
            raise IndexError(f"No pending decision at index {index}")
        return self._items.pop(index)

    def clear(self):
        self._items.clear()

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self):
        return len(self._items)

    def __iter__(self) -> Iterator[PendingDecision]:
        return iter(list(self._items))

    def __getitem__(self, index) -> PendingDecision:
        return self._items[index]
