from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple
import copy
import logging
import random

from playahead.battle_engine import BattleState, TurnEngine, TurnResult
from playahead.decisions import DecisionQueue, PendingDecision
from playahead.errors import InvalidStateTransition, PlayAheadError
from playahead.state_parser import parse_snapshot


class SessionPhase(str, Enum):
    INACTIVE = "inactive"
    SELECTING = "selecting"
    READY = "ready"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class TurnRecord:
    turn: int
    player_move: str
    opponent_move: str
    result: TurnResult
    resolutions: Tuple[str, ...] = ()


def copy_turn_result(result: Optional[TurnResult]) -> Optional[TurnResult]:
    """Detached copy of a turn result; the snapshot and decisions are not shared."""
    if result is None:
        return None
    return replace(
        result,
        snapshot=result.snapshot.deep_copy() if result.snapshot is not None else None,
        pending_decisions=copy.deepcopy(result.pending_decisions),
        errors=list(result.errors),
    )


class SimulationSession:
    """
    Play-ahead state machine for one battle.

    inactive -> selecting (start) -> ready (both actions chosen) -> resolved
    (execute) -> selecting (advance, once every decision is resolved).
    reset() goes back to inactive from anywhere.

    Every operation returns True when accepted. A rejected operation logs a
    warning, returns False and leaves the session untouched.
    """

    def __init__(self, battle_id=None, engine: TurnEngine = None, dex=None,
                 damage_calculator=None, calc_client=None, seed=None):
        self.battle_id = battle_id
        self.rng = random.Random(seed)
        self.engine = engine or TurnEngine(
            dex=dex, damage_calculator=damage_calculator, calc_client=calc_client, rng=self.rng
        )
        self.player_key = "p1"
        self.opponent_key = "p2"
        self._clear()

    def _clear(self):
        self._phase = SessionPhase.INACTIVE
        self._snapshot: Optional[BattleState] = None
        self._turn_result: Optional[TurnResult] = None
        self._moves: Dict[str, Optional[str]] = {}
        self._resolutions: List[str] = []
        self.simulated_turns = 0
        self.decisions = DecisionQueue()
        self._history: List[TurnRecord] = []
        self._errors: List[PlayAheadError] = []

    def _reject(self, message) -> bool:
        err = InvalidStateTransition(message)
        logging.warning(f"[{self.battle_id}] {err}")
        return False

    # --- accessors ---

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def active(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> Optional[BattleState]:
        return self._snapshot.deep_copy() if self._snapshot else None

    @property
    def turn_result(self) -> Optional[TurnResult]:
        return copy_turn_result(self._turn_result)

    @property
    def player_move(self) -> Optional[str]:
        return self._moves.get(self.player_key)

    @property
    def opponent_move(self) -> Optional[str]:
        return self._moves.get(self.opponent_key)

    @property
    def pending_count(self) -> int:
        return len(self.decisions)

    @property
    def pending_decisions(self) -> List[PendingDecision]:
        return copy.deepcopy(list(self.decisions))

    @property
    def history(self) -> Tuple[TurnRecord, ...]:
        return tuple(replace(r, result=copy_turn_result(r.result)) for r in self._history)

    @property
    def errors(self) -> List[PlayAheadError]:
        return list(self._errors)

    # --- operations ---

    def start(self, live_snapshot, player_key="p1", opponent_key="p2") -> bool:
        if self.active:
            return self._reject("Session already active; reset() first")
        try:
            snapshot = parse_snapshot(live_snapshot)
        except (TypeError, ValueError, AttributeError) as e:
            return self._reject(f"Unreadable snapshot: {e}")
        for key in (player_key, opponent_key):
            if key not in snapshot.sides:
                return self._reject(f"Snapshot has no side '{key}'")

        self._snapshot = snapshot.deep_copy()
        self.player_key = player_key
        self.opponent_key = opponent_key
        self.battle_id = self.battle_id or snapshot.battle_id
        self.simulated_turns = 0
        self._moves = {player_key: None, opponent_key: None}
        self._phase = SessionPhase.SELECTING
        logging.info(f"[{self.battle_id}] Simulation started at turn {snapshot.fields.get('turn', 0)}")
        return True

    def _side_key(self, side) -> Optional[str]:
        if side == "player":
            return self.player_key
        if side == "opponent":
            return self.opponent_key
        if side in (self.player_key, self.opponent_key):
            return side
        return None

    def select_action(self, side, move) -> bool:
        if self._phase not in (SessionPhase.SELECTING, SessionPhase.READY):
            return self._reject(f"Cannot select an action while {self._phase.value}")
        key = self._side_key(side)
        if key is None:
            return self._reject(f"Unknown side '{side}'")
        if not move:
            return self._reject("No move given")

        self._moves[key] = move
        if all(self._moves.get(k) for k in (self.player_key, self.opponent_key)):
            self._phase = SessionPhase.READY
        return True

    def execute(self) -> bool:
        if self._phase != SessionPhase.READY:
            return self._reject(f"Cannot execute while {self._phase.value}; both actions must be selected")

        result = self.engine.run(
            self._snapshot, self.player_key, self.opponent_key, self.player_move, self.opponent_move
        )
        self._turn_result = result
        if result.snapshot is not None:
            self._snapshot = result.snapshot.deep_copy()
        self.decisions.extend(result.pending_decisions)
        self._errors.extend(result.errors)
        self._resolutions = []
        self._phase = SessionPhase.RESOLVED

        for outcome in result.outcomes:
            logging.debug(f"[{self.battle_id}] {outcome.description}")
        if result.errors:
            logging.warning(f"[{self.battle_id}] Turn finished with errors: {[str(e) for e in result.errors]}")
        return True

    def resolve_decision(self, index, resolution) -> bool:
        if self._phase != SessionPhase.RESOLVED:
            return self._reject(f"No decisions to resolve while {self._phase.value}")
        if not isinstance(index, int) or not 0 <= index < len(self.decisions):
            return self._reject(f"No pending decision at index {index}")

        decision = self.decisions[index]
        try:
            outcome = self.engine.pipeline.resolve(self._snapshot, decision, resolution)
        except PlayAheadError as e:
            logging.warning(f"[{self.battle_id}] Rejected resolution for {decision.kind.value}: {e}")
            return False

        self.decisions.resolve(index)
        self._snapshot = outcome.snapshot
        self.decisions.extend(outcome.pending_decisions)
        if outcome.description:
            self._resolutions.append(outcome.description)
        return True

    def advance(self) -> bool:
        if self._phase != SessionPhase.RESOLVED:
            return self._reject(f"Cannot advance while {self._phase.value}")
        if not self.decisions.is_empty():
            return self._reject(f"{len(self.decisions)} decision(s) still pending")

        self._history.append(
            TurnRecord(
                turn=self.simulated_turns + 1,
                player_move=self.player_move,
                opponent_move=self.opponent_move,
                result=copy_turn_result(self._turn_result),
                resolutions=tuple(self._resolutions),
            )
        )
        self.simulated_turns += 1
        self._moves = {self.player_key: None, self.opponent_key: None}
        self._turn_result = None
        self._resolutions = []
        self._phase = SessionPhase.SELECTING
        return True

    def reset(self) -> bool:
        if not self.active:
            return self._reject("Session is not active")
        logging.info(f"[{self.battle_id}] Simulation reset after {self.simulated_turns} turn(s)")
        self._clear()
        return True


class SessionRegistry:
    """In-memory battle_id -> SimulationSession map. Nothing is persisted."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or SimulationSession
        self._sessions: Dict[str, SimulationSession] = {}

    def get(self, battle_id) -> Optional[SimulationSession]:
        return self._sessions.get(battle_id)

    def get_or_create(self, battle_id, **kwargs) -> SimulationSession:
        session = self._sessions.get(battle_id)
        if session is None:
            session = self.session_factory(battle_id=battle_id, **kwargs)
            self._sessions[battle_id] = session
        return session

    def destroy(self, battle_ids) -> int:
        """Drops one id or a list of ids; returns how many sessions were removed."""
        if isinstance(battle_ids, str):
            battle_ids = [battle_ids]
        removed = 0
        for battle_id in battle_ids:
            if self._sessions.pop(battle_id, None) is not None:
                removed += 1
        return removed

    def __contains__(self, battle_id):
        return battle_id in self._sessions

    def __len__(self):
        return len(self._sessions)
