from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
import logging

from playahead.decisions import DecisionKind, PendingDecision
from playahead.errors import (
    InvalidDecisionResolution,
    InvalidSideReference,
    NoActiveCombatant,
    UnknownMove,
)
from playahead.mechanics import Mechanics, STATUS_NAMES
from .damage import MatchupResult
from .state import BattleState, mon_name

SELF_TARGETS = ["self", "adjacentAllyOrSelf", "allySide", "allies"]
UNPROTECTABLE_TARGETS = SELF_TARGETS + ["all", "foeSide"]

SIDE_CONDITIONS = {
    "reflect": ("reflect", 5),
    "lightscreen": ("light_screen", 5),
    "auroraveil": ("aurora_veil", 5),
    "tailwind": ("tailwind", 4),
}

HAZARDS = {
    "stealthrock": "Stealth Rock",
    "spikes": "Spikes",
    "toxicspikes": "Toxic Spikes",
    "stickyweb": "Sticky Web",
}

EFFECT_NAMES = {
    "brn": "burn",
    "par": "paralysis",
    "psn": "poison",
    "tox": "bad poison",
    "slp": "sleep",
    "frz": "freeze",
}


def as_matchup(matchup) -> Optional[MatchupResult]:
    """Accepts a MatchupResult, a calc dict, a (low, high) pair or a number."""
    if matchup is None or isinstance(matchup, MatchupResult):
        return matchup
    if isinstance(matchup, dict):
        dr = matchup.get("damage_range", matchup.get("damageRange"))
        if isinstance(dr, list):
            dr = tuple(dr)
        return MatchupResult(
            dr,
            matchup.get("description", matchup.get("desc")),
            matchup.get("ko_chance", matchup.get("koChance")),
        )
    if isinstance(matchup, (list, tuple)):
        return MatchupResult(tuple(matchup))
    return MatchupResult(matchup)


def describe_effect(effect: Dict) -> str:
    if effect.get("status"):
        return EFFECT_NAMES.get(effect["status"], effect["status"])
    if effect.get("volatileStatus"):
        return effect["volatileStatus"]
    boosts = effect.get("boosts") or {}
    return ", ".join(f"{stat} {amount:+d}" for stat, amount in boosts.items())


@dataclass
class EffectResult:
    snapshot: BattleState
    target_removed: bool = False
    actor_removed: bool = False
    description: str = ""
    pending_decisions: List[PendingDecision] = field(default_factory=list)
    errors: List = field(default_factory=list)
    damage_dealt: int = 0
    actor_hp_delta: int = 0
    target_hp_delta: int = 0


class EffectContext:
    """Scratch state for one move application. Only ever touches its own copy."""

    def __init__(self, state, actor_side, target_side, move_name, move_data, matchup):
        self.state = state
        self.actor_side = actor_side
        self.target_side = target_side
        self.actor = state.get_active(actor_side)
        self.target = state.get_active(target_side)
        self.actor_index = state.sides[actor_side].get("active_index", 0)
        self.target_index = state.sides[target_side].get("active_index", 0)
        self.move_name = move_name
        self.move_data = move_data
        self.matchup = matchup
        self.damage_dealt = 0
        self.target_removed = False
        self.actor_removed = False
        self.blocked = False
        self.log: List[str] = []
        self.decisions: List[PendingDecision] = []
        self.errors: List = []

    @property
    def is_status_move(self) -> bool:
        return self.move_data.get("category") == "Status"

    @property
    def landed(self) -> bool:
        """The move connected: a status move that was not blocked, or a hit that did damage."""
        if self.blocked:
            return False
        return self.is_status_move or self.damage_dealt > 0

    def decide(self, kind, side, prompt, **metadata):
        self.decisions.append(
            PendingDecision(kind=kind, side=side, prompt=prompt, move=self.move_name, metadata=metadata)
        )


@dataclass(frozen=True)
class Stage:
    kind: str
    handler: Callable[[EffectContext], None]
    requires_target: bool = True
    requires_actor: bool = True


class EffectPipeline:
    """
    Applies one move to a copy of a snapshot.

    Stages run in registry order. A stage that needs the target is skipped
    once the target is down (or protected); a stage that needs the actor is
    skipped once recoil has taken the actor down. Anything that depends on
    luck or on a player's choice becomes a PendingDecision instead.
    """

    def __init__(self, dex, stages=None):
        self.dex = dex
        self.stages: List[Stage] = list(stages) if stages is not None else self.default_stages()

    def default_stages(self) -> List[Stage]:
        return [
            Stage("damage", self._apply_damage),
            Stage("recoil", self._apply_recoil, requires_target=False),
            Stage("drain", self._apply_drain, requires_target=False),
            Stage("boosts", self._apply_boosts, requires_target=False),
            Stage("status", self._apply_status, requires_target=False),
            Stage("field", self._apply_field, requires_target=False),
            Stage("secondary", self._apply_secondaries, requires_target=False),
            Stage("item", self._apply_item_triggers),
            Stage("ability", self._apply_ability_triggers),
            Stage("replacement", self._apply_replacements, requires_target=False, requires_actor=False),
        ]

    @property
    def stage_kinds(self) -> List[str]:
        return [s.kind for s in self.stages]

    def register_stage(self, kind, handler, requires_target=True, requires_actor=True, before="replacement"):
        """Adds a stage; by default it runs right before replacements are raised."""
        stage = Stage(kind, handler, requires_target, requires_actor)
        kinds = self.stage_kinds
        if before in kinds:
            self.stages.insert(kinds.index(before), stage)
        else:
            self.stages.append(stage)
        return stage

    def apply(self, state: BattleState, actor_side, target_side, move, matchup=None) -> EffectResult:
        new_state = state.deep_copy()
        errors = []

        for side in (actor_side, target_side):
            if side not in new_state.sides:
                errors.append(InvalidSideReference(f"Unknown side '{side}'"))
        if errors:
            logging.warning(f"apply() called with invalid sides {actor_side!r}/{target_side!r}")
            return EffectResult(new_state, errors=errors)

        for side in (actor_side, target_side):
            if not new_state.get_eligible_active(side):
                errors.append(NoActiveCombatant(f"Side '{side}' has no active combatant"))
        if errors:
            logging.warning(f"apply() called without active combatants for {move}")
            return EffectResult(new_state, errors=errors)

        move_data = self.dex.get_move(move, new_state.format)
        if not move_data:
            logging.warning(f"Move {move} not found in dex ({new_state.format})")
            return EffectResult(new_state, errors=[UnknownMove(f"Move {move} not found")])

        ctx = EffectContext(new_state, actor_side, target_side, move, move_data, as_matchup(matchup))
        actor_hp = ctx.actor["current_hp"]
        target_hp = ctx.target["current_hp"]
        ctx.log.append(f"{mon_name(ctx.actor)} used {move_data.get('name', move)}!")

        if "flinch" in ctx.actor.get("volatiles", []):
            ctx.log.append(f"{mon_name(ctx.actor)} flinched and couldn't move!")
        else:
            for stage in self.stages:
                if stage.requires_actor and ctx.actor_removed:
                    continue
                if stage.requires_target and (ctx.target_removed or ctx.blocked):
                    continue
                stage.handler(ctx)

        return EffectResult(
            snapshot=new_state,
            target_removed=ctx.target_removed,
            actor_removed=ctx.actor_removed,
            description=" ".join(ctx.log),
            pending_decisions=ctx.decisions,
            errors=ctx.errors,
            damage_dealt=ctx.damage_dealt,
            actor_hp_delta=ctx.actor["current_hp"] - actor_hp,
            target_hp_delta=ctx.target["current_hp"] - target_hp,
        )

    # --- stages ---

    def _apply_damage(self, ctx: EffectContext):
        if ctx.is_status_move:
            if "protect" in ctx.target.get("volatiles", []) and ctx.move_data.get("target") not in UNPROTECTABLE_TARGETS:
                ctx.blocked = True
                ctx.log.append(f"{mon_name(ctx.target)} protected itself!")
            return
        if "protect" in ctx.target.get("volatiles", []):
            ctx.blocked = True
            ctx.log.append(f"{mon_name(ctx.target)} protected itself!")
            return
        if ctx.matchup is None:
            return

        per_hit = ctx.matchup.applied_damage
        if per_hit <= 0:
            ctx.log.append(f"It doesn't affect {mon_name(ctx.target)}...")
            return

        hits = 1
        hit_range = None
        multihit = ctx.move_data.get("multihit")
        if isinstance(multihit, int):
            hits = multihit
        elif isinstance(multihit, (list, tuple)) and len(multihit) == 2:
            hit_range = (int(multihit[0]), int(multihit[1]))
            hits = hit_range[0]

        damage = per_hit * hits
        self._deal_damage(ctx.target, damage)
        ctx.damage_dealt = damage
        if hits > 1:
            ctx.log.append(f"It hit {hits} times for {damage} damage.")
        else:
            ctx.log.append(f"It dealt {damage} damage.")

        if ctx.target["current_hp"] == 0:
            ctx.target_removed = True
            ctx.log.append(f"{mon_name(ctx.target)} fainted!")
        elif hit_range and hit_range[0] != hit_range[1]:
            ctx.decide(
                DecisionKind.HIT_COUNT,
                ctx.actor_side,
                f"How many times does {ctx.move_name} hit? ({hit_range[0]}-{hit_range[1]})",
                hit_range=hit_range,
                hits_applied=hits,
                per_hit_damage=per_hit,
                target_side=ctx.target_side,
                target_index=ctx.target_index,
            )

    def _apply_recoil(self, ctx: EffectContext):
        recoil = ctx.move_data.get("recoil")
        if not isinstance(recoil, (list, tuple)) or len(recoil) < 2 or ctx.damage_dealt <= 0:
            return
        if ctx.actor.get("ability") in ["Rock Head", "Magic Guard"]:
            return
        amount = max(1, ctx.damage_dealt * recoil[0] // recoil[1])
        self._deal_damage(ctx.actor, amount)
        ctx.log.append(f"{mon_name(ctx.actor)} took {amount} recoil damage.")
        if ctx.actor["current_hp"] == 0:
            ctx.actor_removed = True
            ctx.log.append(f"{mon_name(ctx.actor)} fainted from recoil!")

    def _apply_drain(self, ctx: EffectContext):
        drain = ctx.move_data.get("drain")
        if not isinstance(drain, (list, tuple)) or len(drain) < 2 or ctx.damage_dealt <= 0:
            return
        amount = max(1, ctx.damage_dealt * drain[0] // drain[1])
        if ctx.actor.get("item") == "Big Root":
            amount = int(amount * 1.3)

        if ctx.target.get("ability") == "Liquid Ooze":
            self._deal_damage(ctx.actor, amount)
            ctx.log.append(f"{mon_name(ctx.actor)} sucked up the liquid ooze! (-{amount})")
            if ctx.actor["current_hp"] == 0:
                ctx.actor_removed = True
                ctx.log.append(f"{mon_name(ctx.actor)} fainted!")
            return

        healed = self._heal(ctx.actor, amount)
        ctx.log.append(f"{mon_name(ctx.actor)} restored {healed} HP.")

    def _apply_boosts(self, ctx: EffectContext):
        boosts = ctx.move_data.get("boosts")
        if boosts:
            if ctx.move_data.get("target") in SELF_TARGETS:
                Mechanics.apply_boosts(ctx.actor, boosts, ctx.log)
            elif not (ctx.target_removed or ctx.blocked):
                Mechanics.apply_boosts(ctx.target, boosts, ctx.log)

        self_boosts = (ctx.move_data.get("self") or {}).get("boosts")
        if self_boosts and ctx.landed:
            Mechanics.apply_boosts(ctx.actor, self_boosts, ctx.log)

    def _apply_status(self, ctx: EffectContext):
        to_self = ctx.move_data.get("target") in SELF_TARGETS
        if not to_self and (ctx.target_removed or ctx.blocked):
            return
        mon = ctx.actor if to_self else ctx.target
        effect = {
            k: ctx.move_data[k] for k in ("status", "volatileStatus") if ctx.move_data.get(k)
        }
        if effect:
            self._apply_effect(ctx.state, mon, effect, ctx.log, during_turn=True)

    def _apply_field(self, ctx: EffectContext):
        fields = ctx.state.fields
        md = ctx.move_data

        weather = md.get("weather")
        if weather:
            if fields.get("weather") == weather:
                ctx.log.append("But it failed!")
            else:
                fields["weather"] = weather
                fields["weather_turns"] = 5
                ctx.log.append(f"The weather became {weather}!")

        terrain = md.get("terrain")
        if terrain:
            if fields.get("terrain") == terrain:
                ctx.log.append("But it failed!")
            else:
                fields["terrain"] = terrain
                fields["terrain_turns"] = 5
                ctx.log.append(f"The battlefield became {terrain}!")

        pseudo = md.get("pseudoWeather")
        if pseudo == "trickroom":
            if fields.get("trick_room", 0) > 0:
                fields["trick_room"] = 0
                ctx.log.append("The twisted dimensions returned to normal!")
            else:
                fields["trick_room"] = 5
                ctx.log.append(f"{mon_name(ctx.actor)} twisted the dimensions!")
        elif pseudo:
            fields[pseudo] = 5
            ctx.log.append(f"{pseudo} took effect!")

        condition = md.get("sideCondition")
        if condition in SIDE_CONDITIONS:
            key, turns = SIDE_CONDITIONS[condition]
            conditions = ctx.state.sides[ctx.actor_side]["conditions"]
            if conditions.get(key, 0) > 0:
                ctx.log.append("But it failed!")
            else:
                conditions[key] = turns
                ctx.log.append(f"{md.get('name', condition)} raised {ctx.actor_side}'s team!")
        elif condition in HAZARDS:
            hazards = ctx.state.sides[ctx.target_side]["conditions"].setdefault("hazards", [])
            hazards.append(HAZARDS[condition])
            ctx.log.append(f"{HAZARDS[condition]} were scattered around {ctx.target_side}'s side!")

    def _apply_secondaries(self, ctx: EffectContext):
        if not ctx.landed:
            return
        secondaries = []
        raw_secs = ctx.move_data.get("secondaries")
        if isinstance(raw_secs, list):
            secondaries.extend(raw_secs)
        raw_sec = ctx.move_data.get("secondary")
        if isinstance(raw_sec, list):
            secondaries.extend(raw_sec)
        elif isinstance(raw_sec, dict):
            secondaries.append(raw_sec)

        for sec in secondaries:
            to_self = "self" in sec
            effect = dict(sec["self"]) if to_self else {
                k: sec[k] for k in ("status", "volatileStatus", "boosts") if sec.get(k)
            }
            if not effect:
                continue
            side = ctx.actor_side if to_self else ctx.target_side
            index = ctx.actor_index if to_self else ctx.target_index
            mon = ctx.actor if to_self else ctx.target

            if not to_self:
                if ctx.target_removed or ctx.target.get("ability") == "Shield Dust":
                    continue
                if effect.get("status") and (
                    mon.get("status") or Mechanics.is_status_immune(mon, effect["status"], ctx.state.fields)
                ):
                    continue

            chance = sec.get("chance", 100)
            if chance >= 100:
                self._apply_effect(ctx.state, mon, effect, ctx.log, during_turn=True)
                continue

            effect_name = describe_effect(effect)
            ctx.decide(
                DecisionKind.PROBABILISTIC_EFFECT,
                ctx.actor_side,
                f"Does {ctx.move_name} cause {effect_name} on {mon_name(mon)}? ({chance}% chance)",
                probability=chance / 100,
                effect_name=effect_name,
                effect=effect,
                target_side=side,
                target_index=index,
            )

    def _apply_item_triggers(self, ctx: EffectContext):
        item_name = ctx.target.get("item")
        if not item_name or ctx.damage_dealt <= 0:
            return
        item = self.dex.get_item(item_name, ctx.state.format)
        if not item or not item.get("isBerry"):
            return
        num, den = item.get("threshold", [1, 2])
        hp, max_hp = ctx.target["current_hp"], ctx.target.get("max_hp", 1)
        if hp <= 0 or hp * den > max_hp * num:
            return
        ctx.decide(
            DecisionKind.ITEM_ACTIVATION,
            ctx.target_side,
            f"Does {mon_name(ctx.target)}'s {item_name} activate?",
            trigger_name=item_name,
            effect={"heal": item.get("heal"), "healFlat": item.get("healFlat"), "consume": True},
            target_side=ctx.target_side,
            target_index=ctx.target_index,
        )

    def _apply_ability_triggers(self, ctx: EffectContext):
        if not (ctx.move_data.get("flags") or {}).get("contact") or ctx.damage_dealt <= 0:
            return
        ability_name = ctx.target.get("ability")
        ability = self.dex.get_ability(ability_name, ctx.state.format) if ability_name else None
        on_contact = (ability or {}).get("onContact")
        if not on_contact:
            return
        status = on_contact.get("status")
        if status and Mechanics.is_status_immune(ctx.actor, status, ctx.state.fields):
            return
        chance = on_contact.get("chance", 100)
        effect = {"status": status}
        ctx.decide(
            DecisionKind.ABILITY_TRIGGER,
            ctx.target_side,
            f"Does {mon_name(ctx.target)}'s {ability_name} cause {describe_effect(effect)} on "
            f"{mon_name(ctx.actor)}? ({chance}% chance)",
            trigger_name=ability_name,
            probability=chance / 100,
            effect=effect,
            target_side=ctx.actor_side,
            target_index=ctx.actor_index,
        )

    def _apply_replacements(self, ctx: EffectContext):
        state = ctx.state
        md = ctx.move_data
        requests = []
        if ctx.target_removed:
            requests.append((ctx.target_side, ctx.target, "fainted"))
        if ctx.actor_removed:
            requests.append((ctx.actor_side, ctx.actor, "fainted"))
        elif md.get("selfSwitch") and ctx.landed:
            requests.append((ctx.actor_side, ctx.actor, "switched out"))
        if md.get("forceSwitch") and ctx.landed and not ctx.target_removed:
            requests.append((ctx.target_side, ctx.target, "was dragged out"))

        for side, mon, reason in requests:
            candidates = state.bench_indices(side)
            if not candidates:
                continue
            ctx.decide(
                DecisionKind.REPLACEMENT,
                side,
                f"{mon_name(mon)} {reason}. Which Pokemon does {side} send in?",
                candidates=candidates,
                reason=reason,
            )

    # --- helpers ---

    @staticmethod
    def _deal_damage(mon, amount) -> int:
        before = mon.get("current_hp", 0)
        mon["current_hp"] = max(0, before - amount)
        return before - mon["current_hp"]

    @staticmethod
    def _heal(mon, amount) -> int:
        before = mon.get("current_hp", 0)
        mon["current_hp"] = min(mon.get("max_hp", before), before + amount)
        return mon["current_hp"] - before

    def _apply_effect(self, state, mon, effect, log, during_turn=False):
        name = mon_name(mon)
        status = effect.get("status")
        if status:
            if mon.get("status"):
                log.append(f"{name} already has a status. But it failed!")
            elif Mechanics.is_status_immune(mon, status, state.fields):
                log.append(f"{name} is unaffected by {EFFECT_NAMES.get(status, status)}.")
            else:
                mon["status"] = status
                if status == "slp":
                    mon["status_counter"] = 2
                log.append(f"{name} was {STATUS_NAMES.get(status, status)}!")

        volatile = effect.get("volatileStatus")
        if volatile:
            volatiles = mon.setdefault("volatiles", [])
            if volatile == "flinch" and not during_turn:
                log.append(f"{name} would have flinched.")
            elif volatile == "protect":
                volatiles.append(volatile)
                log.append(f"{name} protected itself!")
            elif volatile not in volatiles:
                volatiles.append(volatile)
                log.append(f"{name} became {volatile}!")

        if effect.get("boosts"):
            Mechanics.apply_boosts(mon, effect["boosts"], log)

        heal = effect.get("heal")
        heal_flat = effect.get("healFlat")
        if heal or heal_flat:
            amount = heal_flat or max(1, mon.get("max_hp", 1) * heal[0] // heal[1])
            healed = self._heal(mon, amount)
            log.append(f"{name} restored {healed} HP.")
        if effect.get("consume") and mon.get("item"):
            log.append(f"{name}'s {mon['item']} was consumed.")
            mon["item"] = None

    # --- decision resolution ---

    def resolve(self, state: BattleState, decision: PendingDecision, resolution) -> EffectResult:
        """
        Makes a pending decision concrete on a copy of `state`.
        Raises InvalidDecisionResolution when `resolution` does not fit the decision.
        """
        new_state = state.deep_copy()
        kind = DecisionKind(decision.kind)
        meta = decision.metadata
        log: List[str] = []
        follow_up: List[PendingDecision] = []
        target_removed = False

        if kind == DecisionKind.REPLACEMENT:
            side = new_state.get_side(decision.side)
            if side is None:
                raise InvalidSideReference(f"Unknown side '{decision.side}'")
            if resolution not in decision.candidates:
                raise InvalidDecisionResolution(
                    f"{resolution!r} is not one of {decision.candidates}"
                )
            incoming = side["party"][resolution]
            if incoming.get("current_hp", 0) <= 0:
                raise InvalidDecisionResolution(f"{mon_name(incoming)} has fainted")
            outgoing = new_state.get_active(decision.side)
            if outgoing:
                outgoing["stat_stages"] = {}
                outgoing["volatiles"] = []
            side["active_index"] = resolution
            log.append(f"{decision.side} sent out {mon_name(incoming)}!")

        elif kind in (DecisionKind.PROBABILISTIC_EFFECT, DecisionKind.ABILITY_TRIGGER, DecisionKind.ITEM_ACTIVATION):
            if not isinstance(resolution, bool):
                raise InvalidDecisionResolution(f"Expected True/False, got {resolution!r}")
            mon = self._decision_target(new_state, meta)
            if resolution and mon and mon.get("current_hp", 0) > 0:
                self._apply_effect(new_state, mon, meta.get("effect", {}), log)
            elif resolution:
                log.append("But there was no target.")
            else:
                log.append(f"{meta.get('trigger_name') or meta.get('effect_name') or kind.value} did not happen.")

        elif kind == DecisionKind.HIT_COUNT:
            low, high = meta["hit_range"]
            if isinstance(resolution, bool) or not isinstance(resolution, int) or not low <= resolution <= high:
                raise InvalidDecisionResolution(f"Hit count must be within {low}-{high}")
            mon = self._decision_target(new_state, meta)
            extra = resolution - meta.get("hits_applied", low)
            if extra > 0 and mon and mon.get("current_hp", 0) > 0:
                damage = extra * meta.get("per_hit_damage", 0)
                self._deal_damage(mon, damage)
                log.append(f"Hit {resolution} times in total (+{damage} damage).")
                if mon["current_hp"] == 0:
                    target_removed = True
                    log.append(f"{mon_name(mon)} fainted!")
                    side = meta.get("target_side")
                    candidates = new_state.bench_indices(side)
                    if candidates and new_state.get_active(side) is mon:
                        follow_up.append(
                            PendingDecision(
                                DecisionKind.REPLACEMENT,
                                side,
                                f"{mon_name(mon)} fainted. Which Pokemon does {side} send in?",
                                move=decision.move,
                                metadata={"candidates": candidates, "reason": "fainted"},
                            )
                        )
            else:
                log.append(f"Hit {resolution} times in total.")

        return EffectResult(
            snapshot=new_state,
            target_removed=target_removed,
            description=" ".join(log),
            pending_decisions=follow_up,
        )

    @staticmethod
    def _decision_target(state, meta) -> Optional[Dict]:
        side = state.get_side(meta.get("target_side"))
        if side is None:
            return None
        index = meta.get("target_index", side.get("active_index", 0))
        party = side.get("party", [])
        return party[index] if 0 <= index < len(party) else None
