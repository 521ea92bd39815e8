class PlayAheadError(Exception):
    """Base class for everything the simulation records or rejects."""

    kind = "error"

    def __str__(self):
        msg = super().__str__()
        return f"{self.kind}: {msg}" if msg else self.kind


class InvalidSideReference(PlayAheadError):
    kind = "invalid-side"


class NoActiveCombatant(PlayAheadError):
    kind = "no-active-combatant"


class UnknownMove(PlayAheadError):
    kind = "unknown-move"


class InvalidStateTransition(PlayAheadError):
    kind = "invalid-transition"


class InvalidDecisionResolution(PlayAheadError):
    kind = "invalid-resolution"
