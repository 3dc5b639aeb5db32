"""
Error taxonomy for the matchmaking engine.

Engine-level calls raise these typed failures to the caller. Batch runs
capture them as data inside the BatchResult instead of aborting.
"""


class MatchmakingError(Exception):
    """Base class for all matchmaking failures."""


class NotFoundError(MatchmakingError, KeyError):
    """A requested actor or weight profile does not exist."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep messages readable
        return str(self.args[0]) if self.args else ""


class ValidationError(MatchmakingError, ValueError):
    """Malformed weight profile, unknown filter value, or self-pair request."""


class ComputationError(MatchmakingError, RuntimeError):
    """Unexpected failure while computing, e.g. engine used before initialize()."""
