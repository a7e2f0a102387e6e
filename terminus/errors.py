"""
Exception types for the Terminus narrative engine.

Only content loading and driver misuse raise to callers. Validation failures
inside the persistence layer are converted to ``None`` results, and condition
gaps are evaluated fail-closed, so neither ever interrupts a play session.
"""


class TerminusError(Exception):
    """Base class for all engine errors"""


class ContentIntegrityError(TerminusError):
    """Authored content is malformed (raised by the loader, never during play)"""


class StateValidationError(TerminusError):
    """Persisted data does not match the save schema"""


class UnknownNodeError(TerminusError):
    """A node id could not be resolved in any loaded graph"""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node {node_id} not found")


class ChoiceUnavailableError(TerminusError):
    """The selected choice is missing, hidden, or locked for the current state"""

    def __init__(self, choice_id: str, reason: str):
        self.choice_id = choice_id
        self.reason = reason
        super().__init__(f"Choice {choice_id} unavailable: {reason}")
