"""Error types raised at the planner and timer boundaries."""


class StudyFlowError(Exception):
    """Base class for StudyFlow errors."""


class InvalidInputError(StudyFlowError, ValueError):
    """A caller-supplied value was rejected; no state was changed."""


class InvalidTransitionError(StudyFlowError):
    """A timer command was issued from a state where it does not apply."""

    def __init__(self, command: str, state: str):
        self.command = command
        self.state = state
        super().__init__(f"Cannot {command} while {state}")
