from .plan import ActionVerb, ActionPhase, PlannedAction, Plan
from .execution import ExecutionOutcome, ApplyStatus, ExecutionResult, ExecutionReport, derive_status

__all__ = [
    "ActionVerb",
    "ActionPhase",
    "PlannedAction",
    "Plan",
    "ExecutionOutcome",
    "ApplyStatus",
    "ExecutionResult",
    "ExecutionReport",
    "derive_status",
]
