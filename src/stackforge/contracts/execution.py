"""Pydantic models for the execution report (versioned, stable, explicit)."""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from ..ingest.models import ResourceRef
from .plan import ActionVerb


class ExecutionOutcome(str, Enum):
    """Fate of one planned action."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped-due-to-dependency-failure"
    NOT_STARTED = "not-started"


class ApplyStatus(str, Enum):
    """Terminal status of an execution."""
    FULLY_APPLIED = "fully-applied"
    PARTIALLY_APPLIED = "partially-applied"
    FAILED_NO_CHANGES = "failed-no-changes-applied"


class ExecutionResult(BaseModel):
    """Outcome of one planned action."""
    ref: ResourceRef = Field(..., description="Resource the action applied to")
    verb: ActionVerb = Field(..., description="Planned verb")
    outcome: ExecutionOutcome = Field(..., description="succeeded, failed, skipped or not-started")
    error: Optional[str] = Field(default=None, description="Error message for failed actions, cause for skipped ones")
    remote_id: Optional[str] = Field(default=None, description="Remote identifier after a successful create/update")
    previous_remote_id: Optional[str] = Field(
        default=None,
        description="Old remote identifier when an update found the object gone and re-created it"
    )
    replacement: bool = Field(default=False, description="Half of a replacement pair")

    class Config:
        """Pydantic config."""
        use_enum_values = True

    @property
    def changed_remote(self) -> bool:
        """True when this result mutated something remotely."""
        return self.outcome == ExecutionOutcome.SUCCEEDED.value and self.verb != ActionVerb.NO_OP.value


class ExecutionReport(BaseModel):
    """Every planned action with its outcome, plus a terminal status."""
    version: str = Field(default="1.0.0", description="Report contract version")
    results: List[ExecutionResult] = Field(default_factory=list, description="One result per planned action, plan order")
    status: ApplyStatus = Field(..., description="fully-applied, partially-applied or failed-no-changes-applied")
    cancelled: bool = Field(default=False, description="Caller requested cancellation before the plan finished")

    class Config:
        """Pydantic config."""
        use_enum_values = True

    @classmethod
    def from_results(cls, results: List[ExecutionResult], cancelled: bool = False) -> "ExecutionReport":
        return cls(results=results, status=derive_status(results), cancelled=cancelled)

    def outcome_of(self, ref: ResourceRef, verb: Optional[str] = None) -> Optional[str]:
        """Outcome for a ref; pass verb to pick one half of a replacement."""
        for result in self.results:
            if result.ref == ref and (verb is None or result.verb == verb):
                return result.outcome
        return None

    def by_outcome(self, outcome: ExecutionOutcome) -> List[ExecutionResult]:
        return [result for result in self.results if result.outcome == outcome.value]

    def summary(self) -> Dict[str, int]:
        counts = {outcome.value: 0 for outcome in ExecutionOutcome}
        for result in self.results:
            counts[result.outcome] += 1
        return counts


def derive_status(results: List[ExecutionResult]) -> ApplyStatus:
    """
    fully-applied when every action succeeded; partially-applied when at least
    one remote change landed but something else did not; otherwise
    failed-no-changes-applied.
    """
    if all(result.outcome == ExecutionOutcome.SUCCEEDED.value for result in results):
        return ApplyStatus.FULLY_APPLIED
    if any(result.changed_remote for result in results):
        return ApplyStatus.PARTIALLY_APPLIED
    return ApplyStatus.FAILED_NO_CHANGES
