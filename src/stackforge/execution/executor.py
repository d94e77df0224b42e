"""Apply a plan layer by layer through a provider adapter, recording state as it goes."""

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional, Tuple
from ..contracts.execution import ExecutionOutcome, ExecutionResult, ExecutionReport
from ..contracts.plan import ActionVerb, PlannedAction, Plan
from ..planning.fingerprint import fingerprint_attributes
from ..provider.base import ProviderAdapter
from ..state.models import StateEntry, utc_now
from ..state.store import StateStore
from ..utils.errors import NotFoundError, OutputNotAvailableError, ProviderError, StateStoreError
from ..utils.logging import get_logger
from .interpolate import interpolate_attributes, state_resolver

logger = get_logger("execution.executor")

DEFAULT_MAX_CONCURRENCY = 4


class Executor:
    """
    Runs plan layers strictly in order; actions inside a layer run concurrently.

    A failed action never aborts the run: everything that transitively
    requires it is reported skipped and is not attempted, while independent
    branches carry on. There are no automatic retries.
    """

    def __init__(
        self,
        provider: ProviderAdapter,
        state_store: StateStore,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    ):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self.provider = provider
        self.state_store = state_store
        self.max_concurrency = max_concurrency
        self._resolve = state_resolver(state_store)

    def execute(self, plan: Plan, cancel_event: Optional[threading.Event] = None) -> ExecutionReport:
        """
        Execute every planned action and report each outcome.

        Args:
            plan: Plan from build_plan()
            cancel_event: When set, in-flight actions finish and no new layer starts

        Returns:
            ExecutionReport listing every planned action in plan order

        Raises:
            StateStoreError: If state cannot be written; the partial report is on error.report
        """
        results: Dict[str, ExecutionResult] = {}
        blocked_by: Dict[str, str] = {}
        layers = plan.layers()
        cancelled = False
        state_failure: Optional[StateStoreError] = None

        with ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="stackforge-apply") as pool:
            for number, layer in enumerate(layers, 1):
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    logger.warning(f"Cancellation requested; not starting layer {number}/{len(layers)}")
                    break

                runnable: List[PlannedAction] = []
                for action in layer:
                    if action.key in blocked_by:
                        results[action.key] = _skipped(action, blocked_by[action.key])
                    else:
                        runnable.append(action)

                logger.info(f"Layer {number}/{len(layers)}: running {len(runnable)} action(s)")
                futures = [(action, pool.submit(self._run_action, action)) for action in runnable]

                # Barrier: the next layer starts only once every future here has finished.
                for action, future in futures:
                    try:
                        result = future.result()
                    except StateStoreError as e:
                        logger.error(f"State store failure while recording {action.key}: {e}")
                        result = _failed(action, f"state store failure: {e}")
                        state_failure = state_failure or e
                    results[action.key] = result
                    if result.outcome == ExecutionOutcome.FAILED.value:
                        for downstream in plan.downstream_of(action.key):
                            blocked_by.setdefault(downstream, action.key)

                if state_failure is not None:
                    logger.error("Halting execution: state consistency can no longer be guaranteed")
                    break

        ordered = []
        for action in plan.actions:
            result = results.get(action.key)
            if result is None:
                if action.key in blocked_by:
                    result = _skipped(action, blocked_by[action.key])
                else:
                    result = ExecutionResult(
                        ref=action.ref, verb=action.verb, outcome=ExecutionOutcome.NOT_STARTED,
                        replacement=action.replacement,
                    )
            ordered.append(result)

        report = ExecutionReport.from_results(ordered, cancelled=cancelled)
        if state_failure is not None:
            raise StateStoreError(str(state_failure), report=report) from state_failure

        counts = report.summary()
        logger.info(
            f"Execution finished: {report.status} "
            f"({counts['succeeded']} succeeded, {counts['failed']} failed, "
            f"{counts[ExecutionOutcome.SKIPPED.value]} skipped, {counts['not-started']} not started)"
        )
        return report

    def _run_action(self, action: PlannedAction) -> ExecutionResult:
        """Run one action; provider and interpolation errors become a failed result."""
        previous_remote_id = None
        try:
            if action.verb == ActionVerb.NO_OP.value:
                entry = self.state_store.get(action.ref)
                remote_id = entry.remote_id if entry else None
            elif action.verb == ActionVerb.CREATE.value:
                remote_id = self._create(action)
            elif action.verb == ActionVerb.UPDATE.value:
                remote_id, previous_remote_id = self._update(action)
            elif action.verb == ActionVerb.DESTROY.value:
                remote_id = self._destroy(action)
            else:
                raise ProviderError(f"Unsupported action verb '{action.verb}'")
        except StateStoreError:
            raise
        except (ProviderError, OutputNotAvailableError) as e:
            logger.error(f"{action.key} failed: {e}")
            return _failed(action, str(e))
        except Exception as e:
            logger.error(f"Unexpected error during {action.key}: {e}", exc_info=True)
            return _failed(action, f"unexpected error: {e}")

        logger.debug(f"{action.key} succeeded ({remote_id})")
        return ExecutionResult(
            ref=action.ref,
            verb=action.verb,
            outcome=ExecutionOutcome.SUCCEEDED,
            remote_id=remote_id,
            previous_remote_id=previous_remote_id,
            replacement=action.replacement,
        )

    def _create(self, action: PlannedAction) -> str:
        attributes = interpolate_attributes(action.attributes, self._resolve)
        remote_id, effective = self.provider.create(action.ref.kind, attributes)
        self._record(action, remote_id, effective)
        return remote_id

    def _update(self, action: PlannedAction) -> Tuple[str, Optional[str]]:
        """Returns the remote id, plus the old one when the object had to be re-created."""
        entry = self.state_store.get(action.ref)
        if entry is None:
            logger.warning(f"{action.ref.key} planned for update but has no state entry; creating")
            return self._create(action), None

        attributes = interpolate_attributes(action.attributes, self._resolve)
        try:
            effective = self.provider.update(action.ref.kind, entry.remote_id, attributes)
        except NotFoundError:
            logger.warning(
                f"Drift: {action.ref.key} ({entry.remote_id}) vanished; re-creating. "
                f"Resources applied against the old id are replaced on the next plan"
            )
            return self._create(action), entry.remote_id
        self._record(action, entry.remote_id, effective)
        return entry.remote_id, None

    def _destroy(self, action: PlannedAction) -> Optional[str]:
        entry = self.state_store.get(action.ref)
        if entry is None:
            logger.debug(f"{action.ref.key} has no state entry; nothing to destroy")
            return None
        try:
            self.provider.destroy(action.ref.kind, entry.remote_id)
        except NotFoundError:
            logger.warning(f"{action.ref.key} ({entry.remote_id}) was already gone remotely")
        self.state_store.remove(action.ref)
        return entry.remote_id

    def _record(self, action: PlannedAction, remote_id: str, effective: dict) -> None:
        dependency_ids = {}
        for dependency in action.depends_on:
            entry = self.state_store.get(dependency)
            if entry is not None:
                dependency_ids[dependency.key] = entry.remote_id
        self.state_store.upsert(StateEntry(
            ref=action.ref,
            remote_id=remote_id,
            attribute_fingerprint=fingerprint_attributes(action.attributes),
            last_applied_at=utc_now(),
            attributes=action.attributes,
            outputs=effective,
            dependencies=action.depends_on,
            dependency_ids=dependency_ids,
        ))


def _failed(action: PlannedAction, error: str) -> ExecutionResult:
    return ExecutionResult(
        ref=action.ref, verb=action.verb, outcome=ExecutionOutcome.FAILED,
        error=error, replacement=action.replacement,
    )


def _skipped(action: PlannedAction, cause: str) -> ExecutionResult:
    return ExecutionResult(
        ref=action.ref, verb=action.verb, outcome=ExecutionOutcome.SKIPPED,
        error=f"dependency {cause} failed", replacement=action.replacement,
    )
