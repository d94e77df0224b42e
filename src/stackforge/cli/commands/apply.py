"""Apply command - execute the plan and report every action's outcome."""

import signal
import sys
import threading
from contextlib import contextmanager
import click
from ... import plan_stack
from ...contracts.execution import ApplyStatus, ExecutionReport
from ...contracts.plan import Plan
from ...execution.executor import Executor
from ...ingest.declaration_loader import load_declaration
from ...presentation.human_formatter import format_plan, format_report
from ...utils.errors import StackForgeError, StateStoreError
from ...utils.logging import get_logger
from ..utils import Runtime, load_runtime, dump_json, echo_safe, format_error

logger = get_logger("cli.apply")

EXIT_CODES = {
    ApplyStatus.FULLY_APPLIED.value: 0,
    ApplyStatus.PARTIALLY_APPLIED.value: 2,
    ApplyStatus.FAILED_NO_CHANGES.value: 1,
}


@contextmanager
def _cancel_on_interrupt():
    """First Ctrl-C lets in-flight actions finish and stops new layers."""
    cancel_event = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel_event
        return

    def _handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        click.echo("Interrupt received: finishing in-flight actions, then stopping.", err=True)
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield cancel_event
    finally:
        signal.signal(signal.SIGINT, previous)


def run_plan(planned: Plan, runtime: Runtime, concurrency: int, as_json: bool, quiet: bool) -> int:
    """Execute a plan, print the report and return the process exit code."""
    if not quiet and not as_json:
        echo_safe(format_plan(planned))
        click.echo("", err=True)

    if not planned.has_changes and not quiet:
        click.echo("Nothing to change.", err=True)

    executor = Executor(runtime.provider, runtime.state_store, max_concurrency=concurrency)
    with _cancel_on_interrupt() as cancel_event:
        try:
            report = executor.execute(planned, cancel_event)
        except StateStoreError as e:
            click.echo(format_error(str(e), "State may be behind remote; inspect it before the next apply."), err=True)
            if e.report is not None:
                _print_report(e.report, as_json)
            return 1

    _print_report(report, as_json)
    return EXIT_CODES.get(report.status, 1)


def _print_report(report: ExecutionReport, as_json: bool) -> None:
    if as_json:
        click.echo(dump_json(report))
    else:
        echo_safe(format_report(report))


@click.command()
@click.argument('declaration', type=click.Path(exists=False))
@click.option('--config', 'config_path', type=click.Path(), help='Extra YAML config layered over defaults')
@click.option('--json', 'as_json', is_flag=True, help='Output the execution report as JSON')
@click.option('--concurrency', type=click.IntRange(min=1), help='Maximum concurrent actions per layer')
@click.option('--refresh/--no-refresh', default=None, help='Read remote state before planning (default: engine.refresh)')
@click.option('--quiet', is_flag=True, help='Only print the execution report')
def apply(declaration, config_path, as_json, concurrency, refresh, quiet):
    """
    Plan DECLARATION and execute it.

    Exit codes: 0 fully applied, 2 partially applied, 1 failed or invalid input.
    """
    try:
        runtime = load_runtime(config_path)
        stack = load_declaration(declaration)
        if refresh is None:
            refresh = runtime.config["engine"]["refresh"]
        if concurrency is None:
            concurrency = runtime.config["engine"]["concurrency"]

        _, planned = plan_stack(
            stack, runtime.state_store, runtime.policies, provider=runtime.provider, refresh=refresh
        )
        sys.exit(run_plan(planned, runtime, concurrency, as_json, quiet))

    except StackForgeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Apply failed: {e}"), err=True)
        sys.exit(1)
