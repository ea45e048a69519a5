"""
Click CLI for sweeping orphaned test resources.
"""

import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

import click

from .cleanup import ResourceKind, ResourceReaper, SweepCriteria, SweepResult, SweepStatus
from .cleanup.models import split_qualified_id
from .config import ReaperConfig
from .errors import ReaperError
from .labels import DEFAULT_LABEL_KEY, parse_label_selector
from .providers import GCPComputeProvider
from .providers.gcp import DISK_AVAILABLE, DISK_IN_USE

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2
EXIT_CANCELLED = 130


@click.group()
@click.option("--project", help="GCP project ID (defaults to $projectID)")
@click.option("--credentials", type=click.Path(dir_okay=False), help="Service account JSON file")
@click.option("--workers", type=int, help="Concurrent zone listings (default 1)")
@click.option("--timeout", type=float, help="Timeout in seconds for each API call")
@click.option("--continue-on-zone-failure/--fail-fast", default=True,
              help="Skip zones whose listing fails instead of aborting")
@click.option("--verbose", "-v", is_flag=True, help="Enable info logging")
@click.pass_context
def main(ctx, project: Optional[str], credentials: Optional[str], workers: Optional[int],
         timeout: Optional[float], continue_on_zone_failure: bool, verbose: bool):
    """
    Reaper - delete VMs and disks left behind by integration tests.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "project_id": project,
        "credentials_file": credentials,
        "max_workers": workers,
        "call_timeout": timeout,
        "continue_on_zone_failure": continue_on_zone_failure,
    }


def _build_reaper(ctx) -> ResourceReaper:
    """Create a reaper from environment plus CLI overrides; exits on bad config."""
    try:
        config = ReaperConfig.from_env(**ctx.obj["overrides"])
        provider = GCPComputeProvider.from_config(config)
    except ValueError as e:
        click.echo(f"❌ Invalid configuration: {e}", err=True)
        sys.exit(EXIT_ERROR)
    except ReaperError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(EXIT_ERROR)
    return ResourceReaper(provider, config)


def _build_criteria(label_key: str, label_value: Optional[str], label: Optional[str],
                    status: Optional[str]) -> SweepCriteria:
    try:
        if label:
            label_key, label_value = parse_label_selector(label)
        if not label_value:
            raise ValueError("Provide --label-value or --label key=value")
        return SweepCriteria(label_key=label_key, label_value=label_value, status_filter=status)
    except ValueError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(EXIT_ERROR)


def _run_cancellable(sweep: Callable[..., SweepResult], criteria: SweepCriteria) -> SweepResult:
    """Run a sweep off the main thread so Ctrl+C cancels it and keeps the partial result."""
    cancel_event = threading.Event()
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="reaper-sweep") as executor:
        future = executor.submit(sweep, criteria, cancel_event)
        try:
            return future.result()
        except KeyboardInterrupt:
            click.echo("⚠️  Cancelling sweep, waiting for in-flight calls...", err=True)
            cancel_event.set()
            return future.result()


def _report(result: SweepResult) -> None:
    label = result.kind.value.capitalize()
    
    if not result.resource_ids:
        click.echo(f"✅ No matching {result.kind.value}s found")
    for resource_id in result.resource_ids:
        zone, name = split_qualified_id(resource_id)
        if resource_id in result.failed:
            click.echo(f"  ❌ {label} {name} ({zone}): delete failed ({result.failed[resource_id]})")
        else:
            click.echo(f"  🗑️  {label} {name} ({zone}): delete requested")
    
    for zone in result.skipped_zones:
        click.echo(f"  ⚠️  Zone {zone} skipped (listing failed)")
    
    click.echo(f"📊 {result.summary()}")


def _exit_code(results: List[SweepResult]) -> int:
    statuses = {result.status for result in results}
    if SweepStatus.CANCELLED in statuses:
        return EXIT_CANCELLED
    if SweepStatus.PARTIAL in statuses:
        return EXIT_PARTIAL
    return EXIT_OK


def _sweep_and_exit(ctx, kinds: Tuple[ResourceKind, ...], criteria: SweepCriteria) -> None:
    reaper = _build_reaper(ctx)
    results = []
    
    for kind in kinds:
        sweep = reaper.sweep_instances if kind is ResourceKind.INSTANCE else reaper.sweep_disks
        click.echo(f"🔍 Sweeping {kind.value}s labelled {criteria.label_key}={criteria.label_value}...")
        try:
            result = _run_cancellable(sweep, criteria)
        except ReaperError as e:
            click.echo(f"❌ {kind.value} sweep failed: {e}", err=True)
            sys.exit(EXIT_ERROR)
        
        _report(result)
        results.append(result)
        if result.status is SweepStatus.CANCELLED:
            break
    
    sys.exit(_exit_code(results))


def label_options(func):
    """Shared label selection options."""
    func = click.option("--label", help="Label selector in format 'key=value'")(func)
    func = click.option("--label-value", help="Label value identifying the test run, e.g. the cluster name")(func)
    func = click.option("--label-key", default=DEFAULT_LABEL_KEY, show_default=True, help="Label key to match")(func)
    return func


@main.command()
@label_options
@click.option("--status", help="Instance status filter, e.g. RUNNING or TERMINATED (default RUNNING)")
@click.pass_context
def instances(ctx, label_key: str, label_value: Optional[str], label: Optional[str], status: Optional[str]):
    """
    Delete running instances carrying the label.
    """
    _sweep_and_exit(ctx, (ResourceKind.INSTANCE,), _build_criteria(label_key, label_value, label, status))


@main.command()
@label_options
@click.option("--status", type=click.Choice([DISK_AVAILABLE, DISK_IN_USE]),
              help="Disk attachment filter (default available)")
@click.pass_context
def disks(ctx, label_key: str, label_value: Optional[str], label: Optional[str], status: Optional[str]):
    """
    Delete unattached disks carrying the label.
    """
    _sweep_and_exit(ctx, (ResourceKind.DISK,), _build_criteria(label_key, label_value, label, status))


@main.command("all")
@click.option("--label-key", default=DEFAULT_LABEL_KEY, show_default=True, help="Label key to match")
@click.option("--label-value", help="Label value identifying the test run")
@click.option("--label", help="Label selector in format 'key=value'")
@click.pass_context
def all_cmd(ctx, label_key: str, label_value: Optional[str], label: Optional[str]):
    """
    Delete matching instances, then matching disks.
    """
    criteria = _build_criteria(label_key, label_value, label, None)
    _sweep_and_exit(ctx, (ResourceKind.INSTANCE, ResourceKind.DISK), criteria)


@main.command()
@click.argument("kind", type=click.Choice([k.value for k in ResourceKind]))
@click.argument("zone")
@click.argument("resource_id")
@click.option("--wait", type=float, help="Wait up to this many seconds for the resource to disappear")
@click.pass_context
def status(ctx, kind: str, zone: str, resource_id: str, wait: Optional[float]):
    """
    Show the current status of a single instance or disk.
    """
    reaper = _build_reaper(ctx)
    resource_kind = ResourceKind(kind)
    
    try:
        if wait:
            gone = reaper.wait_for_deletion(resource_kind, resource_id, zone, timeout=wait)
            click.echo(f"{kind} {resource_id}: {'not found' if gone else 'still present'}")
            sys.exit(EXIT_OK if gone else EXIT_PARTIAL)
        
        current = reaper.provider.get_status(resource_kind, resource_id, zone, timeout=reaper.config.call_timeout)
    except ReaperError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(EXIT_ERROR)
    
    click.echo(f"{kind} {resource_id}: {current or 'not found'}")


if __name__ == "__main__":
    main()
