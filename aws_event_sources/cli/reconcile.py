"""CLI utility for running reconciliation passes of event sources."""
import json
from typing import Any

import click

from aws_event_sources.exceptions import TaskExecutionError
from aws_event_sources.reconciler.kinds import get_source_kind, list_source_kinds
from aws_event_sources.tasks.reconcile import run_reconciliation


def print_summary(result: dict[str, Any]) -> None:
    """Print formatted summary of a reconciliation pass."""
    click.echo("\n" + "=" * 70)
    click.echo(f"RECONCILIATION OF {result['kind']} {result['source']}")
    click.echo("=" * 70)

    click.echo(f"  Outcome:          {result.get('outcome', result['status'])}")
    click.echo(f"  Ready:            {result.get('ready', False)}")
    click.echo(f"  Status updated:   {result.get('status_updated', False)}")

    status = result.get("source_status") or {}
    if status.get("sinkUri"):
        click.echo(f"  Sink:             {status['sinkUri']}")
    if status.get("subscriptionArn"):
        click.echo(f"  Subscription:     {status['subscriptionArn']}")

    conditions = status.get("conditions") or []
    if conditions:
        click.echo("\n  Conditions:")
        for condition in conditions:
            line = f"    {condition['type']:<14} {condition.get('status', 'Unknown'):<8}"
            if condition.get("reason"):
                line += f" {condition['reason']}"
            click.echo(line)
            if condition.get("message"):
                click.echo(f"                            {condition['message']}")

    events = result.get("events") or ([result["event"]] if result.get("event") else [])
    if events:
        click.echo("\n  Events:")
        for event in events:
            click.echo(f"    {event['type']:<8} {event['reason']}: {event['message']}")

    click.echo("\n" + "=" * 70 + "\n")


@click.group()
def cli() -> None:
    """Reconcile AWS event sources."""


@cli.command("kinds")
def kinds() -> None:
    """List the registered source kinds."""
    for kind in sorted(list_source_kinds()):
        source_kind = get_source_kind(kind)
        flags = [source_kind.workload.kind]
        if source_kind.subscribes:
            flags.append("subscription")
        click.echo(f"{kind} ({', '.join(flags)})")


@cli.command("reconcile")
@click.argument("kind")
@click.argument("namespace")
@click.argument("name")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Report the writes and subscriptions of the pass without performing them",
)
@click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output the result as JSON instead of formatted text",
)
def reconcile(kind: str, namespace: str, name: str, dry_run: bool, output_json: bool) -> None:
    """
    Run one reconciliation pass of a source in-process.

    Examples:

        # Reconcile an SNS source
        aes-controller reconcile AWSSNSSource default my-topic-source

        # Show what a pass would do
        aes-controller reconcile --dry-run AWSSQSSource default my-queue-source
    """
    payload: dict[str, Any] = {"namespace": namespace, "name": name}
    if dry_run:
        payload["dry_run"] = True

    try:
        result = run_reconciliation(kind, payload)
    except TaskExecutionError as exc:
        if output_json:
            click.echo(json.dumps(exc.report.to_dict(), indent=2))
        else:
            retry_hint = "retryable" if exc.report.retryable else "permanent"
            click.echo(
                f"\n❌ Reconciliation failed ({exc.report.classification}, {retry_hint}): "
                f"{exc.report.message}",
                err=True,
            )
        raise click.Abort()

    if output_json:
        click.echo(json.dumps(result, indent=2))
    else:
        print_summary(result)


if __name__ == "__main__":
    cli()
