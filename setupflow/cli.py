"""Command line interface for running setup wizards."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from setupflow import SetupWizard, build_default_plan, get_store
from setupflow.collaborators import InMemoryCollaborator, get_collaborator
from setupflow.config import SetupFlowConfig, load_config
from setupflow.contracts import RunOutcome, RunStatus, Severity, StepStatus
from setupflow.persistence import SnapshotManager, storage_key

app = typer.Typer(help="CLI for setupflow onboarding wizards")

_SEVERITY_COLORS = {
    Severity.SUCCESS: typer.colors.GREEN,
    Severity.WARNING: typer.colors.YELLOW,
    Severity.ERROR: typer.colors.RED,
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show library logs"),
) -> None:
    """setupflow CLI entry point."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s"
        )


def _manager(config: Optional[SetupFlowConfig] = None) -> SnapshotManager:
    store = get_store(config=config) if config is not None else get_store()
    return SnapshotManager(store)


async def _run_wizard(
    site_id: str,
    tenant: Optional[str],
    domain: Optional[str],
    fresh: bool,
    dry_run: bool,
    config: Optional[SetupFlowConfig],
) -> RunOutcome | None:
    cfg = config or load_config()
    settings = cfg.wizard
    if dry_run:
        collaborator = InMemoryCollaborator.dry_run(site_id, domain)
        settings = settings.model_copy(
            update={
                "min_step_duration": 0.0,
                "inter_step_delay": 0.0,
                "poll_interval": 0.0,
                "training_poll_interval": 0.0,
            }
        )
    else:
        collaborator = get_collaborator(cfg.collaborator)

    wizard = SetupWizard(
        build_default_plan(),
        collaborator,
        _manager(config),
        site_id=site_id,
        tenant_id=tenant,
        domain=domain,
        settings=settings,
    )
    last_seen = {"id": 0}

    def _echo_logs(state) -> None:
        for entry in state.logs:
            if entry.id > last_seen["id"]:
                last_seen["id"] = entry.id
                typer.secho(entry.message, fg=_SEVERITY_COLORS.get(entry.severity))

    wizard.state.subscribe(_echo_logs)
    try:
        if await wizard.mount():
            if fresh:
                typer.echo("Discarding saved progress")
                await wizard.start_fresh()
            else:
                wizard.resume()
        return await wizard.start()
    finally:
        await wizard.close()


@app.command("run")
def run(
    site_id: str,
    tenant: Optional[str] = typer.Option(None, help="Tenant owning the site"),
    domain: Optional[str] = typer.Option(None, help="Site domain, if known"),
    fresh: bool = typer.Option(False, help="Ignore saved progress and start over"),
    dry_run: bool = typer.Option(False, help="Answer every remote call locally"),
    config: Optional[Path] = typer.Option(None, help="Path to a YAML config file"),
) -> None:
    """
    Run the setup wizard for a site.

    Saved progress is resumed unless --fresh is given. The command exits with
    status 1 when a critical step halts the run.

    Example:
        setupflow run site-123 --tenant acme --domain acme.com
        setupflow run site-123 --dry-run
    """
    cfg = load_config(str(config)) if config else None
    outcome = asyncio.run(_run_wizard(site_id, tenant, domain, fresh, dry_run, cfg))
    if outcome is None:
        typer.secho("Setup did not run", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if outcome.status is RunStatus.HALTED:
        failed = outcome.failed_step
        typer.secho(
            f"Setup halted at step {failed.index + 1} ({failed.title}): {failed.message}",
            fg=typer.colors.RED,
        )
        typer.echo(f"Resume with: setupflow run {site_id}")
        raise typer.Exit(code=1)
    if outcome.status is RunStatus.ABORTED:
        typer.secho("Setup aborted", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.secho(
        f"Setup complete ({outcome.progress}%, {outcome.warnings} warnings)",
        fg=typer.colors.GREEN,
    )


@app.command("status")
def status(
    site_id: str,
    tenant: Optional[str] = typer.Option(None, help="Tenant owning the site"),
) -> None:
    """Show saved progress for a site."""
    key = storage_key(site_id, tenant)
    snapshot = asyncio.run(_manager().load(key))
    if snapshot is None:
        typer.echo(f"No saved progress for {key}")
        raise typer.Exit(code=1)

    plan = build_default_plan()
    done = sum(1 for s in snapshot.step_statuses.values() if s is StepStatus.COMPLETED)
    typer.echo(f"{key}: {snapshot.global_progress}% ({done}/{len(plan)} steps complete)")
    if snapshot.failed_step:
        failed = snapshot.failed_step
        typer.secho(f"Failed at {failed.title}: {failed.message}", fg=typer.colors.RED)
    for step in plan.steps:
        step_status = snapshot.step_statuses.get(step.id, StepStatus.PENDING)
        typer.echo(f"- {step.id}: {step_status.value}")


@app.command("reset")
def reset(
    site_id: str,
    tenant: Optional[str] = typer.Option(None, help="Tenant owning the site"),
) -> None:
    """Delete saved progress for a site."""
    key = storage_key(site_id, tenant)
    asyncio.run(_manager().clear(key))
    typer.echo(f"Cleared saved progress for {key}")


@app.command("plan")
def show_plan() -> None:
    """List the phases and steps of the default setup plan."""
    plan = build_default_plan()
    for phase in plan.phases:
        rng = phase.progress_range
        typer.echo(f"{phase.title} [{phase.mode.value}, {rng.start}-{rng.end}%]")
        for step in plan.steps_of(phase.id):
            marker = "*" if step.critical else " "
            typer.echo(f"  {marker} {step.id}: {step.title}")
