"""Command line interface for running taxflow workflows."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import typer

from taxflow.config import OrchestratorSettings, load_config
from taxflow.manager import create_service_manager
from taxflow.workflows import DEFAULT_REGISTRY, WorkflowOrchestrationService, WorkflowStatus

app = typer.Typer(help="CLI for taxflow workflows")

workflow_app = typer.Typer(help="Commands for managing workflows")

app.add_typer(workflow_app, name="workflow")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Logging level (default from config)"),
) -> None:
    """taxflow CLI entry point."""
    config = load_config()
    logging.basicConfig(
        level=(log_level or config.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@workflow_app.command("types")
def workflow_types() -> None:
    """List registered workflow types with their step counts."""
    for definition in DEFAULT_REGISTRY.definitions():
        typer.echo(f"{definition.id}\t{len(definition.steps)} steps\t{definition.name}")


@workflow_app.command("run")
def workflow_run(
    workflow_type: str,
    client_id: str,
    pacing_scale: Optional[float] = typer.Option(
        None, help="Seconds of pacing delay per second of estimated step duration"
    ),
) -> None:
    """
    Run a workflow to completion in-process and print its steps.

    Example:
        taxflow workflow run client_onboarding client-42 --pacing-scale 0
        # Output: Workflow client_onboarding_client-42_1718000000000: completed
        #         - intake_submission: completed
        #         ...
    """
    config = load_config()
    settings = config.orchestrator
    if pacing_scale is not None:
        settings = OrchestratorSettings(
            **{**settings.model_dump(), "step_pacing_scale": pacing_scale}
        )

    async def _run() -> Optional[WorkflowStatus]:
        orchestrator = WorkflowOrchestrationService(config.general, settings=settings)
        started = await orchestrator.start_workflow(client_id, workflow_type)
        if not started.success:
            typer.secho(started.error or "Workflow could not be started", fg=typer.colors.RED)
            return None
        finished = await orchestrator.wait_for_workflow(started.data)
        return finished.data

    workflow = asyncio.run(_run())
    if workflow is None:
        raise typer.Exit(code=1)

    typer.echo(f"Workflow {workflow.id}: {workflow.status}")
    for step in workflow.steps:
        line = f"- {step.id}: {step.status}"
        if step.error:
            line += f" ({step.error})"
        typer.echo(line)
    if workflow.status == "failed":
        raise typer.Exit(code=1)


@app.command("health")
def health() -> None:
    """Initialize all services and report their health."""
    manager = create_service_manager()
    result = asyncio.run(manager.initialize())
    status = asyncio.run(manager.get_system_status())
    for name, report in (status.data or {}).get("services", {}).items():
        typer.echo(f"{name}\t{(report or {}).get('status', 'unknown')}")
    if not result.success:
        typer.secho(result.error or "Initialization failed", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo("All services healthy")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
