from __future__ import annotations

import asyncio

import typer
from rich.table import Table

from switchyard_cli.commands.common import (
    console,
    open_runtime,
    parse_invocation_args,
    parse_json_payload,
    print_result,
)

workflow_app = typer.Typer(
    name="workflow",
    help="List and run multi-step workflows",
    no_args_is_help=True,
)


@workflow_app.command("list")
def workflow_list(ctx: typer.Context) -> None:
    """List defined workflows and their steps."""

    async def _run() -> None:
        async with await open_runtime(ctx) as runtime:
            workflows = runtime.registry.workflows
            if not workflows:
                console.print("[yellow]No workflows defined.[/yellow]")
                return
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Workflow", style="bold")
            table.add_column("Title")
            table.add_column("Steps")
            for name in sorted(workflows):
                wf = workflows[name]
                table.add_row(name, wf.title, " → ".join(s.intent for s in wf.steps))
            console.print(table)

    asyncio.run(_run())


@workflow_app.command("run")
def workflow_run(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Workflow to run"),
    params: list[str] = typer.Argument(None, help="Parameters as key=value pairs"),
    payload_json: str | None = typer.Option(
        None, "--json-payload", help="Parameters as a JSON object"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Run a workflow, stopping at the first failing step."""
    values = {**parse_json_payload(payload_json), **parse_invocation_args(params or [])}

    async def _run():
        async with await open_runtime(ctx) as runtime:
            return await runtime.workflows.invoke(name, values)

    result = asyncio.run(_run())
    if result.steps and not as_json:
        for idx, step in enumerate(result.steps, start=1):
            mark = "[green]✓[/green]" if step.success else "[red]✗[/red]"
            console.print(f"{mark} step {idx}")
    print_result(result, as_json=as_json)
