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


def intents_command(
    ctx: typer.Context,
    category: str | None = typer.Option(
        None, "--category", "-c", help="Only list intents in this category"
    ),
) -> None:
    """List registered intents."""

    async def _run() -> None:
        async with await open_runtime(ctx, connect_servers=True) as runtime:
            registry = runtime.registry
            names = (
                list(registry.categories.members(category))
                if category
                else registry.names()
            )
            if not names:
                console.print("[yellow]No intents registered.[/yellow]")
                return

            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Intent", style="bold")
            table.add_column("Category")
            table.add_column("Source", style="dim")
            table.add_column("Description")
            for name in names:
                intent = registry.intents[name]
                table.add_row(
                    name,
                    intent.metadata.category,
                    intent.source or "-",
                    intent.metadata.description,
                )
            console.print(table)
            console.print(f"\n[dim]{len(names)} intent(s).[/dim]")

    asyncio.run(_run())


def categories_command(ctx: typer.Context) -> None:
    """List categories and how many intents each holds."""

    async def _run() -> None:
        async with await open_runtime(ctx, connect_servers=True) as runtime:
            index = runtime.registry.categories
            table = Table(show_header=True, header_style="bold cyan")
            table.add_column("Key", style="bold")
            table.add_column("Name")
            table.add_column("Intents", justify="right")
            table.add_column("Description")
            for key in index.keys():
                category = index.get(key)
                assert category is not None
                name = category.name + (" [dim](implicit)[/dim]" if category.implicit else "")
                table.add_row(key, name, str(len(index.members(key))), category.description)
            console.print(table)

    asyncio.run(_run())


def invoke_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Intent to invoke"),
    params: list[str] = typer.Argument(
        None, help="Arguments: key=value pairs or positional values"
    ),
    payload_json: str | None = typer.Option(
        None, "--json-payload", help="Payload as a JSON object"
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Skip confirmation prompts"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Invoke an intent with a payload built from the arguments."""
    payload = {**parse_json_payload(payload_json), **parse_invocation_args(params or [])}

    async def _run():
        async with await open_runtime(ctx) as runtime:
            return await runtime.registry.invoke(name, payload, auto_confirm=yes)

    print_result(asyncio.run(_run()), as_json=as_json)
