from __future__ import annotations

import asyncio

import typer
from rich.table import Table
from switchyard_core.types import ErrorKind, Result
from switchyard_tools.client import ToolServerClient

from switchyard_cli.commands.common import (
    console,
    load_config,
    open_runtime,
    parse_invocation_args,
    parse_json_payload,
    print_result,
)

tools_app = typer.Typer(
    name="tools",
    help="Talk to configured tool servers",
    no_args_is_help=True,
)


def _client(config) -> ToolServerClient:
    return ToolServerClient(
        config.tools.timeout_seconds,
        protocol_version=config.tools.protocol_version,
        client_name=config.tools.client_name,
    )


@tools_app.command("list")
def tools_list(
    ctx: typer.Context,
    server: str | None = typer.Argument(None, help="Only this server"),
) -> None:
    """Connect to configured servers and list their tools."""
    config = load_config(ctx)
    names = [server] if server else sorted(config.servers)
    if not names:
        console.print("[yellow]No servers configured.[/yellow]")
        raise typer.Exit(0)

    async def _run() -> int:
        failures = 0
        async with _client(config) as client:
            for name in names:
                server_cfg = config.servers.get(name)
                if server_cfg is None:
                    console.print(f"[red]Unknown server:[/red] '{name}'")
                    failures += 1
                    continue
                result = await client.connect(server_cfg)
                if not result.success:
                    console.print(f"[red]{name}:[/red] {result.error}")
                    failures += 1
                    continue
                table = Table(title=name, show_header=True, header_style="bold cyan")
                table.add_column("Tool", style="bold")
                table.add_column("Required")
                table.add_column("Description")
                for tool in client.list_tools(name):
                    table.add_row(tool.name, ", ".join(tool.required) or "-", tool.description)
                console.print(table)
                if result.error:
                    console.print(f"[yellow]Warning:[/yellow] {result.error}")
        return failures

    if asyncio.run(_run()):
        raise typer.Exit(1)


@tools_app.command("call")
def tools_call(
    ctx: typer.Context,
    server: str = typer.Argument(..., help="Server name"),
    tool: str = typer.Argument(..., help="Tool name"),
    params: list[str] = typer.Argument(None, help="Arguments as key=value pairs"),
    payload_json: str | None = typer.Option(
        None, "--json-payload", help="Arguments as a JSON object"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Call one tool on a configured server."""
    config = load_config(ctx)
    arguments = {**parse_json_payload(payload_json), **parse_invocation_args(params or [])}
    server_cfg = config.servers.get(server)
    if server_cfg is None:
        print_result(Result.fail(f"Unknown server '{server}'", ErrorKind.NOT_FOUND))
        return

    async def _run() -> Result:
        async with _client(config) as client:
            connected = await client.connect(server_cfg)
            if not connected.success:
                return connected
            return await client.call_tool(server, tool, arguments)

    print_result(asyncio.run(_run()), as_json=as_json)


def serve_command(ctx: typer.Context) -> None:
    """Serve every registered intent as an MCP tool over stdio."""
    from switchyard_tools.gateway import create_gateway

    async def _run() -> None:
        async with await open_runtime(ctx) as runtime:
            gateway = create_gateway(runtime.registry)
            await gateway.run_async(transport="stdio")

    asyncio.run(_run())
