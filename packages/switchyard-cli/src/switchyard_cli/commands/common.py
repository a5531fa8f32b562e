"""Helpers shared by CLI commands: runtime setup and result rendering."""
from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console
from rich.panel import Panel
from switchyard_core.config import SwitchyardConfig
from switchyard_core.errors import ConfigError
from switchyard_core.logging import setup_logging
from switchyard_runtime.builder import RuntimeBuilder

if TYPE_CHECKING:
    from switchyard_core.types import Result
    from switchyard_runtime.context import RuntimeContext
    from switchyard_runtime.registry import Intent

console = Console()


def project_dir(ctx: typer.Context) -> Path:
    obj = ctx.obj or {}
    return Path(obj.get("project") or Path.cwd())


def load_config(ctx: typer.Context) -> SwitchyardConfig:
    try:
        config = SwitchyardConfig.load(project_dir(ctx))
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(2) from None
    setup_logging(config.logging)
    return config


def confirm_prompt(intent: Intent, payload: dict[str, Any]) -> bool:
    return typer.confirm(f"Intent '{intent.name}' requires confirmation. Run it?")


async def open_runtime(
    ctx: typer.Context,
    *,
    load_skills: bool = True,
    connect_servers: bool = True,
) -> RuntimeContext:
    config = load_config(ctx)
    return await RuntimeBuilder(config, confirm=confirm_prompt).build(
        load_skills=load_skills,
        connect_servers=connect_servers,
        quiet=True,
    )


def parse_invocation_args(items: list[str]) -> dict[str, Any]:
    """``key=value`` items become named params, the rest go to ``args``."""
    payload: dict[str, Any] = {}
    positional: list[str] = []
    for item in items:
        key, sep, value = item.partition("=")
        if sep and key.isidentifier():
            payload[key] = value
        else:
            positional.append(item)
    if positional:
        payload["args"] = positional
    return payload


def parse_json_payload(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid JSON payload:[/red] {exc}")
        raise typer.Exit(2) from None
    if not isinstance(data, dict):
        console.print("[red]JSON payload must be an object[/red]")
        raise typer.Exit(2)
    return data


def print_result(result: Result, *, as_json: bool = False) -> None:
    """Render *result* and exit non-zero on failure."""
    if as_json:
        console.print_json(json.dumps(result.to_dict()))
    elif result.success:
        if result.output:
            console.print(result.output)
        if result.error:
            console.print(f"[yellow]Warning:[/yellow] {result.error}")
    else:
        kind = result.kind.value if result.kind else "error"
        body = result.error or "failed"
        if result.output:
            body += f"\n\n[dim]{result.output}[/dim]"
        console.print(Panel(body, title=f"[red]{kind}[/red]", border_style="red"))
    if not result.success:
        raise typer.Exit(1)
