from __future__ import annotations

import typer
from rich.table import Table
from switchyard_runtime.plugins import PluginLoader, PluginStateStore
from switchyard_runtime.registry import Registry

from switchyard_cli.commands.common import console, load_config, print_result

plugins_app = typer.Typer(
    name="plugins",
    help="Inspect and toggle drop-in plugins",
    no_args_is_help=True,
)


def _loader(ctx: typer.Context) -> PluginLoader:
    config = load_config(ctx)
    return PluginLoader(
        Registry(),
        config.resolve(config.plugins.directory),
        state=PluginStateStore(config.resolve(config.plugins.state_file)),
        inactive_prefix=config.plugins.inactive_prefix,
        default_category=config.plugins.default_category,
    )


@plugins_app.command("list")
def plugins_list(ctx: typer.Context) -> None:
    """List plugin sources, their state, and what they contribute."""
    loader = _loader(ctx)
    report = loader.load_all(quiet=True)
    names = loader.available()
    if not names:
        console.print(f"[yellow]No plugins found in {loader.directory}[/yellow]")
        raise typer.Exit(0)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Plugin", style="bold")
    table.add_column("State")
    table.add_column("Intents", justify="right")
    table.add_column("Version")
    table.add_column("Load", justify="right")
    table.add_column("Description")
    for name in names:
        plugin = loader.get(name)
        if plugin is not None:
            table.add_row(
                name,
                "[green]loaded[/green]",
                str(len(plugin.intents)),
                plugin.version or "-",
                f"{plugin.load_duration_ms:.1f}ms",
                plugin.description or "",
            )
        elif not loader.is_enabled(name):
            table.add_row(name, "[dim]disabled[/dim]", "-", "-", "-", "")
        else:
            table.add_row(
                name, "[red]failed[/red]", "-", "-", "-", report.skipped.get(name, "")
            )
    console.print(table)


@plugins_app.command("enable")
def plugins_enable(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Plugin to enable"),
) -> None:
    """Enable a plugin and check that it loads."""
    print_result(_loader(ctx).enable(name))


@plugins_app.command("disable")
def plugins_disable(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Plugin to disable"),
) -> None:
    """Disable a plugin so it is skipped at startup."""
    loader = _loader(ctx)
    loader.load_all(quiet=True)
    print_result(loader.disable(name))


@plugins_app.command("reload")
def plugins_reload(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Plugin to reload"),
) -> None:
    """Load a plugin from scratch and report what it contributes."""
    loader = _loader(ctx)
    loader.load_all(quiet=True)
    print_result(loader.reload(name))
