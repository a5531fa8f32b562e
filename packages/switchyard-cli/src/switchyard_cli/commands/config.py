from __future__ import annotations

from pathlib import Path

import typer
from rich.syntax import Syntax
from rich.table import Table

from switchyard_cli.commands.common import console, load_config, project_dir

config_app = typer.Typer(
    name="config",
    help="View Switchyard configuration",
    no_args_is_help=True,
)


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    raw: bool = typer.Option(False, "--raw", help="Print the config files as written"),
) -> None:
    """Show the merged configuration."""
    if raw:
        root = project_dir(ctx)
        project_path = root / ".switchyard" / "config.toml"
        if not project_path.exists():
            project_path = root / "switchyard.toml"
        shown = False
        for label, path in (
            ("Global", Path.home() / ".switchyard" / "config.toml"),
            ("Project", project_path),
        ):
            if path.exists():
                console.print(f"[bold]{label}[/bold] ({path}):")
                console.print(Syntax(path.read_text(), "toml", theme="monokai"))
                shown = True
        if not shown:
            console.print("[yellow]No config files found; using defaults.[/yellow]")
        return

    config = load_config(ctx)
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("project.name", config.project_name)
    table.add_row("root", str(config.root))
    for section in ("plugins", "skills", "tools", "logging"):
        values = getattr(config, section)
        for field_name in values.__dataclass_fields__:
            table.add_row(f"{section}.{field_name}", str(getattr(values, field_name)))
    for name, server in sorted(config.servers.items()):
        command = " ".join([server.command, *server.args])
        flags = [f for f in ("autostart", "register_tools") if getattr(server, f)]
        table.add_row(f"servers.{name}", command + (f"  [dim]({', '.join(flags)})[/dim]" if flags else ""))
    console.print(table)
