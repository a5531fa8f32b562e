from __future__ import annotations

from pathlib import Path

import typer

from switchyard_cli.commands.config import config_app
from switchyard_cli.commands.intents import (
    categories_command,
    intents_command,
    invoke_command,
)
from switchyard_cli.commands.plugins import plugins_app
from switchyard_cli.commands.skills import skills_app
from switchyard_cli.commands.tools import serve_command, tools_app
from switchyard_cli.commands.workflows import workflow_app

app = typer.Typer(
    name="switchyard",
    help="Switchyard: intents, plugins, skills, workflows, and tool servers",
    no_args_is_help=True,
)

app.command("intents")(intents_command)
app.command("categories")(categories_command)
app.command("invoke")(invoke_command)
app.command("serve")(serve_command)
app.add_typer(workflow_app, name="workflow", help="List and run workflows")
app.add_typer(plugins_app, name="plugins", help="Manage plugins")
app.add_typer(skills_app, name="skills", help="Inspect skills")
app.add_typer(tools_app, name="tools", help="Talk to tool servers")
app.add_typer(config_app, name="config", help="View configuration")


@app.callback()
def _root(
    ctx: typer.Context,
    project: Path | None = typer.Option(
        None,
        "--project",
        "-p",
        help="Project directory (defaults to the current directory)",
        file_okay=False,
    ),
) -> None:
    ctx.obj = {"project": project}


@app.command()
def version() -> None:
    """Show the Switchyard version."""
    from rich.console import Console
    from switchyard_core import __version__

    Console().print(f"switchyard {__version__}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
