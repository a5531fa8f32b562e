from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table
from switchyard_core.errors import SkillValidationError
from switchyard_skills.parser import load_skills_document, parse_skills
from switchyard_skills.validator import SkillValidator

from switchyard_cli.commands.common import console, load_config

skills_app = typer.Typer(
    name="skills",
    help="Inspect user-authored skills",
    no_args_is_help=True,
)


def _skills_path(ctx: typer.Context, path: Path | None) -> Path:
    if path is not None:
        return path
    config = load_config(ctx)
    return config.resolve(config.skills.path)


@skills_app.command("list")
def skills_list(
    ctx: typer.Context,
    path: Path | None = typer.Option(None, "--file", "-f", help="Skills document"),
) -> None:
    """List skills defined in the skills document."""
    source = _skills_path(ctx, path)
    try:
        definitions, rejected = parse_skills(load_skills_document(source))
    except SkillValidationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from None

    if not definitions and not rejected:
        console.print(f"[yellow]No skills in {source}[/yellow]")
        raise typer.Exit(0)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Skill", style="bold")
    table.add_column("Parameters")
    table.add_column("Steps", justify="right")
    table.add_column("Triggers")
    table.add_column("Description")
    for skill in definitions:
        params = ", ".join(
            p.name + ("" if p.required else "?") for p in skill.parameters
        )
        table.add_row(
            skill.name,
            params or "-",
            str(len(skill.steps)),
            ", ".join(skill.triggers) or "-",
            skill.description,
        )
    for name, reason in rejected.items():
        table.add_row(f"[red]{name}[/red]", "-", "-", "-", f"[red]{reason}[/red]")
    console.print(table)


@skills_app.command("validate")
def skills_validate(
    ctx: typer.Context,
    path: Path | None = typer.Option(None, "--file", "-f", help="Skills document"),
) -> None:
    """Validate every skill in the skills document."""
    source = _skills_path(ctx, path)
    try:
        definitions, rejected = parse_skills(load_skills_document(source))
    except SkillValidationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from None

    validator = SkillValidator()
    failed = len(rejected)
    for name, reason in rejected.items():
        console.print(f"[red]✗[/red] {name}: {reason}")
    for skill in definitions:
        errors = validator.validate(skill)
        if errors:
            failed += 1
            console.print(f"[red]✗[/red] {skill.name}")
            for error in errors:
                console.print(f"    {error}")
        else:
            console.print(f"[green]✓[/green] {skill.name}")
        for warning in validator.warnings(skill):
            console.print(f"    [yellow]warning:[/yellow] {warning}")

    if failed:
        console.print(f"\n[red]{failed} invalid skill(s).[/red]")
        raise typer.Exit(1)
    console.print(f"\n[dim]{len(definitions)} skill(s) valid.[/dim]")
