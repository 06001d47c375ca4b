"""sc CLI — compile specs into IR and report artifact staleness."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from skillc import __version__
from skillc.errors import SkillcError

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _fail(error: SkillcError) -> None:
    err_console.print(f"[red]error:[/] {error}")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """sc — compile API specs, CLI help and codebases into agent skills."""
    _setup_logging(verbose)


def _load(instructions_path: str):
    from skillc.instructions import parse_instructions
    from skillc.ir import default_registry

    instructions = parse_instructions(instructions_path)
    for warning in instructions.validate():
        err_console.print(f"  [yellow]![/] {warning}")
    ir, warnings = default_registry().process_sources(instructions.spec_sources())
    return instructions, ir, warnings


# ── Compile ──────────────────────────────────────────────────────────


@main.command("compile")
@click.option(
    "--instructions", "-i", "instructions_path", default="COMPILER_INSTRUCTIONS.md",
    help="Instructions file",
)
@click.option("--json", "as_json", is_flag=True, help="Print the IR as JSON")
@click.option("--output", "-o", default=None, help="Write the IR JSON to this file")
def compile_cmd(instructions_path: str, as_json: bool, output: str | None):
    """Parse every spec source and merge them into one IR."""
    from skillc.ir import ir_to_json
    from skillc.utils.fs import atomic_write_text

    try:
        instructions, ir, warnings = _load(instructions_path)
        if output:
            atomic_write_text(Path(output), ir_to_json(ir, indent=2) + "\n")
    except SkillcError as e:
        _fail(e)
        return

    if as_json:
        click.echo(ir_to_json(ir, indent=2))
        return

    console.print(f"\n[bold blue]sc[/] — Compiled: {instructions.frontmatter.name}\n")

    table = Table(title="Intermediate Representation")
    table.add_column("Kind", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Operations", str(len(ir.operations)))
    table.add_row("Types", str(len(ir.types)))
    table.add_row("Auth schemes", str(len(ir.auth)))
    table.add_row("Groups", str(len(ir.groups)))
    table.add_row("Files", str(len(ir.structure.file_tree)) if ir.structure else "0")
    console.print(table)

    if ir.metadata:
        console.print(
            Panel("\n".join(f"{k}: {v}" for k, v in ir.metadata.items()), title="Metadata")
        )

    for warning in warnings:
        color = "yellow" if warning.severity.value == "warning" else "dim"
        console.print(f"  [{color}]![/] {warning.source}: {warning.message}")
    if output:
        console.print(f"\n[green]IR written to:[/] {output}")


# ── Status ───────────────────────────────────────────────────────────


@main.command()
@click.option(
    "--instructions", "-i", "instructions_path", default="COMPILER_INSTRUCTIONS.md",
    help="Instructions file",
)
@click.option("--only", multiple=True, help="Limit to these artifact ids")
def status(instructions_path: str, only: tuple[str, ...]):
    """Show which artifacts are up to date with the current inputs."""
    from skillc.generate import Pipeline

    try:
        instructions, ir, _ = _load(instructions_path)
        project_dir = Path(instructions_path).resolve().parent
        statuses = Pipeline(ir, instructions, project_dir, only=list(only) or None).plan()
    except SkillcError as e:
        _fail(e)
        return

    table = Table(title=f"Artifacts ({instructions.frontmatter.name})")
    table.add_column("Artifact", style="cyan")
    table.add_column("State")
    table.add_column("Input hash", style="dim")
    for s in statuses:
        state = "[green]up to date[/]" if s.up_to_date else "[yellow]stale[/]"
        table.add_row(s.artifact.value, state, s.input_hash[:12])
    console.print(table)


# ── Config ───────────────────────────────────────────────────────────


@main.group()
def config():
    """Manage ~/.config/sc/config.yaml."""


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str):
    """Set KEY (provider, api-key, model, base-url) to VALUE."""
    from skillc.config import set_value

    try:
        set_value(key, value)
    except SkillcError as e:
        _fail(e)
        return
    console.print(f"[green]v[/] {key} updated")


@config.command("list")
def config_list():
    """List stored values (the API key is masked)."""
    from skillc.config import list_values

    try:
        values = list_values()
    except SkillcError as e:
        _fail(e)
        return

    table = Table()
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in values.items():
        table.add_row(key, value or "[dim](unset)[/]")
    console.print(table)


@config.command("show")
@click.option(
    "--instructions", "-i", "instructions_path", default=None,
    help="Also apply provider settings from this instructions file",
)
@click.option("--provider", default="", help="Override the provider")
@click.option("--model", default="", help="Override the model")
def config_show(instructions_path: str | None, provider: str, model: str):
    """Show the effective provider settings after every override."""
    from skillc.config import Settings, mask_key, resolve_settings
    from skillc.instructions import parse_instructions

    try:
        frontmatter = None
        if instructions_path:
            p = parse_instructions(instructions_path).frontmatter.provider
            frontmatter = Settings(p.provider, p.api_key, p.model, p.base_url)
        resolved = resolve_settings(
            cli=Settings(provider=provider, model=model),
            frontmatter=frontmatter,
            env=os.environ,
        )
    except SkillcError as e:
        _fail(e)
        return

    console.print(f"provider: {resolved.provider or '(unset)'}")
    console.print(f"model:    {resolved.model or '(unset)'}")
    console.print(f"api-key:  {mask_key(resolved.api_key) or '(unset)'}")
    console.print(f"base-url: {resolved.base_url or '(unset)'}")


@config.command("reset")
def config_reset():
    """Delete the config file."""
    from skillc.config import reset

    try:
        reset()
    except SkillcError as e:
        _fail(e)
        return
    console.print("[green]v[/] config reset")


if __name__ == "__main__":
    main()
