"""
CLI commands for narrative forge
"""

import json
import logging
from pathlib import Path

import click

from narrative_forge.cli.validate_cmd import ScriptValidator
from narrative_forge.logic.errors import LogicError
from narrative_forge.world import WorldError, build_engine, load_world

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

world_option = click.option(
    "--world",
    "-w",
    "world_path",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON world file with flags, fragments, placeholders and conditions",
)


def engine_from(world_path):
    """Build an engine from an optional world file, turning load problems into CLI errors"""
    try:
        world = load_world(Path(world_path)) if world_path else None
        return build_engine(world)
    except (WorldError, LogicError) as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Verbosity of the engine's log output (written to stderr)",
)
def cli(log_level):
    """Narrative Forge - resolve, evaluate and validate interactive-fiction text"""
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")


@cli.command()
@click.argument("text")
@world_option
@click.option("--dry-run", is_flag=True, help="Collect actions without running them")
def resolve(text, world_path, dry_run):
    """Resolve TEXT and print the output, speaker and collected actions as JSON"""
    engine = engine_from(world_path)
    resolution = engine.resolve_string(text, no_execute_actions=dry_run)

    result = {
        "output": resolution.output,
        "speaker": resolution.speaker,
        "actions": resolution.actions.to_dict(),
        "redirected": resolution.redirected,
        "flags": engine.flags.to_dict()["flags"],
    }
    click.echo(json.dumps(result, indent=2, ensure_ascii=False))


@cli.command()
@click.argument("condition")
@world_option
@click.option("--or", "use_or", is_flag=True, help="OR the comma-separated conditions instead of AND")
@click.pass_context
def evaluate(ctx, condition, world_path, use_or):
    """Evaluate a CONDITION clause such as "gold>10, _is_night=true" """
    engine = engine_from(world_path)
    clause = "ifOr" if use_or else "if"

    try:
        passed = engine.perform_conditional_evaluation({clause: condition})
    except LogicError as e:
        click.echo(f"❌ Error: {e}", err=True)
        ctx.exit(1)

    click.echo("true" if passed else "false")


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@world_option
@click.pass_context
def validate(ctx, file_path, world_path):
    """Validate a narrative text file"""
    engine = engine_from(world_path)
    validator = ScriptValidator(engine)

    if not validator.validate_file(Path(file_path)):
        ctx.exit(1)


if __name__ == "__main__":
    cli()
