"""
Command-line interface for brick build generation.

Usage:
    brickmind "a red dragon" --budget 120
    brickmind "medieval castle" --mode ai --output ./builds --verbose
    brickmind "repair this" --from-ldr ./model.ldr
"""

from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console

from brickmind.agents.layout_agent import DEFAULT_MODEL
from brickmind.errors import BrickMindError
from brickmind.pipeline import MODES, run_pipeline


# Load environment variables from .env file (for ANTHROPIC_API_KEY).
load_dotenv()


console = Console()


@click.command()
@click.argument("prompt")
@click.option(
    "--budget", "-b",
    type=int,
    default=100,
    show_default=True,
    help="Maximum number of pieces."
)
@click.option(
    "--mode",
    type=click.Choice(MODES),
    default="procedural",
    show_default=True,
    help="Seeded procedural generator or Claude layout repaired by the sanitizer."
)
@click.option(
    "--model", "-m",
    default=DEFAULT_MODEL,
    help="Claude model to use in ai mode."
)
@click.option(
    "--output", "-o",
    type=click.Path(path_type=Path),
    default=Path("./output"),
    help="Output directory for generated files."
)
@click.option(
    "--from-ldr",
    "ldr_input",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Repair an existing LDraw model instead of generating one."
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show detailed progress and debug info."
)
def main(prompt: str, budget: int, mode: str, model: str, output: Path, ldr_input: Path | None, verbose: bool):
    """
    Generate a brick build from a natural language description.

    PROMPT: Description of the model to build (e.g., "a small red fire truck")
    """
    console.print("[bold]BrickMind Build Generator[/bold]")
    console.print(f"Prompt: {prompt}")
    console.print(f"Budget: {budget}")
    console.print(f"Mode: {'ldr' if ldr_input else mode}")
    console.print()

    try:
        run_pipeline(prompt, budget, output, mode=mode, model=model, ldr_input=ldr_input, verbose=verbose)
    except BrickMindError as e:
        console.print(f"[red bold]Error:[/red bold] {e}")
        raise click.Abort()


if __name__ == "__main__":
    main()
