"""
Pipeline orchestrator for brick build generation.

Runs one of two paths:
    procedural: Creator -> Critic loop, seeded from the prompt.
    ai / ldr:   external layout (layout agent or .ldr file) -> Sanitizer.
Handles output file creation and logging.
"""

import json
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel

from brickmind.agents.layout_agent import DEFAULT_MODEL, AgentResult, layout_source
from brickmind.errors import BrickMindError
from brickmind.models import BuildResult
from brickmind.tools.creator import generate_build
from brickmind.tools.ldr_converter import save_ldr_file
from brickmind.tools.ldr_parser import parse_ldr
from brickmind.tools.sanitizer import build_from_source, sanitize_external_build
from brickmind.tools.structure_analyzer import analyze_structure, format_structure_analysis


MODES = ("procedural", "ai")

console = Console()


def _format_usage_stats(result: AgentResult) -> list[str]:
    """Format usage stats from an AgentResult for logging."""
    lines = []
    lines.append(f"API calls: {result.api_calls}")
    lines.append(f"Tool calls: {len(result.tool_calls)}")
    for tc in result.tool_calls:
        lines.append(f"  - {tc}")

    cache_info = ""
    if result.cache_read_tokens > 0:
        cache_info = f" ({result.cache_read_tokens:,} cached)"
    lines.append(f"Tokens: {result.input_tokens:,} input{cache_info} / {result.output_tokens:,} output")

    return lines


def _slug(name: str) -> str:
    return "_".join("".join(c if c.isalnum() else " " for c in name.lower()).split()) or "model"


def _generate(
    prompt: str,
    budget: int,
    mode: str,
    model: str,
    ldr_input: Path | None,
    verbose: bool,
    log_lines: list[str],
) -> BuildResult:
    if ldr_input is not None:
        console.print(Panel("Sanitizer: LDraw import", style="bold blue"))
        console.print(f"[dim]Repairing {ldr_input}...[/dim]")
        payload = parse_ldr(ldr_input)
        log_lines.append(f"=== LDraw import: {ldr_input} ({len(payload.pieces)} pieces read) ===")
        return sanitize_external_build(payload, budget, prompt=prompt, verbose=verbose)

    if mode == "ai":
        console.print(Panel("Layout Agent + Sanitizer", style="bold blue"))
        console.print(f"[dim]Asking {model} for a layout...[/dim]")
        runs: list[AgentResult] = []
        try:
            return build_from_source(prompt, budget, layout_source(budget, model=model, verbose=verbose, runs=runs),
                                     verbose=verbose)
        finally:
            log_lines.append("=== Layout Agent ===")
            for run in runs:
                log_lines.extend(_format_usage_stats(run))

    console.print(Panel("Creator / Critic", style="bold blue"))
    console.print("[dim]Placing pieces with physics validation...[/dim]")
    log_lines.append("=== Creator ===")
    return generate_build(prompt, budget, verbose=verbose)


def run_pipeline(
    prompt: str,
    budget: int,
    output_dir: Path,
    mode: str = "procedural",
    model: str = DEFAULT_MODEL,
    ldr_input: Path | None = None,
    verbose: bool = False
) -> Path:
    """
    Run the complete build generation pipeline.

    Writes build.json, one .ldr file per design variant and log.txt into a
    timestamped directory under output_dir, and returns that directory.
    Engine errors are logged and then re-raised.
    """
    if mode not in MODES:
        raise ValueError(f"Mode must be one of {MODES}, got {mode!r}")

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = output_dir / timestamp
    run_dir.mkdir(parents=True, exist_ok=True)

    log_lines = [
        f"Pipeline run: {timestamp}",
        f"Prompt: {prompt}",
        f"Budget: {budget}",
        f"Mode: {'ldr' if ldr_input else mode}",
        "",
    ]
    log_path = run_dir / "log.txt"

    try:
        result = _generate(prompt, budget, mode, model, ldr_input, verbose, log_lines)
    except BrickMindError as e:
        console.print(f"[red]Generation failed: {e}[/red]")
        log_lines.append(f"Result: FAILED - {type(e).__name__}: {e}")
        log_path.write_text("\n".join(log_lines))
        raise

    log_lines.append(f"Result: SUCCESS - {len(result.parts_list)} palette entries, {len(result.steps)} steps")

    # ========================================================================
    # Save Outputs
    # ========================================================================

    json_path = run_dir / "build.json"
    json_path.write_text(json.dumps(result.model_dump(mode="json"), indent=2))
    console.print(f"[green]✓[/green] Saved JSON to {json_path}")

    # Steps describe the full variant for procedural builds and the repaired
    # (unrotated) variant for external ones.
    steps_index = len(result.model_options) - 1 if ldr_input is None and mode == "procedural" else 0

    for i, structure in enumerate(result.model_options):
        ldr_path = run_dir / f"{_slug(structure.name)}.ldr"
        save_ldr_file(structure, ldr_path, result.steps if i == steps_index else None)
        console.print(f"[green]✓[/green] Saved {structure.name} ({structure.part_count} pieces) to {ldr_path}")

        analysis = format_structure_analysis(analyze_structure(structure.pieces))
        log_lines.append("")
        log_lines.append(f"=== {structure.name} ===")
        log_lines.append(analysis)
        if verbose:
            console.print(Panel(analysis, title=structure.name))

    log_path.write_text("\n".join(log_lines))
    console.print(f"[green]✓[/green] Saved log to {log_path}")

    # ========================================================================
    # Summary
    # ========================================================================

    variants = "\n".join(
        f"{s.name}: {s.part_count} pieces, {s.difficulty}, ~{s.estimated_time} min"
        for s in result.model_options
    )
    console.print()
    console.print(Panel(
        f"[bold green]Build generated successfully![/bold green]\n\n"
        f"{variants}\n"
        f"Palette: {sum(e.qty for e in result.parts_list)} parts in {len(result.parts_list)} entries\n"
        f"Output: {run_dir}",
        title="Complete"
    ))

    return run_dir
