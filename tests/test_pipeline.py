"""End-to-end pipeline runs and the CLI."""
import json

import pytest
from click.testing import CliRunner

from brickmind.cli import main
from brickmind.errors import NoValidPiecesError
from brickmind.pipeline import run_pipeline


def test_procedural_run_writes_outputs(tmp_path):
    run_dir = run_pipeline("Dragon", 30, tmp_path)

    build = json.loads((run_dir / "build.json").read_text())
    assert build["prompt"] == "Dragon"
    assert len(build["model_options"]) == 2
    assert (run_dir / "the_speedster.ldr").exists()
    assert (run_dir / "the_tanker.ldr").exists()

    log = (run_dir / "log.txt").read_text()
    assert "Mode: procedural" in log
    assert "Result: SUCCESS" in log


def test_ldr_input_run(tmp_path):
    model = tmp_path / "in.ldr"
    model.write_text(
        "0 Wall\n"
        "1 4 0 -24 0 1 0 0 0 1 0 0 0 1 3001.dat\n"
        "0 STEP\n"
        "1 4 0 -48 0 1 0 0 0 1 0 0 0 1 3001.dat\n"
    )
    run_dir = run_pipeline("repair", 10, tmp_path / "out", ldr_input=model)

    build = json.loads((run_dir / "build.json").read_text())
    assert build["model_options"][0]["part_count"] == 2
    assert (run_dir / "wall.ldr").exists()
    assert (run_dir / "wall_rotated.ldr").exists()


def test_failed_run_still_writes_log(tmp_path):
    empty = tmp_path / "empty.ldr"
    empty.write_text("0 Nothing here\n")

    with pytest.raises(NoValidPiecesError):
        run_pipeline("repair", 10, tmp_path / "out", ldr_input=empty)

    logs = list((tmp_path / "out").glob("*/log.txt"))
    assert len(logs) == 1
    assert "FAILED" in logs[0].read_text()


def test_unknown_mode_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        run_pipeline("Dragon", 30, tmp_path, mode="magic")


def test_cli_procedural(tmp_path):
    result = CliRunner().invoke(main, ["Dragon", "--budget", "20", "--output", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert list(tmp_path.glob("*/build.json"))


def test_cli_reports_engine_errors(tmp_path):
    result = CliRunner().invoke(main, ["   ", "--budget", "20", "--output", str(tmp_path)])
    assert result.exit_code != 0
    assert "Error" in result.output
