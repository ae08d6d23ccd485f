"""Tests for the markerseg CLI commands."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pandas as pd
import yaml
from click.testing import CliRunner

from markerseg.cli.main import cli


class TestGroup:
    def test_help_lists_commands(self, runner: CliRunner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("run", "channels", "init-config"):
            assert name in result.output

    def test_run_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["run", "--help"])
        assert result.exit_code == 0
        assert "--nucleus-channels" in result.output
        assert "--start-at" in result.output


class TestChannels:
    def test_lists_labels(self, runner: CliRunner, stack_path: Path):
        result = runner.invoke(cli, ["channels", str(stack_path)])
        assert result.exit_code == 0
        assert "DAPI (Ch1)" in result.output
        assert "CD8 (Ch2)" in result.output

    def test_marks_nucleus_channels(self, runner: CliRunner, stack_path: Path):
        result = runner.invoke(cli, ["channels", str(stack_path), "--nucleus-channels", "dapi,3"])
        assert result.exit_code == 0
        assert result.output.count("yes") == 2


class TestInitConfig:
    def test_writes_defaults(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "config.yaml"
        result = runner.invoke(cli, ["init-config", str(path)])
        assert result.exit_code == 0
        data = yaml.safe_load(path.read_text())
        assert data["nucleus_channels"] == ["dapi"]

    def test_refuses_overwrite(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "config.yaml"
        path.write_text("keep: me\n")
        result = runner.invoke(cli, ["init-config", str(path)])
        assert result.exit_code == 1
        assert path.read_text() == "keep: me\n"
        result = runner.invoke(cli, ["init-config", str(path), "--force"])
        assert result.exit_code == 0


class TestRun:
    def test_run_writes_outputs(self, runner: CliRunner, stack_path: Path, tmp_path: Path):
        out = tmp_path / "out"
        result = runner.invoke(cli, [
            "run", str(stack_path), "-o", str(out),
            "--nucleus-channels", "dapi", "--max-distance", "8",
        ])
        assert result.exit_code == 0, result.output
        assert "Run complete" in result.output
        assert (out / "sample_cells.csv").exists()
        assert (out / "run.log").exists()
        summary = pd.read_csv(out / "overlap_summary.csv")
        assert len(summary) == 2

    def test_run_directory_input(self, runner: CliRunner, stack_path: Path, tmp_path: Path):
        out = tmp_path / "out"
        result = runner.invoke(cli, ["run", str(stack_path.parent), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert (out / "sample_cells.tif").exists()

    def test_run_with_config(self, runner: CliRunner, stack_path: Path, tmp_path: Path):
        config = tmp_path / "config.yaml"
        config.write_text(yaml.safe_dump({"nucleus_channels": ["hoechst"]}))
        out = tmp_path / "out"
        result = runner.invoke(cli, ["run", str(stack_path), "-o", str(out), "-c", str(config)])
        # The only file fails, so the run exits non-zero
        assert result.exit_code == 1
        assert "Files failed: 1" in result.output

    def test_invalid_config_is_reported(self, runner: CliRunner, stack_path: Path, tmp_path: Path):
        config = tmp_path / "config.yaml"
        config.write_text(yaml.safe_dump({"bogus": 1}))
        result = runner.invoke(cli, ["run", str(stack_path), "-o", str(tmp_path / "o"), "-c", str(config)])
        assert result.exit_code == 1
        assert "Unknown configuration keys" in result.output

    def test_interactive_cancel(self, runner: CliRunner, stack_path: Path, tmp_path: Path):
        result = runner.invoke(
            cli, ["run", str(stack_path), "-o", str(tmp_path / "out"), "--interactive"],
            input="\n",
        )
        assert result.exit_code == 1
        assert "cancelled" in result.output

    def test_interactive_bounds(self, runner: CliRunner, stack_path: Path, tmp_path: Path):
        result = runner.invoke(
            cli, ["run", str(stack_path), "-o", str(tmp_path / "out"), "--interactive"],
            input="0.5\n1.0\n",
        )
        assert result.exit_code == 0, result.output
        assert "Total cells: 2" in result.output

    def test_unexpected_error_exit_code(self, runner: CliRunner, stack_path: Path, tmp_path: Path):
        with patch("markerseg.pipeline.PipelineEngine.run", side_effect=RuntimeError("boom")):
            result = runner.invoke(cli, ["run", str(stack_path), "-o", str(tmp_path / "out")])
        assert result.exit_code == 2
        assert "boom" in result.output
