"""Integration tests for the Typer CLI."""

from pathlib import Path
from unittest.mock import patch

import pandas as pd
import pytest
from typer.testing import CliRunner

from obsim.cli.main import app
from obsim.config import AppConfig


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep configuration search away from the real working and home directories."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("OBSIM_CONFIG", raising=False)


@pytest.fixture
def partial_config(temp_dir: Path) -> Path:
    """Configuration without a group filter, so group "Other" has no simulated output."""
    config_file = temp_dir / "partial.toml"
    config_file.write_text(
        '[observed]\n'
        'group_col = "Group Id"\n'
        'time_col = "Time [min]"\n'
        'value_col = "Measurement [%]"\n'
        'error_col = "Error [%]"\n'
        '[simulated]\n'
        'time_col = "Time [h]"\n'
        '[simulated.path_groups]\n'
        '"Organism|Placebo|Fraction" = "Placebo"\n'
        '"Organism|Treated|Fraction" = "Treated"\n'
    )
    return config_file


class TestCLIBasics:
    def test_cli_help(self, runner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Observed vs simulated" in result.stdout

    def test_info_command(self, runner):
        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0
        assert "obsim v" in result.stdout
        assert "time_profile" in result.stdout


class TestConfigValidation:
    def test_validate_valid_config(self, runner, sample_toml_config):
        result = runner.invoke(app, ["validate", str(sample_toml_config)])
        assert result.exit_code == 0
        assert "valid" in result.stdout

    def test_validate_with_patched_loader(self, runner, sample_toml_config):
        with patch("obsim.cli.main.app_api.load_config_from_file", return_value=AppConfig()) as loader:
            result = runner.invoke(app, ["validate", str(sample_toml_config)])
        assert result.exit_code == 0
        loader.assert_called_once()

    def test_validate_nonexistent_config(self, runner):
        result = runner.invoke(app, ["validate", "nonexistent.toml"])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_validate_invalid_config(self, runner, temp_dir: Path):
        config_file = temp_dir / "bad.toml"
        config_file.write_text('[observed]\ntime_unit = "fortnight"\n')

        result = runner.invoke(app, ["validate", str(config_file)])

        assert result.exit_code == 1
        assert "validation failed" in result.stdout


class TestMatchCommand:
    def test_match(self, runner, observed_csv, simulated_csv, sample_toml_config, temp_dir):
        output = temp_dir / "aligned.csv"

        result = runner.invoke(app, [
            "match", str(observed_csv), str(simulated_csv),
            "--config", str(sample_toml_config),
            "--output", str(output),
        ])

        assert result.exit_code == 0
        assert "Matched 5 of 5 observations" in result.stdout
        aligned = pd.read_csv(output)
        placebo = aligned[aligned["group"] == "Placebo"]
        assert placebo["residual"].round(6).tolist() == [-1.0, 1.0, 1.0]

    def test_match_missing_group(self, runner, observed_csv, simulated_csv, partial_config):
        result = runner.invoke(app, [
            "match", str(observed_csv), str(simulated_csv), "--config", str(partial_config),
        ])
        assert result.exit_code == 1
        assert "no simulated samples" in result.stdout

        result = runner.invoke(app, [
            "match", str(observed_csv), str(simulated_csv),
            "--config", str(partial_config), "--on-missing", "skip",
        ])
        assert result.exit_code == 0
        assert "Matched 5 of 6 observations" in result.stdout

    def test_match_env_override_without_config_option(
        self, runner, observed_csv, simulated_csv, partial_config, monkeypatch
    ):
        monkeypatch.setenv("OBSIM_CONFIG", str(partial_config))
        monkeypatch.setenv("OBSIM_ALIGNMENT_ON_MISSING", "skip")

        result = runner.invoke(app, ["match", str(observed_csv), str(simulated_csv)])

        assert result.exit_code == 0
        assert "Matched 5 of 6 observations" in result.stdout

    def test_match_finds_config_in_working_directory(
        self, runner, observed_csv, simulated_csv, sample_toml_config, monkeypatch
    ):
        monkeypatch.chdir(sample_toml_config.parent)

        result = runner.invoke(app, ["match", str(observed_csv), str(simulated_csv)])

        assert result.exit_code == 0
        assert "Matched 5 of 5 observations" in result.stdout

    def test_match_invalid_on_missing(self, runner, observed_csv, simulated_csv):
        result = runner.invoke(app, [
            "match", str(observed_csv), str(simulated_csv), "--on-missing", "ignore",
        ])
        assert result.exit_code == 1

    def test_match_missing_file(self, runner, simulated_csv, temp_dir):
        result = runner.invoke(app, ["match", str(temp_dir / "missing.csv"), str(simulated_csv)])
        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestSummaryCommand:
    def test_summary(self, runner, observed_csv, simulated_csv, sample_toml_config, temp_dir):
        output = temp_dir / "summary.csv"

        result = runner.invoke(app, [
            "summary", str(observed_csv), str(simulated_csv),
            "--config", str(sample_toml_config),
            "--output", str(output),
        ])

        assert result.exit_code == 0
        assert "Residual Summary" in result.stdout
        summary = pd.read_csv(output, index_col=0)
        assert summary.index.tolist() == ["Placebo", "Treated", "overall"]


class TestPlotCommand:
    def test_plot_all_types(self, runner, observed_csv, simulated_csv, sample_toml_config, temp_dir):
        output_dir = temp_dir / "plots"

        result = runner.invoke(app, [
            "plot", str(observed_csv), str(simulated_csv),
            "--config", str(sample_toml_config),
            "--output", str(output_dir),
        ])

        assert result.exit_code == 0
        for name in ("time_profile", "obs_vs_pred", "residuals_vs_time", "residuals_boxplot"):
            assert (output_dir / f"{name}.png").exists()

    def test_plot_selected_type_log_scale(
        self, runner, observed_csv, simulated_csv, sample_toml_config, temp_dir
    ):
        output_dir = temp_dir / "plots"

        result = runner.invoke(app, [
            "plot", str(observed_csv), str(simulated_csv),
            "--config", str(sample_toml_config),
            "--output", str(output_dir),
            "--type", "time_profile",
            "--log-y",
            "--format", "svg",
        ])

        assert result.exit_code == 0
        assert (output_dir / "time_profile.svg").exists()
        assert not (output_dir / "obs_vs_pred.svg").exists()

    def test_plot_invalid_type(self, runner, observed_csv, simulated_csv):
        result = runner.invoke(app, [
            "plot", str(observed_csv), str(simulated_csv), "--type", "histogram",
        ])
        assert result.exit_code == 1
