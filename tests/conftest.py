"""Pytest configuration and fixtures."""

import sys
import tempfile
from pathlib import Path

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pandas as pd
import pytest
import structlog

from obsim.config import AppConfig


@pytest.fixture
def temp_dir():
    """Temporary directory for test artifacts."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo logging configuration done by CLI invocations."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def sample_config() -> AppConfig:
    """Sample configuration for testing."""
    return AppConfig()


@pytest.fixture
def observed_df() -> pd.DataFrame:
    """Canonical observed table with two groups, minutes and percent."""
    df = pd.DataFrame({
        "group": ["A", "A", "A", "B", "B"],
        "time": [10.0, 20.0, 30.0, 15.0, 45.0],
        "value": [5.0, 8.0, 6.0, 50.0, 40.0],
        "error": [0.5, 0.0, 1.0, 0.0, 2.0],
    })
    df.attrs["time_unit"] = "min"
    df.attrs["value_unit"] = "%"
    return df


@pytest.fixture
def simulated_df() -> pd.DataFrame:
    """Canonical simulated table matching ``observed_df`` groups."""
    df = pd.DataFrame({
        "individual_id": [0] * 7,
        "time": [9.0, 21.0, 29.0, 41.0, 0.0, 20.0, 40.0],
        "value": [4.0, 9.0, 7.0, 12.0, 60.0, 48.0, 41.0],
        "group": ["A", "A", "A", "A", "B", "B", "B"],
        "path": ["Organism|A", "Organism|A", "Organism|A", "Organism|A",
                 "Organism|B", "Organism|B", "Organism|B"],
    })
    df.attrs["time_unit"] = "min"
    df.attrs["value_unit"] = "%"
    return df


@pytest.fixture
def observed_csv(temp_dir: Path) -> Path:
    """Observed data file in spreadsheet column layout."""
    path = temp_dir / "observed.csv"
    pd.DataFrame({
        "Group Id": ["Placebo", "Placebo", "Placebo", "Treated", "Treated", "Other"],
        "Time [min]": [10, 20, 30, 16, 45, 5],
        "Measurement [%]": [5.0, 8.0, 6.0, 50.0, 40.0, 1.0],
        "Error [%]": [0.5, None, 1.0, None, 2.0, None],
    }).to_csv(path, index=False)
    return path


@pytest.fixture
def simulated_csv(temp_dir: Path) -> Path:
    """Simulation result export with two output paths, time in hours."""
    path = temp_dir / "simulated.csv"
    pd.DataFrame({
        "IndividualId": [0, 0, 0, 0],
        "Time [h]": [0.15, 0.35, 0.5, 0.7],
        "Organism|Placebo|Fraction [%]": [4.0, 9.0, 7.0, 12.0],
        "Organism|Treated|Fraction [%]": [60.0, 48.0, 45.0, 41.0],
    }).to_csv(path, index=False)
    return path


@pytest.fixture
def sample_toml_config(temp_dir: Path) -> Path:
    """Configuration file matching ``observed_csv`` and ``simulated_csv``."""
    config_content = """
[observed]
group_col = "Group Id"
time_col = "Time [min]"
value_col = "Measurement [%]"
error_col = "Error [%]"
time_unit = "min"
value_unit = "%"
groups = ["Placebo", "Treated"]

[simulated]
individual_col = "IndividualId"
time_col = "Time [h]"

[simulated.path_groups]
"Organism|Placebo|Fraction" = "Placebo"
"Organism|Treated|Fraction" = "Treated"

[alignment]
on_missing = "raise"

[plot]
dpi = 72
figsize = [6.0, 4.0]

[plot.y_axis]
label = "Fraction [%]"
"""

    config_file = temp_dir / "obsim.toml"
    config_file.write_text(config_content)
    return config_file
