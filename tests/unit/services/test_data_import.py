"""Tests for observed and simulated data import."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from obsim.config import AppConfig
from obsim.config.model import ObservedDataConfig, SimulatedDataConfig
from obsim.contracts.errors import DataImportError
from obsim.services.data_import import (
    load_observed,
    load_simulated,
    observations_from_frame,
    observed_from_frame,
    samples_from_frame,
    simulated_from_frame,
)


class TestObservedImport:
    """Test loading observed data."""

    def test_load_csv(self, observed_csv: Path, sample_toml_config: Path):
        config = AppConfig.from_toml_file(sample_toml_config)

        observed = load_observed(observed_csv, config.observed)

        assert list(observed.columns) == ["group", "time", "value", "error"]
        assert observed["group"].tolist() == ["Placebo"] * 3 + ["Treated"] * 2
        assert observed.attrs["time_unit"] == "min"
        assert observed.attrs["value_unit"] == "%"

    def test_missing_error_replaced(self, observed_csv: Path, sample_toml_config: Path):
        config = AppConfig.from_toml_file(sample_toml_config)

        observed = load_observed(observed_csv, config.observed)

        assert not observed["error"].isna().any()
        assert observed["error"].tolist() == [0.5, 0.0, 1.0, 0.0, 2.0]

    def test_load_excel(self, temp_dir: Path):
        path = temp_dir / "observed.xlsx"
        pd.DataFrame({
            "group": ["A", "A"],
            "time": [1.0, 2.0],
            "value": [3.0, 4.0],
        }).to_excel(path, index=False, sheet_name="Data")

        observed = load_observed(path, ObservedDataConfig(sheet="Data"))

        assert observed["value"].tolist() == [3.0, 4.0]
        assert observed["error"].tolist() == [0.0, 0.0]

    def test_rename_groups(self):
        raw = pd.DataFrame({"group": ["a", "b"], "time": [1, 2], "value": [1, 2]})

        observed = observed_from_frame(raw, ObservedDataConfig(rename_groups={"a": "Placebo"}))

        assert observed["group"].tolist() == ["Placebo", "b"]

    def test_rows_without_values_dropped(self):
        raw = pd.DataFrame({"group": ["a", "a"], "time": [1, 2], "value": [1.0, None]})

        observed = observed_from_frame(raw)

        assert len(observed) == 1

    def test_missing_columns(self):
        with pytest.raises(DataImportError, match="missing columns"):
            observed_from_frame(pd.DataFrame({"group": ["a"]}))

    def test_missing_file(self, temp_dir: Path):
        with pytest.raises(DataImportError, match="not found"):
            load_observed(temp_dir / "missing.csv")

    def test_observations(self, observed_df):
        observations = observations_from_frame(observed_df)

        assert len(observations) == 5
        assert observations[0].group == "A"
        assert observations[0].error == 0.5


class TestSimulatedImport:
    """Test reshaping simulation result exports."""

    def test_load_csv(self, simulated_csv: Path, sample_toml_config: Path):
        config = AppConfig.from_toml_file(sample_toml_config)

        simulated = load_simulated(simulated_csv, config.simulated)

        assert len(simulated) == 8
        assert set(simulated["group"]) == {"Placebo", "Treated"}
        assert set(simulated["path"]) == {"Organism|Placebo|Fraction", "Organism|Treated|Fraction"}
        assert simulated.attrs["time_unit"] == "h"
        assert simulated.attrs["value_unit"] == "%"

    def test_group_defaults_to_path(self):
        raw = pd.DataFrame({
            "IndividualId": [0, 0],
            "Time [min]": [0.0, 1.0],
            "Organism|Plasma|Concentration [µmol/l]": [1.0, 2.0],
        })

        simulated = simulated_from_frame(raw)

        assert simulated["group"].unique().tolist() == ["Organism|Plasma|Concentration"]
        assert simulated.attrs["time_unit"] == "min"
        assert simulated.attrs["value_unit"] == "µmol/l"

    def test_mixed_value_units(self):
        raw = pd.DataFrame({
            "IndividualId": [0],
            "Time [min]": [0.0],
            "A [%]": [1.0],
            "B [mg]": [2.0],
        })

        simulated = simulated_from_frame(raw)

        assert simulated.attrs["value_unit"] is None
        assert simulated["unit"].tolist() == ["%", "mg"]

    def test_path_selection(self):
        raw = pd.DataFrame({
            "IndividualId": [0],
            "Time [min]": [0.0],
            "A [%]": [1.0],
            "B [%]": [2.0],
        })

        simulated = simulated_from_frame(raw, SimulatedDataConfig(paths=["B"]))

        assert simulated["path"].tolist() == ["B"]

    def test_missing_path(self):
        raw = pd.DataFrame({"IndividualId": [0], "Time [min]": [0.0], "A [%]": [1.0]})

        with pytest.raises(DataImportError, match="no output paths"):
            simulated_from_frame(raw, SimulatedDataConfig(paths=["C"]))

    def test_configured_time_unit_wins(self):
        raw = pd.DataFrame({"IndividualId": [0], "Time": [0.0], "A [%]": [1.0]})

        simulated = simulated_from_frame(raw, SimulatedDataConfig(time_col="Time", time_unit="h"))

        assert simulated.attrs["time_unit"] == "h"

    def test_missing_columns(self):
        with pytest.raises(DataImportError, match="missing columns"):
            simulated_from_frame(pd.DataFrame({"Time [min]": [0.0]}))

    def test_samples(self, simulated_df):
        samples = samples_from_frame(simulated_df)

        assert len(samples) == 7
        assert samples[-1].group == "B"
        assert np.isclose(samples[-1].value, 41.0)

    def test_samples_keep_string_individual_ids(self):
        simulated = pd.DataFrame({
            "individual_id": ["P1", "P2"],
            "time": [0.0, 10.0],
            "value": [1.0, 2.0],
            "group": ["A", "A"],
        })

        samples = samples_from_frame(simulated)

        assert [s.individual_id for s in samples] == ["P1", "P2"]
