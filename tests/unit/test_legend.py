"""Tests for legend building and reconciliation."""

import pytest

from obsim.config.model import PlotConfiguration
from obsim.contracts.errors import UnknownSeriesError
from obsim.legend import LegendEntry, LegendTable, build_legend, reconcile_legend
from obsim.mapping import DataMapping


@pytest.fixture
def mapping() -> DataMapping:
    m = DataMapping()
    m.add_observed_series([(10, 5), (20, 8)], group="A", label="obs A")
    m.add_observed_series([(15, 50)], group="B", label="obs B")
    m.add_model_output_series(
        ["Organism|A", "Organism|B"],
        [([0, 30], [4, 7]), ([0, 30], [60, 41])],
        ["sim A", "sim B"],
        ["A", "B"],
    )
    return m


@pytest.fixture
def legend(mapping) -> LegendTable:
    return build_legend(mapping, PlotConfiguration())


class TestBuildLegend:
    def test_one_entry_per_series(self, legend):
        assert legend.names == ("obs A", "obs B", "sim A", "sim B")

    def test_group_colours_shared(self, legend):
        assert legend.get("obs A").color == legend.get("sim A").color
        assert legend.get("obs A").color != legend.get("obs B").color

    def test_observed_markers_simulated_lines(self, legend):
        obs = legend.get("obs A")
        sim = legend.get("sim A")

        assert obs.shape and not obs.linetype
        assert sim.linetype and not sim.shape

    def test_all_visible(self, legend):
        assert all(entry.visible for entry in legend)


class TestLegendTable:
    def test_duplicate_names(self):
        entry = LegendEntry(name="a", label="a", color="red")
        with pytest.raises(ValueError, match="Duplicate"):
            LegendTable((entry, entry))

    def test_unknown_entry(self, legend):
        with pytest.raises(UnknownSeriesError):
            legend.get("missing")
        assert legend.find("missing") is None

    def test_frame_round_trip(self, legend):
        assert LegendTable.from_frame(legend.to_frame()) == legend


class TestReconcileLegend:
    """Test reconciliation of legend overrides."""

    def test_copy_from_and_hide(self, legend):
        result = reconcile_legend(legend, {
            "sim A": {"copy_from": "obs A", "visible": False},
        })

        sim = result.get("sim A")
        obs = result.get("obs A")
        assert sim.color == obs.color
        assert sim.shape == obs.shape
        assert sim.linetype == obs.linetype
        assert not sim.visible
        assert sim.label == "sim A"

    def test_input_not_modified(self, legend):
        reconcile_legend(legend, {"obs A": {"color": "#000000"}})

        assert legend.get("obs A").color != "#000000"

    def test_explicit_overrides(self, legend):
        result = reconcile_legend(legend, {"obs B": {"color": "#000000", "label": "Treated"}})

        assert result.get("obs B").color == "#000000"
        assert result.get("obs B").label == "Treated"
        assert result.get("obs A") == legend.get("obs A")

    def test_copy_reads_overridden_source(self, legend):
        result = reconcile_legend(legend, {
            "obs A": {"color": "#123456"},
            "sim A": {"copy_from": "obs A"},
        })

        assert result.get("sim A").color == "#123456"

    def test_explicit_wins_over_copy(self, legend):
        result = reconcile_legend(legend, {
            "sim A": {"copy_from": "obs A", "linetype": ":"},
        })

        assert result.get("sim A").linetype == ":"
        assert result.get("sim A").shape == legend.get("obs A").shape

    def test_idempotent(self, legend):
        overrides = {
            "obs A": {"color": "#123456"},
            "sim A": {"copy_from": "obs A", "visible": False},
            "sim B": {"copy_from": "obs B"},
        }

        once = reconcile_legend(legend, overrides)
        twice = reconcile_legend(once, overrides)

        assert once == twice

    def test_unknown_entry(self, legend):
        with pytest.raises(UnknownSeriesError):
            reconcile_legend(legend, {"missing": {"visible": False}})

    def test_unknown_copy_source(self, legend):
        with pytest.raises(UnknownSeriesError):
            reconcile_legend(legend, {"sim A": {"copy_from": "missing"}})

    def test_unknown_key(self, legend):
        with pytest.raises(ValueError, match="Unknown legend override"):
            reconcile_legend(legend, {"sim A": {"colour": "red"}})

    def test_chained_copy_rejected(self, legend):
        with pytest.raises(ValueError, match="copies"):
            reconcile_legend(legend, {
                "sim A": {"copy_from": "obs A"},
                "sim B": {"copy_from": "sim A"},
            })
