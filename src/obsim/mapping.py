"""Series aggregation for comparison plots.

A :class:`DataMapping` owns an ordered collection of named, grouped XY
series together with the display settings used to render them. Series are
referenced internally by an immutable id; labels are unique display names
that can be renamed without breaking lookups.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import structlog

from .config.constants import (
    ERROR_COL,
    GROUP_COL,
    MATCHED_VALUE_COL,
    TIME_COL,
    VALUE_COL,
)
from .config.model import AxisConfig, PlotConfiguration
from .contracts.errors import (
    ArityMismatchError,
    DuplicateLabelError,
    NonPositiveLogValueError,
    UnknownSeriesError,
)
from .contracts.renderer import Renderer, RenderRequest
from .contracts.types import AxisScale, PlotType, Series, SeriesKind, VisualEncoding

logger = structlog.get_logger()

Points = Union[pd.DataFrame, Sequence[Sequence[float]]]
SeriesData = Union[pd.DataFrame, Tuple[Sequence[float], Sequence[float]]]

_AXES = ("x", "y")

FRAME_COLUMNS = [
    "series_id", "label", "group", "kind", "path",
    "x", "y", "y_min", "y_max", "y_error", "y_matched", "residual",
]


@dataclass(frozen=True)
class SeriesTransform:
    """Display transform ``v' = v * factor + offset`` per axis."""

    x_factor: float = 1.0
    x_offset: float = 0.0
    y_factor: float = 1.0
    y_offset: float = 0.0

    @property
    def is_identity(self) -> bool:
        return self == SeriesTransform()

    def apply(self, series: Series) -> Series:
        """Return a transformed copy of ``series`` keeping its id."""

        def ty(values: Optional[np.ndarray]) -> Optional[np.ndarray]:
            if values is None:
                return None
            return values * self.y_factor + self.y_offset

        return Series(
            label=series.label,
            group=series.group,
            kind=series.kind,
            x=series.x * self.x_factor + self.x_offset,
            y=ty(series.y),
            y_min=ty(series.y_min),
            y_max=ty(series.y_max),
            y_error=None if series.y_error is None else series.y_error * abs(self.y_factor),
            y_matched=ty(series.y_matched),
            path=series.path,
            _id=series.series_id,
        )


def _points_to_arrays(
    points: Points,
    x_col: str = TIME_COL,
    y_col: str = VALUE_COL,
    error_col: Optional[str] = ERROR_COL,
    matched_col: Optional[str] = MATCHED_VALUE_COL,
) -> Dict[str, Optional[np.ndarray]]:
    """Extract series arrays from a DataFrame or a sequence of tuples.

    Tuples are ``(x, y)`` or ``(x, y, error)``. DataFrames may also carry
    ``y_min``/``y_max`` band columns and a matched simulation column.
    """
    arrays: Dict[str, Optional[np.ndarray]] = {
        "y_min": None, "y_max": None, "y_error": None, "y_matched": None,
    }
    if isinstance(points, pd.DataFrame):
        missing = [c for c in (x_col, y_col) if c not in points.columns]
        if missing:
            raise ValueError(f"points are missing columns: {missing}")
        arrays["x"] = points[x_col].to_numpy(dtype=float)
        arrays["y"] = points[y_col].to_numpy(dtype=float)
        if error_col is not None and error_col in points.columns:
            arrays["y_error"] = points[error_col].fillna(0.0).to_numpy(dtype=float)
        if matched_col is not None and matched_col in points.columns:
            arrays["y_matched"] = points[matched_col].to_numpy(dtype=float)
        for band in ("y_min", "y_max"):
            if band in points.columns:
                arrays[band] = points[band].to_numpy(dtype=float)
        return arrays

    rows = [tuple(p) for p in points]
    widths = {len(r) for r in rows}
    if widths - {2, 3}:
        raise ValueError("points must be (x, y) or (x, y, error) tuples")
    if len(widths) > 1:
        raise ValueError("points must all have the same length")
    arrays["x"] = np.array([r[0] for r in rows], dtype=float)
    arrays["y"] = np.array([r[1] for r in rows], dtype=float)
    if widths == {3}:
        arrays["y_error"] = np.array(
            [0.0 if r[2] is None else r[2] for r in rows], dtype=float
        )
    return arrays


def _model_output_to_arrays(values: SeriesData) -> Dict[str, Optional[np.ndarray]]:
    if isinstance(values, pd.DataFrame):
        return _points_to_arrays(values, error_col=None, matched_col=None)
    if len(values) != 2:
        raise ValueError("model output values must be an (x, y) pair or a DataFrame")
    x, y = values
    return {
        "x": np.asarray(x, dtype=float),
        "y": np.asarray(y, dtype=float),
        "y_min": None, "y_max": None, "y_error": None, "y_matched": None,
    }


def _broadcast(name: str, values: Union[float, Sequence[float]], n: int) -> List[float]:
    if np.isscalar(values):
        return [float(values)] * n
    values = [float(v) for v in values]
    if len(values) != n:
        raise ArityMismatchError(
            f"{name} has {len(values)} entries but {n} labels were given",
            {"argument": name, "expected": n, "got": len(values)},
        )
    return values


class DataMapping:
    """Ordered collection of named XY series with display settings.

    Create it empty, add observed and model-output series, configure axes
    and transforms, then :meth:`plot`. Use :meth:`clone` to derive another
    view without touching this one.
    """

    def __init__(
        self,
        x_axis: Optional[AxisConfig] = None,
        y_axis: Optional[AxisConfig] = None,
    ):
        self._series: Dict[str, Series] = {}
        self._label_index: Dict[str, str] = {}
        self._transforms: Dict[str, SeriesTransform] = {}
        self._group_encodings: Dict[str, VisualEncoding] = {}
        self._axes: Dict[str, AxisConfig] = {
            "x": x_axis or AxisConfig(),
            "y": y_axis or AxisConfig(),
        }

    # ---- Lookup ----
    def __len__(self) -> int:
        return len(self._series)

    def __contains__(self, key: object) -> bool:
        return key in self._label_index or key in self._series

    def __repr__(self) -> str:
        return f"DataMapping(labels={self.labels})"

    @property
    def labels(self) -> List[str]:
        return [s.label for s in self._series.values()]

    @property
    def x_axis(self) -> AxisConfig:
        return self._axes["x"]

    @property
    def y_axis(self) -> AxisConfig:
        return self._axes["y"]

    def series(self, kind: Optional[SeriesKind] = None) -> List[Series]:
        """Stored series in insertion order, optionally of one kind."""
        return [s for s in self._series.values() if kind is None or s.kind == kind]

    def groups(self) -> List[str]:
        """Group labels in order of first appearance."""
        return list(dict.fromkeys(s.group for s in self._series.values()))

    def _resolve(self, key: str) -> str:
        if key in self._label_index:
            return self._label_index[key]
        if key in self._series:
            return key
        raise UnknownSeriesError(
            f"No series with label or id {key!r}", {"labels": self.labels}
        )

    def get(self, key: str) -> Series:
        """Stored (untransformed) series by label or id."""
        return self._series[self._resolve(key)]

    def transform_for(self, key: str) -> SeriesTransform:
        return self._transforms.get(self._resolve(key), SeriesTransform())

    def displayed(self, key: str) -> Series:
        """Series with its display transform applied."""
        series_id = self._resolve(key)
        return self._transforms.get(series_id, SeriesTransform()).apply(self._series[series_id])

    # ---- Validation helpers ----
    def _check_new_labels(self, labels: Sequence[str]) -> None:
        seen = set()
        for label in labels:
            if label in self._label_index or label in seen:
                raise DuplicateLabelError(
                    f"Series label {label!r} is already used; use replace_series to overwrite",
                    {"label": label},
                )
            seen.add(label)

    def _check_log_positive(self, axis: str, candidates: Iterable[Series]) -> None:
        for series in candidates:
            if axis == "x":
                values = [series.x]
            else:
                values = [v for v in (series.y, series.y_min, series.y_max, series.y_matched)
                          if v is not None]
            if not values:
                continue
            stacked = np.concatenate(values)
            stacked = stacked[~np.isnan(stacked)]
            if stacked.size and np.min(stacked) <= 0:
                raise NonPositiveLogValueError(
                    f"Series {series.label!r} has non-positive {axis} values "
                    f"which cannot be shown on a log scale",
                    {"axis": axis, "label": series.label, "min": float(np.min(stacked))},
                )

    def _check_log_axes(self, candidates: List[Series]) -> None:
        for axis in _AXES:
            if self._axes[axis].scale == AxisScale.LOG:
                self._check_log_positive(axis, candidates)

    def _insert(self, new_series: List[Series]) -> List[str]:
        self._check_new_labels([s.label for s in new_series])
        self._check_log_axes(new_series)
        for series in new_series:
            self._series[series.series_id] = series
            self._label_index[series.label] = series.series_id
        return [s.series_id for s in new_series]

    # ---- Adding series ----
    def add_observed_series(
        self,
        points: Points,
        group: str,
        label: str,
        *,
        x_col: str = TIME_COL,
        y_col: str = VALUE_COL,
        error_col: Optional[str] = ERROR_COL,
    ) -> str:
        """Add observed data as a new series.

        Args:
            points: DataFrame or sequence of ``(x, y)``/``(x, y, error)``
            group: Group label used for visual encoding
            label: Unique display label

        Returns:
            Id of the new series

        Raises:
            DuplicateLabelError: ``label`` is already used
            NonPositiveLogValueError: The data cannot be shown on a log axis
        """
        arrays = _points_to_arrays(points, x_col=x_col, y_col=y_col, error_col=error_col)
        series = Series(label=label, group=str(group), kind=SeriesKind.OBSERVED, **arrays)
        (series_id,) = self._insert([series])
        logger.debug("Observed series added", label=label, group=group, n_points=len(series))
        return series_id

    def add_model_output_series(
        self,
        paths: Sequence[str],
        values: Sequence[SeriesData],
        labels: Sequence[str],
        groups: Sequence[str],
    ) -> List[str]:
        """Add simulated outputs as new series, one per path.

        Nothing is added unless every series can be added.

        Args:
            paths: Output path of each series
            values: ``(x, y)`` pair or DataFrame (``time``, ``value`` and
                optional ``y_min``/``y_max``) per path
            labels: Unique display label per path
            groups: Group label per path

        Returns:
            Ids of the new series

        Raises:
            ArityMismatchError: ``paths``, ``labels`` or ``groups`` differ in
                length from ``values``
            DuplicateLabelError: A label is already used or repeated
        """
        n = len(values)
        for name, seq in (("paths", paths), ("labels", labels), ("groups", groups)):
            if len(seq) != n:
                raise ArityMismatchError(
                    f"{name} has {len(seq)} entries but values has {n}",
                    {"argument": name, "expected": n, "got": len(seq)},
                )

        new_series = [
            Series(
                label=label,
                group=str(group),
                kind=SeriesKind.SIMULATED,
                path=path,
                **_model_output_to_arrays(vals),
            )
            for path, vals, label, group in zip(paths, values, labels, groups)
        ]
        ids = self._insert(new_series)
        logger.debug("Model output series added", labels=list(labels))
        return ids

    def replace_series(self, key: str, points: Points) -> str:
        """Overwrite the data of an existing series, keeping id, label and group."""
        series_id = self._resolve(key)
        old = self._series[series_id]
        if old.kind == SeriesKind.SIMULATED and not isinstance(points, pd.DataFrame):
            arrays = _model_output_to_arrays(points)
        else:
            arrays = _points_to_arrays(points)
        new = Series(
            label=old.label, group=old.group, kind=old.kind, path=old.path,
            _id=series_id, **arrays,
        )
        self._check_log_axes([self._transforms.get(series_id, SeriesTransform()).apply(new)])
        self._series[series_id] = new
        return series_id

    def rename_series(self, key: str, new_label: str) -> None:
        """Change the display label of a series."""
        series_id = self._resolve(key)
        series = self._series[series_id]
        if new_label == series.label:
            return
        self._check_new_labels([new_label])
        del self._label_index[series.label]
        series.label = new_label
        self._label_index[new_label] = series_id

    def remove_series(self, key: str) -> None:
        series_id = self._resolve(key)
        series = self._series.pop(series_id)
        del self._label_index[series.label]
        self._transforms.pop(series_id, None)

    # ---- Display settings ----
    def set_axis_transform(
        self,
        labels: Sequence[str],
        y_factors: Union[float, Sequence[float]] = 1.0,
        y_offsets: Union[float, Sequence[float]] = 0.0,
        x_factors: Union[float, Sequence[float]] = 1.0,
        x_offsets: Union[float, Sequence[float]] = 0.0,
    ) -> None:
        """Set display transforms ``v' = v * factor + offset`` on series.

        The stored values are left untouched, so data appended later is
        transformed too. Scalars apply to every label.

        Raises:
            ArityMismatchError: A factor/offset list does not match ``labels``
            UnknownSeriesError: A label does not exist
            NonPositiveLogValueError: The result cannot be shown on a log axis
        """
        if isinstance(labels, str):
            labels = [labels]
        n = len(labels)
        yf = _broadcast("y_factors", y_factors, n)
        yo = _broadcast("y_offsets", y_offsets, n)
        xf = _broadcast("x_factors", x_factors, n)
        xo = _broadcast("x_offsets", x_offsets, n)
        ids = [self._resolve(label) for label in labels]

        transforms = {
            series_id: SeriesTransform(x_factor=xf[i], x_offset=xo[i], y_factor=yf[i], y_offset=yo[i])
            for i, series_id in enumerate(ids)
        }
        self._check_log_axes([t.apply(self._series[sid]) for sid, t in transforms.items()])
        for series_id, transform in transforms.items():
            if transform.is_identity:
                self._transforms.pop(series_id, None)
            else:
                self._transforms[series_id] = transform

    def _axis_key(self, axis: str) -> str:
        axis = axis.lower()
        if axis not in _AXES:
            raise ValueError(f"axis must be 'x' or 'y', got {axis!r}")
        return axis

    def set_axis_scale(self, axis: str, mode: Union[str, AxisScale]) -> None:
        """Set an axis to linear or log scale.

        Raises:
            NonPositiveLogValueError: ``mode`` is log and the axis shows
                zero or negative values; the scale is left unchanged
        """
        axis = self._axis_key(axis)
        scale = AxisScale(mode)
        if scale == AxisScale.LOG:
            self._check_log_positive(axis, [self.displayed(sid) for sid in self._series])
        self._axes[axis] = self._axes[axis].model_copy(update={"scale": scale})

    def set_axis_limits(self, axis: str, limits: Optional[Tuple[float, float]]) -> None:
        axis = self._axis_key(axis)
        data = self._axes[axis].model_dump()
        data["limits"] = limits
        self._axes[axis] = AxisConfig.model_validate(data)

    def set_axis_label(self, axis: str, label: Optional[str]) -> None:
        axis = self._axis_key(axis)
        self._axes[axis] = self._axes[axis].model_copy(update={"label": label})

    def set_group_encoding(self, group: str, encoding: VisualEncoding) -> None:
        """Fix the colour/marker/line style of a group."""
        self._group_encodings[str(group)] = encoding

    def encoding_for_group(
        self, group: str, config: Optional[PlotConfiguration] = None
    ) -> VisualEncoding:
        """Encoding of a group, shared by its observed and simulated series.

        Groups without an explicit encoding cycle through the palette of
        ``config`` in order of first appearance.
        """
        if group in self._group_encodings:
            return self._group_encodings[group]
        config = config or PlotConfiguration()
        groups = self.groups()
        index = groups.index(group) if group in groups else len(groups)
        return VisualEncoding(
            color=config.colors[index % len(config.colors)],
            shape=config.shapes[index % len(config.shapes)],
            linetype=config.linetypes[index % len(config.linetypes)],
        )

    # ---- Derived views ----
    def clone(self, deep: bool = True) -> "DataMapping":
        """Copy this mapping.

        A deep clone owns copies of all series data. A shallow clone shares
        the series objects with this mapping, so renaming or replacing data
        through either affects both; only use it for read-only views.
        """
        new = DataMapping(x_axis=self.x_axis, y_axis=self.y_axis)
        new._series = copy.deepcopy(self._series) if deep else dict(self._series)
        new._label_index = dict(self._label_index)
        new._transforms = dict(self._transforms)
        new._group_encodings = dict(self._group_encodings)
        return new

    def to_frame(self) -> pd.DataFrame:
        """Tidy table of displayed values, one row per point."""
        frames = []
        for series_id in self._series:
            s = self.displayed(series_id)
            n = len(s)
            nan = np.full(n, np.nan)
            y_matched = nan if s.y_matched is None else s.y_matched
            frames.append(pd.DataFrame({
                "series_id": series_id,
                "label": s.label,
                "group": s.group,
                "kind": s.kind.value,
                "path": s.path,
                "x": s.x,
                "y": s.y,
                "y_min": nan if s.y_min is None else s.y_min,
                "y_max": nan if s.y_max is None else s.y_max,
                "y_error": nan if s.y_error is None else s.y_error,
                "y_matched": y_matched,
                "residual": y_matched - s.y,
            }, index=pd.RangeIndex(n)))
        if not frames:
            return pd.DataFrame(columns=FRAME_COLUMNS)
        return pd.concat(frames, ignore_index=True)[FRAME_COLUMNS]

    def plot(
        self,
        plot_type: Union[str, PlotType] = PlotType.TIME_PROFILE,
        config: Optional[PlotConfiguration] = None,
        renderer: Optional[Renderer] = None,
        legend: Optional[Any] = None,
    ) -> Any:
        """Render this mapping.

        Axis settings come from the mapping; styling and output come from
        ``config``. The legend defaults to :func:`obsim.legend.build_legend`.

        Returns:
            Figure produced by ``renderer`` (matplotlib by default)
        """
        from .legend import build_legend

        config = config or PlotConfiguration()
        if renderer is None:
            from .services.visualization import MatplotlibRenderer
            renderer = MatplotlibRenderer()
        if legend is None:
            legend = build_legend(self, config)

        request = RenderRequest(
            plot_type=PlotType(plot_type),
            data=self.to_frame(),
            x_axis=self.x_axis,
            y_axis=self.y_axis,
            legend=legend,
            config=config,
        )
        logger.info("Rendering plot", plot_type=request.plot_type.value, n_series=len(self))
        return renderer.render(request)

    # ---- Construction ----
    @classmethod
    def from_alignment(
        cls,
        aligned: pd.DataFrame,
        simulated: Optional[pd.DataFrame] = None,
        config: Optional[PlotConfiguration] = None,
        observed_label: str = "{group} (observed)",
        simulated_label: str = "{group} (simulated)",
    ) -> "DataMapping":
        """Build a mapping from aligned observed data and simulated output.

        Each observed group becomes an observed series carrying its matched
        simulation values. Each simulated group becomes a model-output
        series; groups with several individuals are shown as the population
        median with a 5-95% band.
        """
        from .services.analysis import aggregate_by_time

        config = config or PlotConfiguration()
        mapping = cls(x_axis=config.x_axis, y_axis=config.y_axis)

        for group, gdf in aligned.groupby(GROUP_COL, sort=False):
            mapping.add_observed_series(gdf, group=str(group), label=observed_label.format(group=group))

        if simulated is not None and len(simulated):
            paths, values, labels, groups = [], [], [], []
            for group, gdf in simulated.groupby(GROUP_COL, sort=False):
                path = gdf["path"].iat[0] if "path" in gdf.columns else str(group)
                if "individual_id" in gdf.columns and gdf["individual_id"].nunique() > 1:
                    agg = aggregate_by_time(gdf)
                    vals: SeriesData = pd.DataFrame({
                        TIME_COL: agg[TIME_COL],
                        VALUE_COL: agg["median"],
                        "y_min": agg["lower"],
                        "y_max": agg["upper"],
                    })
                else:
                    ordered = gdf.sort_values(TIME_COL, kind="stable")
                    vals = (ordered[TIME_COL].to_numpy(), ordered[VALUE_COL].to_numpy())
                paths.append(path)
                values.append(vals)
                labels.append(simulated_label.format(group=group))
                groups.append(str(group))
            mapping.add_model_output_series(paths, values, labels, groups)

        return mapping
