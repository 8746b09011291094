"""Point collections: sample locations and domain reference points."""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from geofold.utils.errors import raise_data_error


def _readonly(array: np.ndarray) -> np.ndarray:
    array = np.array(array, copy=True)
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class PointSet:
    """Ordered set of 2D point locations.

    The position of a point in ``coordinates`` is its identifier in fold
    output. ``ids`` carries optional external identifiers (site codes,
    plot numbers) alongside the positional index.

    Attributes:
        coordinates: Array of shape (n_points, 2) with x/y (or lon/lat).
        ids: Optional identifiers, one per point. Defaults to 0..n-1.
        crs: Optional coordinate reference system label (e.g. "EPSG:3035").
    """

    coordinates: np.ndarray
    ids: Optional[np.ndarray] = field(default=None)
    crs: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate PointSet parameters."""
        try:
            coords = np.asarray(self.coordinates, dtype=np.float64)
        except (TypeError, ValueError):
            raise_data_error(
                "coordinates must be numeric",
                received=type(self.coordinates).__name__,
            )

        if coords.ndim != 2 or coords.shape[1] != 2:
            raise_data_error(
                "coordinates must be a 2D array with two columns",
                expected="(n_points, 2)",
                received=str(coords.shape),
            )

        if not np.all(np.isfinite(coords)):
            raise_data_error(
                "coordinates contain NaN or infinite values",
                suggestion="Drop or impute samples with missing coordinates first",
            )

        if self.ids is None:
            ids = np.arange(len(coords))
        else:
            ids = np.asarray(self.ids)
            if ids.shape != (len(coords),):
                raise_data_error(
                    "ids must have one entry per point",
                    expected=f"({len(coords)},)",
                    received=str(ids.shape),
                )

        object.__setattr__(self, "coordinates", _readonly(coords))
        object.__setattr__(self, "ids", _readonly(ids))

    def __len__(self) -> int:
        return len(self.coordinates)

    @property
    def x(self) -> np.ndarray:
        return self.coordinates[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.coordinates[:, 1]

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Bounding box as (minx, miny, maxx, maxy)."""
        if len(self) == 0:
            raise_data_error("bounds of an empty PointSet are undefined")
        minx, miny = self.coordinates.min(axis=0)
        maxx, maxy = self.coordinates.max(axis=0)
        return float(minx), float(miny), float(maxx), float(maxy)

    def n_distinct(self) -> int:
        """Number of distinct coordinate pairs."""
        if len(self) == 0:
            return 0
        return len(np.unique(self.coordinates, axis=0))

    def subset(self, indices: np.ndarray) -> "PointSet":
        """Return a new PointSet with the selected points (ids preserved)."""
        indices = np.asarray(indices)
        return PointSet(
            coordinates=self.coordinates[indices],
            ids=self.ids[indices],
            crs=self.crs,
        )

    def __repr__(self) -> str:
        """String representation."""
        crs_str = f", crs='{self.crs}'" if self.crs else ""
        return f"PointSet(n_points={len(self)}{crs_str})"
