"""Loading sample tables.

Layer 4: Workflows - Public entry points.

Sample data usually arrives as a table of response values and predictor
values with coordinate columns (e.g. extracted at plot locations). Raster
and vector formats are handled upstream; this module reads the table.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from geofold.objects.pointset import PointSet
from geofold.utils.errors import raise_data_error

logger = logging.getLogger(__name__)


def read_sample_table(
    source: Union[str, Path, pd.DataFrame],
    x: str = "x",
    y: str = "y",
    id_column: Optional[str] = None,
    crs: Optional[str] = None,
    dropna: bool = False,
    **read_csv_kwargs,
) -> tuple[PointSet, pd.DataFrame]:
    """Build sample points and an attribute table from a CSV file or DataFrame.

    Args:
        source: Path to a CSV file, or a DataFrame.
        x: Name of the x (or longitude) column.
        y: Name of the y (or latitude) column.
        id_column: Optional column with sample identifiers.
        crs: Optional CRS label attached to the PointSet.
        dropna: Drop rows with missing coordinates instead of failing.
        **read_csv_kwargs: Passed to ``pandas.read_csv``.

    Returns:
        (PointSet, attributes) where attributes is the table without the
        coordinate columns, re-indexed 0..n-1 to match sample positions.

    Example:
        >>> from geofold.workflows.io import read_sample_table
        >>> samples, table = read_sample_table("plots.csv", x="lon", y="lat")
        >>> y = table["species_richness"].to_numpy()
    """
    if isinstance(source, pd.DataFrame):
        frame = source.copy()
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Sample table not found: {path}")
        frame = pd.read_csv(path, **read_csv_kwargs)
        logger.info(f"Read {len(frame)} rows from {path}")

    missing = [c for c in (x, y, id_column) if c is not None and c not in frame]
    if missing:
        raise_data_error(
            f"Columns {missing} not found in sample table",
            suggestion=f"Available columns: {list(frame.columns)}",
        )

    no_coords = frame[[x, y]].isna().any(axis=1)
    if no_coords.any():
        if not dropna:
            raise_data_error(
                f"{int(no_coords.sum())} rows have missing coordinates",
                suggestion="Pass dropna=True to drop them",
            )
        logger.warning(f"Dropping {int(no_coords.sum())} rows without coordinates")
        frame = frame.loc[~no_coords]

    frame = frame.reset_index(drop=True)
    points = PointSet(
        coordinates=frame[[x, y]].to_numpy(dtype=float),
        ids=frame[id_column].to_numpy() if id_column else None,
        crs=crs,
    )
    attributes = frame.drop(columns=[x, y])
    return points, attributes
