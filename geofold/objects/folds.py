"""Fold and FoldAssignment value objects."""

from dataclasses import dataclass, field
from typing import Iterator, Optional

import numpy as np
import pandas as pd

from geofold.utils.errors import raise_data_error


def _frozen_indices(indices: np.ndarray) -> np.ndarray:
    indices = np.sort(np.asarray(indices, dtype=np.int64).ravel())
    indices.flags.writeable = False
    return indices


@dataclass(frozen=True, eq=False)
class Fold:
    """One train/test split.

    Attributes:
        train: Sorted sample indices used for training.
        test: Sorted sample indices held out for testing.
    """

    train: np.ndarray
    test: np.ndarray

    def __post_init__(self) -> None:
        """Validate disjointness."""
        train = _frozen_indices(self.train)
        test = _frozen_indices(self.test)
        if np.intersect1d(train, test).size:
            raise_data_error("train and test indices of a fold overlap")
        object.__setattr__(self, "train", train)
        object.__setattr__(self, "test", test)

    def __iter__(self) -> Iterator[np.ndarray]:
        # Allows ``train, test = fold``.
        yield self.train
        yield self.test

    def __repr__(self) -> str:
        """String representation."""
        return f"Fold(n_train={len(self.train)}, n_test={len(self.test)})"


@dataclass(frozen=True, eq=False)
class FoldAssignment:
    """Ordered sequence of k folds partitioning a sample set.

    Built from ``fold_ids`` (the fold index of every sample); the folds are
    derived so that each sample is tested in exactly one fold and trained
    on in all others.

    Attributes:
        fold_ids: Fold index (0..k-1) for each sample.
        divergence: Divergence between the realised held-out distances and
            the target prediction distances.
        statistic: Name of the divergence statistic ('ks' or 'wasserstein').
        n_clusters: Number of spatial clusters the selected candidate was
            built from.
        target_distances: Prediction-location to nearest-sample distances.
        realized_distances: Held-out sample to nearest training sample
            distances, one per sample.
        folds: Derived tuple of Fold objects.
    """

    fold_ids: np.ndarray
    divergence: float = float("nan")
    statistic: str = "ks"
    n_clusters: Optional[int] = None
    target_distances: Optional[np.ndarray] = None
    realized_distances: Optional[np.ndarray] = None
    folds: tuple = field(init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate the partition invariant and derive folds."""
        fold_ids = np.array(self.fold_ids, dtype=np.int64, copy=True).ravel()
        if fold_ids.size == 0:
            raise_data_error("fold_ids must not be empty")

        n_folds = int(fold_ids.max()) + 1
        if fold_ids.min() < 0:
            raise_data_error(
                "fold_ids must be non-negative", received=str(int(fold_ids.min()))
            )
        if n_folds < 2:
            raise_data_error(
                "A fold assignment needs at least 2 folds",
                received=str(n_folds),
            )

        sizes = np.bincount(fold_ids, minlength=n_folds)
        if np.any(sizes == 0):
            empty = np.flatnonzero(sizes == 0).tolist()
            raise_data_error(f"Folds {empty} have an empty test set")

        fold_ids.flags.writeable = False
        indices = np.arange(len(fold_ids))
        folds = tuple(
            Fold(train=indices[fold_ids != f], test=indices[fold_ids == f])
            for f in range(n_folds)
        )

        object.__setattr__(self, "fold_ids", fold_ids)
        object.__setattr__(self, "divergence", float(self.divergence))
        object.__setattr__(self, "folds", folds)
        for name in ("target_distances", "realized_distances"):
            value = getattr(self, name)
            if value is not None:
                value = np.array(value, dtype=np.float64, copy=True)
                value.flags.writeable = False
                object.__setattr__(self, name, value)

    @property
    def n_folds(self) -> int:
        return len(self.folds)

    @property
    def n_samples(self) -> int:
        return len(self.fold_ids)

    @property
    def fold_sizes(self) -> np.ndarray:
        """Test-set size of each fold."""
        return np.bincount(self.fold_ids, minlength=self.n_folds)

    @property
    def imbalance(self) -> int:
        """Largest minus smallest test-set size."""
        sizes = self.fold_sizes
        return int(sizes.max() - sizes.min())

    def __len__(self) -> int:
        return self.n_folds

    def __iter__(self) -> Iterator[Fold]:
        return iter(self.folds)

    def __getitem__(self, index: int) -> Fold:
        return self.folds[index]

    def split(self) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        """Yield (train_indices, test_indices) tuples, scikit-learn style."""
        for fold in self.folds:
            yield fold.train, fold.test

    def to_frame(self) -> pd.DataFrame:
        """One row per sample with its fold and held-out distance."""
        frame = pd.DataFrame(
            {
                "sample": np.arange(self.n_samples),
                "fold": self.fold_ids,
            }
        )
        if self.realized_distances is not None:
            frame["nn_distance"] = self.realized_distances
        return frame

    def __repr__(self) -> str:
        """String representation."""
        sizes = ", ".join(str(s) for s in self.fold_sizes)
        return (
            f"FoldAssignment(n_folds={self.n_folds}, sizes=[{sizes}], "
            f"{self.statistic}={self.divergence:.4f})"
        )
