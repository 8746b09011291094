"""Performance benchmarks for spatial fold assignment."""

import time
from typing import Dict

import numpy as np

from geofold import PolygonSet, SpatialFoldAssigner


def benchmark_assignment(
    n_samples: int = 500,
    n_folds: int = 5,
    n_jobs: int = 1,
    clustering: str = "hierarchical",
) -> Dict[str, float]:
    """Benchmark one fold assignment.

    Args:
        n_samples: Number of sample points.
        n_folds: Number of folds.
        n_jobs: Worker threads for candidate scoring.
        clustering: 'hierarchical' or 'kmeans'.

    Returns:
        Dictionary with timing results.
    """
    rng = np.random.default_rng(42)
    coords = rng.uniform(0, 1000, size=(n_samples, 2))
    domain = PolygonSet.from_bounds(0, 0, 1000, 1000)

    assigner = SpatialFoldAssigner(
        n_jobs=n_jobs, clustering=clustering, tolerance=1.0, patience=None
    )
    start = time.perf_counter()
    assignment = assigner.assign(coords, domain, n_folds)
    elapsed = time.perf_counter() - start

    return {
        "n_samples": n_samples,
        "n_folds": n_folds,
        "n_jobs": n_jobs,
        "time_seconds": elapsed,
        "divergence": assignment.divergence,
    }


def main():
    """Run fold assignment benchmarks."""
    print("=" * 60)
    print("Spatial Fold Assignment Benchmarks")
    print("=" * 60)

    for n_samples in (100, 500, 2000):
        for n_jobs in (1, 4):
            result = benchmark_assignment(n_samples=n_samples, n_jobs=n_jobs)
            print(
                f"n={result['n_samples']:>5}  n_jobs={result['n_jobs']}  "
                f"{result['time_seconds']:.3f}s  divergence={result['divergence']:.4f}"
            )

    result = benchmark_assignment(n_samples=500, clustering="kmeans")
    print(f"k-means, n=500: {result['time_seconds']:.3f}s")


if __name__ == "__main__":
    main()
