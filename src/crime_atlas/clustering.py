"""
K-means clustering of incident locations.

Points are clustered on (latitude, longitude) with scikit-learn's Lloyd
k-means: k centroids from seeded random restarts, nearest-centroid
assignment by Euclidean distance, centroid update as the mean, repeated
until assignments settle or max_iter is reached. The restart with the
lowest within-cluster sum of squares wins.

The same seed, k and input order give identical labels. Across seeds,
labels may differ by a permutation; same_partition() compares up to that.

k is a parameter. evaluate_k_range() and select_optimal_k() provide an
optional silhouette-based choice; nothing here assumes a "right" k.
"""

from typing import Dict, Optional, Sequence, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd
from sklearn.cluster import KMeans
from sklearn.metrics import calinski_harabasz_score, silhouette_score

from crime_atlas.schemas import CLUSTERED_INCIDENT_SCHEMA, validate_schema
from crime_atlas.spatial import coordinate_matrix


DEFAULT_N_INIT = 20
DEFAULT_MAX_ITER = 300


class InvalidParameterError(Exception):
    """Raised when the cluster count is invalid for the data."""
    pass


# =============================================================================
# Parameter Validation
# =============================================================================

def n_distinct_points(X: np.ndarray) -> int:
    """Number of distinct rows of X."""
    if len(X) == 0:
        return 0
    return len(np.unique(X, axis=0))


def validate_k(X: np.ndarray, k: int) -> None:
    """
    Check k against the data before any fitting.

    Raises:
        InvalidParameterError: If k is not a positive integer or exceeds
            the number of distinct points
    """
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k < 1:
        raise InvalidParameterError(f"k must be a positive integer, got {k!r}")

    n_distinct = n_distinct_points(X)
    if k > n_distinct:
        raise InvalidParameterError(
            f"k={k} exceeds the number of distinct points ({n_distinct}, "
            f"from {len(X)} records)"
        )


# =============================================================================
# Clustering
# =============================================================================

def fit_kmeans(
    X: np.ndarray,
    k: int,
    random_seed: int,
    n_init: int = DEFAULT_N_INIT,
    max_iter: int = DEFAULT_MAX_ITER,
    init: str = "random",
) -> Tuple[np.ndarray, KMeans]:
    """
    Fit K-Means and return labels with the fitted model.

    Ties in nearest-centroid assignment go to the lowest centroid index.

    Args:
        X: (n, 2) array of (latitude, longitude)
        k: Number of clusters
        random_seed: Seed for centroid initialization
        n_init: Number of seeded restarts; the lowest inertia is kept
        max_iter: Maximum Lloyd iterations per restart
        init: "random" or "k-means++"

    Returns:
        Tuple of (int64 labels in [0, k), fitted KMeans)

    Raises:
        InvalidParameterError: If k is invalid for X
    """
    validate_k(X, k)

    kmeans = KMeans(
        n_clusters=int(k),
        init=init,
        n_init=n_init,
        max_iter=max_iter,
        random_state=random_seed,
        algorithm="lloyd",
    )
    labels = kmeans.fit_predict(X).astype("int64")

    return labels, kmeans


def cluster_incidents(
    gdf: gpd.GeoDataFrame,
    k: int,
    random_seed: int,
    n_init: int = DEFAULT_N_INIT,
    max_iter: int = DEFAULT_MAX_ITER,
    init: str = "random",
) -> Tuple[gpd.GeoDataFrame, KMeans]:
    """
    Attach a `cluster_id` to every point of a projected incident layer.

    Args:
        gdf: Layer from project_incidents (not modified)
        k: Number of clusters
        random_seed: Seed for centroid initialization
        n_init: Number of seeded restarts
        max_iter: Maximum iterations per restart
        init: Initialization method

    Returns:
        Tuple of (labelled copy, fitted KMeans)

    Raises:
        InvalidParameterError: If k is invalid for the layer
    """
    X = coordinate_matrix(gdf)
    labels, kmeans = fit_kmeans(X, k, random_seed, n_init=n_init, max_iter=max_iter, init=init)

    out = gdf.copy()
    out["cluster_id"] = labels

    validate_schema(out, CLUSTERED_INCIDENT_SCHEMA, context="cluster_incidents")

    return out, kmeans


def same_partition(labels_a: Sequence[int], labels_b: Sequence[int]) -> bool:
    """
    True if two labelings group the points identically, ignoring label names.
    """
    a = np.asarray(labels_a)
    b = np.asarray(labels_b)
    if a.shape != b.shape:
        return False

    pairs = set(zip(a.tolist(), b.tolist()))
    # A bijection between label sets means each side appears exactly once
    return (
        len(pairs) == len(set(a.tolist()))
        and len(pairs) == len(set(b.tolist()))
    )


# =============================================================================
# K Selection
# =============================================================================

def evaluate_k_range(
    X: np.ndarray,
    k_range: Sequence[int],
    random_seed: int,
    n_init: int = DEFAULT_N_INIT,
    max_iter: int = DEFAULT_MAX_ITER,
    init: str = "random",
    silhouette_sample_size: Optional[int] = None,
    logger=None,
) -> pd.DataFrame:
    """
    Score a clustering for each k in k_range.

    Silhouette is O(n^2); on large layers it is computed on a seeded
    sample of `silhouette_sample_size` points.

    Returns:
        DataFrame with k, silhouette_score, calinski_harabasz_score,
        inertia and cluster size spread for each k

    Raises:
        InvalidParameterError: If any k is below 2 or invalid for X
    """
    results = []

    for k in k_range:
        if k < 2:
            raise InvalidParameterError(f"k-selection needs k >= 2, got {k}")
        validate_k(X, k)
        if k >= len(X):
            raise InvalidParameterError(
                f"k-selection needs fewer clusters than points, got k={k} for {len(X)} points"
            )

    for k in k_range:
        labels, kmeans = fit_kmeans(X, k, random_seed, n_init=n_init, max_iter=max_iter, init=init)

        sample_size = None
        if silhouette_sample_size is not None and silhouette_sample_size < len(X):
            sample_size = silhouette_sample_size

        sil = silhouette_score(X, labels, sample_size=sample_size, random_state=random_seed)
        ch = calinski_harabasz_score(X, labels)

        unique, counts = np.unique(labels, return_counts=True)

        results.append({
            "k": int(k),
            "silhouette_score": float(sil),
            "calinski_harabasz_score": float(ch),
            "inertia": float(kmeans.inertia_),
            "cluster_size_min": int(counts.min()),
            "cluster_size_max": int(counts.max()),
            "cluster_size_std": float(counts.std()),
        })

        if logger:
            logger.info(
                f"  K={k}: silhouette={sil:.4f}, CH={ch:.2f}, sizes={counts.tolist()}"
            )

    return pd.DataFrame(results)


def select_optimal_k(df_scores: pd.DataFrame, logger=None) -> int:
    """
    Select K with the highest silhouette score; ties go to the smaller K.
    """
    if df_scores.empty:
        raise InvalidParameterError("No k candidates were scored")

    ordered = df_scores.sort_values(["silhouette_score", "k"], ascending=[False, True])
    best = ordered.iloc[0]
    best_k = int(best["k"])

    if logger:
        logger.info(f"Selected K={best_k} with silhouette={best['silhouette_score']:.4f}")
        if len(ordered) > 1:
            runner_up = ordered.iloc[1]
            logger.info(
                f"Runner-up: K={int(runner_up['k'])} "
                f"with silhouette={runner_up['silhouette_score']:.4f}"
            )

    return best_k


# =============================================================================
# Summary and QA
# =============================================================================

def compute_cluster_summary(gdf: gpd.GeoDataFrame) -> pd.DataFrame:
    """
    Per-cluster size, share and centroid of a labelled layer.
    """
    grouped = gdf.groupby("cluster_id")
    summary = pd.DataFrame({
        "n_incidents": grouped.size(),
        "centroid_latitude": grouped["latitude"].mean(),
        "centroid_longitude": grouped["longitude"].mean(),
    })
    summary["share"] = summary["n_incidents"] / summary["n_incidents"].sum()
    summary = summary.reset_index().sort_values("cluster_id").reset_index(drop=True)
    return summary


def validate_clustering(
    gdf: gpd.GeoDataFrame,
    k: int,
    min_cluster_size: int = 1,
    logger=None,
) -> Dict:
    """
    QA checks on a labelled layer.

    Every point must carry exactly one label in [0, k) and every cluster
    must be non-empty. Clusters smaller than `min_cluster_size` are only
    warned about.

    Returns:
        QA stats dictionary with a `passed` flag
    """
    qa_stats = {}
    passed = True

    qa_stats["row_count"] = len(gdf)

    null_clusters = int(gdf["cluster_id"].isna().sum())
    qa_stats["null_cluster_ids"] = null_clusters
    if null_clusters > 0:
        passed = False
        if logger:
            logger.error(f"Found {null_clusters} null cluster_id values!")

    valid_range = bool(gdf["cluster_id"].between(0, k - 1).all())
    qa_stats["cluster_ids_in_valid_range"] = valid_range
    if not valid_range:
        passed = False
        if logger:
            logger.error(f"Some cluster_id values outside [0, {k - 1}]")

    sizes = gdf["cluster_id"].value_counts().reindex(range(k), fill_value=0)
    qa_stats["cluster_sizes"] = {int(c): int(n) for c, n in sizes.items()}

    min_size = int(sizes.min()) if len(sizes) else 0
    qa_stats["min_cluster_size"] = min_size

    if min_size == 0:
        passed = False
        if logger:
            logger.error("Found cluster with 0 members!")
    elif min_size < min_cluster_size and logger:
        logger.warning(f"Cluster with only {min_size} members (threshold: {min_cluster_size})")

    qa_stats["passed"] = passed
    if logger:
        logger.info(f"QA validation {'PASSED' if passed else 'FAILED'}")

    return qa_stats


def verify_reproducibility(
    X: np.ndarray,
    k: int,
    random_seed: int,
    original_labels: np.ndarray,
    n_init: int = DEFAULT_N_INIT,
    max_iter: int = DEFAULT_MAX_ITER,
    init: str = "random",
    logger=None,
) -> bool:
    """
    Refit with the same settings and check the labels are identical.
    """
    labels2, _ = fit_kmeans(X, k, random_seed, n_init=n_init, max_iter=max_iter, init=init)
    matches = bool(np.array_equal(original_labels, labels2))

    if logger:
        if matches:
            logger.info("Reproducibility check PASSED: identical cluster assignments")
        else:
            logger.error("Reproducibility check FAILED: different cluster assignments")

    return matches
