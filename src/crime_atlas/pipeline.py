"""
End-to-end analysis run.

Stages run in order on one in-memory frame:

    load_clean -> temporal
               -> summaries (data profile, category table)
               -> spatial -> clustering

Each stage returns new values; nothing is written back. A fatal error in
any stage is logged with the stage name and re-raised, and no partial
result is returned.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

import geopandas as gpd
import pandas as pd

from crime_atlas.cleaning import load_and_clean, log_cleaning_stats
from crime_atlas.clustering import (
    cluster_incidents,
    compute_cluster_summary,
    evaluate_k_range,
    select_optimal_k,
    validate_clustering,
    validate_k,
    verify_reproducibility,
)
from crime_atlas.config import PipelineConfig
from crime_atlas.qa import crs_info
from crime_atlas.spatial import coordinate_matrix, log_projection_stats, project_incidents
from crime_atlas.summaries import category_counts, dataset_profile
from crime_atlas.temporal import (
    add_time_buckets,
    monthly_counts,
    summarize_temporal,
    year_month_crosstab,
    yearly_counts,
)


@dataclass
class AnalysisResult:
    """Everything one run produces, for the rendering layer."""
    cleaned: pd.DataFrame
    yearly: pd.DataFrame
    monthly: pd.DataFrame
    year_month: pd.DataFrame
    points: gpd.GeoDataFrame
    clustered: gpd.GeoDataFrame
    cluster_summary: pd.DataFrame
    k: int
    categories: Optional[pd.DataFrame] = None
    k_scores: Optional[pd.DataFrame] = None
    stats: Dict = field(default_factory=dict)


@contextmanager
def pipeline_stage(name: str, logger=None) -> Iterator[None]:
    """
    Mark a pipeline stage; failures are logged with the stage name and re-raised.
    """
    if logger:
        logger.info(f"Stage '{name}' started")
    try:
        yield
    except Exception as e:
        if logger:
            logger.error(
                f"FAILED at stage '{name}': {type(e).__name__}: {e}",
                extra={"stage": name, "error_type": type(e).__name__},
            )
        raise
    if logger:
        logger.info(f"Stage '{name}' finished")


def run_pipeline(config: PipelineConfig, logger=None) -> AnalysisResult:
    """
    Run the full analysis described by `config`.

    Args:
        config: Run configuration
        logger: Optional JSONLLogger

    Returns:
        AnalysisResult

    Raises:
        FileFormatError: Input missing, unreadable or lacking columns
        ParseError: A present timestamp is malformed
        InvalidParameterError: k is invalid for the projected points
    """
    stats: Dict = {}
    clustering_cfg = config.clustering

    with pipeline_stage("load_clean", logger):
        cleaned, stats["cleaning"] = load_and_clean(config.input_path, config.cleaning)
        log_cleaning_stats(stats["cleaning"], logger)

    with pipeline_stage("temporal", logger):
        bucketed, stats["temporal"] = add_time_buckets(cleaned, config.temporal.date_column)
        if stats["temporal"]["rows_missing_timestamp"] and logger:
            logger.warning(
                f"{stats['temporal']['rows_missing_timestamp']} rows without a timestamp "
                "were left out of the time series"
            )
        monthly = monthly_counts(bucketed)
        year_month = year_month_crosstab(bucketed)
        yearly = yearly_counts(cleaned, config.temporal.year_column)
        stats["monthly"] = summarize_temporal(monthly)
        if logger:
            logger.info(
                f"Monthly series: {stats['monthly']['n_months']} months, "
                f"{stats['monthly']['total']} incidents"
            )

    with pipeline_stage("summaries", logger):
        stats["profile"] = dataset_profile(cleaned)
        categories = None
        category_column = config.summaries.category_column
        if category_column in cleaned.columns:
            categories = category_counts(cleaned, category_column, top_n=config.summaries.top_n)
        elif logger:
            logger.warning(f"Category column '{category_column}' not found; skipping category table")

    with pipeline_stage("spatial", logger):
        bounds = None
        if config.spatial.study_area is not None:
            bounds = config.spatial.study_area.as_tuple()
        points, stats["projection"] = project_incidents(
            cleaned,
            lat_column=config.spatial.lat_column,
            lon_column=config.spatial.lon_column,
            bounds=bounds,
        )
        log_projection_stats(stats["projection"], logger)
        if logger:
            logger.log_crs_info(crs_info(points))

    with pipeline_stage("clustering", logger):
        X = coordinate_matrix(points)
        k = clustering_cfg.k
        k_scores = None

        if clustering_cfg.auto_select_k:
            if logger:
                logger.info(f"Evaluating K in range {list(clustering_cfg.k_range)}...")
            k_scores = evaluate_k_range(
                X,
                clustering_cfg.k_range,
                clustering_cfg.random_seed,
                n_init=clustering_cfg.n_init,
                max_iter=clustering_cfg.max_iter,
                init=clustering_cfg.init,
                silhouette_sample_size=clustering_cfg.silhouette_sample_size,
                logger=logger,
            )
            k = select_optimal_k(k_scores, logger)

        validate_k(X, k)
        clustered, _ = cluster_incidents(
            points,
            k,
            clustering_cfg.random_seed,
            n_init=clustering_cfg.n_init,
            max_iter=clustering_cfg.max_iter,
            init=clustering_cfg.init,
        )
        summary = compute_cluster_summary(clustered)

        stats["clustering_qa"] = validate_clustering(
            clustered, k, clustering_cfg.min_cluster_size, logger
        )
        stats["reproducible"] = verify_reproducibility(
            X,
            k,
            clustering_cfg.random_seed,
            clustered["cluster_id"].to_numpy(),
            n_init=clustering_cfg.n_init,
            max_iter=clustering_cfg.max_iter,
            init=clustering_cfg.init,
            logger=logger,
        )

    if logger:
        logger.log_metrics({
            "rows_clean": len(cleaned),
            "points": len(points),
            "k": k,
            "auto_select_k": clustering_cfg.auto_select_k,
            "random_seed": clustering_cfg.random_seed,
            "cluster_sizes": stats["clustering_qa"]["cluster_sizes"],
            "reproducibility_verified": stats["reproducible"],
            "stats": stats,
        })

    return AnalysisResult(
        cleaned=cleaned,
        yearly=yearly,
        monthly=monthly,
        year_month=year_month,
        points=points,
        clustered=clustered,
        cluster_summary=summary,
        k=k,
        categories=categories,
        k_scores=k_scores,
        stats=stats,
    )
