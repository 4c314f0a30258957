#!/usr/bin/env python3
"""
run_analysis.py

Run the crime incident analysis for the configured input file.

- Load and clean the incident CSV
- Build yearly counts, the monthly series and the year x month table
- Project incidents to EPSG:4326 points
- Cluster incident locations with K-Means (fixed k, or silhouette selection)

Nothing is written except the JSONL run log under logs/.

Configuration: configs/params.yml. The basemap token for the rendering
layer comes from CRIME_ATLAS_BASEMAP_TOKEN.
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from crime_atlas.config import load_config
from crime_atlas.hashing import run_provenance
from crime_atlas.logging_utils import get_logger
from crime_atlas.pipeline import run_pipeline


def main():
    """Main entry point."""
    with get_logger("run_analysis") as logger:
        logger.info("Starting run_analysis.py")

        config = load_config()
        config_dict = config.to_dict()

        provenance = run_provenance(config.input_path, config_dict, logger.run_id)
        logger.log_config(config_dict, config_digest=provenance["config_digest"])
        logger.log_inputs({"incidents": provenance["input"]})

        logger.info(f"Input: {config.input_path}")
        logger.info(f"K: {config.clustering.k} (auto-select: {config.clustering.auto_select_k})")
        logger.info(f"Random seed: {config.clustering.random_seed}")

        try:
            result = run_pipeline(config, logger)
        except Exception as e:
            logger.error(f"FAILED: {e}")
            raise

        logger.info("=" * 70)
        logger.info("Crime Incident Analysis Summary:")
        logger.info(f"  Clean incidents: {len(result.cleaned)}")
        logger.info(f"  Months covered: {len(result.monthly)}")
        logger.info(f"  Years covered: {result.yearly['year'].tolist()}")
        logger.info(f"  Points mapped: {len(result.points)}")
        logger.info(f"  Clusters: {result.k}")
        for _, row in result.cluster_summary.iterrows():
            logger.info(
                f"    Cluster {int(row['cluster_id'])}: {int(row['n_incidents'])} incidents, "
                f"centroid ({row['centroid_latitude']:.4f}, {row['centroid_longitude']:.4f})"
            )
        if result.categories is not None:
            logger.info(f"  Top categories: {result.categories['category'].tolist()}")
        logger.info("=" * 70)
        logger.info("SUCCESS: Crime incident analysis complete")


if __name__ == "__main__":
    main()
