"""
Analysis pipeline: load -> clean -> project -> cluster -> reproject.

The result is a CrimeSnapshot, built once per process and handed to every
view. Views never modify it; filtering always produces new frames.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, List, Tuple, Union

import pandas as pd
import geopandas as gpd

from config import DATA_CONFIG
from src.data.preprocessing import CrimeDataPreprocessor
from src.exceptions import DataValidationError
from clustering.cluster_analysis import CrimeClusterAnalyzer, NOISE_LABEL

logger = logging.getLogger(__name__)

@dataclass(frozen=True, eq=False)
class CrimeSnapshot:
    """Labelled incidents in the geographic CRS plus run metadata"""
    incidents: gpd.GeoDataFrame
    source: str
    eps: float
    min_samples: int
    raw_count: int
    dropped_count: int
    cluster_results: Dict[str, Any]

    @property
    def categories(self) -> List[str]:
        return sorted(self.incidents["category"].dropna().unique())

    @property
    def categories_by_frequency(self) -> List[str]:
        return self.incidents["category"].value_counts().index.tolist()

    @property
    def date_range(self) -> Tuple[pd.Timestamp, pd.Timestamp]:
        return self.incidents["date"].min(), self.incidents["date"].max()

    @property
    def cluster_levels(self) -> List[int]:
        return sorted(int(c) for c in self.incidents["cluster"].unique())

def run_pipeline(filepath: Union[str, Path] = None, eps: float = None,
                 min_samples: int = None) -> CrimeSnapshot:
    """Run the full analysis once and return the labelled snapshot"""
    filepath = Path(filepath or DATA_CONFIG["input_file"])
    preprocessor = CrimeDataPreprocessor()
    analyzer = CrimeClusterAnalyzer(eps=eps, min_samples=min_samples)

    projected = preprocessor.process_crime_data(filepath)
    if projected.empty:
        raise DataValidationError(f"No incidents with coordinates in {filepath}")

    clustered = analyzer.assign_clusters(projected)
    incidents = preprocessor.reproject_to_geographic(clustered)

    snapshot = CrimeSnapshot(
        incidents=incidents,
        source=str(filepath),
        eps=analyzer.eps,
        min_samples=analyzer.min_samples,
        raw_count=preprocessor.raw_row_count,
        dropped_count=preprocessor.dropped_rows,
        cluster_results=analyzer.cluster_results
    )

    logger.info(f"Pipeline complete: {len(incidents)} incidents, "
                f"{snapshot.cluster_results['n_clusters']} hotspots")
    return snapshot

def summarize_snapshot(snapshot: CrimeSnapshot) -> Dict[str, Any]:
    """Headline statistics shown on the overview tab and in the report"""
    incidents = snapshot.incidents
    total = len(incidents)
    violent = int((incidents["category"] == DATA_CONFIG["violent_category"]).sum())

    return {
        "total_incidents": total,
        "violent_incidents": violent,
        "violent_percentage": round(violent / total * 100, 1) if total else 0.0,
        "hotspots": CrimeClusterAnalyzer.count_hotspots(incidents),
        "noise_incidents": int((incidents["cluster"] == NOISE_LABEL).sum()),
        "dropped_incidents": snapshot.dropped_count
    }

def format_summary(summary: Dict[str, Any]) -> str:
    return (
        f"Total Incidents: {summary['total_incidents']}\n"
        f"Violent Crimes: {summary['violent_incidents']} ({summary['violent_percentage']}%)\n"
        f"Number of Hotspots Detected: {summary['hotspots']}"
    )
