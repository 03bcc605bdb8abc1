import logging
import numpy as np
import pandas as pd
from typing import Dict, List, Any
from sklearn.cluster import DBSCAN
from pathlib import Path
import json
from datetime import datetime

import geopandas as gpd

from config import CLUSTERING_CONFIG, PROCESSED_DATA_DIR, FILE_PATTERNS
from src.data.preprocessing import CrimeDataPreprocessor

logger = logging.getLogger(__name__)

NOISE_LABEL = CLUSTERING_CONFIG["noise_label"]

class CrimeClusterAnalyzer:
    def __init__(self, eps: float = None, min_samples: int = None):
        self.eps = eps if eps is not None else CLUSTERING_CONFIG["dbscan_eps"]
        self.min_samples = min_samples if min_samples is not None else CLUSTERING_CONFIG["dbscan_min_samples"]
        self.dbscan_model = None
        self.cluster_results = {}

    def apply_dbscan_clustering(self, X: np.ndarray) -> Dict[str, Any]:
        """Apply DBSCAN over projected coordinates.

        sklearn marks noise as -1 and numbers clusters from 0; labels are
        shifted so that noise is 0 and hotspots are numbered from 1.
        """
        if len(X) == 0:
            cluster_labels = np.array([], dtype=int)
        else:
            dbscan = DBSCAN(eps=self.eps, min_samples=self.min_samples)
            cluster_labels = dbscan.fit_predict(X) + 1
            self.dbscan_model = dbscan

        unique_labels = np.unique(cluster_labels)
        n_clusters = int(np.sum(unique_labels != NOISE_LABEL))
        n_noise = int(np.sum(cluster_labels == NOISE_LABEL))

        results = {
            "method": "dbscan",
            "eps": self.eps,
            "min_samples": self.min_samples,
            "n_clusters": n_clusters,
            "n_noise": n_noise,
            "cluster_labels": cluster_labels.tolist()
        }

        logger.info(f"DBSCAN (eps={self.eps}, min_samples={self.min_samples}) found "
                    f"{n_clusters} hotspots and {n_noise} noise points")

        self.cluster_results = results
        return results

    def assign_clusters(self, gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
        """Attach a cluster label to every projected incident"""
        X = CrimeDataPreprocessor.extract_coordinates(gdf)
        results = self.apply_dbscan_clustering(X)

        gdf_clustered = gdf.copy()
        gdf_clustered["cluster"] = np.asarray(results["cluster_labels"], dtype=int)
        return gdf_clustered

    def analyze_cluster_characteristics(self, df: pd.DataFrame) -> Dict[str, Any]:
        """Analyze characteristics of each cluster"""
        cluster_analysis = {}

        for cluster_id in sorted(df["cluster"].unique()):
            cluster_name = "noise" if cluster_id == NOISE_LABEL else f"cluster_{cluster_id}"
            cluster_data = df[df["cluster"] == cluster_id]

            cluster_analysis[cluster_name] = {
                "size": len(cluster_data),
                "percentage": len(cluster_data) / len(df) * 100,
                "category_distribution": cluster_data["category"].value_counts().to_dict(),
                "season_distribution": cluster_data["season"].value_counts().to_dict()
            }

        return cluster_analysis

    def identify_hotspots(self, df: pd.DataFrame) -> List[Dict[str, Any]]:
        """Summarize every non-noise cluster, largest first"""
        hotspots = []

        for cluster_id, cluster_data in df[df["cluster"] != NOISE_LABEL].groupby("cluster"):
            categories = cluster_data["category"].value_counts()
            hotspots.append({
                "cluster_id": int(cluster_id),
                "size": len(cluster_data),
                "spatial_center": {
                    "lat": float(cluster_data["lat"].mean()),
                    "long": float(cluster_data["long"].mean())
                },
                "top_category": categories.index[0],
                "top_category_share": float(categories.iloc[0] / len(cluster_data) * 100)
            })

        hotspots.sort(key=lambda h: (-h["size"], h["cluster_id"]))
        return hotspots

    def cluster_composition(self, df: pd.DataFrame, top_clusters: int = None,
                            top_categories: int = None) -> pd.DataFrame:
        """Top categories by percentage share within the largest clusters.

        Noise is excluded. Ties on the last kept percentage are all kept.
        Returns an empty frame when no clustered incidents are present.
        """
        if top_clusters is None:
            top_clusters = CLUSTERING_CONFIG["top_clusters"]
        if top_categories is None:
            top_categories = CLUSTERING_CONFIG["top_categories"]

        columns = ["cluster", "category", "n", "cluster_size", "percentage"]
        clustered = df[df["cluster"] != NOISE_LABEL]
        if clustered.empty:
            return pd.DataFrame(columns=columns)

        sizes = clustered.groupby("cluster").size().reset_index(name="cluster_size")
        sizes = sizes.sort_values(["cluster_size", "cluster"], ascending=[False, True])
        sizes = sizes.head(top_clusters)

        counts = (
            clustered[clustered["cluster"].isin(sizes["cluster"])]
            .groupby(["cluster", "category"]).size()
            .reset_index(name="n")
        )
        counts = counts.merge(sizes, on="cluster")
        counts["percentage"] = (counts["n"] / counts["cluster_size"] * 100).round(1)

        rank = counts.groupby("cluster")["percentage"].rank(method="min", ascending=False)
        composition = counts[rank <= top_categories]

        composition = composition.sort_values(
            ["cluster_size", "cluster", "percentage", "category"],
            ascending=[False, True, False, True]
        ).reset_index(drop=True)

        return composition[columns]

    @staticmethod
    def count_hotspots(df: pd.DataFrame) -> int:
        """Number of distinct non-noise cluster labels"""
        return int(df.loc[df["cluster"] != NOISE_LABEL, "cluster"].nunique())

    def export_cluster_results(self, cluster_results: Dict[str, Any],
                               cluster_analysis: Dict[str, Any],
                               hotspots: List[Dict[str, Any]],
                               filename: str = None) -> str:
        """Export clustering results to JSON"""
        if filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = FILE_PATTERNS["cluster_results"].format(
                method=cluster_results["method"], timestamp=timestamp
            )

        export_data = {
            "clustering_results": {k: v for k, v in cluster_results.items() if k != "cluster_labels"},
            "cluster_analysis": cluster_analysis,
            "hotspots": hotspots,
            "timestamp": datetime.now().isoformat(),
            "config": CLUSTERING_CONFIG
        }

        filepath = Path(PROCESSED_DATA_DIR) / filename
        with open(filepath, 'w') as f:
            json.dump(export_data, f, indent=2, default=str)

        logger.info(f"Cluster results exported to {filepath}")
        return str(filepath)
