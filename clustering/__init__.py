"""
Spatial Clustering Module for Crime Hotspot Mapping

DBSCAN over projected incident coordinates. Noise points carry label 0 and
hotspots are numbered from 1.

Usage:
    from clustering import CrimeClusterAnalyzer
    analyzer = CrimeClusterAnalyzer(eps=120, min_samples=25)
    labelled = analyzer.assign_clusters(projected_gdf)
"""

from .cluster_analysis import CrimeClusterAnalyzer, NOISE_LABEL

__all__ = [
    "CrimeClusterAnalyzer",
    "NOISE_LABEL"
]
