import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent
DATA_DIR = PROJECT_ROOT / "data"
RAW_DATA_DIR = DATA_DIR / "raw"
PROCESSED_DATA_DIR = DATA_DIR / "processed"
REPORTS_DIR = PROJECT_ROOT / "reports"

# Input data parameters
DATA_CONFIG = {
    "input_file": Path(os.environ.get("CRIME_DATA_FILE", RAW_DATA_DIR / "crime23.csv")),
    "required_columns": ["category", "date", "lat", "long"],
    "geographic_crs": "EPSG:4326",
    "projected_crs": "EPSG:27700",  # British National Grid, metres
    "violent_category": "violent-crime"
}

# Clustering parameters (eps in projected CRS units)
CLUSTERING_CONFIG = {
    "dbscan_eps": float(os.environ.get("CRIME_DBSCAN_EPS", 120)),
    "dbscan_min_samples": int(os.environ.get("CRIME_DBSCAN_MIN_SAMPLES", 25)),
    "noise_label": 0,
    "top_clusters": 4,
    "top_categories": 3
}

MONTH_ORDER = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December"
]

SEASON_BY_MONTH = {
    "December": "Winter", "January": "Winter", "February": "Winter",
    "March": "Spring", "April": "Spring", "May": "Spring",
    "June": "Summer", "July": "Summer", "August": "Summer"
}

# File naming conventions
FILE_PATTERNS = {
    "cluster_results": "clusters_{method}_{timestamp}.json",
    "report": "crime_report.md",
    "hotspot_map": "hotspot_map.html"
}

# Dashboard configuration
DASHBOARD_CONFIG = {
    "page_title": "Colchester Crime Analysis Dashboard (2023)",
    "page_icon": "🚨",
    "layout": "wide",
    "initial_sidebar_state": "expanded",
    "map_center": [51.8959, 0.8919],
    "map_zoom": 13,
    "map_tiles": "CartoDB positron",
    "map_height": 600,
    "noise_color": "grey",
    "cluster_palette": ["#FF5733", "#33FF57", "#3357FF", "#FF33A1", "#F1C40F", "#8E44AD"],
    "default_trend_category": "violent-crime",
    "no_data_message": "No data available for the current filter settings.",
    "no_hotspots_message": "No hotspots found for the current filter settings."
}

# Static report configuration
REPORT_CONFIG = {
    "dpi": 150,
    "figures_dir": "figures",
    "figure_files": {
        "categories": "category_counts.png",
        "trends": "monthly_trends.png",
        "clusters": "spatial_clusters.png",
        "composition": "cluster_composition.png"
    },
    "top_trend_categories": 5
}

# Ensure directories exist
for directory in [RAW_DATA_DIR, PROCESSED_DATA_DIR, REPORTS_DIR]:
    directory.mkdir(parents=True, exist_ok=True)
