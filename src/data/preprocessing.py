import logging
import pandas as pd
import numpy as np
from typing import Dict, Any, Union
from pathlib import Path
import geopandas as gpd

from config import DATA_CONFIG, MONTH_ORDER, SEASON_BY_MONTH
from src.exceptions import DataLoadError, MissingColumnsError, DataValidationError

logger = logging.getLogger(__name__)

class CrimeDataPreprocessor:
    def __init__(self, geographic_crs: str = None, projected_crs: str = None):
        self.geographic_crs = geographic_crs or DATA_CONFIG["geographic_crs"]
        self.projected_crs = projected_crs or DATA_CONFIG["projected_crs"]
        self.raw_row_count = 0
        self.dropped_rows = 0
        self.processed_data = None
        self.data_summary = {}

    def load_raw_data(self, filepath: Union[str, Path] = None) -> pd.DataFrame:
        """Read the incident file and check that the required columns exist"""
        filepath = Path(filepath or DATA_CONFIG["input_file"])

        if not filepath.exists():
            raise DataLoadError(f"Incident file not found: {filepath}")

        try:
            df = pd.read_csv(filepath)
        except (OSError, ValueError) as e:
            raise DataLoadError(f"Could not read incident file {filepath}: {e}") from e

        missing = [col for col in DATA_CONFIG["required_columns"] if col not in df.columns]
        if missing:
            raise MissingColumnsError(missing)

        self.raw_row_count = len(df)
        logger.info(f"Loaded {len(df)} incidents from {filepath}")
        return df

    def parse_partial_dates(self, dates: pd.Series) -> pd.Series:
        """Parse year-month strings, assuming the first day of the month"""
        text = dates.astype("string").str.strip()
        year_month = text.str.fullmatch(r"\d{4}-\d{2}").fillna(False)
        text = text.where(~year_month, text + "-01")

        parsed = pd.to_datetime(text, format="%Y-%m-%d", errors="coerce")
        invalid = parsed.isna()
        if invalid.any():
            examples = dates[invalid].astype(str).head(3).tolist()
            raise DataValidationError(
                f"{int(invalid.sum())} incidents have unparseable dates, e.g. {examples}"
            )

        return parsed

    def clean_data(self, df: pd.DataFrame) -> pd.DataFrame:
        """Parse dates and drop incidents lacking coordinates"""
        df = df.copy()
        df["date"] = self.parse_partial_dates(df["date"])

        # Non-numeric coordinates count as missing
        df["lat"] = pd.to_numeric(df["lat"], errors="coerce")
        df["long"] = pd.to_numeric(df["long"], errors="coerce")

        before = len(df)
        df = df.dropna(subset=["lat", "long"]).reset_index(drop=True)
        self.dropped_rows = before - len(df)

        if self.dropped_rows:
            logger.info(f"Dropped {self.dropped_rows} incidents without coordinates")

        return df

    def engineer_features(self, df: pd.DataFrame) -> pd.DataFrame:
        """Derive ordered month and season features from the incident date"""
        if df.empty:
            df = df.copy()
            df["month"] = pd.Categorical([], categories=MONTH_ORDER, ordered=True)
            df["season"] = pd.Series(dtype="object")
            return df

        df = df.copy()
        month_names = df["date"].dt.month_name()
        df["month"] = pd.Categorical(month_names, categories=MONTH_ORDER, ordered=True)
        df["season"] = month_names.map(self._categorize_season)

        return df

    def _categorize_season(self, month: str) -> str:
        """Map a month name to its meteorological season"""
        return SEASON_BY_MONTH.get(month, "Autumn")

    def create_geospatial_data(self, df: pd.DataFrame) -> gpd.GeoDataFrame:
        """Convert to GeoDataFrame in the geographic CRS"""
        geometry = gpd.points_from_xy(df["long"], df["lat"])
        return gpd.GeoDataFrame(df, geometry=geometry, crs=self.geographic_crs)

    def project_to_planar(self, gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
        """Reproject points into the metric CRS used for distance calculations"""
        return gdf.to_crs(self.projected_crs)

    def reproject_to_geographic(self, gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
        """Transform points back to the geographic CRS for mapping"""
        return gdf.to_crs(self.geographic_crs)

    @staticmethod
    def extract_coordinates(gdf: gpd.GeoDataFrame) -> np.ndarray:
        """Return an (n, 2) array of point x/y values in row order"""
        return np.column_stack([gdf.geometry.x.to_numpy(), gdf.geometry.y.to_numpy()])

    def get_data_summary(self, df: pd.DataFrame) -> Dict[str, Any]:
        """Generate summary statistics for the cleaned dataset"""
        summary = {
            "raw_incidents": self.raw_row_count,
            "clean_incidents": len(df),
            "dropped_incidents": self.dropped_rows,
            "categories": df["category"].nunique(),
            "date_range": {
                "start": df["date"].min() if not df.empty else None,
                "end": df["date"].max() if not df.empty else None
            },
            "category_distribution": df["category"].value_counts().to_dict(),
            "season_distribution": df["season"].value_counts().to_dict()
        }

        return summary

    def process_crime_data(self, filepath: Union[str, Path] = None) -> gpd.GeoDataFrame:
        """Complete processing pipeline: load, clean, derive features, project"""
        df = self.load_raw_data(filepath)
        df = self.clean_data(df)
        df = self.engineer_features(df)

        self.data_summary = self.get_data_summary(df)
        logger.info(f"Data summary: {self.data_summary}")

        gdf = self.create_geospatial_data(df)
        projected = self.project_to_planar(gdf)
        logger.debug(f"Projected {len(projected)} incidents to {self.projected_crs}")

        self.processed_data = projected
        return projected
