import logging
from pathlib import Path
from typing import Dict, Union

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import seaborn as sns
import pandas as pd

from config import REPORTS_DIR, REPORT_CONFIG, FILE_PATTERNS, CLUSTERING_CONFIG, DASHBOARD_CONFIG, MONTH_ORDER
from src.pipeline import CrimeSnapshot, summarize_snapshot
from src.data.preprocessing import CrimeDataPreprocessor
from clustering.cluster_analysis import CrimeClusterAnalyzer, NOISE_LABEL
from app.utils.chart_utils import ChartVisualizer
from app.utils.map_utils import MapVisualizer

logger = logging.getLogger(__name__)

class StaticReportGenerator:
    """Writes the markdown report, its figures and the full hotspot map"""

    def __init__(self, snapshot: CrimeSnapshot, output_dir: Union[str, Path] = None):
        self.snapshot = snapshot
        self.output_dir = Path(output_dir or REPORTS_DIR)
        self.figures_dir = self.output_dir / REPORT_CONFIG["figures_dir"]
        self.analyzer = CrimeClusterAnalyzer(eps=snapshot.eps, min_samples=snapshot.min_samples)
        self.charts = ChartVisualizer()

    def _save(self, fig: plt.Figure, key: str) -> Path:
        path = self.figures_dir / REPORT_CONFIG["figure_files"][key]
        fig.savefig(path, dpi=REPORT_CONFIG["dpi"], bbox_inches='tight')
        plt.close(fig)
        return path

    def plot_category_counts(self) -> Path:
        incidents = self.snapshot.incidents
        order = incidents['category'].value_counts().index

        fig, ax = plt.subplots(figsize=(10, 6))
        sns.countplot(data=incidents, y='category', order=order, color='steelblue', ax=ax)
        for container in ax.containers:
            ax.bar_label(container, padding=3)
        ax.set_title('Main Crime Types')
        ax.set_xlabel('Number of Incidents')
        ax.set_ylabel('Crime Category')
        return self._save(fig, "categories")

    def plot_monthly_trends(self) -> Path:
        top = self.snapshot.categories_by_frequency[:REPORT_CONFIG["top_trend_categories"]]
        counts = self.charts.monthly_counts(self.snapshot.incidents, top)

        fig, ax = plt.subplots(figsize=(10, 6))
        if counts.empty:
            ax.text(0.5, 0.5, DASHBOARD_CONFIG["no_data_message"], ha='center', va='center')
            ax.set_axis_off()
        else:
            counts['month_number'] = counts['month'].cat.codes + 1
            sns.lineplot(data=counts, x='month_number', y='n', hue='category', marker='o', linewidth=2, ax=ax)
            ax.set_xticks(range(1, 13), [name[:3] for name in MONTH_ORDER])
            ax.set_xlabel('Month')
            ax.set_ylabel('Number of Incidents')
            ax.tick_params(axis='x', rotation=45)
        ax.set_title('Incident Trends by Month')
        return self._save(fig, "trends")

    def plot_spatial_clusters(self) -> Path:
        # Projected coordinates keep distances in metres, matching eps
        projected = CrimeDataPreprocessor().project_to_planar(self.snapshot.incidents)
        xy = CrimeDataPreprocessor.extract_coordinates(projected)
        labels = projected['cluster'].to_numpy()
        noise = labels == NOISE_LABEL

        fig, ax = plt.subplots(figsize=(9, 9))
        ax.scatter(xy[noise, 0], xy[noise, 1], s=4, c='lightgrey', label='Noise')
        if (~noise).any():
            ax.scatter(xy[~noise, 0], xy[~noise, 1], s=6, c=labels[~noise], cmap='tab10', label='Hotspots')
        ax.set_title(f'DBSCAN Hotspots (eps={self.snapshot.eps} m, minPts={self.snapshot.min_samples})')
        ax.set_xlabel('Easting (m)')
        ax.set_ylabel('Northing (m)')
        ax.set_aspect('equal')
        ax.legend(loc='upper right')
        return self._save(fig, "clusters")

    def plot_cluster_composition(self, composition: pd.DataFrame) -> Path:
        if composition.empty:
            fig, ax = plt.subplots(figsize=(8, 4))
            ax.text(0.5, 0.5, DASHBOARD_CONFIG["no_hotspots_message"], ha='center', va='center', fontsize=14)
            ax.set_axis_off()
            return self._save(fig, "composition")

        plot_data = composition.copy()
        plot_data['hotspot'] = 'Hotspot ' + plot_data['cluster'].astype(str)
        grid = sns.catplot(
            data=plot_data, x='percentage', y='category', col='hotspot', col_wrap=2,
            kind='bar', hue='category', legend=False, sharey=False, height=3, aspect=1.6
        )
        grid.set_titles('{col_name}')
        grid.set_axis_labels('Percentage of Incidents within Each Hotspot', 'Crime Category')
        grid.figure.suptitle('Crime Profile of Major Hotspots', y=1.02)
        return self._save(grid.figure, "composition")

    def export_hotspot_map(self) -> Path:
        visualizer = MapVisualizer(self.snapshot.cluster_levels)
        map_obj = visualizer.create_hotspot_map(self.snapshot.incidents)
        path = self.output_dir / FILE_PATTERNS["hotspot_map"]
        visualizer.export_map_to_html(map_obj, str(path))
        return path

    def generate(self) -> Dict[str, Path]:
        """Render all figures and write the markdown report"""
        self.figures_dir.mkdir(parents=True, exist_ok=True)
        incidents = self.snapshot.incidents
        summary = summarize_snapshot(self.snapshot)
        composition = self.analyzer.cluster_composition(incidents)
        hotspots = self.analyzer.identify_hotspots(incidents)

        artifacts = {
            "categories": self.plot_category_counts(),
            "trends": self.plot_monthly_trends(),
            "clusters": self.plot_spatial_clusters(),
            "composition": self.plot_cluster_composition(composition),
            "map": self.export_hotspot_map()
        }
        start, end = self.snapshot.date_range

        lines = []
        lines.append("# Crime Hotspot Analysis")
        lines.append("")
        lines.append("## Summary Metrics")
        lines.append(f"- Source file: {self.snapshot.source}")
        lines.append(f"- Incidents analysed: {summary['total_incidents']} "
                     f"({summary['dropped_incidents']} dropped for missing coordinates)")
        if not incidents.empty:
            lines.append(f"- Period covered: {start:%B %Y} to {end:%B %Y}")
        lines.append(f"- Violent crimes: {summary['violent_incidents']} ({summary['violent_percentage']}%)")
        lines.append(f"- Hotspots detected: {summary['hotspots']} "
                     f"(DBSCAN eps={self.snapshot.eps} m, minPts={self.snapshot.min_samples})")
        lines.append(f"- Incidents outside any hotspot: {summary['noise_incidents']}")
        lines.append("")
        lines.append("## Main Crime Types")
        lines.append(f"![Main crime types]({self._relative(artifacts['categories'])})")
        lines.append("")
        for category, count in incidents['category'].value_counts().head(5).items():
            lines.append(f"- {category}: {count}")
        lines.append("")
        lines.append("## Monthly Pattern")
        lines.append(f"![Monthly trends]({self._relative(artifacts['trends'])})")
        lines.append("")
        if not incidents.empty:
            by_season = incidents['season'].value_counts()
            lines.append(f"- Busiest season: {by_season.index[0]} ({by_season.iloc[0]} incidents)")
            lines.append("")
        lines.append("## Hotspots")
        lines.append(f"![Spatial clusters]({self._relative(artifacts['clusters'])})")
        lines.append("")
        if hotspots:
            for hotspot in hotspots[:CLUSTERING_CONFIG["top_clusters"]]:
                lines.append(
                    f"- Hotspot {hotspot['cluster_id']}: {hotspot['size']} incidents around "
                    f"({hotspot['spatial_center']['lat']:.4f}, {hotspot['spatial_center']['long']:.4f}), "
                    f"mostly {hotspot['top_category']} ({hotspot['top_category_share']:.1f}%)"
                )
        else:
            lines.append(f"- {DASHBOARD_CONFIG['no_hotspots_message']}")
        lines.append("")
        lines.append("## Crime Profile of Major Hotspots")
        lines.append(f"![Cluster composition]({self._relative(artifacts['composition'])})")
        lines.append("")
        lines.append(f"Interactive map: [{artifacts['map'].name}]({self._relative(artifacts['map'])})")

        report_path = self.output_dir / FILE_PATTERNS["report"]
        with open(report_path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")

        logger.info(f"Static report written to {report_path}")
        artifacts["report"] = report_path
        return artifacts

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.output_dir).as_posix()
