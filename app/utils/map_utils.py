import folium
import pandas as pd
import geopandas as gpd
from typing import Dict, List
from html import escape

from config import DASHBOARD_CONFIG, CLUSTERING_CONFIG

class MapVisualizer:
    def __init__(self, cluster_levels: List[int] = None):
        self.center = DASHBOARD_CONFIG["map_center"]
        self.zoom = DASHBOARD_CONFIG["map_zoom"]
        self.cluster_levels = sorted(cluster_levels or [])
        self.palette = self.build_cluster_palette(self.cluster_levels)

    def create_base_map(self) -> folium.Map:
        """Create a base Folium map centered on the study area"""
        return folium.Map(
            location=self.center,
            zoom_start=self.zoom,
            tiles=DASHBOARD_CONFIG["map_tiles"]
        )

    @staticmethod
    def build_cluster_palette(cluster_levels: List[int]) -> Dict[int, str]:
        """Noise is grey; hotspots cycle through the configured palette"""
        colors = DASHBOARD_CONFIG["cluster_palette"]
        palette = {}
        hotspot_index = 0
        for level in sorted(cluster_levels):
            if level == CLUSTERING_CONFIG["noise_label"]:
                palette[level] = DASHBOARD_CONFIG["noise_color"]
            else:
                palette[level] = colors[hotspot_index % len(colors)]
                hotspot_index += 1
        return palette

    def add_incident_markers(self, map_obj: folium.Map, data: gpd.GeoDataFrame) -> folium.Map:
        """Add one circle marker per incident, colored by cluster.

        Positions come from the reprojected geometry, not the raw lat/long columns.
        """
        for row in data.itertuples(index=False):
            cluster_id = int(row.cluster)
            popup_content = (
                f"<b>Category:</b> {escape(str(row.category))}<br>"
                f"<b>Cluster:</b> {cluster_id}"
            )

            folium.CircleMarker(
                location=[row.geometry.y, row.geometry.x],
                radius=4,
                stroke=False,
                color=self.palette.get(cluster_id, DASHBOARD_CONFIG["noise_color"]),
                fill=True,
                fill_opacity=0.7,
                popup=folium.Popup(popup_content, max_width=250)
            ).add_to(map_obj)

        return map_obj

    def add_legend(self, map_obj: folium.Map) -> folium.Map:
        """Add a fixed legend of hotspot IDs in the bottom-right corner"""
        if not self.palette:
            return map_obj

        items = "".join(
            f'<div><span style="display:inline-block; width:12px; height:12px; '
            f'background:{color}; margin-right:6px;"></span>{level}</div>'
            for level, color in self.palette.items()
        )
        legend_html = f"""
        <div style="position: fixed; bottom: 30px; right: 10px; z-index: 1000; background: white;
                    padding: 8px; border: 1px solid grey; font-size: 12px;">
            <b>Hotspot ID</b>{items}
        </div>
        """
        map_obj.get_root().html.add_child(folium.Element(legend_html))
        return map_obj

    def add_placeholder_notice(self, map_obj: folium.Map, message: str = None) -> folium.Map:
        """Overlay a message when there is nothing to draw"""
        message = message or DASHBOARD_CONFIG["no_data_message"]
        notice_html = f"""
        <div style="position: fixed; top: 10px; left: 50px; z-index: 1000; background: white;
                    padding: 10px; border: 1px solid black;">
            {escape(message)}
        </div>
        """
        map_obj.get_root().html.add_child(folium.Element(notice_html))
        return map_obj

    def create_hotspot_map(self, data: pd.DataFrame) -> folium.Map:
        """Create the filtered hotspot map"""
        map_obj = self.create_base_map()

        if data.empty:
            self.add_placeholder_notice(map_obj)
        else:
            self.add_incident_markers(map_obj, data)

        self.add_legend(map_obj)
        return map_obj

    def export_map_to_html(self, map_obj: folium.Map, filename: str) -> str:
        """Export map to HTML file"""
        map_obj.save(filename)
        return filename

    def get_map_as_html(self, map_obj: folium.Map) -> str:
        """Get map as HTML string"""
        return map_obj.get_root().render()
