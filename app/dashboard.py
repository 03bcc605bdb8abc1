import streamlit as st
import streamlit.components.v1 as components
import sys
import os

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import DASHBOARD_CONFIG, DATA_CONFIG
from utils.map_utils import MapVisualizer
from utils.chart_utils import ChartVisualizer
from utils.filter_state import DashboardState, MapFilter
from clustering.cluster_analysis import CrimeClusterAnalyzer
from src.exceptions import CrimeDataError
from src.pipeline import CrimeSnapshot, run_pipeline, summarize_snapshot, format_summary

@st.cache_resource(show_spinner="Clustering incidents...")
def load_snapshot(filepath: str) -> CrimeSnapshot:
    """Run the pipeline once per process; every session shares the result"""
    return run_pipeline(filepath)

class CrimeHotspotDashboard:
    MAP_VIEW = "hotspot_map"
    PROFILE_VIEW = "cluster_profiles"

    def __init__(self):
        st.set_page_config(
            page_title=DASHBOARD_CONFIG["page_title"],
            page_icon=DASHBOARD_CONFIG["page_icon"],
            layout=DASHBOARD_CONFIG["layout"],
            initial_sidebar_state=DASHBOARD_CONFIG["initial_sidebar_state"]
        )

        self.chart_visualizer = ChartVisualizer()
        self.cluster_analyzer = CrimeClusterAnalyzer()
        self.snapshot = None
        self.map_visualizer = None

    def load_data(self) -> bool:
        """Load the snapshot; stop with an error rather than serve a partial dashboard"""
        try:
            self.snapshot = load_snapshot(str(DATA_CONFIG["input_file"]))
        except CrimeDataError as e:
            st.error(f"Error loading data: {e}")
            return False

        self.map_visualizer = MapVisualizer(self.snapshot.cluster_levels)
        return True

    def get_state(self) -> DashboardState:
        """Per-session dependency graph over the shared snapshot"""
        if "dashboard_state" not in st.session_state:
            state = DashboardState(self.snapshot.incidents)
            state.register_view(self.MAP_VIEW, self.render_hotspot_map)
            state.register_view(self.PROFILE_VIEW, self.render_cluster_profiles)
            st.session_state["dashboard_state"] = state
        return st.session_state["dashboard_state"]

    def render_hotspot_map(self, filtered):
        map_obj = self.map_visualizer.create_hotspot_map(filtered)
        return self.map_visualizer.get_map_as_html(map_obj)

    def render_cluster_profiles(self, filtered):
        composition = self.cluster_analyzer.cluster_composition(filtered)
        return self.chart_visualizer.create_cluster_composition_chart(composition)

    def sidebar_filters(self):
        """Create sidebar filters"""
        trend_choices = self.snapshot.categories_by_frequency
        default_trend = DASHBOARD_CONFIG["default_trend_category"]

        trend_categories = st.sidebar.multiselect(
            "View Monthly Trend for:",
            options=trend_choices,
            default=[default_trend] if default_trend in trend_choices else trend_choices[:1]
        )

        st.sidebar.markdown("---")
        st.sidebar.subheader("Map Data Filters")

        start, end = self.snapshot.date_range
        date_range = st.sidebar.date_input(
            "Filter Map by Date:",
            value=(start.date(), end.date()),
            min_value=start.date(),
            max_value=end.date()
        )

        categories = self.snapshot.categories
        map_categories = st.sidebar.multiselect(
            "Filter Map by Category:",
            options=categories,
            default=categories
        )
        st.sidebar.caption("Use filters to control the data on the 'Hotspot Map' and 'Cluster Profiles' tabs.")

        if not isinstance(date_range, (list, tuple)):
            date_range = (date_range,)
        elif not date_range:
            date_range = (start, end)

        return trend_categories, MapFilter.from_inputs(date_range, map_categories)

    def overview_tab(self):
        st.header("Main Crimes in Colchester")
        st.plotly_chart(
            self.chart_visualizer.create_category_bar_chart(self.snapshot.incidents),
            use_container_width=True
        )

        st.subheader("Key Statistics")
        st.text(format_summary(summarize_snapshot(self.snapshot)))

    def trends_tab(self, trend_categories):
        st.header("Monthly Pattern")
        st.plotly_chart(
            self.chart_visualizer.create_monthly_trend_chart(self.snapshot.incidents, trend_categories),
            use_container_width=True
        )

    def hotspot_map_tab(self, state: DashboardState):
        st.header("Geospatial Crime Clusters (Filtered)")
        active = state.current_filter
        st.caption(
            f"{len(state.filtered_incidents)} incidents from {active.start_date:%d %b %Y} "
            f"to {active.end_date:%d %b %Y} across {len(active.categories)} categories"
        )
        if state.filtered_incidents.empty:
            st.warning(DASHBOARD_CONFIG["no_data_message"])
        components.html(state.render(self.MAP_VIEW), height=DASHBOARD_CONFIG["map_height"])

    def cluster_profiles_tab(self, state: DashboardState):
        st.header("Top Crime Types in Main Hotspots")
        st.plotly_chart(state.render(self.PROFILE_VIEW), use_container_width=True)

    def run_dashboard(self):
        """Run the main dashboard"""
        st.title(DASHBOARD_CONFIG["page_title"])

        if not self.load_data():
            st.stop()

        trend_categories, map_filter = self.sidebar_filters()
        state = self.get_state()
        state.set_filter(map_filter)

        tab1, tab2, tab3, tab4 = st.tabs([
            "Overview",
            "Trends",
            "Hotspot Map",
            "Cluster Profiles"
        ])

        with tab1:
            self.overview_tab()

        with tab2:
            self.trends_tab(trend_categories)

        with tab3:
            self.hotspot_map_tab(state)

        with tab4:
            self.cluster_profiles_tab(state)

if __name__ == "__main__":
    dashboard = CrimeHotspotDashboard()
    dashboard.run_dashboard()
