import unittest
import tempfile
import pandas as pd
from pathlib import Path
from unittest.mock import patch
import sys
import os

import streamlit as st
from streamlit.testing.v1 import AppTest

# Add project root to path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from config import DASHBOARD_CONFIG, DATA_CONFIG, CLUSTERING_CONFIG
from app.utils.chart_utils import ChartVisualizer
from app.utils.map_utils import MapVisualizer
from app.utils.filter_state import DashboardState, MapFilter, filter_incidents
from clustering.cluster_analysis import CrimeClusterAnalyzer, NOISE_LABEL
from src.pipeline import run_pipeline
from src.report import StaticReportGenerator
from test_pipeline import make_scenario_frame, write_csv, EPS, MIN_SAMPLES

DASHBOARD_SCRIPT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "app", "dashboard.py")

class SnapshotTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        path = write_csv(self.tmp.name, make_scenario_frame())
        self.snapshot = run_pipeline(path, eps=EPS, min_samples=MIN_SAMPLES)
        self.incidents = self.snapshot.incidents
        self.all_year = MapFilter.from_inputs(("2023-01-01", "2023-12-31"), self.snapshot.categories)
        self.no_match = MapFilter.from_inputs(("2030-01-01", "2030-12-31"), self.snapshot.categories)

class TestMapFilter(SnapshotTestCase):
    def test_filter_normalization(self):
        """Test widget values normalize into comparable filters"""
        first = MapFilter.from_inputs(("2023-03-01", "2023-01-01"), ["b", "a", "b"])
        second = MapFilter.from_inputs(["2023-01-01", "2023-03-01"], ("a", "b"))

        self.assertEqual(first, second)
        self.assertEqual(first.categories, ("a", "b"))
        self.assertLessEqual(first.start_date, first.end_date)

    def test_single_date_selection(self):
        """Test a half-selected range filters a single day"""
        map_filter = MapFilter.from_inputs(("2023-02-01",), ["violent-crime"])
        filtered = filter_incidents(self.incidents, map_filter)

        self.assertEqual(len(filtered), 1)
        self.assertEqual(filtered["date"].iloc[0], pd.Timestamp("2023-02-01"))

    def test_date_and_category_filters(self):
        """Test the inclusive date range and category set"""
        map_filter = MapFilter.from_inputs(("2023-01-01", "2023-03-01"), ["violent-crime"])
        filtered = filter_incidents(self.incidents, map_filter)

        self.assertEqual(len(filtered), 3)
        self.assertTrue((filtered["category"] == "violent-crime").all())

    def test_filter_idempotence(self):
        """Test that applying the same filter twice gives identical output"""
        once = filter_incidents(self.incidents, self.all_year)
        twice = filter_incidents(once, self.all_year)

        pd.testing.assert_frame_equal(once, twice)
        pd.testing.assert_frame_equal(once, filter_incidents(self.incidents, self.all_year))

    def test_filter_leaves_snapshot_untouched(self):
        """Test filtering never modifies the shared incidents"""
        before = self.incidents.copy()
        filtered = filter_incidents(self.incidents, self.no_match)
        filtered["category"] = "changed"

        pd.testing.assert_frame_equal(self.incidents, before)

class TestDashboardState(SnapshotTestCase):
    def setUp(self):
        super().setUp()
        self.state = DashboardState(self.incidents)
        self.state.register_view("count", len)
        self.state.register_view("categories", lambda df: sorted(df["category"].unique()))

    def test_views_recompute_after_filter(self):
        """Test the filtered node is computed before its dependent views"""
        self.assertTrue(self.state.set_filter(self.all_year))
        self.assertEqual(self.state.render("count"), 8)
        self.state.render("categories")

        self.assertEqual(self.state.recompute_log, ["filtered_incidents", "count", "categories"])
        self.assertEqual(self.state.dependents, ["count", "categories"])

    def test_unchanged_filter_does_not_recompute(self):
        """Test setting an equal filter keeps cached views"""
        self.state.set_filter(self.all_year)
        self.state.render("count")

        same = MapFilter.from_inputs(("2023-12-31", "2023-01-01"), reversed(self.snapshot.categories))
        self.assertFalse(self.state.set_filter(same))
        self.state.render("count")

        self.assertEqual(self.state.recompute_log, ["filtered_incidents", "count"])
        self.assertEqual(self.state.current_filter, self.all_year)

    def test_changed_filter_invalidates_views(self):
        """Test a new filter recomputes the filtered node and its views"""
        self.state.set_filter(self.all_year)
        self.state.render("count")

        self.assertTrue(self.state.set_filter(self.no_match))
        self.assertEqual(self.state.render("count"), 0)
        self.assertEqual(self.state.recompute_log, ["filtered_incidents", "count", "filtered_incidents", "count"])

    def test_render_requires_filter(self):
        """Test rendering before any filter is set is an error"""
        with self.assertRaises(RuntimeError):
            self.state.render("count")
        with self.assertRaises(KeyError):
            self.state.render("unknown")

class TestChartVisualizer(SnapshotTestCase):
    def setUp(self):
        super().setUp()
        self.charts = ChartVisualizer()

    def test_category_bar_chart(self):
        """Test counts are descending from the top of the chart"""
        fig = self.charts.create_category_bar_chart(self.incidents)
        bar = fig.data[0]

        self.assertEqual(bar.orientation, 'h')
        self.assertEqual(list(bar.y)[-1], "violent-crime")
        self.assertEqual(list(bar.x)[-1], 3)
        self.assertEqual(list(bar.x), sorted(bar.x))

    def test_monthly_counts_in_month_order(self):
        """Test trend counts follow the calendar, not the alphabet"""
        counts = self.charts.monthly_counts(self.incidents, ["violent-crime", "burglary"])

        violent = counts[counts["category"] == "violent-crime"]
        self.assertEqual(violent["month"].astype(str).tolist(), ["January", "February", "March"])
        self.assertEqual(counts["n"].sum(), 5)

    def test_monthly_trend_chart(self):
        """Test one line per selected category"""
        fig = self.charts.create_monthly_trend_chart(self.incidents, ["violent-crime", "burglary"])

        self.assertFalse(ChartVisualizer.is_placeholder(fig))
        self.assertEqual(sorted(trace.name for trace in fig.data), ["burglary", "violent-crime"])

    def test_trend_without_selection_is_placeholder(self):
        """Test an empty selection renders a message"""
        fig = self.charts.create_monthly_trend_chart(self.incidents, [])
        self.assertTrue(ChartVisualizer.is_placeholder(fig))

    def test_composition_chart(self):
        """Test the composition chart has a facet per hotspot"""
        composition = CrimeClusterAnalyzer().cluster_composition(self.incidents)
        fig = self.charts.create_cluster_composition_chart(composition)

        self.assertFalse(ChartVisualizer.is_placeholder(fig))
        facet_titles = [a.text for a in fig.layout.annotations]
        self.assertEqual(len([t for t in facet_titles if t.startswith("Hotspot")]), 1)

    def test_empty_filter_renders_placeholders(self):
        """Test every filter-dependent view degrades to a placeholder"""
        filtered = filter_incidents(self.incidents, self.no_match)
        self.assertTrue(filtered.empty)

        composition = CrimeClusterAnalyzer().cluster_composition(filtered)
        fig = self.charts.create_cluster_composition_chart(composition)
        self.assertTrue(ChartVisualizer.is_placeholder(fig))
        self.assertEqual(fig.layout.annotations[0].text, DASHBOARD_CONFIG["no_hotspots_message"])

        self.assertTrue(ChartVisualizer.is_placeholder(self.charts.create_category_bar_chart(filtered)))

        visualizer = MapVisualizer(self.snapshot.cluster_levels)
        html = visualizer.get_map_as_html(visualizer.create_hotspot_map(filtered))
        self.assertIn(DASHBOARD_CONFIG["no_data_message"], html)

    def test_noise_only_filter_renders_placeholder(self):
        """Test a subset without hotspots shows the no-hotspot message"""
        noise = self.incidents[self.incidents["cluster"] == NOISE_LABEL]
        fig = self.charts.create_cluster_composition_chart(CrimeClusterAnalyzer().cluster_composition(noise))
        self.assertTrue(ChartVisualizer.is_placeholder(fig))

class TestMapVisualizer(SnapshotTestCase):
    def test_cluster_palette(self):
        """Test noise is grey and hotspots take palette colours"""
        palette = MapVisualizer.build_cluster_palette([2, NOISE_LABEL, 1])

        self.assertEqual(palette[NOISE_LABEL], DASHBOARD_CONFIG["noise_color"])
        self.assertEqual(palette[1], DASHBOARD_CONFIG["cluster_palette"][0])
        self.assertEqual(palette[2], DASHBOARD_CONFIG["cluster_palette"][1])

    def test_palette_recycles_colours(self):
        """Test more hotspots than colours reuse the palette"""
        n_colors = len(DASHBOARD_CONFIG["cluster_palette"])
        palette = MapVisualizer.build_cluster_palette(list(range(1, n_colors + 2)))
        self.assertEqual(palette[n_colors + 1], palette[1])

    def test_hotspot_map_markers(self):
        """Test one marker per filtered incident with a category popup"""
        visualizer = MapVisualizer(self.snapshot.cluster_levels)
        filtered = filter_incidents(self.incidents, self.all_year)
        map_obj = visualizer.create_hotspot_map(filtered)
        html = visualizer.get_map_as_html(map_obj)

        markers = [child for child in map_obj._children.values() if type(child).__name__ == "CircleMarker"]
        self.assertEqual(len(markers), len(filtered))
        self.assertIn("<b>Category:</b> violent-crime", html)
        self.assertIn("Hotspot ID", html)
        self.assertNotIn(DASHBOARD_CONFIG["no_data_message"], html)

    def test_markers_follow_reprojected_geometry(self):
        """Test marker positions come from the geometry, not the raw columns"""
        visualizer = MapVisualizer(self.snapshot.cluster_levels)
        relabelled = self.incidents.copy()
        relabelled["lat"] = 0.0
        relabelled["long"] = 0.0
        map_obj = visualizer.create_hotspot_map(relabelled)

        markers = [child for child in map_obj._children.values() if type(child).__name__ == "CircleMarker"]
        self.assertEqual(len(markers), len(relabelled))
        for marker, point in zip(markers, relabelled.geometry):
            self.assertAlmostEqual(marker.location[0], point.y)
            self.assertAlmostEqual(marker.location[1], point.x)
        self.assertNotIn("[0.0, 0.0]", visualizer.get_map_as_html(map_obj))

class TestStaticReport(SnapshotTestCase):
    def test_generate_report(self):
        """Test the report and every figure are written"""
        output_dir = os.path.join(self.tmp.name, "reports")
        artifacts = StaticReportGenerator(self.snapshot, output_dir).generate()

        for name in ["categories", "trends", "clusters", "composition", "map", "report"]:
            self.assertTrue(artifacts[name].exists(), name)

        with open(artifacts["report"], encoding="utf-8") as f:
            report = f.read()
        self.assertIn("Hotspots detected: 1", report)
        self.assertIn("2 dropped for missing coordinates", report)
        self.assertIn("figures/category_counts.png", report)

class TestDashboardApp(unittest.TestCase):
    """Drive the Streamlit script headlessly"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        st.cache_resource.clear()
        self.addCleanup(st.cache_resource.clear)

        clustering = patch.dict(CLUSTERING_CONFIG, {"dbscan_eps": EPS, "dbscan_min_samples": MIN_SAMPLES})
        clustering.start()
        self.addCleanup(clustering.stop)

    def run_app(self, input_file):
        with patch.dict(DATA_CONFIG, {"input_file": Path(input_file)}):
            app = AppTest.from_file(DASHBOARD_SCRIPT, default_timeout=60)
            app.run()
        return app

    def test_missing_file_stops_with_error(self):
        """Test a load failure shows one error and no tabs"""
        app = self.run_app(Path(self.tmp.name) / "missing.csv")

        self.assertEqual(len(app.exception), 0)
        self.assertEqual(len(app.error), 1)
        self.assertIn("missing.csv", app.error[0].value)
        self.assertEqual(len(app.tabs), 0)

    def test_unlocated_incidents_stop_with_error(self):
        """Test a file without any coordinates is reported instead of crashing"""
        df = make_scenario_frame()
        df["lat"] = None
        app = self.run_app(write_csv(self.tmp.name, df))

        self.assertEqual(len(app.exception), 0)
        self.assertEqual(len(app.error), 1)
        self.assertIn("No incidents with coordinates", app.error[0].value)
        self.assertEqual(len(app.tabs), 0)

    def test_valid_file_renders_tabs(self):
        """Test the four tabs and the session dependency graph"""
        app = self.run_app(write_csv(self.tmp.name, make_scenario_frame()))

        self.assertEqual(len(app.exception), 0)
        self.assertEqual(len(app.error), 0)
        self.assertEqual([tab.label for tab in app.tabs], ["Overview", "Trends", "Hotspot Map", "Cluster Profiles"])
        self.assertNotIn(DASHBOARD_CONFIG["no_data_message"], [w.value for w in app.warning])

        state = app.session_state["dashboard_state"]
        self.assertEqual(state.dependents, ["hotspot_map", "cluster_profiles"])
        self.assertEqual(state.recompute_log, ["filtered_incidents", "hotspot_map", "cluster_profiles"])
        self.assertEqual(len(state.filtered_incidents), 8)
        self.assertFalse(ChartVisualizer.is_placeholder(state.render("cluster_profiles")))

    def test_empty_selection_shows_placeholders(self):
        """Test clearing the map categories yields the warning and placeholders"""
        path = write_csv(self.tmp.name, make_scenario_frame())
        with patch.dict(DATA_CONFIG, {"input_file": path}):
            app = AppTest.from_file(DASHBOARD_SCRIPT, default_timeout=60)
            app.run()
            map_categories = [m for m in app.multiselect if m.label == "Filter Map by Category:"][0]
            map_categories.set_value([]).run()

        self.assertEqual(len(app.exception), 0)
        self.assertEqual([w.value for w in app.warning].count(DASHBOARD_CONFIG["no_data_message"]), 1)

        state = app.session_state["dashboard_state"]
        self.assertEqual(state.current_filter.categories, ())
        self.assertTrue(state.filtered_incidents.empty)
        self.assertTrue(ChartVisualizer.is_placeholder(state.render("cluster_profiles")))
        self.assertIn(DASHBOARD_CONFIG["no_data_message"], state.render("hotspot_map"))

if __name__ == "__main__":
    unittest.main(verbosity=2)
