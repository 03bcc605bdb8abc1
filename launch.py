#!/usr/bin/env python3
"""
Launch Script for the Crime Hotspot Analysis & Dashboard
Runs the clustering pipeline, writes the static report and launches the
Streamlit dashboard
"""

import sys
import os
import subprocess
import argparse
import logging
from pathlib import Path
from datetime import datetime

# Add project root to path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from config import DATA_CONFIG, REPORTS_DIR

def setup_logging(log_level=logging.INFO):
    """Setup logging configuration"""
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('launch.log'),
            logging.StreamHandler(sys.stdout)
        ]
    )
    return logging.getLogger(__name__)

def check_dependencies():
    """Check if required dependencies are installed"""
    logger = logging.getLogger(__name__)

    required_packages = [
        ('streamlit', 'streamlit'),
        ('pandas', 'pandas'),
        ('numpy', 'numpy'),
        ('sklearn', 'scikit-learn'),
        ('geopandas', 'geopandas'),
        ('pyproj', 'pyproj'),
        ('folium', 'folium'),
        ('plotly', 'plotly'),
        ('matplotlib', 'matplotlib'),
        ('seaborn', 'seaborn')
    ]

    missing_packages = []

    for import_name, package_name in required_packages:
        try:
            __import__(import_name)
        except ImportError:
            missing_packages.append(package_name)

    if missing_packages:
        logger.error(f"Missing required packages: {', '.join(missing_packages)}")
        logger.info("Please install missing packages using: pip install -e .")
        return False

    logger.info("All required dependencies are installed")
    return True

def run_analysis(data_path, eps=None, min_samples=None, report=True, export=False, output_dir=None):
    """Run the clustering pipeline and optionally write the report"""
    from src.exceptions import CrimeDataError
    from src.pipeline import run_pipeline, summarize_snapshot

    logger = logging.getLogger(__name__)
    logger.info(f"Running analysis on {data_path}")

    try:
        start_time = datetime.now()
        snapshot = run_pipeline(data_path, eps=eps, min_samples=min_samples)
        duration = datetime.now() - start_time
    except CrimeDataError as e:
        logger.error(f"Analysis failed: {e}")
        return None

    logger.info(f"Analysis completed in {duration}")
    for key, value in summarize_snapshot(snapshot).items():
        logger.info(f"{key.replace('_', ' ').capitalize()}: {value}")

    if export:
        from clustering.cluster_analysis import CrimeClusterAnalyzer
        analyzer = CrimeClusterAnalyzer(eps=snapshot.eps, min_samples=snapshot.min_samples)
        analyzer.export_cluster_results(
            snapshot.cluster_results,
            analyzer.analyze_cluster_characteristics(snapshot.incidents),
            analyzer.identify_hotspots(snapshot.incidents)
        )

    if report:
        from src.report import StaticReportGenerator
        artifacts = StaticReportGenerator(snapshot, output_dir or REPORTS_DIR).generate()
        logger.info(f"Report available at {artifacts['report']}")

    return snapshot

def launch_dashboard(data_path, port=8501, headless=False, eps=None, min_samples=None):
    """Launch the Streamlit dashboard"""
    logger = logging.getLogger(__name__)

    logger.info("Launching Streamlit dashboard...")

    dashboard_path = Path(__file__).parent / "app" / "dashboard.py"
    if not dashboard_path.exists():
        logger.error(f"Dashboard file not found: {dashboard_path}")
        return None

    cmd = [
        sys.executable, "-m", "streamlit", "run",
        str(dashboard_path),
        "--server.port", str(port),
        "--server.headless", str(headless).lower()
    ]

    # The dashboard process reads its inputs from the environment
    env = dict(os.environ, CRIME_DATA_FILE=str(Path(data_path).resolve()))
    if eps is not None:
        env["CRIME_DBSCAN_EPS"] = str(eps)
    if min_samples is not None:
        env["CRIME_DBSCAN_MIN_SAMPLES"] = str(min_samples)

    logger.info(f"Starting dashboard on port {port}")
    logger.info(f"Command: {' '.join(cmd)}")

    try:
        process = subprocess.Popen(cmd, env=env)
    except OSError as e:
        logger.error(f"Error launching dashboard: {e}")
        return None

    logger.info(f"Access the dashboard at: http://localhost:{port}")
    return process

def wait_for_dashboard(process):
    logger = logging.getLogger(__name__)
    try:
        process.wait()
    except KeyboardInterrupt:
        logger.info("Shutting down dashboard...")
        process.terminate()
        process.wait()
        logger.info("Dashboard stopped.")

def main():
    """Main function"""
    parser = argparse.ArgumentParser(
        description="Crime Hotspot Analysis & Dashboard"
    )

    parser.add_argument(
        "--data",
        type=str,
        default=str(DATA_CONFIG["input_file"]),
        help="Incident CSV with category, date, lat and long columns"
    )

    parser.add_argument(
        "--eps",
        type=float,
        default=None,
        help="DBSCAN neighbourhood radius in metres (default: from config)"
    )

    parser.add_argument(
        "--min-pts",
        type=int,
        default=None,
        help="DBSCAN minimum neighbourhood size (default: from config)"
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory for the static report (default: reports/)"
    )

    parser.add_argument(
        "--export",
        action="store_true",
        help="Export cluster results as JSON"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=8501,
        help="Port for Streamlit dashboard (default: 8501)"
    )

    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run dashboard in headless mode"
    )

    parser.add_argument(
        "--report-only",
        action="store_true",
        help="Only run the analysis and write the report, don't launch dashboard"
    )

    parser.add_argument(
        "--dashboard-only",
        action="store_true",
        help="Only launch dashboard, don't write the report"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logger = setup_logging(log_level)

    if not check_dependencies():
        logger.error("Dependency check failed. Exiting.")
        sys.exit(1)

    if not args.dashboard_only:
        snapshot = run_analysis(
            args.data, eps=args.eps, min_samples=args.min_pts,
            export=args.export, output_dir=args.output_dir
        )
        if snapshot is None:
            logger.error("Operation failed!")
            sys.exit(1)

    if args.report_only:
        logger.info("Operation completed successfully!")
        sys.exit(0)

    process = launch_dashboard(args.data, args.port, args.headless, args.eps, args.min_pts)
    if process is None:
        logger.error("Failed to launch dashboard. Exiting.")
        sys.exit(1)

    wait_for_dashboard(process)

if __name__ == "__main__":
    main()
