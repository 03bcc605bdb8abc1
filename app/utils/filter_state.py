"""
Dashboard dependency graph.

    map filter  ->  filtered incidents  ->  map view
                                        ->  cluster profile view

The filter is the only mutable input. Setting an identical filter is a no-op;
a changed filter invalidates the filtered incidents and every dependent view,
which are then recomputed lazily on the next render.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Sequence, Tuple

import pandas as pd

@dataclass(frozen=True)
class MapFilter:
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    categories: Tuple[str, ...]

    @classmethod
    def from_inputs(cls, date_range: Sequence, categories: Iterable[str]) -> "MapFilter":
        """Normalize raw widget values into a comparable filter"""
        if len(date_range) == 2:
            start, end = date_range
        else:
            # Date pickers report a single date while a range is being selected
            start = end = date_range[0]
        start, end = pd.Timestamp(start), pd.Timestamp(end)
        if start > end:
            start, end = end, start
        return cls(start, end, tuple(sorted(set(categories or ()))))

def filter_incidents(incidents: pd.DataFrame, map_filter: MapFilter) -> pd.DataFrame:
    """Incidents within the inclusive date range and category set"""
    mask = (
        (incidents["date"] >= map_filter.start_date)
        & (incidents["date"] <= map_filter.end_date)
        & incidents["category"].isin(map_filter.categories)
    )
    return incidents[mask].copy()

class DashboardState:
    FILTERED_NODE = "filtered_incidents"

    def __init__(self, incidents: pd.DataFrame):
        self._incidents = incidents
        self._views: Dict[str, Callable[[pd.DataFrame], Any]] = {}
        self._filter = None
        self._filtered = None
        self._rendered: Dict[str, Any] = {}
        self.recompute_log: List[str] = []

    @property
    def current_filter(self) -> MapFilter:
        return self._filter

    @property
    def dependents(self) -> List[str]:
        return list(self._views)

    def register_view(self, name: str, render: Callable[[pd.DataFrame], Any]) -> None:
        self._views[name] = render
        self._rendered.pop(name, None)

    def set_filter(self, map_filter: MapFilter) -> bool:
        """Update the filter node; returns True when dependents were invalidated"""
        if map_filter == self._filter:
            return False
        self._filter = map_filter
        self._filtered = None
        self._rendered.clear()
        return True

    @property
    def filtered_incidents(self) -> pd.DataFrame:
        if self._filter is None:
            raise RuntimeError("No map filter has been set")
        if self._filtered is None:
            self._filtered = filter_incidents(self._incidents, self._filter)
            self.recompute_log.append(self.FILTERED_NODE)
        return self._filtered

    def render(self, name: str) -> Any:
        if name not in self._views:
            raise KeyError(f"Unknown view: {name}")
        if name not in self._rendered:
            self._rendered[name] = self._views[name](self.filtered_incidents)
            self.recompute_log.append(name)
        return self._rendered[name]
