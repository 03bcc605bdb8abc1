import plotly.graph_objects as go
import plotly.express as px
import pandas as pd
from typing import Sequence

from config import DASHBOARD_CONFIG, MONTH_ORDER

class ChartVisualizer:
    def __init__(self):
        self.color_scheme = {
            'primary': 'steelblue',
            'muted': '#6c757d'
        }
        self.no_data_message = DASHBOARD_CONFIG["no_data_message"]
        self.no_hotspots_message = DASHBOARD_CONFIG["no_hotspots_message"]

    def create_placeholder_figure(self, message: str = None) -> go.Figure:
        """Blank figure carrying a single centred message"""
        fig = go.Figure()
        fig.add_annotation(
            text=message or self.no_data_message,
            x=0.5, y=0.5, xref='paper', yref='paper',
            showarrow=False,
            font=dict(size=18, color=self.color_scheme['muted'])
        )
        fig.update_layout(
            xaxis=dict(visible=False),
            yaxis=dict(visible=False),
            height=400
        )
        return fig

    @staticmethod
    def is_placeholder(fig: go.Figure) -> bool:
        return len(fig.data) == 0 and len(fig.layout.annotations) > 0

    def create_category_bar_chart(self, data: pd.DataFrame) -> go.Figure:
        """Horizontal bar chart of incidents per category, largest on top"""
        if data.empty:
            return self.create_placeholder_figure()

        counts = data['category'].value_counts()
        # Plotly draws the first horizontal bar at the bottom
        counts = counts.iloc[::-1]

        fig = go.Figure(go.Bar(
            x=counts.values,
            y=counts.index,
            orientation='h',
            text=counts.values,
            textposition='outside',
            marker_color=self.color_scheme['primary']
        ))

        fig.update_layout(
            title='Main Crime Types',
            xaxis_title='Number of Incidents',
            yaxis_title='Crime Category',
            xaxis=dict(range=[0, counts.max() * 1.1], showgrid=True),
            height=max(400, len(counts) * 30)
        )

        return fig

    def monthly_counts(self, data: pd.DataFrame, categories: Sequence[str]) -> pd.DataFrame:
        """Incident counts per (month, category) in chronological month order"""
        subset = data[data['category'].isin(categories)]
        counts = (
            subset.groupby(['month', 'category'], observed=True).size()
            .reset_index(name='n')
        )
        counts['month'] = pd.Categorical(counts['month'], categories=MONTH_ORDER, ordered=True)
        return counts.sort_values(['category', 'month']).reset_index(drop=True)

    def create_monthly_trend_chart(self, data: pd.DataFrame, categories: Sequence[str]) -> go.Figure:
        """One line per selected category across ordered months"""
        if not categories:
            return self.create_placeholder_figure("Select at least one category to view its monthly trend.")

        counts = self.monthly_counts(data, categories)
        if counts.empty:
            return self.create_placeholder_figure()

        fig = px.line(
            counts,
            x='month',
            y='n',
            color='category',
            markers=True,
            category_orders={'month': MONTH_ORDER},
            labels={'month': 'Month', 'n': 'Number of Incidents', 'category': 'Category'},
            title='Incident Trends by Month'
        )
        fig.update_traces(line=dict(width=3), marker=dict(size=8))
        fig.update_layout(xaxis_tickangle=-45, height=450)

        return fig

    def create_cluster_composition_chart(self, composition: pd.DataFrame) -> go.Figure:
        """Faceted horizontal bars of the top categories in each major hotspot"""
        if composition.empty:
            return self.create_placeholder_figure(self.no_hotspots_message)

        plot_data = composition.copy()
        plot_data['hotspot'] = 'Hotspot ' + plot_data['cluster'].astype(str)

        fig = px.bar(
            plot_data,
            x='percentage',
            y='category',
            color='category',
            orientation='h',
            facet_col='hotspot',
            facet_col_wrap=2,
            text='percentage',
            labels={
                'percentage': 'Percentage of Incidents within Each Hotspot',
                'category': 'Crime Category'
            },
            title='Crime Profile of Major Hotspots (for current filter)'
        )
        fig.update_yaxes(matches=None, showticklabels=True)
        fig.for_each_annotation(lambda a: a.update(text=a.text.split('=')[-1]))
        fig.update_layout(showlegend=False, height=600)

        return fig
