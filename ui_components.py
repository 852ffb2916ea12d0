import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from st_aggrid import AgGrid, GridOptionsBuilder, GridUpdateMode
from typing import Any, Dict, List, Optional, Tuple
from data_processor import filter_products
from config import CHART_COLORS, NOT_FOUND_COLOR, PRODUCT_FORM_FIELDS
from utils import get_table_height


class ProductFilter:
    """Search and category filters for the product catalog."""

    def __init__(self, df: pd.DataFrame, categories: List[str]):
        self.df = df
        self.categories = ["All"] + [c for c in categories if c]

    def render(self) -> pd.DataFrame:
        """Render the filter inputs and return the matching products."""
        col1, col2 = st.columns([3, 1])

        with col1:
            search_term = st.text_input(
                "Search",
                value=st.session_state.get("product_search", ""),
                key="flt_product_search",
                placeholder="Search by name or barcode..."
            )
            st.session_state["product_search"] = search_term

        with col2:
            current = st.session_state.get("product_category", "All")
            index = self.categories.index(current) if current in self.categories else 0
            category = st.selectbox("Category", options=self.categories, index=index,
                                    key="flt_product_category")
            st.session_state["product_category"] = category

        return filter_products(self.df, search_term, category)


def render_product_grid(df: pd.DataFrame) -> Optional[Dict[str, Any]]:
    """Render the catalog grid; returns the selected product row, if any."""
    columns = ["item_name", "barcode", "category", "unit", "hsn_code", "mrp", "tax_rate"]
    display = df[[c for c in columns if c in df.columns] + ["id"]].rename(columns=PRODUCT_FORM_FIELDS)

    grid_builder = GridOptionsBuilder.from_dataframe(display)
    grid_builder.configure_selection(selection_mode="single", use_checkbox=True)
    grid_builder.configure_column("id", hide=True)
    grid_builder.configure_column("MRP", valueFormatter="value != null ? Intl.NumberFormat().format(value) : ''")
    grid_builder.configure_grid_options(domLayout="normal")

    response = AgGrid(
        display,
        gridOptions=grid_builder.build(),
        update_mode=GridUpdateMode.SELECTION_CHANGED,
        height=get_table_height(len(display)),
        fit_columns_on_grid_load=True,
        key="product_grid",
    )

    selected = response.get("selected_rows")
    if selected is None:
        return None
    if isinstance(selected, pd.DataFrame):
        if selected.empty:
            return None
        selected_id = selected.iloc[0]["id"]
    else:
        if not selected:
            return None
        selected_id = selected[0].get("id")

    match = df[df["id"] == str(selected_id)]
    return match.iloc[0].to_dict() if not match.empty else None


def render_stat_cards(stats: List[Tuple[str, str, str]]) -> None:
    """Render metric cards given (label, value, caption) triples."""
    cols = st.columns(len(stats))
    for col, (label, value, caption) in zip(cols, stats):
        with col:
            st.metric(label, value)
            st.caption(caption)


class ChartRenderer:
    """Handles chart rendering for the dashboard."""

    @staticmethod
    def format_layout(fig):
        """Apply consistent axis formatting."""
        fig.update_xaxes(showgrid=False)
        fig.update_yaxes(showgrid=True, rangemode="tozero")
        fig.update_layout(margin=dict(l=10, r=10, t=50, b=10))
        return fig

    @staticmethod
    def create_weekly_area_chart(data: pd.DataFrame) -> go.Figure:
        """Area chart of scans per weekday for the last seven days."""
        fig = px.area(data, x="day", y="scans", title="Scan Activity (Last 7 Days)",
                      hover_data={"date": True, "scans": True, "day": False})
        fig.update_traces(line_color=CHART_COLORS[0], line_width=3)
        return ChartRenderer.format_layout(fig)

    @staticmethod
    def create_trend_chart(data: pd.DataFrame, window: int) -> go.Figure:
        """Stacked bar of found versus not-found scans per day."""
        bar_width = 0.4 if window > 30 else 0.8

        fig = go.Figure()
        fig.add_trace(go.Bar(x=data["date"], y=data["found"], name="Found",
                             marker_color=CHART_COLORS[0]))
        fig.add_trace(go.Bar(x=data["date"], y=data["not_found"], name="Not Found",
                             marker_color=NOT_FOUND_COLOR))
        fig.update_traces(width=bar_width * 86400000)
        fig.update_layout(barmode="stack", title="Scan Trends", hovermode="x unified")
        fig.update_xaxes(tickformat="%b %d")
        return ChartRenderer.format_layout(fig)

    @staticmethod
    def create_category_pie(data: pd.DataFrame) -> go.Figure:
        """Share of scans per product category."""
        fig = px.pie(data, names="category", values="count", hole=0.5,
                     title="Category Breakdown", color_discrete_sequence=CHART_COLORS)
        fig.update_layout(margin=dict(l=10, r=10, t=50, b=10))
        return fig
