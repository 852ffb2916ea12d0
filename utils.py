"""
Utility functions for the dashboard
"""
import itertools
import pandas as pd
import streamlit as st
from datetime import date, datetime, timedelta
from typing import MutableMapping, Optional, Tuple
from config import TIMEZONE


def get_window_bounds(days: int, today: date, timezone: str = TIMEZONE) -> Tuple[datetime, datetime]:
    """Start of the first day and end (exclusive) of the last day of a trailing window."""
    if days < 1:
        raise ValueError("days must be at least 1")

    start_day = today - timedelta(days=days - 1)  # -1 to include today
    start = pd.Timestamp(start_day).tz_localize(timezone)
    end = pd.Timestamp(today + timedelta(days=1)).tz_localize(timezone)
    return start.to_pydatetime(), end.to_pydatetime()


class ScreenGuard:
    """Tracks which screen render is current so late results can be discarded.

    Every render takes a token from ``begin``; switching screens makes all
    tokens issued for the previous screen stale. A Streamlit rerun ends the
    previous run, so within one run the token only goes stale through
    ``leave``, which the session observer calls when the signed-in user
    changes or the session expires while the page is loading.
    """

    _counter = itertools.count(1)

    def __init__(self, state: MutableMapping, key: str = "__screen_guard__"):
        self.state = state
        self.key = key

    def begin(self, screen: str) -> Tuple[str, int]:
        current = self.state.get(self.key)
        if current is None or current[0] != screen:
            current = (screen, next(self._counter))
            self.state[self.key] = current
        return current

    def leave(self) -> None:
        self.state.pop(self.key, None)

    def is_current(self, token: Tuple[str, int]) -> bool:
        return self.state.get(self.key) == token


def create_download_buttons(df: pd.DataFrame, filename_prefix: str, key_prefix: str):
    """Create download buttons for CSV and JSON export."""
    if df.empty:
        st.info("No data to export")
        return

    col1, col2 = st.columns(2)
    stamp = datetime.now().strftime('%Y%m%d_%H%M%S')

    # CSV download
    with col1:
        csv = df.to_csv(index=False).encode('utf-8')
        st.download_button(
            label="📥 Download CSV",
            data=csv,
            file_name=f"{filename_prefix}_{stamp}.csv",
            mime="text/csv",
            key=f"{key_prefix}_csv"
        )

    # JSON download
    with col2:
        json_data = df.to_json(orient='records', indent=2, date_format='iso').encode('utf-8')
        st.download_button(
            label="📥 Download JSON",
            data=json_data,
            file_name=f"{filename_prefix}_{stamp}.json",
            mime="application/json",
            key=f"{key_prefix}_json"
        )


def format_timestamp(value, fmt: str = "%b %d, %Y %H:%M") -> str:
    """Format a timestamp for display."""
    if value is None or pd.isna(value):
        return "—"
    try:
        return pd.to_datetime(value).strftime(fmt)
    except (ValueError, TypeError):
        return "—"


def format_completion_rate(rate: Optional[float], total: int) -> str:
    """One decimal place, or a bare 0% when there is nothing to rate."""
    if not total or rate is None or pd.isna(rate):
        return "0%"
    return f"{rate:.1f}%"


def get_table_height(num_rows: int, min_height: int = 300, max_height: int = 600,
                    row_height: int = 35) -> int:
    """Calculate optimal table height based on number of rows."""
    calculated_height = min_height + (num_rows * row_height)
    return min(max(calculated_height, min_height), max_height)
