import math
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from config import (
    TIMEZONE,
    DASHBOARD_TREND_DAYS,
    MATCHED_STATUSES,
    DEFAULT_CATEGORY,
    UNFOUND_REASON,
    TOP_UNFOUND_LIMIT,
    ACTIVITY_LABELS,
    FAILED_ACTIVITY_LABEL,
    TEAM_TARGET_SCANS,
    POWER_USER_THRESHOLD,
    LEADERBOARD_SIZE,
    ANONYMOUS_USER,
    LOG_IDENTITY_COLUMN,
)
from data_processor import display_name


def local_today(timezone: str = TIMEZONE) -> date:
    """Current calendar day in the dashboard timezone."""
    return pd.Timestamp.now(tz=timezone).date()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def window_days(window: int, today: date) -> List[date]:
    """The trailing ``window`` calendar days ending with ``today``, oldest first."""
    if window < 1:
        raise ValueError("window must cover at least one day")
    return [today - timedelta(days=offset) for offset in range(window - 1, -1, -1)]


class ScanAnalyzer:
    """Derives trend, category and not-found views from scan logs."""

    def __init__(self, logs: pd.DataFrame, products: Optional[pd.DataFrame] = None,
                 timezone: str = TIMEZONE):
        self.logs = logs
        self.products = products if products is not None else pd.DataFrame()
        self.timezone = timezone

    def _today(self, today: Optional[date]) -> date:
        return today if today is not None else local_today(self.timezone)

    def _counts_by_day(self, days: List[date], mask: Optional[pd.Series] = None) -> pd.Series:
        """Number of logs per day for the given days; logs on other days are dropped."""
        if self.logs.empty:
            return pd.Series(0, index=days, dtype=int)

        day_keys = self.logs["day"]
        if mask is not None:
            day_keys = day_keys[mask]

        in_window = day_keys[day_keys.isin(days)]
        return in_window.value_counts().reindex(days, fill_value=0).astype(int)

    def trend_buckets(self, window: int, today: Optional[date] = None) -> pd.DataFrame:
        """One row per day of the trailing window with found and not-found counts."""
        days = window_days(window, self._today(today))

        if self.logs.empty:
            found = not_found = self._counts_by_day(days)
        else:
            matched = self.logs["status"].isin(MATCHED_STATUSES)
            found = self._counts_by_day(days, matched)
            not_found = self._counts_by_day(days, ~matched)

        return pd.DataFrame({
            "date": days,
            "found": found.values,
            "not_found": not_found.values,
        })

    def weekday_counts(self, today: Optional[date] = None) -> pd.DataFrame:
        """Scans per day for the dashboard week, labelled by weekday."""
        days = window_days(DASHBOARD_TREND_DAYS, self._today(today))
        scans = self._counts_by_day(days)

        return pd.DataFrame({
            "date": days,
            "day": [d.strftime("%a") for d in days],
            "scans": scans.values,
        })

    def todays_scans(self, today: Optional[date] = None) -> int:
        return int(self._counts_by_day([self._today(today)]).iloc[0])

    def _category_lookup(self) -> Dict[str, str]:
        if self.products.empty or "barcode" not in self.products.columns:
            return {}

        categories = self.products.get("category", pd.Series("", index=self.products.index))
        categories = categories.fillna("").astype(str).str.strip()
        categories = categories.where(categories != "", DEFAULT_CATEGORY)
        return dict(zip(self.products["barcode"], categories))

    def category_breakdown(self) -> pd.DataFrame:
        """Scan count per product category, in order of first appearance."""
        if self.logs.empty:
            return pd.DataFrame(columns=["category", "count"])

        lookup = self._category_lookup()
        categories = self.logs["barcode"].map(lookup).fillna(DEFAULT_CATEGORY)

        result = (categories.groupby(categories, sort=False)
                  .size()
                  .rename("count")
                  .reset_index())
        result.columns = ["category", "count"]
        return result

    def top_unfound(self, top_n: int = TOP_UNFOUND_LIMIT) -> pd.DataFrame:
        """Barcodes most often scanned without a catalog match."""
        columns = ["barcode", "count", "reason"]
        if self.logs.empty:
            return pd.DataFrame(columns=columns)

        unfound = self.logs.loc[self.logs["status"] == "not_found", "barcode"]
        if unfound.empty:
            return pd.DataFrame(columns=columns)

        counts = (unfound.groupby(unfound, sort=False)
                  .size()
                  .sort_values(ascending=False, kind="stable")
                  .head(top_n))

        return pd.DataFrame({
            "barcode": counts.index.tolist(),
            "count": counts.values.astype(int),
            "reason": UNFOUND_REASON,
        }, columns=columns)

    def completion_rate(self) -> float:
        """Percentage of scans that matched or added a product, one decimal place."""
        total = len(self.logs)
        if total == 0:
            return 0.0

        matched = int(self.logs["status"].isin(MATCHED_STATUSES).sum())
        return round(100 * matched / total, 1)


class UserActivityAnalyzer:
    """Per-user rollups derived from scan logs."""

    def __init__(self, logs: pd.DataFrame):
        self.logs = logs

    def rollup(self) -> pd.DataFrame:
        """Scan totals and last activity per actor, busiest first."""
        columns = ["email", "display_name", "total_scans", "last_seen"]
        if self.logs.empty:
            return pd.DataFrame(columns=columns)

        grouped = (self.logs.groupby("actor", sort=False, dropna=False)
                   .agg(total_scans=("id", "size"), last_seen=("timestamp", "max"))
                   .reset_index()
                   .rename(columns={"actor": "email"}))

        grouped["display_name"] = grouped["email"].apply(display_name)
        grouped["total_scans"] = grouped["total_scans"].astype(int)

        result = grouped.sort_values("total_scans", ascending=False, kind="stable")
        return result[columns].reset_index(drop=True)

    def leaderboard(self, top_n: int = LEADERBOARD_SIZE) -> pd.DataFrame:
        return self.rollup().head(top_n)

    def power_users(self, threshold: int = POWER_USER_THRESHOLD) -> List[str]:
        rollup = self.rollup()
        return rollup.loc[rollup["total_scans"] > threshold, "email"].tolist()

    def team_stats(self, target: int = TEAM_TARGET_SCANS) -> Dict[str, int]:
        """Team-level scan figures for the users screen."""
        total = len(self.logs)
        active = len(self.rollup())

        return {
            "active_staff": active,
            "avg_scans": round_half_up(total / active) if active > 0 else 0,
            "progress": min(round_half_up(total * 100 / target), 100) if target > 0 else 100,
            "total_scans": total,
        }


def registered_users(logs: pd.DataFrame) -> int:
    """Distinct signed-in identities; anonymous scans are not counted."""
    if logs.empty:
        return 0
    identities = logs[LOG_IDENTITY_COLUMN]
    return int(identities[identities != ""].nunique())


def describe_activity(status: str) -> str:
    return ACTIVITY_LABELS.get(status, FAILED_ACTIVITY_LABEL)


def build_recent_activity(logs: pd.DataFrame) -> List[Dict[str, Any]]:
    """Feed entries for the dashboard's recent activity panel."""
    activity = []
    for _, row in logs.iterrows():
        timestamp = row["timestamp"]
        activity.append({
            "id": row["id"],
            "user": row["actor"] or ANONYMOUS_USER,
            "action": describe_activity(row["status"]),
            "target": row["barcode"],
            "time": timestamp.strftime("%H:%M") if pd.notna(timestamp) else "",
            "status": row["status"],
        })
    return activity

