import re
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from config import (
    PRODUCT_STRING_COLUMNS,
    PRODUCT_NUMERIC_COLUMNS,
    LOG_STRING_COLUMNS,
    LOG_TIMESTAMP_COLUMN,
    LOG_IDENTITY_COLUMN,
    PRODUCT_FORM_FIELDS,
    REQUIRED_PRODUCT_FIELDS,
    ANONYMOUS_USER,
    TIMEZONE,
)


def coerce_num(value: Any) -> float:
    """Parse a value as a number, yielding NaN for anything non-numeric."""
    if value is None:
        return np.nan

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)

    string_val = str(value).strip()
    if not string_val:
        return np.nan

    try:
        return float(string_val)
    except ValueError:
        return np.nan


def process_string_columns(df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    """Process string columns to ensure consistent formatting."""
    df_processed = df.copy()

    for col in columns:
        if col in df_processed.columns:
            df_processed[col] = (df_processed[col]
                               .fillna("")
                               .astype(str)
                               .replace({"nan": "", "None": ""})
                               .str.strip())
        else:
            df_processed[col] = ""

    return df_processed


def process_numeric_columns(df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    """Process numeric columns."""
    df_processed = df.copy()

    for col in columns:
        if col not in df_processed.columns:
            df_processed[col] = np.nan
        elif not pd.api.types.is_numeric_dtype(df_processed[col]):
            df_processed[col] = pd.to_numeric(df_processed[col].apply(coerce_num), errors="coerce")

    return df_processed


def process_timestamp_column(df: pd.DataFrame, column: str, timezone: str = TIMEZONE) -> pd.DataFrame:
    """Parse timestamps as UTC and derive the local calendar day."""
    df_processed = df.copy()

    if column in df_processed.columns:
        parsed = pd.to_datetime(df_processed[column], errors="coerce", utc=True, format="mixed")
        df_processed["timestamp"] = parsed.dt.tz_convert(timezone)
        df_processed["day"] = df_processed["timestamp"].dt.date
    else:
        df_processed["timestamp"] = pd.Series(pd.NaT, index=df_processed.index, dtype=f"datetime64[ns, {timezone}]")
        df_processed["day"] = None

    return df_processed


def normalize_identity(series: pd.Series) -> pd.Series:
    """Blank or missing actor identities collapse into the anonymous bucket."""
    return series.where(series != "", ANONYMOUS_USER)


def build_log_frame(rows: List[Dict[str, Any]], timezone: str = TIMEZONE) -> pd.DataFrame:
    """Turn raw scan log rows into a frame with parsed timestamps."""
    df = pd.DataFrame(rows)
    df = process_string_columns(df, LOG_STRING_COLUMNS)
    df = process_timestamp_column(df, LOG_TIMESTAMP_COLUMN, timezone)
    df["actor"] = normalize_identity(df[LOG_IDENTITY_COLUMN])
    return df


def build_product_frame(rows: List[Dict[str, Any]]) -> pd.DataFrame:
    """Turn raw product rows into a frame with clean string and numeric columns."""
    df = pd.DataFrame(rows)
    df = process_string_columns(df, PRODUCT_STRING_COLUMNS)
    df = process_numeric_columns(df, PRODUCT_NUMERIC_COLUMNS)
    if "created_at" in df.columns:
        df["created_at"] = pd.to_datetime(df["created_at"], errors="coerce", utc=True, format="mixed")
    return df


def display_name(identity: Optional[str]) -> str:
    """Local part of an email address, or the whole identity without one."""
    identity = identity or ANONYMOUS_USER
    return identity.split("@")[0]


def contains_any(series: pd.Series, needles: List[str]) -> pd.Series:
    """Check if series contains any of the needle strings (case-insensitive)."""
    series_lower = series.astype(str).str.lower().fillna("")

    if not needles:
        return pd.Series(False, index=series.index)

    condition = pd.Series(False, index=series.index)
    for needle in needles:
        needle_clean = str(needle).strip().lower()
        if needle_clean:
            condition |= series_lower.str.contains(re.escape(needle_clean), na=False)

    return condition


def filter_products(df: pd.DataFrame, search_term: str = "", category: str = "All") -> pd.DataFrame:
    """Filter the catalog by category and a name-or-barcode search term."""
    if df.empty:
        return df

    mask = pd.Series(True, index=df.index)
    if category and category != "All":
        mask &= df["category"] == category

    term = (search_term or "").strip()
    if term:
        mask &= (contains_any(df["item_name"], [term]) |
                 df["barcode"].str.contains(re.escape(term), na=False))

    return df[mask]


def validate_product_form(values: Dict[str, Any]) -> List[str]:
    """Return the labels of required fields left empty."""
    missing = []
    for field in REQUIRED_PRODUCT_FIELDS:
        value = values.get(field)
        if value is None or not str(value).strip():
            missing.append(PRODUCT_FORM_FIELDS[field])
    return missing


def clean_product_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Trim text fields and coerce numeric ones before a product is saved."""
    cleaned = {}
    for field in PRODUCT_FORM_FIELDS:
        value = values.get(field)
        if field in PRODUCT_NUMERIC_COLUMNS:
            number = coerce_num(value)
            cleaned[field] = 0.0 if np.isnan(number) else number
        else:
            cleaned[field] = str(value).strip() if value is not None else ""
    return cleaned
