"""
Bulk product import from CSV files
"""
import csv
import io
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from config import (
    CSV_HEADER_ALIASES,
    CSV_NUMERIC_FIELDS,
    CSV_CONFLICT_KEY,
    CSV_TEMPLATE_HEADER,
    CSV_TEMPLATE_SAMPLE,
)

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    imported: int
    discarded: int


def resolve_headers(headers: List[str]) -> List[Any]:
    """Map raw header tokens onto product fields; unknown headers map to None."""
    return [CSV_HEADER_ALIASES.get(str(h).strip().lower()) for h in headers]


def _read_frame(lines: List[str], width: Optional[int] = None) -> pd.DataFrame:
    options: Dict[str, Any] = {}
    if width is not None:
        options = {"names": list(range(width)), "on_bad_lines": lambda fields: fields[:width]}

    return pd.read_csv(
        io.StringIO("\n".join(lines)),
        header=None,
        dtype=str,
        keep_default_na=False,
        skipinitialspace=True,
        engine="python",
        **options,
    )


def _split_lines(lines: List[str]) -> pd.DataFrame:
    """Split every line on commas, ignoring quotes."""
    width = len(lines[0].split(","))
    records = []
    for line in lines:
        fields = line.split(",")[:width]
        records.append(fields + [np.nan] * (width - len(fields)))
    return pd.DataFrame(records, columns=list(range(width)), dtype=object)


def _read_rows(text: str) -> pd.DataFrame:
    """Read CSV text into an all-string frame with positional columns.

    Each non-blank line is one record. When quoting would merge lines or
    cannot be parsed, lines are split on commas instead.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return pd.DataFrame()

    try:
        width = _read_frame(lines[:1]).shape[1]
        frame = _read_frame(lines, width)
    except (pd.errors.ParserError, csv.Error) as e:
        logger.warning("CSV quoting could not be parsed, splitting on commas: %s", e)
        return _split_lines(lines)

    if len(frame) != len(lines):
        logger.warning("CSV quoting spans %d lines, splitting on commas", len(lines) - len(frame))
        return _split_lines(lines)

    return frame


def _parse_number(value: Any) -> float:
    """Blank cells count as zero; missing cells and non-numeric text are NaN."""
    if pd.isna(value):
        return np.nan

    value = str(value).strip()
    if not value:
        return 0.0
    return float(pd.to_numeric(value, errors="coerce"))


def parse_product_csv(text: str) -> List[Dict[str, Any]]:
    """Parse CSV text into product rows ready for upsert.

    The first non-blank line is the header row. Only rows with both a
    barcode and an item name are returned. Blank numeric cells become 0;
    cells past the end of a short row and values that do not parse become NaN.
    """
    raw = _read_rows(text or "")
    if raw.empty:
        return []

    fields = resolve_headers(raw.iloc[0].fillna("").tolist())
    data = raw.iloc[1:]

    rows = []
    for values in data.itertuples(index=False):
        row: Dict[str, Any] = {}
        for field, value in zip(fields, values):
            if field is None:
                continue
            if field in CSV_NUMERIC_FIELDS:
                row[field] = _parse_number(value)
            else:
                row[field] = "" if pd.isna(value) else str(value).strip()

        if row.get("barcode") and row.get("item_name"):
            rows.append(row)

    return rows


def deduplicate_by_barcode(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep the last row for each barcode, in order of first appearance."""
    by_barcode: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        by_barcode[row[CSV_CONFLICT_KEY]] = row
    return list(by_barcode.values())


def to_payload(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Replace NaN and infinite numerics with None so rows serialize as JSON."""
    payload = []
    for row in rows:
        clean = {}
        for key, value in row.items():
            if isinstance(value, float) and not math.isfinite(value):
                clean[key] = None
            else:
                clean[key] = value
        payload.append(clean)
    return payload


def decode_upload(data: bytes) -> str:
    """Decode uploaded bytes as UTF-8, replacing undecodable bytes."""
    return data.decode("utf-8-sig", errors="replace")


def count_data_lines(text: str) -> int:
    lines = [line for line in (text or "").splitlines() if line.strip()]
    return max(len(lines) - 1, 0)


def import_products(product_manager, text: str) -> ImportResult:
    """Upsert every admissible row of the CSV text, keyed on barcode.

    Raises GatewayError when the store rejects the batch.
    """
    rows = deduplicate_by_barcode(parse_product_csv(text))
    discarded = max(count_data_lines(text) - len(rows), 0)

    if not rows:
        logger.info("CSV import found no admissible rows (%d discarded)", discarded)
        return ImportResult(imported=0, discarded=discarded)

    product_manager.upsert_products(to_payload(rows))
    logger.info("CSV import upserted %d products (%d discarded)", len(rows), discarded)
    return ImportResult(imported=len(rows), discarded=discarded)


def build_template_csv() -> str:
    """Downloadable template with the expected header and one sample row."""
    template = pd.DataFrame([CSV_TEMPLATE_SAMPLE], columns=CSV_TEMPLATE_HEADER)
    return template.to_csv(index=False)
