"""
Test script to verify data processing helpers
"""
import math

import pandas as pd

from data_processor import (
    coerce_num,
    contains_any,
    process_string_columns,
    build_log_frame,
    build_product_frame,
    display_name,
    filter_products,
    validate_product_form,
    clean_product_values,
)


def test_coerce_num():
    assert coerce_num("123.45") == 123.45
    assert coerce_num(" 18 ") == 18.0
    assert coerce_num(7) == 7.0
    assert math.isnan(coerce_num(""))
    assert math.isnan(coerce_num(None))
    assert math.isnan(coerce_num("12 kg"))


def test_contains_any():
    series = pd.Series(["Green Tea", "Bath Soap", "Rice"])
    result = contains_any(series, ["tea", "SOAP"])
    assert result.tolist() == [True, True, False]
    assert not contains_any(series, []).any()


def test_process_string_columns_blanks_missing_values():
    df = pd.DataFrame({"email": ["ana@shop.io", None, float("nan"), "  ben@shop.io "]})

    result = process_string_columns(df, ["email", "barcode"])

    assert result["email"].tolist() == ["ana@shop.io", "", "", "ben@shop.io"]
    assert result["barcode"].tolist() == ["", "", "", ""]
    assert not result["email"].isna().any()


def test_build_log_frame_normalizes_rows():
    logs = build_log_frame([
        {"id": "1", "user_email": "ana@shop.io", "barcode": "1", "status": "found",
         "scanned_at": "2026-10-19T23:30:00+00:00"},
        {"id": "2", "user_email": None, "barcode": "2", "status": "not_found",
         "scanned_at": "2026-10-19T10:00:00"},
    ], timezone="UTC")

    assert logs["actor"].tolist() == ["ana@shop.io", "Anonymous"]
    assert logs["user_email"].tolist() == ["ana@shop.io", ""]
    assert [str(d) for d in logs["day"]] == ["2026-10-19", "2026-10-19"]
    assert logs["product_id"].tolist() == ["", ""]


def test_build_log_frame_converts_to_dashboard_timezone():
    logs = build_log_frame([
        {"id": "1", "status": "found", "scanned_at": "2026-10-19T23:30:00+00:00"},
    ], timezone="Asia/Kolkata")

    assert str(logs["day"].iloc[0]) == "2026-10-20"


def test_build_log_frame_empty():
    logs = build_log_frame([])
    assert logs.empty
    assert {"id", "status", "barcode", "actor", "day", "timestamp"} <= set(logs.columns)


def test_build_product_frame():
    products = build_product_frame([
        {"id": "1", "item_name": " Tea ", "barcode": "111", "category": None, "mrp": "12.5"},
    ])
    assert products["item_name"].tolist() == ["Tea"]
    assert products["category"].tolist() == [""]
    assert products["mrp"].tolist() == [12.5]
    assert math.isnan(products["tax_rate"].iloc[0])


def test_display_name():
    assert display_name("ana@shop.io") == "ana"
    assert display_name("scanner-07") == "scanner-07"
    assert display_name("") == "Anonymous"


def test_filter_products():
    products = build_product_frame([
        {"id": "1", "item_name": "Green Tea", "barcode": "8901", "category": "Beverages"},
        {"id": "2", "item_name": "Bath Soap", "barcode": "8902", "category": "Personal Care"},
        {"id": "3", "item_name": "Black Tea", "barcode": "7701", "category": "Beverages"},
    ])

    assert filter_products(products)["id"].tolist() == ["1", "2", "3"]
    assert filter_products(products, "tea")["id"].tolist() == ["1", "3"]
    assert filter_products(products, "890")["id"].tolist() == ["1", "2"]
    assert filter_products(products, "tea", "Beverages")["id"].tolist() == ["1", "3"]
    assert filter_products(products, "", "Personal Care")["id"].tolist() == ["2"]
    assert filter_products(products, "soap", "Beverages").empty


def test_validate_product_form():
    assert validate_product_form({"item_name": "Tea", "barcode": "1"}) == []
    assert validate_product_form({"item_name": "  ", "barcode": None}) == ["Item Name", "Barcode"]


def test_clean_product_values():
    cleaned = clean_product_values({
        "item_name": " Tea ", "barcode": "1 ", "mrp": "abc", "tax_rate": 5,
    })
    assert cleaned == {
        "item_name": "Tea", "barcode": "1", "category": "", "hsn_code": "",
        "unit": "", "mrp": 0.0, "tax_rate": 5.0,
    }
