"""
Tests for the CSV bulk product import
"""
import json
import math

from csv_import import (
    parse_product_csv,
    resolve_headers,
    deduplicate_by_barcode,
    to_payload,
    import_products,
    build_template_csv,
    decode_upload,
)


class RecordingProductManager:
    def __init__(self):
        self.batches = []

    def upsert_products(self, rows):
        self.batches.append(rows)


def test_example_keeps_only_complete_rows():
    rows = parse_product_csv("barcode,item_name,mrp\n123,Widget,50\n,MissingBarcode,10\n")
    assert rows == [{"barcode": "123", "item_name": "Widget", "mrp": 50.0}]


def test_header_aliases_are_case_insensitive():
    assert resolve_headers([" Barcode", "NAME", "hsn", "Tax", "GST", "unit", "Category", "color"]) == [
        "barcode", "item_name", "hsn_code", "tax_rate", "tax_rate", "unit", "category", None,
    ]


def test_unrecognized_columns_are_ignored():
    text = "barcode,item_name,color,mrp,supplier\n890,Tea,green,120,Acme\n"
    assert parse_product_csv(text) == [{"barcode": "890", "item_name": "Tea", "mrp": 120.0}]


def test_all_fields_are_mapped_and_trimmed():
    text = (
        "Barcode , Name , Category , HSN , Unit , MRP , GST\n"
        " 890123 , Green Tea , Beverages , 0902 , Pkt , 199.5 , 5 \n"
    )
    assert parse_product_csv(text) == [{
        "barcode": "890123",
        "item_name": "Green Tea",
        "category": "Beverages",
        "hsn_code": "0902",
        "unit": "Pkt",
        "mrp": 199.5,
        "tax_rate": 5.0,
    }]


def test_barcodes_keep_leading_zeros():
    rows = parse_product_csv("barcode,item_name\n000123,Widget\n")
    assert rows[0]["barcode"] == "000123"


def test_rows_missing_name_or_barcode_are_discarded():
    text = "barcode,item_name\n1,A\n2,\n,C\n   \n3,D\n"
    assert [r["barcode"] for r in parse_product_csv(text)] == ["1", "3"]


def test_non_numeric_values_become_nan():
    rows = parse_product_csv("barcode,item_name,mrp,tax_rate\n1,A,free,12 kg\n")
    assert math.isnan(rows[0]["mrp"])
    assert math.isnan(rows[0]["tax_rate"])


def test_blank_numeric_cells_become_zero():
    rows = parse_product_csv("barcode,item_name,mrp,tax_rate\n1,Widget,,  \n")
    assert rows == [{"barcode": "1", "item_name": "Widget", "mrp": 0.0, "tax_rate": 0.0}]


def test_blank_lines_are_skipped():
    text = "\n\nbarcode,item_name\n\n1,A\n\n\n2,B\n"
    assert [r["item_name"] for r in parse_product_csv(text)] == ["A", "B"]


def test_quoted_fields_may_contain_commas():
    rows = parse_product_csv('barcode,item_name,mrp\n1,"Widget, Large",50\n')
    assert rows == [{"barcode": "1", "item_name": "Widget, Large", "mrp": 50.0}]


def test_short_and_long_rows():
    rows = parse_product_csv("barcode,item_name,mrp\n1,A\n2,B,20,extra\n")
    assert rows[0]["barcode"] == "1"
    assert math.isnan(rows[0]["mrp"])
    assert rows[1] == {"barcode": "2", "item_name": "B", "mrp": 20.0}


def test_stray_quote_does_not_swallow_following_rows():
    rows = parse_product_csv('barcode,item_name,mrp\n1,"Widget,50\n2,Gadget,10\n')

    assert [r["barcode"] for r in rows] == ["1", "2"]
    assert rows[0]["mrp"] == 50.0
    assert rows[1] == {"barcode": "2", "item_name": "Gadget", "mrp": 10.0}


def test_quote_spanning_lines_falls_back_to_line_split():
    rows = parse_product_csv('barcode,item_name,mrp\n1,"Widget,50\n2,Gadget",10\n3,Tea,5\n')

    assert [r["barcode"] for r in rows] == ["1", "2", "3"]
    assert rows[2] == {"barcode": "3", "item_name": "Tea", "mrp": 5.0}


def test_empty_and_header_only_input():
    assert parse_product_csv("") == []
    assert parse_product_csv("   \n\n") == []
    assert parse_product_csv("barcode,item_name\n") == []


def test_deduplicate_keeps_last_row_per_barcode():
    rows = [
        {"barcode": "1", "item_name": "Old"},
        {"barcode": "2", "item_name": "Other"},
        {"barcode": "1", "item_name": "New"},
    ]
    assert deduplicate_by_barcode(rows) == [
        {"barcode": "1", "item_name": "New"},
        {"barcode": "2", "item_name": "Other"},
    ]


def test_payload_replaces_nan_with_none():
    payload = to_payload([{"barcode": "1", "item_name": "A", "mrp": float("nan"), "tax_rate": 18.0}])
    assert payload == [{"barcode": "1", "item_name": "A", "mrp": None, "tax_rate": 18.0}]


def test_payload_drops_infinite_numbers():
    rows = parse_product_csv("barcode,item_name,mrp,tax_rate\n1,Widget,Infinity,-inf\n")

    payload = to_payload(rows)

    assert payload == [{"barcode": "1", "item_name": "Widget", "mrp": None, "tax_rate": None}]
    json.dumps(payload, allow_nan=False)


def test_import_submits_single_upsert():
    manager = RecordingProductManager()
    text = "barcode,item_name,mrp\n123,Widget,50\n,MissingBarcode,10\n456,Gadget,abc\n"

    result = import_products(manager, text)

    assert result.imported == 2
    assert result.discarded == 1
    assert manager.batches == [[
        {"barcode": "123", "item_name": "Widget", "mrp": 50.0},
        {"barcode": "456", "item_name": "Gadget", "mrp": None},
    ]]


def test_import_without_admissible_rows_makes_no_request():
    manager = RecordingProductManager()

    result = import_products(manager, "barcode,item_name\n,NoBarcode\n")

    assert result.imported == 0
    assert result.discarded == 1
    assert manager.batches == []


def test_template_round_trips_through_parser():
    template = build_template_csv()

    assert template.splitlines()[0] == "barcode,item_name,category,unit,mrp,tax_rate,hsn_code"
    assert parse_product_csv(template) == [{
        "barcode": "890123456789",
        "item_name": "Sample Product",
        "category": "Groceries",
        "unit": "Unit",
        "mrp": 199.0,
        "tax_rate": 18.0,
        "hsn_code": "2106",
    }]


def test_decode_upload_tolerates_non_utf8_bytes():
    latin1 = "barcode,item_name\n1,Café\n".encode("latin-1")
    text = decode_upload(latin1)

    assert parse_product_csv(text) == [{"barcode": "1", "item_name": "Caf\ufffd"}]
    assert decode_upload("\ufeffbarcode,item_name\n".encode("utf-8")) == "barcode,item_name\n"
