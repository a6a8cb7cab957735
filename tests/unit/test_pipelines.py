"""
Unit tests for pipeline row mappers and insert statements
"""

from datetime import date

from sqlalchemy.dialects import postgresql

from ingestion.pipelines import PIPELINES
from ingestion.pipelines.orders import ORDERS, map_row
from ingestion.pipelines.practices import DENTAL_GROUPS, DENTAL_PRACTICES
from ingestion.pipelines.products import (
    LAB_PRACTICE_MAPPING,
    PRODUCT_CATALOG,
    PRODUCT_LAB_MARKUP,
    PRODUCT_LAB_REV_SHARE,
)
from ingestion.transformers import normalize_record, row_hash


def compile_statement(statement):
    compiled = statement.compile(dialect=postgresql.dialect())
    return str(compiled), dict(compiled.params)


class TestOrdersPipeline:

    def test_map_row_parses_types(self):
        row = normalize_record({
            "CaseId": "1001",
            "Submission Date": "2024-01-02",
            "Case Date": "01/03/2024",
            "ProductId": " P1 ",
            "Quantity": "2",
            "Product Price": "19.50",
            "Case Total": "39",
            "CustomerId": "C9",
            "Notes": "",
        })

        mapped = map_row(row)

        assert mapped["caseid"] == 1001
        assert mapped["submissiondate"] == date(2024, 1, 2)
        assert mapped["casedate"] == date(2024, 1, 3)
        assert mapped["productid"] == "P1"
        assert mapped["quantity"] == 2
        assert mapped["productprice"] == 19.5
        assert mapped["casetotal"] == 39.0
        assert mapped["customerid"] == "C9"
        assert mapped["notes"] is None
        assert mapped["shippingdate"] is None

    def test_unparseable_values_become_missing(self):
        mapped = map_row({"caseid": "abc", "quantity": "two", "casedate": "soon"})

        assert mapped["caseid"] is None
        assert mapped["quantity"] is None
        assert mapped["casedate"] is None

    def test_insert_stamps_source_and_hash(self):
        mapped = map_row({"caseid": "1", "productid": "P1", "quantity": "1"})

        sql, params = compile_statement(ORDERS.build_insert_statement(mapped, "orders/a.csv"))

        assert "INSERT INTO orders_stage" in sql
        assert "ON CONFLICT" not in sql
        assert params["source_file_key"] == "orders/a.csv"
        assert params["row_hash"] == row_hash(mapped)
        assert params["caseid"] == 1

    def test_orders_is_truncate_and_merge(self):
        assert ORDERS.should_truncate is True
        assert ORDERS.post_process is not None
        assert ORDERS.env_key == "SOURCEPATH"


class TestReferencePipelines:

    def test_dental_group_mapping(self):
        row = normalize_record({
            "Dental Group ID": "5",
            "Name": "Bright Smiles",
            "Address 2": "Suite 100",
            "Centralized Billing": "Yes",
        })

        mapped = DENTAL_GROUPS.map_row(row)

        assert mapped["dental_group_id"] == 5
        assert mapped["name"] == "Bright Smiles"
        assert mapped["address_2"] == "Suite 100"
        assert mapped["centralized_billing"] is True

    def test_dental_practice_mapping(self):
        mapped = DENTAL_PRACTICES.map_row({"practiceid": "10", "dentalgroupid": "5", "feeschedule": "NF"})

        assert mapped["practice_id"] == 10
        assert mapped["dental_group_id"] == 5
        assert mapped["fee_schedule"] == "NF"

    def test_markup_and_rev_share_mapping(self):
        markup = PRODUCT_LAB_MARKUP.map_row({
            "labid": "2", "labproductid": "LP-1", "cost": "10.25", "commitmenteligible": "false",
        })
        rev_share = PRODUCT_LAB_REV_SHARE.map_row({
            "labid": "2", "labproductid": "LP-1", "feeschedulename": "Standard", "revenueshare": "0.15",
        })

        assert markup["cost"] == 10.25
        assert markup["commitment_eligible"] is False
        assert rev_share["fee_schedule_name"] == "Standard"
        assert rev_share["revenue_share"] == 0.15

    def test_reference_inserts_ignore_conflicts(self):
        sql, params = compile_statement(
            LAB_PRACTICE_MAPPING.build_insert_statement(
                {"lab_id": 2, "practice_id": 10, "lab_practice_id": "X1"}, "maps/a.csv"
            )
        )

        assert "INSERT INTO lab_practice_mapping" in sql
        assert "ON CONFLICT (lab_id, practice_id) DO NOTHING" in sql
        assert params == {"lab_id": 2, "practice_id": 10, "lab_practice_id": "X1"}

    def test_catalog_required_fields(self):
        assert PRODUCT_CATALOG.required_fields == ("incisive_id", "incisive_name", "category")

    def test_every_required_field_is_mapped(self):
        for pipeline in PIPELINES:
            mapped = pipeline.map_row({})
            for field in pipeline.required_fields:
                assert field in mapped, f"{pipeline.name}: {field}"
