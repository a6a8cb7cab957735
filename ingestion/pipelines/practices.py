"""
Dental group and dental practice pipelines (CRM exports)
"""

from typing import Any, Dict

from ingestion.pipelines.base import MappedRecord, PipelineDefinition, conflict_ignore_insert
from ingestion.transformers.values import clean_str, parse_bool, parse_int
from models.practices import DentalGroup, DentalPractice


def map_dental_group(row: Dict[str, Any]) -> MappedRecord:
    return {
        "dental_group_id": parse_int(row.get("dentalgroupid")),
        "name": clean_str(row.get("name")),
        "address": clean_str(row.get("address")),
        "address_2": clean_str(row.get("address2")),
        "city": clean_str(row.get("city")),
        "state": clean_str(row.get("state")),
        "zip": clean_str(row.get("zip")),
        "account_type": clean_str(row.get("accounttype")),
        "centralized_billing": parse_bool(row.get("centralizedbilling")),
        "sales_channel": clean_str(row.get("saleschannel")),
        "sales_rep": clean_str(row.get("salesrep")),
    }


def map_dental_practice(row: Dict[str, Any]) -> MappedRecord:
    return {
        "practice_id": parse_int(row.get("practiceid")),
        "dental_group_id": parse_int(row.get("dentalgroupid")),
        "dental_group_name": clean_str(row.get("dentalgroupname")),
        "address": clean_str(row.get("address")),
        "address_2": clean_str(row.get("address2")),
        "city": clean_str(row.get("city")),
        "state": clean_str(row.get("state")),
        "zip": clean_str(row.get("zip")),
        "phone": clean_str(row.get("phone")),
        "clinical_email": clean_str(row.get("clinicalemail")),
        "billing_email": clean_str(row.get("billingemail")),
        "incisive_email": clean_str(row.get("incisiveemail")),
        "preferred_contact_method": clean_str(row.get("preferredcontactmethod")),
        "fee_schedule": clean_str(row.get("feeschedule")),
        "status": clean_str(row.get("status")),
    }


DENTAL_GROUPS = PipelineDefinition(
    name="dental-groups",
    table_name=DentalGroup.__tablename__,
    required_fields=("dental_group_id", "name"),
    env_key="DENTAL_GROUPS_SOURCEPATH",
    map_row=map_dental_group,
    build_insert_statement=conflict_ignore_insert(DentalGroup, ["dental_group_id"]),
)

DENTAL_PRACTICES = PipelineDefinition(
    name="dental-practices",
    table_name=DentalPractice.__tablename__,
    required_fields=("practice_id", "dental_group_id"),
    env_key="DENTAL_PRACTICES_SOURCEPATH",
    map_row=map_dental_practice,
    build_insert_statement=conflict_ignore_insert(DentalPractice, ["practice_id"]),
)
