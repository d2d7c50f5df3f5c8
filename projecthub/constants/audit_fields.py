FINANCE_MODULE_NAME = "Finance"

# Identity and linkage columns never show up as audited fields.
AUDIT_SKIPPED_KEYS = frozenset(
    {
        "id",
        "project_id",
        "parameter_id",
        "loan_type_id",
        "lc_type_id",
        "tax_equity_type_id",
        "counterparty_type_id",
        "section_id",
        "party_instance",
        "lc_instance",
        "commitment_instance",
        "provisional_id",
        "created_at",
        "updated_at",
    }
)

PROJECT_MODULE_LABELS = {
    "overview": "Overview",
    "interconnection": "Interconnection",
    "offtake_contract_details": "Offtake Contract Details",
    "milestone_finance": "Milestone - Finance",
    "milestone_offtake": "Milestone - Offtake",
    "milestone_interconnect": "Milestone - Interconnect",
    "equipments_modules": "Equipment - Modules",
}

CSV_EXPORT_COLUMNS = (
    "Timestamp",
    "Project",
    "User",
    "Module",
    "Sub-Module",
    "Field",
    "Old Value",
    "New Value",
    "Action",
)
