"""create project hub tables

Revision ID: 20260301_000001
Revises:
Create Date: 2026-03-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "20260301_000001"
down_revision = None
branch_labels = None
depends_on = None


def _id_column() -> sa.Column:
    return sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False)


def _project_column() -> sa.Column:
    return sa.Column(
        "project_id",
        sa.Integer(),
        sa.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


def _parameter_column() -> sa.Column:
    return sa.Column("parameter_id", sa.Integer(), sa.ForeignKey("financing_parameters.id"), nullable=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def _milestone_columns() -> list[sa.Column]:
    return [
        sa.Column("milestone_name", sa.String(length=200), nullable=True),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column("target_date_type", sa.String(length=20), nullable=True),
        sa.Column("completion_date", sa.Date(), nullable=True),
        sa.Column("completion_date_type", sa.String(length=20), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    ]


MILESTONE_TABLES = ("milestone_finance", "milestone_offtake", "milestone_interconnect")


def upgrade() -> None:
    op.create_table(
        "users",
        _id_column(),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("email", sa.String(length=200), nullable=False, unique=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="active"),
        *_timestamps(),
    )

    op.create_table(
        "projects",
        _id_column(),
        sa.Column("project_name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="development"),
        *_timestamps(),
    )

    op.create_table(
        "field_metadata",
        _id_column(),
        sa.Column("module_name", sa.String(length=100), nullable=True),
        sa.Column("parent_module", sa.String(length=100), nullable=True),
        sa.Column("table_name", sa.String(length=100), nullable=False, index=True),
        sa.Column("field_key", sa.String(length=200), nullable=False),
        sa.Column("display_label", sa.String(length=200), nullable=False),
        sa.Column("data_type", sa.String(length=50), nullable=False, server_default="text"),
        sa.UniqueConstraint("table_name", "field_key", name="uq_field_metadata_table_field"),
    )

    op.create_table(
        "dropdown_options",
        _id_column(),
        sa.Column("table_name", sa.String(length=100), nullable=False, index=True),
        sa.Column("field_name", sa.String(length=200), nullable=False),
        sa.Column("option_value", sa.String(length=200), nullable=False),
    )

    op.create_table(
        "audit_logs",
        _id_column(),
        sa.Column("project_id", sa.Integer(), nullable=True, index=True),
        sa.Column("project_name", sa.String(length=200), nullable=False, index=True),
        sa.Column("user_name", sa.String(length=200), nullable=False),
        sa.Column("module_name", sa.String(length=100), nullable=False),
        sa.Column("sub_module", sa.String(length=100), nullable=True),
        sa.Column("field_name", sa.String(length=255), nullable=False),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("action_type", sa.String(length=10), nullable=False),
        sa.Column(
            "timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"), index=True
        ),
    )

    op.create_table(
        "loan_types",
        _id_column(),
        sa.Column("loan_name", sa.String(length=100), nullable=False, unique=True),
    )
    op.create_table(
        "lc_types",
        _id_column(),
        sa.Column("lc_name", sa.String(length=100), nullable=False, unique=True),
    )
    op.create_table(
        "tax_equity_types",
        _id_column(),
        sa.Column("type_name", sa.String(length=100), nullable=False, unique=True),
    )
    op.create_table(
        "counterparty_types",
        _id_column(),
        sa.Column("type_name", sa.String(length=100), nullable=False, unique=True),
    )
    op.create_table(
        "financing_terms_sections",
        _id_column(),
        sa.Column("section_name", sa.String(length=200), nullable=False),
    )
    op.create_table(
        "financing_parameters",
        _id_column(),
        sa.Column("parameter_name", sa.String(length=200), nullable=False, unique=True),
        sa.Column(
            "section_id",
            sa.Integer(),
            sa.ForeignKey("financing_terms_sections.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )

    op.create_table(
        "financing_terms",
        _id_column(),
        _project_column(),
        _parameter_column(),
        sa.Column("loan_type_id", sa.Integer(), sa.ForeignKey("loan_types.id"), nullable=False),
        sa.Column("section_id", sa.Integer(), sa.ForeignKey("financing_terms_sections.id"), nullable=True),
        sa.Column("value", sa.Text(), nullable=True),
    )
    op.create_table(
        "lender_commitments",
        _id_column(),
        _project_column(),
        sa.Column("loan_type_id", sa.Integer(), sa.ForeignKey("loan_types.id"), nullable=False),
        _parameter_column(),
        sa.Column("commitment_instance", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("lender_name", sa.String(length=200), nullable=True),
        sa.Column("value", sa.Text(), nullable=True),
    )
    op.create_table(
        "letters_of_credit",
        _id_column(),
        _project_column(),
        sa.Column("lc_type_id", sa.Integer(), sa.ForeignKey("lc_types.id"), nullable=False),
        _parameter_column(),
        sa.Column("lc_instance", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("value", sa.Text(), nullable=True),
    )
    op.create_table(
        "dscr",
        _id_column(),
        _project_column(),
        _parameter_column(),
        sa.Column("value", sa.String(length=100), nullable=True),
        sa.Column("as_of_date", sa.Date(), nullable=True),
    )
    op.create_table(
        "tax_equity",
        _id_column(),
        _project_column(),
        sa.Column("tax_equity_type_id", sa.Integer(), sa.ForeignKey("tax_equity_types.id"), nullable=False),
        _parameter_column(),
        sa.Column("value", sa.Text(), nullable=True),
    )
    op.create_table(
        "asset_co",
        _id_column(),
        _project_column(),
        _parameter_column(),
        sa.Column("commitment_usd", sa.Float(), nullable=True),
        sa.Column("non_sponsor_ownership_percent", sa.Float(), nullable=True),
    )
    op.create_table(
        "corporate_debt",
        _id_column(),
        _project_column(),
        _parameter_column(),
        sa.Column("value", sa.Text(), nullable=True),
    )
    op.create_table(
        "financing_counterparties",
        _id_column(),
        _project_column(),
        sa.Column("counterparty_type_id", sa.Integer(), sa.ForeignKey("counterparty_types.id"), nullable=False),
        _parameter_column(),
        sa.Column("party_instance", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("value", sa.Text(), nullable=True),
    )
    op.create_table(
        "swaps",
        _id_column(),
        _project_column(),
        sa.Column("entity_name", sa.String(length=200), nullable=True),
        sa.Column("banks", sa.String(length=500), nullable=True),
        sa.Column("starting_notional_usd", sa.Float(), nullable=True),
        sa.Column("future_notional_usd", sa.Float(), nullable=True),
        sa.Column("fixed_rate_percent", sa.Float(), nullable=True),
        sa.Column("trade_date", sa.Date(), nullable=True),
        sa.Column("effective_date", sa.Date(), nullable=True),
        sa.Column("expiration_date", sa.Date(), nullable=True),
        sa.Column("met_date", sa.Date(), nullable=True),
    )
    op.create_table(
        "amort_schedule",
        _id_column(),
        _project_column(),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("beginning_balance", sa.Float(), nullable=True),
        sa.Column("ending_balance", sa.Float(), nullable=True),
        sa.Column("notional", sa.Float(), nullable=True),
        sa.Column("hedge_percentage", sa.Float(), nullable=True),
    )
    op.create_table(
        "debt_vs_swaps",
        _id_column(),
        _project_column(),
        _parameter_column(),
        sa.Column("value", sa.String(length=200), nullable=True),
    )
    op.create_table(
        "refinancing",
        _id_column(),
        _project_column(),
        sa.Column("refinancing_date", sa.Date(), nullable=True),
        sa.Column("refinancing_terms", sa.Text(), nullable=True),
    )

    op.create_table(
        "overview",
        _id_column(),
        _project_column(),
        sa.Column("technology", sa.String(length=100), nullable=True),
        sa.Column("capacity_mw_ac", sa.Float(), nullable=True),
        sa.Column("capacity_mw_dc", sa.Float(), nullable=True),
        sa.Column("state", sa.String(length=50), nullable=True),
        sa.Column("county", sa.String(length=100), nullable=True),
        sa.Column("developer", sa.String(length=200), nullable=True),
        sa.Column("cod_date", sa.Date(), nullable=True),
    )
    op.create_table(
        "interconnection",
        _id_column(),
        _project_column(),
        sa.Column("utility_name", sa.String(length=200), nullable=True),
        sa.Column("queue_number", sa.String(length=100), nullable=True),
        sa.Column("poi_voltage_kv", sa.Float(), nullable=True),
        sa.Column("network_upgrade_cost_usd", sa.Float(), nullable=True),
        sa.Column("ia_executed_date", sa.Date(), nullable=True),
    )
    for table_name in MILESTONE_TABLES:
        op.create_table(table_name, _id_column(), _project_column(), *_milestone_columns())
    op.create_table(
        "equipments_modules",
        _id_column(),
        _project_column(),
        sa.Column("manufacturer", sa.String(length=200), nullable=True),
        sa.Column("model_number", sa.String(length=200), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("wattage_w", sa.Float(), nullable=True),
        sa.Column("unit_price_usd", sa.Float(), nullable=True),
    )
    op.create_table(
        "offtake_contract_details",
        _id_column(),
        _project_column(),
        sa.Column("offtake_counterparty", sa.String(length=200), nullable=True),
        sa.Column("contract_type", sa.String(length=100), nullable=True),
        sa.Column("term_years", sa.Integer(), nullable=True),
        sa.Column("contract_price", sa.Float(), nullable=True),
        sa.Column("contract_start_date", sa.Date(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("offtake_contract_details")
    op.drop_table("equipments_modules")
    for table_name in reversed(MILESTONE_TABLES):
        op.drop_table(table_name)
    op.drop_table("interconnection")
    op.drop_table("overview")
    op.drop_table("refinancing")
    op.drop_table("debt_vs_swaps")
    op.drop_table("amort_schedule")
    op.drop_table("swaps")
    op.drop_table("financing_counterparties")
    op.drop_table("corporate_debt")
    op.drop_table("asset_co")
    op.drop_table("tax_equity")
    op.drop_table("dscr")
    op.drop_table("letters_of_credit")
    op.drop_table("lender_commitments")
    op.drop_table("financing_terms")
    op.drop_table("financing_parameters")
    op.drop_table("financing_terms_sections")
    op.drop_table("counterparty_types")
    op.drop_table("tax_equity_types")
    op.drop_table("lc_types")
    op.drop_table("loan_types")
    op.drop_table("audit_logs")
    op.drop_table("dropdown_options")
    op.drop_table("field_metadata")
    op.drop_table("projects")
    op.drop_table("users")
