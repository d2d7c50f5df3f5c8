from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from projecthub.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class ProjectScopedMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")


class Project(Base, TimestampMixin):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="development")


# ---------------------------------------------------------------------------
# Field metadata catalog
# ---------------------------------------------------------------------------


class FieldMetadata(Base):
    __tablename__ = "field_metadata"
    __table_args__ = (UniqueConstraint("table_name", "field_key", name="uq_field_metadata_table_field"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    module_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    parent_module: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    table_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    field_key: Mapped[str] = mapped_column(String(200), nullable=False)
    display_label: Mapped[str] = mapped_column(String(200), nullable=False)
    data_type: Mapped[str] = mapped_column(String(50), nullable=False, default="text")


class DropdownOption(Base):
    __tablename__ = "dropdown_options"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    table_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    field_name: Mapped[str] = mapped_column(String(200), nullable=False)
    option_value: Mapped[str] = mapped_column(String(200), nullable=False)


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    project_name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    user_name: Mapped[str] = mapped_column(String(200), nullable=False)
    module_name: Mapped[str] = mapped_column(String(100), nullable=False)
    sub_module: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    field_name: Mapped[str] = mapped_column(String(255), nullable=False)
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    action_type: Mapped[str] = mapped_column(String(10), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )


# ---------------------------------------------------------------------------
# Finance reference data
# ---------------------------------------------------------------------------


class LoanType(Base):
    __tablename__ = "loan_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    loan_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class LcType(Base):
    __tablename__ = "lc_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lc_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class TaxEquityType(Base):
    __tablename__ = "tax_equity_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class CounterpartyType(Base):
    __tablename__ = "counterparty_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)


class FinancingTermsSection(Base):
    __tablename__ = "financing_terms_sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    section_name: Mapped[str] = mapped_column(String(200), nullable=False)


class FinancingParameter(Base):
    __tablename__ = "financing_parameters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    parameter_name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    section_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("financing_terms_sections.id", ondelete="SET NULL"), nullable=True
    )

    section: Mapped[Optional[FinancingTermsSection]] = relationship("FinancingTermsSection")


# ---------------------------------------------------------------------------
# Finance submodules
# ---------------------------------------------------------------------------


class FinancingTerm(Base, ProjectScopedMixin):
    __tablename__ = "financing_terms"

    parameter_id: Mapped[int] = mapped_column(Integer, ForeignKey("financing_parameters.id"), nullable=False)
    loan_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("loan_types.id"), nullable=False)
    section_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("financing_terms_sections.id"), nullable=True
    )
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class LenderCommitment(Base, ProjectScopedMixin):
    __tablename__ = "lender_commitments"

    loan_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("loan_types.id"), nullable=False)
    parameter_id: Mapped[int] = mapped_column(Integer, ForeignKey("financing_parameters.id"), nullable=False)
    commitment_instance: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    lender_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class LetterOfCredit(Base, ProjectScopedMixin):
    __tablename__ = "letters_of_credit"

    lc_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("lc_types.id"), nullable=False)
    parameter_id: Mapped[int] = mapped_column(Integer, ForeignKey("financing_parameters.id"), nullable=False)
    lc_instance: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Dscr(Base, ProjectScopedMixin):
    __tablename__ = "dscr"

    parameter_id: Mapped[int] = mapped_column(Integer, ForeignKey("financing_parameters.id"), nullable=False)
    value: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    as_of_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class TaxEquity(Base, ProjectScopedMixin):
    __tablename__ = "tax_equity"

    tax_equity_type_id: Mapped[int] = mapped_column(Integer, ForeignKey("tax_equity_types.id"), nullable=False)
    parameter_id: Mapped[int] = mapped_column(Integer, ForeignKey("financing_parameters.id"), nullable=False)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class AssetCo(Base, ProjectScopedMixin):
    __tablename__ = "asset_co"

    parameter_id: Mapped[int] = mapped_column(Integer, ForeignKey("financing_parameters.id"), nullable=False)
    commitment_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    non_sponsor_ownership_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class CorporateDebt(Base, ProjectScopedMixin):
    __tablename__ = "corporate_debt"

    parameter_id: Mapped[int] = mapped_column(Integer, ForeignKey("financing_parameters.id"), nullable=False)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class FinancingCounterparty(Base, ProjectScopedMixin):
    __tablename__ = "financing_counterparties"

    counterparty_type_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("counterparty_types.id"), nullable=False
    )
    parameter_id: Mapped[int] = mapped_column(Integer, ForeignKey("financing_parameters.id"), nullable=False)
    party_instance: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Swap(Base, ProjectScopedMixin):
    __tablename__ = "swaps"

    entity_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    banks: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    starting_notional_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    future_notional_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fixed_rate_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    trade_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    effective_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expiration_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    met_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class AmortSchedule(Base, ProjectScopedMixin):
    __tablename__ = "amort_schedule"

    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    beginning_balance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ending_balance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notional: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    hedge_percentage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class DebtVsSwap(Base, ProjectScopedMixin):
    __tablename__ = "debt_vs_swaps"

    parameter_id: Mapped[int] = mapped_column(Integer, ForeignKey("financing_parameters.id"), nullable=False)
    value: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)


class Refinancing(Base, ProjectScopedMixin):
    __tablename__ = "refinancing"

    refinancing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    refinancing_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# ---------------------------------------------------------------------------
# Project module tables
# ---------------------------------------------------------------------------


class Overview(Base, ProjectScopedMixin):
    __tablename__ = "overview"

    technology: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    capacity_mw_ac: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    capacity_mw_dc: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    county: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    developer: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    cod_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class Interconnection(Base, ProjectScopedMixin):
    __tablename__ = "interconnection"

    utility_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    queue_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    poi_voltage_kv: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    network_upgrade_cost_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ia_executed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class MilestoneMixin(ProjectScopedMixin):
    milestone_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    target_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    target_date_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    completion_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    completion_date_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class MilestoneFinance(Base, MilestoneMixin):
    __tablename__ = "milestone_finance"


class MilestoneOfftake(Base, MilestoneMixin):
    __tablename__ = "milestone_offtake"


class MilestoneInterconnect(Base, MilestoneMixin):
    __tablename__ = "milestone_interconnect"


class EquipmentModule(Base, ProjectScopedMixin):
    __tablename__ = "equipments_modules"

    manufacturer: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    model_number: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    wattage_w: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    unit_price_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class OfftakeContractDetails(Base, ProjectScopedMixin):
    __tablename__ = "offtake_contract_details"

    offtake_counterparty: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    contract_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    term_years: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    contract_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    contract_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
