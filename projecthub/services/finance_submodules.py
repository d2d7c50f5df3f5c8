"""Handlers for every finance submodule accepted by the mutation endpoint."""

from __future__ import annotations

from typing import Any, Mapping

from projecthub.models.entities import (
    AmortSchedule,
    AssetCo,
    CorporateDebt,
    CounterpartyType,
    DebtVsSwap,
    Dscr,
    FinancingCounterparty,
    FinancingParameter,
    FinancingTerm,
    LcType,
    LenderCommitment,
    LetterOfCredit,
    LoanType,
    Refinancing,
    Swap,
    TaxEquity,
    TaxEquityType,
)
from projecthub.services.mutation_errors import PayloadValidationError
from projecthub.services.mutation_router import MutationRouter, Reference, SubmoduleHandler
from projecthub.services.record_store import RecordStore
from projecthub.services.value_coercion import DataType

PARAMETER = Reference(
    key="parameter",
    column="parameter_id",
    model=FinancingParameter,
    name_column="parameter_name",
    label="Parameter",
    name_keys=("parameter_name", "parameterName"),
    id_keys=("parameterId",),
)
LOAN_TYPE = Reference(
    key="loan_type",
    column="loan_type_id",
    model=LoanType,
    name_column="loan_name",
    label="Loan type",
    name_keys=("loan_type_name", "loanType", "loan_name"),
    id_keys=("loanTypeId",),
)
LC_TYPE = Reference(
    key="lc_type",
    column="lc_type_id",
    model=LcType,
    name_column="lc_name",
    label="LC type",
    name_keys=("lc_type_name", "lcType", "lc_name"),
)
TAX_EQUITY_TYPE = Reference(
    key="tax_equity_type",
    column="tax_equity_type_id",
    model=TaxEquityType,
    name_column="type_name",
    label="Tax equity type",
    name_keys=("tax_equity_type_name", "taxEquityType"),
)
COUNTERPARTY_TYPE = Reference(
    key="counterparty_type",
    column="counterparty_type_id",
    model=CounterpartyType,
    name_column="type_name",
    label="Counterparty type",
    name_keys=("counterparty_type_name", "counterpartyType"),
)


class FinancingTermsHandler(SubmoduleHandler):
    """Term sheet values per parameter and loan type.

    Besides ``{id, value}`` updates, the older ``{parameterId, loanType,
    value}`` shape is still accepted and upserts by that natural key.
    """

    name = "financing-terms"
    model = FinancingTerm
    references = (PARAMETER, LOAN_TYPE)
    natural_key = ("parameter", "loan_type")
    derived_columns = frozenset({"section_id"})
    context_reference = "loan_type"

    def create_defaults(self, store: RecordStore, resolved: Mapping[str, int]) -> dict[str, Any]:
        parameter = store.get(FinancingParameter, resolved["parameter_id"])
        return {"section_id": parameter.get("section_id") if parameter else None}


class LenderCommitmentsHandler(SubmoduleHandler):
    name = "lender-commitments"
    model = LenderCommitment
    references = (LOAN_TYPE, PARAMETER)
    instance_column = "commitment_instance"
    instance_group = ("loan_type_id",)


class LetterOfCreditHandler(SubmoduleHandler):
    name = "letter-credit"
    model = LetterOfCredit
    references = (LC_TYPE, PARAMETER)
    instance_column = "lc_instance"
    instance_group = ("lc_type_id",)


class DscrHandler(SubmoduleHandler):
    """Coverage ratios; updates without an id upsert by parameter."""

    name = "dscr"
    model = Dscr
    references = (PARAMETER,)
    natural_key = ("parameter",)


class TaxEquityHandler(SubmoduleHandler):
    name = "tax-equity"
    model = TaxEquity
    references = (TAX_EQUITY_TYPE, PARAMETER)


class AssetCoHandler(SubmoduleHandler):
    name = "asset-co"
    model = AssetCo
    references = (PARAMETER,)
    field_types = {
        "commitment_usd": DataType.CURRENCY,
        "non_sponsor_ownership_percent": DataType.PERCENTAGE,
    }


class CorporateDebtHandler(SubmoduleHandler):
    name = "corporate-debt"
    model = CorporateDebt
    references = (PARAMETER,)


class PartiesHandler(SubmoduleHandler):
    name = "parties"
    model = FinancingCounterparty
    references = (COUNTERPARTY_TYPE, PARAMETER)
    instance_column = "party_instance"
    instance_group = ("counterparty_type_id",)


class SwapsSummaryHandler(SubmoduleHandler):
    """Swap rows; an ``updates`` item without a persisted id creates a row."""

    name = "swaps-summary"
    model = Swap
    update_may_create = True
    field_types = {
        "starting_notional_usd": DataType.CURRENCY,
        "future_notional_usd": DataType.CURRENCY,
        "fixed_rate_percent": DataType.PERCENTAGE,
    }


class AmortScheduleHandler(SubmoduleHandler):
    """Amortization rows; the editor still sends camelCase keys."""

    name = "amort-schedule"
    model = AmortSchedule
    field_types = {
        "beginning_balance": DataType.CURRENCY,
        "ending_balance": DataType.CURRENCY,
        "notional": DataType.CURRENCY,
        "hedge_percentage": DataType.PERCENTAGE,
    }
    field_aliases = {
        "startDate": "start_date",
        "beginningBalance": "beginning_balance",
        "endingBalance": "ending_balance",
        "hedgePercentage": "hedge_percentage",
    }

    def normalize_keys(self, item: Mapping[str, Any]) -> dict[str, Any]:
        clashes = sorted(alias for alias, column in self.field_aliases.items() if alias in item and column in item)
        if clashes:
            raise PayloadValidationError(
                f"{self.name} item mixes camelCase and snake_case keys: {', '.join(clashes)}"
            )
        return super().normalize_keys(item)


class DebtVsSwapsHandler(SubmoduleHandler):
    name = "debt-vs-swaps"
    model = DebtVsSwap
    references = (PARAMETER,)


class RefinancingHandler(SubmoduleHandler):
    """Refinancing events; ``temp_`` ids or missing ids in ``updates`` create rows."""

    name = "refinancing"
    model = Refinancing
    update_may_create = True


FINANCE_HANDLERS = (
    FinancingTermsHandler(),
    LenderCommitmentsHandler(),
    LetterOfCreditHandler(),
    DscrHandler(),
    TaxEquityHandler(),
    AssetCoHandler(),
    CorporateDebtHandler(),
    PartiesHandler(),
    SwapsSummaryHandler(),
    AmortScheduleHandler(),
    DebtVsSwapsHandler(),
    RefinancingHandler(),
)


def build_finance_router() -> MutationRouter:
    return MutationRouter(FINANCE_HANDLERS)


finance_router = build_finance_router()


__all__ = [
    "FINANCE_HANDLERS",
    "build_finance_router",
    "finance_router",
]
