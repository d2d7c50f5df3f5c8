from projecthub.models.entities import (
    AmortSchedule,
    AssetCo,
    AuditLog,
    CorporateDebt,
    CounterpartyType,
    DebtVsSwap,
    DropdownOption,
    Dscr,
    EquipmentModule,
    FieldMetadata,
    FinancingCounterparty,
    FinancingParameter,
    FinancingTerm,
    FinancingTermsSection,
    Interconnection,
    LcType,
    LenderCommitment,
    LetterOfCredit,
    LoanType,
    MilestoneFinance,
    MilestoneInterconnect,
    MilestoneOfftake,
    OfftakeContractDetails,
    Overview,
    Project,
    Refinancing,
    Swap,
    TaxEquity,
    TaxEquityType,
    User,
)

__all__ = [
    "AmortSchedule",
    "AssetCo",
    "AuditLog",
    "CorporateDebt",
    "CounterpartyType",
    "DebtVsSwap",
    "DropdownOption",
    "Dscr",
    "EquipmentModule",
    "FieldMetadata",
    "FinancingCounterparty",
    "FinancingParameter",
    "FinancingTerm",
    "FinancingTermsSection",
    "Interconnection",
    "LcType",
    "LenderCommitment",
    "LetterOfCredit",
    "LoanType",
    "MilestoneFinance",
    "MilestoneInterconnect",
    "MilestoneOfftake",
    "OfftakeContractDetails",
    "Overview",
    "Project",
    "Refinancing",
    "Swap",
    "TaxEquity",
    "TaxEquityType",
    "User",
]
