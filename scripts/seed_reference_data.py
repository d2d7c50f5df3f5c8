"""Seed the lookup tables the finance submodules resolve names against."""

import argparse
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from projecthub.database import SessionLocal
from projecthub.models import (
    CounterpartyType,
    FinancingParameter,
    FinancingTermsSection,
    LcType,
    LoanType,
    TaxEquityType,
)

logger = logging.getLogger("projecthub.seed")

LOAN_TYPES = ("Construction Loan", "Term Loan", "Tax Equity Bridge Loan", "Back-Leverage")
LC_TYPES = ("PPA LC", "Interconnection LC", "DSRA LC", "O&M LC")
TAX_EQUITY_TYPES = ("Partnership Flip", "Sale-Leaseback", "Inverted Lease")
COUNTERPARTY_TYPES = ("Lender", "Tax Equity Investor", "Swap Counterparty", "Administrative Agent")

SECTIONS: dict[str, tuple[str, ...]] = {
    "Loan Terms": ("Commitment", "Tenor", "Margin", "Upfront Fee", "Commitment Fee"),
    "Coverage": ("Min DSCR", "Target DSCR", "Lock-up DSCR"),
    "Reserves": ("DSRA Months", "MRA Amount"),
}


def _ensure(session: Session, model, column: str, value: str, **extra):
    existing = session.query(model).filter(getattr(model, column) == value).first()
    if existing:
        return existing, False
    instance = model(**{column: value}, **extra)
    session.add(instance)
    session.flush()
    return instance, True


def seed(session: Session) -> int:
    created = 0
    for model, column, names in (
        (LoanType, "loan_name", LOAN_TYPES),
        (LcType, "lc_name", LC_TYPES),
        (TaxEquityType, "type_name", TAX_EQUITY_TYPES),
        (CounterpartyType, "type_name", COUNTERPARTY_TYPES),
    ):
        for name in names:
            _, was_created = _ensure(session, model, column, name)
            created += int(was_created)

    for section_name, parameters in SECTIONS.items():
        section, was_created = _ensure(session, FinancingTermsSection, "section_name", section_name)
        created += int(was_created)
        for parameter_name in parameters:
            _, was_created = _ensure(
                session,
                FinancingParameter,
                "parameter_name",
                parameter_name,
                section_id=section.id,
            )
            created += int(was_created)
    return created


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed finance lookup tables.")
    parser.add_argument("--dry-run", action="store_true", help="Roll back instead of committing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    with SessionLocal() as session:
        try:
            created = seed(session)
            if args.dry_run:
                session.rollback()
                logger.info("Dry run: %s rows would be created", created)
                return
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise RuntimeError(f"Failed to seed reference data: {exc}") from exc
    logger.info("Seeded %s reference rows", created)


if __name__ == "__main__":
    main()
