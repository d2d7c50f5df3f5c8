from __future__ import annotations

import pytest

from projecthub.models import (
    AmortSchedule,
    Dscr,
    FinancingParameter,
    FinancingTerm,
    LenderCommitment,
    LoanType,
    Swap,
)
from projecthub.services.finance_submodules import build_finance_router
from projecthub.services.mutation_errors import PayloadValidationError, UnsupportedEntityError
from projecthub.services.mutation_router import MutationBundle, Variant


@pytest.fixture()
def store(fake_store):
    store = fake_store
    store.add_name(FinancingParameter, "parameter_name", "Min DSCR", 1)
    store.add_name(FinancingParameter, "parameter_name", "Margin", 2)
    store.add_name(LoanType, "loan_name", "Term Loan", 1)
    store.add(FinancingParameter, {"id": 1, "parameter_name": "Min DSCR", "section_id": None})
    store.add(FinancingParameter, {"id": 2, "parameter_name": "Margin", "section_id": 4})
    return store


def test_dispatch_applies_deletes_then_updates_then_creates(store) -> None:
    store.add(Swap, {"id": 1, "project_id": 1, "entity_name": "A"})
    store.add(Swap, {"id": 2, "project_id": 1, "entity_name": "B"})
    router = build_finance_router()
    bundle = MutationBundle.from_payload(
        {
            "creates": [{"entity_name": "C", "provisional_id": "temp_1"}],
            "updates": [{"id": 2, "entity_name": "B2"}],
            "deleteIds": [1],
        }
    )

    result = router.dispatch("swaps-summary", 1, bundle, store)

    assert [call[0] for call in store.calls] == ["delete", "update", "create"]
    assert result.deleted == [1]
    assert result.reconciled == {"temp_1": 101}
    assert store.tables[Swap][2]["entity_name"] == "B2"


def test_unknown_submodule_lists_available_names(store) -> None:
    router = build_finance_router()
    with pytest.raises(UnsupportedEntityError) as excinfo:
        router.dispatch("nonexistent", 1, MutationBundle(), store)

    message = str(excinfo.value)
    assert message.startswith("Invalid finance submodule: nonexistent. Available:")
    assert "dscr" in message and "swaps-summary" in message


def test_invalid_shape_rejects_whole_bundle_before_writes(store) -> None:
    store.add(Dscr, {"id": 5, "project_id": 1, "parameter_id": 1, "value": "1.30"})
    router = build_finance_router()
    bundle = MutationBundle.from_payload({"updates": [{"id": 5, "value": "1.45"}, {"value": "2.0"}]})

    with pytest.raises(PayloadValidationError):
        router.dispatch("dscr", 1, bundle, store)
    assert store.calls == []


def test_deleted_ids_must_be_a_list() -> None:
    with pytest.raises(PayloadValidationError):
        MutationBundle.from_payload({"deletedIds": 5})


def test_natural_key_update_upserts(store) -> None:
    store.add(FinancingTerm, {"id": 7, "project_id": 1, "parameter_id": 2, "loan_type_id": 1, "value": "SOFR + 150"})
    router = build_finance_router()
    bundle = MutationBundle.from_payload(
        {
            "updates": [
                {"parameterId": 2, "loanType": "Term Loan", "value": "SOFR + 175"},
                {"parameterId": 1, "loanType": "Term Loan", "value": "1.25x"},
            ]
        }
    )

    result = router.dispatch("financing-terms", 1, bundle, store)

    assert store.calls[0] == ("update", 7)
    assert store.calls[1][0] == "create"
    created = store.tables[FinancingTerm][store.calls[1][1]]
    assert created["parameter_id"] == 1 and created["loan_type_id"] == 1
    assert created["section_id"] is None
    assert result.created_ops == {("updates", 1)}


def test_financing_terms_create_derives_section(store) -> None:
    router = build_finance_router()
    bundle = MutationBundle.from_payload(
        {"creates": [{"parameter_name": "Margin", "loan_type_name": "Term Loan", "value": "SOFR + 200"}]}
    )

    router.dispatch("financing-terms", 1, bundle, store)

    created = next(iter(store.tables[FinancingTerm].values()))
    assert created["section_id"] == 4


def test_unresolved_reference_skips_only_that_create(store) -> None:
    router = build_finance_router()
    bundle = MutationBundle.from_payload(
        {
            "creates": [
                {"parameter_name": "Unknown Parameter", "value": "1.1", "provisional_id": "temp_a"},
                {"parameter_name": "Min DSCR", "value": "1.35", "provisional_id": "temp_b"},
            ]
        }
    )

    result = router.dispatch("dscr", 1, bundle, store)

    assert len(result.skipped) == 1
    skipped = result.skipped[0]
    assert (skipped.source, skipped.index, skipped.provisional_id) == ("creates", 0, "temp_a")
    assert "Parameter not found" in skipped.reason
    assert list(result.reconciled) == ["temp_b"]


def test_instances_are_assigned_per_group_and_shared_per_provisional_id(store) -> None:
    store.add(LenderCommitment, {"id": 1, "project_id": 1, "loan_type_id": 1, "parameter_id": 1, "commitment_instance": 2})
    router = build_finance_router()
    bundle = MutationBundle.from_payload(
        {
            "creates": [
                {"loanTypeId": 1, "parameterId": 1, "value": "50", "provisional_id": "temp_lender"},
                {"loanTypeId": 1, "parameterId": 2, "value": "SOFR", "provisional_id": "temp_lender"},
                {"loanTypeId": 1, "parameterId": 1, "value": "75", "provisional_id": "temp_other"},
            ]
        }
    )

    result = router.dispatch("lender-commitments", 1, bundle, store)

    instances = [row["commitment_instance"] for row in result.records]
    assert instances == [3, 3, 4]
    assert result.reconciled["temp_lender"] == result.records[0]["id"]


def test_amort_schedule_accepts_camel_case(store) -> None:
    store.add(AmortSchedule, {"id": 3, "project_id": 1, "beginning_balance": 100.0})
    router = build_finance_router()
    bundle = MutationBundle.from_payload({"updates": [{"id": 3, "beginningBalance": "$1,200"}]})

    router.dispatch("amort-schedule", 1, bundle, store)

    assert store.tables[AmortSchedule][3]["beginning_balance"] == 1200.0


def test_amort_schedule_rejects_mixed_key_styles(store) -> None:
    router = build_finance_router()
    bundle = MutationBundle.from_payload(
        {"updates": [{"id": 3, "beginningBalance": 1, "beginning_balance": 2}]}
    )
    with pytest.raises(PayloadValidationError):
        router.dispatch("amort-schedule", 1, bundle, store)


def test_swaps_update_without_id_creates(store) -> None:
    router = build_finance_router()
    handler = router.handler_for("swaps-summary")

    validated = handler.validate(MutationBundle(updates=[{"id": "temp_9", "entity_name": "New"}]))

    assert validated.updates == []
    assert validated.creates[0].variant is Variant.PROVISIONAL
    assert validated.creates[0].provisional_id == "temp_9"


def test_update_without_id_is_rejected_when_handler_cannot_create(store) -> None:
    router = build_finance_router()
    with pytest.raises(PayloadValidationError):
        router.handler_for("corporate-debt").validate(MutationBundle(updates=[{"value": "x"}]))


def test_create_with_persisted_id_is_rejected() -> None:
    router = build_finance_router()
    with pytest.raises(PayloadValidationError):
        router.handler_for("refinancing").validate(MutationBundle(creates=[{"id": 12}]))


def test_writable_fields_exclude_linkage_columns() -> None:
    router = build_finance_router()
    fields = router.handler_for("lender-commitments").writable_fields()
    assert set(fields) == {"lender_name", "value"}
