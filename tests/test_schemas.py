from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from porcitrack.errors import InvalidTransition, ValidationFailed
from porcitrack.models import Pig, PigStatus, RelationshipType, Sex
from porcitrack.schemas import (UNSET, BreedingRequest, PigCreateRequest,
                                PigPatch, SaleRequest, WeightRequest)


def _pig(**overrides):
    values = dict(tag_id="RF-1", manual_id="M-1", birth_date=date(2023, 1, 1),
                  sex="female", status="active", current_weight=80.0, notes="limps")
    values.update(overrides)
    return Pig(**values)


def test_unset_is_a_falsy_singleton():
    assert not UNSET
    assert type(UNSET)() is UNSET
    assert repr(UNSET) == "UNSET"


def test_breeding_request_parses_types():
    request = BreedingRequest.from_json({
        "child_pig_id": "c", "parent_pig_id": "p",
        "relationship_type": "father", "breeding_date": "2024-03-05", "notes": "  ",
    })
    assert request.relationship_type is RelationshipType.FATHER
    assert request.breeding_date == date(2024, 3, 5)
    assert request.notes is None


@pytest.mark.parametrize("payload, field", [
    (None, None),
    ({"parent_pig_id": "p", "relationship_type": "mother", "breeding_date": "2024-01-01"}, "child_pig_id"),
    ({"child_pig_id": "c", "parent_pig_id": "p", "relationship_type": "sire", "breeding_date": "2024-01-01"},
     "relationship_type"),
    ({"child_pig_id": "c", "parent_pig_id": "p", "relationship_type": "mother", "breeding_date": "01/02/2024"},
     "breeding_date"),
])
def test_breeding_request_rejections(payload, field):
    with pytest.raises(ValidationFailed) as excinfo:
        BreedingRequest.from_json(payload)
    assert excinfo.value.field == field


def test_pig_create_request_defaults():
    request = PigCreateRequest.from_json(
        {"tag_id": " RF-9 ", "manual_id": 42, "birth_date": "2024-01-01", "sex": "male"},
        today=date(2024, 6, 1),
    )
    assert request.tag_id == "RF-9"
    assert request.manual_id == "42"
    assert request.sex is Sex.MALE
    assert request.status is PigStatus.ACTIVE
    assert request.current_weight is None


def test_pig_create_request_accepts_birth_today():
    request = PigCreateRequest.from_json(
        {"tag_id": "RF-9", "manual_id": "M9", "birth_date": "2024-06-01", "sex": "female"},
        today=date(2024, 6, 1),
    )
    assert request.birth_date == date(2024, 6, 1)


def test_pig_create_request_rejects_negative_weight():
    with pytest.raises(ValidationFailed) as excinfo:
        PigCreateRequest.from_json({
            "tag_id": "RF-9", "manual_id": "M9", "birth_date": "2024-01-01",
            "sex": "female", "current_weight": -3,
        })
    assert excinfo.value.field == "current_weight"


def test_patch_leaves_missing_fields_unset():
    patch = PigPatch.from_json({"notes": "moved to pen 4"})
    assert patch.notes == "moved to pen 4"
    assert patch.current_weight is UNSET
    assert patch.status is UNSET
    assert not patch.is_empty
    assert PigPatch.from_json({}).is_empty


def test_patch_null_clears_but_missing_keeps():
    pig = _pig()
    changed = PigPatch.from_json({"current_weight": None}).apply_to(pig)
    assert changed == ["current_weight"]
    assert pig.current_weight is None
    assert pig.notes == "limps"


def test_patch_rejects_null_status_and_unknown_fields():
    with pytest.raises(ValidationFailed) as excinfo:
        PigPatch.from_json({"status": None})
    assert excinfo.value.field == "status"

    with pytest.raises(ValidationFailed) as excinfo:
        PigPatch.from_json({"tag_id": "RF-2", "birth_date": "2020-01-01"})
    assert excinfo.value.field == "birth_date"


def test_patch_status_to_sold_stamps_sale_date():
    pig = _pig()
    PigPatch.from_json({"status": "sold"}).apply_to(pig, today=date(2024, 7, 1))
    assert pig.status == "sold"
    assert pig.date_sold == date(2024, 7, 1)

    with pytest.raises(InvalidTransition):
        PigPatch.from_json({"status": "deceased"}).apply_to(pig)


def test_weight_request_rules():
    request = WeightRequest.from_json({"weight_kg": "12.5", "recorded_date": "2024-01-01"},
                                      today=date(2024, 1, 1))
    assert request.weight_kg == 12.5

    with pytest.raises(ValidationFailed) as excinfo:
        WeightRequest.from_json({"recorded_date": "2024-01-01"})
    assert excinfo.value.field == "weight_kg"

    with pytest.raises(ValidationFailed) as excinfo:
        WeightRequest.from_json({"weight_kg": 5, "recorded_date": "2024-01-02"}, today=date(2024, 1, 1))
    assert excinfo.value.field == "recorded_date"


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "2"])
def test_sale_request_rejects_bad_quantity(quantity):
    with pytest.raises(ValidationFailed) as excinfo:
        SaleRequest.from_json({"sale_date": "2024-01-01", "sale_price": 100, "quantity": quantity})
    assert excinfo.value.field == "quantity"


def test_validation_failed_body_names_field():
    error = ValidationFailed("bad", field="sale_price")
    assert error.to_dict() == {"error": "bad", "kind": "validation_failed", "field": "sale_price"}
    assert ValidationFailed("bad").to_dict() == {"error": "bad", "kind": "validation_failed"}


def test_patch_applies_to_any_pig_like_object():
    target = SimpleNamespace(current_weight=1.0, notes=None, transition_to=lambda *a, **k: None)
    assert PigPatch(notes="x").apply_to(target) == ["notes"]
    assert target.notes == "x"
