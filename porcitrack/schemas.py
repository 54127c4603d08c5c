"""
Typed request structures, one per write operation.

Each ``from_json`` turns an untrusted JSON body into a frozen dataclass or
raises ``ValidationFailed`` naming the offending field, so the routes and the
lineage engine only ever see well-typed values.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Any, Dict, Optional, Union

from .errors import ValidationFailed
from .models import PigStatus, RelationshipType, Sex

DATE_FORMAT = '%Y-%m-%d'


class _Unset:
    """Marks a patch field the client did not send."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return 'UNSET'


UNSET: Any = _Unset()


# --- Field parsers ---

def _body(data) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be a JSON object.')
    return data


def _required_str(data, key) -> str:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationFailed(f"The '{key}' field is required.", field=key)
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationFailed(f"The '{key}' field must be a string.", field=key)
    return str(value).strip()


def _optional_str(data, key) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationFailed(f"The '{key}' field must be a string.", field=key)
    return value.strip() or None


def parse_date(value, key) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationFailed(f"The '{key}' field is required (YYYY-MM-DD).", field=key)
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise ValidationFailed(f"Invalid date format for '{key}'. Please use YYYY-MM-DD.", field=key)


def _positive_number(value, key) -> float:
    if isinstance(value, bool):
        raise ValidationFailed(f"The '{key}' field must be a number.", field=key)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"The '{key}' field must be a number.", field=key)
    if number <= 0:
        raise ValidationFailed(f"The '{key}' field must be positive.", field=key)
    return number


def _choice(value, enum_cls, key):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValidationFailed(f"The '{key}' field must be one of: {allowed}.", field=key)


# --- Requests ---

@dataclass(frozen=True)
class BreedingRequest:
    child_pig_id: str
    parent_pig_id: str
    relationship_type: RelationshipType
    breeding_date: date
    notes: Optional[str] = None

    @classmethod
    def from_json(cls, data) -> 'BreedingRequest':
        data = _body(data)
        return cls(
            child_pig_id=_required_str(data, 'child_pig_id'),
            parent_pig_id=_required_str(data, 'parent_pig_id'),
            relationship_type=_choice(_required_str(data, 'relationship_type'), RelationshipType, 'relationship_type'),
            breeding_date=parse_date(data.get('breeding_date'), 'breeding_date'),
            notes=_optional_str(data, 'notes'),
        )


@dataclass(frozen=True)
class PigCreateRequest:
    tag_id: str
    manual_id: str
    birth_date: date
    sex: Sex
    status: PigStatus = PigStatus.ACTIVE
    breed: Optional[str] = None
    notes: Optional[str] = None
    current_weight: Optional[float] = None

    @classmethod
    def from_json(cls, data, today: Optional[date] = None) -> 'PigCreateRequest':
        data = _body(data)
        birth_date = parse_date(data.get('birth_date'), 'birth_date')
        if birth_date > (today or date.today()):
            raise ValidationFailed('Date of birth cannot be in the future.', field='birth_date')

        status = data.get('status')
        weight = data.get('current_weight')
        return cls(
            tag_id=_required_str(data, 'tag_id'),
            manual_id=_required_str(data, 'manual_id'),
            birth_date=birth_date,
            sex=_choice(data.get('sex'), Sex, 'sex'),
            status=_choice(status, PigStatus, 'status') if status is not None else PigStatus.ACTIVE,
            breed=_optional_str(data, 'breed'),
            notes=_optional_str(data, 'notes'),
            current_weight=_positive_number(weight, 'current_weight') if weight is not None else None,
        )


@dataclass(frozen=True)
class PigPatch:
    """
    A partial update of a pig. Every field is either a new value (which may
    be None, meaning "clear it") or UNSET, meaning "leave it unchanged".
    """
    current_weight: Union[float, None, _Unset] = UNSET
    status: Union[PigStatus, _Unset] = UNSET
    notes: Union[str, None, _Unset] = UNSET

    @classmethod
    def from_json(cls, data) -> 'PigPatch':
        data = _body(data)
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ValidationFailed(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}.", field=sorted(unknown)[0]
            )

        patch = {}
        if 'current_weight' in data:
            weight = data['current_weight']
            patch['current_weight'] = None if weight is None else _positive_number(weight, 'current_weight')
        if 'status' in data:
            if data['status'] is None:
                raise ValidationFailed("The 'status' field cannot be cleared.", field='status')
            patch['status'] = _choice(data['status'], PigStatus, 'status')
        if 'notes' in data:
            patch['notes'] = _optional_str(data, 'notes')
        return cls(**patch)

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is UNSET for f in fields(self))

    def apply_to(self, pig, today: Optional[date] = None):
        """Applies the set fields to the pig and returns the names of those fields."""
        changed = []
        if self.status is not UNSET:
            pig.transition_to(self.status, on_date=today)
            changed.append('status')
        if self.current_weight is not UNSET:
            pig.current_weight = self.current_weight
            changed.append('current_weight')
        if self.notes is not UNSET:
            pig.notes = self.notes
            changed.append('notes')
        return changed


@dataclass(frozen=True)
class WeightRequest:
    weight_kg: float
    recorded_date: date
    recorded_by: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_json(cls, data, today: Optional[date] = None) -> 'WeightRequest':
        data = _body(data)
        if data.get('weight_kg') is None:
            raise ValidationFailed("The 'weight_kg' field is required.", field='weight_kg')
        recorded_date = parse_date(data.get('recorded_date'), 'recorded_date')
        if recorded_date > (today or date.today()):
            raise ValidationFailed('Recorded date cannot be in the future.', field='recorded_date')
        return cls(
            weight_kg=_positive_number(data['weight_kg'], 'weight_kg'),
            recorded_date=recorded_date,
            recorded_by=_optional_str(data, 'recorded_by'),
            notes=_optional_str(data, 'notes'),
        )


@dataclass(frozen=True)
class SaleRequest:
    sale_date: date
    sale_price: float
    buyer_name: Optional[str] = None
    quantity: int = 1
    sale_notes: Optional[str] = None

    @classmethod
    def from_json(cls, data) -> 'SaleRequest':
        data = _body(data)
        if data.get('sale_price') is None:
            raise ValidationFailed("The 'sale_price' field is required.", field='sale_price')

        quantity = data.get('quantity', 1)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationFailed("The 'quantity' field must be a positive integer.", field='quantity')

        return cls(
            sale_date=parse_date(data.get('sale_date'), 'sale_date'),
            sale_price=_positive_number(data['sale_price'], 'sale_price'),
            buyer_name=_optional_str(data, 'buyer_name'),
            quantity=quantity,
            sale_notes=_optional_str(data, 'sale_notes'),
        )
