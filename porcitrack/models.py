import uuid
from datetime import date, datetime, timezone
from enum import Enum

from . import db
from .errors import InvalidTransition


def _new_id():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value is not None else None


class Sex(str, Enum):
    MALE = 'male'
    FEMALE = 'female'


class PigStatus(str, Enum):
    ACTIVE = 'active'
    SOLD = 'sold'
    DECEASED = 'deceased'


class RelationshipType(str, Enum):
    MOTHER = 'mother'
    FATHER = 'father'

    @property
    def required_sex(self):
        """The sex the parent pig must have to fill this role."""
        return Sex.FEMALE if self is RelationshipType.MOTHER else Sex.MALE


def _in_clause(column, enum_cls):
    values = ', '.join(f"'{member.value}'" for member in enum_cls)
    return f'{column} IN ({values})'


class Pig(db.Model):
    """A single animal. Pigs are the nodes of the lineage graph."""
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    tag_id = db.Column(db.String(255), unique=True, nullable=False, index=True) # RFID tag, never changes
    manual_id = db.Column(db.String(50), unique=True, nullable=False, index=True)
    birth_date = db.Column(db.Date, nullable=False)
    sex = db.Column(db.String(10), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=PigStatus.ACTIVE.value, index=True)
    current_weight = db.Column(db.Float, nullable=True)
    breed = db.Column(db.String(100), nullable=True)
    date_added_to_farm = db.Column(db.Date, nullable=False, default=date.today)
    date_sold = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    # --- Relationships ---
    # Edges are removed together with either endpoint. passive_deletes lets the
    # database ON DELETE CASCADE handle collections that were never loaded.
    parent_links = db.relationship(
        'BreedingRelationship', foreign_keys='BreedingRelationship.child_pig_id',
        backref='child', lazy=True, cascade='all', passive_deletes=True
    )
    offspring_links = db.relationship(
        'BreedingRelationship', foreign_keys='BreedingRelationship.parent_pig_id',
        backref='parent', lazy=True, cascade='all', passive_deletes=True
    )
    weights = db.relationship('WeightRecord', backref='pig', lazy=True, cascade="all, delete-orphan", passive_deletes=True)
    sales = db.relationship('SaleRecord', backref='pig', lazy=True, cascade="all, delete-orphan", passive_deletes=True)

    # --- Constraints ---
    __table_args__ = (
        db.CheckConstraint(_in_clause('sex', Sex), name='ck_pig_sex'),
        db.CheckConstraint(_in_clause('status', PigStatus), name='ck_pig_status'),
    )

    @property
    def is_active(self):
        return self.status == PigStatus.ACTIVE.value

    def transition_to(self, new_status, on_date=None):
        """
        Moves the pig to a new lifecycle status.
        Only active pigs can leave 'active', and nothing ever returns to it.
        Setting the current status again is a no-op.
        """
        new_status = PigStatus(new_status)
        if new_status.value == self.status:
            return
        if not self.is_active:
            raise InvalidTransition(
                f"Pig '{self.tag_id}' is {self.status}; its status can no longer change."
            )
        if new_status is PigStatus.ACTIVE:
            raise InvalidTransition(f"Pig '{self.tag_id}' cannot be moved back to active.")

        self.status = new_status.value
        if new_status is PigStatus.SOLD:
            self.date_sold = on_date or date.today()

    def to_dict(self):
        """Serializes the Pig object to a dictionary."""
        return {
            'id': self.id,
            'tag_id': self.tag_id,
            'manual_id': self.manual_id,
            'birth_date': _iso(self.birth_date),
            'sex': self.sex,
            'status': self.status,
            'current_weight': self.current_weight,
            'breed': self.breed,
            'date_added_to_farm': _iso(self.date_added_to_farm),
            'date_sold': _iso(self.date_sold),
            'notes': self.notes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Pig {self.tag_id}>'


class BreedingRelationship(db.Model):
    """
    A directed lineage edge: the child pig has the parent pig as its mother
    or father. Edges are append-only; they disappear only when one of the
    two pigs is deleted.
    """
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    relationship_type = db.Column(db.String(20), nullable=False)
    breeding_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    # --- Foreign Keys ---
    child_pig_id = db.Column(db.String(36), db.ForeignKey('pig.id', ondelete='CASCADE'), nullable=False, index=True)
    parent_pig_id = db.Column(db.String(36), db.ForeignKey('pig.id', ondelete='CASCADE'), nullable=False, index=True)

    # --- Constraints ---
    __table_args__ = (
        db.CheckConstraint('child_pig_id != parent_pig_id', name='no_self_breeding'),
        db.CheckConstraint(_in_clause('relationship_type', RelationshipType), name='ck_breeding_relationship_type'),
    )

    def to_dict(self):
        """Serializes the BreedingRelationship object to a dictionary."""
        return {
            'id': self.id,
            'child_pig_id': self.child_pig_id,
            'parent_pig_id': self.parent_pig_id,
            'relationship_type': self.relationship_type,
            'breeding_date': _iso(self.breeding_date),
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }

    def __repr__(self):
        return f'<BreedingRelationship {self.child_pig_id} -{self.relationship_type}-> {self.parent_pig_id}>'


class WeightRecord(db.Model):
    """Represents a single weight measurement for a pig."""
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    weight_kg = db.Column(db.Float, nullable=False)
    recorded_date = db.Column(db.Date, nullable=False, index=True)
    recorded_by = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    # --- Foreign Keys ---
    pig_id = db.Column(db.String(36), db.ForeignKey('pig.id', ondelete='CASCADE'), nullable=False, index=True)

    __table_args__ = (db.CheckConstraint('weight_kg > 0', name='positive_weight'),)

    def to_dict(self):
        tag_id = self.pig.tag_id if self.pig else None
        return {
            'id': self.id,
            'pig_id': self.pig_id,
            'tag_id': tag_id,
            'weight_kg': self.weight_kg,
            'recorded_date': _iso(self.recorded_date),
            'recorded_by': self.recorded_by,
            'notes': self.notes,
        }

    def __repr__(self):
        return f'<WeightRecord for pig {self.pig_id} on {self.recorded_date}>'


class SaleRecord(db.Model):
    """Represents the sale of a pig, marking its exit from the farm."""
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    sale_date = db.Column(db.Date, nullable=False, index=True)
    sale_price = db.Column(db.Float, nullable=False)
    buyer_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    sale_notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)

    # --- Foreign Keys ---
    pig_id = db.Column(db.String(36), db.ForeignKey('pig.id', ondelete='CASCADE'), nullable=False, index=True)

    __table_args__ = (db.CheckConstraint('sale_price > 0', name='positive_price'),)

    def to_dict(self):
        """Serializes the SaleRecord together with the identifiers of the pig sold."""
        return {
            'id': self.id,
            'pig_id': self.pig_id,
            'tag_id': self.pig.tag_id if self.pig else None,
            'manual_id': self.pig.manual_id if self.pig else None,
            'sale_date': _iso(self.sale_date),
            'sale_price': self.sale_price,
            'buyer_name': self.buyer_name,
            'quantity': self.quantity,
            'sale_notes': self.sale_notes,
        }

    def __repr__(self):
        return f'<SaleRecord of pig {self.pig_id} on {self.sale_date}>'
