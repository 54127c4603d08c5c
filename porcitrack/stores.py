"""
SQLAlchemy-backed collaborators of the lineage engine.

Both stores work against the session they are given; they never commit.
Committing (or rolling back) is the caller's decision, so a check-then-insert
sequence stays inside one transaction.
"""

from sqlalchemy import func, or_

from .models import BreedingRelationship, Pig, SaleRecord, WeightRecord


class PigRegistry:
    """Looks pigs up by their internal id or their external identifiers."""

    def __init__(self, session):
        self.session = session

    def find_by_id(self, pig_id):
        if not pig_id:
            return None
        return self.session.get(Pig, pig_id)

    def find_by_tag(self, tag_id):
        return self.session.query(Pig).filter_by(tag_id=tag_id).first()

    def find_by_manual_id(self, manual_id):
        return self.session.query(Pig).filter_by(manual_id=manual_id).first()

    def add(self, pig):
        self.session.add(pig)
        self.session.flush()  # Assigns the id and surfaces unique violations now.
        return pig

    def delete(self, pig):
        self.session.delete(pig)
        self.session.flush()

    def list_pigs(self, status=None, breed=None, search=None, page=1, limit=50):
        """Returns (pigs, total) for one page of the filtered registry, newest first."""
        query = self.session.query(Pig)
        if status:
            query = query.filter(Pig.status == status)
        if breed:
            query = query.filter(Pig.breed == breed)
        if search:
            pattern = f'%{search.lower()}%'
            query = query.filter(or_(
                func.lower(Pig.tag_id).like(pattern),
                func.lower(Pig.manual_id).like(pattern),
            ))

        total = query.count()
        pigs = (query.order_by(Pig.created_at.desc(), Pig.tag_id)
                .offset((page - 1) * limit)
                .limit(limit)
                .all())
        return pigs, total

    def weights_for(self, pig_id):
        return (self.session.query(WeightRecord)
                .filter_by(pig_id=pig_id)
                .order_by(WeightRecord.recorded_date)
                .all())

    def sales(self):
        return (self.session.query(SaleRecord)
                .order_by(SaleRecord.sale_date.desc())
                .all())

    def offspring_counts(self):
        """Every pig with its number of offspring edges, youngest first."""
        offspring_count = func.count(BreedingRelationship.id)
        return (self.session.query(Pig, offspring_count)
                .outerjoin(BreedingRelationship, BreedingRelationship.parent_pig_id == Pig.id)
                .group_by(Pig.id)
                .order_by(Pig.birth_date.desc(), Pig.tag_id)
                .all())


class EdgeStore:
    """Creates and queries breeding relationships (child -> parent edges)."""

    def __init__(self, session):
        self.session = session

    def insert(self, edge):
        self.session.add(edge)
        self.session.flush()
        return edge

    def query_by_child(self, pig_id):
        """Edges where the pig is the child, i.e. the pig's parent links."""
        return (self.session.query(BreedingRelationship)
                .filter(BreedingRelationship.child_pig_id == pig_id)
                .order_by(BreedingRelationship.breeding_date.desc(), BreedingRelationship.created_at)
                .all())

    def query_by_parent(self, pig_id):
        """Edges where the pig is the parent, i.e. links to its offspring."""
        return (self.session.query(BreedingRelationship)
                .filter(BreedingRelationship.parent_pig_id == pig_id)
                .order_by(BreedingRelationship.breeding_date.desc(), BreedingRelationship.created_at)
                .all())
