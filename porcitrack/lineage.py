"""
Lineage graph engine.

The breeding relationships form a directed graph whose edges point from a
child pig to each of its parents. The engine answers ancestry questions over
that graph and refuses edges that would breed a pig with one of its own
ancestors or make a pig its own ancestor.

Every traversal is an explicit breadth-first worklist with a visited set, so
it terminates even if the stored data already contains a cycle.
"""

from __future__ import annotations

import logging
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterator, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from .errors import (BreedingBeforeBirth, CycleDetected, DuplicateParent,
                     InvalidRelationship, PigNotFound, PorciTrackError,
                     SelfBreeding, SexMismatch, StoreFailure,
                     ValidationFailed)
from .models import BreedingRelationship, Pig, RelationshipType
from .stores import EdgeStore, PigRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_GENERATIONS = 3


@dataclass(frozen=True)
class AncestorEntry:
    pig: Pig
    relationship_type: RelationshipType
    generation: int
    child_id: str  # the pig this ancestor is a parent of

    def to_dict(self) -> Dict:
        return {
            **self.pig.to_dict(),
            'relationship_type': self.relationship_type.value,
            'generation': self.generation,
            'child_id': self.child_id,
        }


@dataclass(frozen=True)
class OffspringEntry:
    pig: Pig
    relationship_type: RelationshipType
    breeding_date: date
    relationship_id: str

    def to_dict(self) -> Dict:
        return {
            **self.pig.to_dict(),
            'relationship_type': self.relationship_type.value,
            'breeding_date': self.breeding_date.isoformat(),
            'relationship_id': self.relationship_id,
        }


@dataclass(frozen=True)
class HistoryEntry:
    """One edge seen from a pig, together with the pig on the other end."""
    relationship: BreedingRelationship
    counterpart: Pig

    def to_dict(self) -> Dict:
        return {
            **self.relationship.to_dict(),
            'tag_id': self.counterpart.tag_id,
            'manual_id': self.counterpart.manual_id,
            'sex': self.counterpart.sex,
        }


@dataclass(frozen=True)
class BreedingHistory:
    as_parent: List[HistoryEntry] = field(default_factory=list)
    as_child: List[HistoryEntry] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'as_parent': [entry.to_dict() for entry in self.as_parent],
            'as_child': [entry.to_dict() for entry in self.as_child],
        }


@dataclass(frozen=True)
class Genealogy:
    pig: Pig
    ancestors: List[AncestorEntry]
    offspring: List[OffspringEntry]

    def to_dict(self) -> Dict:
        return {
            'pig': self.pig.to_dict(),
            'ancestors': [entry.to_dict() for entry in self.ancestors],
            'offspring': [entry.to_dict() for entry in self.offspring],
        }


class LineageEngine:
    """
    Validates and records breeding relationships and walks the lineage graph.

    The engine is handed its session explicitly. ``record_breeding`` runs its
    lookups, the ancestor traversals and the insert inside that session's
    transaction and commits at the end; any failure rolls the whole attempt
    back, so an edge is either fully stored or not stored at all.

    Two concurrent requests can still each pass the cycle check and together
    close a cycle. Closing that window needs serializable isolation from the
    database; the engine does not lock.
    """

    def __init__(self, session, registry=None, edges=None,
                 max_generations: int = DEFAULT_MAX_GENERATIONS,
                 unique_parent_labels: bool = False):
        if max_generations < 1:
            raise ValueError('max_generations must be at least 1')
        self.session = session
        self.registry = registry if registry is not None else PigRegistry(session)
        self.edges = edges if edges is not None else EdgeStore(session)
        self.max_generations = max_generations
        self.unique_parent_labels = unique_parent_labels

    # --- Transactions ---

    @contextmanager
    def _transaction(self, action: str) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except PorciTrackError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception('Store failure while %s', action)
            raise StoreFailure(f'Failed to {action}.') from exc

    @contextmanager
    def _reading(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception('Store failure while %s', action)
            raise StoreFailure(f'Failed to {action}.') from exc

    def _require_pig(self, pig_id: str, role: str = 'pig') -> Pig:
        pig = self.registry.find_by_id(pig_id)
        if pig is None:
            raise PigNotFound(pig_id, role=role)
        return pig

    # --- Writes ---

    def record_breeding(self, child_id: str, parent_id: str, relationship_type,
                        breeding_date: date, notes: Optional[str] = None) -> BreedingRelationship:
        """Stores a new child -> parent edge after checking every precondition."""
        try:
            relationship_type = RelationshipType(relationship_type)
        except ValueError:
            raise InvalidRelationship(
                f"Unknown relationship type '{relationship_type}'; expected 'mother' or 'father'."
            )

        with self._transaction('record breeding'):
            child = self._require_pig(child_id, 'child')
            parent = self._require_pig(parent_id, 'parent')
            self._check_relationship(child, parent, relationship_type, breeding_date)

            edge = self.edges.insert(BreedingRelationship(
                child_pig_id=child.id,
                parent_pig_id=parent.id,
                relationship_type=relationship_type.value,
                breeding_date=breeding_date,
                notes=notes,
            ))

        logger.info('Recorded %s %s for pig %s (edge %s)',
                    relationship_type.value, parent.tag_id, child.tag_id, edge.id)
        return edge

    def _check_relationship(self, child: Pig, parent: Pig,
                            relationship_type: RelationshipType, breeding_date: date) -> None:
        # The order matters: callers get the first failing rule.
        if child.id == parent.id:
            raise SelfBreeding(child.id)

        if breeding_date < child.birth_date:
            raise BreedingBeforeBirth(breeding_date, child.birth_date)

        if parent.id in self.ancestor_ids(child.id):
            logger.info('Rejected breeding: %s is already an ancestor of %s', parent.tag_id, child.tag_id)
            raise CycleDetected(
                f"Pig '{parent.tag_id}' is already an ancestor of '{child.tag_id}'; "
                'cannot breed offspring with ancestor.'
            )
        if child.id in self.ancestor_ids(parent.id):
            logger.info('Rejected breeding: %s descends from %s', parent.tag_id, child.tag_id)
            raise CycleDetected(
                f"Pig '{parent.tag_id}' descends from '{child.tag_id}'; "
                f"'{child.tag_id}' would become its own ancestor."
            )

        required = relationship_type.required_sex
        if parent.sex != required.value:
            raise SexMismatch(relationship_type.value, required.value, parent.sex)

        if self.unique_parent_labels:
            for edge in self.edges.query_by_child(child.id):
                if edge.relationship_type == relationship_type.value:
                    raise DuplicateParent(child.tag_id, relationship_type.value)

    # --- Traversals ---

    def ancestor_ids(self, pig_id: str) -> Set[str]:
        """
        The ancestor closure: ids of every pig reachable from ``pig_id`` by
        following parent edges, at any depth. ``pig_id`` itself is only in
        the result if the stored graph already contains a cycle through it.
        """
        seen: Set[str] = set()
        queue = deque([pig_id])
        while queue:
            current = queue.popleft()
            for edge in self.edges.query_by_child(current):
                if edge.parent_pig_id not in seen:
                    seen.add(edge.parent_pig_id)
                    queue.append(edge.parent_pig_id)
        return seen

    def is_ancestor(self, candidate_id: str, pig_id: str) -> bool:
        with self._reading('check ancestry'):
            return candidate_id in self.ancestor_ids(pig_id)

    def _generation_limit(self, max_generations: Optional[int]) -> int:
        if max_generations is None:
            return self.max_generations
        if max_generations < 1:
            raise ValidationFailed('generations must be at least 1.', field='generations')
        return min(max_generations, self.max_generations)

    def get_ancestors(self, pig_id: str, max_generations: Optional[int] = None) -> List[AncestorEntry]:
        """
        Parents (generation 1), grandparents (2) and so on up to
        ``max_generations``, ordered by generation and then relationship type.

        An ancestor reachable along several paths is listed once per path, so
        with two parents per pig the result roughly doubles with each generation.
        A pig already on the current path is not expanded again.
        """
        limit = self._generation_limit(max_generations)

        with self._reading('fetch ancestors'):
            self._require_pig(pig_id)
            pigs: Dict[str, Optional[Pig]] = {}
            found: List[AncestorEntry] = []
            queue = deque([(pig_id, 1, frozenset([pig_id]))])

            while queue:
                child_id, generation, path = queue.popleft()
                for edge in self.edges.query_by_child(child_id):
                    parent_id = edge.parent_pig_id
                    if parent_id in path:
                        logger.warning('Lineage cycle through pig %s; not expanding it again', parent_id)
                        continue
                    if parent_id not in pigs:
                        pigs[parent_id] = self.registry.find_by_id(parent_id)
                    parent = pigs[parent_id]
                    if parent is None:
                        continue

                    found.append(AncestorEntry(
                        pig=parent,
                        relationship_type=RelationshipType(edge.relationship_type),
                        generation=generation,
                        child_id=child_id,
                    ))
                    if generation < limit:
                        queue.append((parent_id, generation + 1, path | {parent_id}))

        # sorted() is stable, so equal keys keep breadth-first order.
        return sorted(found, key=lambda entry: (entry.generation, entry.relationship_type.value))

    def get_descendants(self, pig_id: str) -> List[OffspringEntry]:
        """Direct offspring only, newest breeding first."""
        with self._reading('fetch offspring'):
            self._require_pig(pig_id)
            offspring = []
            for edge in self.edges.query_by_parent(pig_id):
                child = self.registry.find_by_id(edge.child_pig_id)
                if child is None:
                    continue
                offspring.append(OffspringEntry(
                    pig=child,
                    relationship_type=RelationshipType(edge.relationship_type),
                    breeding_date=edge.breeding_date,
                    relationship_id=edge.id,
                ))
        return sorted(offspring, key=lambda entry: entry.breeding_date, reverse=True)

    def get_breeding_history(self, pig_id: str) -> BreedingHistory:
        with self._reading('fetch breeding history'):
            self._require_pig(pig_id)
            as_parent = self._history(self.edges.query_by_parent(pig_id), lambda e: e.child_pig_id)
            as_child = self._history(self.edges.query_by_child(pig_id), lambda e: e.parent_pig_id)
        return BreedingHistory(as_parent=as_parent, as_child=as_child)

    def _history(self, edges, counterpart_of) -> List[HistoryEntry]:
        entries = []
        for edge in edges:
            other = self.registry.find_by_id(counterpart_of(edge))
            if other is not None:
                entries.append(HistoryEntry(relationship=edge, counterpart=other))
        return sorted(entries, key=lambda entry: entry.relationship.breeding_date, reverse=True)

    def get_genealogy(self, tag_id: str) -> Genealogy:
        """The pig found by tag, its ancestors up to the generation cap and its offspring."""
        with self._reading('fetch genealogy'):
            pig = self.registry.find_by_tag(tag_id)
        if pig is None:
            raise PigNotFound(tag_id)

        return Genealogy(
            pig=pig,
            ancestors=self.get_ancestors(pig.id, self.max_generations),
            offspring=self.get_descendants(pig.id),
        )
