"""Shared fixtures: an app on a fresh in-memory database per test."""

from __future__ import annotations

from datetime import date
from typing import Generator

import pytest

from porcitrack import create_app, db
from porcitrack.lineage import LineageEngine
from porcitrack.models import Pig


@pytest.fixture()
def app(monkeypatch) -> Generator:
    """Provide a configured Flask application with its app context pushed."""
    monkeypatch.setenv("PORCITRACK_DATABASE_URL", "sqlite://")
    flask_app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite://"})
    with flask_app.app_context():
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    """Flask test client fixture."""
    return app.test_client()


@pytest.fixture()
def engine(app) -> LineageEngine:
    return LineageEngine(db.session)


@pytest.fixture()
def make_pig(app):
    """Factory that registers a pig directly in the database."""
    counter = {"n": 0}

    def _make(tag_id=None, sex="female", birth_date=date(2023, 1, 1), **extra) -> Pig:
        counter["n"] += 1
        tag = tag_id or f"RFID-{counter['n']:04d}"
        pig = Pig(
            tag_id=tag,
            manual_id=extra.pop("manual_id", f"M-{tag}"),
            birth_date=birth_date,
            sex=sex,
            **extra,
        )
        db.session.add(pig)
        db.session.commit()
        return pig

    return _make


@pytest.fixture()
def family(make_pig):
    """
    P1 (female, 2023-01-01) and P2 (male, 2022-06-01) are the mother and
    father of P3 (female, 2024-01-01). Both edges are dated on P3's birth
    date, the earliest date the breeding rules accept.
    """
    p1 = make_pig("P1", sex="female", birth_date=date(2023, 1, 1))
    p2 = make_pig("P2", sex="male", birth_date=date(2022, 6, 1))
    p3 = make_pig("P3", sex="female", birth_date=date(2024, 1, 1))
    return p1, p2, p3


@pytest.fixture()
def linked_family(family, engine):
    p1, p2, p3 = family
    engine.record_breeding(p3.id, p1.id, "mother", date(2024, 1, 1))
    engine.record_breeding(p3.id, p2.id, "father", date(2024, 1, 1))
    return p1, p2, p3
