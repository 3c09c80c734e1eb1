"""Tests for the ORM mapping of the booking aggregate."""

from sqlalchemy.orm import configure_mappers

import app.models  # noqa: F401
from app.database import Base
from app.models.booking import Booking


def test_no_relationship_uses_noload():
    configure_mappers()
    loaders = {
        (mapper.class_.__name__, rel.key): rel.lazy
        for mapper in Base.registry.mappers
        for rel in mapper.relationships
    }
    assert loaders
    assert [key for key, lazy in loaders.items() if lazy == "noload"] == []


def test_booking_children_load_eagerly():
    relationships = Booking.__mapper__.relationships
    for key in ("guest", "rooms", "extra_charges", "payments"):
        assert relationships[key].lazy == "selectin", key
