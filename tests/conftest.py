import pytest

from core.db import Database


@pytest.fixture
def database():
    """Fresh in-memory database per test."""
    database = Database("sqlite://", echo=False)
    database.open()
    database.create_tables()
    yield database
    database.close()


@pytest.fixture
def db(database):
    with database.session() as session:
        yield session


@pytest.fixture
def fish_fry():
    return {
        "name": "Fish Fry",
        "description": "Delicious Food",
        "category": "Non Veg",
        "price": 200,
        "is_available": True,
        "rating": 4.5,
        "ingredients": ["mutton", "basmathi rice", "spices"],
    }


@pytest.fixture
def make_record(fish_fry):
    """Build a food item record from the Fish Fry record with some keys replaced or removed."""
    def _make(drop=(), **overrides):
        record = {key: value for key, value in fish_fry.items() if key not in drop}
        record.update(overrides)
        return record
    return _make
