"""Tests for the database handle lifecycle."""

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from core.db import Database
from core.food_service import create_food_item, find_food_items
from init_db import SAMPLE_FOOD_ITEMS, init_db
from models.food_item import FoodItem


class TestDatabase:
    """Tests for opening, closing and scoping sessions."""

    def test_open_and_close(self):
        """Test explicit open/close."""
        database = Database("sqlite://")
        assert not database.is_open

        assert database.open() is database
        assert database.is_open

        database.close()
        assert not database.is_open

    def test_context_manager_closes(self):
        """Test leaving the with-block releases the connection."""
        with Database("sqlite://") as database:
            assert database.is_open
        assert not database.is_open

    def test_context_manager_closes_on_error(self):
        """Test the handle is closed even when the block fails."""
        database = Database("sqlite://")
        with pytest.raises(RuntimeError):
            with database:
                raise RuntimeError("boom")
        assert not database.is_open

    def test_unreachable_database(self, tmp_path):
        """Test a connection failure surfaces as OperationalError."""
        database = Database(f"sqlite:///{tmp_path / 'missing' / 'homefoods.db'}")
        with pytest.raises(OperationalError):
            database.open()
        assert not database.is_open

    def test_session_requires_open_database(self):
        """Test sessions cannot be taken from a closed handle."""
        with pytest.raises(RuntimeError):
            with Database("sqlite://").session():
                pass

    def test_create_and_drop_tables(self, database):
        """Test table management."""
        assert {"food_items", "food_item_ingredients"} <= set(inspect(database.engine).get_table_names())
        database.drop_tables()
        assert inspect(database.engine).get_table_names() == []

    def test_session_commits(self, database, fish_fry):
        """Test work done in a session is committed on exit."""
        with database.session() as db:
            create_food_item(db, fish_fry)
        with database.session() as db:
            assert find_food_items(db).count() == 1

    def test_session_rolls_back_on_error(self, database, fish_fry):
        """Test pending work is discarded when the block raises."""
        with pytest.raises(RuntimeError):
            with database.session() as db:
                db.add(FoodItem.from_record(fish_fry))
                raise RuntimeError("boom")
        with database.session() as db:
            assert find_food_items(db).count() == 0

    def test_file_database(self, tmp_path, fish_fry):
        """Test records persist across handles on a file database."""
        url = f"sqlite:///{tmp_path / 'homefoods.db'}"
        with Database(url) as database:
            database.create_tables()
            with database.session() as db:
                create_food_item(db, fish_fry)

        with Database(url) as database:
            with database.session() as db:
                assert find_food_items(db, {"name": "Fish Fry"}).count() == 1

    def test_init_db_rebuilds_and_seeds(self, database, fish_fry):
        """Test init_db drops old rows and seeds the samples once."""
        with database.session() as db:
            create_food_item(db, {**fish_fry, "name": "Leftover"})

        init_db(database)
        init_db(database)

        with database.session() as db:
            assert find_food_items(db).count() == len(SAMPLE_FOOD_ITEMS)
            assert find_food_items(db, {"name": "Leftover"}).count() == 0
