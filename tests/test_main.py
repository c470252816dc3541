"""Tests for the walkthrough script."""

import logging

from core.food_service import find_food_items
from main import FISH_FRY, main, save_food_item


def test_walkthrough_runs_end_to_end(database, caplog):
    """Test the full create/query/update/delete sequence."""
    with caplog.at_level(logging.INFO):
        main(database)

    assert "Why any item less than 10?" in caplog.text
    assert "Spicy is not supported" in caplog.text
    assert "'name': 'Fish Masala'" in caplog.text
    assert "Deleting again: None" in caplog.text
    with database.session() as db:
        assert find_food_items(db).count() == 0


def test_save_logs_each_failing_field(db, caplog):
    """Test validation failures are logged one field per line."""
    with caplog.at_level(logging.WARNING):
        assert save_food_item(db, {**FISH_FRY, "rating": 7, "category": "Spicy"}) is None

    messages = [record.getMessage() for record in caplog.records]
    assert "category: Spicy is not supported" in messages
    assert "rating: please send rating between 0 and 5" in messages
