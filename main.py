import re

from sqlalchemy.exc import SQLAlchemyError

from core.config import DATABASE_URL
from core.db import Database
from core.food_service import (
    create_food_item,
    find_food_items,
    update_food_item,
    find_by_id_and_update,
    delete_food_item,
)
from core.logger import get_logger
from core.validation import ValidationError, log_validation_errors

logger = get_logger(__name__)

FISH_FRY = {
    "name": "Fish Fry",
    "description": "Delicious Food",
    "category": "Non Veg",
    "price": 200,
    "is_available": True,
    "rating": 4.5,
    "ingredients": ["mutton", "basmathi rice", "spices"],
}


def save_food_item(db, data):
    try:
        item = create_food_item(db, data)
        logger.info(f"Saved: {item.to_dict()}")
        return item
    except ValidationError as ex:
        log_validation_errors(logger, ex)
        return None


def show_food_items(db):
    # Equality
    for record in find_food_items(db, {"name": "Fish Fry"}):
        logger.info(f"By name: {record}")

    # Projection, sort and limit
    top = find_food_items(db).select("name price").sort("-price").limit(2).all()
    logger.info(f"Two most expensive: {top}")

    # Comparison operators
    mid_range = find_food_items(db, {"price": {"$gt": 100, "$lte": 250}}).select("name price").all()
    logger.info(f"Priced 100-250: {mid_range}")

    # Membership on a list field
    with_meat = find_food_items(db, {"ingredients": {"$in": ["chicken", "mutton"]}}).select("name").all()
    logger.info(f"With chicken or mutton: {with_meat}")

    # Logical operators
    popular = (
        find_food_items(db)
        .select("name price rating")
        .or_([{"rating": {"$gte": 4.5}}, {"ingredients": {"$in": ["chicken", "mutton"]}}])
        .all()
    )
    logger.info(f"Popular or meaty: {popular}")

    # Regular expression
    fries = find_food_items(db, {"name": re.compile("fry$", re.IGNORECASE)}).select("name").all()
    logger.info(f"Ending with 'fry': {fries}")

    # Count and skip
    logger.info(f"Total food items: {find_food_items(db).count()}")
    logger.info(f"Skipping the first: {find_food_items(db).select({'name': 1, 'price': 1}).skip(1).all()}")


def main(database: Database):
    with database.session() as db:
        item = save_food_item(db, FISH_FRY)
        # Missing fields and out of range values are reported per field
        save_food_item(db, {"category": "Spicy", "price": 5, "is_available": True, "rating": 5.5})

        show_food_items(db)

        if item is None:
            return

        try:
            updated = update_food_item(db, item.id, name="Fish Curry", price=250)
            logger.info(f"Updated: {updated.to_dict()}")
        except ValidationError as ex:
            log_validation_errors(logger, ex)

        result = find_by_id_and_update(db, item.id, {"$set": {"name": "Fish Masala", "price": 300}}, new=True)
        logger.info(f"Updated with query: {result}")

        removed = delete_food_item(db, item.id)
        logger.info(f"Deleted: {removed}")
        logger.info(f"Deleting again: {delete_food_item(db, item.id)}")


if __name__ == "__main__":
    try:
        with Database(DATABASE_URL) as database:
            database.create_tables()
            main(database)
    except SQLAlchemyError as ex:
        logger.error(f"Database operation failed: {ex}")
        raise SystemExit(1)
