from core.config import DATABASE_URL
from core.db import Database
from core.food_service import create_food_item, find_food_items
from core.logger import get_logger

logger = get_logger(__name__)

SAMPLE_FOOD_ITEMS = [
    {"name": "Fish Fry", "description": "Delicious Food", "category": "Non Veg", "price": 200,
     "is_available": True, "rating": 4.5, "ingredients": ["mutton", "basmathi rice", "spices"]},
    {"name": "Mango Pappu", "description": "Lentils cooked with raw mango", "category": "Veg", "price": 120,
     "is_available": True, "rating": 4.2, "ingredients": ["toor dal", "mango", "turmeric"]},
    {"name": "Chicken Biryani", "description": "Dum cooked rice with chicken", "category": "Non Veg", "price": 250,
     "is_available": True, "rating": 4.8, "ingredients": ["chicken", "basmathi rice", "spices"]},
    {"name": "Tomato Pappu", "description": "Lentils with tomato", "category": "Veg", "price": 90,
     "is_available": True, "rating": 3.9, "ingredients": ["toor dal", "tomato"]},
    {"name": "Gongura Mutton", "description": "Mutton curry with sorrel leaves", "category": "Non Veg",
     "is_available": False, "rating": 4.6, "ingredients": ["mutton", "gongura"]},
]


def seed_food_items(db):
    if find_food_items(db).count():
        logger.info("Food items already seeded.")
        return
    for data in SAMPLE_FOOD_ITEMS:
        create_food_item(db, data)
    logger.info(f"Seeded {len(SAMPLE_FOOD_ITEMS)} sample food items.")


def init_db(database: Database):
    logger.info("Rebuilding database (drop/create)...")
    database.drop_tables()
    database.create_tables()
    logger.info("Tables created: food_items, food_item_ingredients")

    with database.session() as db:
        seed_food_items(db)
    logger.info("Database initialization complete!")


if __name__ == "__main__":
    with Database(DATABASE_URL) as database:
        init_db(database)
