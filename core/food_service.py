from sqlalchemy.orm import Session
from models.food_item import FoodItem
from core.query import DocumentQuery
from core.validation import cast_field, required_error, required_paths
from core.logger import get_logger

logger = get_logger(__name__)

UPDATE_OPERATORS = ("$set", "$unset", "$inc")


def _coerce_id(food_id) -> int:
    if isinstance(food_id, bool):
        raise ValueError(f"Invalid food item id: {food_id!r}")
    if isinstance(food_id, int):
        return food_id
    if isinstance(food_id, str) and food_id.strip().isdigit():
        return int(food_id)
    raise ValueError(f"Invalid food item id: {food_id!r}")


def create_food_item(db: Session, data: dict) -> FoodItem:
    """
    Validate and insert a new food item.
    Raises ValidationError (nothing is written) when the record is invalid.
    """
    item = FoodItem.from_record(data)
    db.add(item)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(item)
    logger.info(f"Created food item #{item.id}: {item.name}")
    return item


def find_food_items(db: Session, filters: dict = None, projection=None) -> DocumentQuery:
    """Start a query; chain .select(), .sort(), .skip(), .limit(), then .all() or .count()."""
    query = DocumentQuery(db, FoodItem, filters)
    if projection is not None:
        query.select(projection)
    return query


def get_food_item_by_id(db: Session, food_id):
    """Get food item by ID, or None when it does not exist"""
    return db.query(FoodItem).filter(FoodItem.id == _coerce_id(food_id)).first()


def save_food_item(db: Session, item: FoodItem) -> FoodItem:
    """
    Persist changes made to a loaded (or new) item.
    The whole record is validated again, not only the changed fields.
    """
    try:
        item.validate()
    except Exception:
        # drop the in-memory changes so the session stays clean
        db.rollback()
        raise
    db.add(item)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Saved food item #{item.id}")
    return item


def update_food_item(db: Session, food_id, **fields):
    """
    Query first, update later: load the item, assign fields, save.
    Returns the saved item, or None when the id does not exist.
    """
    item = get_food_item_by_id(db, food_id)
    if not item:
        logger.info(f"Food item #{food_id} is not present")
        return None
    item.set(**fields)
    return save_food_item(db, item)


def _split_update(update: dict) -> dict:
    """Normalise an update document into {operator: {field: value}}."""
    if not update:
        raise ValueError("Update document is empty")
    if not any(str(key).startswith("$") for key in update):
        return {"$set": dict(update)}
    ops = {}
    for op, fields in update.items():
        if op not in UPDATE_OPERATORS:
            raise ValueError(f"Unsupported update operator: {op}")
        if not isinstance(fields, dict):
            raise ValueError(f"{op} expects a dict of fields")
        ops[op] = fields
    return ops


def find_by_id_and_update(db: Session, food_id, update: dict, new: bool = False,
                          run_validators: bool = False):
    """
    Update with query: apply $set / $unset / $inc to one item in a single
    transaction while holding its row lock.

    Returns the record before the update, or after it when new=True; None
    when no item has this id. Validators only run when run_validators=True;
    clearing a required field with $unset always raises ValidationError.
    """
    ops = _split_update(update)
    food_id = _coerce_id(food_id)
    try:
        item = (
            db.query(FoodItem)
            .filter(FoodItem.id == food_id)
            .with_for_update()
            .first()
        )
        if not item:
            db.rollback()
            return None
        before = item.to_dict()

        # values are cast to their field types even when validators are off
        for field, value in ops.get("$set", {}).items():
            if field in FoodItem.fields:
                setattr(item, field, cast_field(FoodItem.record_model, field, value))
        for field in ops.get("$unset", {}):
            if field in required_paths(FoodItem.record_model):
                raise required_error(FoodItem.record_model, field)
            if field in FoodItem.fields:
                setattr(item, field, [] if field == "ingredients" else None)
        for field, amount in ops.get("$inc", {}).items():
            if field not in FoodItem.numeric_fields:
                raise ValueError(f"Cannot apply $inc to non-numeric field {field!r}")
            amount = cast_field(FoodItem.record_model, field, amount)
            setattr(item, field, (getattr(item, field) or 0) + (amount or 0))

        if run_validators:
            item.validate()
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Updated food item #{food_id}")
    return item.to_dict() if new else before


def delete_food_item(db: Session, food_id):
    """
    Delete a food item by id.
    Returns the removed record, or None when nothing had this id.
    """
    item = get_food_item_by_id(db, food_id)
    if not item:
        return None
    removed = item.to_dict()
    try:
        db.delete(item)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Deleted food item #{removed['id']}: {removed['name']}")
    return removed
