from typing import Annotated, ClassVar, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError
from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy.ext.orderinglist import ordering_list
from core.db import Base
from core.validation import validate_record


def _not_blank(value: str) -> str:
    if value == "":
        raise PydanticCustomError("missing", "Field required")
    return value


def _as_list(value):
    # a lone ingredient is a one-element list
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


RequiredText = Annotated[str, AfterValidator(_not_blank)]
Ingredients = Annotated[List[str], BeforeValidator(_as_list)]


class FoodItemRecord(BaseModel):
    """Fields of a food item as they are validated before every write."""

    model_config = ConfigDict(title="FoodItem", extra="ignore")

    error_messages: ClassVar[dict] = {
        ("category", "literal_error"): "{input} is not supported",
        ("rating", "missing"): "Please send rating",
    }

    name: RequiredText
    description: RequiredText
    category: Literal["Veg", "Non Veg"]
    is_available: Optional[bool] = None
    # declared after is_available so its validator can read it
    price: Optional[float] = Field(default=None, validate_default=True)
    rating: float
    ingredients: Ingredients = Field(default_factory=list)

    @field_validator("price")
    @classmethod
    def check_price(cls, value: Optional[float], info: ValidationInfo) -> Optional[float]:
        if value is None:
            # Only items on sale need a price
            if info.data.get("is_available"):
                raise PydanticCustomError("missing", "Field required")
            return value
        if value < 10:
            raise PydanticCustomError("min", "Why any item less than 10?")
        if value > 1000:
            raise PydanticCustomError("max", "more than 1000, any item should not sell")
        return value

    @field_validator("rating")
    @classmethod
    def check_rating(cls, value: float) -> float:
        if not 0 <= value <= 5:
            raise PydanticCustomError("user_defined", "please send rating between 0 and 5")
        return value

class FoodItem(Base):
    __tablename__ = "food_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=False)
    category = Column(String, nullable=False)  # Veg, Non Veg
    price = Column(Float, nullable=True)
    is_available = Column(Boolean, nullable=True)
    rating = Column(Float, nullable=False)

    # Relationships
    ingredient_rows = relationship(
        "FoodItemIngredient",
        back_populates="food",
        order_by="FoodItemIngredient.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    ingredients = association_proxy(
        "ingredient_rows", "name", creator=lambda name: FoodItemIngredient(name=name)
    )

    record_model = FoodItemRecord
    fields = tuple(FoodItemRecord.model_fields)
    numeric_fields = ("price", "rating")

    @classmethod
    def from_record(cls, record: dict) -> "FoodItem":
        """Validate a candidate record and build an unsaved FoodItem from it."""
        item = cls()
        item.apply(validate_record(cls.record_model, record))
        return item

    def set(self, **fields):
        """Assign several fields at once; unknown fields are ignored."""
        for key, value in fields.items():
            if key in self.fields:
                setattr(self, key, value)
        return self

    def apply(self, values: dict):
        for key, value in values.items():
            # unchanged ingredient lists would otherwise be deleted and re-inserted
            if getattr(self, key) == value:
                continue
            setattr(self, key, value)

    def validate(self):
        """Re-validate the whole record, writing cast values back."""
        self.apply(validate_record(self.record_model, self.to_record()))
        return self

    def to_record(self) -> dict:
        record = {path: getattr(self, path) for path in self.fields}
        record["ingredients"] = list(self.ingredients)
        return record

    def to_dict(self) -> dict:
        return {"id": self.id, **self.to_record()}

    def __repr__(self):
        return f"<FoodItem {self.id}: {self.name}>"


class FoodItemIngredient(Base):
    __tablename__ = "food_item_ingredients"

    id = Column(Integer, primary_key=True, index=True)
    food_id = Column(Integer, ForeignKey("food_items.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    name = Column(String, nullable=False)

    # Relationships
    food = relationship("FoodItem", back_populates="ingredient_rows")
