# core/validation.py
"""
Record validation on top of pydantic.

Record models are pydantic BaseModels validated in lax mode, so "250"
becomes 250.0 and "yes" becomes True. This module turns pydantic's error
list into one message per field path, worded the way document mappers word
them:

    Path `name` is required.
    Cast to Number failed for value "abc" at path "rating"

A model can reword one error of one path with an `error_messages` class
attribute keyed by (path, error type). Templates see `{path}`, `{input}` and
the error context (`{ge}`, `{min_length}`, ...).
"""
from typing import Annotated, Any, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

DEFAULT_MESSAGES = {
    "missing": "Path `{path}` is required.",
    "greater_than_equal": "Path `{path}` ({input}) is less than minimum allowed value ({ge}).",
    "greater_than": "Path `{path}` ({input}) must be greater than {gt}.",
    "less_than_equal": "Path `{path}` ({input}) is more than maximum allowed value ({le}).",
    "less_than": "Path `{path}` ({input}) must be less than {lt}.",
    "literal_error": "`{input}` is not a valid enum value for path `{path}`.",
    "string_pattern_mismatch": "Path `{path}` is invalid ({input}).",
    "string_too_short": "Path `{path}` (`{input}`) is shorter than the minimum allowed length ({min_length}).",
    "string_too_long": "Path `{path}` (`{input}`) is longer than the maximum allowed length ({max_length}).",
}

CAST_MESSAGE = 'Cast to {type} failed for value "{input}" at path "{path}"'

# pydantic error type -> name of the type the value could not be cast to
CAST_TYPES = {
    "string_type": "String",
    "float_type": "Number",
    "float_parsing": "Number",
    "int_type": "Number",
    "int_parsing": "Number",
    "int_from_float": "Number",
    "finite_number": "Number",
    "bool_type": "Boolean",
    "bool_parsing": "Boolean",
    "list_type": "Array",
}

KINDS = {
    "missing": "required",
    "greater_than_equal": "min",
    "greater_than": "min",
    "less_than_equal": "max",
    "less_than": "max",
    "literal_error": "enum",
    "string_pattern_mismatch": "match",
    "string_too_short": "minlength",
    "string_too_long": "maxlength",
}


class ValidatorError:
    """One failed rule: which kind, at which path, for which value."""

    def __init__(self, kind: str, path: str, value: Any, message: str):
        self.kind = kind
        self.path = path
        self.value = value
        self.message = message

    def __repr__(self):
        return f"<ValidatorError {self.path} ({self.kind}): {self.message}>"


class ValidationError(Exception):
    """Aggregate of every field that failed validation, keyed by path."""

    def __init__(self, errors: dict, model_name: str = "Record"):
        self.errors = errors
        self.model_name = model_name
        details = ", ".join(f"{path}: {err.message}" for path, err in errors.items())
        super().__init__(f"{model_name} validation failed: {details}")

    def messages(self) -> dict:
        return {path: err.message for path, err in self.errors.items()}

    @classmethod
    def from_pydantic(cls, error: PydanticValidationError, model, path: Optional[str] = None):
        """
        Collect pydantic's errors into one ValidatorError per path.

        `path` prefixes every location; use it when a lone field value was
        validated outside its model.
        """
        errors = {}
        for detail in error.errors():
            loc = (path, *detail["loc"]) if path else detail["loc"]
            failure = _describe(model, loc, detail["type"], detail.get("input"),
                                detail.get("ctx") or {}, detail["msg"])
            # first failure of a path wins
            errors.setdefault(failure.path, failure)
        return cls(errors, model_name(model))


def model_name(model) -> str:
    return model.model_config.get("title") or model.__name__


def _format_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _describe(model, loc: tuple, error_type: str, value, ctx: dict, fallback: str) -> ValidatorError:
    path = str(loc[0]) if loc else "record"
    # an explicit None on a field is the same as leaving it out
    if error_type == "missing" or (value is None and len(loc) <= 1):
        error_type, value = "missing", None

    props = {key: _format_value(prop) for key, prop in ctx.items()}
    props.update(path=path, input=_format_value(value))

    template = getattr(model, "error_messages", {}).get((path, error_type))
    if error_type in CAST_TYPES:
        kind = "cast"
        props["type"] = CAST_TYPES[error_type]
        template = template or CAST_MESSAGE
    else:
        kind = KINDS.get(error_type, error_type)
        template = template or DEFAULT_MESSAGES.get(error_type)

    message = template.format_map(props) if template else fallback
    return ValidatorError(kind, path, value, message)


def validate_record(model, record: dict) -> dict:
    """
    Cast and validate a candidate record against a pydantic model.

    Unknown keys are dropped. Returns the cleaned record; raises
    ValidationError listing every failing path.
    """
    try:
        return model.model_validate(record).model_dump()
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, model) from e


def required_paths(model) -> list:
    return [path for path, field in model.model_fields.items() if field.is_required()]


def required_error(model, path: str) -> ValidationError:
    """The error raised when a required path is cleared."""
    failure = _describe(model, (path,), "missing", None, {}, "Field required")
    return ValidationError({path: failure}, model_name(model))


def cast_field(model, path: str, value):
    """
    Cast one value to the declared type of `path`.

    Constraints attached to the type (e.g. non-blank text) apply; the
    model's field validators (ranges, conditional rules) do not.
    """
    if value is None and path in required_paths(model):
        raise required_error(model, path)
    field = model.model_fields[path]
    annotation = Annotated[(field.annotation, *field.metadata)] if field.metadata else field.annotation
    try:
        return TypeAdapter(annotation).validate_python(value)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, model, path) from e


def log_validation_errors(logger, error: ValidationError):
    """Log one line per failing field."""
    for path, message in error.messages().items():
        logger.warning(f"{path}: {message}")
