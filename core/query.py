# core/query.py
"""
Document-style query builder on top of a SQLAlchemy session.

Filters use the document-query dialect:

    {"price": {"$gt": 100, "$lte": 150}}
    {"ingredients": {"$in": ["chicken", "mango"]}}
    {"$or": [{"rating": {"$gte": 4.5}}, {"ingredients": {"$in": ["mutton"]}}]}
    {"name": re.compile("pappu$", re.I)}

List fields exposed through an association proxy (e.g. FoodItem.ingredients)
match when any element matches; a list value matches the whole list in order.
Results are record dicts holding only the selected fields.
"""
import re

from sqlalchemy import and_, or_, not_, true, inspect
from sqlalchemy.ext.associationproxy import AssociationProxyInstance
from sqlalchemy.orm import Session, selectinload


class QueryError(ValueError):
    pass


ID_ALIASES = ("id", "_id")

_COMPARISONS = {
    "$gt": lambda col, v: col > v,
    "$gte": lambda col, v: col >= v,
    "$lt": lambda col, v: col < v,
    "$lte": lambda col, v: col <= v,
}

_REGEX_FLAGS = ((re.IGNORECASE, "i"), (re.MULTILINE, "m"), (re.DOTALL, "s"), (re.VERBOSE, "x"))


def _regex_pattern(value, options: str = "") -> str:
    if isinstance(value, re.Pattern):
        options += "".join(letter for flag, letter in _REGEX_FLAGS if value.flags & flag)
        value = value.pattern
    if not isinstance(value, str):
        raise QueryError(f"$regex expects a string or compiled pattern, got {value!r}")
    invalid = set(options) - {"i", "m", "s", "x"}
    if invalid:
        raise QueryError(f"Unsupported regex options: {''.join(sorted(invalid))}")
    flags = "".join(sorted(set(options)))
    return f"(?{flags}){value}" if flags else value


def _as_list(op, value) -> list:
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise QueryError(f"{op} expects a list, got {value!r}")
    return list(value)


def _scalar(path: str, op: str, value):
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        raise QueryError(f"{op} at path {path!r} expects a single value, got {value!r}")
    return value


def _scalars(path: str, op: str, value) -> list:
    values = _as_list(op, value)
    for v in values:
        _scalar(path, op, v)
    return values


class DocumentQuery:
    """
    Chainable query over one mapped model.

    Its columns and association-proxied list fields are the queryable
    paths. Exact list matches need a `position` column on the proxied rows.
    """

    def __init__(self, db: Session, model, filters: dict = None):
        self.db = db
        self.model = model
        self._conditions = []
        self._include = None
        self._exclude = None
        self._order_by = []
        self._skip = None
        self._limit = None

        mapper = inspect(model)
        self._columns = {key: getattr(model, key) for key in mapper.columns.keys()}
        self._arrays = {}
        for key in mapper.all_orm_descriptors.keys():
            proxy = getattr(model, key, None)
            if isinstance(proxy, AssociationProxyInstance):
                self._arrays[key] = proxy

        if filters:
            self.where(filters)

    # ── filters ───────────────────────────────────────────

    def where(self, filters: dict):
        if not isinstance(filters, dict):
            raise QueryError(f"Filter must be a dict, got {filters!r}")
        self._conditions.append(self._compile(filters))
        return self

    def or_(self, filters: list):
        return self.where({"$or": filters})

    def and_(self, filters: list):
        return self.where({"$and": filters})

    def nor(self, filters: list):
        return self.where({"$nor": filters})

    def _compile(self, filters: dict):
        clauses = []
        for key, cond in filters.items():
            key = str(key)
            if key in ("$and", "$or", "$nor"):
                members = _as_list(key, cond)
                if not members:
                    raise QueryError(f"{key} requires at least one expression")
                for member in members:
                    if not isinstance(member, dict):
                        raise QueryError(f"{key} expects filter dicts, got {member!r}")
                parts = [self._compile(member) for member in members]
                if key == "$and":
                    clauses.append(and_(*parts))
                elif key == "$or":
                    clauses.append(or_(*parts))
                else:
                    clauses.append(not_(or_(*parts)))
            elif key.startswith("$"):
                raise QueryError(f"Unknown top level operator: {key}")
            else:
                clauses.append(self._field_clause(key, cond))
        if not clauses:
            return true()
        return and_(*clauses) if len(clauses) > 1 else clauses[0]

    def _field_clause(self, path: str, cond):
        if isinstance(cond, dict):
            operators = [k for k in cond if str(k).startswith("$")]
            if not operators:
                raise QueryError(f"Embedded documents are not supported at path {path!r}")
            if len(operators) != len(cond):
                raise QueryError(f"Cannot mix operators and plain keys at path {path!r}")
            ops = dict(cond)
            options = ops.pop("$options", "")
            if not ops:
                raise QueryError(f"$options without $regex at path {path!r}")
            parts = [self._operator(path, op, value, options) for op, value in ops.items()]
            return and_(*parts) if len(parts) > 1 else parts[0]
        if isinstance(cond, re.Pattern):
            return self._operator(path, "$regex", cond)
        return self._operator(path, "$eq", cond)

    def _operator(self, path: str, op: str, value, options: str = ""):
        if path in self._arrays:
            return self._array_operator(path, op, value, options)
        col = self._column(path)

        if op in ("$eq", "$ne") or op in _COMPARISONS:
            _scalar(path, op, value)
        if op == "$eq":
            return col.is_(None) if value is None else col == value
        if op == "$ne":
            # a missing value is "not equal" too
            return col.isnot(None) if value is None else or_(col != value, col.is_(None))
        if op in _COMPARISONS:
            return _COMPARISONS[op](col, value)
        if op == "$in":
            values = _scalars(path, op, value)
            present = [v for v in values if v is not None]
            clause = col.in_(present)
            return or_(clause, col.is_(None)) if None in values else clause
        if op == "$nin":
            values = _scalars(path, op, value)
            present = [v for v in values if v is not None]
            clause = col.not_in(present)
            return and_(clause, col.isnot(None)) if None in values else or_(clause, col.is_(None))
        if op == "$exists":
            return col.isnot(None) if value else col.is_(None)
        if op == "$regex":
            return col.regexp_match(_regex_pattern(value, options))
        raise QueryError(f"Unsupported operator {op} at path {path!r}")

    def _array_operator(self, path: str, op: str, value, options: str = ""):
        proxy = self._arrays[path]
        rows, element = proxy.local_attr, proxy.remote_attr

        if op == "$eq":
            if isinstance(value, (list, tuple)):
                return self._array_equals(path, value)
            return rows.any(element == _scalar(path, op, value))
        if op == "$ne":
            if isinstance(value, (list, tuple)):
                return not_(self._array_equals(path, value))
            return ~rows.any(element == _scalar(path, op, value))
        if op in _COMPARISONS:
            return rows.any(_COMPARISONS[op](element, _scalar(path, op, value)))
        if op == "$in":
            return rows.any(element.in_(_scalars(path, op, value)))
        if op == "$nin":
            return ~rows.any(element.in_(_scalars(path, op, value)))
        if op == "$all":
            values = _scalars(path, op, value)
            if not values:
                raise QueryError(f"$all requires at least one value at path {path!r}")
            return and_(*[rows.any(element == v) for v in values])
        if op == "$regex":
            return rows.any(element.regexp_match(_regex_pattern(value, options)))
        raise QueryError(f"Unsupported operator {op} at list path {path!r}")

    def _array_equals(self, path: str, values):
        """Exact match: same elements in the same order, nothing more."""
        proxy = self._arrays[path]
        rows, element = proxy.local_attr, proxy.remote_attr
        position = getattr(proxy.target_class, "position", None)
        if position is None:
            raise QueryError(f"List at path {path!r} has no order to compare against")
        clauses = [
            rows.any(and_(position == index, element == _scalar(path, "$eq", v)))
            for index, v in enumerate(values)
        ]
        clauses.append(~rows.any(position >= len(values)))
        return and_(*clauses)

    def _column(self, path: str):
        if path in ID_ALIASES:
            return self.model.id
        if path not in self._columns:
            raise QueryError(f"Unknown field: {path!r}")
        return self._columns[path]

    def _check_path(self, path: str) -> str:
        if path in ID_ALIASES:
            return "id"
        if path not in self._columns and path not in self._arrays:
            raise QueryError(f"Unknown field: {path!r}")
        return path

    # ── projection / sort / pagination ────────────────────

    def select(self, fields):
        """Choose returned fields: "name price", "-ingredients", {"name": 1}, {"rating": 0}."""
        if isinstance(fields, str):
            projection = {}
            for token in fields.split():
                if token.startswith("-"):
                    projection[token[1:]] = 0
                else:
                    projection[token.lstrip("+")] = 1
        elif isinstance(fields, dict):
            projection = dict(fields)
        elif isinstance(fields, (list, tuple)):
            projection = {name: 1 for name in fields}
        else:
            raise QueryError(f"Invalid projection: {fields!r}")

        include, exclude = set(), set()
        for name, flag in projection.items():
            path = self._check_path(name)
            (include if flag else exclude).add(path)

        # id may be excluded alongside an inclusion list, nothing else may be mixed
        if include and exclude - {"id"}:
            raise QueryError("Projection cannot mix inclusion and exclusion")
        self._include = include or None
        self._exclude = exclude or None
        return self

    def sort(self, order):
        """Sort by "-price name", {"price": -1}, or a list of (field, direction) pairs."""
        if isinstance(order, str):
            pairs = [(t[1:], -1) if t.startswith("-") else (t.lstrip("+"), 1) for t in order.split()]
        elif isinstance(order, dict):
            pairs = list(order.items())
        elif isinstance(order, (list, tuple)):
            pairs = list(order)
        else:
            raise QueryError(f"Invalid sort: {order!r}")

        for name, direction in pairs:
            col = self._column(name)
            if isinstance(direction, str):
                direction = -1 if direction.lower() in ("desc", "descending", "-1") else 1
            if direction not in (1, -1):
                raise QueryError(f"Invalid sort direction for {name!r}: {direction!r}")
            self._order_by.append(col.desc() if direction == -1 else col.asc())
        return self

    def skip(self, count: int):
        if not isinstance(count, int) or count < 0:
            raise QueryError(f"skip expects a non-negative integer, got {count!r}")
        self._skip = count
        return self

    def limit(self, count: int):
        if not isinstance(count, int) or count < 0:
            raise QueryError(f"limit expects a non-negative integer, got {count!r}")
        # limit(0) means no limit
        self._limit = count or None
        return self

    # ── execution ─────────────────────────────────────────

    def _filtered(self):
        query = self.db.query(self.model)
        for condition in self._conditions:
            query = query.filter(condition)
        return query

    def _statement(self):
        query = self._filtered()
        for path, proxy in self._arrays.items():
            if self._wants(path):
                query = query.options(selectinload(proxy.local_attr))
        if self._order_by:
            query = query.order_by(*self._order_by)
        if self._skip:
            query = query.offset(self._skip)
        if self._limit is not None:
            query = query.limit(self._limit)
        return query

    def _wants(self, path: str) -> bool:
        if self._include is not None:
            return path in self._include
        if self._exclude is not None:
            return path not in self._exclude
        return True

    def _record(self, item) -> dict:
        """Build the result dict from the wanted paths only."""
        record = {}
        if not (self._exclude and "id" in self._exclude):
            record["id"] = item.id
        for path in self._columns:
            if path != "id" and self._wants(path):
                record[path] = getattr(item, path)
        # list fields are read (and loaded) only when wanted
        for path in self._arrays:
            if self._wants(path):
                record[path] = list(getattr(item, path))
        return record

    def __iter__(self):
        for item in self._statement():
            yield self._record(item)

    def all(self) -> list:
        return list(self)

    def first(self):
        item = self._statement().first()
        return self._record(item) if item is not None else None

    def count(self) -> int:
        """Number of matching records; skip, limit and projection are ignored."""
        return self._filtered().count()
