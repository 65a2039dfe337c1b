"""Query-string driven filtering, sorting, projection and pagination.

``QueryFeatures`` wraps a SQLAlchemy query and a list of request query
parameters. Each step returns ``self`` so calls chain left to right:

    QueryFeatures(db.query(Tour), Tour, params).filter().sort().project().paginate().all()

Nothing touches the database until ``all()`` runs.

Parameter syntax::

    ?difficulty=easy                 equality
    ?difficulty=easy&difficulty=medium   IN
    ?price[lt]=1000&duration[gte]=5  comparison (gte, gt, lte, lt)
    ?sort=price,-ratings_average     ascending price, then descending rating
    ?fields=name,price               only these columns (plus id)
    ?page=2&limit=10                 rows 11-20

Field names may be snake_case or camelCase.
"""

import operator
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Query, load_only

from natours.errors import ValidationError

RESERVED_PARAMS = frozenset({"sort", "fields", "page", "limit"})
OPERATORS = {
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}
DEFAULT_SORT = "-created_at"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 70
MAX_LIMIT = 10_000
# Signed 64-bit bound of SQL INTEGER columns
MAX_INT = 2**63 - 1

_FILTER_KEY = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)(?:\[(?P<op>[a-z]+)\])?$")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _positive_int(value: str | None, default: int) -> int:
    try:
        number = int(value) if value is not None else default
    except ValueError:
        return default
    return number if number > 0 else default


class QueryFeatures:
    """Chainable builder translating request parameters into a SQLAlchemy query."""

    def __init__(
        self,
        query: Query,
        model: type,
        params: Mapping[str, str] | Iterable[tuple[str, str]],
        hidden: Iterable[str] = (),
    ) -> None:
        self.query = query
        self.model = model
        self.params = list(params.items()) if isinstance(params, Mapping) else list(params)
        self.hidden = frozenset(hidden)
        self.columns = {c.key: c for c in model.__table__.columns if c.key not in self.hidden}
        self.selected = [name for name in self.columns]
        self.empty = False

    def _last(self, key: str) -> str | None:
        """Last value given for a reserved parameter (repeated keys: last wins)."""
        value = None
        for k, v in self.params:
            if k == key:
                value = v
        return value

    def _column(self, name: str):
        field = to_snake(name.strip())
        if field not in self.columns:
            raise ValidationError(f"Invalid field: {name}")
        return field, self.columns[field]

    def _coerce(self, field: str, column, value: str) -> Any:
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            raise ValidationError(f"Cannot filter on field: {field}") from None

        try:
            if python_type is bool:
                lowered = value.lower()
                if lowered in ("true", "1"):
                    return True
                if lowered in ("false", "0"):
                    return False
                raise ValueError(value)
            if python_type is datetime:
                return datetime.fromisoformat(value)
            if python_type in (list, dict):
                raise ValidationError(f"Cannot filter on field: {field}")
            coerced = python_type(value)
            if python_type is int and not -MAX_INT - 1 <= coerced <= MAX_INT:
                raise ValueError(value)
            return coerced
        except ValueError:
            raise ValidationError(f"Invalid value for {field}: {value}") from None

    def filter(self) -> "QueryFeatures":
        equals: dict[str, list] = {}
        for key, value in self.params:
            if key in RESERVED_PARAMS:
                continue
            match = _FILTER_KEY.match(key)
            if not match:
                raise ValidationError(f"Invalid filter: {key}")
            field, column = self._column(match.group("field"))
            op = match.group("op")
            coerced = self._coerce(field, column, value)
            if op is None:
                equals.setdefault(field, []).append(coerced)
            elif op in OPERATORS:
                self.query = self.query.filter(OPERATORS[op](getattr(self.model, field), coerced))
            else:
                raise ValidationError(f"Invalid filter operator: {op}")

        for field, values in equals.items():
            attr = getattr(self.model, field)
            if len(values) == 1:
                self.query = self.query.filter(attr == values[0])
            else:
                self.query = self.query.filter(attr.in_(values))
        return self

    def sort(self) -> "QueryFeatures":
        raw = self._last("sort") or DEFAULT_SORT
        clauses = []
        first_descending = None
        for item in raw.split(","):
            item = item.strip()
            if not item:
                continue
            descending = item.startswith("-")
            if first_descending is None:
                first_descending = descending
            field, _ = self._column(item.lstrip("-"))
            attr = getattr(self.model, field)
            clauses.append(attr.desc() if descending else attr.asc())
        # id breaks ties in the direction of the first key
        id_attr = self.model.id
        clauses.append(id_attr.desc() if first_descending else id_attr.asc())
        self.query = self.query.order_by(*clauses)
        return self

    def project(self) -> "QueryFeatures":
        raw = self._last("fields")
        if raw:
            fields = ["id"]
            for item in raw.split(","):
                if item.strip():
                    field, _ = self._column(item)
                    if field not in fields:
                        fields.append(field)
            self.selected = fields
        self.query = self.query.options(load_only(*[getattr(self.model, f) for f in self.selected]))
        return self

    def paginate(self) -> "QueryFeatures":
        page = _positive_int(self._last("page"), DEFAULT_PAGE)
        limit = min(_positive_int(self._last("limit"), DEFAULT_LIMIT), MAX_LIMIT)
        offset = (page - 1) * limit
        if offset > MAX_INT:
            self.empty = True
            return self
        self.query = self.query.offset(offset).limit(limit)
        return self

    def all(self, populate: Mapping[str, Callable[[Any], Any]] | None = None) -> list[dict[str, Any]]:
        """Execute the query and return the selected fields of each row.

        ``populate`` maps extra keys to callables building them from the row,
        e.g. the author block of a review.
        """
        if self.empty:
            return []
        rows = []
        for row in self.query.all():
            item = {field: getattr(row, field) for field in self.selected}
            for key, build in (populate or {}).items():
                item[key] = build(row)
            rows.append(item)
        return rows
