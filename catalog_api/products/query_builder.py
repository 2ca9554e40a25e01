# catalog_api/products/query_builder.py
"""Parameterized SQL for the product listing.

User supplied values never reach the query text: every value is appended to
an ordered binding list and referenced through a numbered placeholder
(``:p1``, ``:p2``, ...) in the order the placeholders appear.
"""
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

SORT_FIELDS = ('name', 'price', 'created_at')
DEFAULT_SORT = 'created_at'
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

LIKE_ESCAPE = '!'

# Attributes flattened into one "name: value, name: value" string per product.
ATTRIBUTE_SUMMARY = {
    'mysql': "GROUP_CONCAT(CONCAT(da.name, ': ', pa.value) SEPARATOR ', ')",
    'mariadb': "GROUP_CONCAT(CONCAT(da.name, ': ', pa.value) SEPARATOR ', ')",
    'sqlite': "GROUP_CONCAT(da.name || ': ' || pa.value, ', ')",
    'postgresql': "STRING_AGG(da.name || ': ' || pa.value, ', ')",
}


@dataclass
class ListingParams:
    filter: Optional[str] = None
    sort: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    category: Optional[str] = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def from_args(cls, args, max_limit: Optional[int] = None) -> 'ListingParams':
        """Build params from raw query-string values.

        Empty strings count as absent, unparsable prices are dropped and bad
        page/limit values fall back to the defaults.
        """
        limit = _to_positive_int(args.get('limit'), DEFAULT_LIMIT)
        if max_limit:
            limit = min(limit, max_limit)
        return cls(
            filter=args.get('filter') or None,
            sort=args.get('sort') or None,
            price_min=_to_number(args.get('price_min')),
            price_max=_to_number(args.get('price_max')),
            category=args.get('category') or None,
            page=_to_positive_int(args.get('page'), DEFAULT_PAGE),
            limit=limit,
        )


def _to_number(value) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def resolve_sort(sort: Optional[str]) -> str:
    return sort if sort in SORT_FIELDS else DEFAULT_SORT


def escape_like(term: str) -> str:
    for char in (LIKE_ESCAPE, '%', '_'):
        term = term.replace(char, LIKE_ESCAPE + char)
    return term


class ClauseAccumulator:
    """Query fragments plus the values bound to their placeholders."""

    def __init__(self):
        self.fragments: List[str] = []
        self.bindings: List[Any] = []

    def append(self, fragment: str) -> None:
        self.fragments.append(fragment)

    def bind(self, value: Any) -> str:
        self.bindings.append(value)
        return f':p{len(self.bindings)}'

    @property
    def text(self) -> str:
        return ' '.join(self.fragments)


class ListingQuery:
    def __init__(self, params: ListingParams, dialect: str = 'mysql'):
        if dialect not in ATTRIBUTE_SUMMARY:
            raise ValueError(f"Unsupported SQL dialect: {dialect}")
        self.params = params
        self.dialect = dialect

    @property
    def sort_column(self) -> str:
        return resolve_sort(self.params.sort)

    def _grouped(self) -> ClauseAccumulator:
        params = self.params
        summary = ATTRIBUTE_SUMMARY[self.dialect]
        query = ClauseAccumulator()

        query.append(f"SELECT p.*, {summary} AS attributes FROM products p")
        query.append("LEFT JOIN product_attributes pa ON p.id = pa.product_id")
        query.append("LEFT JOIN dynamic_attributes da ON pa.attribute_id = da.id")
        query.append("GROUP BY p.id")

        conditions = []

        if params.filter:
            term = f"%{escape_like(params.filter)}%"
            matches = [
                f"{column} LIKE {query.bind(term)} ESCAPE '{LIKE_ESCAPE}'"
                for column in ('p.name', 'p.description', summary)
            ]
            conditions.append('(' + ' OR '.join(matches) + ')')

        if params.price_min is not None and params.price_max is not None:
            conditions.append(f"p.price BETWEEN {query.bind(params.price_min)} AND {query.bind(params.price_max)}")
        elif params.price_min is not None:
            conditions.append(f"p.price >= {query.bind(params.price_min)}")
        elif params.price_max is not None:
            conditions.append(f"p.price <= {query.bind(params.price_max)}")

        if params.category:
            conditions.append(f"p.category = {query.bind(params.category)}")

        if conditions:
            query.append('HAVING ' + ' AND '.join(conditions))

        return query

    def build(self) -> Tuple[str, List[Any]]:
        query = self._grouped()
        query.append(f"ORDER BY p.{self.sort_column}, p.id")
        query.append(f"LIMIT {query.bind(self.params.limit)} OFFSET {query.bind(self.params.offset)}")
        return query.text, query.bindings

    def build_count(self) -> Tuple[str, List[Any]]:
        """Count of products matching the same filters as build()."""
        grouped = self._grouped()
        return f"SELECT COUNT(*) AS count FROM ({grouped.text}) AS filtered", grouped.bindings


def bind(bindings: List[Any]) -> dict:
    """Map an ordered binding list onto the :pN placeholder names."""
    return {f'p{position}': value for position, value in enumerate(bindings, start=1)}


def build_listing_query(params: ListingParams, dialect: str = 'mysql') -> Tuple[str, List[Any]]:
    return ListingQuery(params, dialect).build()
