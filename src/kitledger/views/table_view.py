"""Tabular view engine — search, per-column filter, sort, render.

``project`` is pure and recomputes the whole projection from scratch on
every call. The passes always run in the same order:

1. global search over the declared columns
2. per-column filters (empty or ``"all"`` means no filter)
3. sort on one key; nulls first ascending, last descending
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional

ALL = "all"


class ValueKind(str, Enum):
    NUMBER = "number"
    TEXT = "text"
    BOOL = "bool"
    NULL = "null"


# Sort order between kinds when a column holds mixed values
_KIND_RANK = {ValueKind.BOOL: 0, ValueKind.NUMBER: 1, ValueKind.TEXT: 2}


@dataclass(frozen=True)
class Cell:
    """A tagged cell value."""
    kind: ValueKind
    value: Any = None

    @classmethod
    def of(cls, value: Any) -> "Cell":
        if value is None:
            return NULL
        if isinstance(value, Cell):
            return value
        # bool first: it is also an int
        if isinstance(value, bool):
            return cls(ValueKind.BOOL, value)
        if isinstance(value, (int, float)):
            return cls(ValueKind.NUMBER, value)
        if isinstance(value, str):
            return cls(ValueKind.TEXT, value)
        return cls(ValueKind.TEXT, str(value))

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def text(self) -> str:
        """Display string: 'true'/'false', integral floats without '.0'."""
        if self.kind is ValueKind.NULL:
            return ""
        if self.kind is ValueKind.BOOL:
            return "true" if self.value else "false"
        if self.kind is ValueKind.NUMBER:
            if isinstance(self.value, float) and self.value.is_integer():
                return str(int(self.value))
            return str(self.value)
        return self.value

    def contains(self, needle: str) -> bool:
        """Case-insensitive substring match; nulls never match."""
        if self.is_null:
            return False
        return needle.lower() in self.text().lower()

    def sort_key(self) -> tuple:
        return (_KIND_RANK[self.kind], self.value)


NULL = Cell(ValueKind.NULL)


class Row(Mapping[str, Cell]):
    """An immutable mapping of column key to Cell, plus its source entity."""

    __slots__ = ("_cells", "source")

    def __init__(self, cells: Mapping[str, Any], source: Any = None):
        self._cells = {k: Cell.of(v) for k, v in cells.items()}
        self.source = source

    @classmethod
    def from_entity(cls, entity: Any,
                    extra: Optional[Mapping[str, Any]] = None) -> "Row":
        """Build a row from a dataclass entity or a plain mapping."""
        if dataclasses.is_dataclass(entity):
            values = {f.name: getattr(entity, f.name)
                      for f in dataclasses.fields(entity)}
        else:
            values = dict(entity)
        if extra:
            values.update(extra)
        return cls(values, source=entity)

    def __getitem__(self, key: str) -> Cell:
        return self._cells[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._cells)

    def __len__(self) -> int:
        return len(self._cells)

    def cell(self, key: str) -> Cell:
        return self._cells.get(key, NULL)

    def value(self, key: str) -> Any:
        return self.cell(key).value

    def __repr__(self) -> str:
        return f"Row({ {k: c.value for k, c in self._cells.items()} })"


class FilterKind(str, Enum):
    TEXT = "text"
    SELECT = "select"


@dataclass(frozen=True)
class FilterOption:
    value: str
    label: str


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    sortable: bool = False
    filterable: bool = False
    filter_kind: FilterKind = FilterKind.TEXT
    filter_options: tuple[FilterOption, ...] = ()
    # Render strategy name; defaults to the column key
    render: Optional[str] = None


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortState:
    key: str
    direction: SortDirection = SortDirection.ASC

    def toggle(self, key: str) -> "SortState":
        return toggle_sort(self, key)


def toggle_sort(current: Optional[SortState], key: str) -> SortState:
    """Header click: asc on a new column, flip asc <-> desc on the same one."""
    if (current is not None and current.key == key
            and current.direction is SortDirection.ASC):
        return SortState(key, SortDirection.DESC)
    return SortState(key, SortDirection.ASC)


@dataclass
class TableQuery:
    """Interactive state of one table: search term, filters, sort."""
    search: str = ""
    filters: dict[str, str] = field(default_factory=dict)
    sort: Optional[SortState] = None

    def set_filter(self, key: str, value: str):
        self.filters[key] = value

    def clear_filters(self):
        self.filters.clear()
        self.search = ""

    def toggle_sort(self, key: str):
        self.sort = toggle_sort(self.sort, key)

    def active_filters(self) -> dict[str, str]:
        return {k: v for k, v in self.filters.items() if v and v != ALL}


# ── Projection passes ─────────────────────────────────────────


def apply_search(columns: Iterable[Column], rows: Iterable[Row],
                 term: str) -> list[Row]:
    rows = list(rows)
    if not term:
        return rows
    keys = [c.key for c in columns]
    return [r for r in rows if any(r.cell(k).contains(term) for k in keys)]


def apply_filters(rows: Iterable[Row], filters: Mapping[str, str]
                  ) -> list[Row]:
    rows = list(rows)
    for key, needle in filters.items():
        if not needle or needle == ALL:
            continue
        rows = [r for r in rows if r.cell(key).contains(needle)]
    return rows


def apply_sort(rows: Iterable[Row], sort: Optional[SortState]) -> list[Row]:
    rows = list(rows)
    if sort is None:
        return rows
    nulls = [r for r in rows if r.cell(sort.key).is_null]
    present = [r for r in rows if not r.cell(sort.key).is_null]
    descending = sort.direction is SortDirection.DESC
    present.sort(key=lambda r: r.cell(sort.key).sort_key(), reverse=descending)
    return present + nulls if descending else nulls + present


def project(columns: Iterable[Column], rows: Iterable[Row],
            query: Optional[TableQuery] = None) -> list[Row]:
    """Filtered and sorted projection of ``rows``; the input is untouched."""
    columns = list(columns)
    query = query or TableQuery()
    result = apply_search(columns, rows, query.search)
    result = apply_filters(result, query.filters)
    return apply_sort(result, query.sort)


# ── Rendering ─────────────────────────────────────────────────

Renderer = Callable[[Cell, Row], str]


def default_renderer(cell: Cell, row: Row) -> str:
    return cell.text()


class RenderRegistry:
    """Render strategies resolved by name (a column's ``render`` or key)."""

    def __init__(self, renderers: Optional[Mapping[str, Renderer]] = None):
        self._renderers: dict[str, Renderer] = dict(renderers or {})

    def register(self, name: str, renderer: Renderer):
        self._renderers[name] = renderer

    def resolve(self, column: Column) -> Renderer:
        return self._renderers.get(column.render or column.key,
                                   default_renderer)

    def render_cell(self, column: Column, row: Row) -> str:
        return self.resolve(column)(row.cell(column.key), row)

    def render_rows(self, columns: Iterable[Column], rows: Iterable[Row]
                    ) -> list[list[str]]:
        columns = list(columns)
        return [[self.render_cell(c, r) for c in columns] for r in rows]
