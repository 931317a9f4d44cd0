"""Metadata filter expressions for vector-store queries.

A filter is a small tree: :class:`MetadataFilter` leaves compare one
metadata field against a literal, :class:`FilterGroup` nodes combine
children with ``and`` / ``or`` / ``not``.  Trees can be built in code,
parsed from text, evaluated against a metadata dict, or translated into
Chroma ``where`` pre-filters.

Expression syntax::

    location == 'North Pole'
    year >= 2020 AND genre IN ['fantasy', 'sci-fi']
    NOT (author == "Pullman") || page < 3

Every comparison on a field the record does not have evaluates to
``False``.
"""

from __future__ import annotations

import re
from typing import Any, Literal, Union

from pydantic import BaseModel, Field

Operator = Literal["eq", "ne", "gt", "gte", "lt", "lte", "in", "nin"]


class FilterSyntaxError(ValueError):
    """Raised when a filter expression cannot be parsed."""


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"source"``, ``"location"``).
    operator:
        Comparison operator: one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: Operator = "eq"
    value: Any = None

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)

    def matches(self, metadata: dict[str, Any]) -> bool:
        if self.field not in metadata:
            return False
        actual = metadata[self.field]
        try:
            if self.operator == "eq":
                return actual == self.value
            if self.operator == "ne":
                return actual != self.value
            if self.operator == "in":
                return actual in self.value
            if self.operator == "nin":
                return actual not in self.value
            if self.operator == "gt":
                return actual > self.value
            if self.operator == "gte":
                return actual >= self.value
            if self.operator == "lt":
                return actual < self.value
            return actual <= self.value
        except TypeError:
            # e.g. comparing a string field against a number
            return False


class FilterGroup(BaseModel):
    """Boolean combination of filters.  ``not`` takes exactly one child."""

    operator: Literal["and", "or", "not"]
    filters: list[FilterNode] = Field(default_factory=list)

    def matches(self, metadata: dict[str, Any]) -> bool:
        if self.operator == "and":
            return all(f.matches(metadata) for f in self.filters)
        if self.operator == "or":
            return any(f.matches(metadata) for f in self.filters)
        return not self.filters[0].matches(metadata)


FilterNode = Union[MetadataFilter, FilterGroup]
FilterGroup.model_rebuild()

FilterInput = Union[FilterNode, list[MetadataFilter], str, None]


def combine(filters: FilterInput) -> FilterNode | None:
    """Normalise the accepted filter forms into a single tree (or ``None``).

    Accepts a tree, a list of leaves (AND-ed together) or an expression
    string.
    """
    if filters is None:
        return None
    if isinstance(filters, str):
        return parse_filter_expression(filters) if filters.strip() else None
    if isinstance(filters, list):
        if not filters:
            return None
        if len(filters) == 1:
            return filters[0]
        return FilterGroup(operator="and", filters=list(filters))
    return filters


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
      | (?P<number>-?\d+(?:\.\d+)?)
      | (?P<op>==|!=|<=|>=|<|>|&&|\|\||!)
      | (?P<punct>[()\[\],])
      | (?P<word>[A-Za-z_][\w.]*)
    )
    """,
    re.VERBOSE,
)

_COMPARISONS: dict[str, Operator] = {
    "==": "eq",
    "!=": "ne",
    ">": "gt",
    ">=": "gte",
    "<": "lt",
    "<=": "lte",
}


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None or match.end() == pos:
            raise FilterSyntaxError(f"Unexpected character at position {pos}: {text[pos:pos + 10]!r}")
        kind = match.lastgroup
        value = match.group(kind)
        if kind == "word" and value.upper() in {"AND", "OR", "NOT", "IN", "NIN"}:
            kind, value = "keyword", value.upper()
        tokens.append((kind, value))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self._text = text
        self._tokens = _tokenize(text)
        self._pos = 0

    def parse(self) -> FilterNode:
        if not self._tokens:
            raise FilterSyntaxError("Empty filter expression")
        node = self._or()
        if self._pos != len(self._tokens):
            raise FilterSyntaxError(f"Unexpected token {self._peek()[1]!r} in {self._text!r}")
        return node

    def _peek(self) -> tuple[str, str]:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return ("eof", "")

    def _next(self) -> tuple[str, str]:
        token = self._peek()
        if token[0] == "eof":
            raise FilterSyntaxError(f"Unexpected end of expression: {self._text!r}")
        self._pos += 1
        return token

    def _accept(self, *values: str) -> bool:
        kind, value = self._peek()
        if kind in ("keyword", "op", "punct") and value in values:
            self._pos += 1
            return True
        return False

    def _expect(self, value: str) -> None:
        if not self._accept(value):
            raise FilterSyntaxError(f"Expected {value!r}, found {self._peek()[1] or 'end'!r}")

    def _or(self) -> FilterNode:
        children = [self._and()]
        while self._accept("OR", "||"):
            children.append(self._and())
        return children[0] if len(children) == 1 else FilterGroup(operator="or", filters=children)

    def _and(self) -> FilterNode:
        children = [self._unary()]
        while self._accept("AND", "&&"):
            children.append(self._unary())
        return children[0] if len(children) == 1 else FilterGroup(operator="and", filters=children)

    def _unary(self) -> FilterNode:
        if self._accept("NOT", "!"):
            return FilterGroup(operator="not", filters=[self._unary()])
        if self._accept("("):
            node = self._or()
            self._expect(")")
            return node
        return self._comparison()

    def _comparison(self) -> MetadataFilter:
        kind, field = self._next()
        if kind != "word":
            raise FilterSyntaxError(f"Expected a field name, found {field!r}")

        kind, op = self._next()
        if kind == "keyword" and op in ("IN", "NIN"):
            return MetadataFilter(field=field, operator=op.lower(), value=self._list())
        if kind != "op" or op not in _COMPARISONS:
            raise FilterSyntaxError(f"Expected a comparison operator after {field!r}, found {op!r}")
        return MetadataFilter(field=field, operator=_COMPARISONS[op], value=self._literal())

    def _list(self) -> list[Any]:
        self._expect("[")
        values = [self._literal()]
        while self._accept(","):
            values.append(self._literal())
        self._expect("]")
        return values

    def _literal(self) -> Any:
        kind, value = self._next()
        if kind == "string":
            return re.sub(r"\\(.)", r"\1", value[1:-1])
        if kind == "number":
            return float(value) if "." in value else int(value)
        if kind == "word" and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise FilterSyntaxError(f"Expected a literal, found {value!r}")


def parse_filter_expression(text: str) -> FilterNode:
    """Parse a textual filter expression into a filter tree.

    Raises
    ------
    FilterSyntaxError
        The expression is malformed.
    """
    return _Parser(text).parse()


# ---------------------------------------------------------------------------
# Chroma translation
# ---------------------------------------------------------------------------

_SCALARS = (str, int, float, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _leaf_where(leaf: MetadataFilter) -> dict[str, Any] | None:
    op, value = leaf.operator, leaf.value
    if op in ("gt", "gte", "lt", "lte"):
        # Chroma only orders numbers
        return {leaf.field: {f"${op}": value}} if _is_number(value) else None
    if op in ("in", "nin"):
        if not isinstance(value, list) or not value:
            return None
        if not all(isinstance(v, _SCALARS) for v in value):
            return None
        return {leaf.field: {f"${op}": value}}
    return {leaf.field: {f"${op}": value}} if isinstance(value, _SCALARS) else None


def to_chroma_where(node: FilterNode | None) -> dict[str, Any] | None:
    """Convert a filter tree to a Chroma ``where`` pre-filter.

    The clause selects a superset of the records ``node.matches`` accepts:
    parts Chroma cannot express (``NOT``, string ranges, empty lists) are
    left out, and Chroma's ``$ne`` / ``$nin`` also match records missing
    the field.  Callers must re-check every hit with ``node.matches``.
    Returns ``None`` when nothing can be pushed down.
    """
    if node is None:
        return None
    if isinstance(node, MetadataFilter):
        return _leaf_where(node)
    if node.operator == "not":
        return None

    clauses = [to_chroma_where(f) for f in node.filters]
    if node.operator == "or" and any(c is None for c in clauses):
        return None
    clauses = [c for c in clauses if c is not None]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {f"${node.operator}": clauses}
