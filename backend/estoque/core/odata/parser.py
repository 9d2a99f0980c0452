"""
Parser for the OData query options supported by the list endpoints.

Supported system query options:

    $filter   boolean expression (see grammar below)
    $orderby  ``field [asc|desc]`` comma list
    $top      non-negative integer (capped at MAX_PAGE_SIZE)
    $skip     non-negative integer
    $count    ``true`` / ``false``
    $select   comma list of fields
    $expand   comma list of relations

$filter grammar (keywords are case-insensitive)::

    expr        := and_expr ("or" and_expr)*
    and_expr    := unary ("and" unary)*
    unary       := "not" unary | "(" expr ")" | call | comparison
    call        := ("contains" | "startswith" | "endswith") "(" field "," literal ")"
    comparison  := field op literal
                 | field ("in" | "nin") "(" literal ("," literal)* ")"
    op          := eq | ne | gt | ge | lt | le | contains | startswith | endswith
    literal     := 'string' | number | true | false | null | guid | datetime

Example:
    >>> q = parse_odata_query("$filter=price gt 10 and contains(name,'caneta')&$top=5")
    >>> q.top
    5
"""

import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl

from estoque.core.config import get_max_page_size
from estoque.core.exceptions import ODataQueryError

COMPARISON_OPERATORS = ("eq", "ne", "gt", "ge", "lt", "le")
STRING_OPERATORS = ("contains", "startswith", "endswith")
LIST_OPERATORS = ("in", "nin")
SUPPORTED_OPTIONS = ("$filter", "$orderby", "$top", "$skip", "$count", "$select", "$expand")

_KEYWORDS = {"and", "or", "not", "true", "false", "null"} | set(LIST_OPERATORS)
_MAX_DEPTH = 32

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

_TOKEN_SPEC = [
    ("WS", r"\s+"),
    ("STRING", r"'(?:[^']|'')*'"),
    ("LPAREN", r"\("),
    ("RPAREN", r"\)"),
    ("COMMA", r","),
    (
        "GUID",
        r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}(?![\w-])",
    ),
    (
        "DATETIME",
        r"\d{4}-\d{2}-\d{2}(?:T\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:\d{2})?)?(?![\w-])",
    ),
    ("NUMBER", r"-?\d+(?:\.\d+)?(?![\w.])"),
    ("IDENT", r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*"),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))


# ---------------------------------------------------------------------------
# Query model
# ---------------------------------------------------------------------------


def _literal_to_json(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, list):
        return [_literal_to_json(v) for v in value]
    return value


@dataclass(frozen=True)
class Comparison:
    field: str
    operator: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "operator": self.operator,
            "value": _literal_to_json(self.value),
        }


@dataclass(frozen=True)
class LogicalGroup:
    operator: str  # "and" | "or"
    operands: tuple

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operator": self.operator,
            "operands": [operand.to_dict() for operand in self.operands],
        }


@dataclass(frozen=True)
class Negation:
    operand: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"operator": "not", "operand": self.operand.to_dict()}


FilterNode = Union[Comparison, LogicalGroup, Negation]


def iter_comparisons(node: Optional[FilterNode]):
    """Yield every ``Comparison`` leaf of a filter tree."""
    if node is None:
        return
    if isinstance(node, Comparison):
        yield node
    elif isinstance(node, LogicalGroup):
        for operand in node.operands:
            yield from iter_comparisons(operand)
    elif isinstance(node, Negation):
        yield from iter_comparisons(node.operand)


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: str = "ASC"

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "direction": self.direction}


@dataclass
class ODataQuery:
    filter: Optional[FilterNode] = None
    orderby: List[OrderBy] = field(default_factory=list)
    top: Optional[int] = None
    skip: Optional[int] = None
    count: bool = False
    select: List[str] = field(default_factory=list)
    expand: List[str] = field(default_factory=list)

    @property
    def condition_count(self) -> int:
        return sum(1 for _ in iter_comparisons(self.filter))

    @property
    def filter_fields(self) -> List[str]:
        return [c.field for c in iter_comparisons(self.filter)]

    def to_dict(self) -> Dict[str, Any]:
        """Canonical, JSON-serializable form (cache keys and response meta)."""
        return {
            "filter": self.filter.to_dict() if self.filter is not None else None,
            "orderby": [o.to_dict() for o in self.orderby],
            "top": self.top,
            "skip": self.skip,
            "count": self.count,
            "select": list(self.select),
            "expand": list(self.expand),
        }

    def canonical_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))


# ---------------------------------------------------------------------------
# $filter
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    pos: int


def tokenize(text: str) -> List[_Token]:
    tokens: List[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ODataQueryError(
                f"Caractere inesperado em $filter na posição {pos}: {text[pos]!r}"
            )
        kind = match.lastgroup
        if kind != "WS":
            tokens.append(_Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


class _FilterParser:
    def __init__(self, text: str):
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0
        self.depth = 0

    # token helpers

    def _peek(self) -> Optional[_Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _peek_keyword(self, offset: int = 0) -> Optional[str]:
        idx = self.index + offset
        if idx < len(self.tokens) and self.tokens[idx].kind == "IDENT":
            return self.tokens[idx].text.lower()
        return None

    def _advance(self) -> _Token:
        token = self._peek()
        if token is None:
            raise ODataQueryError("Fim inesperado da expressão $filter")
        self.index += 1
        return token

    def _expect(self, kind: str) -> _Token:
        token = self._advance()
        if token.kind != kind:
            raise ODataQueryError(
                f"Esperado {kind} em $filter na posição {token.pos}, encontrado {token.text!r}"
            )
        return token

    # grammar

    def parse(self) -> FilterNode:
        if not self.tokens:
            raise ODataQueryError("Expressão $filter vazia")
        node = self._parse_or()
        leftover = self._peek()
        if leftover is not None:
            raise ODataQueryError(
                f"Token inesperado em $filter na posição {leftover.pos}: {leftover.text!r}"
            )
        return node

    def _parse_or(self) -> FilterNode:
        operands = [self._parse_and()]
        while self._peek_keyword() == "or":
            self._advance()
            operands.append(self._parse_and())
        return operands[0] if len(operands) == 1 else LogicalGroup("or", tuple(operands))

    def _parse_and(self) -> FilterNode:
        operands = [self._parse_unary()]
        while self._peek_keyword() == "and":
            self._advance()
            operands.append(self._parse_unary())
        return operands[0] if len(operands) == 1 else LogicalGroup("and", tuple(operands))

    def _parse_unary(self) -> FilterNode:
        self.depth += 1
        if self.depth > _MAX_DEPTH:
            raise ODataQueryError("Expressão $filter muito aninhada")
        try:
            token = self._peek()
            if token is None:
                raise ODataQueryError("Fim inesperado da expressão $filter")
            keyword = self._peek_keyword()
            if keyword == "not":
                self._advance()
                return Negation(self._parse_unary())
            if token.kind == "LPAREN":
                self._advance()
                node = self._parse_or()
                self._expect("RPAREN")
                return node
            if keyword in STRING_OPERATORS:
                following = self.tokens[self.index + 1] if self.index + 1 < len(self.tokens) else None
                if following is not None and following.kind == "LPAREN":
                    return self._parse_call()
            return self._parse_comparison()
        finally:
            self.depth -= 1

    def _parse_field(self) -> str:
        token = self._advance()
        if token.kind != "IDENT" or token.text.lower() in _KEYWORDS:
            raise ODataQueryError(
                f"Nome de campo esperado em $filter na posição {token.pos}, encontrado {token.text!r}"
            )
        return token.text

    def _parse_call(self) -> Comparison:
        function = self._advance().text.lower()
        self._expect("LPAREN")
        field_name = self._parse_field()
        self._expect("COMMA")
        value = self._parse_literal()
        self._expect("RPAREN")
        if not isinstance(value, str):
            raise ODataQueryError(f"{function}() exige um texto entre aspas simples")
        return Comparison(field_name, function, value)

    def _parse_comparison(self) -> Comparison:
        field_name = self._parse_field()
        op_token = self._advance()
        operator = op_token.text.lower() if op_token.kind == "IDENT" else ""
        if operator in LIST_OPERATORS:
            self._expect("LPAREN")
            values = [self._parse_literal()]
            while self._peek() is not None and self._peek().kind == "COMMA":
                self._advance()
                values.append(self._parse_literal())
            self._expect("RPAREN")
            return Comparison(field_name, operator, values)
        if operator in COMPARISON_OPERATORS or operator in STRING_OPERATORS:
            value = self._parse_literal()
            if operator in STRING_OPERATORS and not isinstance(value, str):
                raise ODataQueryError(f"Operador {operator} exige um texto entre aspas simples")
            if value is None and operator not in ("eq", "ne"):
                raise ODataQueryError(f"null só pode ser usado com eq ou ne (campo {field_name})")
            return Comparison(field_name, operator, value)
        raise ODataQueryError(
            f"Operador desconhecido em $filter na posição {op_token.pos}: {op_token.text!r}"
        )

    def _parse_literal(self) -> Any:
        token = self._advance()
        if token.kind == "STRING":
            return token.text[1:-1].replace("''", "'")
        if token.kind == "NUMBER":
            if "." in token.text:
                return Decimal(token.text)
            return int(token.text)
        if token.kind == "GUID":
            return token.text.lower()
        if token.kind == "DATETIME":
            return _parse_datetime_literal(token.text)
        if token.kind == "IDENT":
            lowered = token.text.lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
            if lowered == "null":
                return None
        raise ODataQueryError(
            f"Valor literal esperado em $filter na posição {token.pos}, encontrado {token.text!r}"
        )


def _parse_datetime_literal(text: str) -> Union[date, datetime]:
    try:
        if "T" not in text:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ODataQueryError(f"Data inválida em $filter: {text}") from exc


def parse_filter(text: str) -> FilterNode:
    return _FilterParser(text).parse()


# ---------------------------------------------------------------------------
# Other options
# ---------------------------------------------------------------------------


def parse_orderby(text: str) -> List[OrderBy]:
    result: List[OrderBy] = []
    for part in text.split(","):
        pieces = part.split()
        if not pieces:
            continue
        if len(pieces) > 2 or not _IDENTIFIER.match(pieces[0]):
            raise ODataQueryError(f"$orderby inválido: {part.strip()!r}")
        direction = pieces[1].upper() if len(pieces) == 2 else "ASC"
        if direction not in ("ASC", "DESC"):
            raise ODataQueryError(f"Direção de ordenação inválida: {pieces[1]!r}")
        result.append(OrderBy(pieces[0], direction))
    return result


def _parse_non_negative(text: str, option: str) -> int:
    value = text.strip()
    if not re.fullmatch(r"[0-9]+", value):
        raise ODataQueryError(f"{option} deve ser um inteiro não negativo")
    return int(value)


def _parse_count(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ODataQueryError("$count deve ser true ou false")


def _parse_name_list(text: str, option: str) -> List[str]:
    names: List[str] = []
    for raw in text.split(","):
        name = raw.strip()
        if not name:
            continue
        if not _IDENTIFIER.match(name):
            raise ODataQueryError(f"{option} contém um nome inválido: {name!r}")
        if name not in names:
            names.append(name)
    return names


def _options_from(source: Union[str, Mapping[str, str], None]) -> Dict[str, str]:
    if source is None:
        return {}
    if isinstance(source, str):
        pairs = parse_qsl(source.lstrip("?"), keep_blank_values=True)
    else:
        pairs = list(source.items())
    return {key: value for key, value in pairs if key.startswith("$")}


def parse_odata_query(
    source: Union[str, Mapping[str, str], None],
    max_top: Optional[int] = None,
) -> Optional[ODataQuery]:
    """Parse OData options from a query string or ``request.args``.

    Returns None when no ``$`` option is present. Raises ``ODataQueryError``
    for malformed or unsupported options.
    """
    options = _options_from(source)
    if not options:
        return None

    unsupported = sorted(k for k in options if k.lower() not in SUPPORTED_OPTIONS)
    if unsupported:
        raise ODataQueryError(f"Opção OData não suportada: {', '.join(unsupported)}")
    options = {k.lower(): v for k, v in options.items()}

    query = ODataQuery()
    if options.get("$filter", "").strip():
        query.filter = parse_filter(options["$filter"])
    if "$orderby" in options:
        query.orderby = parse_orderby(options["$orderby"])
    if options.get("$top", "") != "":
        limit = max_top if max_top is not None else get_max_page_size()
        query.top = min(_parse_non_negative(options["$top"], "$top"), limit)
    if options.get("$skip", "") != "":
        query.skip = _parse_non_negative(options["$skip"], "$skip")
    if options.get("$count", "") != "":
        query.count = _parse_count(options["$count"])
    if "$select" in options:
        query.select = _parse_name_list(options["$select"], "$select")
    if "$expand" in options:
        query.expand = _parse_name_list(options["$expand"], "$expand")
    return query
