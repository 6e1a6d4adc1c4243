"""
Username templates.

Templates are plain text with ``{{ ... }}`` actions. An action is a pipeline
of commands separated by ``|``; the value produced on the left of a pipe is
passed as the last argument of the command on its right::

    {{ printf "v_%s_%s" (.DisplayName | truncate 32) (random 20) | uppercase }}

Operands are field references (``.DisplayName``, ``.RoleName``), string
literals (``"..."`` or backquoted), integers and parenthesised pipelines.

Available functions:

========================  =====================================================
``random N``              N random characters from ``[A-Za-z0-9]``
``truncate N S``          first N characters of S
``truncate_sha256 N S``   S truncated to N characters, keeping an 8 character
                          SHA256 suffix when truncation happens
``uppercase S``           S in upper case
``lowercase S``           S in lower case
``replace OLD NEW S``     S with every OLD replaced by NEW
``sha256 S``              hex SHA256 digest of S
``base64 S``              base64 encoding of S
``uuid``                  random UUID4
``unix_time``             current unix time in seconds
``unix_time_millis``      current unix time in milliseconds
``timestamp FMT``         current UTC time formatted with ``strftime`` FMT
``printf FMT ARGS...``    FMT with ``%s``, ``%d``, ``%v`` and ``%%`` verbs
========================  =====================================================
"""

import base64
import hashlib
import json
import re
import secrets
import string
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Tuple

ALPHANUMERIC = string.ascii_letters + string.digits

_ACTION_REGEX = re.compile(r"\{\{(-\s)?(.*?)(\s-)?\}\}", re.DOTALL)
_TOKEN_REGEX = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<lparen>\()
    |(?P<rparen>\))
    |(?P<pipe>\|)
    |(?P<string>"(?:[^"\\]|\\.)*")
    |(?P<raw>`[^`]*`)
    |(?P<number>-?\d+)
    |(?P<field>\.[A-Za-z_]\w*)
    |(?P<ident>[A-Za-z_]\w*)
    """,
    re.VERBOSE | re.DOTALL,
)
_PRINTF_VERB_REGEX = re.compile(r"%([sdvq%])")


class TemplateError(ValueError):
    """Raised when a template cannot be parsed or rendered."""


def random_alphanumeric(length: int) -> str:
    return "".join(secrets.choice(ALPHANUMERIC) for _ in range(length))


def _truncate(max_len: int, value: Any) -> str:
    if max_len < 0:
        raise TemplateError("truncate length must not be negative")
    return str(value)[:max_len]


def _truncate_sha256(max_len: int, value: Any) -> str:
    value = str(value)
    if max_len <= 8:
        raise TemplateError("truncate_sha256 length must be greater than 8")
    if len(value) <= max_len:
        return value
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()
    return value[: max_len - 8] + digest[:8]


def _printf(fmt: str, *args: Any) -> str:
    remaining = list(args)

    def _substitute(match: "re.Match[str]") -> str:
        verb = match.group(1)
        if verb == "%":
            return "%"
        if not remaining:
            return f"%!{verb}(MISSING)"
        value = remaining.pop(0)
        if verb == "d":
            return str(int(value))
        if verb == "q":
            return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'
        return str(value)

    return _PRINTF_VERB_REGEX.sub(_substitute, fmt)


FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "random": lambda n: random_alphanumeric(int(n)),
    "truncate": lambda n, s: _truncate(int(n), s),
    "truncate_sha256": lambda n, s: _truncate_sha256(int(n), s),
    "uppercase": lambda s: str(s).upper(),
    "lowercase": lambda s: str(s).lower(),
    "replace": lambda old, new, s: str(s).replace(str(old), str(new)),
    "sha256": lambda s: hashlib.sha256(str(s).encode("utf-8")).hexdigest(),
    "base64": lambda s: base64.b64encode(str(s).encode("utf-8")).decode("ascii"),
    "uuid": lambda: str(uuid.uuid4()),
    "unix_time": lambda: int(time.time()),
    "unix_time_millis": lambda: int(time.time() * 1000),
    "timestamp": lambda fmt: datetime.now(timezone.utc).strftime(str(fmt)),
    "printf": _printf,
}

# AST nodes are tuples: ("text", str) | ("field", name) | ("literal", value)
# | ("call", name, [operands]) | ("pipeline", [commands])
Node = Tuple[Any, ...]


def _tokenize(source: str) -> List[Tuple[str, str]]:
    tokens: List[Tuple[str, str]] = []
    position = 0
    while position < len(source):
        match = _TOKEN_REGEX.match(source, position)
        if not match:
            raise TemplateError(
                f"unexpected character {source[position]!r} in action {source!r}"
            )
        kind = match.lastgroup
        if kind != "ws":
            tokens.append((kind, match.group(kind)))
        position = match.end()
    return tokens


class _Parser:
    def __init__(self, source: str):
        self.source = source
        self.tokens = _tokenize(source)
        self.index = 0

    def peek(self) -> Tuple[str, str] | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def next(self) -> Tuple[str, str]:
        token = self.peek()
        if token is None:
            raise TemplateError(f"unexpected end of action {self.source!r}")
        self.index += 1
        return token

    def parse(self) -> Node:
        pipeline = self.parse_pipeline()
        if self.peek() is not None:
            raise TemplateError(
                f"unexpected {self.peek()[1]!r} in action {self.source!r}"
            )
        return pipeline

    def parse_pipeline(self) -> Node:
        commands = [self.parse_command()]
        while self.peek() is not None and self.peek()[0] == "pipe":
            self.next()
            commands.append(self.parse_command())
        return ("pipeline", commands)

    def parse_command(self) -> Node:
        operands: List[Node] = []
        while self.peek() is not None and self.peek()[0] not in ("pipe", "rparen"):
            operands.append(self.parse_operand())
        if not operands:
            raise TemplateError(f"missing command in action {self.source!r}")

        head = operands[0]
        if head[0] == "ident":
            return ("call", head[1], operands[1:])
        if len(operands) > 1:
            raise TemplateError(
                f"can't give argument to non-function in action {self.source!r}"
            )
        return head

    def parse_operand(self) -> Node:
        kind, value = self.next()
        if kind == "lparen":
            pipeline = self.parse_pipeline()
            closing = self.next()
            if closing[0] != "rparen":
                raise TemplateError(f"unclosed left paren in action {self.source!r}")
            return pipeline
        if kind == "string":
            try:
                return ("literal", json.loads(value))
            except ValueError as e:
                raise TemplateError(f"invalid string literal {value}") from e
        if kind == "raw":
            return ("literal", value[1:-1])
        if kind == "number":
            return ("literal", int(value))
        if kind == "field":
            return ("field", value[1:])
        if kind == "ident":
            if value not in FUNCTIONS:
                raise TemplateError(f'function "{value}" not defined')
            return ("ident", value)
        raise TemplateError(f"unexpected {value!r} in action {self.source!r}")


class UsernameTemplate:
    """A compiled username template.

    Args:
        template: Template source.

    Raises:
        TemplateError: If the template does not parse or names an unknown function.

    Example:
        >>> UsernameTemplate("{{.DisplayName}}_{{random 10}}").render(
        ...     {"DisplayName": "test", "RoleName": "reader"}
        ... )  # doctest: +SKIP
        'test_Xq3fP0aZ9b'
    """

    def __init__(self, template: str):
        self.source = template
        self.nodes = self._compile(template)

    @staticmethod
    def _compile(template: str) -> List[Node]:
        nodes: List[Node] = []
        position = 0
        trim_next = False
        for match in _ACTION_REGEX.finditer(template):
            text = template[position : match.start()]
            if trim_next:
                text = text.lstrip()
            if match.group(1):
                text = text.rstrip()
            if text:
                nodes.append(("text", text))
            nodes.append(_Parser(match.group(2)).parse())
            trim_next = bool(match.group(3))
            position = match.end()

        tail = template[position:]
        if "{{" in tail:
            raise TemplateError(f"unclosed action in template {template!r}")
        if trim_next:
            tail = tail.lstrip()
        if tail:
            nodes.append(("text", tail))
        return nodes

    def render(self, data: Mapping[str, Any]) -> str:
        """Render the template against ``data`` (keys are field names)."""
        return "".join(str(self._evaluate(node, data)) for node in self.nodes)

    def _evaluate(self, node: Node, data: Mapping[str, Any], *piped: Any) -> Any:
        kind = node[0]
        if kind == "text":
            return node[1]
        if kind == "pipeline":
            value: Tuple[Any, ...] = ()
            for command in node[1]:
                value = (self._evaluate(command, data, *value),)
            return value[0]
        if kind in ("literal", "field") and piped:
            raise TemplateError("can't give argument to non-function")
        if kind == "literal":
            return node[1]
        if kind == "field":
            if node[1] not in data:
                raise TemplateError(f"can't evaluate field {node[1]}")
            return data[node[1]]
        if kind == "ident":
            node = ("call", node[1], [])
            kind = "call"
        if kind == "call":
            args = [self._evaluate(operand, data) for operand in node[2]]
            try:
                return FUNCTIONS[node[1]](*args, *piped)
            except TypeError as e:
                raise TemplateError(
                    f"wrong number of args for {node[1]}: {e}"
                ) from e
        raise TemplateError(f"unexpected node {kind}")
