# prax/services/parser.py
"""Parser for ``.prax`` schema files.

The grammar is an LALR grammar for lark. Plain ``//`` comments are ignored
by the lexer; ``///`` doc comments are recovered from the source lines and
attached to the item, field, enum variant or server that follows them.
"""

import logging
import re
from functools import lru_cache
from typing import Optional

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, VisitError

from prax.models import (
    Attribute,
    AttributeArg,
    AttributeValue,
    CompositeType,
    DatabaseProvider,
    Datasource,
    DuplicateDefinition,
    EnumDef,
    EnumVariant,
    Field,
    FieldType,
    Generator,
    Ident,
    Model,
    MssqlBlockOperation,
    Policy,
    PolicyCommand,
    PolicyType,
    PostgresExtension,
    RawSql,
    Schema,
    Server,
    ServerGroup,
    Span,
    TypeModifier,
    ValueKind,
    View,
)
from prax.utils.exceptions import PraxSyntaxError, SchemaLoadError

logger = logging.getLogger("prax.parser")


PRAX_GRAMMAR = r"""
schema: _item*

_item: model_def
     | enum_def
     | type_def
     | view_def
     | policy_def
     | server_group_def
     | datasource_def
     | generator_def
     | raw_sql_def

// --------------------
// Models, composite types and views
// --------------------
model_def: "model" CNAME "{" _member* "}"
type_def: "type" CNAME "{" _member* "}"
view_def: "view" CNAME "{" _member* "}"
_member: field_def | block_attribute

field_def: CNAME field_type field_attribute*
field_type: type_name type_modifier?
type_name: CNAME ["(" STRING ")"]
type_modifier: "?"         -> optional_modifier
             | "[" "]" "?" -> optional_list_modifier
             | "[" "]"     -> list_modifier

// --------------------
// Enums
// --------------------
enum_def: "enum" CNAME "{" _enum_member* "}"
_enum_member: enum_variant | block_attribute
enum_variant: CNAME field_attribute*

// --------------------
// Attributes
// --------------------
field_attribute: "@" attr_name [attr_args]
block_attribute: "@@" attr_name [attr_args]
attr_name: CNAME ("." CNAME)*
attr_args: "(" [attr_arg ("," attr_arg)* [","]] ")"
attr_arg: CNAME ":" value -> named_arg
        | value           -> positional_arg

?value: STRING                                -> string
      | TRIPLE_STRING                         -> triple_string
      | NUMBER                                -> number
      | CNAME                                 -> ident
      | CNAME "(" [value ("," value)*] ")"    -> function_call
      | "[" [value ("," value)* [","]] "]"    -> list_value

// --------------------
// Policies
// --------------------
policy_def: "policy" CNAME "on" CNAME "{" policy_item* "}"
policy_item: CNAME value

// --------------------
// Server groups, datasource, generators, raw SQL
// --------------------
server_group_def: "serverGroup" CNAME "{" _group_member* "}"
_group_member: server_def | block_attribute
server_def: "server" CNAME "{" server_property* "}"
server_property: CNAME "=" value

datasource_def: "datasource" CNAME "{" server_property* "}"
generator_def: "generator" CNAME "{" server_property* "}"
raw_sql_def: "rawSql" CNAME (TRIPLE_STRING | STRING)

// --------------------
// Tokens
// --------------------
TRIPLE_STRING.2: /\"\"\"[\s\S]*?\"\"\"/
STRING: /"(\\.|[^"\\])*"/
NUMBER: /-?\d+(\.\d+)?([eE][+-]?\d+)?/
COMMENT: /\/\/[^\n]*/

%import common.CNAME
%import common.WS
%ignore WS
%ignore COMMENT
"""


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\"}
_ESCAPE_RE = re.compile(r"\\(.)")


def _unescape(body: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


def _meta_span(meta) -> Span:
    if getattr(meta, "empty", True):
        return Span()
    return Span(start=meta.start_pos, end=meta.end_pos)


def _token_span(token: Token) -> Span:
    return Span(start=token.start_pos, end=token.end_pos)


def _token_error(message: str, token: Token) -> PraxSyntaxError:
    return PraxSyntaxError(
        message,
        offset=token.start_pos,
        length=max(len(token), 1),
        line=token.line,
        column=token.column,
    )


class _DocComments:
    """Looks up the ``///`` lines directly above a source position."""

    def __init__(self, source: str):
        self._lines = source.split("\n")

    def lookup(self, meta) -> Optional[str]:
        if getattr(meta, "empty", True):
            return None
        index = meta.line - 1
        if index >= len(self._lines):
            return None
        # Only nodes that start their line can carry docs.
        if self._lines[index][:meta.column - 1].strip():
            return None
        docs = []
        index -= 1
        while index >= 0:
            stripped = self._lines[index].strip()
            if not stripped.startswith("///"):
                break
            body = stripped[3:]
            if body.startswith(" "):
                body = body[1:]
            docs.append(body)
            index -= 1
        if not docs:
            return None
        return "\n".join(reversed(docs))


def _words(key: Token, value: AttributeValue) -> list[str]:
    """Words of a policy item value: one identifier/string or a list of them."""
    if value.kind in (ValueKind.IDENT, ValueKind.STRING):
        return [value.value]
    if value.kind in (ValueKind.FIELD_REF_LIST, ValueKind.ARRAY):
        words = []
        for item in value.items:
            if item.kind not in (ValueKind.IDENT, ValueKind.STRING):
                raise _token_error(f"'{key}' expects identifiers or strings", key)
            words.append(item.value)
        return words
    raise _token_error(f"'{key}' expects an identifier, a string or a list", key)


def _expression(key: Token, value: AttributeValue) -> str:
    if value.kind != ValueKind.STRING:
        raise _token_error(f"'{key}' expects a string expression", key)
    return value.value


class _SchemaTransformer(Transformer):
    """Turns the lark parse tree into the schema AST."""

    def __init__(self, source: str):
        super().__init__()
        self._docs = _DocComments(source)
        self._duplicates: list[DuplicateDefinition] = []

    # === Values ===

    def string(self, children):
        return AttributeValue.string(_unescape(children[0][1:-1]))

    def triple_string(self, children):
        return AttributeValue.string(children[0][3:-3].strip())

    def number(self, children):
        text = str(children[0])
        if any(c in text for c in ".eE"):
            return AttributeValue.float_(float(text))
        return AttributeValue.int_(int(text))

    def ident(self, children):
        name = str(children[0])
        if name in ("true", "false"):
            return AttributeValue.boolean(name == "true")
        return AttributeValue.ident(name)

    def function_call(self, children):
        name, *args = children
        return AttributeValue.function(str(name), [a for a in args if a is not None])

    def list_value(self, children):
        items = [c for c in children if c is not None]
        if items and all(item.kind == ValueKind.IDENT for item in items):
            return AttributeValue.field_refs([item.value for item in items])
        return AttributeValue.array(items)

    # === Attributes ===

    def attr_name(self, children):
        return ".".join(str(c) for c in children)

    def attr_args(self, children):
        return [c for c in children if c is not None]

    @v_args(meta=True)
    def named_arg(self, meta, children):
        name, value = children
        return AttributeArg(name=str(name), value=value, span=_meta_span(meta))

    @v_args(meta=True)
    def positional_arg(self, meta, children):
        return AttributeArg(value=children[0], span=_meta_span(meta))

    @v_args(meta=True)
    def field_attribute(self, meta, children):
        name, args = children
        return Attribute(name=name, args=args or [], span=_meta_span(meta))

    @v_args(meta=True)
    def block_attribute(self, meta, children):
        name, args = children
        return Attribute(name=name, args=args or [], span=_meta_span(meta), is_model_attribute=True)

    # === Fields ===

    def type_name(self, children):
        name, raw = children
        if raw is None:
            return FieldType.from_name(str(name))
        if name != "Unsupported":
            raise _token_error(f"unexpected type arguments on '{name}'", name)
        return FieldType.unsupported(_unescape(raw[1:-1]))

    def optional_modifier(self, children):
        return TypeModifier.OPTIONAL

    def list_modifier(self, children):
        return TypeModifier.LIST

    def optional_list_modifier(self, children):
        return TypeModifier.OPTIONAL_LIST

    def field_type(self, children):
        field_type = children[0]
        modifier = children[1] if len(children) > 1 else TypeModifier.REQUIRED
        return field_type, modifier

    @v_args(meta=True)
    def field_def(self, meta, children):
        name, (field_type, modifier), *attributes = children
        return Field(
            name=str(name),
            field_type=field_type,
            modifier=modifier,
            attributes=attributes,
            documentation=self._docs.lookup(meta),
            span=_meta_span(meta),
        )

    def _collect_members(self, owner: str, members: list) -> tuple[dict, list]:
        fields: dict[str, Field] = {}
        attributes = []
        for member in members:
            if isinstance(member, Attribute):
                attributes.append(member)
            elif member.name in fields:
                self._duplicates.append(DuplicateDefinition(
                    kind="field", name=f"{owner}.{member.name}", span=member.span
                ))
            else:
                fields[member.name] = member
        return fields, attributes

    @v_args(meta=True)
    def model_def(self, meta, children):
        name, *members = children
        fields, attributes = self._collect_members(str(name), members)
        return Model(
            name=str(name),
            fields=fields,
            attributes=attributes,
            documentation=self._docs.lookup(meta),
            span=_meta_span(meta),
        )

    @v_args(meta=True)
    def type_def(self, meta, children):
        name, *members = children
        fields, attributes = self._collect_members(str(name), members)
        return CompositeType(
            name=str(name),
            fields=fields,
            attributes=attributes,
            documentation=self._docs.lookup(meta),
            span=_meta_span(meta),
        )

    @v_args(meta=True)
    def view_def(self, meta, children):
        name, *members = children
        fields, attributes = self._collect_members(str(name), members)
        return View(
            name=str(name),
            fields=fields,
            attributes=attributes,
            documentation=self._docs.lookup(meta),
            span=_meta_span(meta),
        )

    # === Enums ===

    @v_args(meta=True)
    def enum_variant(self, meta, children):
        name, *attributes = children
        return EnumVariant(
            name=str(name),
            attributes=attributes,
            documentation=self._docs.lookup(meta),
            span=_meta_span(meta),
        )

    @v_args(meta=True)
    def enum_def(self, meta, children):
        name, *members = children
        variants = [m for m in members if isinstance(m, EnumVariant)]
        attributes = [m for m in members if isinstance(m, Attribute)]
        return EnumDef(
            name=str(name),
            variants=variants,
            attributes=attributes,
            documentation=self._docs.lookup(meta),
            span=_meta_span(meta),
        )

    # === Policies ===

    def policy_item(self, children):
        key, value = children
        return key, value

    @v_args(meta=True)
    def policy_def(self, meta, children):
        name, table, *items = children
        policy = Policy(
            name=str(name),
            table=Ident(name=str(table), span=_token_span(table)),
            documentation=self._docs.lookup(meta),
            span=_meta_span(meta),
        )
        for key, value in items:
            self._apply_policy_item(policy, key, value)
        return policy

    def _apply_policy_item(self, policy: Policy, key: Token, value: AttributeValue) -> None:
        if key == "for":
            commands = []
            for word in _words(key, value):
                command = PolicyCommand.from_str(word)
                if command is None:
                    raise _token_error(f"unknown policy command '{word}'", key)
                commands.append(command)
            policy.commands = commands
        elif key == "to":
            policy.roles = _words(key, value)
        elif key == "using":
            policy.using_expr = _expression(key, value)
        elif key == "check":
            policy.check_expr = _expression(key, value)
        elif key in ("type", "as"):
            words = _words(key, value)
            policy_type = PolicyType.from_str(words[0]) if len(words) == 1 else None
            if policy_type is None:
                raise _token_error(f"unknown policy type '{value}'", key)
            policy.policy_type = policy_type
        elif key == "mssqlSchema":
            words = _words(key, value)
            if len(words) != 1:
                raise _token_error("'mssqlSchema' expects a single name", key)
            policy.mssql_schema = words[0]
        elif key == "mssqlBlock":
            operations = []
            for word in _words(key, value):
                operation = MssqlBlockOperation.from_str(word)
                if operation is None:
                    raise _token_error(f"unknown block operation '{word}'", key)
                operations.append(operation)
            policy.mssql_block_operations = operations
        elif key == "mssqlUsing":
            policy.mssql_using_expr = _expression(key, value)
        else:
            raise _token_error(f"unknown policy item '{key}'", key)

    # === Server groups ===

    def server_property(self, children):
        key, value = children
        return key, value

    @v_args(meta=True)
    def server_def(self, meta, children):
        name, *props = children
        return Server(
            name=str(name),
            properties={str(k): v for k, v in props},
            documentation=self._docs.lookup(meta),
            span=_meta_span(meta),
        )

    @v_args(meta=True)
    def server_group_def(self, meta, children):
        name, *members = children
        group = ServerGroup(
            name=str(name),
            attributes=[m for m in members if isinstance(m, Attribute)],
            documentation=self._docs.lookup(meta),
            span=_meta_span(meta),
        )
        for member in members:
            if isinstance(member, Server):
                group.add_server(member)
        return group

    # === Datasource, generators, raw SQL ===

    @v_args(meta=True)
    def datasource_def(self, meta, children):
        name, *props = children
        provider = None
        url = None
        url_env = None
        extensions = []
        properties = {}
        for key, value in props:
            if key == "provider":
                provider = DatabaseProvider.from_str(value.as_str() or "")
                if provider is None:
                    raise _token_error(f"unknown datasource provider '{value}'", key)
            elif key == "url":
                url_env = value.env_var()
                url = None if url_env else value.as_str()
            elif key == "extensions":
                items = value.items if value.kind in (ValueKind.FIELD_REF_LIST, ValueKind.ARRAY) else [value]
                extensions = [self._extension(key, item) for item in items]
            else:
                properties[str(key)] = value
        if provider is None:
            raise _token_error("datasource requires a provider", name)
        return Datasource(
            name=str(name),
            provider=provider,
            url=url,
            url_env=url_env,
            extensions=extensions,
            properties=properties,
            span=_meta_span(meta),
        )

    def _extension(self, key: Token, item: AttributeValue) -> PostgresExtension:
        if item.kind in (ValueKind.IDENT, ValueKind.STRING):
            return PostgresExtension(name=item.value)
        if item.kind == ValueKind.FUNCTION:
            # vector("public", "0.5.0") -> schema, version
            args = [a.as_str() for a in item.items]
            return PostgresExtension(
                name=item.value,
                schema_name=args[0] if len(args) > 0 else None,
                version=args[1] if len(args) > 1 else None,
            )
        raise _token_error("extensions must be names", key)

    @v_args(meta=True)
    def generator_def(self, meta, children):
        name, *props = children
        return Generator(
            name=str(name),
            properties={str(k): v for k, v in props},
            span=_meta_span(meta),
        )

    @v_args(meta=True)
    def raw_sql_def(self, meta, children):
        name, body = children
        if body.type == "TRIPLE_STRING":
            sql = body[3:-3].strip()
        else:
            sql = _unescape(body[1:-1])
        return RawSql(name=str(name), sql=sql, span=_meta_span(meta))

    # === Root ===

    def schema(self, children):
        schema = Schema()
        for item in children:
            if isinstance(item, Model):
                schema.add_model(item)
            elif isinstance(item, EnumDef):
                schema.add_enum(item)
            elif isinstance(item, CompositeType):
                schema.add_type(item)
            elif isinstance(item, View):
                schema.add_view(item)
            elif isinstance(item, Policy):
                schema.add_policy(item)
            elif isinstance(item, ServerGroup):
                schema.add_server_group(item)
            elif isinstance(item, Datasource):
                schema.set_datasource(item)
            elif isinstance(item, Generator):
                schema.add_generator(item)
            elif isinstance(item, RawSql):
                schema.add_raw_sql(item)
        schema.duplicates.extend(self._duplicates)
        return schema


@lru_cache(maxsize=1)
def _get_parser() -> Lark:
    return Lark(
        PRAX_GRAMMAR,
        start="schema",
        parser="lalr",
        lexer="contextual",
        propagate_positions=True,
        maybe_placeholders=True,
    )


def _syntax_error(text: str, error: UnexpectedInput) -> PraxSyntaxError:
    """Convert a lark error into a ``PraxSyntaxError``."""
    line = error.line if error.line and error.line > 0 else None
    column = error.column if error.column and error.column > 0 else None
    if isinstance(error, UnexpectedEOF):
        return PraxSyntaxError("unexpected end of input", offset=len(text), length=0, line=line, column=column)
    offset = error.pos_in_stream if error.pos_in_stream is not None else len(text)
    if isinstance(error, UnexpectedCharacters):
        return PraxSyntaxError(
            f"unexpected character {text[offset]!r}",
            offset=offset,
            length=1,
            line=line,
            column=column,
        )
    token = getattr(error, "token", None)
    expected = sorted(getattr(error, "expected", None) or [])
    if token is None or token.type == "$END":
        return PraxSyntaxError("unexpected end of input", offset=len(text), length=0, line=line, column=column)
    message = f"unexpected {token!r}"
    if expected:
        message += f", expected one of: {', '.join(expected)}"
    return PraxSyntaxError(message, offset=offset, length=max(len(token), 1), line=line, column=column)


def parse_schema(text: str) -> Schema:
    """Parse schema source text.

    Args:
        text: Contents of a ``.prax`` file.

    Returns:
        The parsed schema with source spans.

    Raises:
        PraxSyntaxError: The text does not match the grammar.
    """
    try:
        tree = _get_parser().parse(text)
    except UnexpectedInput as e:
        raise _syntax_error(text, e) from e

    try:
        schema = _SchemaTransformer(text).transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, PraxSyntaxError):
            raise e.orig_exc from None
        raise

    stats = schema.stats()
    logger.debug(
        "Parsed schema: %d models, %d enums, %d types, %d views, %d policies, %d server groups",
        stats.model_count, stats.enum_count, stats.type_count,
        stats.view_count, stats.policy_count, stats.server_group_count
    )
    return schema


def parse_schema_file(path) -> Schema:
    """Read and parse a schema file.

    Args:
        path: Path to the ``.prax`` file.

    Returns:
        The parsed schema.

    Raises:
        SchemaLoadError: The file could not be read.
        PraxSyntaxError: The file does not match the grammar.
    """
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise SchemaLoadError(f"Failed to read schema file {path}: {e}") from e
    logger.info("Loaded schema file %s", path)
    return parse_schema(text)
