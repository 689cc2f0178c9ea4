"""
SQL text helpers: placeholder rewriting and identifier quoting.

Callers of the core always write `?` placeholders. Each driver declares a
DBAPI paramstyle and `convert_placeholders` rewrites the statement for it:

    qmark    ?    (sqlite3, pyodbc, dmPython)
    format   %s   (psycopg, PyMySQL)
    numeric  :1   (python-oracledb)

Quoted literals and quoted identifiers are never rewritten.
"""
import re
from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Token types identified during SQL scanning."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    QUOTED_IDENTIFIER = auto()
    PLACEHOLDER = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL scanning."""
    type: TokenType
    text: str


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*')
    |(?P<ident>"(?:[^"]|"")*"|`(?:[^`]|``)*`)
    |(?P<qmark>\?)
""", re.VERBOSE)


def tokenize_sql(sql: str) -> list[Token]:
    """Split SQL into literal, identifier, placeholder and plain-text tokens.
    """
    tokens = []
    last_end = 0
    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start]))
        if match.group('string'):
            ttype = TokenType.STRING_LITERAL
        elif match.group('ident'):
            ttype = TokenType.QUOTED_IDENTIFIER
        else:
            ttype = TokenType.PLACEHOLDER
        tokens.append(Token(ttype, match.group(0)))
        last_end = end
    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:]))
    return tokens


def count_placeholders(sql: str) -> int:
    """Number of `?` placeholders outside literals and quoted identifiers.
    """
    return sum(1 for t in tokenize_sql(sql) if t.type == TokenType.PLACEHOLDER)


def convert_placeholders(sql: str, paramstyle: str = 'qmark',
                         escape_percent: bool = False) -> str:
    """Rewrite `?` placeholders into the driver's paramstyle.

    Parameters
        sql: statement written with `?` placeholders
        paramstyle: DBAPI paramstyle of the target driver
        escape_percent: double literal `%` signs; required by `format`
            drivers when parameters are bound

    Returns
        SQL ready for `cursor.execute`
    """
    if paramstyle == 'qmark' or not sql:
        return sql
    if paramstyle not in {'format', 'pyformat', 'numeric'}:
        raise ValueError(f'Unsupported paramstyle: {paramstyle}')

    result = []
    position = 0
    for token in tokenize_sql(sql):
        if token.type == TokenType.PLACEHOLDER:
            position += 1
            result.append(f':{position}' if paramstyle == 'numeric' else '%s')
        elif escape_percent and paramstyle != 'numeric':
            result.append(token.text.replace('%', '%%'))
        else:
            result.append(token.text)
    return ''.join(result)


def quote_identifier(identifier: str, dialect: str = 'postgresql') -> str:
    """Safely quote database identifiers.

    Parameters
        identifier: Table or column name
        dialect: Database dialect

    Returns
        Quoted identifier

    Raises
        ValueError: If dialect is unsupported
    """
    if dialect in {'postgresql', 'sqlite', 'oracle', 'dameng'}:
        return '"' + identifier.replace('"', '""') + '"'
    if dialect == 'mysql':
        return '`' + identifier.replace('`', '``') + '`'
    if dialect == 'sqlserver':
        return '[' + identifier.replace(']', ']]') + ']'

    raise ValueError(f'Unknown dialect: {dialect}')
