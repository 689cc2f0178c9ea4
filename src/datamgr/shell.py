"""
Interactive command shell over the connection registry.

One command per line; a trailing `;` is dropped and keywords are
case-insensitive. Built on the Python readline module directly, so it has
history, line editing and completion of commands and table names.
"""
import atexit
import logging
import readline
import shlex
import signal
import sys
from contextlib import suppress
from dataclasses import replace
from enum import StrEnum
from pathlib import Path
from typing import Any, Self

import click

from datamgr.config import clear_config, get_config_path, get_history_path
from datamgr.config import load_config, save_config, set_config_value
from datamgr.exceptions import DataMgrError, NoDefaultConfig
from datamgr.exporter import export_table
from datamgr.importer import ImportResult, import_table
from datamgr.options import DEFAULT_PORTS, ConnectionConfig
from datamgr.registry import ConnectionRegistry, registry
from datamgr.types import DESCRIPTOR_FIELDS, FileFormat, ImportMode

logger = logging.getLogger(__name__)

SUCCESS_PREFIX = '✓ '
ERROR_PREFIX = '✗ '
PROMPT = 'db> '
HISTORY_LENGTH = 1000
EDITLINE_BINDINGS_FILE = Path('~/.editrc').expanduser()
READLINE_BINDINGS_FILE = Path('~/.inputrc').expanduser()
DATA_FILE_EXTENSIONS = ('.csv', '.xlsx')

IMPORT_USAGE = 'usage: import <table> from <path> [format csv|excel] [mode insert|upsert]'
EXPORT_USAGE = 'usage: export <table> [where <condition>] <path> [format csv|excel]'
CONFIG_USAGE = 'usage: config [save | set <key> <value> | clear]'
DESCRIBE_USAGE = 'usage: desc table <table>'

HELP_TEXT = """\
System commands:
  help                         show this help
  clear                        clear the screen
  status                       show the current connection
  exit | quit                  disconnect and leave the shell

Connection commands:
  connect                      connect with the interactive wizard
  connect --type <t> -H <host> -P <port> -u <user> -p <password> -D <dbname>
  disconnect                   close the current connection

Config commands:
  config                       show the saved default connection
  config save                  save the current connection as the default
  config set <key> <value>     change one field (type, host, port, user, password, dbname)
  config clear                 delete the saved default connection

Table commands:
  show tables                  list tables
  desc table <table>           describe a table's columns

Data commands:
  select ... | insert ... | update ... | delete ...
  import <table> from <path> [format csv|excel] [mode insert|upsert]
  export <table> [where <condition>] <path> [format csv|excel]
"""

DESCRIBE_HEADERS = {
    'column_name': 'Column',
    'data_type': 'Type',
    'length': 'Length',
    'nullable': 'Nullable',
    'constraint_type': 'Constraint',
    'description': 'Comment',
    'identity_info': 'Identity',
}

CONNECT_FLAGS = {
    '--type': 'type',
    '-H': 'host',
    '--host': 'host',
    '-P': 'port',
    '--port': 'port',
    '-u': 'user',
    '--user': 'user',
    '-p': 'password',
    '--password': 'password',
    '-D': 'dbname',
    '--dbname': 'dbname',
}


class Command(StrEnum):
    """Keywords the shell dispatches on; also the completion vocabulary."""
    HELP = 'help'
    CLEAR = 'clear'
    STATUS = 'status'
    CONNECT = 'connect'
    DISCONNECT = 'disconnect'
    SHOW = 'show'
    DESC = 'desc'
    DESCRIBE = 'describe'
    SELECT = 'select'
    INSERT = 'insert'
    UPDATE = 'update'
    DELETE = 'delete'
    IMPORT = 'import'
    EXPORT = 'export'
    CONFIG = 'config'
    EXIT = 'exit'
    QUIT = 'quit'


def success(message: str) -> None:
    click.secho(f'{SUCCESS_PREFIX}{message}', fg='green')


def failure(message: str) -> None:
    click.secho(f'{ERROR_PREFIX}{message}', fg='red')


def display(columns: list[str], data: list[dict[str, Any]]) -> None:
    """Print rows as a bordered grid.

    Parameters:

    columns - the names of the columns, in order
    data    - list of rows; each row maps column -> value
    """
    if not data:
        click.echo('No data.')
        return

    def as_text(row: dict[str, Any], col: str) -> str:
        if (val := row.get(col)) is None:
            return 'NULL'
        return str(val)

    def make_line(fields: list[str], delim: str = '|', pad: str = ' ') -> str:
        return f'{delim}{pad}' + f'{pad}{delim}{pad}'.join(fields) + f'{pad}{delim}'

    widths = {col: len(col) for col in columns}
    for row in data:
        for col in columns:
            widths[col] = max(widths[col], len(as_text(row, col)))

    sep = make_line(['-' * widths[col] for col in columns], '+', '-')
    click.echo(sep)
    click.echo(make_line([col.ljust(widths[col]) for col in columns]))
    click.echo(sep)
    for row in data:
        click.echo(make_line([as_text(row, col).ljust(widths[col]) for col in columns]))
    click.echo(sep)

    suffix = 's' if len(data) > 1 else ''
    click.echo(f'{len(data):,} row{suffix}.')


def _has_data_extension(token: str) -> bool:
    return token.lower().endswith(DATA_FILE_EXTENSIONS)


def parse_import(tokens: list[str]) -> tuple[str, str, FileFormat | None, ImportMode]:
    """Parse `import <table> from <path> [format f] [mode m]`.

    >>> parse_import('import t from a.csv mode upsert'.split())
    ('t', 'a.csv', None, <ImportMode.UPSERT: 'upsert'>)
    """
    if len(tokens) < 4 or tokens[2].lower() != 'from':
        raise ValueError(IMPORT_USAGE)
    table, path = tokens[1], tokens[3]
    fmt, mode = None, ImportMode.INSERT
    options = tokens[4:]
    if len(options) % 2:
        raise ValueError(IMPORT_USAGE)
    for key, value in zip(options[::2], options[1::2]):
        match key.lower():
            case 'format':
                fmt = FileFormat.parse(value)
            case 'mode':
                try:
                    mode = ImportMode(value.lower())
                except ValueError:
                    raise ValueError(f'unsupported import mode: {value} (expected insert or upsert)') from None
            case _:
                raise ValueError(IMPORT_USAGE)
    return table, path, fmt, mode


def parse_export(tokens: list[str]) -> tuple[str, str | None, str, FileFormat | None]:
    """Parse `export <table> [where <condition>] <path> [format f]`.

    The WHERE clause runs until a `format` keyword or a token ending in
    `.csv`/`.xlsx`; a path placed after a WHERE clause therefore needs one
    of those extensions.

    >>> parse_export('export t where id > 3 out.csv'.split())
    ('t', 'id > 3', 'out.csv', None)
    """
    if len(tokens) < 3:
        raise ValueError(EXPORT_USAGE)
    table = tokens[1]
    where, path, fmt = None, None, None
    rest = tokens[2:]
    i = 0
    while i < len(rest):
        word = rest[i]
        if word.lower() == 'where':
            j = i + 1
            while j < len(rest) and rest[j].lower() != 'format' and not _has_data_extension(rest[j]):
                j += 1
            if j == i + 1:
                raise ValueError(EXPORT_USAGE)
            where = ' '.join(rest[i + 1:j])
            i = j
        elif word.lower() == 'format':
            if i + 1 >= len(rest):
                raise ValueError(EXPORT_USAGE)
            fmt = FileFormat.parse(rest[i + 1])
            i += 2
        elif path is None:
            path = word
            i += 1
        else:
            raise ValueError(f'unexpected argument: {word}; {EXPORT_USAGE}')
    if path is None:
        raise ValueError(EXPORT_USAGE)
    return table, where, path, fmt


def parse_connect_flags(tokens: list[str]) -> dict[str, Any]:
    """Map `connect` flags to config fields.

    >>> parse_connect_flags(['--type', 'sqlite', '-D', 'app.db'])
    {'type': 'sqlite', 'dbname': 'app.db'}
    """
    values = {}
    i = 0
    while i < len(tokens):
        flag = tokens[i]
        name, sep, inline = flag.partition('=')
        if name not in CONNECT_FLAGS:
            raise ValueError(f'unknown connect option: {flag}')
        if sep:
            value = inline
            i += 1
        else:
            if i + 1 >= len(tokens):
                raise ValueError(f'option {flag} needs a value')
            value = tokens[i + 1]
            i += 2
        field = CONNECT_FLAGS[name]
        if field == 'port':
            try:
                value = int(value)
            except ValueError:
                raise ValueError(f'port must be an integer: {value}') from None
        values[field] = value
    return values


def connect_wizard(reg: ConnectionRegistry = registry) -> ConnectionConfig:
    """Prompt for connection fields, offering the saved default first.
    """
    try:
        saved = load_config()
    except NoDefaultConfig:
        saved = None

    if saved is not None:
        click.echo(f'Saved default connection: {saved.redacted()}')
        if click.confirm('Use the saved default connection?', default=True):
            reg.connect(saved)
            success(f'Connected to {saved.type} database: {saved.dbname}')
            return saved

    base = saved or ConnectionConfig()
    db_type = click.prompt('Database type', default=base.type)
    config = ConnectionConfig(type=db_type)
    if config.type == 'sqlite':
        dbname = click.prompt('Database file', default=base.dbname or None)
        config = replace(config, dbname=dbname)
    else:
        port_default = base.port if base.type == config.type else DEFAULT_PORTS.get(config.type, 0)
        config = replace(
            config,
            host=click.prompt('Host', default=base.host),
            port=click.prompt('Port', default=port_default, type=int),
            user=click.prompt('User', default=base.user or None),
            password=click.prompt('Password', default=base.password or '', hide_input=True,
                                  show_default=False),
            dbname=click.prompt('Database name', default=base.dbname or None),
        )

    reg.connect(config)
    success(f'Connected to {config.type} database: {config.dbname}')
    if click.confirm('Save as the default connection?', default=False):
        path = save_config(config)
        success(f'Saved default connection to {path}')
    return config


def print_import_result(result: ImportResult) -> None:
    success(f'Imported {result.path} into {result.table}: {result.success} succeeded '
            f'({result.inserted} inserted, {result.updated} updated), '
            f'{result.errors} failed, {result.skipped} skipped')
    if result.unmapped_headers:
        click.echo(f'  headers not matched to columns: {", ".join(result.unmapped_headers)}')
    for fail in result.failures:
        click.echo(f'  row {fail.row}: {fail.message}')


class Shell:
    """Dispatches shell lines against a connection registry.
    """

    def __init__(self: Self, reg: ConnectionRegistry = registry) -> None:
        self.registry = reg
        self._matches: list[str] = []

    @property
    def prompt(self: Self) -> str:
        if self.registry.is_connected():
            return f'db[{self.registry.get_current_config().dbname}]> '
        return PROMPT

    def execute_command(self: Self, line: str) -> bool:
        """Run one shell line; returns False when the shell should exit.

        Errors from the command are printed and the shell continues.
        """
        line = line.strip()
        while line.endswith(';'):
            line = line[:-1].rstrip()
        if not line:
            return True

        tokens = line.split()
        words = [t.lower() for t in tokens]
        try:
            match words:
                case [Command.EXIT | Command.QUIT, *_]:
                    self.registry.shutdown()
                    click.echo('Bye!')
                    return False
                case [Command.HELP, *_]:
                    click.echo(HELP_TEXT)
                case [Command.CLEAR]:
                    click.clear()
                case [Command.STATUS]:
                    self.show_status()
                case [Command.CONNECT, *_]:
                    self.connect(self._shell_split(line)[1:])
                case [Command.DISCONNECT]:
                    self.registry.disconnect()
                    success('Disconnected')
                case [Command.SHOW, 'tables']:
                    self.show_tables()
                case [Command.DESC | Command.DESCRIBE, 'table', _]:
                    self.describe(tokens[2])
                case [Command.DESC | Command.DESCRIBE, name] if name != 'table':
                    self.describe(tokens[1])
                case [Command.DESC | Command.DESCRIBE, *_]:
                    raise ValueError(DESCRIBE_USAGE)
                case [Command.SELECT, *_]:
                    self.run_query(line)
                case [Command.INSERT | Command.UPDATE | Command.DELETE, *_]:
                    self.run_execute(line)
                case [Command.IMPORT, *_]:
                    self.run_import(tokens)
                case [Command.EXPORT, *_]:
                    self.run_export(tokens)
                case [Command.CONFIG, *_]:
                    self.run_config(self._shell_split(line)[1:])
                case _:
                    failure(f'unknown command: {tokens[0]} (type "help" for commands)')
        except (DataMgrError, ValueError) as exc:
            failure(str(exc))
        return True

    @staticmethod
    def _shell_split(line: str) -> list[str]:
        try:
            return shlex.split(line)
        except ValueError:
            return line.split()

    def show_status(self: Self) -> None:
        if not self.registry.is_connected():
            click.echo('Not connected.')
            return
        config = self.registry.get_current_config().redacted()
        click.echo(f'Connected: {config}')
        click.echo(f'  type:     {config.type}')
        click.echo(f'  host:     {config.host}')
        click.echo(f'  port:     {config.port}')
        click.echo(f'  user:     {config.user}')
        click.echo(f'  password: {config.password}')
        click.echo(f'  dbname:   {config.dbname}')

    def connect(self: Self, args: list[str]) -> None:
        if not args:
            connect_wizard(self.registry)
            return
        config = ConnectionConfig(**parse_connect_flags(args))
        self.registry.connect(config)
        success(f'Connected to {config.type} database: {config.dbname}')

    def show_tables(self: Self) -> None:
        tables = self.registry.get_current_connection().get_tables()
        display(['Tables'], [{'Tables': name} for name in tables])

    def describe(self: Self, table: str) -> None:
        columns = self.registry.get_current_connection().describe_table(table)
        headers = [DESCRIBE_HEADERS[field] for field in DESCRIPTOR_FIELDS]
        rows = [{DESCRIBE_HEADERS[k]: v for k, v in col.to_dict().items()} for col in columns]
        display(headers, rows)

    def run_query(self: Self, sql: str) -> None:
        rows = self.registry.get_current_connection().query(sql)
        columns = list(rows[0].keys()) if rows else []
        display(columns, rows)

    def run_execute(self: Self, sql: str) -> None:
        affected = self.registry.get_current_connection().execute(sql)
        success(f'{affected} row(s) affected')

    def run_import(self: Self, tokens: list[str]) -> None:
        table, path, fmt, mode = parse_import(tokens)
        driver = self.registry.get_current_connection()
        print_import_result(import_table(driver, table, path, format=fmt, mode=mode))

    def run_export(self: Self, tokens: list[str]) -> None:
        table, where, path, fmt = parse_export(tokens)
        driver = self.registry.get_current_connection()
        result = export_table(driver, table, path, where=where, format=fmt)
        success(f'Exported {result.rows} rows of {table} to {result.path}')

    def run_config(self: Self, args: list[str]) -> None:
        match [a.lower() for a in args[:1]] + args[1:]:
            case []:
                config = load_config().redacted()
                click.echo(f'Default connection ({get_config_path()}):')
                for key, value in config.to_dict().items():
                    click.echo(f'  {key}: {value}')
            case ['save']:
                path = save_config(self.registry.get_current_config())
                success(f'Saved current connection as default to {path}')
            case ['set', key, value]:
                set_config_value(key, value)
                success(f'Config {key} updated')
            case ['clear']:
                clear_config()
                success('Default connection cleared')
            case _:
                raise ValueError(CONFIG_USAGE)

    def complete(self: Self, text: str, state: int) -> str | None:
        """readline completer for commands and, after table keywords, table names.
        """
        if state == 0:
            self._matches = self._completion_options(readline.get_line_buffer(), text)
        if state < len(self._matches):
            return self._matches[state]
        return None

    def _completion_options(self: Self, full_line: str, text: str) -> list[str]:
        words = full_line.lstrip().lower().split()
        if full_line.endswith(' '):
            words.append('')
        match words:
            case [] | [_]:
                return [c.value for c in Command if c.value.startswith(text.lower())]
            case [Command.DESC | Command.DESCRIBE, _] | ['show', _]:
                keyword = 'tables' if words[0] == 'show' else 'table'
                return [keyword] if keyword.startswith(text.lower()) else []
            case ([Command.DESC | Command.DESCRIBE, 'table', _]
                  | [Command.SELECT, *_, 'from', _]
                  | [Command.IMPORT | Command.EXPORT, _]
                  | [Command.INSERT, 'into', _]
                  | [Command.UPDATE, _]
                  | [Command.DELETE, 'from', _]):
                return self._table_names(text)
            case _:
                return []

    def _table_names(self: Self, text: str) -> list[str]:
        if not self.registry.is_connected():
            return []
        try:
            tables = self.registry.get_current_connection().get_tables()
        except DataMgrError as exc:
            logger.debug(f'Table completion failed: {exc}')
            return []
        return [t for t in tables if t.lower().startswith(text.lower())]


def init_history(history_path: Path) -> None:
    """Load the readline history file and save it again on exit.
    """
    with suppress(FileNotFoundError):
        readline.read_history_file(str(history_path))
    readline.set_history_length(HISTORY_LENGTH)
    atexit.register(readline.write_history_file, str(history_path))


def init_bindings_and_completion(shell: Shell) -> None:
    """Bind tab to completion for whichever readline library is compiled in.
    """
    if readline.__doc__ is not None and 'libedit' in readline.__doc__:
        init_file = EDITLINE_BINDINGS_FILE
        completion_binding = 'bind ^I rl_complete'
    else:
        init_file = READLINE_BINDINGS_FILE
        completion_binding = 'Control-I: rl_complete'

    with suppress(OSError):
        readline.read_init_file(str(init_file))
    readline.parse_and_bind(completion_binding)
    readline.set_completer_delims(' \t\n;,()')
    readline.set_completer(shell.complete)


def install_signal_handlers(reg: ConnectionRegistry = registry) -> None:
    """Close the connection and exit 0 on SIGINT or SIGTERM."""
    def handler(signum, frame):
        click.echo()
        reg.shutdown()
        sys.exit(0)

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def run_shell(reg: ConnectionRegistry = registry, history_path: Path | None = None) -> None:
    """Read-eval loop until `exit`, end of input or a signal.
    """
    shell = Shell(reg)
    init_history(history_path or get_history_path())
    init_bindings_and_completion(shell)
    install_signal_handlers(reg)

    click.echo('datamgr interactive shell. Type "help" for commands, "exit" to quit.')
    while True:
        try:
            line = input(shell.prompt)
        except EOFError:
            click.echo()
            reg.shutdown()
            break
        if not shell.execute_command(line):
            break
