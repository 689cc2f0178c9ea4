"""
`datamgr` console entry point.

Without a subcommand the interactive shell starts unconnected. `connect`
connects first (from flags, or through the wizard when no flag is given),
`config` maintains the saved default connection and `version` prints the
program version.
"""
import logging
import sys
from dataclasses import replace

import click

from datamgr import __version__
from datamgr.config import APP_NAME, clear_config, get_config_path
from datamgr.config import load_config, save_config
from datamgr.exceptions import DataMgrError, NoDefaultConfig
from datamgr.options import ConnectionConfig
from datamgr.registry import registry
from datamgr.shell import connect_wizard, run_shell, success

logger = logging.getLogger(__name__)

CLICK_CONTEXT_SETTINGS = {'help_option_names': ['-h', '--help']}
LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def connection_options(func):
    """Connection flags shared by `connect` and `config`."""
    options = [
        click.option('--type', 'db_type', help='database type (dameng, mysql, postgresql, sqlserver, oracle, sqlite)'),
        click.option('-H', '--host', help='database host'),
        click.option('-P', '--port', type=int, help='database port'),
        click.option('-u', '--user', help='database user'),
        click.option('-p', '--password', help='database password'),
        click.option('-D', '--dbname', help='database name (file path for sqlite)'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _given(**fields) -> dict:
    return {key: value for key, value in fields.items() if value is not None}


@click.group(invoke_without_command=True, context_settings=CLICK_CONTEXT_SETTINGS)
@click.option('-v', '--verbose', is_flag=True, help='log debug output')
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Manage data in Dameng, MySQL, PostgreSQL, SQL Server, Oracle and SQLite.
    """
    configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        run_shell()


@main.command(context_settings=CLICK_CONTEXT_SETTINGS)
@connection_options
def connect(db_type, host, port, user, password, dbname) -> None:
    """Connect to a database, then start the shell."""
    fields = _given(type=db_type, host=host, port=port, user=user, password=password, dbname=dbname)
    if not fields:
        connect_wizard(registry)
    else:
        config = ConnectionConfig(**fields)
        registry.connect(config)
        success(f'Connected to {config.type} database: {config.dbname}')
    run_shell()


@main.command(context_settings=CLICK_CONTEXT_SETTINGS)
@click.option('--show', is_flag=True, help='show the saved default connection')
@click.option('--save', is_flag=True, help='save the given flags as the default connection')
@click.option('--clear', is_flag=True, help='delete the saved default connection')
@connection_options
def config(show, save, clear, db_type, host, port, user, password, dbname) -> None:
    """Show, change or clear the saved default connection.

    Given connection flags update the saved default in place; a default
    dameng connection is started when none is saved.
    """
    if clear:
        clear_config()
        success('Default connection cleared')
        return

    fields = _given(type=db_type, host=host, port=port, user=user, password=password, dbname=dbname)
    if show or not (save or fields):
        current = load_config().redacted()
        click.echo(f'Default connection ({get_config_path()}):')
        for key, value in current.to_dict().items():
            click.echo(f'  {key}: {value}')
        return

    try:
        current = load_config()
    except NoDefaultConfig:
        current = ConnectionConfig()
    if 'type' in fields and 'port' not in fields and fields['type'] != current.type:
        fields['port'] = 0
    path = save_config(replace(current, **fields))
    success(f'Default connection saved to {path}')


@main.command(context_settings=CLICK_CONTEXT_SETTINGS)
def version() -> None:
    """Print the program version."""
    click.echo(f'{APP_NAME} version {__version__}')


def run() -> None:
    """Console script entry: exit 1 on a command error."""
    try:
        main(standalone_mode=False)
    except click.exceptions.Abort:
        click.echo()
        sys.exit(1)
    except click.ClickException as exc:
        exc.show()
        sys.exit(exc.exit_code)
    except (DataMgrError, ValueError) as exc:
        click.secho(f'✗ {exc}', fg='red', err=True)
        sys.exit(1)
    finally:
        registry.shutdown()


if __name__ == '__main__':
    run()
