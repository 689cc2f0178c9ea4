"""
Persisted default connection config.

Stored as two-space-indented JSON at `~/.datamgr-cli/datamgr-cli-config.json`
(directory mode 0755, file mode 0644). Set `DATAMGR_HOME` to use another
directory.
"""
import json
import logging
import os
from dataclasses import replace
from pathlib import Path

from datamgr.exceptions import ConfigCorrupt, NoDefaultConfig, UnsupportedDialect
from datamgr.options import CONFIG_FIELDS, DEFAULT_PORTS, ConnectionConfig

logger = logging.getLogger(__name__)

APP_NAME = 'datamgr-cli'
CONFIG_FILE_NAME = f'{APP_NAME}-config.json'
HISTORY_FILE_NAME = 'history'


def get_config_dir() -> Path:
    """Config directory, created on first use."""
    config_dir = Path(os.getenv('DATAMGR_HOME') or Path.home() / f'.{APP_NAME}')
    config_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILE_NAME


def get_history_path() -> Path:
    return get_config_dir() / HISTORY_FILE_NAME


def load_config() -> ConnectionConfig:
    """Load the default config.

    Raises
        NoDefaultConfig: no config file exists
        ConfigCorrupt: file exists but is not a valid config
    """
    path = get_config_path()
    if not path.exists():
        raise NoDefaultConfig('no default config saved')
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ConfigCorrupt(f'cannot read config {path}: {exc}') from exc
    if not isinstance(data, dict):
        raise ConfigCorrupt(f'config {path} is not a JSON object')
    for key in ('type', 'host', 'user', 'password', 'dbname'):
        if data.get(key) is not None and not isinstance(data[key], str):
            raise ConfigCorrupt(f'config {path}: field {key} must be a string')
    if data.get('port') is not None and (not isinstance(data['port'], int) or isinstance(data['port'], bool)):
        raise ConfigCorrupt(f'config {path}: field port must be an integer')
    try:
        return ConnectionConfig.from_dict(data)
    except UnsupportedDialect as exc:
        raise ConfigCorrupt(f'config {path}: {exc}') from exc


def save_config(config: ConnectionConfig) -> Path:
    """Write the config as the default, replacing any previous one."""
    path = get_config_path()
    data = {key: getattr(config, key) for key in CONFIG_FIELDS}
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding='utf-8')
    path.chmod(0o644)
    logger.debug(f'Saved default config to {path}')
    return path


def clear_config() -> None:
    """Delete the default config.

    Raises
        NoDefaultConfig: nothing to delete
    """
    path = get_config_path()
    if not path.exists():
        raise NoDefaultConfig('no default config saved')
    path.unlink()
    logger.debug(f'Removed default config {path}')


def set_config_value(key: str, value: str) -> ConnectionConfig:
    """Change one field of the default config and save it.

    A default `dameng` config is started when none exists. Changing `type`
    resets the port to the new dialect's default unless it was customized.

    Raises
        ValueError: unknown key or non-integer port
        UnsupportedDialect: unknown type
    """
    key = key.strip().lower()
    if key == 'db':
        key = 'dbname'
    if key not in CONFIG_FIELDS:
        raise ValueError(f'unknown config key: {key} (expected one of {", ".join(CONFIG_FIELDS)})')

    try:
        config = load_config()
    except NoDefaultConfig:
        config = ConnectionConfig()

    if key == 'port':
        try:
            new_value = int(value)
        except ValueError:
            raise ValueError(f'port must be an integer: {value}') from None
        config = replace(config, port=new_value)
    elif key == 'type':
        port = 0 if config.port == DEFAULT_PORTS.get(config.type) else config.port
        config = replace(config, type=value, port=port)
    else:
        config = replace(config, **{key: value})

    save_config(config)
    return config
