"""
Process-wide holder of the active driver.

A single lock-guarded slot holds `(driver, config)`; both are set together or
cleared together. The shell owns the lifecycle: it connects, disconnects,
and calls `shutdown()` from its signal handlers, which must tolerate an
empty slot.
"""
import logging
import threading

from datamgr.cache import MetadataCache
from datamgr.drivers import DialectDriver, get_driver_class
from datamgr.exceptions import AlreadyConnected, NotConnected
from datamgr.options import ConnectionConfig

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Single-slot registry of the current driver and its config.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._driver: DialectDriver | None = None
        self._config: ConnectionConfig | None = None

    def connect(self, config: ConnectionConfig) -> DialectDriver:
        """Build the driver for `config.type`, connect it and install it.

        Raises
            AlreadyConnected: a driver is already installed
            UnsupportedDialect: no driver for the type
            UnsupportedOnPlatform: the driver's native client is missing
            ConnectFailed: the driver could not connect
        """
        with self._lock:
            if self._driver is not None:
                raise AlreadyConnected(
                    f'already connected to {self._config.type}; disconnect first')
            driver_cls = get_driver_class(config.type)
            if not driver_cls.available:
                raise driver_cls.unsupported_error()
            driver_cls.validate_options(config)
            driver = driver_cls(config)
            driver.connect()
            MetadataCache.get_instance().clear_all()
            self._driver, self._config = driver, config
            return driver

    def disconnect(self) -> None:
        """Disconnect the current driver and clear the slot.

        The slot is cleared even when the driver's close fails.

        Raises
            NotConnected: slot is empty
        """
        with self._lock:
            if self._driver is None:
                raise NotConnected()
            driver = self._driver
            self._driver = self._config = None
            MetadataCache.get_instance().clear_all()
            driver.disconnect()

    def shutdown(self) -> None:
        """Tolerant teardown for exit paths; never raises on an empty slot.
        """
        with self._lock:
            if self._driver is None:
                return
            try:
                self.disconnect()
            except Exception as exc:
                logger.warning(f'Error closing connection during shutdown: {exc}')

    def get_current_connection(self) -> DialectDriver:
        """Return the active driver.

        Raises
            NotConnected: slot is empty
        """
        with self._lock:
            if self._driver is None:
                raise NotConnected()
            return self._driver

    def get_current_config(self) -> ConnectionConfig:
        """Return the config of the active driver.

        Raises
            NotConnected: slot is empty
        """
        with self._lock:
            if self._config is None:
                raise NotConnected()
            return self._config

    def is_connected(self) -> bool:
        with self._lock:
            return self._driver is not None


registry = ConnectionRegistry()
