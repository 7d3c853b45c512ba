"""
Shared Curve State Module

The current curve configuration is read by the delivery loop on every tick
and replaced by HTTP requests. CurveState owns it together with its backing
file behind a reader/writer lock.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from ..errors import ConfigIOError
from .curve import CurveConfig, default_config
from .storage import ConfigRepository

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Lock allowing many readers or a single writer

    Waiting writers block new readers so a steady stream of reads cannot
    starve an update.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class CurveState:
    """Current curve configuration shared by the API and the delivery loop"""

    def __init__(self, repository: ConfigRepository):
        """Initialize state from the saved configuration

        Args:
            repository: Backing store for the configuration. When it holds
                no usable document the default curve is used in memory.
        """
        self.repository = repository
        self._lock = ReadWriteLock()

        saved = repository.load_or_none()
        self._persisted = saved is not None
        self._config = saved if saved is not None else default_config()
        logger.info(
            f"Loaded {'saved' if self._persisted else 'default'} curve: "
            f"{len(self._config.points)} points, {self._config.mode.value} mode"
        )

    def get(self) -> CurveConfig:
        """Get a copy of the current configuration"""
        with self._lock.read_locked():
            return copy.deepcopy(self._config)

    def set(self, config: CurveConfig) -> None:
        """Replace and persist the current configuration

        The in-memory value is replaced even when persisting fails so the
        running fan follows the latest curve.

        Raises:
            ConfigIOError: If the configuration could not be written
        """
        config = copy.deepcopy(config)
        with self._lock.write_locked():
            self._config = config
            try:
                self.repository.save(config)
                self._persisted = True
            except ConfigIOError:
                self._persisted = False
                raise
        logger.info(f"Curve updated: {len(config.points)} points, {config.mode.value} mode")

    @property
    def persisted(self) -> bool:
        """Whether the current configuration is on disk"""
        with self._lock.read_locked():
            return self._persisted

    def get_or_create_default(self) -> CurveConfig:
        """Get the current configuration, saving it first if it has not been
        persisted yet

        On a fresh install this writes the default curve. A failed save is
        logged and retried on the next call.
        """
        with self._lock.write_locked():
            if not self._persisted:
                try:
                    self.repository.save(self._config)
                    self._persisted = True
                    logger.info(f"Saved current curve to {self.repository.path}")
                except ConfigIOError as e:
                    logger.error(f"Could not save curve configuration: {e}")
            return copy.deepcopy(self._config)
