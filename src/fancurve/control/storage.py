"""
Curve Persistence Module

This module stores the saved curve configuration and the last generated
curve as pretty-printed JSON documents, one file per document kind.
"""

import json
import logging
import os
import threading
from typing import Any, Dict, Generic, Optional, TypeVar

from ..errors import ConfigIOError
from .curve import CurveConfig, SampledCurve

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JSONRepository(Generic[T]):
    """Loads and saves one document type to a fixed JSON file"""

    def __init__(self, path: str):
        """Initialize repository

        Args:
            path: File holding the document
        """
        self.path = path
        self._lock = threading.Lock()

    def _decode(self, data: Any) -> T:
        raise NotImplementedError

    def _encode(self, document: T) -> Dict[str, Any]:
        raise NotImplementedError

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def load(self) -> T:
        """Load the stored document

        Returns:
            Parsed document

        Raises:
            ConfigIOError: If the file is missing, unreadable or invalid
        """
        with self._lock:
            try:
                with open(self.path) as f:
                    data = json.load(f)
            except FileNotFoundError:
                raise ConfigIOError(f"No saved document at {self.path}")
            except (OSError, ValueError) as e:
                raise ConfigIOError(f"Failed to read {self.path}: {e}") from e

        try:
            return self._decode(data)
        except ValueError as e:
            raise ConfigIOError(f"Invalid document in {self.path}: {e}") from e

    def load_or_none(self) -> Optional[T]:
        """Load the stored document, logging and returning None on failure"""
        try:
            return self.load()
        except ConfigIOError as e:
            if self.exists():
                logger.warning(f"Ignoring unusable saved state: {e}")
            else:
                logger.debug(str(e))
            return None

    def save(self, document: T) -> None:
        """Overwrite the stored document

        The file is replaced in one step so readers never see a partial
        write.

        Raises:
            ConfigIOError: If the file cannot be written
        """
        data = json.dumps(self._encode(document), indent=2)
        tmp_path = f"{self.path}.tmp"
        with self._lock:
            try:
                directory = os.path.dirname(self.path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                with open(tmp_path, "w") as f:
                    f.write(data)
                os.replace(tmp_path, self.path)
            except OSError as e:
                raise ConfigIOError(f"Failed to write {self.path}: {e}") from e
        logger.debug(f"Saved {self.path}")


class ConfigRepository(JSONRepository[CurveConfig]):
    """Stores the user's curve configuration"""

    def _decode(self, data: Any) -> CurveConfig:
        return CurveConfig.from_dict(data)

    def _encode(self, document: CurveConfig) -> Dict[str, Any]:
        return document.to_dict()


class CurveRepository(JSONRepository[SampledCurve]):
    """Stores the last generated curve

    The service never reads curve.json back. load() is there for tools and
    tests that inspect it.
    """

    def _decode(self, data: Any) -> SampledCurve:
        return SampledCurve.from_dict(data)

    def _encode(self, document: SampledCurve) -> Dict[str, Any]:
        return document.to_dict()
