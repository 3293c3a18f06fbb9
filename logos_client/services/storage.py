"""
Key-value stores and device identity.
"""

import json
import random
import string
import time
from pathlib import Path
from typing import Dict, Optional, Union

from logos_client.config.logging_config import get_logger
from logos_client.domain.capabilities import KeyValueStore

logger = get_logger(__name__)

DEVICE_ID_KEY = "logos_device_id"

_BASE36 = string.digits + string.ascii_lowercase


class MemoryStore(KeyValueStore):
    """Process-local store; nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFileStore(KeyValueStore):
    """
    Key-value store persisted as a flat JSON object.

    A missing or unreadable file counts as an empty store. Every ``set``
    rewrites the whole file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring store {self.path}: not a JSON object")
            return {}
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def generate_device_id() -> str:
    """Create a new identifier of the form ``logos_<epoch ms>_<9 base36 chars>``."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"logos_{int(time.time() * 1000)}_{suffix}"


def resolve_device_id(store: KeyValueStore) -> str:
    """
    Return the stored device identifier, creating and persisting one if needed.

    Args:
        store: Store holding the identifier

    Returns:
        str: The device identifier
    """
    stored = store.get(DEVICE_ID_KEY)
    if stored:
        return stored

    device_id = generate_device_id()
    try:
        store.set(DEVICE_ID_KEY, device_id)
    except OSError as e:
        logger.warning(f"Could not persist device id: {e}")
    logger.info(f"Generated device id {device_id}")
    return device_id
