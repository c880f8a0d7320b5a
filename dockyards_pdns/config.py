"""Dockyards configuration access and controller settings loading."""

from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Union

import yaml

from .consts import CONFIG_MAP
from .errors import ConfigKeyMissingError, ResourceNotFoundError
from .logging_config import get_logger
from .models import ControllerSettings

logger = get_logger(__name__)


class ConfigReader(Protocol):
    """Read-only key/value access to externally adjustable parameters."""

    def get_value(self, key: str, default: str = "") -> str:
        ...


class DockyardsConfig:
    """Dockyards configuration, read once from a ConfigMap at startup."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})

    def get_value(self, key: str, default: str = "") -> str:
        value = self._values.get(key)
        if value is None:
            return default
        return value

    def __contains__(self, key: str) -> bool:
        return bool(self._values.get(key))

    def __repr__(self) -> str:
        return f"DockyardsConfig(keys={sorted(self._values)})"

    @classmethod
    async def load(cls, store, name: str, namespace: str) -> "DockyardsConfig":
        """Read the Dockyards ConfigMap.

        Args:
            store: ResourceStore used to read the ConfigMap.
            name: ConfigMap name.
            namespace: ConfigMap namespace.

        Returns:
            The configuration held in the ConfigMap data.

        Raises:
            ResourceNotFoundError: If the ConfigMap does not exist.
        """
        config_map = await store.get(CONFIG_MAP, namespace, name)
        if config_map is None:
            raise ResourceNotFoundError(CONFIG_MAP.kind, namespace, name)

        data = config_map.get("data") or {}
        logger.info("Loaded Dockyards config", config_map=name, namespace=namespace, keys=sorted(data))
        return cls(data)


def require(config: ConfigReader, key: str) -> str:
    """Return the value of ``key``, raising ConfigKeyMissingError when it is empty."""
    value = config.get_value(key, "")
    if not value:
        raise ConfigKeyMissingError(key)
    return value


def load_settings(path: Optional[Union[str, Path]] = None) -> ControllerSettings:
    """Load controller settings from a YAML file, or defaults when no path is given."""
    if path is None:
        return ControllerSettings()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return ControllerSettings(**data)
