"""Reading service configuration files.

Only ``yaml.safe_load`` is used, so a config file can never instantiate
Python objects. Structure is checked afterwards by the pydantic config
models, e.g. [DiscoveryConfig][blossomwatch.services.discovery.DiscoveryConfig].
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Return the top-level mapping of the YAML file at *config_path*.

    An empty document yields ``{}``.

    Raises:
        FileNotFoundError: If there is no such file.
        yaml.YAMLError: If the document does not parse.
        ConfigurationError: If the top level is not a mapping.
    """
    path = Path(config_path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{path}: top level must be a mapping, found {type(data).__name__}"
        )
    return data
