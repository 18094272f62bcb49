"""
Configuration for the water network models.

Values come from the YAML files in ``wdn_models/defaults/`` merged in name
order, then from ``WDN_MODELS_*`` environment variables, then from runtime
``set_config`` calls.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

ENV_PREFIX = "WDN_MODELS_"
DEFAULTS_DIR = Path(__file__).parent / "defaults"


def _deep_merge(base: Dict, update: Dict) -> Dict:
    merged = dict(base)
    for key, value in update.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _coerce_env_value(raw: str) -> Any:
    """Environment strings become bool, int or float where they parse as one."""
    if raw.lower() in ('true', 'false'):
        return raw.lower() == 'true'
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


class ConfigLoader:
    """Merged configuration of one config directory, addressed with dotted keys."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir is not None else DEFAULTS_DIR
        self._config: Dict[str, Any] = {}
        self._loaded = False

    def load(self) -> Dict[str, Any]:
        """
        Read every ``*.yaml`` file of the config directory and apply
        environment overrides. Earlier loads are discarded.

        Returns:
            The merged configuration.
        """
        self._config = {}
        for config_file in sorted(self.config_dir.glob("*.yaml")):
            logger.debug(f"Loading config from {config_file}")
            with open(config_file, 'r') as f:
                self._config = _deep_merge(self._config, yaml.safe_load(f) or {})

        self._apply_env_overrides()
        self._loaded = True
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """Value at a dotted key such as ``"physics.gravity"``, or ``default``."""
        if not self._loaded:
            self.load()

        value = self._config
        for k in key.split('.'):
            if not isinstance(value, dict) or k not in value:
                return default
            value = value[k]
        return value

    def set(self, key: str, value: Any) -> None:
        """Set the value at a dotted key, creating intermediate levels."""
        if not self._loaded:
            self.load()

        *parents, leaf = key.split('.')
        node = self._config
        for k in parents:
            if not isinstance(node.get(k), dict):
                node[k] = {}
            node = node[k]
        node[leaf] = value

    def _resolve_env_key(self, raw_key: str) -> str:
        """
        Map an environment key onto an existing dotted configuration path.

        Underscores are ambiguous (``SOLVER_TIME_LIMIT`` may mean
        ``solver.time_limit`` or ``solver.time.limit``), so existing keys
        are matched greedily before falling back to one level per word.
        """
        parts = raw_key.lower().split('_')
        path = []
        node = self._config
        i = 0
        while i < len(parts):
            matched = False
            if isinstance(node, dict):
                for j in range(len(parts), i, -1):
                    candidate = '_'.join(parts[i:j])
                    if candidate in node:
                        path.append(candidate)
                        node = node[candidate]
                        i = j
                        matched = True
                        break
            if not matched:
                path.append(parts[i])
                node = None
                i += 1
        return '.'.join(path)

    def _apply_env_overrides(self) -> None:
        for env_key, env_value in os.environ.items():
            if not env_key.startswith(ENV_PREFIX):
                continue

            config_key = self._resolve_env_key(env_key[len(ENV_PREFIX):])
            value = _coerce_env_value(env_value)
            logger.debug(f"Overriding {config_key} with {value} from environment")
            self._loaded = True
            self.set(config_key, value)


# Global configuration instance
_config_loader = ConfigLoader()


def load_config() -> Dict[str, Any]:
    """Reload the packaged configuration, dropping runtime overrides."""
    return _config_loader.load()


def get_config(key: str, default: Any = None) -> Any:
    return _config_loader.get(key, default)


def set_config(key: str, value: Any) -> None:
    _config_loader.set(key, value)
