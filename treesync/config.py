# treesync/config.py
from __future__ import annotations
import copy
import importlib
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

logger = logging.getLogger(__name__)

# Values used when neither the embedded module nor the YAML file set a key.
DEFAULTS: Dict[str, Any] = {
    "app_name": "treesync",
    "win_width": 1024,
    "win_height": 720,
    "frameless": False,
    "maximized": False,
    "Debug": False,
    "log_level": "INFO",
    "protocol": {
        "version": 1,
        "supported_versions": [1],
    },
    "router": {
        # Event kinds coalesced to their latest value while one is in flight.
        "coalesce": ["resize", "input"],
    },
    "session": {
        "max_queued_commits": 64,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """
    Singleton config loader that supports:
      - an embedded config module (default name: _embedded_config, attribute: CONFIG)
      - a fallback YAML file (config.yaml, or the path in $TREESYNC_CONFIG)

    Loaded values are merged over ``DEFAULTS``, so every documented key has a value.

    Usage:
        cfg = Config()  # prefers embedded if available, else loads config.yaml
        value = cfg.get("app_name", "default")
        version = cfg.get_nested("protocol.version", 1)
        raw = cfg.as_dict()
        cfg.reload()    # re-read embedded/file (useful in dev)

    Parameters:
      config_file: path to YAML config (relative or absolute). Attempts sensible fallbacks.
      prefer_embedded: when True (default) try embedded module first, otherwise check file first.
      embedded_module_name: module name to import when looking for embedded config (default: "_embedded_config")
    """

    _instance: Optional["Config"] = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
        return cls._instance

    def __init__(
        self,
        config_file: Optional[str] = None,
        prefer_embedded: bool = True,
        embedded_module_name: str = "_embedded_config",
    ):
        # initialize only once
        if getattr(self, "_initialized", False):
            return

        self._initialized = True
        config_file = config_file or os.environ.get("TREESYNC_CONFIG", "config.yaml")
        self.config_file_arg = str(config_file)
        self.prefer_embedded = bool(prefer_embedded)
        self.embedded_module_name = embedded_module_name

        self._config: Dict[str, Any] = copy.deepcopy(DEFAULTS)
        self._source: Optional[str] = None  # 'embedded' or 'file' or None

        self._resolved_config_path: Optional[Path] = self._resolve_config_path(self.config_file_arg)

        self.reload()

    @classmethod
    def reset_instance(cls) -> None:
        """Forget the singleton so the next ``Config(...)`` loads afresh."""
        cls._instance = None

    # ----- public API -----
    def reload(self, prefer_embedded: Optional[bool] = None) -> None:
        """
        Reload the configuration. If prefer_embedded is provided, it overrides the instance preference
        just for this reload.
        """
        prefer = self.prefer_embedded if prefer_embedded is None else bool(prefer_embedded)

        if prefer:
            loaded = self._try_load_embedded() or self._try_load_file()
        else:
            loaded = self._try_load_file() or self._try_load_embedded()

        if not loaded:
            self._source = None
            self._config = copy.deepcopy(DEFAULTS)
        logger.debug("Config loaded from %s", self._source or "defaults")

    def as_dict(self) -> Dict[str, Any]:
        """Return the loaded configuration as a dict."""
        return copy.deepcopy(self._config)

    def get(self, key: str, default: Any = None) -> Any:
        """Shallow lookup in the top-level config dict."""
        return self._config.get(key, default)

    def get_nested(self, path: str, default: Any = None, sep: str = ".") -> Any:
        """
        Lookup nested keys using dot-path (e.g. "protocol.version").
        Returns default if any step is missing.
        """
        cur = self._config
        if not path:
            return default
        for part in path.split(sep):
            if not isinstance(cur, dict):
                return default
            if part in cur:
                cur = cur[part]
            else:
                return default
        return cur

    @property
    def is_embedded(self) -> bool:
        """True if the currently loaded config came from the embedded module."""
        return self._source == "embedded"

    @property
    def source(self) -> Optional[str]:
        """Return 'embedded'|'file'|None depending on where config came from."""
        return self._source

    @property
    def resolved_config_path(self) -> Optional[Path]:
        """If a filesystem config was resolved, return its Path, otherwise None."""
        return self._resolved_config_path

    # ----- internal helpers -----
    def _resolve_config_path(self, config_file: str) -> Optional[Path]:
        """
        Try to resolve the YAML config path:
          1. config_file is absolute and exists
          2. config_file relative to the current working directory
          3. config_file relative to the project root (parent of this package)
        """
        candidate = Path(config_file)
        if candidate.is_absolute():
            return candidate.resolve() if candidate.exists() else None

        cwd_path = (Path.cwd() / candidate).resolve()
        if cwd_path.exists():
            return cwd_path

        project_root = Path(__file__).resolve().parent.parent
        root_path = (project_root / candidate).resolve()
        if root_path.exists():
            return root_path

        return None

    def _try_load_embedded(self) -> bool:
        """Try to import the embedded module and fetch CONFIG. Returns True on success."""
        try:
            module = importlib.import_module(self.embedded_module_name)
        except ModuleNotFoundError:
            return False
        cfg = getattr(module, "CONFIG", None) or getattr(module, "embedded_config", None)
        if not isinstance(cfg, dict):
            logger.warning("Embedded config module %s has no CONFIG dict", self.embedded_module_name)
            return False
        self._config = _merge(DEFAULTS, cfg)
        self._source = "embedded"
        return True

    def _try_load_file(self) -> bool:
        """Try to load YAML file from resolved path. Returns True on success."""
        if not self._resolved_config_path:
            return False
        try:
            with self._resolved_config_path.open("r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not read config file %s: %s", self._resolved_config_path, e)
            return False
        if data is None:
            data = {}
        if not isinstance(data, dict):
            # YAML parsed but not dict -> store raw under a key
            data = {"__root__": data}
        self._config = _merge(DEFAULTS, data)
        self._source = "file"
        return True


# single shared instance helper
def get_config(*args, **kwargs) -> Config:
    """
    Convenience factory that returns the singleton Config instance.
    Arguments forwarded to Config() only on the first call.
    """
    return Config(*args, **kwargs)
