"""YAML configuration loading with ``${VAR}`` / ``$VAR`` substitution.

A config file ``configs/config_<name>.yaml`` may have a sibling
``configs/.env_<name>`` holding the secrets it references. Values from that
file are consulted first, then the process environment; ``os.environ`` itself
is never modified.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import yaml
from dotenv import dotenv_values

logger = logging.getLogger("thinkrelay")

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = "configs/config_default.yaml"
CONFIG_PATH_ENV = "THINKRELAY_CONFIG"

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def default_config_path() -> str:
    """Config path from THINKRELAY_CONFIG, falling back to the bundled default."""
    return os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH


def resolve_config_path(path: str) -> Path:
    """Relative paths are taken from the project root, not the working directory."""
    candidate = Path(path)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_env_path(config_path: Path, env_path: Optional[str] = None) -> Path:
    """Pick the env file for a config: ``config_<name>.yaml`` -> ``.env_<name>``."""
    if env_path:
        return resolve_config_path(env_path)
    name = config_path.stem
    if name.startswith("config_"):
        return config_path.with_name(".env_" + name[len("config_"):])
    return config_path.with_name(".env")


def load_env_values(env_path: Path) -> dict[str, str]:
    """Read KEY=VALUE pairs with python-dotenv; keys without a value are skipped."""
    if not env_path.exists():
        return {}
    return {key: value for key, value in dotenv_values(env_path).items() if value is not None}


def _env_lookup(env_values: Mapping[str, str]) -> Callable[[str], Optional[str]]:
    def lookup(name: str) -> Optional[str]:
        if name in env_values:
            return env_values[name]
        return os.getenv(name)

    return lookup


def substitute_env_vars(obj: Any, env_values: Optional[Mapping[str, str]] = None) -> Any:
    """Replace placeholders in every string of a nested dict/list structure.

    Unset variables are logged and the placeholder is kept as-is, so
    ``RelaySettings.validate`` can report them by name.
    """
    lookup = _env_lookup(env_values or {})

    def replace_var(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        value = lookup(name)
        if value is None:
            logger.warning(
                f"CONFIG ERROR: Environment variable '${name}' is not set! "
                f"Check your .env file or export it in your shell."
            )
            return match.group(0)
        return value

    def walk(node: Any) -> Any:
        if isinstance(node, dict):
            return {key: walk(value) for key, value in node.items()}
        if isinstance(node, list):
            return [walk(item) for item in node]
        if isinstance(node, str):
            return ENV_VAR_PATTERN.sub(replace_var, node)
        return node

    return walk(obj)


def has_unresolved_placeholder(value: Any) -> bool:
    """Return True if a config string still contains a ${VAR}/$VAR placeholder."""
    return isinstance(value, str) and bool(ENV_VAR_PATTERN.search(value))


def load_config(
    path: Optional[str] = None,
    env_path: Optional[str] = None,
    substitute_env: bool = True,
) -> dict:
    """Load the relay configuration.

    Args:
        path: Config file path. Defaults to THINKRELAY_CONFIG, then
              configs/config_default.yaml under the project root.
        env_path: Optional env file overriding the ``.env_<name>`` sibling.
        substitute_env: Whether to substitute environment placeholders.

    Returns:
        The parsed configuration mapping.

    Raises:
        RuntimeError: If the file is missing or does not hold a mapping.
    """
    config_path = resolve_config_path(path or default_config_path())
    logger.info(f"Loading configuration from {config_path}")
    if not config_path.exists():
        logger.error(f"Config file not found: {config_path}")
        raise RuntimeError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise RuntimeError(f"Config file {config_path} must contain a mapping")

    if substitute_env:
        env_file = resolve_env_path(config_path, env_path)
        env_values = load_env_values(env_file)
        if env_values:
            logger.info(f"Loaded {len(env_values)} value(s) from {env_file}")
        data = substitute_env_vars(data, env_values)

    return data
