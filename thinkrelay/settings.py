"""Process-wide relay settings built once from the loaded configuration."""

import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .config_loader import has_unresolved_placeholder
from .core.exceptions import ConfigurationError

logger = logging.getLogger("thinkrelay")

DEFAULT_UPSTREAM_BASE = "https://api.electronhub.ai/v1"
DEFAULT_CHAT_PATH = "/chat/completions"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_TOKENS = 800
DEFAULT_MAX_TOKENS_CEILING = 4096
DEFAULT_TEMPERATURE = 0.7
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"Config section '{name}' must be a mapping")
    return value


def _as_int(value: Any, default: int, name: str) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{name}' must be an integer, got {value!r}") from exc


def _as_float(value: Any, default: float, name: str) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"'{name}' must be a number, got {value!r}") from exc


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class RelaySettings:
    """Read-only configuration shared by every request."""

    api_base: str
    api_key: str
    default_model: str
    model_routes: Mapping[str, str] = field(default_factory=dict)
    chat_path: str = DEFAULT_CHAT_PATH
    request_timeout: float = DEFAULT_TIMEOUT
    force_stream: bool = False
    default_max_tokens: int = DEFAULT_MAX_TOKENS
    max_tokens_ceiling: int = DEFAULT_MAX_TOKENS_CEILING
    default_temperature: float = DEFAULT_TEMPERATURE
    system_prompt: Optional[str] = None
    prepend_system_prompt: bool = False
    reasoning_display: bool = True
    thinking_mode: bool = False
    reasoning_tag: str = "think"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cors_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        environ: Optional[Mapping[str, str]] = None,
    ) -> "RelaySettings":
        """Build settings from a config dict.

        THINKRELAY_HOST and THINKRELAY_PORT take priority over the
        ``server`` section of the config file.
        """
        environ = os.environ if environ is None else environ

        upstream = _section(config, "upstream")
        routes_cfg = _section(config, "model_routes")
        generation = _section(config, "generation")
        features = _section(config, "features")
        server = _section(config, "server")
        logging_cfg = _section(config, "logging")

        raw_routes = routes_cfg.get("routes") or {}
        if not isinstance(raw_routes, Mapping):
            raise ConfigurationError("'model_routes.routes' must be a mapping")
        routes = {
            str(name).strip(): str(target).strip()
            for name, target in raw_routes.items()
            if name and target
        }

        default_model = _optional_str(routes_cfg.get("default"))
        if default_model is None:
            raise ConfigurationError("'model_routes.default' is required")

        host = environ.get("THINKRELAY_HOST")
        if host is None:
            host = str(server.get("host", DEFAULT_HOST))

        port_raw = environ.get("THINKRELAY_PORT")
        try:
            port = int(port_raw) if port_raw is not None else None
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid THINKRELAY_PORT value %r", port_raw)
            port = None
        if port is None:
            port = _as_int(server.get("port"), DEFAULT_PORT, "server.port")

        origins = server.get("cors_origins")
        if origins is None:
            cors_origins: tuple[str, ...] = ("*",)
        elif isinstance(origins, (list, tuple)):
            cors_origins = tuple(str(item) for item in origins if item)
        else:
            cors_origins = (str(origins),)

        chat_path = _optional_str(upstream.get("chat_path")) or DEFAULT_CHAT_PATH
        if not chat_path.startswith("/"):
            chat_path = f"/{chat_path}"

        return cls(
            api_base=str(upstream.get("api_base") or DEFAULT_UPSTREAM_BASE).strip(),
            api_key=str(upstream.get("api_key") or "").strip(),
            default_model=default_model,
            model_routes=MappingProxyType(routes),
            chat_path=chat_path,
            request_timeout=_as_float(
                upstream.get("request_timeout"), DEFAULT_TIMEOUT, "upstream.request_timeout"
            ),
            force_stream=_parse_bool(upstream.get("force_stream")),
            default_max_tokens=_as_int(
                generation.get("default_max_tokens"),
                DEFAULT_MAX_TOKENS,
                "generation.default_max_tokens",
            ),
            max_tokens_ceiling=_as_int(
                generation.get("max_tokens_ceiling"),
                DEFAULT_MAX_TOKENS_CEILING,
                "generation.max_tokens_ceiling",
            ),
            default_temperature=_as_float(
                generation.get("default_temperature"),
                DEFAULT_TEMPERATURE,
                "generation.default_temperature",
            ),
            system_prompt=_optional_str(generation.get("system_prompt")),
            prepend_system_prompt=_parse_bool(generation.get("prepend_system_prompt")),
            reasoning_display=_parse_bool(features.get("reasoning_display", True)),
            thinking_mode=_parse_bool(features.get("thinking_mode")),
            reasoning_tag=_optional_str(features.get("reasoning_tag")) or "think",
            host=host,
            port=port,
            cors_origins=cors_origins,
            log_level=str(logging_cfg.get("level") or "INFO"),
        )

    def validate(self) -> "RelaySettings":
        """Raise ConfigurationError for settings the relay cannot start with."""
        if not self.api_key or has_unresolved_placeholder(self.api_key):
            raise ConfigurationError(
                "Upstream API key is required (set upstream.api_key or its env variable)"
            )
        if not self.api_base or has_unresolved_placeholder(self.api_base):
            raise ConfigurationError("Upstream base URL is required (upstream.api_base)")
        if self.request_timeout <= 0:
            raise ConfigurationError("upstream.request_timeout must be positive")
        if self.max_tokens_ceiling < 1:
            raise ConfigurationError("generation.max_tokens_ceiling must be at least 1")
        if self.default_max_tokens < 1:
            raise ConfigurationError("generation.default_max_tokens must be at least 1")
        if self.default_temperature < 0:
            raise ConfigurationError("generation.default_temperature must not be negative")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid listen port {self.port}")
        return self

    @property
    def effective_default_max_tokens(self) -> int:
        """The default token budget, never above the ceiling."""
        return max(1, min(self.default_max_tokens, self.max_tokens_ceiling))
