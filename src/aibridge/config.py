"""Configuration management for the completion bridge.

Parses aibridge.toml files with support for:
- Default provider selection
- Per-provider API key, model, token limit and local endpoint
- Span export (exporter, service name, collector endpoint)

Example aibridge.toml structure:

    default_provider = "local"

    [providers.openai]
    api_key = "${OPENAI_API_KEY}"
    model = "gpt-4o-mini"
    max_tokens = 1024

    [providers.local]
    endpoint = "http://127.0.0.1:1234"

    [telemetry]
    exporter = "otlp"
    endpoint = "http://collector:4317"

Keys that are not configured fall back to the conventional environment
variables (OPENAI_API_KEY, ANTHROPIC_API_KEY, ...).
"""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from .types import CompletionRequest, Provider

if sys.version_info >= (3, 11):
    import tomllib as toml  # type: ignore
else:
    try:
        import tomli as toml  # type: ignore
    except ImportError:
        toml = None  # type: ignore

CONFIG_FILE = "aibridge.toml"

KEY_ENV_VARS = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.CLAUDE: "ANTHROPIC_API_KEY",
    Provider.DEEPSEEK: "DEEPSEEK_API_KEY",
    Provider.OPENROUTER: "OPENROUTER_API_KEY",
    Provider.LOCAL: "LOCAL_LLM_API_KEY",
}
LOCAL_ENDPOINT_ENV = "LOCAL_LLM_ENDPOINT"


def _load_env_file(env_path: Path) -> None:
    """Load environment variables from .env file."""
    if not env_path.exists():
        return

    try:
        with open(env_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                # Skip empty lines and comments
                if not line or line.startswith("#"):
                    continue

                if "=" in line:
                    key, _, value = line.partition("=")
                    key = key.strip()
                    value = value.strip()

                    if value and value[0] in ('"', "'") and value[-1] == value[0]:
                        value = value[1:-1]

                    # Only set if not already in environment
                    if key and key not in os.environ:
                        os.environ[key] = value
    except OSError as e:
        print(f"[aibridge.config] Warning: Failed to load .env file: {e}")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${VAR} and $VAR environment variable references."""
    if isinstance(value, str):

        def replace_var(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))

        pattern = r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)"
        return re.sub(pattern, replace_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


def _unexpanded(value: Optional[str]) -> bool:
    # ${VAR} left in place means the variable was not set
    return bool(value) and value.startswith("$")


@dataclass
class ProviderSettings:
    """Settings for one provider."""

    provider: Provider
    api_key: Optional[str] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    endpoint: Optional[str] = None

    def resolved_key(self) -> str:
        """Configured key, or the provider's conventional env variable."""
        if self.api_key and not _unexpanded(self.api_key):
            return self.api_key
        return os.environ.get(KEY_ENV_VARS[self.provider], "")

    def resolved_endpoint(self) -> Optional[str]:
        if self.endpoint and not _unexpanded(self.endpoint):
            return self.endpoint
        return os.environ.get(LOCAL_ENDPOINT_ENV)


@dataclass
class TelemetrySettings:
    """Span export settings (the ``[telemetry]`` table).

    ``exporter`` is ``None`` (spans are not exported), ``"otlp"`` or
    ``"console"``. Unset names fall back to the standard OTEL variables.
    """

    exporter: Optional[str] = None
    service_name: Optional[str] = None
    endpoint: Optional[str] = None
    environment: Optional[str] = None
    insecure: bool = True
    schedule_delay_millis: int = 1000

    def resolved_service_name(self) -> str:
        return self.service_name or os.environ.get("OTEL_SERVICE_NAME", "aibridge")

    def resolved_endpoint(self) -> str:
        if self.endpoint and not _unexpanded(self.endpoint):
            return self.endpoint
        return os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")

    def resolved_environment(self) -> str:
        return self.environment or os.environ.get("DEPLOYMENT_ENV", "development")


@dataclass
class BridgeSettings:
    """Complete bridge configuration."""

    default_provider: Provider = Provider.OPENAI
    providers: dict[Provider, ProviderSettings] = field(default_factory=dict)
    telemetry: TelemetrySettings = field(default_factory=TelemetrySettings)

    def for_provider(self, provider: Union[str, Provider]) -> ProviderSettings:
        provider = Provider.parse(provider)
        return self.providers.get(provider) or ProviderSettings(provider=provider)

    def build_request(
        self,
        prompt: str,
        provider: Union[str, Provider, None] = None,
        **overrides: Any,
    ) -> CompletionRequest:
        """Create a request pre-filled from these settings.

        Explicit keyword overrides (``model``, ``api_key``, ``max_tokens``,
        ``local_endpoint``, ``system_prompt``, ...) win over settings.
        """
        settings = self.for_provider(provider or self.default_provider)
        values: dict[str, Any] = {
            "api_key": settings.resolved_key(),
            "model": settings.model,
            "max_tokens": settings.max_tokens,
        }
        if settings.provider is Provider.LOCAL:
            values["local_endpoint"] = settings.resolved_endpoint()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return CompletionRequest(prompt=prompt, provider=settings.provider, **values)

    @classmethod
    def load(cls, path: Path = Path(CONFIG_FILE)) -> BridgeSettings:
        """Load configuration from an aibridge.toml file.

        Loads the first .env file found next to the config, in the current
        working directory or in a parent directory, then expands ${VAR}
        references in the config.
        """
        if not path.exists():
            return cls()

        if toml is None:
            raise ImportError(
                "tomli is required for Python < 3.11. Install with: pip install tomli"
            )

        env_search_paths = [
            path.parent / ".env",
            Path.cwd() / ".env",
        ]
        current = path.parent.resolve()
        while current != current.parent:
            env_search_paths.append(current / ".env")
            current = current.parent

        for env_path in env_search_paths:
            if env_path.exists():
                _load_env_file(env_path)
                break

        try:
            raw_data = toml.loads(path.read_text(encoding="utf-8"))
            data = _expand_env_vars(raw_data)
        except Exception as e:
            raise RuntimeError(f"Failed to parse {path}: {e}") from e

        config = cls()
        if "default_provider" in data:
            config.default_provider = Provider.parse(data["default_provider"])

        for name, provider_data in data.get("providers", {}).items():
            if not isinstance(provider_data, dict):
                # Skip invalid entries - TOML should provide tables
                continue
            try:
                provider = Provider.parse(name)
            except ValueError:
                print(f"[aibridge.config] Warning: Ignoring unknown provider '{name}'")
                continue

            config.providers[provider] = ProviderSettings(
                provider=provider,
                api_key=provider_data.get("api_key"),
                model=provider_data.get("model"),
                max_tokens=provider_data.get("max_tokens"),
                endpoint=provider_data.get("endpoint"),
            )

        telemetry_data = data.get("telemetry", {})
        if isinstance(telemetry_data, dict):
            config.telemetry = TelemetrySettings(
                exporter=telemetry_data.get("exporter"),
                service_name=telemetry_data.get("service_name"),
                endpoint=telemetry_data.get("endpoint"),
                environment=telemetry_data.get("environment"),
                insecure=telemetry_data.get("insecure", True),
                schedule_delay_millis=telemetry_data.get("schedule_delay_millis", 1000),
            )

        return config


def load_settings(start_dir: Path = Path(".")) -> BridgeSettings:
    """Load bridge settings, searching up from start_dir."""
    current = start_dir.resolve()
    while current != current.parent:
        config_path = current / CONFIG_FILE
        if config_path.exists():
            return BridgeSettings.load(config_path)
        current = current.parent

    # No config found, return defaults
    return BridgeSettings()


__all__ = [
    "ProviderSettings",
    "TelemetrySettings",
    "BridgeSettings",
    "load_settings",
    "KEY_ENV_VARS",
]
