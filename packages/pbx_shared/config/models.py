"""Typed runtime settings for the PBX control plane."""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "pbx" / "pbx.yaml"
ENV_PREFIX = "PBX_"
_COMPONENT_KINDS = frozenset({"service", "adapter", "substrate"})


class LoggingSettings(BaseModel):
    """Root logger configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = True
    service: str = "pbx-control"
    environment: str = "dev"


class StartupSettings(BaseModel):
    """Process startup behavior under ``components.startup``."""

    run_migrations_on_startup: bool = True
    rebuild_missing_views_on_startup: bool = True
    bootstrap_admin_on_startup: bool = True


class ComponentNamespaceSettings(BaseModel):
    """Free-form ``components.<kind>`` mapping; each component validates its own slice."""

    model_config = ConfigDict(extra="allow")


class ComponentsSettings(BaseModel):
    """Grouped per-component settings."""

    model_config = ConfigDict(extra="allow")

    startup: StartupSettings = Field(default_factory=StartupSettings)
    service: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )
    adapter: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )
    substrate: ComponentNamespaceSettings = Field(
        default_factory=ComponentNamespaceSettings
    )

    @model_validator(mode="before")
    @classmethod
    def _reject_flat_component_keys(cls, value: object) -> object:
        """Point ``components.service_x`` style keys at ``components.service.x``."""
        if not isinstance(value, dict):
            return value
        for key in value:
            if not isinstance(key, str):
                continue
            kind, separator, name = key.partition("_")
            if separator and kind in _COMPONENT_KINDS:
                raise ValueError(
                    f"components.{key} is invalid; use components.{kind}.{name} instead"
                )
        return value


class PbxSettings(BaseSettings):
    """Root settings resolved from init kwargs, environment and YAML."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        extra="ignore",
        nested_model_default_partial_update=True,
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    components: ComponentsSettings = Field(default_factory=ComponentsSettings)

    _config_path: ClassVar[Path] = DEFAULT_CONFIG_PATH

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Precedence: init > env > YAML > model defaults."""
        del dotenv_settings, file_secret_settings
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(
                settings_cls,
                yaml_file=cls._config_path,
                yaml_file_encoding="utf-8",
            ),
        )


TComponentSettings = TypeVar("TComponentSettings", bound=BaseModel)


def resolve_component_settings(
    *,
    settings: PbxSettings,
    component_id: str,
    model: type[TComponentSettings],
) -> TComponentSettings:
    """Validate one component's slice of ``components``.

    ``service_entity_store`` reads ``components.service.entity_store``; ids
    without a known kind prefix read ``components.<id>`` directly.
    """
    raw = settings.components.model_dump(mode="python")
    kind, separator, name = component_id.partition("_")
    if separator and kind in _COMPONENT_KINDS:
        namespace = raw.get(kind, {})
        if not isinstance(namespace, dict):
            raise TypeError(f"components.{kind} must resolve to an object mapping")
        resolved = namespace.get(name, {})
        source_path = f"components.{kind}.{name}"
    else:
        resolved = raw.get(component_id, {})
        source_path = f"components.{component_id}"

    if not isinstance(resolved, dict):
        raise TypeError(f"{source_path} must resolve to an object mapping")
    return model.model_validate(resolved)
