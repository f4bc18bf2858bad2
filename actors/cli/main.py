"""Operator CLI for the PBX control plane, implemented with Typer.

Commands run in-process against a runtime built from ``PbxSettings``; there is
no daemon to talk to.
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable

import typer
from sqlalchemy.exc import SQLAlchemyError

from packages.pbx_core.migrations import MigrationExecutionError, run_startup_migrations
from packages.pbx_core.runtime import PbxRuntime, build_runtime
from packages.pbx_shared.config import load_settings
from packages.pbx_shared.envelope import Envelope, EnvelopeKind, new_meta
from packages.pbx_shared.logging import configure_logging

SUCCESS_EXIT_CODE = 0
DOMAIN_ERROR_EXIT_CODE = 3
DEPENDENCY_ERROR_EXIT_CODE = 4


class CommandFailed(Exception):
    """A service answered with an error envelope."""


@dataclass(frozen=True)
class CliConfig:
    """Global CLI options shared by every command."""

    config_path: Path | None
    principal: str
    as_json: bool


def _serialize(value: Any) -> Any:
    """Convert result objects to JSON-serializable structures."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, Path)):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _serialize(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {str(key): _serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_serialize(item) for item in value]
    if hasattr(value, "model_dump"):
        return _serialize(value.model_dump(mode="json"))
    return str(value)


def _emit_output(result: Any, as_json: bool) -> None:
    data = _serialize(result)
    if as_json:
        typer.echo(json.dumps(data, sort_keys=True, separators=(",", ":")))
        return
    rendered = _render_human(data)
    typer.echo(rendered if rendered is not None else "ok")


def _emit_error(exc: Exception, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps({"error": str(exc)}), err=True)
        return
    typer.echo(f"error: {exc}", err=True)


def _render_human(data: Any) -> str | None:
    """Return human-oriented rendering for recognized result shapes."""
    if isinstance(data, dict):
        if isinstance(data.get("ready"), bool) and isinstance(
            data.get("components"), dict
        ):
            return _render_health(data)
        if "upgraded" in data:
            return _render_migrations(data)
    if isinstance(data, list):
        if all(isinstance(item, dict) and "view_name" in item for item in data):
            return _render_views(data)
    if data is None:
        return None
    return json.dumps(data, indent=2, sort_keys=True)


def _render_health(data: dict[str, Any]) -> str:
    ready = bool(data.get("ready", False))
    lines = [f"Control plane: {_status_label(ready)}"]
    components = data.get("components", {})
    for key in sorted(components):
        value = components[key]
        line = f"  {_humanize_component_name(key)}: {_status_label(bool(value.get('ready')))}"
        detail = str(value.get("detail", "")).strip()
        if detail:
            line = f"{line} ({detail})"
        lines.append(line)
    return "\n".join(lines)


def _render_migrations(data: dict[str, Any]) -> str:
    lines = [f"- {package}: head" for package in data.get("upgraded", [])]
    for schema in data.get("provisioned_schemas", []):
        lines.append(f"  created schema {schema}")
    return "\n".join(lines) if lines else "Nothing to migrate."


def _render_views(items: list[dict[str, Any]]) -> str:
    if not items:
        return "No views."
    return "\n".join(f"- {item['view_name']} -> {item['parent_id']}" for item in items)


def _status_label(ready: bool) -> str:
    return "healthy" if ready else "degraded"


def _humanize_component_name(name: str) -> str:
    for prefix in ("service_", "substrate_", "adapter_"):
        if name.startswith(prefix):
            name = name[len(prefix) :]
            break
    return name.replace("_", " ").title()


def _settings(cfg: CliConfig):
    settings = load_settings(config_path=cfg.config_path)
    configure_logging(
        level=settings.logging.level,
        json_output=settings.logging.json_output,
        service=f"{settings.logging.service}-cli",
        environment=settings.logging.environment,
    )
    return settings


@contextmanager
def _runtime(cfg: CliConfig) -> Iterator[PbxRuntime]:
    runtime = build_runtime(settings=_settings(cfg))
    try:
        yield runtime
    finally:
        runtime.close()


def _unwrap(result: Envelope[Any]) -> Any:
    if not result.ok:
        raise CommandFailed("; ".join(error.message for error in result.errors))
    return result.payload.value if result.payload is not None else None


def _run_command(cfg: CliConfig, invoke: Callable[[], Any]) -> None:
    """Execute one command and map outputs/errors to process semantics."""
    try:
        result = invoke()
    except CommandFailed as exc:
        _emit_error(exc, cfg.as_json)
        raise typer.Exit(code=DOMAIN_ERROR_EXIT_CODE) from exc
    except (MigrationExecutionError, SQLAlchemyError) as exc:
        _emit_error(exc, cfg.as_json)
        raise typer.Exit(code=DEPENDENCY_ERROR_EXIT_CODE) from exc

    _emit_output(result, cfg.as_json)
    raise typer.Exit(code=SUCCESS_EXIT_CODE)


def _require_config(ctx: typer.Context) -> CliConfig:
    config = ctx.obj
    if not isinstance(config, CliConfig):
        raise RuntimeError("CLI configuration not initialized")
    return config


app = typer.Typer(no_args_is_help=True, help="PBX control-plane operator CLI")
views_app = typer.Typer(help="Parent-scoped dial-list views")


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Path | None = typer.Option(
        None, "--config", envvar="PBX_CONFIG_PATH", help="YAML settings file"
    ),
    principal: str = typer.Option("operator", help="Principal recorded on commands"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
) -> None:
    """Store global options for all commands."""
    ctx.obj = CliConfig(config_path=config_path, principal=principal, as_json=as_json)


@app.command("migrate")
def migrate_command(ctx: typer.Context) -> None:
    """Create missing schemas and upgrade every service to head."""
    cfg = _require_config(ctx)
    _run_command(cfg, lambda: run_startup_migrations(settings=_settings(cfg)))


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Probe Postgres and the PBX adapter."""
    cfg = _require_config(ctx)

    def invoke() -> Any:
        with _runtime(cfg) as runtime:
            return runtime.health()

    _run_command(cfg, invoke)


@views_app.command("list")
def views_list_command(ctx: typer.Context) -> None:
    """List existing dial-list master views."""
    cfg = _require_config(ctx)

    def invoke() -> Any:
        with _runtime(cfg) as runtime:
            return _unwrap(runtime.outbound.list_views(meta=_meta(cfg)))

    _run_command(cfg, invoke)


@views_app.command("rebuild")
def views_rebuild_command(ctx: typer.Context) -> None:
    """Recreate views missing for live dial-list masters."""
    cfg = _require_config(ctx)

    def invoke() -> Any:
        with _runtime(cfg) as runtime:
            return _unwrap(runtime.outbound.rebuild_views(meta=_meta(cfg)))

    _run_command(cfg, invoke)


def _meta(cfg: CliConfig):
    return new_meta(kind=EnvelopeKind.COMMAND, source="cli", principal=cfg.principal)


app.add_typer(views_app, name="views")


if __name__ == "__main__":
    app()
