"""PBX adapter implementation over the PBX control HTTP API."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from packages.pbx_shared.http import (
    HttpClient,
    HttpJsonDecodeError,
    HttpRequestError,
    HttpStatusError,
)
from packages.pbx_shared.logging import get_logger, public_api_instrumented
from resources.adapters.pbx.adapter import (
    CommandInvocationResult,
    EndpointKind,
    EndpointSpec,
    PbxAdapter,
    PbxAdapterDependencyError,
    PbxAdapterHealthResult,
    PbxAdapterRejectedError,
    TrunkSpec,
)
from resources.adapters.pbx.component import RESOURCE_COMPONENT_ID
from resources.adapters.pbx.config import PbxAdapterSettings

_LOGGER = get_logger(__name__)


class HttpPbxAdapter(PbxAdapter):
    """PBX adapter backed by the control API's JSON endpoints."""

    def __init__(self, *, settings: PbxAdapterSettings) -> None:
        self._settings = settings
        headers = {"Content-Type": "application/json"}
        if settings.api_token:
            headers["Authorization"] = f"Bearer {settings.api_token}"
        self._client = HttpClient(
            base_url=settings.base_url,
            timeout_seconds=settings.timeout_seconds,
            headers=headers,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=RESOURCE_COMPONENT_ID,
        id_fields=("channel", "execution_id"),
    )
    def invoke_command(
        self, *, channel: str, command_text: str, execution_id: str
    ) -> CommandInvocationResult:
        """Ask the PBX to run ``command_text`` on ``channel``."""
        if channel.strip() == "":
            raise PbxAdapterRejectedError("channel must be non-empty")
        if command_text.strip() == "":
            raise PbxAdapterRejectedError("command_text must be non-empty")

        body = self._call(
            "POST",
            f"/v1/channels/{_segment(channel)}/commands",
            json={"command": command_text, "execution_id": execution_id},
            operation="invoke command",
        )
        detail = "accepted"
        if isinstance(body, dict) and isinstance(body.get("detail"), str):
            detail = body["detail"]
        return CommandInvocationResult(
            accepted=True, execution_id=execution_id, detail=detail
        )

    @public_api_instrumented(logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID)
    def create_endpoint(self, *, spec: EndpointSpec) -> None:
        self._call(
            "POST", "/v1/endpoints", json=spec.model_dump(), operation="create endpoint"
        )

    @public_api_instrumented(logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID)
    def update_endpoint(self, *, spec: EndpointSpec) -> None:
        self._call(
            "PUT",
            f"/v1/endpoints/{_segment(spec.name)}",
            json=spec.model_dump(),
            operation="update endpoint",
        )

    @public_api_instrumented(
        logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID, id_fields=("name",)
    )
    def delete_endpoint(self, *, name: str) -> None:
        self._call(
            "DELETE",
            f"/v1/endpoints/{_segment(name)}",
            operation="delete endpoint",
            missing_ok=True,
        )

    @public_api_instrumented(
        logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID, id_fields=("target",)
    )
    def endpoint_exists(self, *, kind: EndpointKind, target: str) -> bool:
        """``sip_peer`` and ``pjsip_endpoint`` targets live in different PBX tables."""
        try:
            self._client.get(f"/v1/endpoints/{_segment(kind)}/{_segment(target)}")
        except HttpStatusError as exc:
            if exc.status_code == 404:
                return False
            raise _map_status_error(exc, operation="lookup endpoint") from None
        except HttpRequestError as exc:
            raise PbxAdapterDependencyError(
                str(exc) or "pbx endpoint lookup unavailable"
            ) from None
        return True

    @public_api_instrumented(logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID)
    def create_trunk(self, *, spec: TrunkSpec) -> None:
        self._call(
            "POST", "/v1/trunks", json=spec.model_dump(), operation="create trunk"
        )

    @public_api_instrumented(logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID)
    def update_trunk(self, *, spec: TrunkSpec) -> None:
        self._call(
            "PUT",
            f"/v1/trunks/{_segment(spec.name)}",
            json=spec.model_dump(),
            operation="update trunk",
        )

    @public_api_instrumented(
        logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID, id_fields=("name",)
    )
    def delete_trunk(self, *, name: str) -> None:
        self._call(
            "DELETE",
            f"/v1/trunks/{_segment(name)}",
            operation="delete trunk",
            missing_ok=True,
        )

    @public_api_instrumented(logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID)
    def reload(self) -> None:
        self._call("POST", "/v1/reload", operation="reload")

    @public_api_instrumented(logger=_LOGGER, component_id=RESOURCE_COMPONENT_ID)
    def health(self) -> PbxAdapterHealthResult:
        """Probe the control API health endpoint without raising."""
        try:
            self._client.get("/health", timeout=self._settings.health_timeout_seconds)
        except (HttpRequestError, HttpStatusError) as exc:
            return PbxAdapterHealthResult(
                adapter_ready=False,
                detail=str(exc) or "pbx control api unavailable",
            )
        return PbxAdapterHealthResult(adapter_ready=True, detail="ok")

    def close(self) -> None:
        self._client.close()

    def _call(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: Any | None = None,
        missing_ok: bool = False,
    ) -> Any:
        """Issue one call and map transport/status failures to adapter errors."""
        try:
            return self._client.send_json(method, path, json=json, missing_ok=missing_ok)
        except HttpStatusError as exc:
            raise _map_status_error(exc, operation=operation) from None
        except HttpRequestError as exc:
            raise PbxAdapterDependencyError(
                str(exc) or f"pbx {operation} unavailable"
            ) from None
        except HttpJsonDecodeError:
            _LOGGER.warning("pbx %s returned a non-JSON body", operation)
            return None


def _segment(value: str) -> str:
    return quote(value, safe="")


def _map_status_error(
    exc: HttpStatusError, *, operation: str
) -> Exception:
    if 400 <= exc.status_code < 500:
        return PbxAdapterRejectedError(
            f"pbx rejected {operation} with status {exc.status_code}"
        )
    return PbxAdapterDependencyError(
        f"pbx {operation} failed with status {exc.status_code}"
    )
