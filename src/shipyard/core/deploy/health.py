"""Post-deploy URL resolution and liveness probes."""

import logging
from urllib.parse import urlparse

from shipyard.core.config_store.schema import get_path
from shipyard.core.context import ShipyardContext
from shipyard.core.deploy.report import HealthCheck
from shipyard.core.errors import ShipyardError
from shipyard.core.project import UnitConfig

DEFAULT_FRONTEND_URL = "http://localhost:3000"
DEFAULT_BACKEND_URL = "http://localhost:8080"
HEALTH_TIMEOUT_SECONDS = 10.0

logger = logging.getLogger(__name__)


def resolve_urls(ctx: ShipyardContext, environment: str) -> dict[str, str]:
    """Frontend and backend URLs for ``environment``.

    Explicit ``FRONTEND_URL``/``BACKEND_URL`` environment variables win, then
    the environment's configuration document, then local defaults.
    """
    frontend_url: str | None = ctx.environ.get("FRONTEND_URL")
    backend_url: str | None = ctx.environ.get("BACKEND_URL")

    if frontend_url is None or backend_url is None:
        values: dict[str, object] = {}
        try:
            values = ctx.config_store.load(environment).values
        except ShipyardError as e:
            logger.debug("No configuration to derive URLs from: %s", e.message)
        if frontend_url is None:
            configured = get_path(values, "frontend.url")
            frontend_url = configured if isinstance(configured, str) else DEFAULT_FRONTEND_URL
        if backend_url is None:
            api_url = get_path(values, "frontend.api_url")
            if isinstance(api_url, str):
                parsed = urlparse(api_url)
                backend_url = f"{parsed.scheme}://{parsed.netloc}"
            else:
                backend_url = DEFAULT_BACKEND_URL

    return {"frontend": frontend_url.rstrip("/"), "backend": backend_url.rstrip("/")}


def health_url(unit: UnitConfig, urls: dict[str, str]) -> str | None:
    if unit.health_url is None:
        return None
    return unit.health_url.format(frontend_url=urls["frontend"], backend_url=urls["backend"])


def probe_unit(ctx: ShipyardContext, name: str, url: str) -> HealthCheck:
    result = ctx.probe.check_health(url, HEALTH_TIMEOUT_SECONDS)
    return HealthCheck(
        unit=name,
        url=url,
        healthy=result.healthy,
        status_code=result.status_code,
        detail=result.detail,
    )
