"""Probe implementation over real sockets and HTTP."""

import logging
import socket

import httpx

from shipyard.core.probe.abc import HealthResult, Probe

logger = logging.getLogger(__name__)


class RealProbe(Probe):
    def is_reachable(self, host: str, port: int, timeout: float) -> bool:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError as e:
            logger.debug("Cannot reach %s:%d: %s", host, port, e)
            return False

    def check_health(self, url: str, timeout: float) -> HealthResult:
        try:
            response = httpx.get(url, timeout=timeout, follow_redirects=True)
        except httpx.HTTPError as e:
            logger.debug("Health check of %s failed: %s", url, e)
            return HealthResult(url=url, healthy=False, status_code=None, detail=str(e))
        healthy = response.is_success
        detail = f"HTTP {response.status_code}"
        return HealthResult(
            url=url, healthy=healthy, status_code=response.status_code, detail=detail
        )
