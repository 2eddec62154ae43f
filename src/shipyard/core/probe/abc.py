"""Network probes used by pre-flight reachability and post-deploy health checks."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class HealthResult:
    url: str
    healthy: bool
    status_code: int | None
    detail: str


class Probe(ABC):
    """Liveness and reachability checks against deploy targets."""

    @abstractmethod
    def is_reachable(self, host: str, port: int, timeout: float) -> bool:
        """Whether a TCP connection to ``host:port`` succeeds within ``timeout``."""
        ...

    @abstractmethod
    def check_health(self, url: str, timeout: float) -> HealthResult:
        """GET ``url`` and report whether it answered with a success status."""
        ...
