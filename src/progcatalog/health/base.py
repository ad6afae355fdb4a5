"""Base classes for health checks."""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class HealthStatus(Enum):
    """Health status levels."""
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a health check."""
    name: str
    status: HealthStatus
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0
    timestamp: float = 0.0
    error: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "message": self.message,
            "details": self.details,
            "duration_ms": round(self.duration_ms, 2),
        }


class HealthCheck:
    """Base class for all health checks.

    Subclasses implement ``_perform_check`` returning ``(status, message,
    details)``. Exceptions and overruns of ``timeout_seconds`` are reported
    as ``ERROR`` results rather than raised.
    """

    name: str = "Base Health Check"
    timeout_seconds: float = 5.0

    async def check(self) -> HealthCheckResult:
        """Perform the health check and return result."""
        start = time.time()
        try:
            status, message, details = await asyncio.wait_for(self._perform_check(), timeout=self.timeout_seconds)
            duration = (time.time() - start) * 1000
            return HealthCheckResult(
                name=self.name,
                status=status,
                message=message,
                details=details,
                duration_ms=duration,
                timestamp=time.time()
            )
        except asyncio.TimeoutError as e:
            duration = (time.time() - start) * 1000
            return HealthCheckResult(
                name=self.name,
                status=HealthStatus.ERROR,
                message=f"Timed out after {self.timeout_seconds:.0f}s",
                details={},
                duration_ms=duration,
                timestamp=time.time(),
                error=e
            )
        except Exception as e:
            duration = (time.time() - start) * 1000
            return HealthCheckResult(
                name=self.name,
                status=HealthStatus.ERROR,
                message=f"Check failed: {str(e)}",
                details={},
                duration_ms=duration,
                timestamp=time.time(),
                error=e
            )

    async def _perform_check(self) -> tuple[HealthStatus, str, Dict[str, Any]]:
        """Override this in subclasses."""
        raise NotImplementedError
