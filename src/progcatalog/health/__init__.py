"""Health check system for catalog components."""

from .base import HealthCheck, HealthCheckResult, HealthStatus
from .runner import HealthCheckRunner, default_checks

__all__ = ["HealthStatus", "HealthCheckResult", "HealthCheck", "HealthCheckRunner", "default_checks"]
