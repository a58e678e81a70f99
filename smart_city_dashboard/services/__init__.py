"""Service layer for business logic."""
from .orchestrator import FallbackOrchestrator, build_provider_chain
from .dashboard_service import DashboardService

__all__ = ["FallbackOrchestrator", "build_provider_chain", "DashboardService"]
