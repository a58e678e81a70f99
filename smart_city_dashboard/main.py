"""Application wiring for the Smart City Dashboard core."""
from contextlib import asynccontextmanager
from typing import Callable, Optional

import httpx
import numpy as np

from smart_city_dashboard.config import ProviderConfig, Settings
from smart_city_dashboard.config import provider_config as default_provider_config
from smart_city_dashboard.config import settings as default_settings
from smart_city_dashboard.ingestion.scheduler import RefreshScheduler
from smart_city_dashboard.logging_config import get_logger, setup_logging
from smart_city_dashboard.models import DashboardSnapshot
from smart_city_dashboard.services import DashboardService


def create_dashboard(
    settings: Optional[Settings] = None,
    provider_config: Optional[ProviderConfig] = None,
    on_snapshot: Optional[Callable[[DashboardSnapshot], None]] = None,
    auto_refresh: bool = True,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    rng: Optional[np.random.Generator] = None
) -> RefreshScheduler:
    """
    Build a dashboard session from settings.

    Args:
        settings: Application settings (module settings when omitted)
        provider_config: Provider chain configuration
        on_snapshot: Callback receiving every accepted snapshot
        auto_refresh: Initial state of the auto-refresh toggle
        transport: Optional httpx transport
        rng: Random generator for the simulated series

    Returns:
        RefreshScheduler driving the session
    """
    settings = settings or default_settings
    if provider_config is None:
        provider_config = (
            default_provider_config
            if settings is default_settings
            else ProviderConfig(settings.provider_config_path)
        )

    setup_logging(log_level=settings.log_level, log_file=settings.log_file)

    service = DashboardService(settings, provider_config, transport=transport, rng=rng)
    return RefreshScheduler(
        service,
        interval_seconds=settings.refresh_interval_seconds,
        default_city=settings.default_city,
        auto_refresh=auto_refresh,
        on_snapshot=on_snapshot,
    )


@asynccontextmanager
async def dashboard_session(city: Optional[str] = None, **kwargs):
    """
    Run a dashboard session for the duration of the block.

    Starts the refresh scheduler, loads ``city`` (the configured default
    city when omitted) and shuts the scheduler down on exit.

    Args:
        city: City to load first
        **kwargs: Passed to ``create_dashboard``

    Yields:
        The running RefreshScheduler
    """
    dashboard = create_dashboard(**kwargs)
    logger = get_logger("main")

    dashboard.start()
    try:
        await dashboard.search(city or dashboard.current_city)
        yield dashboard
    finally:
        await dashboard.stop()
        logger.info("Dashboard session closed")
