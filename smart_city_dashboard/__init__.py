"""Smart City Dashboard: multi-source air quality reconciliation core."""

__version__ = "0.1.0"
