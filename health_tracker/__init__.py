"""
Health Tracker - athlete injury and wellness tracking over a hosted backend
"""

from .config import Config, load_config, setup_logging
from .core.session import SessionState, TrackerSession, register_profile
from .gateway.sql_gateway import SqlGateway

__version__ = "0.1.0"

__all__ = [
    "Config",
    "SessionState",
    "SqlGateway",
    "TrackerSession",
    "load_config",
    "register_profile",
    "setup_logging",
]
