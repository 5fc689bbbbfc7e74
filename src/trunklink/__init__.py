"""
TrunkLink - proximity, geofence and running alerts for tracked elephants
"""

__version__ = "0.1.0"

from trunklink.config import Settings, get_settings
from trunklink.logging import setup_logging

__all__ = ["Settings", "get_settings", "setup_logging"]
