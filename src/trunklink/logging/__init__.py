"""Structured logging for TrunkLink."""

from trunklink.logging.setup import ServiceContext, build_processors, setup_logging

__all__ = ["ServiceContext", "build_processors", "setup_logging"]
