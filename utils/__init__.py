"""Shared utility functions for the posture monitor service."""

from utils.debug import debug_log
from utils.network import get_client_ip

__all__ = ["debug_log", "get_client_ip"]
