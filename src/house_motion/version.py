"""Version information for the HouseMotion service."""

APP_VERSION = "0.3.0"

__all__ = ["APP_VERSION"]
