"""Version information for the motion archive server."""

APP_VERSION = "0.3.0"
