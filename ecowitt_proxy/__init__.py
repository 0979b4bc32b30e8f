"""
hass-ecowitt-proxy

Relays Ecowitt weather station uploads (HTTP form posts) to a Home Assistant
webhook and keeps running success/error counts.
"""

__version__ = "1.0.0"

SERVICE_NAME = "hass-ecowitt-proxy"
