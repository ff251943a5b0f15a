"""Export services."""

from .navigation import NavigationApp, apple_maps_url, google_maps_url, navigation_links, waze_url

__all__ = [
    "NavigationApp",
    "navigation_links",
    "google_maps_url",
    "waze_url",
    "apple_maps_url",
]
