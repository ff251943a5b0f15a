from driveless.models.domain import OptimizedRouteResult, Stop
from driveless.services.export.navigation import apple_maps_url, google_maps_url, navigation_links, waze_url


def _stop(lat: float, lon: float) -> Stop:
    return Stop(display_name=f"{lat}", address="", latitude=lat, longitude=lon)


STOPS = [_stop(40.0, -75.0), _stop(40.1, -75.1), _stop(40.2, -75.2)]


def test_google_maps_lists_every_stop_in_order() -> None:
    assert google_maps_url(STOPS) == "https://www.google.com/maps/dir/40.0,-75.0/40.1,-75.1/40.2,-75.2"
    assert google_maps_url(STOPS[:1]) == "https://www.google.com/maps/search/?api=1&query=40.0,-75.0"
    assert google_maps_url([]) == "https://maps.google.com/"


def test_waze_targets_first_stop_after_origin() -> None:
    assert waze_url(STOPS) == "https://waze.com/ul?ll=40.1,-75.1&navigate=yes"
    assert waze_url(STOPS[:1]) == "https://waze.com/ul?ll=40.0,-75.0&navigate=yes"


def test_apple_maps_chains_waypoints() -> None:
    assert apple_maps_url(STOPS) == "maps://?saddr=40.0,-75.0&daddr=40.2,-75.2+to:40.1,-75.1&dirflg=d"
    assert apple_maps_url(STOPS[:1]) == "maps://?daddr=40.0,-75.0&dirflg=d"


def test_navigation_links_cover_each_app() -> None:
    result = OptimizedRouteResult(optimized_stops=tuple(STOPS), legs=(), total_distance="", estimated_time="")

    assert set(navigation_links(result)) == {"google_maps", "waze", "apple_maps"}
