# foodrescue/maps_client.py
# Thin pass-through to the Google Maps web services for /location.
import logging

import requests

from . import config
from .errors import LocationUnavailable, NotFound

logger = logging.getLogger(__name__)

PLACES_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


def _get(url, params):
    try:
        r = requests.get(url, params=dict(params, key=config.GOOGLE_MAPS_API_KEY),
                         timeout=config.LOCATION_TIMEOUT)
        r.raise_for_status()
        return r.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("maps request to %s failed: %s", url, e)
        raise LocationUnavailable(str(e))


def lookup_address(lat, lng):
    """Nearest named place for a coordinate, falling back to reverse geocoding."""
    latlng = f"{lat},{lng}"
    places = _get(PLACES_URL, {"location": latlng, "radius": 100, "type": "restaurant|establishment"})
    if places.get("status") == "OK" and places.get("results"):
        place_id = places["results"][0].get("place_id")
        details = _get(DETAILS_URL, {"place_id": place_id, "fields": "formatted_address,name"})
        if details.get("status") == "OK":
            result = details.get("result", {})
            return f"{result.get('name')}, {result.get('formatted_address')}"

    geo = _get(GEOCODE_URL, {"latlng": latlng,
                             "result_type": "establishment|point_of_interest|premise"})
    if geo.get("status") == "OK" and geo.get("results"):
        return geo["results"][0]["formatted_address"]
    raise NotFound(f"no address found near {latlng}")
