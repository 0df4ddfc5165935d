# Google Maps distance calculation
import re

from config import Config
from utils.logger import logger

METERS_PER_MILE = 1609.34
MINUTES_PER_MILE = 2

# Approximate road miles between the cities we serve most, used when Maps is unavailable
CITY_PAIR_MILES = {
    frozenset(['canton', 'massillon']): 10,
    frozenset(['canton', 'akron']): 25,
}
KNOWN_CITIES = ('canton', 'akron', 'massillon', 'north canton', 'green', 'jackson', 'cleveland')
SAME_CITY_MILES = 5
DEFAULT_MILES = 15


class DistanceUnavailable(Exception):
    """Raised when the distance matrix lookup cannot produce a route."""


class DistanceService:
    def __init__(self, api_key=None, client=None, timeout=None):
        self.api_key = api_key if api_key is not None else Config.GOOGLE_MAPS_API_KEY
        self.timeout = timeout or Config.DISTANCE_TIMEOUT
        self._gmaps = client

    def _get_client(self):
        if self._gmaps is None:
            if not self.api_key:
                raise DistanceUnavailable("GOOGLE_MAPS_API_KEY is not configured")
            import googlemaps
            self._gmaps = googlemaps.Client(key=self.api_key, timeout=self.timeout)
        return self._gmaps

    def get_route(self, pickup_address, delivery_address):
        """Distance and drive time between the two addresses; never raises.

        Returns {'distance_miles', 'drive_minutes', 'source'} where source is
        'maps' or 'fallback'.
        """
        try:
            return self.lookup_route(pickup_address, delivery_address)
        except DistanceUnavailable as e:
            logger.warning(f"Distance lookup unavailable, using city table: {e}")
        except Exception as e:
            logger.error(f"Error calculating distance: {e}", exc_info=True)
        return self.estimate_route(pickup_address, delivery_address)

    def lookup_route(self, pickup_address, delivery_address):
        gmaps = self._get_client()
        matrix = gmaps.distance_matrix(
            origins=[pickup_address],
            destinations=[delivery_address],
            mode='driving',
            units='imperial'
        )
        try:
            elem = matrix['rows'][0]['elements'][0]
        except (KeyError, IndexError, TypeError):
            raise DistanceUnavailable("Invalid distance matrix response structure")
        status = elem.get('status', 'UNKNOWN')
        if status != 'OK':
            raise DistanceUnavailable(f"pickup->delivery element status {status}")
        if 'distance' not in elem or 'duration' not in elem:
            raise DistanceUnavailable("pickup->delivery missing distance/duration")

        return {
            'distance_miles': round(elem['distance']['value'] / METERS_PER_MILE, 2),
            'drive_minutes': round(elem['duration']['value'] / 60, 2),
            'source': 'maps',
        }

    def estimate_route(self, pickup_address, delivery_address):
        miles = self.fallback_distance(pickup_address, delivery_address)
        return {
            'distance_miles': miles,
            'drive_minutes': miles * MINUTES_PER_MILE,
            'source': 'fallback',
        }

    @staticmethod
    def _city_of(address):
        text = (address or '').lower()
        # Street names like "Jackson St" are not cities; look after the first comma
        if ',' in text:
            text = text.split(',', 1)[1]
        # Longest names first so "north canton" wins over "canton"
        for city in sorted(KNOWN_CITIES, key=len, reverse=True):
            if re.search(r'\b' + re.escape(city) + r'\b', text):
                return city
        return None

    def fallback_distance(self, pickup_address, delivery_address):
        origin = self._city_of(pickup_address)
        destination = self._city_of(delivery_address)
        if origin and origin == destination:
            return SAME_CITY_MILES
        if origin and destination:
            return CITY_PAIR_MILES.get(frozenset([origin, destination]), DEFAULT_MILES)
        return DEFAULT_MILES
