"""
Great-circle distance helpers for the nearby-seller lookup.

Sellers are stored with plain latitude/longitude columns. A lookup first
narrows the rows with a bounding box (indexable range filters) and then
computes exact haversine distances in Python.
"""
import math

from django.conf import settings

from storefront.core.models import User
from .models import SellerDetails

EARTH_RADIUS_KM = 6371.0088
KM_PER_DEGREE_LAT = 111.32

DEFAULT_RADIUS_KM = 5
MAX_RADIUS_KM = 500


def validate_coordinates(lat, lng):
    """Raise ValueError unless lat is in [-90, 90] and lng in [-180, 180]"""
    if lat is None or lng is None:
        raise ValueError('Latitude and longitude are required')
    if not -90 <= lat <= 90:
        raise ValueError('Latitude must be between -90 and 90')
    if not -180 <= lng <= 180:
        raise ValueError('Longitude must be between -180 and 180')


def haversine_km(lat1, lng1, lat2, lng2):
    """Distance in kilometres between two WGS84 points"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(lat, lng, radius_km):
    """
    (min_lat, max_lat, min_lng, max_lng) enclosing the circle. Longitude
    bounds are None when the box touches a pole or wraps the antimeridian.
    """
    d_lat = radius_km / KM_PER_DEGREE_LAT
    min_lat = max(-90.0, lat - d_lat)
    max_lat = min(90.0, lat + d_lat)

    cos_lat = math.cos(math.radians(lat))
    if max_lat >= 90.0 or min_lat <= -90.0 or cos_lat <= 1e-9:
        return min_lat, max_lat, None, None

    d_lng = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
    min_lng = lng - d_lng
    max_lng = lng + d_lng
    if min_lng < -180.0 or max_lng > 180.0:
        return min_lat, max_lat, None, None
    return min_lat, max_lat, min_lng, max_lng


def locatable_sellers():
    """Seller details that can appear in a nearby search"""
    return SellerDetails.objects.select_related('user').filter(
        user__role=User.ROLE_SELLER,
        user__is_suspended=False,
        user__is_active=True,
        latitude__isnull=False,
        longitude__isnull=False,
    )


def find_nearby_sellers(lat, lng, radius_km=DEFAULT_RADIUS_KM, limit=None, queryset=None):
    """
    Sellers within radius_km of (lat, lng), nearest first.

    Returns a list of (SellerDetails, distance_km) tuples, distance
    unrounded, at most `limit` entries (NEARBY_SELLER_LIMIT by default).
    """
    validate_coordinates(lat, lng)
    if limit is None:
        limit = getattr(settings, 'NEARBY_SELLER_LIMIT', 50)

    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_km)
    candidates = (queryset if queryset is not None else locatable_sellers()).filter(
        latitude__gte=min_lat, latitude__lte=max_lat,
    )
    if min_lng is not None:
        candidates = candidates.filter(longitude__gte=min_lng, longitude__lte=max_lng)

    matches = []
    for details in candidates:
        distance = haversine_km(lat, lng, details.latitude, details.longitude)
        if distance <= radius_km:
            matches.append((details, distance))

    matches.sort(key=lambda match: match[1])
    return matches[:limit] if limit else matches


def seller_distances(lat, lng, radius_km=DEFAULT_RADIUS_KM):
    """{seller user id: distance_km} for every seller in range, without a result limit"""
    return {
        details.user_id: distance
        for details, distance in find_nearby_sellers(lat, lng, radius_km, limit=0)
    }
