from dataclasses import dataclass
from typing import Optional

import httpx

from app.config import settings
from app.logging_config import get_logger

logger = get_logger("geocoding_service")


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


def _parse_coordinates(data) -> Optional[Coordinates]:
    if not isinstance(data, dict):
        return None
    if isinstance(data.get("data"), dict):
        data = data["data"]
    lat = data.get("lat", data.get("latitude"))
    lng = data.get("lng", data.get("lon", data.get("longitude")))
    try:
        return Coordinates(lat=float(lat), lng=float(lng))
    except (TypeError, ValueError):
        return None


def geocode(city: str, province: Optional[str] = None) -> Optional[Coordinates]:
    """Resolve a city to coordinates. Returns None when unavailable; never raises."""
    base_url = (settings.geocoding_service_url or "").strip().rstrip("/")
    if not base_url or not city:
        return None

    params = {"city": city}
    if province:
        params["province"] = province

    try:
        with httpx.Client(timeout=settings.geocoding_timeout_seconds) as client:
            response = client.get(f"{base_url}/geocode", params=params)
        if response.status_code != 200:
            logger.warning(
                "Geocoding failed",
                extra={"context": {"status": response.status_code, "city": city, "province": province}},
            )
            return None
        coordinates = _parse_coordinates(response.json())
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Geocoding error, continuing without coordinates: {e}")
        return None

    if coordinates is None:
        logger.warning("Geocoding response without coordinates", extra={"context": {"city": city}})
    return coordinates
