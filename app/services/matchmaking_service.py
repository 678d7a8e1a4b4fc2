"""Find providers for a freshly created ticket.

The provider directory is a separate service. Any failure talking to it
degrades to "no matches"; the ticket is already persisted by then.
"""

import re
import unicodedata
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

import httpx
import yaml

from app.config import settings
from app.logging_config import get_logger
from app.services.geocoding_service import geocode

logger = get_logger("matchmaking")

DEFAULT_SYNONYMS_PATH = Path(__file__).resolve().parents[1] / "data" / "category_synonyms.yaml"
SEARCH_LIMIT = 10
TOP_MATCHES = 3
URGENT_LEVELS = {"alta", "urgente"}


@dataclass(frozen=True)
class MatchCandidate:
    id: object
    name: str
    avatar_url: Optional[str] = None
    contact_handle: Optional[str] = None
    is_pro: bool = False
    identity_status: Optional[str] = None
    emergency_available: bool = False


@dataclass(frozen=True)
class CategoryFilter:
    slug: Optional[str] = None
    name: Optional[str] = None

    def as_params(self) -> dict:
        if self.slug:
            return {"category": self.slug}
        if self.name:
            return {"categoryName": self.name}
        return {}


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", stripped.casefold()).strip()


@lru_cache(maxsize=4)
def _load_synonyms(path: str) -> dict:
    file_path = Path(path)
    if not file_path.exists():
        logger.warning(f"Synonym table not found: {path}")
        return {}
    with file_path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return data if isinstance(data, dict) else {}


def _alias_index(section: str) -> dict[str, str]:
    data = _load_synonyms(settings.category_synonyms_path or str(DEFAULT_SYNONYMS_PATH))
    entries = data.get(section) or {}
    index: dict[str, str] = {}
    for canonical, aliases in entries.items():
        index[_fold(canonical)] = canonical
        for alias in aliases or []:
            index[_fold(alias)] = canonical
    return index


def normalize_category(category: Optional[str]) -> CategoryFilter:
    """Map free text to a directory slug, or fall back to a name filter."""
    raw = (category or "").strip()
    if not raw:
        return CategoryFilter()
    slug = _alias_index("categories").get(_fold(raw))
    if slug:
        return CategoryFilter(slug=slug)
    return CategoryFilter(name=raw)


def normalize_zone(zone: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Split "City, Province" into (city, province); aliases map to the canonical city."""
    parts = [part.strip() for part in (zone or "").split(",")]
    city = parts[0] if parts and parts[0] else None
    province = parts[1] if len(parts) > 1 and parts[1] else None
    if city:
        canonical = _alias_index("zones").get(_fold(city))
        if canonical:
            city = canonical.title()
    return city, province


def provider_service_base_url() -> Optional[str]:
    """Direct provider-service URL wins over the gateway; trailing /api/v1 is dropped."""
    raw = settings.provider_service_url or settings.api_gateway_url
    if not raw:
        return None
    base = raw.strip().rstrip("/")
    base = re.sub(r"/api/v1$", "", base)
    return base.rstrip("/")


def rank_candidates(providers: list[dict], urgency: Optional[str]) -> list[dict]:
    """Emergency availability first for urgent tickets, then pros; stable otherwise."""
    urgent = (urgency or "").strip().lower() in URGENT_LEVELS

    def sort_key(provider: dict) -> tuple[int, int]:
        emergency_rank = 0 if (not urgent or provider.get("emergency_available")) else 1
        pro_rank = 0 if provider.get("is_pro") else 1
        return emergency_rank, pro_rank

    return sorted(providers, key=sort_key)


def to_candidate(provider: dict) -> MatchCandidate:
    name = " ".join(part for part in (provider.get("first_name"), provider.get("last_name")) if part)
    return MatchCandidate(
        id=provider.get("id"),
        name=name or provider.get("name") or "",
        avatar_url=provider.get("avatar_url"),
        contact_handle=provider.get("whatsapp_e164"),
        is_pro=bool(provider.get("is_pro")),
        identity_status=provider.get("identity_status"),
        emergency_available=bool(provider.get("emergency_available")),
    )


def build_search_params(category: Optional[str], zone: Optional[str], urgency: Optional[str]) -> dict:
    city, province = normalize_zone(zone)
    params = {
        "city": city,
        **normalize_category(category).as_params(),
        "urgency": urgency,
        "status": "active",
        "limit": SEARCH_LIMIT,
    }

    coordinates = geocode(city, province) if city else None
    if coordinates is not None:
        params.update(lat=coordinates.lat, lng=coordinates.lng, radius_km=settings.matchmaking_radius_km)

    return {key: value for key, value in params.items() if value is not None}


def find_matching_providers(ticket_data: dict) -> list[MatchCandidate]:
    """Top providers for {category, zone, urgency}. Never raises."""
    category = ticket_data.get("category")
    zone = ticket_data.get("zone")
    urgency = ticket_data.get("urgency")
    context = {"category": category, "zone": zone, "urgency": urgency}

    base_url = provider_service_base_url()
    if not base_url:
        logger.error("Provider service URL not configured", extra={"context": context})
        return []

    try:
        params = build_search_params(category, zone, urgency)
        with httpx.Client(timeout=settings.provider_timeout_seconds) as client:
            response = client.get(f"{base_url}/api/v1/providers", params=params)
        if response.status_code < 200 or response.status_code >= 300:
            logger.error(
                "Provider service error",
                extra={"context": {**context, "status": response.status_code, "body": response.text[:500]}},
            )
            return []
        data = response.json()
    except Exception as e:
        logger.error(f"Provider service request failed: {e}", extra={"context": context})
        return []

    items = data.get("items") if isinstance(data, dict) else None
    if not isinstance(items, list):
        logger.info("Provider service returned no items", extra={"context": context})
        return []

    providers = [item for item in items if isinstance(item, dict)]
    ranked = rank_candidates(providers, urgency)
    matches = [to_candidate(provider) for provider in ranked[:TOP_MATCHES]]
    logger.info("Matchmaking completed", extra={"context": {**context, "found": len(items), "returned": len(matches)}})
    return matches
