from unittest.mock import MagicMock, Mock, patch

import httpx
import pytest

from app.services import matchmaking_service
from app.services.geocoding_service import Coordinates, geocode
from app.services.matchmaking_service import (
    CategoryFilter,
    MatchCandidate,
    build_search_params,
    find_matching_providers,
    normalize_category,
    normalize_zone,
    provider_service_base_url,
    rank_candidates,
)


def _provider(pid, is_pro=False, emergency=False, **extra):
    return {
        "id": pid,
        "first_name": f"Nombre{pid}",
        "last_name": "Apellido",
        "avatar_url": f"https://cdn.test/{pid}.png",
        "whatsapp_e164": f"+54926000000{pid}",
        "is_pro": is_pro,
        "identity_status": "verified",
        "emergency_available": emergency,
        **extra,
    }


@pytest.fixture
def directory(mock_env):
    """Patch the HTTP client; tests set the response on the returned mock."""
    with patch("app.services.matchmaking_service.httpx.Client") as mock_client_class:
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        yield mock_client


def _items_response(items, status_code=200):
    response = Mock(status_code=status_code, text="")
    response.json.return_value = {"items": items}
    return response


class TestNormalizeCategory:
    def test_synonym_maps_to_slug(self):
        assert normalize_category("electricista") == CategoryFilter(slug="electricidad")

    def test_case_and_accents_ignored(self):
        assert normalize_category("  PLOMERÍA ") == CategoryFilter(slug="plomeria")

    def test_slug_maps_to_itself(self):
        assert normalize_category("climatizacion").slug == "climatizacion"

    def test_unmapped_becomes_name_filter(self):
        result = normalize_category("  Jardinería  ")
        assert result == CategoryFilter(name="Jardinería")
        assert result.as_params() == {"categoryName": "Jardinería"}

    def test_slug_params(self):
        assert normalize_category("gasista").as_params() == {"category": "plomeria"}

    def test_empty(self):
        assert normalize_category(None).as_params() == {}


class TestNormalizeZone:
    def test_city_and_province(self):
        assert normalize_zone("San Rafael, Mendoza") == ("San Rafael", "Mendoza")

    def test_city_only(self):
        assert normalize_zone("General Alvear") == ("General Alvear", None)

    def test_alias(self):
        assert normalize_zone("SR, Mendoza") == ("San Rafael", "Mendoza")

    def test_empty(self):
        assert normalize_zone("") == (None, None)


class TestProviderServiceBaseUrl:
    def test_direct_url_wins(self, monkeypatch):
        monkeypatch.setattr(matchmaking_service.settings, "provider_service_url", "http://direct:4003/")
        monkeypatch.setattr(matchmaking_service.settings, "api_gateway_url", "http://gateway")
        assert provider_service_base_url() == "http://direct:4003"

    def test_gateway_fallback_strips_api_prefix(self, monkeypatch):
        monkeypatch.setattr(matchmaking_service.settings, "provider_service_url", None)
        monkeypatch.setattr(matchmaking_service.settings, "api_gateway_url", " http://gateway/api/v1/ ")
        assert provider_service_base_url() == "http://gateway"

    def test_none_configured(self, monkeypatch):
        monkeypatch.setattr(matchmaking_service.settings, "provider_service_url", None)
        monkeypatch.setattr(matchmaking_service.settings, "api_gateway_url", None)
        assert provider_service_base_url() is None


class TestRankCandidates:
    def test_urgent_prefers_emergency(self):
        providers = [_provider(1, is_pro=False, emergency=True), _provider(2, is_pro=True, emergency=False)]
        assert [p["id"] for p in rank_candidates(providers, "alta")] == [1, 2]
        assert [p["id"] for p in rank_candidates(providers, "urgente")] == [1, 2]

    def test_not_urgent_prefers_pro(self):
        providers = [_provider(1, is_pro=False, emergency=True), _provider(2, is_pro=True, emergency=False)]
        assert [p["id"] for p in rank_candidates(providers, "baja")] == [2, 1]

    def test_pro_breaks_ties_among_emergency(self):
        providers = [
            _provider(1, emergency=True),
            _provider(2, is_pro=True, emergency=True),
            _provider(3, is_pro=True),
        ]
        assert [p["id"] for p in rank_candidates(providers, "Alta")] == [2, 1, 3]

    def test_stable_for_equal_candidates(self):
        providers = [_provider(i) for i in range(5)]
        assert [p["id"] for p in rank_candidates(providers, None)] == [0, 1, 2, 3, 4]


class TestBuildSearchParams:
    def test_slug_filter_without_geocoding(self, mock_env):
        params = build_search_params("electricista", "San Rafael, Mendoza", "alta")
        assert params == {
            "city": "San Rafael",
            "category": "electricidad",
            "urgency": "alta",
            "status": "active",
            "limit": 10,
        }

    @patch("app.services.matchmaking_service.geocode")
    def test_coordinates_add_radius(self, mock_geocode, mock_env):
        mock_geocode.return_value = Coordinates(lat=-34.6, lng=-68.33)

        params = build_search_params("Jardinería", "San Rafael, Mendoza", None)

        mock_geocode.assert_called_once_with("San Rafael", "Mendoza")
        assert params["categoryName"] == "Jardinería"
        assert params["lat"] == -34.6
        assert params["lng"] == -68.33
        assert params["radius_km"] == 40.0
        assert "urgency" not in params


class TestFindMatchingProviders:
    def test_returns_top_three_candidates(self, directory):
        directory.get.return_value = _items_response([_provider(i) for i in range(6)])

        matches = find_matching_providers({"category": "plomero", "zone": "San Rafael, Mendoza", "urgency": "media"})

        assert len(matches) == 3
        assert all(isinstance(match, MatchCandidate) for match in matches)
        assert matches[0].name == "Nombre0 Apellido"
        assert matches[0].contact_handle == "+549260000000"
        url = directory.get.call_args[0][0]
        assert url == "http://providers.test/api/v1/providers"
        params = directory.get.call_args[1]["params"]
        assert params["category"] == "plomeria"
        assert params["status"] == "active"
        assert params["limit"] == 10

    def test_reranks_before_truncating(self, directory):
        items = [_provider(1), _provider(2), _provider(3), _provider(4, is_pro=True)]
        directory.get.return_value = _items_response(items)

        matches = find_matching_providers({"category": "limpieza", "zone": "Mendoza", "urgency": "baja"})

        assert [m.id for m in matches] == [4, 1, 2]

    def test_transport_error_returns_empty(self, directory):
        directory.get.side_effect = httpx.ConnectError("connection refused")
        assert find_matching_providers({"category": "plomero", "zone": "San Rafael", "urgency": "alta"}) == []

    def test_timeout_returns_empty(self, directory):
        directory.get.side_effect = httpx.ReadTimeout("timed out")
        assert find_matching_providers({"category": "plomero", "zone": "San Rafael", "urgency": "alta"}) == []

    def test_unexpected_error_returns_empty(self, directory):
        directory.get.side_effect = RuntimeError("boom")
        assert find_matching_providers({"category": "plomero", "zone": "San Rafael", "urgency": "alta"}) == []

    def test_non_2xx_returns_empty(self, directory):
        directory.get.return_value = _items_response([_provider(1)], status_code=503)
        assert find_matching_providers({"category": "plomero", "zone": "San Rafael", "urgency": "alta"}) == []

    def test_missing_items_returns_empty(self, directory):
        response = Mock(status_code=200)
        response.json.return_value = {"data": []}
        directory.get.return_value = response
        assert find_matching_providers({"category": "plomero", "zone": "San Rafael", "urgency": "alta"}) == []

    def test_no_base_url_returns_empty(self, directory, monkeypatch):
        monkeypatch.setattr(matchmaking_service.settings, "provider_service_url", None)
        monkeypatch.setattr(matchmaking_service.settings, "api_gateway_url", None)

        assert find_matching_providers({"category": "plomero", "zone": "San Rafael", "urgency": "alta"}) == []
        directory.get.assert_not_called()


class TestGeocode:
    def test_no_endpoint_skips(self, mock_env):
        assert geocode("San Rafael", "Mendoza") is None

    @patch("app.services.geocoding_service.httpx.Client")
    def test_success(self, mock_client_class, mock_env, monkeypatch):
        monkeypatch.setattr(matchmaking_service.settings, "geocoding_service_url", "http://geo.test/")
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        response = Mock(status_code=200)
        response.json.return_value = {"lat": "-34.61", "lng": "-68.33"}
        mock_client.get.return_value = response

        assert geocode("San Rafael", "Mendoza") == Coordinates(lat=-34.61, lng=-68.33)
        assert mock_client.get.call_args[0][0] == "http://geo.test/geocode"
        assert mock_client.get.call_args[1]["params"] == {"city": "San Rafael", "province": "Mendoza"}

    @patch("app.services.geocoding_service.httpx.Client")
    def test_failure_is_soft(self, mock_client_class, mock_env, monkeypatch):
        monkeypatch.setattr(matchmaking_service.settings, "geocoding_service_url", "http://geo.test")
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.get.side_effect = httpx.ConnectError("down")

        assert geocode("San Rafael", "Mendoza") is None

    @patch("app.services.geocoding_service.httpx.Client")
    def test_response_without_coordinates(self, mock_client_class, mock_env, monkeypatch):
        monkeypatch.setattr(matchmaking_service.settings, "geocoding_service_url", "http://geo.test")
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        response = Mock(status_code=200)
        response.json.return_value = {"results": []}
        mock_client.get.return_value = response

        assert geocode("Nowhere") is None
