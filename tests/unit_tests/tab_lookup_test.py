import pytest
import requests
from unittest.mock import patch, MagicMock

from tune_tutor.core.errors import InvalidRequest, NetworkError, DecodeError
from tune_tutor.services.tabs.links import build_tab_search_urls
from tune_tutor.services.tabs.lookup import TabLookupClient

client = TabLookupClient(base_url="https://catalog.test/a/ra/songs.json", timeout=5)


def _response(payload=None, json_error=None):
    response = MagicMock()
    response.raise_for_status.return_value = None
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


class TestTabLookupClient:
    """Groups all catalog lookup tests together."""

    # 🌟 Patch requests where the client module uses it
    @patch("tune_tutor.services.tabs.lookup.requests.get")
    def test_empty_catalog_response_is_empty_list(self, mock_get):
        mock_get.return_value = _response([])

        result = client.lookup_tabs("Layla", "Eric Clapton")

        assert result == []
        mock_get.assert_called_once_with(
            "https://catalog.test/a/ra/songs.json?pattern=Eric%20Clapton%20Layla", timeout=5
        )

    @patch("tune_tutor.services.tabs.lookup.requests.get")
    def test_parses_tab_descriptors(self, mock_get):
        mock_get.return_value = _response([
            {"id": 7, "title": "Blackbird", "artist": {"name": "The Beatles", "id": 3}, "tabTypes": ["PLAYER", "TEXT_GUITAR_TAB"]},
            {"id": 8, "title": "Blackbird (Live)", "artist": {"name": "The Beatles"}, "tabTypes": []},
        ])

        result = client.lookup_tabs("Blackbird", "The Beatles")

        assert [t.id for t in result] == [7, 8]
        assert result[0].artist.name == "The Beatles"
        assert result[0].tab_types == ["PLAYER", "TEXT_GUITAR_TAB"]

    @patch("tune_tutor.services.tabs.lookup.requests.get")
    def test_transport_failure_is_network_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("offline")

        with pytest.raises(NetworkError):
            client.lookup_tabs("Layla", "Eric Clapton")

    @patch("tune_tutor.services.tabs.lookup.requests.get")
    def test_http_error_status_is_network_error(self, mock_get):
        response = _response([])
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("503")
        mock_get.return_value = response

        with pytest.raises(NetworkError):
            client.lookup_tabs("Layla", "Eric Clapton")

    @patch("tune_tutor.services.tabs.lookup.requests.get")
    def test_malformed_json_is_decode_error(self, mock_get):
        mock_get.return_value = _response(json_error=ValueError("Expecting value"))

        with pytest.raises(DecodeError):
            client.lookup_tabs("Layla", "Eric Clapton")

    @patch("tune_tutor.services.tabs.lookup.requests.get")
    def test_wrong_shape_is_decode_error(self, mock_get):
        mock_get.return_value = _response({"error": "not a list"})

        with pytest.raises(DecodeError):
            client.lookup_tabs("Layla", "Eric Clapton")

    @patch("tune_tutor.services.tabs.lookup.requests.get")
    def test_unencodable_query_is_invalid_request(self, mock_get):
        with pytest.raises(InvalidRequest):
            client.lookup_tabs("bad \ud800 surrogate", "Artist")
        with pytest.raises(InvalidRequest):
            client.lookup_tabs(None, "Artist")
        mock_get.assert_not_called()


class TestTabSearchUrls:
    def test_urls_are_percent_encoded(self):
        guitar, piano = build_tab_search_urls("Blackbird", "The Beatles")
        assert guitar == "https://www.ultimate-guitar.com/search.php?search_type=title&value=Blackbird%20The%20Beatles"
        assert piano == guitar + "%20piano"

    def test_reserved_characters_are_encoded(self):
        guitar, _ = build_tab_search_urls("Rock & Roll", "Led Zeppelin")
        assert "value=Rock%20%26%20Roll%20Led%20Zeppelin" in guitar

    def test_missing_fields_give_no_urls(self):
        assert build_tab_search_urls(None, "Kansas") == (None, None)
        assert build_tab_search_urls("Dust in the Wind", None) == (None, None)
