import pytest
from unittest.mock import MagicMock, patch

from core.errors import NetworkError
from loaders.geocoder import Geocoder


@pytest.fixture
def mock_loader():
    with patch('requests.Session') as mock_session, patch('loaders.http.time.sleep'):
        loader = Geocoder()
        loader.session = mock_session.return_value
        yield loader


def respond_with(loader, payload):
    mock_response = MagicMock()
    mock_response.json.return_value = payload
    loader.session.get.return_value = mock_response
    return mock_response


def test_geocode_success(mock_loader):
    """Verify geocoding success."""
    respond_with(mock_loader, [{
        "lat": "38.8977",
        "lon": "-77.0365",
        "display_name": "White House, Washington, DC",
    }])

    result = mock_loader.geocode("1600 Pennsylvania Ave, Washington, DC 20500")
    assert result.latitude == 38.8977
    assert result.longitude == -77.0365
    assert result.display_name == "White House, Washington, DC"

    params = mock_loader.session.get.call_args.kwargs["params"]
    assert params["countrycodes"] == "us"
    assert params["limit"] == 1


def test_geocode_no_results(mock_loader):
    respond_with(mock_loader, [])
    assert mock_loader.geocode("1 Nowhere Rd, Atlantis") is None


def test_geocode_discards_invalid_coordinates(mock_loader):
    respond_with(mock_loader, [{"lat": "123.0", "lon": "-77.0"}])
    assert mock_loader.geocode("1 Bad Data St, Somewhere") is None


def test_geocode_propagates_network_errors(mock_loader):
    import requests

    mock_loader.session.get.side_effect = requests.ConnectionError("down")
    with pytest.raises(NetworkError):
        mock_loader.geocode("1600 Pennsylvania Ave, Washington, DC 20500")


def test_reverse_geocode_state_and_county(mock_loader):
    """Verify reverse geocoding success."""
    respond_with(mock_loader, {"address": {"state": "California", "county": "Santa Cruz County"}})

    assert mock_loader.reverse_geocode_state(37.0, -122.0) == "California"
    assert mock_loader.reverse_geocode_county(37.0, -122.0) == "Santa Cruz County"

    zooms = [c.kwargs["params"]["zoom"] for c in mock_loader.session.get.call_args_list]
    assert zooms == [Geocoder.STATE_ZOOM, Geocoder.COUNTY_ZOOM]


def test_reverse_geocode_missing_fields(mock_loader):
    respond_with(mock_loader, {"address": {}})

    assert mock_loader.reverse_geocode_state(37.0, -122.0) == "Unknown"
    assert mock_loader.reverse_geocode_county(37.0, -122.0) == "Unknown County"


def test_reverse_geocode_failure_falls_back(mock_loader):
    import requests

    response = MagicMock(status_code=500, reason="Server Error")
    mock_response = respond_with(mock_loader, {})
    mock_response.raise_for_status.side_effect = requests.HTTPError(response=response)

    assert mock_loader.reverse_geocode_state(37.0, -122.0) == "Unknown"
    assert mock_loader.reverse_geocode_county(37.0, -122.0) == "Unknown County"
