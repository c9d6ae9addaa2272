import pytest
from unittest.mock import MagicMock, patch

from core.errors import APIError
from loaders.census import CensusTractLoader


@pytest.fixture
def mock_loader():
    with patch('requests.Session') as mock_session, patch('loaders.http.time.sleep'):
        loader = CensusTractLoader()
        loader.session = mock_session.return_value
        yield loader


def respond_with(loader, payload):
    mock_response = MagicMock()
    mock_response.json.return_value = payload
    loader.session.get.return_value = mock_response
    return mock_response


def test_resolve_census_tract(mock_loader):
    respond_with(mock_loader, {
        "result": {
            "geographies": {
                "Census Tracts": [{
                    "TRACT": "007200",
                    "COUNTY": "001",
                    "STATE": "11",
                    "GEOID": "11001007200",
                }]
            }
        }
    })

    tract = mock_loader.resolve_census_tract(38.8977, -77.0365)
    assert tract.geoid == "11001007200"
    assert tract.tract_id == "007200"
    assert tract.county_id == "001"
    assert tract.state_id == "11"

    # Census expects x=longitude, y=latitude
    params = mock_loader.session.get.call_args.kwargs["params"]
    assert params["x"] == -77.0365
    assert params["y"] == 38.8977
    assert params["layers"] == CensusTractLoader.TRACT_LAYER


@pytest.mark.parametrize("payload", [
    {},
    {"result": {}},
    {"result": {"geographies": {"Census Tracts": []}}},
])
def test_no_tract(mock_loader, payload):
    respond_with(mock_loader, payload)
    assert mock_loader.resolve_census_tract(0.5, -160.0) is None


def test_service_error(mock_loader):
    import requests

    response = MagicMock(status_code=503, reason="Service Unavailable")
    mock_response = respond_with(mock_loader, {})
    mock_response.raise_for_status.side_effect = requests.HTTPError(response=response)

    with pytest.raises(APIError) as exc:
        mock_loader.resolve_census_tract(38.8977, -77.0365)
    assert exc.value.status == 503
