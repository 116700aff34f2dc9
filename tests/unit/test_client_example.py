from unittest.mock import MagicMock
import requests

from client import client_example


def make_response(payload):
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = payload
    response.raise_for_status = MagicMock()
    return response


def test_print_series_summary(capsys):
    client_example.print_series_summary({"series": {
        "open": [["2024-01-01T00:00:00", "open", 1.5], ["2024-01-02T00:00:00", "open", 2.5]],
        "close": [],
    }})

    out = capsys.readouterr().out
    assert "open: 2 points" in out
    assert "close: no data" in out


def test_run_client_walks_every_endpoint(mocker, capsys):
    history = {"series": {"open": [["2024-01-01T00:00:00", "open", 1.0]]}}
    mock_get = mocker.patch.object(requests.Session, "get", side_effect=[
        make_response({"symbol": "WBTC"}),
        make_response(history),
        make_response(history),
        make_response(history),
        make_response({"id": "0xabc-1"}),
        make_response({"symbol": "WBTC"}),
    ])

    client_example.run_client("WBTC")

    urls = [call.args[0] for call in mock_get.call_args_list]
    assert urls[0].endswith("/tokens/WBTC")
    assert urls[1].endswith("/tokens/WBTC/data")
    assert [call.kwargs["params"]["timeUnit"] for call in mock_get.call_args_list[1:4]] == [1, 6, 24]
    assert urls[5].endswith("/tokens/WBTC/remote")


def test_run_client_stops_when_token_lookup_fails(mocker, capsys):
    mock_get = mocker.patch.object(requests.Session, "get", side_effect=requests.exceptions.ConnectionError("refused"))

    client_example.run_client("WBTC")

    assert mock_get.call_count == 1
    assert "Token lookup failed" in capsys.readouterr().out
