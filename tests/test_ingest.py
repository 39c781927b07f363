"""Tests for ingest server lookup."""

import httpx
import pytest

from colorrun.core.errors import IngestError
from colorrun.ingest import TWITCH_INGESTS_URL, IngestsResponse, resolve_ingest_url

INGESTS = {
    "_links": {},
    "ingests": [
        {
            "_id": 24,
            "availability": 1.0,
            "default": False,
            "name": "EU: Amsterdam, NL",
            "url_template": "rtmp://ams03.contribute.live-video.net/app/{stream_key}",
            "priority": 1,
        },
        {
            "_id": 0,
            "availability": 1.0,
            "default": True,
            "name": "Primary",
            "url_template": "rtmp://live.twitch.tv/app/{stream_key}",
            "priority": 0,
        },
    ],
}


def client_for(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestResolveIngestUrl:
    """Tests for picking the default ingest server."""

    def test_default_server_with_key(self):
        """The default entry's template gets the stream key."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=INGESTS)

        url = resolve_ingest_url("live_123_abc", client=client_for(handler))

        assert url == "rtmp://live.twitch.tv/app/live_123_abc"
        assert str(requests[0].url) == TWITCH_INGESTS_URL
        assert requests[0].method == "GET"

    def test_last_default_wins(self):
        """If several entries are flagged default the last one is used."""
        body = {"ingests": [dict(i, default=True) for i in INGESTS["ingests"]]}
        url = resolve_ingest_url("k", client=client_for(lambda r: httpx.Response(200, json=body)))

        assert url == "rtmp://live.twitch.tv/app/k"

    def test_no_default(self):
        body = {"ingests": [INGESTS["ingests"][0]]}
        with pytest.raises(IngestError, match="no default"):
            resolve_ingest_url("k", client=client_for(lambda r: httpx.Response(200, json=body)))

    def test_error_status(self):
        with pytest.raises(IngestError, match="503"):
            resolve_ingest_url("k", client=client_for(lambda r: httpx.Response(503, text="down")))

    def test_malformed_body(self):
        with pytest.raises(IngestError, match="decoding"):
            resolve_ingest_url("k", client=client_for(lambda r: httpx.Response(200, text="<html>")))

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(IngestError):
            resolve_ingest_url("k", client=client_for(handler))


class TestIngestsResponse:
    def test_parses_aliases(self):
        """The ``_id`` field maps to ``id``; unknown keys are ignored."""
        parsed = IngestsResponse.model_validate(INGESTS)

        assert [i.id for i in parsed.ingests] == [24, 0]
        assert parsed.default_ingest.name == "Primary"
