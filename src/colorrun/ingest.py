"""Twitch ingest server lookup."""

import logging

import httpx
from pydantic import BaseModel, Field, ValidationError

from colorrun.core.errors import IngestError

logger = logging.getLogger(__name__)

TWITCH_INGESTS_URL = "https://ingest.twitch.tv/ingests"


class Ingest(BaseModel):
    """One ingest server entry."""

    id: int = Field(alias="_id")
    availability: float = 0.0
    default: bool = False
    name: str
    url_template: str
    priority: int = 0


class IngestsResponse(BaseModel):
    """Body of the ingest list request."""

    ingests: list[Ingest]

    @property
    def default_ingest(self) -> Ingest | None:
        """The entry flagged as default (the last one, if several are)."""
        defaults = [i for i in self.ingests if i.default]
        return defaults[-1] if defaults else None


def resolve_ingest_url(
    stream_key: str,
    client: httpx.Client | None = None,
    url: str = TWITCH_INGESTS_URL,
    timeout: float = 5.0,
) -> str:
    """Return the RTMP URL of the default ingest server for a stream key.

    Raises:
        IngestError: the list could not be fetched or has no default server.
    """
    owns_client = client is None
    client = client or httpx.Client(timeout=timeout)
    try:
        response = client.get(url, timeout=timeout)
    except httpx.HTTPError as e:
        raise IngestError(f"getting ingests: {e}") from e
    finally:
        if owns_client:
            client.close()

    if not response.is_success:
        raise IngestError(f"getting ingests ({response.status_code} {response.reason_phrase}): {response.text[:500]}")

    try:
        ingests = IngestsResponse.model_validate_json(response.content)
    except ValidationError as e:
        raise IngestError(f"decoding ingest response: {e.error_count()} validation errors") from e

    ingest = ingests.default_ingest
    if ingest is None:
        raise IngestError("no default ingest server found")

    logger.info("Using ingest server %s", ingest.name)
    return ingest.url_template.replace("{stream_key}", stream_key)
