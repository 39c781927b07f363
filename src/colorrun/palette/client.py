"""Palette API client.

Talks to a colormind-compatible palette service:

    POST /api/  {"model": "default", "input": [[44,43,44], [90,83,82], "N", "N", "N"]}
      -> {"result": [[r,g,b], [r,g,b], [r,g,b], [r,g,b], [r,g,b]]}
    GET /list
      -> {"result": ["default", "ui", ...]}

Usage:
    with PaletteClient() as client:
        first = client.get_palette("default")
        second = client.get_palette("default", seed=first.seed)
"""

import logging
import random
from typing import Annotated, Sequence

import httpx
from pydantic import BaseModel, Field, ValidationError

from colorrun.core.errors import EmptySeedError, PaletteRequestError, PaletteResponseError
from colorrun.pipeline.data import PALETTE_SIZE, Color, Palette

logger = logging.getLogger(__name__)

BASE_URL = "http://colormind.io"
DEFAULT_MODEL = "default"

# Placeholder the API expects for an unlocked palette slot
EMPTY_SLOT = "N"

# The API answers some bad requests with this text and a 200 status
EMPTY_BODY = b"empty body"

Channel = Annotated[int, Field(ge=0, le=255)]


class PaletteResponse(BaseModel):
    """Body of a palette request."""

    result: Annotated[list[tuple[Channel, Channel, Channel]], Field(min_length=PALETTE_SIZE, max_length=PALETTE_SIZE)]

    def to_palette(self) -> Palette:
        return Palette(tuple(Color.from_rgb(rgb) for rgb in self.result))


class ModelListResponse(BaseModel):
    """Body of a model list request."""

    result: list[str]


def encode_seed(seed: Sequence[Color | None]) -> list[list[int] | str]:
    """Encode a continuation seed as the API's ``input`` array.

    Raises:
        EmptySeedError: if no slot holds a color.
    """
    if len(seed) != PALETTE_SIZE:
        raise ValueError(f"seed needs {PALETTE_SIZE} slots, got {len(seed)}")
    if all(c is None for c in seed):
        raise EmptySeedError("palette seed may not be empty")
    return [c.to_rgb() if c is not None else EMPTY_SLOT for c in seed]


class PaletteClient:
    """Client for the palette API.

    An ``httpx.Client`` can be passed in (tests use one with a mock
    transport); otherwise the client owns and closes its own.
    """

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 5.0,
        http_client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout)

    def _check_response(self, response: httpx.Response) -> bytes:
        if response.status_code != 200:
            raise PaletteResponseError(
                f"palette API returned {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                body=response.text[:500],
            )
        body = response.content
        if not body.strip() or body.strip() == EMPTY_BODY:
            raise PaletteResponseError("palette API returned an empty body", status_code=response.status_code)
        return body

    def get_palette(self, model: str = DEFAULT_MODEL, seed: Sequence[Color | None] | None = None) -> Palette:
        """Fetch one palette, optionally continuing from a seed.

        Args:
            model: Palette model name.
            seed: Five slots; colors are locked in place, ``None`` slots are
                filled in by the API.

        Raises:
            EmptySeedError: seed given but every slot is empty.
            PaletteRequestError: the API could not be reached.
            PaletteResponseError: the API answered with an unusable response.
        """
        payload: dict = {"model": model}
        if seed is not None:
            payload["input"] = encode_seed(seed)

        try:
            response = self._http.post(f"{self.base_url}/api/", json=payload, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise PaletteRequestError(f"requesting palette: {e}") from e

        body = self._check_response(response)
        try:
            return PaletteResponse.model_validate_json(body).to_palette()
        except ValidationError as e:
            raise PaletteResponseError(
                f"parsing palette response: {e.error_count()} validation errors",
                status_code=response.status_code,
                body=body[:500].decode(errors="replace"),
            ) from e

    def list_models(self) -> list[str]:
        """Fetch the names of the available palette models."""
        try:
            response = self._http.get(f"{self.base_url}/list", timeout=self.timeout)
        except httpx.HTTPError as e:
            raise PaletteRequestError(f"listing models: {e}") from e

        body = self._check_response(response)
        try:
            return ModelListResponse.model_validate_json(body).result
        except ValidationError as e:
            raise PaletteResponseError(
                "parsing model list response",
                status_code=response.status_code,
                body=body[:500].decode(errors="replace"),
            ) from e

    def choose_model(self, random_model: bool = False, rng: random.Random | None = None) -> str:
        """Pick the model to fetch palettes from.

        Returns the default model, or with ``random_model`` a uniformly random
        entry of the API's model list.
        """
        if not random_model:
            return DEFAULT_MODEL
        models = self.list_models()
        if not models:
            raise PaletteResponseError("palette API listed no models")
        model = (rng or random).choice(models)
        logger.info("Using palette model %s", model)
        return model

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "PaletteClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
