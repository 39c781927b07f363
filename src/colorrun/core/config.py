"""Configuration and settings for the stream generator."""

from enum import Enum
from pathlib import Path
from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FrameMode(str, Enum):
    """How frames are drawn between palette colors."""

    FILL = "fill"  # whole frame is one interpolated color
    SLIDING = "sliding"  # 3-stop gradient sliding to the left


class FrameFormat(str, Enum):
    """Byte format handed to the encoder."""

    RAW = "raw"  # rawvideo rgba
    PNG = "png"  # image2pipe


class ImageSettings(BaseSettings):
    """Frame geometry and synthesis configuration."""

    model_config = SettingsConfigDict(env_prefix="COLORRUN_IMAGE_")

    width: int = Field(default=1280, gt=0)
    height: int = Field(default=720, gt=0)

    # Frames per color transition
    transition_frames: int = Field(default=90, gt=0)

    mode: FrameMode = FrameMode.FILL
    frame_format: FrameFormat = FrameFormat.RAW

    # Frames buffered ahead of the encoder (default: 3 transitions). Raw
    # frames hold width * height * 4 bytes each, so the default at 1280x720
    # can buffer about 1 GB.
    frame_queue_size: int | None = Field(default=None, gt=0)

    @property
    def frame_size(self) -> int:
        """Bytes in one raw RGBA frame."""
        return self.width * self.height * 4


class PaletteSettings(BaseSettings):
    """Palette API configuration."""

    model_config = SettingsConfigDict(env_prefix="COLORRUN_PALETTE_")

    base_url: str = "http://colormind.io"
    timeout: float = 5.0

    # Pick a random model from the API's model list
    random_model: bool = False
    default_model: str = "default"

    color_queue_size: int = Field(default=15, gt=0)

    # Seconds to wait between the first few fetches
    pacing_interval: float = 2.0

    # Initial retry delay after a failed fetch (0 = retry immediately)
    retry_backoff: float = 0.0


class EncoderSettings(BaseSettings):
    """ffmpeg configuration."""

    model_config = SettingsConfigDict(env_prefix="COLORRUN_ENCODER_")

    ffmpeg_bin: str = "ffmpeg"
    framerate: int = 30
    preset: str = "veryfast"
    output_format: str = "flv"

    # Bytes per read from the frame stream
    chunk_size: int = Field(default=65536, gt=0)


class Settings(BaseSettings):
    """Master configuration aggregating all subsystems."""

    model_config = SettingsConfigDict(
        env_prefix="COLORRUN_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    image: ImageSettings = Field(default_factory=ImageSettings)
    palette: PaletteSettings = Field(default_factory=PaletteSettings)
    encoder: EncoderSettings = Field(default_factory=EncoderSettings)

    # Twitch stream key
    stream_key: str = ""

    # Write out.flv here instead of streaming
    dump_dir: Path | None = None

    ingest_url: str = "https://ingest.twitch.tv/ingests"

    log_level: str = "INFO"

    @model_validator(mode="after")
    def normalize_log_level(self) -> Self:
        """Upper-case the log level name."""
        self.log_level = self.log_level.upper()
        return self


def get_settings() -> Settings:
    """Load settings from environment and .env file."""
    return Settings()
