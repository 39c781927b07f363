"""Palette to byte stream pipeline.

Architecture:
┌─────────────────┐     ┌──────────────────┐     ┌──────────────────┐
│  PaletteSource  │────▶│  Color Queue     │────▶│ FrameSynthesizer │
│  (palette API)  │     │  (bounded, 15)   │     │ (interpolation)  │
└─────────────────┘     └──────────────────┘     └──────────────────┘
                                                          │
                                                          ▼
                                                 ┌──────────────────┐
                                                 │  Frame Queue     │
                                                 │  (bounded)       │
                                                 └──────────────────┘
                                                          │
                                                          ▼
                                                 ┌─────────────────┐
                                                 │  StreamAdapter  │──▶ ffmpeg stdin
                                                 │  (raw bytes)    │
                                                 └─────────────────┘

Benefits:
- Bounded queues throttle the palette API to the rate ffmpeg consumes frames
- ffmpeg can read any chunk size regardless of frame boundaries
- One cancellation event unwinds every stage in producer order
"""

from colorrun.pipeline.coordinator import PipelineCoordinator
from colorrun.pipeline.data import END_OF_STREAM, Color, ComponentState, Frame, Palette
from colorrun.pipeline.encoder import FfmpegEncoder
from colorrun.pipeline.encoding import FrameEncoder, PngFrameEncoder, RawFrameEncoder, make_frame_encoder
from colorrun.pipeline.gradients import GradientFill, SlidingGradient, make_strategy, mix
from colorrun.pipeline.palette_source import PaletteSource
from colorrun.pipeline.queues import BoundedQueue
from colorrun.pipeline.stream import IterableFrameSource, QueueFrameSource, StreamAdapter
from colorrun.pipeline.synthesizer import FrameSynthesizer

__all__ = [
    "END_OF_STREAM",
    "BoundedQueue",
    "Color",
    "ComponentState",
    "FfmpegEncoder",
    "Frame",
    "FrameEncoder",
    "FrameSynthesizer",
    "GradientFill",
    "IterableFrameSource",
    "Palette",
    "PaletteSource",
    "PipelineCoordinator",
    "PngFrameEncoder",
    "QueueFrameSource",
    "RawFrameEncoder",
    "SlidingGradient",
    "StreamAdapter",
    "make_frame_encoder",
    "make_strategy",
    "mix",
]
