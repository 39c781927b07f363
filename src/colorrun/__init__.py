"""Color Run: an endless palette gradient video stream.

Fetches continuous color palettes from a palette API, interpolates frames
between successive colors and feeds the raw pixels to ffmpeg.
"""

__version__ = "0.1.0"
