"""VibeCode: enhance a photo from a vibe prompt with a generative image model."""

__version__ = "1.0.0"
