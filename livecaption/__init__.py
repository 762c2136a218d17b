"""Live captions: VAD-driven audio segmentation, filtering of recognition results and token merging."""

__version__ = "0.1.0"

__all__ = ["inference", "languages", "overlap", "segmentation", "silero_vad"]