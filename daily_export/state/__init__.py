"""Export progress state."""

from daily_export.state.watermark import WatermarkStore

__all__ = ["WatermarkStore"]
