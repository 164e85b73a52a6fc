from __future__ import annotations
from typing import List
import numpy as np

from ..models.panel_layout import PanelLayout


class CompositeService:
    """
    Lays finished panels side by side on a white canvas with a uniform
    border and white separators.
    """

    def __init__(self, layout: PanelLayout | None = None):
        self.layout = layout or PanelLayout.from_env()

    def canvas_size(self, panel_count: int):
        """(width, height) of a canvas holding *panel_count* panels."""
        layout = self.layout
        width = (layout.panel_width * panel_count
                 + layout.separator * (panel_count - 1)
                 + layout.border * 2)
        return width, layout.panel_height + layout.border * 2

    def compose(self, panels: List[np.ndarray]) -> np.ndarray:
        if not panels:
            raise ValueError("Need at least one panel to compose")

        layout = self.layout
        expected = (layout.panel_height, layout.panel_width)
        for panel in panels:
            if panel.shape[:2] != expected:
                raise ValueError(f"Panel of shape {panel.shape[:2]} does not match layout {expected}")

        width, height = self.canvas_size(len(panels))
        canvas = np.full((height, width, 3), 255, dtype=np.uint8)
        for index, panel in enumerate(panels):
            x, y = layout.panel_origin(index)
            canvas[y:y + layout.panel_height, x:x + layout.panel_width] = panel[..., :3]

        # Separators and border stay white: nothing is drawn over them.
        return canvas

    def compose_pair(self, left: np.ndarray, right: np.ndarray) -> np.ndarray:
        return self.compose([left, right])

    def compose_single(self, panel: np.ndarray) -> np.ndarray:
        return self.compose([panel])
