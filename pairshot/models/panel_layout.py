from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@dataclass(frozen=True)
class PanelLayout:
    """
    Uniform geometry shared by every composite: each product gets a
    fixed-size panel, panels sit side by side inside a white border.
    """
    panel_width: int = 240
    panel_height: int = 500
    border: int = 20
    separator: int = 10

    @classmethod
    def from_env(cls) -> "PanelLayout":
        return cls(
            panel_width=int(os.getenv("PANEL_WIDTH", "240")),
            panel_height=int(os.getenv("PANEL_HEIGHT", "500")),
            border=int(os.getenv("PANEL_BORDER", "20")),
            separator=int(os.getenv("PANEL_SEPARATOR", "10")),
        )

    @property
    def pair_size(self) -> Tuple[int, int]:
        """(width, height) of a two-panel canvas."""
        return (self.panel_width * 2 + self.separator + self.border * 2,
                self.panel_height + self.border * 2)

    @property
    def single_size(self) -> Tuple[int, int]:
        """(width, height) of a one-panel canvas."""
        return (self.panel_width + self.border * 2,
                self.panel_height + self.border * 2)

    def panel_origin(self, index: int) -> Tuple[int, int]:
        """Top-left (x, y) of panel *index* inside the canvas."""
        x = self.border + index * (self.panel_width + self.separator)
        return x, self.border
