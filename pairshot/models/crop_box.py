from dataclasses import dataclass


@dataclass(frozen=True)
class CropBox:
    x: int
    y: int
    width: int
    height: int

    @property
    def aspect_ratio(self) -> float:
        """Width / height, as used when fitting the crop into a panel."""
        return self.width / self.height

    def __str__(self) -> str:
        return f"{self.width}x{self.height} at ({self.x},{self.y})"
