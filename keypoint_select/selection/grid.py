"""
Regular grid of cells laid over an image, each cell collecting the points
that fall inside it.
"""

import math

from keypoint_select.config import ConfigGridUniform, ConfigurationError

__all__ = ["ImageGrid", "ConfigGridUniform"]


class ImageGrid:
    """Row-major grid of square cells covering a ``width x height`` image.

    Cells on the right and bottom edges may be partial.  Every cell is a
    plain list, emptied when the grid is initialised again.
    """

    def __init__(self):
        self.cells = []
        self.cell_size = 0
        self.rows = 0
        self.cols = 0

    def initialize(self, cell_size: int, width: int, height: int) -> None:
        if cell_size < 1:
            raise ConfigurationError(f"cell_size must be >= 1, got {cell_size}")
        self.cell_size = cell_size
        self.rows = math.ceil(height / cell_size)
        self.cols = math.ceil(width / cell_size)
        self.cells = [[] for _ in range(self.rows * self.cols)]

    def get_cell_at_pixel(self, x: int, y: int) -> list:
        return self.cells[(y // self.cell_size) * self.cols + x // self.cell_size]

    def get_cell(self, row: int, col: int) -> list:
        return self.cells[row * self.cols + col]

    def __len__(self):
        return len(self.cells)
