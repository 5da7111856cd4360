"""
Image I/O helpers.

Thin wrappers around PIL and scikit-image for loading images, converting
them to grayscale, and managing the output directories of the pipeline.
"""

import os

import numpy as np
from PIL import Image
from skimage.color import rgb2gray


def load_image(path: str) -> np.ndarray:
    """Load an image as a uint8 RGB array.

    Parameters
    ----------
    path : str
        Path to the image file.

    Returns
    -------
    np.ndarray
        H x W x 3 uint8 array.
    """
    return np.array(Image.open(path).convert("RGB"))


def to_grayscale(img: np.ndarray) -> np.ndarray:
    """Convert a uint8 RGB image to a float64 grayscale image in [0, 1]."""
    return rgb2gray(img)


def image_stem(path: str) -> str:
    return os.path.splitext(os.path.basename(path))[0]


def ensure_output_dirs(names: list, base: str = "results") -> None:
    """Create one output subdirectory per image name under *base*."""
    for name in names:
        os.makedirs(os.path.join(base, name), exist_ok=True)
