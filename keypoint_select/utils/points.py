"""
Helpers for integer point lists and the intensity images they index.

Points are stored as N x 2 integer arrays where column 0 is x (image column)
and column 1 is y (image row), so ``image[p[1], p[0]]`` is the value at a
point.
"""

import numpy as np

from keypoint_select.config import ConfigurationError

POINT_DTYPE = np.int64


def as_points(points) -> np.ndarray:
    """Normalise *points* to an N x 2 ``POINT_DTYPE`` array.

    Parameters
    ----------
    points : array-like or None
        Any sequence of integer (x, y) pairs.  ``None`` and empty inputs
        give a (0, 2) array.

    Returns
    -------
    np.ndarray
        N x 2 array of (x, y) coordinates.

    Raises
    ------
    ValueError
        If the coordinates are not integers or do not fit ``POINT_DTYPE``.
    """
    if points is None:
        return empty_points()
    arr = np.asarray(points)
    if arr.size == 0:
        return empty_points()
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"points must be N x 2, got shape {arr.shape}")
    if not np.issubdtype(arr.dtype, np.integer):
        raise ValueError(f"point coordinates must be integers, got {arr.dtype}")
    if not np.can_cast(arr.dtype, POINT_DTYPE):
        limits = np.iinfo(POINT_DTYPE)
        if arr.min() < limits.min or arr.max() > limits.max:
            raise ValueError(f"point coordinates do not fit in {np.dtype(POINT_DTYPE)}")
    return arr.astype(POINT_DTYPE, copy=False)


def empty_points() -> np.ndarray:
    return np.empty((0, 2), dtype=POINT_DTYPE)


def points_from_rows_cols(coords: np.ndarray) -> np.ndarray:
    """Convert (row, col) coordinates, as returned by scikit-image, to (x, y)."""
    coords = np.asarray(coords)
    if coords.size == 0:
        return empty_points()
    return coords[:, ::-1].astype(POINT_DTYPE)


def check_intensity_image(image) -> np.ndarray:
    """Return *image* as a non-empty 2-D floating point array.

    Integer images are converted to float64.  Anything else raises
    ``ConfigurationError``.
    """
    image = np.asarray(image)
    if image.ndim != 2:
        raise ConfigurationError(f"intensity image must be 2-D, got {image.ndim}-D")
    if image.size == 0:
        raise ConfigurationError(f"intensity image is empty, shape {image.shape}")
    if not np.issubdtype(image.dtype, np.floating):
        image = image.astype(np.float64)
    return image


def inside_image(image: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Boolean mask of the points that lie inside *image*."""
    height, width = image.shape[:2]
    x, y = points[:, 0], points[:, 1]
    return (x >= 0) & (y >= 0) & (x < width) & (y < height)


def intensity_at(image: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Sample *image* at every point."""
    return image[points[:, 1], points[:, 0]]


def points_not_in(points: np.ndarray, other: np.ndarray) -> np.ndarray:
    """Rows of *points* that do not appear in *other*, in their original order."""
    points = as_points(points)
    taken = set(map(tuple, as_points(other).tolist()))
    keep = [tuple(p) not in taken for p in points.tolist()]
    return points[np.array(keep, dtype=bool)] if keep else empty_points()
