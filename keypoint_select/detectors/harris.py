"""
Harris corner response and coarse candidate proposal.

The Harris response is used as the intensity image.  Candidates are every
pixel equal to the maximum (or minimum) of its 3 x 3 neighbourhood, a cheap
superset of the true extrema that the candidate verifier then confirms with
a larger window.
"""

import numpy as np
from scipy import ndimage
from skimage.feature import corner_harris

from keypoint_select.utils.points import points_from_rows_cols


def harris_intensity(im: np.ndarray, sigma: float = 1.0) -> np.ndarray:
    """Compute the Harris corner response of a grayscale image.

    Parameters
    ----------
    im : np.ndarray
        Grayscale image (H x W), float in [0, 1].
    sigma : float
        Standard deviation of the Gaussian used for the structure tensor.

    Returns
    -------
    np.ndarray
        H x W float32 corner response map.
    """
    return corner_harris(im, method='eps', sigma=sigma).astype(np.float32)


def propose_candidates(intensity: np.ndarray, maximums: bool = True,
                       minimums: bool = False):
    """Propose 3 x 3 local extrema of *intensity* as candidate points.

    Parameters
    ----------
    intensity : np.ndarray
        H x W intensity image.
    maximums, minimums : bool
        Which kinds of candidates to propose.

    Returns
    -------
    candidates_min, candidates_max : np.ndarray or None
        N x 2 (x, y) candidate arrays in row-major scan order, or ``None``
        for a kind that was not requested.
    """
    candidates_min = candidates_max = None

    if maximums:
        peaks = intensity == ndimage.maximum_filter(intensity, size=3, mode='nearest')
        # flat regions equal their own neighbourhood maximum and carry no corner
        peaks &= intensity > 0
        candidates_max = points_from_rows_cols(np.argwhere(peaks))

    if minimums:
        pits = intensity == ndimage.minimum_filter(intensity, size=3, mode='nearest')
        pits &= intensity < 0
        candidates_min = points_from_rows_cols(np.argwhere(pits))

    return candidates_min, candidates_max
