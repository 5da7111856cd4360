"""
Feature limiters: pick at most ``limit`` points out of a detected set.

Every selector shares the same contract through
:meth:`FeatureMaxSelector.select`.  When no more than ``limit`` points were
detected they are all returned untouched; otherwise the policy decides which
ones survive.

Scores are computed by an explicit scoring function in which larger is
always better, so the policies never need to know whether the detector
favours positive or negative intensities.
"""

import logging

import numpy as np

from keypoint_select.config import ConfigurationError
from keypoint_select.selection.grid import ConfigGridUniform, ImageGrid
from keypoint_select.utils.points import (
    as_points,
    check_intensity_image,
    empty_points,
    inside_image,
    intensity_at,
)

logger = logging.getLogger(__name__)


def positive_score(intensity: np.ndarray, points: np.ndarray) -> np.ndarray:
    return intensity_at(intensity, points)


def negative_score(intensity: np.ndarray, points: np.ndarray) -> np.ndarray:
    return -intensity_at(intensity, points)


def score_function(positive: bool):
    """Return the scoring function for features where *positive* values are better."""
    return positive_score if positive else negative_score


class FeatureMaxSelector:
    """Base class resolving what to keep when too many features were found."""

    def select(self, intensity: np.ndarray, positive: bool, prior, detected,
               limit: int) -> np.ndarray:
        """Select features given the limit on detections.

        Parameters
        ----------
        intensity : np.ndarray
            2-D intensity image the points were detected in.
        positive : bool
            True if better features have larger values, False if smaller.
        prior : array-like or None
            Locations of previously detected features.  Unused by the
            built-in policies.
        detected : array-like
            N x 2 (x, y) locations of the newly detected features.
        limit : int
            Maximum number of features to return.

        Returns
        -------
        np.ndarray
            M x 2 selected points, ``M <= limit``.  A new array on every call.
        """
        if limit < 0:
            raise ConfigurationError(f"limit must be >= 0, got {limit}")
        detected = as_points(detected)

        # the limit is more than the total number of features. Return them all!
        if len(detected) <= limit:
            return detected.copy()
        if limit == 0:
            return empty_points()

        intensity = check_intensity_image(intensity)
        outside = np.count_nonzero(~inside_image(intensity, detected))
        if outside:
            raise ConfigurationError(
                f"{outside} detected points lie outside the {intensity.shape} intensity image")

        selected = self._select(intensity, score_function(positive), detected, limit)
        logger.debug("%s kept %d of %d features", type(self).__name__,
                     len(selected), len(detected))
        return selected

    def _select(self, intensity, score, detected, limit):
        raise NotImplementedError


class SelectNBestFeatures(FeatureMaxSelector):
    """Keeps the ``limit`` highest scoring features, best first.  Ties keep input order."""

    def _select(self, intensity, score, detected, limit):
        order = np.argsort(-score(intensity, detected), kind="stable")
        return detected[order[:limit]]


class SelectRandomFeatures(FeatureMaxSelector):
    """Randomly samples ``limit`` features with a seeded generator."""

    def __init__(self, seed: int):
        self.seed = seed
        self.rng = np.random.default_rng(seed & 0xFFFFFFFFFFFFFFFF)

    def _select(self, intensity, score, detected, limit):
        indexes = self.rng.permutation(len(detected))
        return detected[indexes[:limit]]


class SelectFirstFeatures(FeatureMaxSelector):
    """Keeps the first ``limit`` features in the order they were detected."""

    def _select(self, intensity, score, detected, limit):
        return detected[:limit].copy()


class SelectUniformBestFeatures(FeatureMaxSelector):
    """Selects features uniformly across the image, preferring the most
    intense feature inside each region.

    The image is broken into a grid.  Each sweep over the grid takes the
    best remaining feature from every non-empty cell, and sweeps repeat until
    the limit is reached or every cell is empty.
    """

    def __init__(self, config_uniform: ConfigGridUniform = None):
        self.config_uniform = config_uniform or ConfigGridUniform()
        self.config_uniform.check_validity()
        self.grid = ImageGrid()

    def _select(self, intensity, score, detected, limit):
        height, width = intensity.shape[:2]

        # Adjust the grid to the requested limit and image shape
        cell_size = self.config_uniform.select_target_cell_size(limit, width, height)
        self.grid.initialize(cell_size, width, height)
        logger.debug("uniform grid: cell size %d, %d x %d cells",
                     cell_size, self.grid.cols, self.grid.rows)

        for index, (x, y) in enumerate(detected.tolist()):
            self.grid.get_cell_at_pixel(x, y).append(index)

        scores = score(intensity, detected)
        self._sort_cells(scores)

        cells = self.grid.cells
        selected = []
        while len(selected) < limit:
            before = len(selected)
            for cell in cells:
                if len(selected) == limit:
                    break
                if cell:
                    selected.append(cell.pop())
            if before == len(selected):
                break

        return detected[selected]

    def _sort_cells(self, scores: np.ndarray) -> None:
        """Order each cell so the best point sits at the end, ready for pop().
        Equal scores pop in detection order."""
        for cell_index, cell in enumerate(self.grid.cells):
            if len(cell) < 2:
                continue
            members = np.asarray(cell)
            order = np.argsort(-scores[members], kind="stable")[::-1]
            self.grid.cells[cell_index] = members[order].tolist()
