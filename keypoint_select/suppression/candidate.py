"""
Non-maximal suppression restricted to a list of candidate points.

A coarse detector proposes candidates; each one is confirmed as a local
minimum or maximum of the intensity image by scanning a square window around
it.  The window test itself is delegated to a ``Search`` strategy so that the
strict and relaxed definitions of an extremum can be swapped freely.

Two verifiers are provided: ``NonMaxCandidate`` walks the candidates on the
calling thread, ``NonMaxCandidateConcurrent`` splits them into contiguous
blocks handled by a thread pool.  Both return the same points in the same
order.
"""

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from keypoint_select.config import ConfigurationError
from keypoint_select.utils.points import (
    POINT_DTYPE,
    as_points,
    check_intensity_image,
    empty_points,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Window search strategies
# ---------------------------------------------------------------------------

class Search:
    """Decides whether a value is the extremum of the window [x0,x1) x [y0,y1).

    Instances hold a reference to the image they were initialised with and
    must not be shared between threads; use :meth:`new_instance` to get an
    independent copy for each worker.
    """

    def __init__(self):
        self.image = None

    def initialize(self, image: np.ndarray) -> None:
        self.image = image

    def search_min(self, x0: int, y0: int, x1: int, y1: int, value) -> bool:
        raise NotImplementedError

    def search_max(self, x0: int, y0: int, x1: int, y1: int, value) -> bool:
        raise NotImplementedError

    def new_instance(self) -> "Search":
        return type(self)()


class SearchStrict(Search):
    """The candidate must be strictly below/above every other pixel in the window."""

    def search_min(self, x0, y0, x1, y1, value):
        window = self.image[y0:y1, x0:x1]
        # the candidate itself is the only pixel allowed to be <= value
        return np.count_nonzero(window <= value) == 1

    def search_max(self, x0, y0, x1, y1, value):
        window = self.image[y0:y1, x0:x1]
        return np.count_nonzero(window >= value) == 1


class SearchRelaxed(Search):
    """No other pixel in the window may be strictly below/above the candidate."""

    def search_min(self, x0, y0, x1, y1, value):
        window = self.image[y0:y1, x0:x1]
        return not np.any(window < value)

    def search_max(self, x0, y0, x1, y1, value):
        window = self.image[y0:y1, x0:x1]
        return not np.any(window > value)


# ---------------------------------------------------------------------------
# Sequential verifier
# ---------------------------------------------------------------------------

def _to_points(found: list) -> np.ndarray:
    if not found:
        return empty_points()
    return np.array(found, dtype=POINT_DTYPE)


class NonMaxCandidate:
    """Confirms candidate points as local extrema, one candidate at a time.

    Parameters
    ----------
    search : Search
        Window test used for every candidate.
    radius : int
        Half width of the square search window.  A radius of 2 gives a
        5 x 5 window, clipped to the image bounds.
    ignore_border : int
        Candidates closer than this many pixels to the image edge are
        dropped.
    threshold_min : float
        Candidates for a minimum whose value is above this are dropped.
    threshold_max : float
        Candidates for a maximum whose value is below this are dropped.
    """

    def __init__(self, search: Search, radius: int = 1, ignore_border: int = 0,
                 threshold_min: float = math.inf, threshold_max: float = -math.inf):
        self.search = search
        self.radius = radius
        self.ignore_border = ignore_border
        self.threshold_min = threshold_min
        self.threshold_max = threshold_max

    def process(self, image: np.ndarray, candidates_min=None, candidates_max=None):
        """Run the minimum and/or maximum pass.

        A candidate list of ``None`` skips the corresponding pass, and
        ``None`` is returned in its place.

        Returns
        -------
        found_min, found_max : np.ndarray or None
            N x 2 arrays of confirmed (x, y) extrema.
        """
        image = self._check(image)
        found_min = found_max = None
        if candidates_min is not None:
            found_min = self.examine_minimum(image, candidates_min)
        if candidates_max is not None:
            found_max = self.examine_maximum(image, candidates_max)
        return found_min, found_max

    def examine_minimum(self, image: np.ndarray, candidates) -> np.ndarray:
        """Return the candidates that are local minima, in input order."""
        return self._examine(self._check(image), as_points(candidates), True)

    def examine_maximum(self, image: np.ndarray, candidates) -> np.ndarray:
        """Return the candidates that are local maxima, in input order."""
        return self._examine(self._check(image), as_points(candidates), False)

    def _check(self, image) -> np.ndarray:
        if self.radius < 0:
            raise ConfigurationError(f"radius must be >= 0, got {self.radius}")
        if self.ignore_border < 0:
            raise ConfigurationError(
                f"ignore_border must be >= 0, got {self.ignore_border}")
        return check_intensity_image(image)

    def _examine(self, image, candidates, minimum):
        self.search.initialize(image)
        found = []
        self._scan_block(image, candidates, 0, len(candidates), self.search, minimum, found)
        logger.debug("%s pass: %d candidates -> %d confirmed",
                     "minimum" if minimum else "maximum", len(candidates), len(found))
        return _to_points(found)

    def _scan_block(self, image, candidates, idx0, idx1, search, minimum, out):
        """Test candidates[idx0:idx1] and append confirmed ones to *out*."""
        height, width = image.shape
        border = self.ignore_border
        end_x = width - border
        end_y = height - border
        radius = self.radius
        excluded = np.finfo(image.dtype).max

        if minimum:
            threshold = self.threshold_min
            excluded = -excluded
            window_test = search.search_min
        else:
            threshold = self.threshold_max
            window_test = search.search_max

        for x, y in candidates[idx0:idx1].tolist():
            if x < border or y < border or x >= end_x or y >= end_y:
                continue

            value = image[y, x]
            if value == excluded:
                continue
            if minimum and value > threshold:
                continue
            if not minimum and value < threshold:
                continue

            x0 = max(0, x - radius)
            y0 = max(0, y - radius)
            x1 = min(width, x + radius + 1)
            y1 = min(height, y + radius + 1)

            if window_test(x0, y0, x1, y1, value):
                out.append((x, y))


# ---------------------------------------------------------------------------
# Concurrent verifier
# ---------------------------------------------------------------------------

class SearchData:
    """Private state of one worker: its own search and its own output list."""

    def __init__(self, search: Search):
        self.search = search
        self.corners = []

    def reset(self, image: np.ndarray) -> None:
        self.corners.clear()
        self.search.initialize(image)


class SearchDataPool:
    """Worker state indexed by block slot.  Grows on demand and is reused
    across calls; callers reset each slot before using it."""

    def __init__(self, factory):
        self._factory = factory
        self._slots = []

    def acquire(self, count: int) -> list:
        while len(self._slots) < count:
            self._slots.append(self._factory())
        return self._slots[:count]

    def __len__(self):
        return len(self._slots)


def split_blocks(count: int, num_blocks: int) -> list:
    """Split ``range(count)`` into at most *num_blocks* contiguous ranges.

    Returns
    -------
    list of (int, int)
        ``(idx0, idx1)`` pairs covering ``0..count`` in order, none empty.
    """
    num_blocks = min(count, max(1, num_blocks))
    return [(i * count // num_blocks, (i + 1) * count // num_blocks)
            for i in range(num_blocks)]


class NonMaxCandidateConcurrent(NonMaxCandidate):
    """Thread pool version of :class:`NonMaxCandidate`.

    Each block of candidates is scanned by a worker that owns its own
    ``Search`` and output list, so nothing is locked during the scan.  The
    per-block lists are then joined in block order, which makes the result
    identical to the sequential verifier whatever the worker count.
    """

    def __init__(self, search: Search, radius: int = 1, ignore_border: int = 0,
                 threshold_min: float = math.inf, threshold_max: float = -math.inf,
                 max_workers: int = None):
        super().__init__(search, radius, ignore_border, threshold_min, threshold_max)
        if max_workers is not None and max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {max_workers}")
        self.max_workers = max_workers or os.cpu_count() or 1
        self.searches = SearchDataPool(self.create_search_data)

    def create_search_data(self) -> SearchData:
        return SearchData(self.search.new_instance())

    def _examine(self, image, candidates, minimum):
        blocks = split_blocks(len(candidates), self.max_workers)
        if not blocks:
            return empty_points()

        slots = self.searches.acquire(len(blocks))
        for data in slots:
            data.reset(image)

        def scan(block_index):
            idx0, idx1 = blocks[block_index]
            data = slots[block_index]
            self._scan_block(image, candidates, idx0, idx1, data.search, minimum, data.corners)

        with ThreadPoolExecutor(max_workers=len(blocks)) as executor:
            # consuming the iterator re-raises the first worker exception
            list(executor.map(scan, range(len(blocks))))

        found = []
        for data in slots:
            found.extend(data.corners)
        logger.debug("%s pass: %d candidates in %d blocks -> %d confirmed",
                     "minimum" if minimum else "maximum",
                     len(candidates), len(blocks), len(found))
        return _to_points(found)
