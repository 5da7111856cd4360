"""
Visualization utilities for the detection post-processing pipeline.

All functions save figures to disk rather than displaying them interactively,
making the module suitable for headless execution.
"""

import os

import numpy as np
import matplotlib
matplotlib.use("Agg")          # non-interactive backend
import matplotlib.pyplot as plt

from keypoint_select.utils.points import points_not_in


# ---------------------------------------------------------------------------
# Step 1 – Candidate verification
# ---------------------------------------------------------------------------

def save_verification(img: np.ndarray, intensity: np.ndarray,
                      candidates: np.ndarray, confirmed: np.ndarray,
                      name: str, out_dir: str, radius: int, kind: str = "max") -> str:
    """Save a 1x2 figure: intensity with candidates, image with confirmed extrema."""
    fig, axes = plt.subplots(1, 2, figsize=(14, 6))

    axes[0].imshow(intensity, cmap="magma")
    axes[0].plot(candidates[:, 0], candidates[:, 1], "c.", markersize=2)
    axes[0].set_title(f"Candidates ({len(candidates)} pts)"); axes[0].axis("off")

    axes[1].imshow(img)
    axes[1].plot(confirmed[:, 0], confirmed[:, 1], "g+", markersize=8, markeredgewidth=2)
    axes[1].set_title(f"Confirmed {kind}imums ({len(confirmed)} pts, r={radius})"); axes[1].axis("off")

    plt.tight_layout()
    path = os.path.join(out_dir, name, f"step1_verify_{kind}.jpg")
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return path


# ---------------------------------------------------------------------------
# Step 2 – Feature limiting
# ---------------------------------------------------------------------------

def save_selection(img: np.ndarray, confirmed: np.ndarray, selected: np.ndarray,
                   name: str, out_dir: str, policy: str, cell_size: int = None,
                   kind: str = "max") -> str:
    """Save the confirmed points, marking which were selected and which dropped.

    When *cell_size* is given the uniform selector's grid is drawn as well.
    """
    fig, ax = plt.subplots(figsize=(10, 8))
    ax.imshow(img)

    if cell_size:
        h, w = img.shape[:2]
        for x in range(cell_size, w, cell_size):
            ax.axvline(x, color="white", linewidth=0.5, alpha=0.4)
        for y in range(cell_size, h, cell_size):
            ax.axhline(y, color="white", linewidth=0.5, alpha=0.4)

    dropped = points_not_in(confirmed, selected)
    ax.plot(dropped[:, 0], dropped[:, 1], "r.", markersize=3, label="dropped")
    ax.plot(selected[:, 0], selected[:, 1], "g+", markersize=8, markeredgewidth=2,
            label="selected")
    ax.set_title(f"{name} – {policy} ({kind}imums): {len(selected)} of {len(confirmed)} kept")
    ax.legend(loc="lower right")
    ax.axis("off")

    plt.tight_layout()
    path = os.path.join(out_dir, name, f"step2_select_{kind}.jpg")
    plt.savefig(path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    return path
