#!/usr/bin/env python3
"""
run_pipeline.py – Keypoint verification and selection pipeline

Loads configuration from configs/default.yaml (or a user-specified file),
then for every input image computes the Harris response, proposes coarse
candidates, confirms them as local extrema and limits them to the configured
feature budget.  Figures are written to the results directory.

Usage
-----
    python run_pipeline.py --images data/a.png data/b.png
    python run_pipeline.py --config configs/default.yaml --images a.png
    python run_pipeline.py --images a.png --workers 8 --no-figures
"""

import argparse
import logging
import os
import sys
import time

from keypoint_select.config import ConfigurationError, MaxSelectorTypes, load_config
from keypoint_select.detectors.harris import harris_intensity, propose_candidates
from keypoint_select.selection.factory import create_selector
from keypoint_select.suppression.candidate import (
    NonMaxCandidate,
    NonMaxCandidateConcurrent,
    SearchRelaxed,
    SearchStrict,
)
from keypoint_select.utils.image_io import (
    ensure_output_dirs,
    image_stem,
    load_image,
    to_grayscale,
)
from keypoint_select.utils.points import empty_points


# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

def banner(text: str) -> None:
    width = 60
    print("\n" + "─" * width)
    print(f"  {text}")
    print("─" * width)


def create_verifier(cfg, workers: int) -> NonMaxCandidate:
    ext = cfg.extractor
    search = SearchStrict() if ext.strict else SearchRelaxed()
    kwargs = dict(radius=ext.radius, ignore_border=ext.ignore_border,
                  threshold_min=ext.threshold_min, threshold_max=ext.threshold_max)
    if workers > 1:
        return NonMaxCandidateConcurrent(search, max_workers=workers, **kwargs)
    return NonMaxCandidate(search, **kwargs)


# ──────────────────────────────────────────────────────────────────────────────
# Per-image pipeline
# ──────────────────────────────────────────────────────────────────────────────

def run_image(path: str, cfg, verifier: NonMaxCandidate, results_dir: str,
              save_figures: bool) -> dict:
    """Execute the pipeline for a single image and return summary metrics."""
    name = image_stem(path)
    banner(f"Image: {name}")

    # ── 1. Load image + intensity ─────────────────────────────────────────────
    img = load_image(path)
    gray = to_grayscale(img)
    print(f"  Loaded image  {img.shape[1]}×{img.shape[0]}")
    intensity = harris_intensity(gray, sigma=cfg.harris_sigma)

    # ── 2. Coarse candidates ──────────────────────────────────────────────────
    print("  Stage 1 – Coarse candidate proposal")
    ext = cfg.extractor
    cand_min, cand_max = propose_candidates(
        intensity, maximums=ext.detect_maximums, minimums=ext.detect_minimums)
    n_min = 0 if cand_min is None else len(cand_min)
    n_max = 0 if cand_max is None else len(cand_max)
    print(f"    {n_min} minimum / {n_max} maximum candidates")

    # ── 3. Extremum verification ──────────────────────────────────────────────
    print("  Stage 2 – Candidate extremum verification")
    t0 = time.time()
    found_min, found_max = verifier.process(intensity, cand_min, cand_max)
    found_min = empty_points() if found_min is None else found_min
    found_max = empty_points() if found_max is None else found_max
    print(f"    {len(found_min)} minimums / {len(found_max)} maximums confirmed "
          f"({1000 * (time.time() - t0):.1f} ms)")

    # ── 4. Feature limiting ───────────────────────────────────────────────────
    policy = cfg.selector.type.value
    print(f"  Stage 3 – Feature limiting ({policy}, limit={cfg.max_features})")
    selector = create_selector(cfg.selector)
    sel_max = selector.select(intensity, True, None, found_max, cfg.max_features)
    sel_min = selector.select(intensity, False, None, found_min, cfg.max_features)
    print(f"    kept {len(sel_min)} minimums / {len(sel_max)} maximums")

    if save_figures:
        from keypoint_select.utils.visualization import save_selection, save_verification

        ensure_output_dirs([name], base=results_dir)
        passes = [("min", cand_min, found_min, sel_min), ("max", cand_max, found_max, sel_max)]
        for kind, cand, confirmed, selected in passes:
            if cand is None:
                continue
            save_verification(img, intensity, cand, confirmed, name, results_dir,
                              ext.radius, kind)

            cell_size = None
            if cfg.selector.type == MaxSelectorTypes.UNIFORM_BEST and len(confirmed) > cfg.max_features > 0:
                h, w = intensity.shape
                cell_size = cfg.selector.uniform.select_target_cell_size(cfg.max_features, w, h)
            save_selection(img, confirmed, selected, name, results_dir, policy, cell_size, kind)
        print(f"  Saved figures → {results_dir}/{name}/")

    return {
        "image": name,
        "candidates": n_min + n_max,
        "confirmed": len(found_min) + len(found_max),
        "selected": len(sel_min) + len(sel_max),
    }


# ──────────────────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────────────────

def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Candidate extremum verification and feature limiting pipeline"
    )
    p.add_argument(
        "--config", default="configs/default.yaml",
        help="Path to YAML configuration file (default: configs/default.yaml)",
    )
    p.add_argument(
        "--images", nargs="+", required=True,
        help="Image files to process",
    )
    p.add_argument(
        "--workers", type=int, default=None,
        help="Verifier worker threads (default: value from config)",
    )
    p.add_argument(
        "--no-figures", action="store_true",
        help="Skip writing visualisations",
    )
    p.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Load configuration
    if not os.path.exists(args.config):
        print(f"[ERROR] Config file not found: {args.config}")
        sys.exit(1)
    try:
        cfg = load_config(args.config)
    except ConfigurationError as e:
        print(f"[ERROR] Invalid configuration: {e}")
        sys.exit(1)

    # Validate that image files exist
    for path in args.images:
        if not os.path.exists(path):
            print(f"[ERROR] Image not found: {path}")
            sys.exit(1)

    workers = args.workers if args.workers is not None else cfg.workers
    if workers < 1:
        print(f"[ERROR] --workers must be >= 1, got {workers}")
        sys.exit(1)
    verifier = create_verifier(cfg, workers)

    banner("Keypoint Verification & Selection Pipeline")
    print(f"  Config  : {args.config}")
    print(f"  Images  : {[image_stem(p) for p in args.images]}")
    print(f"  Workers : {workers}")
    print(f"  Output  : {cfg.results_dir}/")

    t0 = time.time()
    all_metrics = []
    for path in args.images:
        all_metrics.append(run_image(path, cfg, verifier, cfg.results_dir,
                                     not args.no_figures))

    # ── Summary table ──────────────────────────────────────────────────────
    banner("Results Summary")
    header = f"{'Image':<16} {'Candidates':>11} {'Confirmed':>10} {'Selected':>9}"
    print(header)
    print("─" * len(header))
    for m in all_metrics:
        print(f"{m['image']:<16} {m['candidates']:>11} {m['confirmed']:>10} {m['selected']:>9}")

    elapsed = time.time() - t0
    print(f"\nPipeline complete in {elapsed:.1f}s")


if __name__ == "__main__":
    main()
