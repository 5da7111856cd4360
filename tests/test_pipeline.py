"""
Tests for the coarse candidate proposal and the run_pipeline.py entry point.
"""

import numpy as np
import pytest
import yaml
from PIL import Image

import run_pipeline
from keypoint_select.detectors.harris import harris_intensity, propose_candidates
from keypoint_select.suppression.candidate import NonMaxCandidate, SearchStrict
from keypoint_select.utils.points import points_not_in


def checkerboard(size=96, square=16):
    yy, xx = np.mgrid[:size, :size]
    board = ((yy // square + xx // square) % 2).astype(np.uint8) * 255
    return np.stack([board] * 3, axis=-1)


class TestCandidates:

    def test_propose_maximums_in_scan_order(self):
        intensity = np.zeros((20, 20), dtype=np.float32)
        intensity[15, 3] = 2.0
        intensity[4, 12] = 1.0
        cand_min, cand_max = propose_candidates(intensity)
        assert cand_min is None
        assert [tuple(p) for p in cand_max.tolist()] == [(12, 4), (3, 15)]

    def test_propose_minimums(self):
        intensity = np.zeros((20, 20), dtype=np.float32)
        intensity[6, 7] = -1.0
        cand_min, cand_max = propose_candidates(intensity, maximums=False, minimums=True)
        assert cand_max is None
        assert [tuple(p) for p in cand_min.tolist()] == [(7, 6)]

    def test_harris_on_square(self):
        gray = np.zeros((80, 80))
        gray[20:60, 20:60] = 1.0
        intensity = harris_intensity(gray)
        assert intensity.shape == gray.shape
        assert intensity.dtype == np.float32

        _, candidates = propose_candidates(intensity)
        found = NonMaxCandidate(SearchStrict(), radius=3, ignore_border=4,
                                threshold_max=0.1 * intensity.max()).examine_maximum(
            intensity, candidates)
        assert len(found) > 0
        # the square's corners sit between pixels 19/20 and 59/60
        corners = [(cx, cy) for cx in (19.5, 59.5) for cy in (19.5, 59.5)]
        near = [min(abs(x - cx) + abs(y - cy) for cx, cy in corners) for x, y in found.tolist()]
        assert max(near) <= 3


class TestRunPipeline:

    @pytest.fixture
    def setup(self, tmp_path):
        image_path = tmp_path / "board.png"
        Image.fromarray(checkerboard()).save(image_path)
        config = {
            "extractor": {"radius": 3, "ignore_border": 4},
            "selector": {"type": "uniform_best"},
            "pipeline": {"max_features": 10, "workers": 2,
                         "results_dir": str(tmp_path / "results")},
        }
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump(config))
        return tmp_path, image_path, config_path

    def test_run_without_figures(self, setup, capsys):
        tmp_path, image_path, config_path = setup
        run_pipeline.main(["--config", str(config_path), "--images", str(image_path),
                           "--no-figures"])
        out = capsys.readouterr().out
        assert "Results Summary" in out
        assert "board" in out
        assert not (tmp_path / "results").exists()

    def test_run_with_figures(self, setup):
        tmp_path, image_path, config_path = setup
        run_pipeline.main(["--config", str(config_path), "--images", str(image_path),
                           "--workers", "1"])
        assert (tmp_path / "results" / "board" / "step1_verify_max.jpg").exists()
        assert (tmp_path / "results" / "board" / "step2_select_max.jpg").exists()
        assert not (tmp_path / "results" / "board" / "step1_verify_min.jpg").exists()

    def test_figures_for_both_passes(self, setup):
        tmp_path, image_path, config_path = setup
        config = yaml.safe_load(config_path.read_text())
        config["extractor"]["detect_minimums"] = True
        config_path.write_text(yaml.safe_dump(config))
        run_pipeline.main(["--config", str(config_path), "--images", str(image_path)])
        for step in ("step1_verify", "step2_select"):
            for kind in ("min", "max"):
                assert (tmp_path / "results" / "board" / f"{step}_{kind}.jpg").exists()

    def test_run_image_metrics(self, setup):
        tmp_path, image_path, config_path = setup
        cfg = run_pipeline.load_config(str(config_path))
        verifier = run_pipeline.create_verifier(cfg, 3)
        metrics = run_pipeline.run_image(str(image_path), cfg, verifier,
                                         str(tmp_path / "results"), False)
        assert metrics["image"] == "board"
        assert metrics["candidates"] >= metrics["confirmed"] >= metrics["selected"]
        assert metrics["selected"] <= 10

    def test_missing_image(self, setup, capsys):
        _, _, config_path = setup
        with pytest.raises(SystemExit) as exc:
            run_pipeline.main(["--config", str(config_path), "--images", "nope.png"])
        assert exc.value.code == 1
        assert "[ERROR] Image not found" in capsys.readouterr().out

    def test_invalid_config(self, tmp_path, capsys):
        config_path = tmp_path / "bad.yaml"
        config_path.write_text("selector:\n  type: fastest\n")
        with pytest.raises(SystemExit) as exc:
            run_pipeline.main(["--config", str(config_path), "--images", "x.png"])
        assert exc.value.code == 1
        assert "[ERROR] Invalid configuration" in capsys.readouterr().out

    def test_mistyped_config_value(self, tmp_path, capsys):
        config_path = tmp_path / "typo.yaml"
        config_path.write_text("extractor:\n  radius: '3'\n")
        with pytest.raises(SystemExit) as exc:
            run_pipeline.main(["--config", str(config_path), "--images", "x.png"])
        assert exc.value.code == 1
        assert "[ERROR] Invalid configuration" in capsys.readouterr().out


class TestDroppedPoints:

    def test_points_not_in(self):
        confirmed = np.array([(1, 1), (2, 2), (3, 3), (4, 4)])
        selected = np.array([(3, 3), (1, 1)])
        assert points_not_in(confirmed, selected).tolist() == [[2, 2], [4, 4]]

    def test_nothing_dropped(self):
        confirmed = np.array([(1, 1), (2, 2)])
        assert points_not_in(confirmed, confirmed).shape == (0, 2)
        assert points_not_in([], confirmed).shape == (0, 2)
