"""Tests for rhythm coupling splits and config loading."""

import logging

import pytest

from poseforge.core.math_utils import deg_to_rad, rad_to_deg
from poseforge.biomech import rhythm as rhythm_mod
from poseforge.biomech.joints import apply_coordinate_overrides, default_model, load_model
from poseforge.biomech.rhythm import RhythmCoupling, default_couplings, load_couplings


def _coupling(**kw) -> RhythmCoupling:
    fields_ = dict(
        name="pair", proximal_joint="st_right", proximal_coordinate="st_r_upward",
        distal_joint="gh_right", distal_coordinate="gh_r_abduction",
        threshold=deg_to_rad(30.0), ratio=2.0,
    )
    fields_.update(kw)
    return RhythmCoupling(**fields_)


class TestSplit:
    def test_ninety_degrees_two_to_one(self):
        split = _coupling().split(deg_to_rad(90.0))
        assert rad_to_deg(split.proximal) == pytest.approx(20.0)
        assert rad_to_deg(split.distal) == pytest.approx(70.0)
        assert split.proximal + split.distal == pytest.approx(split.total)

    @pytest.mark.parametrize("total_deg", [0.0, 15.0, 30.0, -40.0])
    def test_at_or_below_threshold_all_distal(self, total_deg):
        split = _coupling().split(deg_to_rad(total_deg))
        assert split.proximal == 0.0
        assert split.distal == pytest.approx(deg_to_rad(total_deg))

    def test_proximal_limited_to_range(self):
        split = _coupling().split(deg_to_rad(300.0), (0.0, deg_to_rad(60.0)))
        assert split.proximal == pytest.approx(deg_to_rad(60.0))
        assert split.distal == pytest.approx(deg_to_rad(240.0))

    def test_ratio_zero_moves_everything_above_threshold(self):
        split = _coupling(ratio=0.0).split(deg_to_rad(50.0))
        assert rad_to_deg(split.proximal) == pytest.approx(20.0)

    def test_negative_parameters_rejected(self):
        with pytest.raises(ValueError):
            _coupling(ratio=-1.0)
        with pytest.raises(ValueError):
            _coupling(threshold=-0.1)


class TestDefaults:
    def test_both_shoulders(self):
        names = [c.name for c in default_couplings()]
        assert names == ["scapulohumeral_right", "scapulohumeral_left"]

    def test_defaults_fit_default_model(self):
        model = default_model()
        for c in default_couplings():
            assert c.problems(model) == []

    def test_problems_reported(self):
        problems = _coupling(distal_coordinate="gh_r_nope").problems(default_model())
        assert problems == ["joint 'gh_right' has no coordinate 'gh_r_nope'"]
        assert _coupling(proximal_joint="nope").problems(default_model())[0] == "unknown joint 'nope'"

    def test_opposite_sign_conventions_rejected(self):
        model = apply_coordinate_overrides(default_model(), {"st_r_upward": {"invert": False}})
        assert default_couplings()[0].problems(model) == [
            "'st_r_upward' and 'gh_r_abduction' use opposite sign conventions",
        ]
        assert default_couplings()[1].problems(model) == []

    def test_different_axes_rejected(self):
        problems = _coupling(proximal_coordinate="st_r_tilt").problems(default_model())
        assert "'st_r_tilt' turns about X but 'gh_r_abduction' about Z" in problems

    def test_shipped_couplings_fit_shipped_model(self):
        model = load_model()
        for c in load_couplings():
            assert c.problems(model) == []


class TestLoad:
    def test_shipped_config_matches_defaults(self):
        assert load_couplings() == default_couplings()

    def test_missing_config_falls_back(self, monkeypatch, caplog):
        def _missing(name):
            raise FileNotFoundError(name)

        monkeypatch.setattr(rhythm_mod, "load_biomech_config", _missing)
        with caplog.at_level(logging.WARNING):
            couplings = load_couplings()
        assert couplings == default_couplings()
        assert "not found" in caplog.text

    def test_entries_expand_and_bad_entries_skipped(self, monkeypatch, caplog):
        monkeypatch.setattr(rhythm_mod, "load_biomech_config", lambda name: {"couplings": [
            {"name": "hip_knee_{side}", "proximal_joint": "hip_{side}",
             "proximal_coordinate": "hip_{s}_flexion", "distal_joint": "knee_{side}",
             "distal_coordinate": "knee_{s}_flexion", "threshold_deg": 10, "ratio": 3},
            {"name": "broken"},
        ]})
        with caplog.at_level(logging.WARNING):
            couplings = load_couplings()
        assert [c.name for c in couplings] == ["hip_knee_right", "hip_knee_left"]
        assert couplings[1].proximal_coordinate == "hip_l_flexion"
        assert couplings[0].threshold == pytest.approx(deg_to_rad(10.0))
        assert couplings[0].ratio == 3.0
        assert "broken" in caplog.text
