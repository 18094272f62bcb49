"""
Tests for the tank state model.
"""

import math

import pytest

from wdn_models.data import replicate
from wdn_models.problems import build_wf_model
from wdn_models.solution import check_constraint_violations
from wdn_models.tank import (
    calc_tank_area,
    calc_tank_initial_volume,
    calc_tank_volume_bounds,
    integrate_tank_volume,
)
from wdn_models.validation import NetworkDataError


class TestTankGeometry:
    """Tests for tank geometry helpers."""

    @pytest.mark.unit
    def test_area(self):
        assert calc_tank_area(2.0) == pytest.approx(math.pi)

    @pytest.mark.unit
    def test_volume_bounds(self):
        tank = {"diameter": 2.0, "min_level": 1.0, "max_level": 4.0, "init_level": 2.0}
        assert calc_tank_volume_bounds(tank) == pytest.approx((math.pi, 4.0 * math.pi))
        assert calc_tank_initial_volume(tank) == pytest.approx(2.0 * math.pi)

    @pytest.mark.unit
    def test_min_vol(self):
        """An explicit minimum volume raises the level-based minimum."""
        tank = {"diameter": 2.0, "min_level": 1.0, "max_level": 4.0, "min_vol": 5.0}
        assert calc_tank_volume_bounds(tank)[0] == pytest.approx(5.0)


class TestTankIntegration:
    """Tests for explicit volume integration."""

    @pytest.mark.unit
    def test_integrate(self):
        """Positive outflow drains the tank."""
        volumes = integrate_tank_volume(1000.0, [0.05, 0.05, -0.1], [3600.0, 3600.0, 1800.0])
        assert volumes == pytest.approx([1000.0, 820.0, 640.0, 820.0])

    @pytest.mark.unit
    def test_constant_drain_does_not_recover(self):
        volumes = integrate_tank_volume(1000.0, [0.05] * 3, [3600.0] * 3)
        assert volumes == pytest.approx([1000.0, 820.0, 640.0, 460.0])
        assert volumes[-1] < volumes[0]

    @pytest.mark.unit
    def test_invalid_time_step(self):
        with pytest.raises(NetworkDataError, match="period 2"):
            integrate_tank_volume(1000.0, [0.05, 0.05], [3600.0, 0.0])

    @pytest.mark.unit
    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="same length"):
            integrate_tank_volume(1000.0, [0.05], [3600.0, 3600.0])


class TestTankModel:
    """Tests for tank constraints in a multi-period model."""

    @pytest.fixture
    def tank_model(self, tank_network):
        return build_wf_model(replicate(tank_network, 4), "nc")

    def _set_schedule(self, wm, outflow):
        """Set tank outflows and the volumes they imply in every period."""
        v_0 = calc_tank_initial_volume(wm.ref("1", "tank", "1"))
        for k, n in enumerate(wm.nw_ids):
            wm.var(n, "tank", "qt")["1"].set_value(outflow)
            wm.var(n, "tank", "V")["1"].set_value(v_0 - k * 3600.0 * outflow)

    @pytest.mark.integration
    def test_tank_constraints_built(self, tank_model):
        """Initial state in the first period, transitions and recovery after it."""
        wm = tank_model
        assert wm.constraints("1", "tank", "state_initial")
        assert not wm.constraints("1", "tank", "state")
        for n in ("2", "3", "4"):
            assert wm.constraints(n, "tank", "state")
        assert wm.constraints("4", "tank", "recover_volume")
        assert wm.constraints("1", "tank", "volume")

    @pytest.mark.integration
    def test_draining_schedule_violates_recovery(self, tank_model):
        """A tank drained every period does not recover its initial volume."""
        wm = tank_model
        self._set_schedule(wm, 0.01)

        violations = check_constraint_violations(wm)
        recovery = [v for v in violations if v["family"] == "recover_volume"]
        assert len(recovery) == 1
        assert recovery[0]["period"] == "4"
        assert recovery[0]["key"] == "1"
        assert recovery[0]["violation"] == pytest.approx(3 * 3600.0 * 0.01)

        families = {v["family"] for v in violations}
        assert "state" not in families
        assert "state_initial" not in families

    @pytest.mark.integration
    def test_idle_schedule_recovers(self, tank_model):
        wm = tank_model
        self._set_schedule(wm, 0.0)

        families = {v["family"] for v in check_constraint_violations(wm)}
        assert "recover_volume" not in families

    @pytest.mark.integration
    def test_dispatchable_tank_skips_recovery(self, tank_network):
        tank_network["tank"]["1"]["dispatchable"] = True
        wm = build_wf_model(replicate(tank_network, 3), "nc")
        assert not wm.constraints("3", "tank", "recover_volume")

    @pytest.mark.integration
    def test_single_period_has_no_recovery(self, tank_network):
        wm = build_wf_model(tank_network, "nc")
        assert wm.constraints("0", "tank", "state_initial")
        assert not wm.constraints("0", "tank", "recover_volume")

    @pytest.mark.integration
    def test_missing_time_step(self, tank_network):
        """Tank transitions need the period length."""
        mn = replicate(tank_network, 2)
        for nw in mn["nw"].values():
            nw.pop("time_step")
        with pytest.raises(NetworkDataError, match="time_step of period 1"):
            build_wf_model(mn, "nc")
