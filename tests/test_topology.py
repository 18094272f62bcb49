"""
Tests for topology and period views.
"""

import pytest

from wdn_models.bounds import correct_network_data
from wdn_models.data import replicate
from wdn_models.enums import Status
from wdn_models.model import WaterModel
from wdn_models.topology import build_incidence, build_network_ref, topology_signature


class TestIncidence:
    """Tests for node incidence."""

    @pytest.mark.unit
    def test_arc_partition(self, simple_network):
        incidence = build_incidence(correct_network_data(simple_network))

        assert incidence["1"].arcs_fr["pipe"] == ("1",)
        assert incidence["1"].arcs_to["pipe"] == ()
        assert incidence["2"].arcs_to["pipe"] == ("1",)
        assert incidence["2"].arcs_fr["pipe"] == ("2",)
        assert incidence["2"].degree == 2
        assert incidence["3"].in_degree == 1
        assert incidence["3"].out_degree == 0

    @pytest.mark.unit
    def test_attached_components(self, simple_network, tank_network):
        incidence = build_incidence(correct_network_data(simple_network))
        assert incidence["1"].reservoirs == ("1",)
        assert incidence["1"].is_source
        assert incidence["2"].demands == ("1",)
        assert not incidence["2"].is_source

        incidence = build_incidence(correct_network_data(tank_network))
        assert incidence["2"].tanks == ("1",)
        assert incidence["2"].is_source

    @pytest.mark.unit
    def test_dispatchable_demands(self, simple_network):
        """Dispatchable demands are kept apart from fixed ones."""
        simple_network["demand"]["2"]["dispatchable"] = True
        simple_network["demand"]["2"]["flow_max"] = 0.01
        incidence = build_incidence(correct_network_data(simple_network))
        assert incidence["3"].demands == ()
        assert incidence["3"].dispatchable_demands == ("2",)

    @pytest.mark.unit
    def test_inactive_arcs_excluded(self, simple_network):
        simple_network["pipe"]["3"] = dict(simple_network["pipe"]["2"], node_fr="1", status=Status.INACTIVE)
        incidence = build_incidence(correct_network_data(simple_network))
        assert incidence["1"].arcs_fr["pipe"] == ("1",)


class TestNetworkRef:
    """Tests for NetworkRef."""

    @pytest.mark.unit
    def test_fixed_demand_and_sinks(self, simple_network):
        ref = build_network_ref(correct_network_data(simple_network))

        assert ref.fixed_demand == pytest.approx({"1": 0.0, "2": 0.02, "3": 0.01})
        assert not ref.is_sink("1")
        assert ref.is_sink("3")
        assert ref.head_min("1") == pytest.approx(120.0)
        assert ref.head_max("3") == pytest.approx(120.0)
        assert ref.alpha == pytest.approx(1.852)
        assert ref.ids["pipe"] == ("1", "2")

    @pytest.mark.unit
    def test_signature_ignores_demand_values(self, simple_network):
        data = correct_network_data(replicate(simple_network, 2))
        data["nw"]["2"]["demand"]["1"]["flow_nominal"] = 0.05
        assert topology_signature(data["nw"]["1"]) == topology_signature(data["nw"]["2"])

    @pytest.mark.unit
    def test_incidence_shared_across_periods(self, simple_network):
        """Periods with the same topology share incidence but not demands."""
        mn = replicate(simple_network, 2)
        mn["nw"]["2"]["demand"]["1"]["flow_nominal"] = 0.005
        wm = WaterModel(mn, "nc")

        assert wm.refs["1"].incidence is wm.refs["2"].incidence
        assert wm.refs["1"].fixed_demand["2"] == pytest.approx(0.02)
        assert wm.refs["2"].fixed_demand["2"] == pytest.approx(0.005)

    @pytest.mark.unit
    def test_changed_topology(self, simple_network):
        mn = replicate(simple_network, 2)
        mn["nw"]["2"]["pipe"]["3"] = dict(mn["nw"]["2"]["pipe"]["2"], node_fr="1")
        wm = WaterModel(mn, "nc")
        assert wm.refs["1"].incidence is not wm.refs["2"].incidence
