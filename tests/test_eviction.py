import pytest

from rightsize_sim.model.entities import LabelSelector, PodDisruptionBudget, SelectorRequirement
from rightsize_sim.sim.errors import ConfigurationError
from rightsize_sim.sim.eviction import EvictionGate, _scaled_value, compile_budgets
from rightsize_sim.sim.packing import Scheduler

WEB = LabelSelector(match_labels={"app": "web"})


def _pdb(**kwargs):
    kwargs.setdefault("selector", WEB)
    return PodDisruptionBudget(name="web-pdb", **kwargs)


@pytest.fixture
def web_pods(make_pod):
    return [make_pod(f"web-{i}", labels={"app": "web"}) for i in range(3)]


def _gate(make_node, pods, *pdbs):
    s = Scheduler([make_node(f"n{i}") for i in range(len(pods))])
    for alloc, pod in zip(s.allocations, pods):
        s.bind(pod, alloc)
    return EvictionGate(compile_budgets(pdbs), s.allocations)


class TestScaledValue:
    def test_int(self):
        assert _scaled_value(2, 10, "minAvailable", "p") == 2

    def test_percent_rounds_up(self):
        assert _scaled_value("50%", 3, "minAvailable", "p") == 2
        assert _scaled_value("34%", 3, "minAvailable", "p") == 2
        assert _scaled_value("100%", 3, "minAvailable", "p") == 3

    def test_numeric_string(self):
        assert _scaled_value("1", 3, "minAvailable", "p") == 1

    @pytest.mark.parametrize("value", ["abc", "x%", -1, "-5%", True])
    def test_malformed(self, value):
        with pytest.raises(ConfigurationError):
            _scaled_value(value, 3, "minAvailable", "p")


class TestMinAvailable:
    def test_single_pod_with_min_available_one_is_protected(self, make_node, web_pods):
        gate = _gate(make_node, web_pods[:1], _pdb(min_available=1))
        assert not gate.can_evict(web_pods[0])

    def test_spare_pod_can_be_evicted(self, make_node, web_pods):
        gate = _gate(make_node, web_pods[:2], _pdb(min_available=1))
        assert gate.can_evict(web_pods[0])

    def test_percentage(self, make_node, web_pods):
        assert _gate(make_node, web_pods, _pdb(min_available="50%")).can_evict(web_pods[0])
        assert not _gate(make_node, web_pods, _pdb(min_available="100%")).can_evict(web_pods[0])


class TestMaxUnavailable:
    def test_zero_blocks(self, make_node, web_pods):
        assert not _gate(make_node, web_pods[:2], _pdb(max_unavailable=0)).can_evict(web_pods[0])

    def test_one_allows(self, make_node, web_pods):
        assert _gate(make_node, web_pods[:2], _pdb(max_unavailable=1)).can_evict(web_pods[0])


class TestMatching:
    def test_unmatched_pod_is_free(self, make_node, make_pod, web_pods):
        other = make_pod("db", labels={"app": "db"})
        gate = _gate(make_node, [web_pods[0], other], _pdb(min_available=1))
        assert gate.can_evict(other)

    def test_null_selector_matches_nothing(self, make_node, web_pods):
        gate = _gate(make_node, web_pods[:1], _pdb(selector=None, min_available=1))
        assert gate.can_evict(web_pods[0])

    def test_every_matching_budget_must_allow(self, make_node, web_pods):
        loose = _pdb(min_available=0)
        strict = PodDisruptionBudget(name="strict", selector=WEB, max_unavailable=0)
        gate = _gate(make_node, web_pods[:2], loose, strict)
        assert gate.blocking_budget(web_pods[0]) is strict

    def test_both_fields_is_configuration_error(self, make_node, web_pods):
        with pytest.raises(ConfigurationError):
            _gate(make_node, web_pods[:1], _pdb(min_available=1, max_unavailable=1))

    def test_scheduler_rejects_bad_budget_before_any_pod(self, two_nodes):
        with pytest.raises(ConfigurationError):
            Scheduler(two_nodes, pdbs=[_pdb(min_available=1, max_unavailable=1)])

    def test_every_budget_is_checked(self):
        bad = _pdb(selector=LabelSelector(match_expressions=[SelectorRequirement("app", "Exists", ["x"])]))
        with pytest.raises(ConfigurationError):
            compile_budgets([_pdb(min_available=1), bad])


class TestNodeRemoval:
    def test_budget_blocks_node_removal(self, two_nodes, make_pod):
        s = Scheduler(two_nodes, pdbs=[_pdb(min_available=1)])
        s.bind(make_pod("web", labels={"app": "web"}), s.get("n1"))
        assert not s.can_remove_node("n1")

    def test_without_budget_node_is_removable(self, two_nodes, make_pod):
        s = Scheduler(two_nodes)
        s.bind(make_pod("web", labels={"app": "web"}), s.get("n1"))
        assert s.can_remove_node("n1")
