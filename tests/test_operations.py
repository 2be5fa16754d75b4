import pytest

from rightsize_sim.model.entities import (
    Affinity, Container, LabelSelector, PodAffinityTerm, Taint, WorkloadKind,
)
from rightsize_sim.sim.operations import (
    ContainerRecommendation, add_daemon_set, add_replicas, apply_rightsizing, expand_workload, replay,
    replay_order,
)
from rightsize_sim.sim.packing import Scheduler
from rightsize_sim.types import WorkloadKey


class TestExpansion:
    def test_daemon_set_one_pod_per_eligible_node(self, make_node, make_pod):
        s = Scheduler([make_node("a"), make_node("b", taints=[Taint("dedicated", "gpu")]), make_node("c")])
        ok, reason = add_daemon_set(s, make_pod("agent", cpu_m=100))
        assert ok
        assert reason == "failed to schedule due to: not tolerated on 1 node"
        assert [a.pod_count for a in s.allocations] == [1, 0, 1]

    def test_daemon_set_clean_placement_has_empty_reason(self, two_nodes, make_pod):
        assert add_daemon_set(Scheduler(two_nodes), make_pod("agent")) == (True, "")

    def test_replicas_stop_at_first_failure(self, make_node, make_pod):
        # 1 vcore -> 850m usable
        s = Scheduler([make_node("n", vcores=1)])
        ok, reason = add_replicas(s, make_pod(cpu_m=400), 3)
        assert not ok
        assert reason == "failed to schedule due to: not enough cpu on 1 node"
        # already placed replicas stay
        assert s.get("n").pod_count == 2

    @pytest.mark.parametrize("kind,replicas,completions,expected", [
        ("Deployment", 3, 1, 3),
        ("StatefulSet", 2, 1, 2),
        ("Job", 1, 4, 4),
        ("Pod", 5, 5, 1),
    ])
    def test_placement_counts(self, make_node, make_pod, make_workload, kind, replicas, completions, expected):
        s = Scheduler([make_node("n")])
        w = make_workload(kind, "w", make_pod(), replicas=replicas, completions=completions)
        assert expand_workload(s, w) == (True, "")
        assert s.get("n").pod_count == expected


class TestReplayOrder:
    def test_kind_order_is_stable(self, make_pod, make_workload):
        ws = [
            make_workload("Pod", "p", make_pod()),
            make_workload("Deployment", "d2", make_pod()),
            make_workload("DaemonSet", "ds", make_pod()),
            make_workload("Deployment", "d1", make_pod()),
            make_workload("StatefulSet", "ss", make_pod()),
            make_workload("Job", "j", make_pod()),
        ]
        assert [w.name for w in replay_order(ws, "kind")] == ["ds", "d2", "d1", "j", "ss", "p"]

    def test_priority_order(self, make_pod, make_workload):
        anti = Affinity(pod_anti_affinity=[
            PodAffinityTerm(label_selector=LabelSelector(match_labels={"app": "x"}), topology_key="zone"),
        ])
        ws = [
            make_workload("Deployment", "small", make_pod(cpu_m=100)),
            make_workload("Deployment", "selector", make_pod(node_selector={"zone": "a"})),
            make_workload("Deployment", "big", make_pod(cpu_m=2000)),
            make_workload("Deployment", "anti", make_pod(affinity=anti)),
        ]
        assert [w.name for w in replay_order(ws, "priority")] == ["anti", "selector", "big", "small"]

    def test_unknown_mode(self, make_pod, make_workload):
        with pytest.raises(ValueError):
            replay_order([make_workload("Pod", "p", make_pod())], "random")


def test_replay_collects_failures(make_node, make_pod, make_workload):
    s = Scheduler([make_node("n", vcores=1, taints=[Taint("dedicated", "gpu")])])
    ws = [
        make_workload("DaemonSet", "agent", make_pod()),
        make_workload("Deployment", "huge", make_pod(cpu_m=5000), namespace="apps"),
    ]
    failures = replay(s, ws)
    # DaemonSet skips are not failures
    assert len(failures) == 1
    assert failures[0].workload == WorkloadKey("Deployment", "apps", "huge")
    assert "not enough cpu" in failures[0].reason
    assert str(failures[0]).startswith("Deployment/apps/huge could not be fully scheduled")


class TestRightsizing:
    def test_overrides_named_containers_only(self, make_pod, make_workload):
        original = make_workload("Deployment", "web", make_pod(cpu_m=2000, mem_b=4096))
        resized = apply_rightsizing(original, {
            "app": ContainerRecommendation(req_cpu_m=500, limit_cpu_m=1000),
            "sidecar": ContainerRecommendation(req_cpu_m=1),
        })
        c = resized.template.containers[0]
        assert (c.req_cpu_m, c.req_mem_b, c.limit_cpu_m, c.limit_mem_b) == (500, 4096, 1000, None)
        assert len(resized.template.containers) == 1

    def test_original_untouched(self, make_pod, make_workload):
        original = make_workload("Deployment", "web", make_pod(cpu_m=2000))
        apply_rightsizing(original, {"app": ContainerRecommendation(req_cpu_m=500)})
        assert original.template.containers[0].req_cpu_m == 2000
        assert original.kind == WorkloadKind.DEPLOYMENT

    def test_init_containers_are_resized(self, make_pod, make_workload):
        template = make_pod(cpu_m=500)
        template.init_containers = [Container(name="migrate", req_cpu_m=3000, req_mem_b=2048)]
        resized = apply_rightsizing(make_workload("Job", "seed", template), {
            "migrate": ContainerRecommendation(req_cpu_m=200, req_mem_b=1024),
        })
        init = resized.template.init_containers[0]
        assert (init.req_cpu_m, init.req_mem_b) == (200, 1024)
        assert resized.template.containers[0].req_cpu_m == 500
        assert template.init_containers[0].req_cpu_m == 3000
