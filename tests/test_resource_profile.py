from rightsize_sim.model.entities import Container, PodTemplate
from rightsize_sim.model.resource_profile import ResourceDemand, compute_pod_demand
from rightsize_sim.types import GIB


def test_containers_are_summed():
    t = PodTemplate(containers=[
        Container(name="a", req_cpu_m=100, req_mem_b=GIB),
        Container(name="b", req_cpu_m=200, req_mem_b=GIB),
    ])
    d = compute_pod_demand(t)
    assert d.cpu_m == 300
    assert d.mem_b == 2 * GIB


def test_init_container_max_wins_per_dimension():
    t = PodTemplate(
        containers=[
            Container(name="a", req_cpu_m=100, req_mem_b=GIB),
            Container(name="b", req_cpu_m=200),
        ],
        init_containers=[
            Container(name="init-1", req_cpu_m=250, req_mem_b=2 * GIB),
            Container(name="init-2", req_cpu_m=50),
        ],
    )
    d = compute_pod_demand(t)
    # cpu: sum 300 > init 250; memory: init 2Gi > sum 1Gi
    assert d.cpu_m == 300
    assert d.mem_b == 2 * GIB


def test_empty_template_has_zero_demand():
    assert compute_pod_demand(PodTemplate()) == ResourceDemand(0, 0)


def test_weight():
    d = ResourceDemand(cpu_m=1000, mem_b=GIB)
    assert d.vcores == 1.0
    assert d.weight == 5.0
