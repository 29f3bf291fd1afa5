import copy
import os

import pytest

from kube_diagnose.engine import analyze_service
from kube_diagnose.findings import NO_ISSUES, Status
from kube_diagnose.model import load_json, normalize_items
from kube_diagnose.rules.service_rules import (
    MAX_LABEL_SAMPLES,
    build_endpoint_info,
    build_service_ports,
    selector_matches,
)
from kube_diagnose.snapshot import EndpointsSnapshot, ServiceSnapshot

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


def fixture(name):
    return load_json(os.path.join(FIXTURES_DIR, name))


@pytest.fixture
def web_service():
    return fixture("web_service.json")


@pytest.fixture
def web_pods():
    return [fixture("healthy_pod.json")]


@pytest.fixture
def dns_pods():
    return normalize_items(fixture("coredns_pods.json"))


@pytest.fixture
def ready_endpoints():
    return fixture("web_endpoints.json")


def labelled_pod(name, labels, ports=None):
    containers = [{"name": "c", "ports": [{"containerPort": p} for p in ports or []]}]
    return {
        "metadata": {"name": name, "namespace": "shop", "labels": labels},
        "spec": {"containers": containers},
        "status": {"phase": "Running"},
    }


# ----------------------------
# Selector matching
# ----------------------------


@pytest.mark.parametrize(
    "selector, labels, expected",
    [
        ({"app": "web"}, {"app": "web", "tier": "frontend"}, True),
        ({"app": "web", "tier": "frontend"}, {"app": "web"}, False),
        ({"app": "web"}, {"app": "api"}, False),
        ({"app": "web"}, None, False),
    ],
)
def test_selector_is_a_subset_test(selector, labels, expected):
    assert selector_matches(selector, labels) is expected


def test_selector_without_matching_pods(ready_endpoints, dns_pods):
    service = {
        "metadata": {"name": "foo", "namespace": "shop"},
        "spec": {"type": "ClusterIP", "selector": {"app": "foo"}},
    }
    pods = [labelled_pod("web-1", {"app": "web"}), labelled_pod("api-1", {"app": "api"})]

    result = analyze_service(service, None, pods, dns_pods)

    assert result.status is Status.CRITICAL
    assert result.causes[0] == "Service selector does not match any pods"
    assert result.evidence[:5] == [
        "Service selector: app=foo",
        "Total pods in namespace: 2",
        "Matching pods: 0",
        "Pod 'web-1' labels: app=web",
        "Pod 'api-1' labels: app=api",
    ]
    assert "Service has no endpoints" in result.causes


def test_selector_mismatch_samples_are_capped(dns_pods):
    service = {
        "metadata": {"name": "foo", "namespace": "shop"},
        "spec": {"selector": {"app": "foo"}},
    }
    pods = [labelled_pod(f"p{i}", {"app": f"x{i}"}) for i in range(6)]

    result = analyze_service(service, None, pods, dns_pods)

    samples = [e for e in result.evidence if e.startswith("Pod '")]
    assert len(samples) == MAX_LABEL_SAMPLES


def test_missing_selector(dns_pods, ready_endpoints, web_pods):
    service = {"metadata": {"name": "external", "namespace": "shop"}, "spec": {"type": "ClusterIP"}}

    result = analyze_service(service, ready_endpoints, web_pods, dns_pods)

    assert result.status is Status.CRITICAL
    assert result.causes == ["Service has no selector defined"]
    assert result.selector is None


def test_empty_selector(dns_pods, ready_endpoints, web_pods):
    service = {
        "metadata": {"name": "empty", "namespace": "shop"},
        "spec": {"type": "ClusterIP", "selector": {}},
    }

    result = analyze_service(service, ready_endpoints, web_pods, dns_pods)

    assert result.status is Status.CRITICAL
    assert result.causes == ["Service has empty selector"]
    assert "Service selector is empty: {}" in result.evidence


# ----------------------------
# Endpoints
# ----------------------------


def test_healthy_service(web_service, ready_endpoints, web_pods, dns_pods):
    result = analyze_service(web_service, ready_endpoints, web_pods, dns_pods)

    assert result.status is Status.HEALTHY
    assert result.causes == [NO_ISSUES]
    assert result.summary.issue_count == 0
    assert result.summary.message == "Service 'web' is healthy with 2 ready endpoint(s)."
    assert result.evidence == [
        "CoreDNS is running (2 pod(s))",
        "Service type: ClusterIP",
        "Ready endpoints: 2",
        "CoreDNS is operational",
    ]
    assert result.endpoint_info.addresses == ["10.244.1.12 (Ready)", "10.244.2.7 (Ready)"]
    assert result.core_dns_exists is True


def test_no_endpoints_is_critical(web_service, web_pods, dns_pods):
    result = analyze_service(web_service, None, web_pods, dns_pods)

    assert result.status is Status.CRITICAL
    assert result.causes == ["Service has no endpoints"]
    assert result.endpoint_info.ready_endpoints == 0


def test_endpoints_none_ready_is_warning(web_service, web_pods, dns_pods):
    endpoints = {
        "metadata": {"name": "web"},
        "subsets": [{"notReadyAddresses": [{"ip": "10.244.1.12"}]}],
    }

    result = analyze_service(web_service, endpoints, web_pods, dns_pods)

    assert result.status is Status.WARNING
    assert result.causes == ["Service has endpoints but none are ready"]
    assert "Not ready endpoints: 1" in result.evidence


def test_build_endpoint_info_mixed():
    info = build_endpoint_info(
        EndpointsSnapshot(
            {
                "subsets": [
                    {"addresses": [{"ip": "10.0.0.1"}], "notReadyAddresses": [{"ip": "10.0.0.2"}]},
                    {"addresses": [{"ip": "10.0.1.1"}]},
                ]
            }
        )
    )
    assert info.ready_endpoints == 2
    assert info.not_ready_endpoints == 1
    assert info.addresses == ["10.0.0.1 (Ready)", "10.0.0.2 (NotReady)", "10.0.1.1 (Ready)"]


# ----------------------------
# Ports
# ----------------------------


def test_target_port_mismatch(web_service, ready_endpoints, web_pods, dns_pods):
    service = copy.deepcopy(web_service)
    service["spec"]["ports"][0]["targetPort"] = 9090

    result = analyze_service(service, ready_endpoints, web_pods, dns_pods)

    assert result.status is Status.WARNING
    assert result.causes == ["Service targetPort 9090 may not match any container port"]
    assert "Service port 80 -> targetPort 9090" in result.evidence
    assert "Container ports found: [8080]" in result.evidence


def test_missing_target_port_defaults_to_port(web_service, ready_endpoints, web_pods, dns_pods):
    service = copy.deepcopy(web_service)
    del service["spec"]["ports"][0]["targetPort"]

    result = analyze_service(service, ready_endpoints, web_pods, dns_pods)

    assert result.causes == ["Service targetPort 80 may not match any container port"]


def test_named_target_port_is_informational(web_service, ready_endpoints, web_pods, dns_pods):
    service = copy.deepcopy(web_service)
    service["spec"]["ports"][0]["targetPort"] = "http"

    result = analyze_service(service, ready_endpoints, web_pods, dns_pods)

    assert result.status is Status.HEALTHY
    assert "Service uses named port 'http' - ensure pod has matching port name" in result.evidence
    assert result.ports[0].target_port is None


def test_pods_without_container_ports(web_service, ready_endpoints, dns_pods):
    pods = [labelled_pod("web-1", {"app": "web"})]

    result = analyze_service(web_service, ready_endpoints, pods, dns_pods)

    assert result.status is Status.HEALTHY
    assert "Warning: No container ports explicitly defined in pods" in result.evidence


def test_build_service_ports():
    service = ServiceSnapshot(
        {
            "spec": {
                "type": "NodePort",
                "ports": [
                    {"name": "http", "protocol": "TCP", "port": 80, "targetPort": 8080, "nodePort": 30080},
                    {"port": 443, "targetPort": "https"},
                ],
            }
        }
    )
    ports = build_service_ports(service)

    assert ports[0].to_dict() == {
        "name": "http",
        "protocol": "TCP",
        "port": 80,
        "targetPort": 8080,
        "nodePort": 30080,
    }
    assert ports[1].target_port is None
    assert ports[1].name is None


# ----------------------------
# CoreDNS
# ----------------------------


def test_missing_coredns_is_critical(web_service, ready_endpoints, web_pods):
    result = analyze_service(web_service, ready_endpoints, web_pods, [])

    assert result.status is Status.CRITICAL
    assert result.causes == ["CoreDNS pods not found in kube-system namespace"]
    assert result.core_dns_exists is False


def test_coredns_not_running(web_service, ready_endpoints, web_pods, dns_pods):
    for pod in dns_pods:
        pod["status"]["phase"] = "Pending"

    result = analyze_service(web_service, ready_endpoints, web_pods, dns_pods)

    assert result.status is Status.CRITICAL
    assert result.causes == ["CoreDNS pods exist but none are running"]
    assert "CoreDNS pods found: 2" in result.evidence
