from dataclasses import dataclass, field

from kube_diagnose.findings import Finding, Signal
from kube_diagnose.model import format_labels
from kube_diagnose.result import EndpointInfo, ServicePort
from kube_diagnose.rules.base_rule import DiagnosticRule
from kube_diagnose.snapshot import EndpointsSnapshot, PodSnapshot, ServiceSnapshot

DNS_NAMESPACE = "kube-system"
DNS_LABEL_SELECTOR = "k8s-app=kube-dns"

# Non-matching pods listed as evidence for a selector mismatch
MAX_LABEL_SAMPLES = 3


@dataclass
class ServiceContext:
    """
    Everything a service rule may look at besides the Service itself.
    """

    pods: list[PodSnapshot] = field(default_factory=list)
    endpoints: EndpointsSnapshot | None = None
    dns_pods: list[PodSnapshot] = field(default_factory=list)
    matching_pods: list[PodSnapshot] = field(default_factory=list)


# ----------------------------
# Pure helpers
# ----------------------------


def selector_matches(selector: dict[str, str], labels: dict[str, str] | None) -> bool:
    """
    Subset test: every selector key must be present with an equal value.
    Extra pod labels are ignored. Pods without labels never match.
    """
    if labels is None:
        return False
    return all(labels.get(k) == v for k, v in selector.items())


def find_matching_pods(
    service: ServiceSnapshot, pods: list[PodSnapshot]
) -> list[PodSnapshot]:
    selector = service.selector
    if selector is None:
        return []
    return [p for p in pods if selector_matches(selector, p.labels)]


def has_selector_mismatch(service: ServiceSnapshot, pods: list[PodSnapshot]) -> bool:
    if not service.selector:
        return True
    return not find_matching_pods(service, pods)


def build_endpoint_info(endpoints: EndpointsSnapshot | None) -> EndpointInfo:
    info = EndpointInfo()
    if endpoints is None:
        return info

    for subset in endpoints.subsets:
        for addr in subset.get("addresses") or []:
            info.ready_endpoints += 1
            info.addresses.append(f"{addr.get('ip')} (Ready)")
        for addr in subset.get("notReadyAddresses") or []:
            info.not_ready_endpoints += 1
            info.addresses.append(f"{addr.get('ip')} (NotReady)")
    return info


def running_dns_pods(dns_pods: list[PodSnapshot]) -> int:
    return sum(1 for p in dns_pods if p.phase == "Running")


def build_service_ports(service: ServiceSnapshot) -> list[ServicePort]:
    ports = []
    for sp in service.ports:
        target = sp.get("targetPort")
        ports.append(
            ServicePort(
                name=sp.get("name"),
                protocol=sp.get("protocol"),
                port=sp.get("port"),
                # named target ports are not projected
                target_port=target if isinstance(target, int) else None,
                node_port=sp.get("nodePort"),
            )
        )
    return ports


# ----------------------------
# Rules
# ----------------------------


class SelectorMismatchRule(DiagnosticRule):
    """
    Detects a Service whose selector routes to no pod at all.

    Signals:
      - spec.selector missing or empty
      - no pod in the namespace carries every selector label

    Interpretation:
      kube-proxy has nothing to route to; the Service is unreachable
      regardless of endpoint or DNS health.
    """

    name = "SelectorMismatch"
    category = "Selector"
    resource = "service"
    priority = 10
    signal = Signal.MISMATCH

    def matches(self, service, context) -> bool:
        return has_selector_mismatch(service, context.pods)

    def explain(self, service, context) -> list[Finding]:
        selector = service.selector
        if selector is None:
            return [
                self.finding(
                    "Service has no selector defined",
                    ["Service spec has no selector"],
                    ["Add a selector to the service that matches target pod labels"],
                )
            ]
        if not selector:
            return [
                self.finding(
                    "Service has empty selector",
                    ["Service selector is empty: {}"],
                    ["Define pod labels in selector that match your target pods"],
                )
            ]

        samples = []
        for pod in context.pods:
            if pod.labels is None:
                continue
            if not selector_matches(selector, pod.labels):
                if len(samples) < MAX_LABEL_SAMPLES:
                    samples.append(
                        f"Pod '{pod.name}' labels: {format_labels(pod.labels)}"
                    )

        return [
            self.finding(
                "Service selector does not match any pods",
                [
                    f"Service selector: {format_labels(selector)}",
                    f"Total pods in namespace: {len(context.pods)}",
                    "Matching pods: 0",
                    *samples,
                ],
                [
                    "Verify the service selector labels match pod labels",
                    "Use 'kubectl get pods --show-labels' to see pod labels",
                    "Update service selector or pod labels to match",
                ],
            )
        ]


class EndpointsRule(DiagnosticRule):
    name = "Endpoints"
    category = "Endpoints"
    resource = "service"
    priority = 20

    def matches(self, service, context) -> bool:
        if context.endpoints is None or not context.endpoints.subsets:
            return True
        info = build_endpoint_info(context.endpoints)
        return info.ready_endpoints == 0 and info.not_ready_endpoints > 0

    def explain(self, service, context) -> list[Finding]:
        if context.endpoints is None or not context.endpoints.subsets:
            return [
                self.finding(
                    "Service has no endpoints",
                    ["No endpoint subsets found for this service"],
                    [
                        "Ensure pods matching the service selector are running",
                        "Check if pods are in Ready state",
                        "Verify service selector matches pod labels",
                    ],
                )
            ]

        info = build_endpoint_info(context.endpoints)
        return [
            self.finding(
                "Service has endpoints but none are ready",
                [
                    "Ready endpoints: 0",
                    f"Not ready endpoints: {info.not_ready_endpoints}",
                ],
                [
                    "Check pod readiness probes",
                    "Ensure pods are healthy and passing readiness checks",
                ],
            )
        ]


class PortMismatchRule(DiagnosticRule):
    """
    Compares each service targetPort against the container ports declared
    by the pods the selector actually matches.

    Named target ports are reported but not resolved.
    """

    name = "PortMismatch"
    category = "Ports"
    resource = "service"
    priority = 30
    signal = Signal.MISMATCH

    def matches(self, service, context) -> bool:
        return bool(context.matching_pods) and service.ports_declared

    def explain(self, service, context) -> list[Finding]:
        findings = []

        container_ports: set[int] = set()
        for pod in context.matching_pods:
            container_ports |= pod.declared_ports()

        if not container_ports:
            findings.append(
                self.finding(
                    None,
                    ["Warning: No container ports explicitly defined in pods"],
                    ["Consider explicitly defining containerPort in pod spec for clarity"],
                )
            )

        for sp in service.ports:
            target = sp.get("targetPort")
            if isinstance(target, str):
                findings.append(
                    self.finding(
                        None,
                        [
                            f"Service uses named port '{target}' - "
                            "ensure pod has matching port name"
                        ],
                    )
                )
                continue
            if target is None:
                target = sp.get("port")

            if container_ports and target not in container_ports:
                findings.append(
                    self.finding(
                        f"Service targetPort {target} may not match any container port",
                        [
                            f"Service port {sp.get('port')} -> targetPort {target}",
                            f"Container ports found: {sorted(container_ports)}",
                        ],
                        [
                            "Verify service targetPort matches container port",
                            "Update service targetPort to match actual container port",
                        ],
                    )
                )
        return findings


class CoreDnsRule(DiagnosticRule):
    """
    Checks that cluster DNS is present and running, since service
    discovery by name depends on it.
    """

    name = "CoreDns"
    category = "DNS"
    resource = "service"
    priority = 40

    def matches(self, service, context) -> bool:
        return True

    def explain(self, service, context) -> list[Finding]:
        dns_pods = context.dns_pods
        if not dns_pods:
            return [
                self.finding(
                    f"CoreDNS pods not found in {DNS_NAMESPACE} namespace",
                    [f"No pods with label '{DNS_LABEL_SELECTOR}' found in {DNS_NAMESPACE}"],
                    [
                        f"Check CoreDNS deployment: kubectl get deployment coredns -n {DNS_NAMESPACE}",
                        "Verify DNS is configured correctly in the cluster",
                    ],
                )
            ]

        running = running_dns_pods(dns_pods)
        if running == 0:
            return [
                self.finding(
                    "CoreDNS pods exist but none are running",
                    [
                        f"CoreDNS pods found: {len(dns_pods)}",
                        "Running CoreDNS pods: 0",
                    ],
                    [
                        "Check CoreDNS pod status: "
                        f"kubectl get pods -n {DNS_NAMESPACE} -l {DNS_LABEL_SELECTOR}",
                        f"Check CoreDNS logs: kubectl logs -n {DNS_NAMESPACE} -l {DNS_LABEL_SELECTOR}",
                    ],
                )
            ]

        return [self.finding(None, [f"CoreDNS is running ({running} pod(s))"])]
