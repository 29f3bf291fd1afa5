from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from kube_diagnose.findings import Status


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Summary:
    overall_health: Status
    issue_count: int
    message: str
    resource_type: str
    diagnostic_time: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "diagnosticTime": self.diagnostic_time,
            "resourceType": self.resource_type,
            "overallHealth": self.overall_health.value,
            "issueCount": self.issue_count,
            "message": self.message,
        }


@dataclass
class BulkSummary:
    overall_health: Status
    message: str
    resource_type: str
    diagnostic_time: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "diagnosticTime": self.diagnostic_time,
            "resourceType": self.resource_type,
            "overallHealth": self.overall_health.value,
            "message": self.message,
        }


@dataclass
class ContainerStatus:
    name: str
    state: Optional[str]
    ready: bool
    restart_count: int
    reason: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state,
            "ready": self.ready,
            "restartCount": self.restart_count,
            "reason": self.reason,
            "message": self.message,
        }


@dataclass
class ServicePort:
    name: Optional[str]
    protocol: Optional[str]
    port: int
    target_port: Optional[int] = None
    node_port: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "protocol": self.protocol,
            "port": self.port,
            "targetPort": self.target_port,
            "nodePort": self.node_port,
        }


@dataclass
class EndpointInfo:
    ready_endpoints: int = 0
    not_ready_endpoints: int = 0
    addresses: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "readyEndpoints": self.ready_endpoints,
            "notReadyEndpoints": self.not_ready_endpoints,
            "addresses": list(self.addresses),
        }


@dataclass
class PodDiagnosticResult:
    resource_name: str
    namespace: str
    status: Status
    phase: str
    causes: list[str]
    evidence: list[str]
    actions: list[str]
    summary: Summary
    container_statuses: list[ContainerStatus] = field(default_factory=list)
    restart_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "resourceName": self.resource_name,
            "namespace": self.namespace,
            "status": self.status.value,
            "phase": self.phase,
            "probableCauses": list(self.causes),
            "evidence": list(self.evidence),
            "suggestedActions": list(self.actions),
            "containerStatuses": [c.to_dict() for c in self.container_statuses],
            "restartCount": self.restart_count,
        }


@dataclass
class ServiceDiagnosticResult:
    resource_name: str
    namespace: str
    status: Status
    service_type: Optional[str]
    selector: Optional[dict[str, str]]
    causes: list[str]
    evidence: list[str]
    actions: list[str]
    summary: Summary
    ports: list[ServicePort] = field(default_factory=list)
    endpoint_info: Optional[EndpointInfo] = None
    core_dns_exists: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "resourceName": self.resource_name,
            "namespace": self.namespace,
            "status": self.status.value,
            "serviceType": self.service_type,
            "selector": dict(self.selector) if self.selector is not None else None,
            "ports": [p.to_dict() for p in self.ports],
            "probableCauses": list(self.causes),
            "evidence": list(self.evidence),
            "suggestedActions": list(self.actions),
            "endpointInfo": (
                self.endpoint_info.to_dict() if self.endpoint_info is not None else None
            ),
            "coreDnsExists": self.core_dns_exists,
        }


@dataclass
class BulkPodDiagnosticResult:
    namespace: str
    total_pods: int
    critical_count: int
    warning_count: int
    healthy_count: int
    results: list[PodDiagnosticResult]
    summary: BulkSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "namespace": self.namespace,
            "totalPods": self.total_pods,
            "criticalCount": self.critical_count,
            "warningCount": self.warning_count,
            "healthyCount": self.healthy_count,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class BulkServiceDiagnosticResult:
    namespace: str
    total_services: int
    critical_count: int
    warning_count: int
    healthy_count: int
    results: list[ServiceDiagnosticResult]
    summary: BulkSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "namespace": self.namespace,
            "totalServices": self.total_services,
            "criticalCount": self.critical_count,
            "warningCount": self.warning_count,
            "healthyCount": self.healthy_count,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class NamespaceList:
    namespaces: list[str]

    @property
    def total(self) -> int:
        return len(self.namespaces)

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "namespaces": list(self.namespaces)}
