import json
from typing import Any

import yaml

from kube_diagnose.result import (
    BulkPodDiagnosticResult,
    BulkServiceDiagnosticResult,
    NamespaceList,
    PodDiagnosticResult,
    ServiceDiagnosticResult,
)

FORMATS = ("text", "json", "yaml")

# ----------------------------
# Output formatting
# ----------------------------


def _section(lines: list[str], title: str, items: list[str]) -> None:
    if items:
        lines.append(f"\n{title}:")
        for item in items:
            lines.append(f"  - {item}")


def _diagnosis_sections(lines: list[str], result: Any) -> None:
    # Printed in rule order
    _section(lines, "Probable Causes", result.causes)
    _section(lines, "Evidence", result.evidence)
    _section(lines, "Suggested Actions", result.actions)


def _pod_text(result: PodDiagnosticResult) -> list[str]:
    lines = [
        f"Pod: {result.resource_name}",
        f"Namespace: {result.namespace}",
        f"Status: {result.status}",
        f"Phase: {result.phase}",
        f"Restarts: {result.restart_count}",
    ]
    _diagnosis_sections(lines, result)

    containers = []
    for cs in result.container_statuses:
        state = cs.state or "Unknown"
        if cs.reason:
            state = f"{state} ({cs.reason})"
        containers.append(
            f"{cs.name}: {state}, ready={cs.ready}, restarts={cs.restart_count}"
        )
    _section(lines, "Containers", containers)

    lines.append(f"\nSummary: {result.summary.message}")
    return lines


def _service_text(result: ServiceDiagnosticResult) -> list[str]:
    selector = (
        ",".join(f"{k}={v}" for k, v in result.selector.items())
        if result.selector
        else "<none>"
    )
    lines = [
        f"Service: {result.resource_name}",
        f"Namespace: {result.namespace}",
        f"Status: {result.status}",
        f"Type: {result.service_type}",
        f"Selector: {selector}",
    ]
    if result.endpoint_info is not None:
        lines.append(
            f"Endpoints: {result.endpoint_info.ready_endpoints} ready, "
            f"{result.endpoint_info.not_ready_endpoints} not ready"
        )
    lines.append(f"CoreDNS: {'running' if result.core_dns_exists else 'unavailable'}")

    ports = []
    for p in result.ports:
        target = p.target_port if p.target_port is not None else "-"
        port = f"{p.name or '<unnamed>'} {p.port}/{p.protocol or 'TCP'} -> {target}"
        if p.node_port is not None:
            port += f" (nodePort {p.node_port})"
        ports.append(port)
    _section(lines, "Ports", ports)

    _diagnosis_sections(lines, result)
    lines.append(f"\nSummary: {result.summary.message}")
    return lines


def _bulk_text(result: Any, noun: str, total: int) -> list[str]:
    lines = [
        f"Namespace: {result.namespace}",
        f"Overall health: {result.summary.overall_health}",
        f"Total {noun}: {total} "
        f"(critical={result.critical_count}, warning={result.warning_count}, "
        f"healthy={result.healthy_count})",
    ]
    if result.results:
        lines.append("")
    for r in result.results:
        lines.append(f"  [{r.status}] {r.resource_name}: {r.summary.message}")
    lines.append(f"\nSummary: {result.summary.message}")
    return lines


def format_text(result: Any) -> str:
    if isinstance(result, PodDiagnosticResult):
        lines = _pod_text(result)
    elif isinstance(result, ServiceDiagnosticResult):
        lines = _service_text(result)
    elif isinstance(result, BulkPodDiagnosticResult):
        lines = _bulk_text(result, "pods", result.total_pods)
    elif isinstance(result, BulkServiceDiagnosticResult):
        lines = _bulk_text(result, "services", result.total_services)
    elif isinstance(result, NamespaceList):
        lines = [f"Namespaces ({result.total}):"] + [f"  {n}" for n in result.namespaces]
    else:
        raise TypeError(f"Cannot format {type(result).__name__}")
    return "\n".join(lines)


def format_result(result: Any, fmt: str = "text") -> str:
    if fmt == "json":
        return json.dumps(result.to_dict(), indent=2)
    if fmt == "yaml":
        return yaml.safe_dump(result.to_dict(), sort_keys=False)
    if fmt == "text":
        return format_text(result)
    raise ValueError(f"Unknown output format '{fmt}', expected one of {FORMATS}")


def output_result(result: Any, fmt: str = "text") -> None:
    print(format_result(result, fmt))
