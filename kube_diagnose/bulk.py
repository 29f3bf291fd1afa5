import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from kube_diagnose.engine import analyze_pod, analyze_service
from kube_diagnose.findings import (
    POD_SEVERITY_RANK,
    SERVICE_SEVERITY_RANK,
    Status,
    severity_rank,
)
from kube_diagnose.result import (
    BulkPodDiagnosticResult,
    BulkServiceDiagnosticResult,
    BulkSummary,
    PodDiagnosticResult,
    ServiceDiagnosticResult,
    Summary,
)
from kube_diagnose.rules.base_rule import DiagnosticRule
from kube_diagnose.snapshot import PodSnapshot, ServiceSnapshot, as_pod, as_service

logger = logging.getLogger(__name__)

POD_HEALTHY = {Status.HEALTHY, Status.COMPLETED}
SERVICE_HEALTHY = {Status.HEALTHY}


# ----------------------------
# Degraded results
# ----------------------------


def pod_error_result(pod: PodSnapshot, error: Exception) -> PodDiagnosticResult:
    name = _safe(lambda: pod.name)
    cause = f"Failed to analyze pod: {error}"
    return PodDiagnosticResult(
        resource_name=name,
        namespace=_safe(lambda: pod.namespace),
        status=Status.CRITICAL,
        phase="Unknown",
        causes=[cause],
        evidence=["Analysis error occurred"],
        actions=[f"Check pod manually using kubectl describe pod {name}"],
        summary=Summary(
            overall_health=Status.CRITICAL,
            issue_count=1,
            message=cause,
            resource_type="Pod",
        ),
        container_statuses=[],
        restart_count=0,
    )


def service_error_result(
    service: ServiceSnapshot, error: Exception
) -> ServiceDiagnosticResult:
    name = _safe(lambda: service.name)
    cause = f"Failed to analyze service: {error}"
    return ServiceDiagnosticResult(
        resource_name=name,
        namespace=_safe(lambda: service.namespace),
        status=Status.CRITICAL,
        service_type=_safe(lambda: service.service_type, "Unknown"),
        selector=_safe(lambda: service.selector, None),
        causes=[cause],
        evidence=["Analysis error occurred"],
        actions=[f"Check service manually using kubectl describe service {name}"],
        summary=Summary(
            overall_health=Status.CRITICAL,
            issue_count=1,
            message=cause,
            resource_type="Service",
        ),
        ports=[],
        endpoint_info=None,
        core_dns_exists=True,
    )


def _safe(getter: Callable[[], Any], default: Any = "unknown") -> Any:
    # Snapshots that broke analysis may be malformed enough to break field access too
    try:
        return getter()
    except (AttributeError, KeyError, TypeError):
        return default


# ----------------------------
# Orchestration
# ----------------------------


def _run_isolated(
    items: list[Any],
    analyze: Callable[[Any], Any],
    on_error: Callable[[Any, Exception], Any],
    kind: str,
    max_workers: int,
) -> list[tuple[Any, bool]]:
    """
    Analyze every item, converting a failure into a degraded result.

    Returns (result, failed) pairs in input order.
    """

    def _one(item):
        try:
            return analyze(item), False
        except Exception as exc:
            logger.warning(
                "Failed to analyze %s %s: %s", kind, _safe(lambda: item.name), exc
            )
            return on_error(item, exc), True

    if max_workers > 1 and len(items) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(_one, items))
    return [_one(item) for item in items]


def _tally(
    outcomes: list[tuple[Any, bool]], healthy: set[Status]
) -> tuple[int, int, int]:
    critical = warning = ok = 0
    for result, failed in outcomes:
        if failed or result.status is Status.CRITICAL:
            critical += 1
        elif result.status is Status.WARNING:
            warning += 1
        elif result.status in healthy:
            ok += 1
        else:
            warning += 1
    return critical, warning, ok


def build_bulk_summary(
    namespace: str,
    total: int,
    critical: int,
    warning: int,
    healthy: int,
    noun: str,
    resource_type: str,
) -> BulkSummary:
    if critical > 0:
        overall = Status.CRITICAL
    elif warning > 0:
        overall = Status.WARNING
    else:
        overall = Status.HEALTHY

    if total == 0:
        message = f"No {noun} found in namespace '{namespace}'."
    elif critical == 0 and warning == 0:
        message = f"All {total} {noun} in namespace '{namespace}' are healthy."
    else:
        message = (
            f"Namespace '{namespace}': {total} {noun} analyzed - "
            f"{critical} critical, {warning} warning, {healthy} healthy."
        )

    return BulkSummary(overall_health=overall, message=message, resource_type=resource_type)


def analyze_pods_bulk(
    namespace: str,
    pods: list[Any],
    rules: list[DiagnosticRule] | None = None,
    max_workers: int = 1,
) -> BulkPodDiagnosticResult:
    """
    Diagnose every pod of a namespace.

    One pod failing analysis never aborts the batch: it is reported as a
    Critical result carrying the failure. Results are ordered by severity,
    keeping input order among equal severities.
    """
    snapshots = [as_pod(p) for p in pods]
    outcomes = _run_isolated(
        snapshots,
        lambda p: analyze_pod(p, rules=rules),
        pod_error_result,
        "pod",
        max_workers,
    )
    critical, warning, healthy = _tally(outcomes, POD_HEALTHY)

    results = [r for r, _ in outcomes]
    results.sort(key=lambda r: severity_rank(r.status, POD_SEVERITY_RANK))

    logger.info(
        "Bulk pod analysis for namespace %s. Total: %d, Critical: %d, Warning: %d, Healthy: %d",
        namespace, len(snapshots), critical, warning, healthy,
    )

    return BulkPodDiagnosticResult(
        namespace=namespace,
        total_pods=len(snapshots),
        critical_count=critical,
        warning_count=warning,
        healthy_count=healthy,
        results=results,
        summary=build_bulk_summary(
            namespace, len(snapshots), critical, warning, healthy, "pods", "Pods (Bulk)"
        ),
    )


def analyze_services_bulk(
    namespace: str,
    services: list[Any],
    endpoints_lookup: Callable[[str], Any],
    pods: list[Any] | None = None,
    dns_pods: list[Any] | None = None,
    rules: list[DiagnosticRule] | None = None,
    max_workers: int = 1,
) -> BulkServiceDiagnosticResult:
    """
    Diagnose every service of a namespace.

    `pods` and `dns_pods` are shared by all services; endpoints are looked
    up per service name through `endpoints_lookup`.
    """
    snapshots = [as_service(s) for s in services]
    shared_pods = [as_pod(p) for p in pods or []]
    shared_dns = [as_pod(p) for p in dns_pods or []]

    def _analyze(service: ServiceSnapshot) -> ServiceDiagnosticResult:
        return analyze_service(
            service,
            endpoints_lookup(service.name),
            shared_pods,
            shared_dns,
            rules=rules,
        )

    outcomes = _run_isolated(
        snapshots, _analyze, service_error_result, "service", max_workers
    )
    critical, warning, healthy = _tally(outcomes, SERVICE_HEALTHY)

    results = [r for r, _ in outcomes]
    results.sort(key=lambda r: severity_rank(r.status, SERVICE_SEVERITY_RANK))

    logger.info(
        "Bulk service analysis for namespace %s. Total: %d, Critical: %d, Warning: %d, Healthy: %d",
        namespace, len(snapshots), critical, warning, healthy,
    )

    return BulkServiceDiagnosticResult(
        namespace=namespace,
        total_services=len(snapshots),
        critical_count=critical,
        warning_count=warning,
        healthy_count=healthy,
        results=results,
        summary=build_bulk_summary(
            namespace,
            len(snapshots),
            critical,
            warning,
            healthy,
            "services",
            "Services (Bulk)",
        ),
    )
