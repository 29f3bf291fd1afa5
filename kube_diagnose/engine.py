import logging
from typing import Any

from kube_diagnose.findings import NO_ISSUES, Finding, FindingSet, Signal, Status
from kube_diagnose.loader import get_default_rules
from kube_diagnose.result import (
    EndpointInfo,
    PodDiagnosticResult,
    ServiceDiagnosticResult,
    Summary,
)
from kube_diagnose.rules.base_rule import DiagnosticRule
from kube_diagnose.rules.pod_rules import build_container_statuses, total_restarts
from kube_diagnose.rules.service_rules import (
    ServiceContext,
    build_endpoint_info,
    build_service_ports,
    find_matching_pods,
    has_selector_mismatch,
    running_dns_pods,
)
from kube_diagnose.snapshot import (
    PodSnapshot,
    ServiceSnapshot,
    as_endpoints,
    as_pod,
    as_service,
)

logger = logging.getLogger(__name__)


def run_rules(rules: list[DiagnosticRule], obj: Any, context: Any) -> FindingSet:
    """
    Evaluate every rule independently and concatenate findings in rule order.
    """
    result = FindingSet()
    for rule in rules:
        if not rule.matches(obj, context):
            continue

        findings = rule.explain(obj, context)

        # ---- explain() contract enforcement ----
        if not isinstance(findings, list):
            raise TypeError(f"{rule.name}.explain() must return a list")
        for f in findings:
            if not isinstance(f, Finding):
                raise TypeError(f"{rule.name}.explain() must return Finding objects")

        logger.debug("Rule '%s' produced %d finding(s)", rule.name, len(findings))
        result.extend(findings)
    return result


def _issue_count(causes: list[str]) -> int:
    if causes == [NO_ISSUES]:
        return 0
    return len(causes)


def _issue_message(kind: str, name: str, count: int, status: Status) -> str:
    word = "issue" if count == 1 else "issues"
    return f"{kind} '{name}' has {count} {word} requiring attention. Status: {status}"


# ----------------------------
# Pods
# ----------------------------


def derive_pod_status(pod: PodSnapshot, findings: FindingSet) -> Status:
    if not pod.has_status:
        return Status.UNKNOWN

    if findings.has_signal(Signal.CRITICAL):
        return Status.CRITICAL

    if findings.causes:
        return Status.WARNING

    phase = pod.phase
    if phase == "Running":
        statuses = pod.container_statuses
        if statuses is not None and not all(cs.get("ready") for cs in statuses):
            return Status.WARNING
        return Status.HEALTHY
    if phase == "Pending":
        return Status.WARNING
    if phase == "Succeeded":
        return Status.COMPLETED
    if phase == "Failed":
        return Status.CRITICAL
    return Status.UNKNOWN


def analyze_pod(
    pod: Any, rules: list[DiagnosticRule] | None = None
) -> PodDiagnosticResult:
    """
    Diagnose a single pod.

    Runs the pod rule set, derives the overall status and assembles the
    result. When no rule produced a probable cause the result carries the
    "No issues detected" marker and an issue count of zero.
    """
    pod = as_pod(pod)
    rules = rules if rules is not None else get_default_rules("pod")
    logger.debug("Analyzing pod: %s/%s", pod.namespace, pod.name)

    findings = run_rules(rules, pod, {})
    status = derive_pod_status(pod, findings)
    phase = pod.phase if pod.has_status and pod.phase else "Unknown"

    causes = findings.causes
    evidence = findings.evidence
    actions = findings.actions
    if not causes:
        causes = [NO_ISSUES]
        evidence = evidence + [f"Pod phase: {phase}", "All containers appear healthy"]
        actions = actions + ["No action required - pod appears to be running normally"]

    issue_count = _issue_count(causes)
    if issue_count == 0:
        message = f"Pod '{pod.name}' is healthy and running normally."
    else:
        message = _issue_message("Pod", pod.name, issue_count, status)

    result = PodDiagnosticResult(
        resource_name=pod.name,
        namespace=pod.namespace,
        status=status,
        phase=phase,
        causes=causes,
        evidence=evidence,
        actions=actions,
        summary=Summary(
            overall_health=status,
            issue_count=issue_count,
            message=message,
            resource_type="Pod",
        ),
        container_statuses=build_container_statuses(pod),
        restart_count=total_restarts(pod),
    )

    logger.debug("Pod analysis complete. Found %d issues", issue_count)
    return result


# ----------------------------
# Services
# ----------------------------


def derive_service_status(
    selector_mismatch: bool,
    endpoint_info: EndpointInfo,
    core_dns_exists: bool,
    findings: FindingSet,
) -> Status:
    if selector_mismatch:
        return Status.CRITICAL
    if not core_dns_exists:
        return Status.CRITICAL
    if endpoint_info.ready_endpoints == 0 and endpoint_info.not_ready_endpoints == 0:
        return Status.CRITICAL
    if endpoint_info.ready_endpoints == 0 and endpoint_info.not_ready_endpoints > 0:
        return Status.WARNING
    if findings.has_signal(Signal.MISMATCH):
        return Status.WARNING
    if not findings.causes:
        return Status.HEALTHY
    return Status.WARNING


def analyze_service(
    service: Any,
    endpoints: Any = None,
    pods: list[Any] | None = None,
    dns_pods: list[Any] | None = None,
    rules: list[DiagnosticRule] | None = None,
) -> ServiceDiagnosticResult:
    """
    Diagnose a single service against its endpoints, the pods of its
    namespace and the cluster DNS pods.
    """
    service = as_service(service)
    rules = rules if rules is not None else get_default_rules("service")
    logger.debug("Analyzing service: %s/%s", service.namespace, service.name)

    pod_snapshots = [as_pod(p) for p in pods or []]
    context = ServiceContext(
        pods=pod_snapshots,
        endpoints=as_endpoints(endpoints),
        dns_pods=[as_pod(p) for p in dns_pods or []],
        matching_pods=find_matching_pods(service, pod_snapshots),
    )

    selector_mismatch = has_selector_mismatch(service, context.pods)
    endpoint_info = build_endpoint_info(context.endpoints)
    core_dns_exists = running_dns_pods(context.dns_pods) > 0

    findings = run_rules(rules, service, context)
    status = derive_service_status(
        selector_mismatch, endpoint_info, core_dns_exists, findings
    )

    causes = findings.causes
    evidence = findings.evidence
    actions = findings.actions
    if not causes:
        causes = [NO_ISSUES]
        evidence = evidence + [
            f"Service type: {service.service_type}",
            f"Ready endpoints: {endpoint_info.ready_endpoints}",
            "CoreDNS is operational",
        ]
        actions = actions + [
            "No action required - service appears to be configured correctly"
        ]

    issue_count = _issue_count(causes)
    if issue_count == 0:
        message = (
            f"Service '{service.name}' is healthy with "
            f"{endpoint_info.ready_endpoints} ready endpoint(s)."
        )
    else:
        message = _issue_message("Service", service.name, issue_count, status)

    result = ServiceDiagnosticResult(
        resource_name=service.name,
        namespace=service.namespace,
        status=status,
        service_type=service.service_type,
        selector=service.selector,
        causes=causes,
        evidence=evidence,
        actions=actions,
        summary=Summary(
            overall_health=status,
            issue_count=issue_count,
            message=message,
            resource_type="Service",
        ),
        ports=build_service_ports(service),
        endpoint_info=endpoint_info,
        core_dns_exists=core_dns_exists,
    )

    logger.debug("Service analysis complete. Found %d issues", issue_count)
    return result
