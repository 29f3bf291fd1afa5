"""
Fetch-then-analyze entry points.

These tie the cluster fetcher to the analyzers. Single-resource lookups
propagate FetchError (including not_found); auxiliary lookups that only
enrich a service diagnosis degrade to empty data instead.
"""

import logging
from typing import Any

from kube_diagnose.bulk import analyze_pods_bulk, analyze_services_bulk
from kube_diagnose.cluster import (
    FORBIDDEN,
    NOT_FOUND,
    UNAUTHENTICATED,
    FetchError,
    KubernetesFetcher,
)
from kube_diagnose.engine import analyze_pod, analyze_service
from kube_diagnose.result import (
    BulkPodDiagnosticResult,
    BulkServiceDiagnosticResult,
    NamespaceList,
    PodDiagnosticResult,
    ServiceDiagnosticResult,
)

logger = logging.getLogger(__name__)


def _pods_or_empty(fetcher: KubernetesFetcher, namespace: str) -> list[dict[str, Any]]:
    try:
        return fetcher.list_pods(namespace)
    except FetchError as exc:
        logger.warning("Could not fetch pods in namespace %s: %s", namespace, exc.message)
        return []


def _dns_pods_or_empty(fetcher: KubernetesFetcher) -> list[dict[str, Any]]:
    try:
        return fetcher.list_dns_pods()
    except FetchError as exc:
        logger.warning("Could not fetch CoreDNS pods: %s", exc.message)
        return []


def debug_pod(fetcher: KubernetesFetcher, namespace: str, name: str) -> PodDiagnosticResult:
    logger.info("Starting debug for pod: %s/%s", namespace, name)
    pod = fetcher.get_pod(namespace, name)
    result = analyze_pod(pod)
    logger.info("Debug complete for pod: %s/%s. Status: %s", namespace, name, result.status)
    return result


def debug_all_pods(
    fetcher: KubernetesFetcher, namespace: str, max_workers: int = 1
) -> BulkPodDiagnosticResult:
    logger.info("Starting bulk debug for all pods in namespace: %s", namespace)
    pods = fetcher.list_pods(namespace)
    logger.debug("Found %d pods in namespace: %s", len(pods), namespace)
    return analyze_pods_bulk(namespace, pods, max_workers=max_workers)


def debug_service(
    fetcher: KubernetesFetcher, namespace: str, name: str
) -> ServiceDiagnosticResult:
    logger.info("Starting debug for service: %s/%s", namespace, name)
    service = fetcher.get_service(namespace, name)

    result = analyze_service(
        service,
        fetcher.get_endpoints(namespace, name),
        _pods_or_empty(fetcher, namespace),
        _dns_pods_or_empty(fetcher),
    )
    logger.info(
        "Debug complete for service: %s/%s. Status: %s", namespace, name, result.status
    )
    return result


def debug_all_services(
    fetcher: KubernetesFetcher, namespace: str, max_workers: int = 1
) -> BulkServiceDiagnosticResult:
    logger.info("Starting bulk debug for all services in namespace: %s", namespace)
    services = fetcher.list_services(namespace)
    logger.debug("Found %d services in namespace: %s", len(services), namespace)

    # Shared by every service of the namespace
    pods = _pods_or_empty(fetcher, namespace)
    dns_pods = _dns_pods_or_empty(fetcher)

    return analyze_services_bulk(
        namespace,
        services,
        lambda name: fetcher.get_endpoints(namespace, name),
        pods,
        dns_pods,
        max_workers=max_workers,
    )


def list_namespaces(fetcher: KubernetesFetcher) -> NamespaceList:
    logger.info("Fetching all namespaces from cluster")
    names = fetcher.list_namespaces()
    logger.info("Found %d namespaces in cluster", len(names))
    return NamespaceList(names)


def describe_fetch_error(
    exc: FetchError,
    namespace: str | None = None,
    kind: str = "resource",
    name: str | None = None,
) -> str:
    """
    Operator-facing message for a failed fetch.

    With `name` the message targets one resource, otherwise the namespace
    (or the cluster when no namespace is given).
    """
    if exc.kind == NOT_FOUND:
        if name:
            return f"{kind.capitalize()} '{name}' not found in namespace '{namespace}'"
        if namespace:
            return f"Namespace '{namespace}' not found"
    if exc.kind == UNAUTHENTICATED:
        return "Authentication failed. Check your kubeconfig credentials."
    if exc.kind == FORBIDDEN:
        if name:
            return (
                f"Access denied to {kind} '{name}' in namespace '{namespace}'. "
                "Check RBAC permissions."
            )
        if namespace:
            return (
                f"Access denied to {kind}s in namespace '{namespace}'. "
                "Check RBAC permissions."
            )
    return f"Error communicating with Kubernetes API: {exc.message}"
