import logging
from collections.abc import Callable
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from kube_diagnose.rules.service_rules import DNS_LABEL_SELECTOR, DNS_NAMESPACE

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"
UNAUTHENTICATED = "unauthenticated"
OTHER = "other"


class FetchError(Exception):
    """
    The cluster API could not return a resource.

    `kind` is a classification hint for the caller: not_found, forbidden,
    unauthenticated or other.
    """

    def __init__(self, kind: str, message: str, status: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status


def classify_status(status: int | None) -> str:
    if status == 404:
        return NOT_FOUND
    if status == 403:
        return FORBIDDEN
    if status == 401:
        return UNAUTHENTICATED
    return OTHER


class KubernetesFetcher:
    """
    Read-only access to the handful of CoreV1 resources the analyzers need.

    Every object is returned in its API JSON shape (camelCase dicts), the
    same shape `kubectl get -o json` prints.
    """

    def __init__(
        self,
        api_client: Any,
        core_api: Any = None,
        request_timeout: float | None = None,
    ):
        self.api_client = api_client
        self.core = core_api if core_api is not None else client.CoreV1Api(api_client)
        self.request_timeout = request_timeout

    @classmethod
    def connect(
        cls,
        kubeconfig: str | None = None,
        context: str | None = None,
        request_timeout: float | None = None,
    ) -> "KubernetesFetcher":
        """
        Load credentials from kubeconfig, falling back to the in-cluster
        service account when no usable kubeconfig exists.
        """
        try:
            config.load_kube_config(config_file=kubeconfig, context=context)
            logger.info("Loaded kubeconfig %s", kubeconfig or "(default)")
        except ConfigException as exc:
            logger.info("No usable kubeconfig (%s), trying in-cluster config", exc)
            try:
                config.load_incluster_config()
            except ConfigException as incluster_exc:
                raise FetchError(
                    OTHER, f"Failed to connect to Kubernetes cluster: {incluster_exc}"
                ) from incluster_exc
        return cls(client.ApiClient(), request_timeout=request_timeout)

    # ----------------------------
    # Internal helpers
    # ----------------------------

    def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        if self.request_timeout is not None:
            kwargs["_request_timeout"] = self.request_timeout
        try:
            return fn(*args, **kwargs)
        except ApiException as exc:
            raise FetchError(
                classify_status(exc.status), exc.reason or str(exc), exc.status
            ) from exc
        except (HTTPError, OSError) as exc:
            # Connection failures are raised by urllib3, not as ApiException
            raise FetchError(OTHER, str(exc)) from exc

    def _to_dict(self, obj: Any) -> Any:
        return self.api_client.sanitize_for_serialization(obj)

    def _items(self, resp: Any) -> list[dict[str, Any]]:
        return [self._to_dict(i) for i in (getattr(resp, "items", None) or [])]

    # ----------------------------
    # Pods
    # ----------------------------

    def get_pod(self, namespace: str, name: str) -> dict[str, Any]:
        pod = self._call(self.core.read_namespaced_pod, name, namespace)
        if pod is None:
            raise FetchError(NOT_FOUND, f"Pod not found: {namespace}/{name}", 404)
        return self._to_dict(pod)

    def list_pods(
        self, namespace: str, label_selector: str | None = None
    ) -> list[dict[str, Any]]:
        kwargs = {"label_selector": label_selector} if label_selector else {}
        return self._items(self._call(self.core.list_namespaced_pod, namespace, **kwargs))

    def list_dns_pods(self) -> list[dict[str, Any]]:
        return self.list_pods(DNS_NAMESPACE, label_selector=DNS_LABEL_SELECTOR)

    # ----------------------------
    # Services
    # ----------------------------

    def get_service(self, namespace: str, name: str) -> dict[str, Any]:
        svc = self._call(self.core.read_namespaced_service, name, namespace)
        if svc is None:
            raise FetchError(NOT_FOUND, f"Service not found: {namespace}/{name}", 404)
        return self._to_dict(svc)

    def list_services(self, namespace: str) -> list[dict[str, Any]]:
        return self._items(self._call(self.core.list_namespaced_service, namespace))

    def get_endpoints(self, namespace: str, name: str) -> dict[str, Any] | None:
        """
        Endpoints share the service's name. A missing object means
        "no endpoints", not a failure.
        """
        try:
            ep = self._call(self.core.read_namespaced_endpoints, name, namespace)
        except FetchError as exc:
            logger.warning(
                "Could not fetch endpoints for service %s/%s: %s",
                namespace, name, exc.message,
            )
            return None
        return self._to_dict(ep) if ep is not None else None

    # ----------------------------
    # Namespaces
    # ----------------------------

    def list_namespaces(self) -> list[str]:
        names = [
            (ns.get("metadata") or {}).get("name")
            for ns in self._items(self._call(self.core.list_namespace))
        ]
        return sorted(n for n in names if n)
