from types import SimpleNamespace

import pytest
from kubernetes.client.rest import ApiException

from kube_diagnose.cluster import KubernetesFetcher


class StubApiClient:
    """Objects are already API-shaped dicts, so serialization is identity."""

    def sanitize_for_serialization(self, obj):
        return obj


class StubCoreApi:
    """
    In-memory CoreV1Api. Pods, services and endpoints are keyed by
    (namespace, name); `error` is raised from every call when set,
    `errors` only from the named methods.
    """

    def __init__(
        self, pods=None, services=None, endpoints=None, namespaces=None, error=None, errors=None
    ):
        self.pods = pods or {}
        self.services = services or {}
        self.endpoints = endpoints or {}
        self.namespaces = namespaces or []
        self.error = error
        self.errors = errors or {}
        self.calls = []

    def _record(self, method, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        error = self.errors.get(method, self.error)
        if error is not None:
            raise error

    def _read(self, store, name, namespace):
        if (namespace, name) not in store:
            raise ApiException(status=404, reason="Not Found")
        return store[(namespace, name)]

    @staticmethod
    def _list(store, namespace, label_selector=None):
        items = [o for (ns, _), o in store.items() if ns == namespace]
        if label_selector:
            key, value = label_selector.split("=", 1)
            items = [
                o for o in items if (o.get("metadata", {}).get("labels") or {}).get(key) == value
            ]
        return SimpleNamespace(items=items)

    def read_namespaced_pod(self, name, namespace, **kwargs):
        self._record("read_namespaced_pod", name, namespace, **kwargs)
        return self._read(self.pods, name, namespace)

    def list_namespaced_pod(self, namespace, **kwargs):
        self._record("list_namespaced_pod", namespace, **kwargs)
        return self._list(self.pods, namespace, kwargs.get("label_selector"))

    def read_namespaced_service(self, name, namespace, **kwargs):
        self._record("read_namespaced_service", name, namespace, **kwargs)
        return self._read(self.services, name, namespace)

    def list_namespaced_service(self, namespace, **kwargs):
        self._record("list_namespaced_service", namespace, **kwargs)
        return self._list(self.services, namespace)

    def read_namespaced_endpoints(self, name, namespace, **kwargs):
        self._record("read_namespaced_endpoints", name, namespace, **kwargs)
        return self._read(self.endpoints, name, namespace)

    def list_namespace(self, **kwargs):
        self._record("list_namespace", **kwargs)
        return SimpleNamespace(items=[{"metadata": {"name": n}} for n in self.namespaces])


@pytest.fixture
def fetcher_for():
    """
    Build a KubernetesFetcher over a StubCoreApi: returns (fetcher, core).
    """

    def _build(timeout=None, **core_kwargs):
        core = StubCoreApi(**core_kwargs)
        return KubernetesFetcher(StubApiClient(), core_api=core, request_timeout=timeout), core

    return _build
