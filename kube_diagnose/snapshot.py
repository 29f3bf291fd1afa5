from typing import Any

from kube_diagnose.model import get_labels, get_name, get_namespace


class PodSnapshot:
    """
    Read-only view of a Pod as fetched from the cluster API.
    """

    def __init__(self, raw: dict[str, Any]):
        self.raw = raw

    @property
    def name(self) -> str:
        return get_name(self.raw)

    @property
    def namespace(self) -> str:
        return get_namespace(self.raw)

    @property
    def labels(self) -> dict[str, str] | None:
        return get_labels(self.raw)

    @property
    def has_status(self) -> bool:
        return self.raw.get("status") is not None

    @property
    def phase(self) -> str | None:
        return (self.raw.get("status") or {}).get("phase")

    @property
    def container_statuses(self) -> list[dict[str, Any]] | None:
        """
        None when the status block carries no containerStatuses list at all,
        which is distinct from an empty list for phase derivation.
        """
        return (self.raw.get("status") or {}).get("containerStatuses")

    @property
    def conditions(self) -> list[dict[str, Any]]:
        return (self.raw.get("status") or {}).get("conditions") or []

    @property
    def containers(self) -> list[dict[str, Any]]:
        return (self.raw.get("spec") or {}).get("containers") or []

    def declared_ports(self) -> set[int]:
        ports = set()
        for container in self.containers:
            for port in container.get("ports") or []:
                if port.get("containerPort") is not None:
                    ports.add(port["containerPort"])
        return ports


class ServiceSnapshot:
    """
    Read-only view of a Service.
    """

    def __init__(self, raw: dict[str, Any]):
        self.raw = raw

    @property
    def name(self) -> str:
        return get_name(self.raw)

    @property
    def namespace(self) -> str:
        return get_namespace(self.raw)

    @property
    def has_spec(self) -> bool:
        return self.raw.get("spec") is not None

    @property
    def service_type(self) -> str | None:
        if not self.has_spec:
            return "Unknown"
        return self.raw["spec"].get("type")

    @property
    def selector(self) -> dict[str, str] | None:
        return (self.raw.get("spec") or {}).get("selector")

    @property
    def ports(self) -> list[dict[str, Any]]:
        return (self.raw.get("spec") or {}).get("ports") or []

    @property
    def ports_declared(self) -> bool:
        return (self.raw.get("spec") or {}).get("ports") is not None


class EndpointsSnapshot:
    """
    Read-only view of the Endpoints object that backs a Service.
    """

    def __init__(self, raw: dict[str, Any]):
        self.raw = raw

    @property
    def name(self) -> str:
        return get_name(self.raw)

    @property
    def subsets(self) -> list[dict[str, Any]]:
        return self.raw.get("subsets") or []


def as_pod(obj: Any) -> PodSnapshot:
    return obj if isinstance(obj, PodSnapshot) else PodSnapshot(obj)


def as_service(obj: Any) -> ServiceSnapshot:
    return obj if isinstance(obj, ServiceSnapshot) else ServiceSnapshot(obj)


def as_endpoints(obj: Any) -> EndpointsSnapshot | None:
    if obj is None:
        return None
    return obj if isinstance(obj, EndpointsSnapshot) else EndpointsSnapshot(obj)
