import os
from typing import Any

from kube_diagnose.model import get_name, load_manifest, normalize_items

MANIFEST_SUFFIXES = (".json", ".yaml", ".yml")


def _load_objects(path: str | None) -> list[dict[str, Any]]:
    """
    Load every object from a manifest file, or from each manifest file
    of a directory (sorted by file name).
    """
    if not path:
        return []

    if os.path.isdir(path):
        objects: list[dict[str, Any]] = []
        for f in sorted(os.listdir(path)):
            if f.endswith(MANIFEST_SUFFIXES):
                objects.extend(normalize_items(load_manifest(os.path.join(path, f))))
        return objects

    return normalize_items(load_manifest(path))


def _index_by_name(objects: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    index: dict[str, dict[str, Any]] = {}
    for obj in objects:
        name = (obj.get("metadata") or {}).get("name")
        if name:
            index[name] = obj
    return index


def build_context(args) -> dict[str, Any]:
    """
    Offline analysis inputs from manifest files given on the command line.

    Keys:
      pods            target pods (--pod)
      services        target services (--service)
      endpoints       endpoints by service name (--endpoints)
      namespace_pods  pods a service selector is matched against (--pods)
      dns_pods        cluster DNS pods (--dns-pods)
    """
    context: dict[str, Any] = {
        "pods": _load_objects(getattr(args, "pod", None)),
        "services": _load_objects(getattr(args, "service", None)),
        "endpoints": _index_by_name(_load_objects(getattr(args, "endpoints", None))),
        "namespace_pods": _load_objects(getattr(args, "pods", None)),
        "dns_pods": _load_objects(getattr(args, "dns_pods", None)),
    }

    return context


def context_namespace(context: dict[str, Any], default: str) -> str:
    """
    Namespace reported for offline bulk analysis: the namespace shared by
    the loaded targets, else `default`.
    """
    targets = context["pods"] or context["services"]
    namespaces = {(t.get("metadata") or {}).get("namespace") for t in targets}
    namespaces.discard(None)
    if len(namespaces) == 1:
        return namespaces.pop()
    return default


def endpoints_for(context: dict[str, Any], service: dict[str, Any]) -> Any:
    return context["endpoints"].get(get_name(service))
