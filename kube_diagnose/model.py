import json
from typing import Any

import yaml

# ----------------------------
# Parsing utilities
# ----------------------------


def load_json(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_manifest(path: str) -> Any:
    """
    Load a Kubernetes manifest from disk.

    JSON is a subset of YAML, so `kubectl get -o json` and `-o yaml`
    output both go through the same loader.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def normalize_items(objects: Any) -> list[dict[str, Any]]:
    """
    Flatten a manifest into a list of objects.

    Accepts a single object, a plain list, or a `kind: List`
    (or `PodList`, `ServiceList`, ...) wrapper.
    """
    if not objects:
        return []
    if isinstance(objects, list):
        return objects
    if "items" in objects and str(objects.get("kind", "List")).endswith("List"):
        return objects.get("items") or []
    return [objects]


def get_name(obj: dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("name", "unknown")


def get_namespace(obj: dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("namespace", "unknown")


def get_labels(obj: dict[str, Any]) -> dict[str, str] | None:
    return (obj.get("metadata") or {}).get("labels")


def format_labels(labels: dict[str, str]) -> str:
    return ",".join(f"{k}={v}" for k, v in labels.items())
