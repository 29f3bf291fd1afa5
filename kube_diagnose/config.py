import os
from dataclasses import dataclass

from kube_diagnose.output import FORMATS


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _format_env(name: str, default: str) -> str:
    value = os.getenv(name) or default
    if value not in FORMATS:
        raise ValueError(f"{name} must be one of {', '.join(FORMATS)}, got {value!r}")
    return value


def _float_env(name: str) -> float | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class Settings:
    kubeconfig: str | None = None
    context: str | None = None
    namespace: str = "default"
    output_format: str = "text"
    workers: int = 1
    request_timeout: float | None = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            kubeconfig=os.getenv("KUBE_DIAGNOSE_KUBECONFIG") or None,
            context=os.getenv("KUBE_DIAGNOSE_CONTEXT") or None,
            namespace=os.getenv("KUBE_DIAGNOSE_NAMESPACE", "default"),
            output_format=_format_env("KUBE_DIAGNOSE_FORMAT", "text"),
            workers=_int_env("KUBE_DIAGNOSE_WORKERS", 1),
            request_timeout=_float_env("KUBE_DIAGNOSE_REQUEST_TIMEOUT"),
        )
