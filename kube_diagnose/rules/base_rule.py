from typing import Any, Literal

from kube_diagnose.findings import Finding, Signal


class DiagnosticRule:
    """
    Base class for all diagnostic rules.

    A rule inspects one resource snapshot (plus whatever the analyzer puts
    in `context`) and returns its own findings. Rules never see each
    other's output.
    """

    # ---- Metadata (mandatory) ----
    name: str = "BaseRule"
    category: str = "Generic"
    resource: Literal["pod", "service"] = "pod"
    priority: int = 100

    # Signal attached to the probable causes this rule emits
    signal: Signal = Signal.ISSUE

    def matches(self, obj: Any, context: Any) -> bool:
        raise NotImplementedError

    def explain(self, obj: Any, context: Any) -> list[Finding]:
        """
        Must return a list of Finding. An empty list is valid and means
        the rule matched but had nothing to report.
        """
        raise NotImplementedError

    def finding(
        self,
        cause: str | None,
        evidence: list[str],
        actions: list[str] | None = None,
    ) -> Finding:
        return Finding(
            cause=cause,
            evidence=list(evidence),
            actions=list(actions or []),
            signal=self.signal,
        )
