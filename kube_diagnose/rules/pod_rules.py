from kube_diagnose.findings import Finding, Signal
from kube_diagnose.result import ContainerStatus
from kube_diagnose.rules.base_rule import DiagnosticRule
from kube_diagnose.snapshot import PodSnapshot

HIGH_RESTART_THRESHOLD = 5

# Exit code of a SIGKILLed process (128 + 9)
SIGKILL_EXIT_CODE = 137

IMAGE_PULL_REASONS = ("ImagePullBackOff", "ErrImagePull")


def _waiting(cs: dict) -> dict | None:
    return (cs.get("state") or {}).get("waiting")


def _terminated(state: dict | None) -> dict | None:
    return (state or {}).get("terminated")


def _restarts(cs: dict) -> int:
    return cs.get("restartCount") or 0


def _message(value: str | None) -> str:
    return value if value is not None else "No message"


class CrashLoopBackOffRule(DiagnosticRule):
    """
    Detects containers stuck in CrashLoopBackOff.

    Signals:
      - containerStatuses[].state.waiting.reason == "CrashLoopBackOff"

    Interpretation:
      The container process exits repeatedly and the kubelet applies
      exponential restart backoff. One finding per affected container.
    """

    name = "CrashLoopBackOff"
    category = "Container"
    resource = "pod"
    priority = 10
    signal = Signal.CRITICAL

    def _affected(self, pod: PodSnapshot) -> list[dict]:
        return [
            cs
            for cs in pod.container_statuses or []
            if (_waiting(cs) or {}).get("reason") == "CrashLoopBackOff"
        ]

    def matches(self, pod, context) -> bool:
        return bool(self._affected(pod))

    def explain(self, pod, context) -> list[Finding]:
        findings = []
        for cs in self._affected(pod):
            name = cs.get("name")
            waiting = _waiting(cs)
            findings.append(
                self.finding(
                    f"Container '{name}' is in CrashLoopBackOff",
                    [
                        "Container state: Waiting, Reason: CrashLoopBackOff",
                        f"Message: {_message(waiting.get('message'))}",
                        f"Restart count: {_restarts(cs)}",
                    ],
                    [
                        f"Check container logs: kubectl logs {pod.name} -c {name} --previous",
                        "Review application startup logic and exit codes",
                        "Verify environment variables and configuration",
                        "Check if required dependencies or services are available",
                    ],
                )
            )
        return findings


class ImagePullErrorRule(DiagnosticRule):
    """
    Detects containers whose image cannot be pulled
    (ImagePullBackOff / ErrImagePull).
    """

    name = "ImagePullError"
    category = "Image"
    resource = "pod"
    priority = 20
    signal = Signal.CRITICAL

    def _affected(self, pod: PodSnapshot) -> list[dict]:
        return [
            cs
            for cs in pod.container_statuses or []
            if (_waiting(cs) or {}).get("reason") in IMAGE_PULL_REASONS
        ]

    def matches(self, pod, context) -> bool:
        return bool(self._affected(pod))

    def explain(self, pod, context) -> list[Finding]:
        findings = []
        for cs in self._affected(pod):
            waiting = _waiting(cs)
            reason = waiting.get("reason")
            findings.append(
                self.finding(
                    f"Container '{cs.get('name')}' cannot pull image: {reason}",
                    [
                        f"Container state: Waiting, Reason: {reason}",
                        f"Message: {_message(waiting.get('message'))}",
                        f"Image: {cs.get('image')}",
                    ],
                    [
                        "Verify the image name and tag are correct",
                        "Check if the image exists in the registry",
                        "Ensure image pull secrets are configured if using private registry",
                        "Verify network connectivity to the container registry",
                    ],
                )
            )
        return findings


class OOMKilledRule(DiagnosticRule):
    """
    Detects containers terminated for exceeding their memory limit.

    Signals:
      - lastState.terminated.reason == "OOMKilled"
      - state.terminated.reason == "OOMKilled"

    Both states are checked independently, so a container that was
    OOMKilled before and is OOMKilled again yields two findings.
    """

    name = "OOMKilled"
    category = "Container"
    resource = "pod"
    priority = 30
    signal = Signal.CRITICAL

    def matches(self, pod, context) -> bool:
        for cs in pod.container_statuses or []:
            for state in (cs.get("lastState"), cs.get("state")):
                if (_terminated(state) or {}).get("reason") == "OOMKilled":
                    return True
        return False

    def explain(self, pod, context) -> list[Finding]:
        findings = []
        for cs in pod.container_statuses or []:
            name = cs.get("name")

            last = _terminated(cs.get("lastState"))
            if last and last.get("reason") == "OOMKilled":
                findings.append(
                    self.finding(
                        f"Container '{name}' was OOMKilled (Out of Memory)",
                        [
                            "Last termination reason: OOMKilled",
                            f"Exit code: {last.get('exitCode')}",
                            f"Finished at: {last.get('finishedAt') or 'Unknown'}",
                        ],
                        [
                            "Increase memory limits in pod spec",
                            "Profile application memory usage to find leaks",
                            "Optimize application memory consumption",
                            "Consider using vertical pod autoscaler",
                        ],
                    )
                )

            current = _terminated(cs.get("state"))
            if current and current.get("reason") == "OOMKilled":
                findings.append(
                    self.finding(
                        f"Container '{name}' is currently OOMKilled",
                        [
                            "Current termination reason: OOMKilled",
                            f"Exit code: {current.get('exitCode')}",
                        ],
                        [
                            "Increase memory limits in pod spec",
                            "Profile application memory usage",
                        ],
                    )
                )
        return findings


class ProbeFailureRule(DiagnosticRule):
    """
    Heuristic probe failure detection.

    Signals:
      - Ready condition is False and its reason mentions "Probe"
        or its message mentions "probe" (readiness, observed)
      - Container restarted, is not ready, and last exited with 137
        (liveness, inferred: 137 only says SIGKILL)
    """

    name = "ProbeFailure"
    category = "Probes"
    resource = "pod"
    priority = 40

    def _readiness_conditions(self, pod: PodSnapshot) -> list[dict]:
        hits = []
        for condition in pod.conditions:
            if condition.get("status") != "False" or condition.get("type") != "Ready":
                continue
            reason = condition.get("reason")
            if reason is None:
                continue
            message = condition.get("message")
            if "Probe" in reason or (message is not None and "probe" in message):
                hits.append(condition)
        return hits

    def _liveness_suspects(self, pod: PodSnapshot) -> list[dict]:
        hits = []
        for cs in pod.container_statuses or []:
            if _restarts(cs) <= 0 or cs.get("ready"):
                continue
            last = _terminated(cs.get("lastState"))
            if last and last.get("exitCode") == SIGKILL_EXIT_CODE:
                hits.append(cs)
        return hits

    def matches(self, pod, context) -> bool:
        return bool(self._readiness_conditions(pod) or self._liveness_suspects(pod))

    def explain(self, pod, context) -> list[Finding]:
        findings = []
        for condition in self._readiness_conditions(pod):
            findings.append(
                self.finding(
                    "Readiness probe is failing",
                    [
                        f"Condition: Ready=False, Reason: {condition.get('reason')}",
                        f"Message: {_message(condition.get('message'))}",
                    ],
                    [
                        "Check the readiness probe configuration",
                        "Verify the probe endpoint/command is working",
                        "Increase probe timeout or failure threshold if needed",
                    ],
                )
            )

        for cs in self._liveness_suspects(pod):
            findings.append(
                self.finding(
                    f"Container '{cs.get('name')}' may be killed by liveness probe "
                    f"(exit code {SIGKILL_EXIT_CODE})",
                    [
                        f"Last termination exit code: {SIGKILL_EXIT_CODE} (SIGKILL)",
                        f"Container restart count: {_restarts(cs)}",
                    ],
                    [
                        "Review liveness probe configuration",
                        "Increase initialDelaySeconds if application needs more startup time",
                        "Check application health endpoint response time",
                    ],
                )
            )
        return findings


class HighRestartCountRule(DiagnosticRule):
    name = "HighRestartCount"
    category = "Container"
    resource = "pod"
    priority = 50

    def _affected(self, pod: PodSnapshot) -> list[dict]:
        return [
            cs
            for cs in pod.container_statuses or []
            if _restarts(cs) >= HIGH_RESTART_THRESHOLD
        ]

    def matches(self, pod, context) -> bool:
        return bool(self._affected(pod))

    def explain(self, pod, context) -> list[Finding]:
        findings = []
        for cs in self._affected(pod):
            name = cs.get("name")
            restarts = _restarts(cs)
            findings.append(
                self.finding(
                    f"Container '{name}' has high restart count: {restarts}",
                    [
                        f"Container '{name}' restart count: {restarts}",
                        f"Ready status: {bool(cs.get('ready'))}",
                    ],
                    [
                        f"Check previous container logs: kubectl logs {pod.name} -c {name} --previous",
                        "Review application stability and error handling",
                        "Check resource limits (CPU/Memory)",
                    ],
                )
            )
        return findings


def total_restarts(pod: PodSnapshot) -> int:
    """
    Sum of restart counts over every container, whether or not any of
    them crosses the high restart threshold.
    """
    return sum(_restarts(cs) for cs in pod.container_statuses or [])


def build_container_statuses(pod: PodSnapshot) -> list[ContainerStatus]:
    statuses = []
    for cs in pod.container_statuses or []:
        status = ContainerStatus(
            name=cs.get("name"),
            state=None,
            ready=bool(cs.get("ready")),
            restart_count=_restarts(cs),
        )

        state = cs.get("state") or {}
        if state.get("running") is not None:
            status.state = "Running"
        elif state.get("waiting") is not None:
            status.state = "Waiting"
            status.reason = state["waiting"].get("reason")
            status.message = state["waiting"].get("message")
        elif state.get("terminated") is not None:
            status.state = "Terminated"
            status.reason = state["terminated"].get("reason")
            status.message = state["terminated"].get("message")

        statuses.append(status)
    return statuses
