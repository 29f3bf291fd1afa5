import os

import pytest

from kube_diagnose.engine import analyze_pod
from kube_diagnose.findings import NO_ISSUES, Signal, Status
from kube_diagnose.model import load_json
from kube_diagnose.rules.pod_rules import (
    CrashLoopBackOffRule,
    HighRestartCountRule,
    OOMKilledRule,
    ProbeFailureRule,
    total_restarts,
)
from kube_diagnose.snapshot import PodSnapshot

# ----------------------------
# Fixtures directory
# ----------------------------

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


def fixture(name):
    return load_json(os.path.join(FIXTURES_DIR, name))


def make_pod(phase="Running", statuses=None, conditions=None, name="app-1"):
    status = {"phase": phase}
    if statuses is not None:
        status["containerStatuses"] = statuses
    if conditions is not None:
        status["conditions"] = conditions
    return {"metadata": {"name": name, "namespace": "default"}, "status": status}


def running(name="app", restarts=0, ready=True, last_state=None):
    cs = {
        "name": name,
        "ready": ready,
        "restartCount": restarts,
        "state": {"running": {"startedAt": "2024-05-02T10:00:00Z"}},
    }
    if last_state is not None:
        cs["lastState"] = last_state
    return cs


# ----------------------------
# Fixture scenarios
# ----------------------------


def test_crash_loop_backoff():
    result = analyze_pod(fixture("crashloop_pod.json"))

    assert result.status is Status.CRITICAL
    assert result.causes == ["Container 'api' is in CrashLoopBackOff"]
    assert "Container state: Waiting, Reason: CrashLoopBackOff" in result.evidence
    assert "Restart count: 3" in result.evidence
    assert (
        "Check container logs: kubectl logs api-7d9f8b6c5-x2k4q -c api --previous"
        in result.actions
    )
    assert result.restart_count == 3
    assert result.summary.issue_count == 1
    assert result.summary.message.startswith("Pod 'api-7d9f8b6c5-x2k4q' has 1 issue")


def test_healthy_running_pod():
    result = analyze_pod(fixture("healthy_pod.json"))

    assert result.status is Status.HEALTHY
    assert result.phase == "Running"
    assert result.causes == [NO_ISSUES]
    assert result.evidence == ["Pod phase: Running", "All containers appear healthy"]
    assert result.actions == ["No action required - pod appears to be running normally"]
    assert result.summary.issue_count == 0
    assert result.summary.message == "Pod 'web-5c7b9d-abcde' is healthy and running normally."


def test_image_pull_error():
    result = analyze_pod(fixture("imagepull_pod.json"))

    assert result.status is Status.CRITICAL
    assert result.causes == ["Container 'worker' cannot pull image: ErrImagePull"]
    assert "Image: registry.local/worker:missing" in result.evidence


def test_oom_killed_last_state():
    result = analyze_pod(fixture("oom_pod.json"))

    assert result.status is Status.CRITICAL
    assert result.causes == ["Container 'redis' was OOMKilled (Out of Memory)"]
    assert "Exit code: 137" in result.evidence
    assert "Finished at: 2024-05-02T10:19:58Z" in result.evidence


def test_oom_killed_checks_both_states():
    pod = PodSnapshot(
        make_pod(
            statuses=[
                {
                    "name": "app",
                    "restartCount": 1,
                    "state": {"terminated": {"reason": "OOMKilled", "exitCode": 137}},
                    "lastState": {"terminated": {"reason": "OOMKilled", "exitCode": 137}},
                }
            ]
        )
    )
    rule = OOMKilledRule()

    assert rule.matches(pod, {})
    causes = [f.cause for f in rule.explain(pod, {})]
    assert causes == [
        "Container 'app' was OOMKilled (Out of Memory)",
        "Container 'app' is currently OOMKilled",
    ]


# ----------------------------
# Probe heuristics
# ----------------------------


def test_readiness_probe_condition():
    pod = make_pod(
        statuses=[running(ready=False)],
        conditions=[
            {
                "type": "Ready",
                "status": "False",
                "reason": "ReadinessProbeFailed",
                "message": "HTTP probe failed with statuscode: 503",
            }
        ],
    )

    result = analyze_pod(pod)
    assert result.causes == ["Readiness probe is failing"]
    assert "Condition: Ready=False, Reason: ReadinessProbeFailed" in result.evidence
    assert result.status is Status.WARNING


def test_readiness_probe_from_message_only():
    pod = make_pod(
        statuses=[running(ready=False)],
        conditions=[
            {
                "type": "Ready",
                "status": "False",
                "reason": "ContainersNotReady",
                "message": "readiness probe failed: Get \"http://10.244.1.9:8080/healthz\": dial tcp: connection refused",
            }
        ],
    )

    result = analyze_pod(pod)
    assert result.causes == ["Readiness probe is failing"]
    assert "Condition: Ready=False, Reason: ContainersNotReady" in result.evidence


def test_ready_false_without_probe_mention_is_ignored():
    pod = PodSnapshot(
        make_pod(
            conditions=[
                {
                    "type": "Ready",
                    "status": "False",
                    "reason": "ContainersNotReady",
                    "message": "containers with unready status: [app]",
                }
            ]
        )
    )
    assert not ProbeFailureRule().matches(pod, {})


def test_readiness_probe_without_message():
    pod = PodSnapshot(
        make_pod(conditions=[{"type": "Ready", "status": "False", "reason": "ReadinessProbeFailed"}])
    )
    findings = ProbeFailureRule().explain(pod, {})

    assert findings[0].evidence == [
        "Condition: Ready=False, Reason: ReadinessProbeFailed",
        "Message: No message",
    ]


def test_ready_condition_without_reason_is_ignored():
    pod = PodSnapshot(
        make_pod(
            conditions=[
                {"type": "Ready", "status": "False", "message": "readiness probe failed"}
            ]
        )
    )
    assert not ProbeFailureRule().matches(pod, {})


def test_liveness_kill_inferred_from_exit_code():
    pod = make_pod(
        statuses=[
            running(
                restarts=4,
                ready=False,
                last_state={"terminated": {"reason": "Error", "exitCode": 137}},
            )
        ]
    )

    result = analyze_pod(pod)
    assert result.causes == [
        "Container 'app' may be killed by liveness probe (exit code 137)"
    ]
    assert "Last termination exit code: 137 (SIGKILL)" in result.evidence
    assert result.status is Status.WARNING


def test_exit_137_on_ready_container_is_not_a_probe_failure():
    pod = PodSnapshot(
        make_pod(
            statuses=[
                running(
                    restarts=1,
                    ready=True,
                    last_state={"terminated": {"reason": "Error", "exitCode": 137}},
                )
            ]
        )
    )
    assert not ProbeFailureRule().matches(pod, {})


# ----------------------------
# Restarts
# ----------------------------


@pytest.mark.parametrize("restarts, expected", [(4, False), (5, True), (12, True)])
def test_high_restart_threshold(restarts, expected):
    pod = PodSnapshot(make_pod(statuses=[running(restarts=restarts)]))
    assert HighRestartCountRule().matches(pod, {}) is expected


def test_high_restart_count_is_a_warning():
    result = analyze_pod(make_pod(statuses=[running(restarts=7)]))

    assert result.status is Status.WARNING
    assert result.causes == ["Container 'app' has high restart count: 7"]
    assert "Ready status: True" in result.evidence


def test_total_restarts_sums_every_container():
    pod = PodSnapshot(
        make_pod(
            statuses=[
                running(name="a", restarts=2),
                running(name="b", restarts=1),
                {"name": "c", "ready": True},
            ]
        )
    )
    assert total_restarts(pod) == 3


def test_one_finding_per_crashing_container():
    crashing = {
        "ready": False,
        "restartCount": 2,
        "state": {"waiting": {"reason": "CrashLoopBackOff"}},
    }
    pod = PodSnapshot(
        make_pod(statuses=[dict(crashing, name="a"), dict(crashing, name="b")])
    )
    findings = CrashLoopBackOffRule().explain(pod, {})

    assert [f.cause for f in findings] == [
        "Container 'a' is in CrashLoopBackOff",
        "Container 'b' is in CrashLoopBackOff",
    ]
    assert all(f.signal is Signal.CRITICAL for f in findings)
    assert "Message: No message" in findings[0].evidence
