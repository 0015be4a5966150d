"""Pod health categories, using the same heuristics as the cluster web console"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from kubewit.models.resources import Pod

POD_RUNNING = "Running"
POD_NOT_READY = "Not Ready"
POD_WARNING = "Warning"
POD_ERROR = "Error"
POD_PULLING = "Pulling"
POD_PENDING = "Pending"
POD_SUCCEEDED = "Succeeded"
POD_TERMINATING = "Terminating"
POD_UNKNOWN = "Unknown"
POD_FAILED = "Failed"

CONTAINER_TIMEOUT = timedelta(minutes=5)
CONTAINER_CRASH_LOOP = "CrashLoopBackOff"
CONTAINER_CREATING = "ContainerCreating"


def _elapsed(now: datetime, since: Optional[datetime]) -> timedelta:
    if since is None:
        return timedelta(0)
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return now - since


def is_pod_warning(pod: Pod, now: datetime) -> Tuple[bool, bool]:
    """Check a pod for warning conditions

    Returns:
        Tuple of (warning, severe)
    """
    phase = pod.status.phase
    if phase == POD_UNKNOWN:
        return True, False

    if phase == POD_PENDING and _elapsed(now, pod.metadata.creation_timestamp) > CONTAINER_TIMEOUT:
        return True, False

    if phase == POD_RUNNING:
        for status in pod.status.container_statuses:
            state = status.state
            if state.terminated is not None and state.terminated.exit_code != 0:
                # Severe if the pod is being deleted, the container did not stop cleanly
                return True, pod.metadata.deletion_timestamp is not None
            if state.waiting is not None and state.waiting.reason == CONTAINER_CRASH_LOOP:
                return True, True
            if state.running is not None and not status.ready:
                if _elapsed(now, state.running.started_at) > CONTAINER_TIMEOUT:
                    return True, False

    return False, False


def is_pulling_image(pod: Pod) -> bool:
    """A pending pod with a container waiting on ContainerCreating is pulling its image"""
    if pod.status.phase != POD_PENDING:
        return False
    return any(
        status.state.waiting is not None and status.state.waiting.reason == CONTAINER_CREATING
        for status in pod.status.container_statuses
    )


def is_pod_ready(pod: Pod) -> bool:
    ready = sum(1 for status in pod.status.container_statuses if status.ready)
    return ready == len(pod.spec.containers)


def pod_status_key(pod: Pod, now: datetime) -> str:
    if pod.metadata.deletion_timestamp is not None:
        return POD_TERMINATING

    warning, severe = is_pod_warning(pod, now)
    if warning:
        return POD_ERROR if severe else POD_WARNING
    if is_pulling_image(pod):
        return POD_PULLING
    if pod.status.phase == POD_RUNNING and not is_pod_ready(pod):
        return POD_NOT_READY
    return pod.status.phase or POD_UNKNOWN


def classify(pods: Iterable[Pod], now: Optional[datetime] = None) -> Tuple[Dict[str, int], int]:
    """Count pods per health category

    Failed pods are left out of both the tally and the total.

    Args:
        pods: Pods of one deployment
        now: Reference time for the timeout checks, defaults to the current time

    Returns:
        Tuple of (status -> count, total)
    """
    if now is None:
        now = datetime.now(timezone.utc)

    tally: Counter = Counter()
    for pod in pods:
        if pod.status.phase == POD_FAILED:
            continue
        tally[pod_status_key(pod, now)] += 1

    total = sum(tally.values())
    if not tally:
        tally[POD_RUNNING] = 0
    return dict(tally), total


def format_pod_status(tally: Dict[str, int]) -> List[List[str]]:
    """Render a tally as [status, count] string pairs"""
    return [[status, str(count)] for status, count in tally.items()]
