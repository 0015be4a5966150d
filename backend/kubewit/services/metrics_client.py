"""Hawkular metrics client for pod CPU, memory and network usage"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import httpx
from httpx import HTTPStatusError, RequestError
from pydantic import BaseModel, TypeAdapter, ValidationError

from kubewit.core.errors import MalformedResponseError, TransportError
from kubewit.models.deployments import TimedNumberTuple
from kubewit.models.resources import Pod

logger = logging.getLogger(__name__)

# Tags used to select the gauges of a set of pods
DESCRIPTOR_TAG = "descriptor_name"
TYPE_TAG = "type"
TYPE_POD = "pod"
POD_ID_TAG = "pod_id"

CPU_DESC = "cpu/usage_rate"
MEMORY_DESC = "memory/usage"
NETWORK_SENT_DESC = "network/tx_rate"
NETWORK_RECV_DESC = "network/rx_rate"

BUCKET_DURATION = timedelta(minutes=1)

# CPU usage is reported in millicores
MILLICORE_TO_CORE_SCALE = 0.001
NO_SCALE = 1.0


class Bucket(BaseModel):
    """Aggregated gauge values over one interval, times in Unix milliseconds"""

    start: int
    end: int
    # Empty buckets carry no statistics
    avg: float = 0.0
    min: Optional[float] = None
    max: Optional[float] = None
    samples: int = 0
    empty: bool = False


_buckets_adapter = TypeAdapter(List[Bucket])


def to_unix_millis(t: datetime) -> int:
    return int(t.timestamp() * 1000)


def bucket_to_tuple(bucket: Bucket, scale: float) -> TimedNumberTuple:
    # The bucket start is the sample time, as in the cluster console charts
    return TimedNumberTuple(time=float(bucket.start), value=bucket.avg * scale)


def trim_buckets(buckets: List[Bucket], end_time: datetime, limit: int) -> List[Bucket]:
    """Trim a time-ordered bucket list to the requested window

    The last bucket may extend past the end time when the window is not a
    multiple of the bucket duration; such a partial bucket is dropped. When
    limit is non-negative only the newest ``limit`` buckets are kept.
    """
    if not buckets:
        return buckets
    if buckets[-1].end > to_unix_millis(end_time):
        buckets = buckets[:-1]
    if limit >= 0 and len(buckets) > limit:
        buckets = buckets[len(buckets) - limit:]
    return buckets


class MetricsClient:
    """Reads usage metrics of pods from the cluster's Hawkular metrics service"""

    def __init__(
        self,
        metrics_url: str,
        token: str,
        timeout: Optional[float] = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        verify: bool = True,
    ):
        """Initialize the metrics client

        Args:
            metrics_url: Base URL of the metrics service
            token: Bearer token accepted by the metrics service
            timeout: Request timeout in seconds, None for no timeout
            transport: Non-default httpx transport, used by tests
            verify: Verify the metrics service's TLS certificate
        """
        self.metrics_url = metrics_url.rstrip("/")
        self.token = token
        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            verify=verify,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def get_cpu_metrics(
        self, pods: List[Pod], namespace: str, start_time: datetime
    ) -> Optional[TimedNumberTuple]:
        return self._get_bucket_average(pods, namespace, CPU_DESC, start_time, MILLICORE_TO_CORE_SCALE)

    def get_cpu_metrics_range(
        self,
        pods: List[Pod],
        namespace: str,
        start_time: datetime,
        end_time: datetime,
        limit: int = -1,
    ) -> List[TimedNumberTuple]:
        buckets = self._get_buckets_in_range(pods, namespace, CPU_DESC, start_time, end_time, limit)
        return [bucket_to_tuple(b, MILLICORE_TO_CORE_SCALE) for b in buckets]

    def get_memory_metrics(
        self, pods: List[Pod], namespace: str, start_time: datetime
    ) -> Optional[TimedNumberTuple]:
        return self._get_bucket_average(pods, namespace, MEMORY_DESC, start_time, NO_SCALE)

    def get_memory_metrics_range(
        self,
        pods: List[Pod],
        namespace: str,
        start_time: datetime,
        end_time: datetime,
        limit: int = -1,
    ) -> List[TimedNumberTuple]:
        buckets = self._get_buckets_in_range(pods, namespace, MEMORY_DESC, start_time, end_time, limit)
        return [bucket_to_tuple(b, NO_SCALE) for b in buckets]

    def get_network_sent_metrics(
        self, pods: List[Pod], namespace: str, start_time: datetime
    ) -> Optional[TimedNumberTuple]:
        return self._get_bucket_average(pods, namespace, NETWORK_SENT_DESC, start_time, NO_SCALE)

    def get_network_sent_metrics_range(
        self,
        pods: List[Pod],
        namespace: str,
        start_time: datetime,
        end_time: datetime,
        limit: int = -1,
    ) -> List[TimedNumberTuple]:
        buckets = self._get_buckets_in_range(
            pods, namespace, NETWORK_SENT_DESC, start_time, end_time, limit
        )
        return [bucket_to_tuple(b, NO_SCALE) for b in buckets]

    def get_network_recv_metrics(
        self, pods: List[Pod], namespace: str, start_time: datetime
    ) -> Optional[TimedNumberTuple]:
        return self._get_bucket_average(pods, namespace, NETWORK_RECV_DESC, start_time, NO_SCALE)

    def get_network_recv_metrics_range(
        self,
        pods: List[Pod],
        namespace: str,
        start_time: datetime,
        end_time: datetime,
        limit: int = -1,
    ) -> List[TimedNumberTuple]:
        buckets = self._get_buckets_in_range(
            pods, namespace, NETWORK_RECV_DESC, start_time, end_time, limit
        )
        return [bucket_to_tuple(b, NO_SCALE) for b in buckets]

    def _get_bucket_average(
        self, pods: List[Pod], namespace: str, desc: str, start_time: datetime, scale: float
    ) -> Optional[TimedNumberTuple]:
        """Average of the single bucket covering one minute after start_time"""
        end_time = start_time + BUCKET_DURATION
        buckets = self._read_buckets(pods, namespace, desc, start_time, end_time, buckets=1)
        if not buckets:
            return None
        return bucket_to_tuple(buckets[0], scale)

    def _get_buckets_in_range(
        self,
        pods: List[Pod],
        namespace: str,
        desc: str,
        start_time: datetime,
        end_time: datetime,
        limit: int,
    ) -> List[Bucket]:
        # Buckets are returned ordered by start time
        buckets = self._read_buckets(
            pods,
            namespace,
            desc,
            start_time,
            end_time,
            bucket_duration=BUCKET_DURATION,
        )
        return trim_buckets(buckets, end_time, limit)

    def _read_buckets(
        self,
        pods: List[Pod],
        namespace: str,
        desc: str,
        start_time: datetime,
        end_time: datetime,
        buckets: Optional[int] = None,
        bucket_duration: Optional[timedelta] = None,
    ) -> List[Bucket]:
        """Query stacked gauge statistics for a set of pods

        Args:
            pods: Pods whose series are summed
            namespace: Namespace of the pods, used as the Hawkular tenant
            desc: Metric descriptor, e.g. cpu/usage_rate
            start_time: Start of the window
            end_time: End of the window
            buckets: Number of buckets to split the window into
            bucket_duration: Duration of each bucket

        Returns:
            Buckets ordered by start time, empty if there are no pods or no data

        Raises:
            TransportError: For HTTP and network errors
            MalformedResponseError: If the response is not a bucket list
        """
        if not pods:
            return []

        pod_ids = "|".join(pod.metadata.uid or "" for pod in pods)
        tags = f"{DESCRIPTOR_TAG}:{desc},{TYPE_TAG}:{TYPE_POD},{POD_ID_TAG}:{pod_ids}"
        params = {
            "tags": tags,
            "start": str(to_unix_millis(start_time)),
            "end": str(to_unix_millis(end_time)),
            # Sum the series of each pod
            "stacked": "true",
        }
        if buckets is not None:
            params["buckets"] = str(buckets)
        if bucket_duration is not None:
            params["bucketDuration"] = f"{int(bucket_duration.total_seconds() * 1000)}ms"

        url = f"{self.metrics_url}/hawkular/metrics/gauges/stats"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Hawkular-Tenant": namespace,
            "Accept": "application/json",
        }

        try:
            response = self.client.get(url, params=params, headers=headers)
            response.raise_for_status()
        except HTTPStatusError as e:
            logger.error(f"Metrics API error: {e.response.status_code} - {e.response.text}")
            raise TransportError("could not read metrics", url, e.response.status_code) from e
        except RequestError as e:
            logger.error(f"Metrics connection error: {e}")
            raise TransportError(f"could not read metrics ({e})", url) from e

        # No content means no data for the window
        if response.status_code == 204 or not response.content:
            return []
        try:
            return _buckets_adapter.validate_json(response.content)
        except ValidationError as e:
            logger.error(f"Malformed metrics response from {url}: {e}")
            raise MalformedResponseError(f"malformed metrics buckets: {e}") from e
