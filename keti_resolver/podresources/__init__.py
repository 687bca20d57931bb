"""
Pod Resources Module - kubelet Pod Resources API 조회

kubelet의 pod-resources 소켓(gRPC)에 연결하여
현재 디바이스 할당 상태로 Device -> Pod 정보를 찾는다.
- 호출마다 새 연결, 새 인덱스 (공유 상태 없음)
- 설정된 리소스(nvidia.com/gpu 등)의 디바이스만 인덱싱
- MIG 등 slice ID("GPU-xxx::0")는 "GPU-xxx"로도 조회 가능
"""

import math
import os
import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

import grpc

from ..config import ResolverConfig
from ..errors import ConfigurationError, DeviceNotFoundError, TransportError
from . import api

logger = logging.getLogger(__name__)

# "GPU-<uuid>::<slice>" 형태의 slice 구분자
SLICE_DELIMITER = "::"


@dataclass(frozen=True)
class PodIdentity:
    """디바이스를 사용 중인 Pod 정보"""
    name: str
    namespace: str
    container: str

    @property
    def pod_key(self) -> str:
        return f"{self.namespace}/{self.name}"


def build_device_index(response, resource_name: str) -> Dict[str, PodIdentity]:
    """
    Build a device id -> PodIdentity index from a List response

    Only devices of resource_name are indexed; a device plugin can expose
    other resource classes whose ids must never answer an accelerator
    query. Sliced ids are also indexed under their physical device prefix.
    Later entries overwrite earlier ones on key collision.
    """
    index: Dict[str, PodIdentity] = {}
    for pod in response.pod_resources:
        for container in pod.containers:
            for device in container.devices:
                if device.resource_name != resource_name:
                    continue

                identity = PodIdentity(
                    name=pod.name,
                    namespace=pod.namespace,
                    container=container.name,
                )
                for device_id in device.device_ids:
                    if SLICE_DELIMITER in device_id:
                        instance_id = device_id.split(SLICE_DELIMITER, 1)[0]
                        index[instance_id] = identity
                    index[device_id] = identity
    return index


class PodResourcesResolver:
    """
    Pod Resources API 기반 Device -> Pod 조회

    연결 상태: closed -> connecting -> connected -> List -> closed
    채널은 모든 종료 경로에서 닫힌다.
    """

    source = "pod resources"

    def __init__(self, config: Optional[ResolverConfig] = None):
        self.config = config or ResolverConfig()

    @property
    def socket_path(self) -> str:
        return self.config.kubelet_socket

    def _check_socket(self):
        if not os.path.exists(self.socket_path):
            raise ConfigurationError(f"kubelet socket path {self.socket_path} does not exist")

    def _deadline(self, timeout: Optional[float]) -> float:
        if timeout is None:
            timeout = self.config.connection_timeout
        if not math.isfinite(timeout) or timeout <= 0:
            raise ValueError(f"timeout must be a positive finite number, got {timeout}")
        return time.monotonic() + timeout

    @staticmethod
    def _remaining(deadline: float) -> float:
        return max(deadline - time.monotonic(), 0.0)

    @contextmanager
    def _connect(self, deadline: float) -> Iterator[grpc.Channel]:
        """Open a channel to the kubelet socket and wait until it is ready"""
        target = f"unix://{self.socket_path}"
        with grpc.insecure_channel(target) as channel:
            ready = grpc.channel_ready_future(channel)
            try:
                ready.result(timeout=self._remaining(deadline))
            except grpc.FutureTimeoutError:
                ready.cancel()
                logger.warning(f"Timed out connecting to {self.socket_path}")
                raise TransportError(self.socket_path, "failure connecting: timed out") from None
            logger.debug(f"Connected to {target}")
            yield channel

    def list_pod_resources(self, timeout: Optional[float] = None):
        """
        Fetch the current pod resources snapshot

        Args:
            timeout: seconds for connect and List together
                     (default: config.connection_timeout)

        Returns:
            ListPodResourcesResponse

        Raises:
            ConfigurationError: socket path does not exist (no I/O attempted)
            TransportError: connect or List failed
        """
        self._check_socket()
        deadline = self._deadline(timeout)

        with self._connect(deadline) as channel:
            stub = api.PodResourcesListerStub(channel)
            try:
                response = stub.List(
                    api.ListPodResourcesRequest(),
                    timeout=self._remaining(deadline),
                )
            except grpc.RpcError as e:
                logger.warning(f"Pod resources List failed: {e.code()}")
                raise TransportError(
                    self.socket_path,
                    f"failure getting pod resources: {e.code().name} {e.details()}",
                ) from e

        logger.debug(f"Pod resources: {len(response.pod_resources)} pods")
        return response

    def resolve(self, device_id: str, timeout: Optional[float] = None) -> PodIdentity:
        """
        Return the pod currently holding device_id

        Raises:
            ValueError: device_id is empty
            ConfigurationError, TransportError: see list_pod_resources
            DeviceNotFoundError: no container of the configured resource
                                 holds device_id
        """
        if not device_id:
            raise ValueError("device_id must not be empty")

        response = self.list_pod_resources(timeout)
        index = build_device_index(response, self.config.resource_name)

        identity = index.get(device_id)
        if identity is None:
            logger.debug(f"Device {device_id} not found among {len(index)} indexed ids")
            raise DeviceNotFoundError(device_id, self.source)

        logger.info(f"Device {device_id} -> {identity.pod_key} (container={identity.container})")
        return identity


__all__ = [
    "SLICE_DELIMITER",
    "PodIdentity",
    "PodResourcesResolver",
    "build_device_index",
]
