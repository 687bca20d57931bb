"""
KETI Device Resolver

GPU 디바이스 ID로 해당 디바이스를 사용 중인 Pod를 찾는다.
1. CheckpointResolver - kubelet checkpoint 파일 (kubelet 없이도 동작)
2. PodResourcesResolver - kubelet Pod Resources API (실시간)
"""

from .config import ResolverConfig, get_config_summary
from .errors import (
    ResolverError, ConfigurationError, CheckpointIOError, CheckpointFormatError,
    TransportError, DeviceNotFoundError
)
from .checkpoint import CheckpointResolver
from .podresources import PodIdentity, PodResourcesResolver

__all__ = [
    "ResolverConfig",
    "get_config_summary",
    "ResolverError",
    "ConfigurationError",
    "CheckpointIOError",
    "CheckpointFormatError",
    "TransportError",
    "DeviceNotFoundError",
    "CheckpointResolver",
    "PodIdentity",
    "PodResourcesResolver",
]
