"""
Configuration Module for KETI Device Resolver

환경변수 및 설정 관리
"""

import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..errors import ConfigurationError

# =============================================================================
# Checkpoint 설정
# =============================================================================
DEFAULT_CHECKPOINT_FILE = "/var/lib/kubelet/device-plugins/kubelet_internal_checkpoint"
CHECKPOINT_FILE_ENV = "CHECKPOINT_FILE"

# =============================================================================
# Pod Resources API 설정
# =============================================================================
DEFAULT_KUBELET_SOCKET = "/var/lib/kubelet/pod-resources/kubelet.sock"
KUBELET_SOCKET_ENV = "KUBELET_SOCKET_PATH"

DEFAULT_RESOURCE_NAME = "nvidia.com/gpu"
RESOURCE_NAME_ENV = "KETI_RESOURCE_NAME"

DEFAULT_CONNECTION_TIMEOUT = 10.0  # seconds
CONNECTION_TIMEOUT_ENV = "KETI_CONNECTION_TIMEOUT"

# =============================================================================
# 로깅 설정
# =============================================================================
LOG_LEVEL = os.environ.get('KETI_LOG_LEVEL', 'INFO')


@dataclass(frozen=True)
class ResolverConfig:
    """Resolver 설정값 (생성자에 직접 전달)"""
    checkpoint_file: str = DEFAULT_CHECKPOINT_FILE
    kubelet_socket: str = DEFAULT_KUBELET_SOCKET
    resource_name: str = DEFAULT_RESOURCE_NAME
    connection_timeout: float = DEFAULT_CONNECTION_TIMEOUT

    def __post_init__(self):
        if not self.resource_name:
            raise ConfigurationError("resource name must not be empty")
        if not math.isfinite(self.connection_timeout) or self.connection_timeout <= 0:
            raise ConfigurationError(
                f"connection timeout must be a positive finite number, got {self.connection_timeout}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ResolverConfig":
        """
        Build a config from environment variables

        Empty values fall back to the defaults, matching how the kubelet
        helpers treat an unset variable.
        """
        if environ is None:
            environ = os.environ

        raw_timeout = environ.get(CONNECTION_TIMEOUT_ENV) or str(DEFAULT_CONNECTION_TIMEOUT)
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ConfigurationError(
                f"{CONNECTION_TIMEOUT_ENV} must be a number of seconds, got {raw_timeout!r}"
            ) from None

        return cls(
            checkpoint_file=environ.get(CHECKPOINT_FILE_ENV) or DEFAULT_CHECKPOINT_FILE,
            kubelet_socket=environ.get(KUBELET_SOCKET_ENV) or DEFAULT_KUBELET_SOCKET,
            resource_name=environ.get(RESOURCE_NAME_ENV) or DEFAULT_RESOURCE_NAME,
            connection_timeout=timeout,
        )


def get_config_summary(config: ResolverConfig) -> dict:
    """현재 설정 요약"""
    return {
        "checkpoint_file": config.checkpoint_file,
        "kubelet_socket": config.kubelet_socket,
        "resource_name": config.resource_name,
        "connection_timeout": config.connection_timeout,
    }


__all__ = [
    "ResolverConfig",
    "get_config_summary",
    "DEFAULT_CHECKPOINT_FILE",
    "DEFAULT_KUBELET_SOCKET",
    "DEFAULT_RESOURCE_NAME",
    "DEFAULT_CONNECTION_TIMEOUT",
    "LOG_LEVEL",
]
