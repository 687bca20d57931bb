"""
Error types for KETI Device Resolver

모든 에러는 ResolverError를 상속
- Checkpoint 경로: CheckpointIOError, CheckpointFormatError
- Pod Resources 경로: ConfigurationError, TransportError
- 공통: DeviceNotFoundError
"""


class ResolverError(Exception):
    """Base class for resolver failures"""


class ConfigurationError(ResolverError):
    """Invalid configuration, or a configured endpoint that does not exist"""


class CheckpointIOError(ResolverError):
    """Checkpoint file could not be read"""

    def __init__(self, path: str, reason: str):
        super().__init__(f"cannot read checkpoint file {path}: {reason}")
        self.path = path


class CheckpointFormatError(ResolverError):
    """Checkpoint content does not match the kubelet checkpoint layout"""


class TransportError(ResolverError):
    """Connection or request failure against the pod resources service"""

    def __init__(self, endpoint: str, message: str):
        super().__init__(f"{message} ({endpoint})")
        self.endpoint = endpoint


class DeviceNotFoundError(ResolverError, LookupError):
    """No workload owns the queried device"""

    def __init__(self, device_id: str, source: str):
        super().__init__(f"deviceID {device_id} not found in {source}")
        self.device_id = device_id
        self.source = source


__all__ = [
    "ResolverError",
    "ConfigurationError",
    "CheckpointIOError",
    "CheckpointFormatError",
    "TransportError",
    "DeviceNotFoundError",
]
