"""
Checkpoint Module - kubelet device manager checkpoint 조회

kubelet이 저장하는 kubelet_internal_checkpoint 파일에서
디바이스 ID로 Pod UID를 찾는다.
- 호출마다 파일을 새로 읽음 (캐시 없음)
- 부분 문자열 매칭 (MIG 등 slice ID 지원)
- NUMA 노드 순서대로 탐색 (결정적 순서)
"""

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..config import ResolverConfig
from ..errors import CheckpointFormatError, CheckpointIOError, DeviceNotFoundError

logger = logging.getLogger(__name__)

# NUMA affinity가 없는 디바이스 그룹 키 (kubelet nodeWithoutTopology)
NO_NUMA_AFFINITY = -1

MAX_CHECKSUM = 2 ** 64 - 1
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1

_NUMA_KEY_RE = re.compile(r"[+-]?[0-9]+")

# device ids obtained from the device plugin, per NUMA node id
DevicesPerNUMA = Dict[int, List[str]]


@dataclass
class PodDevicesEntry:
    """Pod/Container 단위 디바이스 할당 기록"""
    pod_uid: str
    container_name: str
    resource_name: str
    device_ids: DevicesPerNUMA = field(default_factory=dict)
    alloc_resp: bytes = b""     # AllocateResponse (opaque)

    def iter_device_ids(self):
        """Yield device ids, NUMA groups in ascending key order"""
        for numa_node in sorted(self.device_ids):
            for device_id in self.device_ids[numa_node]:
                yield device_id


@dataclass
class CheckpointData:
    """Checkpoint 본문"""
    pod_device_entries: List[PodDevicesEntry] = field(default_factory=list)
    registered_devices: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "CheckpointData":
        return cls()


@dataclass
class Checkpoint:
    """Checkpoint 데이터와 checksum"""
    data: CheckpointData
    checksum: int = 0


# =============================================================================
# Parsing
# =============================================================================

def _expect(value, expected_type, what: str):
    """Return value if it has the expected JSON type; null maps to None"""
    if value is None:
        return None
    # bool is a subclass of int in Python, never valid where a number is expected
    if isinstance(value, bool) and expected_type is not bool:
        raise CheckpointFormatError(f"{what}: expected {expected_type.__name__}, got bool")
    if not isinstance(value, expected_type):
        raise CheckpointFormatError(
            f"{what}: expected {expected_type.__name__}, got {type(value).__name__}"
        )
    return value


def _parse_string_list(value, what: str) -> List[str]:
    items = _expect(value, list, what) or []
    for i, item in enumerate(items):
        if not isinstance(item, str):
            raise CheckpointFormatError(f"{what}[{i}]: expected str, got {type(item).__name__}")
    return list(items)


def _parse_numa_key(key: str, what: str) -> int:
    if not _NUMA_KEY_RE.fullmatch(key):
        raise CheckpointFormatError(f"{what}: invalid NUMA node key {key!r}")
    numa_node = int(key)
    if not INT64_MIN <= numa_node <= INT64_MAX:
        raise CheckpointFormatError(f"{what}: NUMA node key {key!r} out of range")
    return numa_node


def _parse_devices_per_numa(value, what: str) -> DevicesPerNUMA:
    # pre-1.20 kubelet stored a flat list without topology
    if isinstance(value, list):
        return {NO_NUMA_AFFINITY: _parse_string_list(value, what)}

    groups = _expect(value, dict, what) or {}
    devices: DevicesPerNUMA = {}
    for key, ids in groups.items():
        numa_node = _parse_numa_key(key, what)
        devices[numa_node] = _parse_string_list(ids, f"{what}[{key}]")
    return devices


def _parse_alloc_resp(value, what: str) -> bytes:
    encoded = _expect(value, str, what)
    if not encoded:
        return b""
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CheckpointFormatError(f"{what}: invalid base64 payload: {e}") from e


def _parse_entry(raw, index: int) -> PodDevicesEntry:
    what = f"PodDeviceEntries[{index}]"
    raw = _expect(raw, dict, what) or {}
    return PodDevicesEntry(
        pod_uid=_expect(raw.get("PodUID"), str, f"{what}.PodUID") or "",
        container_name=_expect(raw.get("ContainerName"), str, f"{what}.ContainerName") or "",
        resource_name=_expect(raw.get("ResourceName"), str, f"{what}.ResourceName") or "",
        device_ids=_parse_devices_per_numa(raw.get("DeviceIDs"), f"{what}.DeviceIDs"),
        alloc_resp=_parse_alloc_resp(raw.get("AllocResp"), f"{what}.AllocResp"),
    )


def parse_checkpoint(blob: Union[bytes, str]) -> Checkpoint:
    """
    Parse kubelet checkpoint JSON

    Args:
        blob: raw file content

    Returns:
        Checkpoint

    Raises:
        CheckpointFormatError: content is not a kubelet checkpoint
    """
    try:
        raw = json.loads(blob)
    except ValueError as e:
        raise CheckpointFormatError(f"checkpoint is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise CheckpointFormatError(f"checkpoint root: expected object, got {type(raw).__name__}")

    checksum = _expect(raw.get("Checksum"), int, "Checksum") or 0
    if not 0 <= checksum <= MAX_CHECKSUM:
        raise CheckpointFormatError(f"Checksum: {checksum} is not an unsigned 64-bit value")

    body = _expect(raw.get("Data"), dict, "Data")
    if body is None:
        return Checkpoint(data=CheckpointData.empty(), checksum=checksum)

    entries = _expect(body.get("PodDeviceEntries"), list, "PodDeviceEntries") or []
    registered = _expect(body.get("RegisteredDevices"), dict, "RegisteredDevices") or {}

    data = CheckpointData(
        pod_device_entries=[_parse_entry(e, i) for i, e in enumerate(entries)],
        registered_devices={
            name: _parse_string_list(ids, f"RegisteredDevices[{name}]")
            for name, ids in registered.items()
        },
    )
    return Checkpoint(data=data, checksum=checksum)


def load_checkpoint(path: str) -> Checkpoint:
    """Read and parse the checkpoint file at path"""
    try:
        with open(path, "rb") as f:
            blob = f.read()
    except OSError as e:
        logger.warning(f"Failed to read checkpoint file {path}: {e}")
        raise CheckpointIOError(path, e.strerror or str(e)) from e

    checkpoint = parse_checkpoint(blob)
    logger.debug(f"Loaded checkpoint {path}: "
                 f"{len(checkpoint.data.pod_device_entries)} entries")
    return checkpoint


# =============================================================================
# Matching
# =============================================================================

def match_entry(data: CheckpointData, device_id: str) -> Optional[PodDevicesEntry]:
    """
    첫 번째로 매칭되는 엔트리 반환

    Stored ids are tested for containment of device_id, so a bare GPU UUID
    matches its sliced form. Entries are scanned in stored order and the
    first hit wins, even if a later entry holds an exact match.
    """
    for entry in data.pod_device_entries:
        for stored_id in entry.iter_device_ids():
            if device_id in stored_id:
                return entry
    return None


class CheckpointResolver:
    """
    Checkpoint 기반 Device -> Pod UID 조회

    kubelet이 살아있지 않아도 마지막으로 기록된 할당 정보를 사용할 수 있다.
    """

    source = "checkpoint"

    def __init__(self, config: Optional[ResolverConfig] = None):
        self.config = config or ResolverConfig()

    def find_entry(self, device_id: str, path: Optional[str] = None) -> PodDevicesEntry:
        """
        Find the allocation entry owning device_id

        The device_id argument is checked before the checkpoint is read, so
        an empty id raises ValueError even when the file is missing.

        Raises:
            ValueError: device_id is empty
            CheckpointIOError, CheckpointFormatError: checkpoint load failure
            DeviceNotFoundError: no entry holds device_id
        """
        if not device_id:
            raise ValueError("device_id must not be empty")

        checkpoint = load_checkpoint(path or self.config.checkpoint_file)
        entry = match_entry(checkpoint.data, device_id)
        if entry is None:
            logger.debug(f"Device {device_id} not found in checkpoint")
            raise DeviceNotFoundError(device_id, self.source)

        logger.info(f"Device {device_id} -> pod {entry.pod_uid} "
                    f"(container={entry.container_name}, resource={entry.resource_name})")
        return entry

    def resolve(self, device_id: str, path: Optional[str] = None) -> str:
        """Return the UID of the pod owning device_id"""
        return self.find_entry(device_id, path).pod_uid


__all__ = [
    "NO_NUMA_AFFINITY",
    "PodDevicesEntry",
    "CheckpointData",
    "Checkpoint",
    "CheckpointResolver",
    "parse_checkpoint",
    "load_checkpoint",
    "match_entry",
]
