"""
Tests for the pod resources resolver.
"""

import os
from concurrent.futures import ThreadPoolExecutor

import grpc
import pytest

from keti_resolver.config import ResolverConfig
from keti_resolver.errors import ConfigurationError, DeviceNotFoundError, TransportError
from keti_resolver.podresources import PodIdentity, PodResourcesResolver, build_device_index
from keti_resolver.podresources import api

from conftest import GPU, make_pod


class TestBuildDeviceIndex:

    def test_sliced_id_indexed_under_prefix(self):
        response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("train", "ml", {"worker": [(GPU, ["GPU-xyz::0"])]}),
        ])
        index = build_device_index(response, GPU)

        expected = PodIdentity(name="train", namespace="ml", container="worker")
        assert index["GPU-xyz::0"] == expected
        assert index["GPU-xyz"] == expected

    def test_prefix_stops_at_first_delimiter(self):
        response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("p", "ns", {"c": [(GPU, ["GPU-a::1::2"])]}),
        ])
        assert set(build_device_index(response, GPU)) == {"GPU-a::1::2", "GPU-a"}

    def test_other_resource_classes_skipped(self):
        response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("nic", "net", {"c": [("example.com/nic", ["GPU-xyz", "eth0"])]}),
            make_pod("gpu", "ml", {"c": [(GPU, ["GPU-abc"])]}),
        ])
        index = build_device_index(response, GPU)
        assert set(index) == {"GPU-abc"}

    def test_every_container_indexed(self):
        response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("p", "ns", {
                "a": [(GPU, ["GPU-1", "GPU-2"])],
                "b": [(GPU, ["GPU-3"]), ("example.com/fpga", ["GPU-4"])],
            }),
        ])
        index = build_device_index(response, GPU)
        assert index["GPU-2"].container == "a"
        assert index["GPU-3"].container == "b"
        assert "GPU-4" not in index

    def test_empty_response(self):
        assert build_device_index(api.ListPodResourcesResponse(), GPU) == {}


class TestPodResourcesResolve:

    def test_resolve_full_and_prefix(self, live_config, fake_lister):
        fake_lister.response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("infer", "default", {"server": [(GPU, ["GPU-xyz::0"])]}),
        ])
        resolver = PodResourcesResolver(live_config)

        full = resolver.resolve("GPU-xyz::0")
        assert full == PodIdentity(name="infer", namespace="default", container="server")
        assert resolver.resolve("GPU-xyz") == full
        assert full.pod_key == "default/infer"

    def test_not_found(self, live_config, fake_lister):
        fake_lister.response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("infer", "default", {"server": [(GPU, ["GPU-1"])]}),
        ])
        with pytest.raises(DeviceNotFoundError) as exc:
            PodResourcesResolver(live_config).resolve("GPU-2")
        assert exc.value.device_id == "GPU-2"

    def test_other_resource_never_matches(self, live_config, fake_lister):
        fake_lister.response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("nic", "net", {"c": [("example.com/nic", ["GPU-xyz"])]}),
        ])
        with pytest.raises(DeviceNotFoundError):
            PodResourcesResolver(live_config).resolve("GPU-xyz")

    def test_exact_lookup_only(self, live_config, fake_lister):
        fake_lister.response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("p", "ns", {"c": [(GPU, ["GPU-10"])]}),
        ])
        with pytest.raises(DeviceNotFoundError):
            PodResourcesResolver(live_config).resolve("GPU-1")

    def test_reflects_new_snapshot(self, live_config, fake_lister):
        resolver = PodResourcesResolver(live_config)
        fake_lister.response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("old", "ns", {"c": [(GPU, ["GPU-1"])]}),
        ])
        assert resolver.resolve("GPU-1").name == "old"

        fake_lister.response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("new", "ns", {"c": [(GPU, ["GPU-1"])]}),
        ])
        assert resolver.resolve("GPU-1").name == "new"
        assert fake_lister.calls == 2

    def test_concurrent_calls_are_independent(self, live_config, fake_lister):
        fake_lister.response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("pod-a", "ns", {"c": [(GPU, ["GPU-a"])]}),
            make_pod("pod-b", "ns", {"c": [(GPU, ["GPU-b::1"])]}),
        ])
        resolver = PodResourcesResolver(live_config)
        queries = ["GPU-a", "GPU-b", "GPU-b::1", "GPU-a"] * 4

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(resolver.resolve, queries))

        expected = {"GPU-a": "pod-a", "GPU-b": "pod-b", "GPU-b::1": "pod-b"}
        assert [r.name for r in results] == [expected[q] for q in queries]

    def test_empty_device_id_rejected(self, live_config):
        with pytest.raises(ValueError):
            PodResourcesResolver(live_config).resolve("")

    def test_non_positive_timeout_rejected(self, live_config):
        with pytest.raises(ValueError):
            PodResourcesResolver(live_config).resolve("GPU-1", timeout=0)

    @pytest.mark.parametrize("timeout", [float("inf"), float("nan")])
    def test_non_finite_timeout_rejected(self, live_config, fake_lister, timeout):
        with pytest.raises(ValueError):
            PodResourcesResolver(live_config).resolve("GPU-1", timeout=timeout)
        assert fake_lister.calls == 0


class TestPodResourcesFailures:

    def test_missing_socket_fails_before_connecting(self, socket_dir, monkeypatch):
        def no_connect(*args, **kwargs):
            raise AssertionError("connection attempted")

        monkeypatch.setattr(grpc, "insecure_channel", no_connect)
        config = ResolverConfig(kubelet_socket=os.path.join(socket_dir, "absent.sock"))

        with pytest.raises(ConfigurationError) as exc:
            PodResourcesResolver(config).resolve("GPU-1")
        assert not isinstance(exc.value, TransportError)
        assert "absent.sock" in str(exc.value)

    def test_connect_timeout_is_transport_error(self, socket_dir):
        # a regular file: the path exists but nothing listens on it
        path = os.path.join(socket_dir, "dead.sock")
        open(path, "w").close()
        config = ResolverConfig(kubelet_socket=path)

        with pytest.raises(TransportError) as exc:
            PodResourcesResolver(config).resolve("GPU-1", timeout=0.5)
        assert exc.value.endpoint == path

    def test_rpc_failure_is_transport_error(self, live_config, fake_lister, kubelet_socket):
        fake_lister.fail_with = grpc.StatusCode.UNAVAILABLE

        with pytest.raises(TransportError) as exc:
            PodResourcesResolver(live_config).resolve("GPU-1")
        assert exc.value.endpoint == kubelet_socket
        assert "UNAVAILABLE" in str(exc.value)
        assert isinstance(exc.value.__cause__, grpc.RpcError)

    def test_list_pod_resources_returns_snapshot(self, live_config, fake_lister):
        fake_lister.response = api.ListPodResourcesResponse(pod_resources=[
            make_pod("p", "ns", {"c": [(GPU, ["GPU-1"])]}),
        ])
        response = PodResourcesResolver(live_config).list_pod_resources()
        assert [p.name for p in response.pod_resources] == ["p"]
