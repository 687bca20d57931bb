"""
Shared fixtures: a fake kubelet pod resources server on a unix socket.
"""

import os
import shutil
import tempfile
from concurrent import futures

import grpc
import pytest

from keti_resolver.config import ResolverConfig
from keti_resolver.podresources import api

GPU = "nvidia.com/gpu"


class FakePodResourcesLister(api.PodResourcesListerServicer):
    """Serves whatever response the test assigns"""

    def __init__(self):
        self.response = api.ListPodResourcesResponse()
        self.fail_with = None
        self.calls = 0

    def List(self, request, context):
        self.calls += 1
        if self.fail_with is not None:
            context.abort(self.fail_with, "injected failure")
        return self.response


def make_pod(name, namespace, containers):
    """containers: {container name: [(resource name, [device ids])]}"""
    return api.PodResources(
        name=name,
        namespace=namespace,
        containers=[
            api.ContainerResources(
                name=container_name,
                devices=[
                    api.ContainerDevices(resource_name=resource, device_ids=ids)
                    for resource, ids in devices
                ],
            )
            for container_name, devices in containers.items()
        ],
    )


@pytest.fixture
def socket_dir():
    # unix socket paths are limited to ~108 bytes, keep it short
    path = tempfile.mkdtemp(prefix="kr-", dir="/tmp")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def fake_lister():
    return FakePodResourcesLister()


@pytest.fixture
def kubelet_socket(socket_dir, fake_lister):
    socket_path = os.path.join(socket_dir, "kubelet.sock")
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=4))
    api.add_PodResourcesListerServicer_to_server(fake_lister, server)
    server.add_insecure_port(f"unix://{socket_path}")
    server.start()
    yield socket_path
    server.stop(grace=None)


@pytest.fixture
def live_config(kubelet_socket):
    return ResolverConfig(kubelet_socket=kubelet_socket, resource_name=GPU, connection_timeout=5)
