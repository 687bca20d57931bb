"""
kubelet Pod Resources API (v1)

k8s.io/kubelet/pkg/apis/podresources/v1/api.proto 중 List 호출에 필요한
메시지만 정의한다. protoc 생성 코드 대신 descriptor를 import 시점에 구성.
정의하지 않은 필드(memory, dynamic_resources 등)는 unknown field로 무시된다.
"""

import grpc
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "v1"
SERVICE_NAME = f"{PACKAGE}.PodResourcesLister"
LIST_METHOD = f"/{SERVICE_NAME}/List"

_FILE_NAME = "keti_resolver/podresources/v1/api.proto"

_F = descriptor_pb2.FieldDescriptorProto

# message name -> [(field name, number, type, label, message type)]
_MESSAGES = {
    "ListPodResourcesRequest": [],
    "ListPodResourcesResponse": [
        ("pod_resources", 1, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, "PodResources"),
    ],
    "PodResources": [
        ("name", 1, _F.TYPE_STRING, _F.LABEL_OPTIONAL, None),
        ("namespace", 2, _F.TYPE_STRING, _F.LABEL_OPTIONAL, None),
        ("containers", 3, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, "ContainerResources"),
    ],
    "ContainerResources": [
        ("name", 1, _F.TYPE_STRING, _F.LABEL_OPTIONAL, None),
        ("devices", 2, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, "ContainerDevices"),
        ("cpu_ids", 3, _F.TYPE_INT64, _F.LABEL_REPEATED, None),
    ],
    "ContainerDevices": [
        ("resource_name", 1, _F.TYPE_STRING, _F.LABEL_OPTIONAL, None),
        ("device_ids", 2, _F.TYPE_STRING, _F.LABEL_REPEATED, None),
        ("topology", 3, _F.TYPE_MESSAGE, _F.LABEL_OPTIONAL, "TopologyInfo"),
    ],
    "TopologyInfo": [
        ("nodes", 1, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, "NUMANode"),
    ],
    "NUMANode": [
        ("ID", 1, _F.TYPE_INT64, _F.LABEL_OPTIONAL, None),
    ],
}


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name=_FILE_NAME, package=PACKAGE, syntax="proto3",
    )
    for message_name, fields in _MESSAGES.items():
        message = file_proto.message_type.add(name=message_name)
        for name, number, field_type, label, type_name in fields:
            field = message.field.add(name=name, number=number, type=field_type, label=label)
            if type_name:
                field.type_name = f".{PACKAGE}.{type_name}"

    service = file_proto.service.add(name="PodResourcesLister")
    service.method.add(
        name="List",
        input_type=f".{PACKAGE}.ListPodResourcesRequest",
        output_type=f".{PACKAGE}.ListPodResourcesResponse",
    )
    return file_proto


# Private pool so another "v1" package in the default pool cannot clash
_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file_descriptor().SerializeToString())
_file = _pool.FindFileByName(_FILE_NAME)

ListPodResourcesRequest = message_factory.GetMessageClass(
    _file.message_types_by_name["ListPodResourcesRequest"])
ListPodResourcesResponse = message_factory.GetMessageClass(
    _file.message_types_by_name["ListPodResourcesResponse"])
PodResources = message_factory.GetMessageClass(_file.message_types_by_name["PodResources"])
ContainerResources = message_factory.GetMessageClass(
    _file.message_types_by_name["ContainerResources"])
ContainerDevices = message_factory.GetMessageClass(_file.message_types_by_name["ContainerDevices"])
TopologyInfo = message_factory.GetMessageClass(_file.message_types_by_name["TopologyInfo"])
NUMANode = message_factory.GetMessageClass(_file.message_types_by_name["NUMANode"])


class PodResourcesListerStub:
    """Client stub for v1.PodResourcesLister"""

    def __init__(self, channel: grpc.Channel):
        self.List = channel.unary_unary(
            LIST_METHOD,
            request_serializer=ListPodResourcesRequest.SerializeToString,
            response_deserializer=ListPodResourcesResponse.FromString,
        )


class PodResourcesListerServicer:
    """Server side of v1.PodResourcesLister"""

    def List(self, request, context):
        context.set_code(grpc.StatusCode.UNIMPLEMENTED)
        context.set_details("Method not implemented!")
        raise NotImplementedError("Method not implemented!")


def add_PodResourcesListerServicer_to_server(servicer: PodResourcesListerServicer, server):
    handlers = {
        "List": grpc.unary_unary_rpc_method_handler(
            servicer.List,
            request_deserializer=ListPodResourcesRequest.FromString,
            response_serializer=ListPodResourcesResponse.SerializeToString,
        ),
    }
    server.add_generic_rpc_handlers(
        (grpc.method_handlers_generic_handler(SERVICE_NAME, handlers),)
    )


__all__ = [
    "LIST_METHOD",
    "ListPodResourcesRequest",
    "ListPodResourcesResponse",
    "PodResources",
    "ContainerResources",
    "ContainerDevices",
    "TopologyInfo",
    "NUMANode",
    "PodResourcesListerStub",
    "PodResourcesListerServicer",
    "add_PodResourcesListerServicer_to_server",
]
