# src/cantorx/adapters/wire/schema.py
"""
Protobuf Schema - Wire Messages Built at Import

The compact binary encoding of quotes and responses is protobuf. Message
classes are created from a descriptor assembled here, equivalent to:

    syntax = "proto3";
    package cantorx.v1;

    message Quote {
      string buy_rate = 1; string sell_rate = 2; int32 cantor_id = 3;
      string currency = 4; int64 fetched_at = 5; double change_24h = 6;
    }
    message HistoryPoint { int64 time = 1; double buy_rate = 2; double sell_rate = 3; }
    message HistoryResponse { repeated HistoryPoint points = 1; string currency = 2; }
    message StreamRatesRequest { repeated string currencies = 1; }
    message RateRequest { string currency = 1; }
    message RateListResponse { repeated Quote results = 1; }
    message ReplayRequest { string currency = 1; int64 since = 2; }
    message Cantor {
      int32 id = 1; string name = 2; string display_name = 3; string strategy = 4;
      int32 units = 5; double latitude = 6; double longitude = 7;
    }
    message CantorList { repeated Cantor cantors = 1; }

Files that USE this module:
- cantorx.adapters.wire.codec (conversion between domain objects and messages)

Files that this module USES:
- None (protobuf runtime only)
"""
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "cantorx.v1"
PROTOBUF_MEDIA_TYPE = "application/x-protobuf"

_F = descriptor_pb2.FieldDescriptorProto

_MESSAGES = {
    "Quote": [
        ("buy_rate", 1, _F.TYPE_STRING, False, None),
        ("sell_rate", 2, _F.TYPE_STRING, False, None),
        ("cantor_id", 3, _F.TYPE_INT32, False, None),
        ("currency", 4, _F.TYPE_STRING, False, None),
        ("fetched_at", 5, _F.TYPE_INT64, False, None),
        ("change_24h", 6, _F.TYPE_DOUBLE, False, None),
    ],
    "HistoryPoint": [
        ("time", 1, _F.TYPE_INT64, False, None),
        ("buy_rate", 2, _F.TYPE_DOUBLE, False, None),
        ("sell_rate", 3, _F.TYPE_DOUBLE, False, None),
    ],
    "HistoryResponse": [
        ("points", 1, _F.TYPE_MESSAGE, True, "HistoryPoint"),
        ("currency", 2, _F.TYPE_STRING, False, None),
    ],
    "StreamRatesRequest": [
        ("currencies", 1, _F.TYPE_STRING, True, None),
    ],
    "RateRequest": [
        ("currency", 1, _F.TYPE_STRING, False, None),
    ],
    "RateListResponse": [
        ("results", 1, _F.TYPE_MESSAGE, True, "Quote"),
    ],
    "ReplayRequest": [
        ("currency", 1, _F.TYPE_STRING, False, None),
        ("since", 2, _F.TYPE_INT64, False, None),
    ],
    "Cantor": [
        ("id", 1, _F.TYPE_INT32, False, None),
        ("name", 2, _F.TYPE_STRING, False, None),
        ("display_name", 3, _F.TYPE_STRING, False, None),
        ("strategy", 4, _F.TYPE_STRING, False, None),
        ("units", 5, _F.TYPE_INT32, False, None),
        ("latitude", 6, _F.TYPE_DOUBLE, False, None),
        ("longitude", 7, _F.TYPE_DOUBLE, False, None),
    ],
    "CantorList": [
        ("cantors", 1, _F.TYPE_MESSAGE, True, "Cantor"),
    ],
}


def _file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    fdp = descriptor_pb2.FileDescriptorProto(
        name="cantorx/v1/rates.proto",
        package=PACKAGE,
        syntax="proto3",
    )
    for message_name, fields in _MESSAGES.items():
        message = fdp.message_type.add(name=message_name)
        for name, number, field_type, repeated, type_name in fields:
            field = message.field.add(
                name=name,
                number=number,
                type=field_type,
                label=_F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL,
            )
            if type_name:
                field.type_name = f".{PACKAGE}.{type_name}"
    return fdp


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_file_descriptor().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


QuoteMessage = _message_class("Quote")
HistoryPointMessage = _message_class("HistoryPoint")
HistoryResponseMessage = _message_class("HistoryResponse")
StreamRatesRequestMessage = _message_class("StreamRatesRequest")
RateRequestMessage = _message_class("RateRequest")
RateListResponseMessage = _message_class("RateListResponse")
ReplayRequestMessage = _message_class("ReplayRequest")
CantorMessage = _message_class("Cantor")
CantorListMessage = _message_class("CantorList")
