"""Codec for the ``meta`` entry: a protobuf message carrying the export version.

The message is declared at import time from a descriptor rather than a
generated ``_pb2`` module::

    syntax = "proto2";
    message PackageMetadata { required int32 version = 1; }
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError, EncodeError

from ..exceptions import PackageMetaError


def _build_message_class() -> type:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="apkg_srs/package_metadata.proto",
        package="apkg_srs",
        syntax="proto2",
    )
    message = file_proto.message_type.add(name="PackageMetadata")
    message.field.add(
        name="version",
        number=1,
        type=descriptor_pb2.FieldDescriptorProto.TYPE_INT32,
        label=descriptor_pb2.FieldDescriptorProto.LABEL_REQUIRED,
    )

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return message_factory.GetMessageClass(
        pool.FindMessageTypeByName("apkg_srs.PackageMetadata")
    )


PackageMetadata = _build_message_class()


def parse_meta(data: bytes) -> int:
    """Decode ``data`` and return its version.

    Raises:
        PackageMetaError: If the bytes are not a valid message or the
            required ``version`` field is absent.
    """
    message = PackageMetadata()
    try:
        message.ParseFromString(data)
    except DecodeError as e:
        raise PackageMetaError(
            f"The package version information ('meta' file) is unreadable: {e}",
            suggestion="Please re-export the deck from Anki.",
        ) from e
    if not message.IsInitialized():
        raise PackageMetaError(
            "The package version information ('meta' file) is unreadable: "
            "the version field is missing",
            suggestion="Please re-export the deck from Anki.",
        )
    return int(message.version)


def write_meta(version: int) -> bytes:
    """Encode ``version`` as a ``meta`` entry."""
    message = PackageMetadata(version=version)
    try:
        return message.SerializeToString()
    except EncodeError as e:
        raise PackageMetaError(f"Could not encode package version {version}: {e}") from e
