# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Attestation message structure

   Price attestations travel from the producing chain to other chains as
   opaque payloads of bridge messages. The messages are encoded using binary
   fields and all integers are represented in network byte order, so that
   the encoding does not depend on the byte order of the producer or the
   consumer.

   Two structures are stacked, as shown below:

     +-------------------------+
     |       Message Tag       |  \
     +-------------------------+   |
     |     Message Metadata    |   |  UnreliableMessage (host record)
     +-------------------------+   |
     |  Attestation Envelope   |  /
     +-------------------------+

   Unreliable Message:  The record stored by the host. It starts with a
      constant 3 byte tag followed by the transport metadata (MessageData).
      The payload has no length prefix and takes the rest of the record,
      as the host already tracks the size of the record.

   Attestation Envelope:  A versioned frame that carries the accumulator
      payload together with the provenance of the attestation (the ring
      buffer slot, the height and the timestamp). The accumulator payload
      is opaque at this level; its contents are interpreted by the
      accumulator implementation.

"""

from io import BytesIO
from typing import ClassVar, Self

from .datamodel import (
    Identifier,
    Int64Adapter,
    LiteralBytes,
    Opaque16Adapter,
    PayloadID,
    RemainderAdapter,
    UInt8Adapter,
    UInt16Adapter,
    UInt32Adapter,
    UInt64Adapter,
    WireData,
    read_exact,
    remaining_length,
)
from .elements import AnnotatedStructure, Element
from .exceptions import BadMagicError, LengthMismatchError, MajorVersionMismatchError, MinorVersionTooOldError, OverrunError, UnexpectedPayloadKindError
from .version import ATTESTATION_MAGIC, DEFAULT_POLICY, FORMAT_HEADER_SIZE, FORMAT_MAJOR_VERSION, FORMAT_MINOR_VERSION, MESSAGE_TAG, FormatPolicy

__all__ = (  # noqa: RUF022
    # Format constants and policy
    'ATTESTATION_MAGIC',
    'FORMAT_MAJOR_VERSION',
    'FORMAT_MINOR_VERSION',
    'FORMAT_HEADER_SIZE',
    'MESSAGE_TAG',
    'FormatPolicy',
    'DEFAULT_POLICY',

    # Attestation elements
    'AttestationEnvelope',

    # Host record elements
    'MessageTag',
    'MessageData',
    'UnreliableMessage',
)


# Attestation elements

class AttestationEnvelope(AnnotatedStructure):
    """
    Attestation envelope structure:

        uint8              magic[4]
        uint16             major_version
        uint16             minor_version
        uint16             header_size
        PayloadID          payload_id
        uint8              header_extension[header_size - 1]
        uint16             payload_length
        uint8              payload[payload_length]
        uint64             ring_buffer_idx
        uint64             height
        int64              timestamp

    The header consists of all the fields from payload_id up to the end of
    the header extension and it is read as a single unit of header_size
    bytes. Newer minor versions may append fields to the header extension;
    they are skipped when decoding.
    """

    _payload_id_: ClassVar[PayloadID] = PayloadID.AccumulationAttestation

    payload: Element[bytes] = Element(bytes, adapter=Opaque16Adapter)
    ring_buffer_idx: Element[int] = Element(int, adapter=UInt64Adapter)
    height: Element[int] = Element(int, adapter=UInt64Adapter)
    timestamp: Element[int] = Element(int, adapter=Int64Adapter)

    @classmethod
    def from_wire(cls, buffer: WireData, *, policy: FormatPolicy = DEFAULT_POLICY) -> Self:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)

        magic = read_exact(buffer, len(ATTESTATION_MAGIC), 'the magic')
        if magic != ATTESTATION_MAGIC:
            raise BadMagicError(f'Invalid magic {magic.hex()}, expected {ATTESTATION_MAGIC.hex()}')

        major_version = UInt16Adapter.from_wire(buffer)
        if major_version != policy.major_version:
            raise MajorVersionMismatchError(f'Unsupported format major version {major_version}, expected {policy.major_version}')

        minor_version = UInt16Adapter.from_wire(buffer)
        if minor_version < policy.minimum_minor_version:
            raise MinorVersionTooOldError(f'Unsupported format minor version {minor_version}, expected {policy.minimum_minor_version} or more')

        header_size = UInt16Adapter.from_wire(buffer)
        if header_size < FORMAT_HEADER_SIZE:
            raise LengthMismatchError(f'The header size {header_size} is too small to hold the payload id')
        if header_size > policy.max_header_size:
            raise LengthMismatchError(f'The header size {header_size} exceeds the limit of {policy.max_header_size} bytes')
        if header_size > remaining_length(buffer):
            raise OverrunError(f'The header size {header_size} runs past the end of the buffer')
        header = read_exact(buffer, header_size, 'the header')

        # Only the known header fields are read, the rest of the header is ignored.
        payload_id = UInt8Adapter.from_wire(header)
        if payload_id != cls._payload_id_:
            raise UnexpectedPayloadKindError(f'Invalid payload id {payload_id}, expected {cls._payload_id_.value}')

        instance = cls._blank()
        instance.__dict__['payload'] = Opaque16Adapter.from_wire(buffer, limit=policy.max_payload_size)
        for name in ('ring_buffer_idx', 'height', 'timestamp'):
            cls._fields_[name].from_wire(instance, buffer)
        return instance

    def to_wire(self) -> bytes:
        header = self._payload_id_.to_wire()
        return b''.join((
            ATTESTATION_MAGIC,
            UInt16Adapter.to_wire(FORMAT_MAJOR_VERSION),
            UInt16Adapter.to_wire(FORMAT_MINOR_VERSION),
            UInt16Adapter.to_wire(len(header)),
            header,
            super().to_wire(),
        ))

    def wire_length(self) -> int:
        return len(ATTESTATION_MAGIC) + 3 * UInt16Adapter._size_ + FORMAT_HEADER_SIZE + super().wire_length()


# Host record elements

class MessageTag(LiteralBytes, value=MESSAGE_TAG):
    pass


class MessageData(AnnotatedStructure):
    vaa_version: Element[int] = Element(int, adapter=UInt8Adapter)
    consistency_level: Element[int] = Element(int, adapter=UInt8Adapter)
    vaa_time: Element[int] = Element(int, adapter=UInt32Adapter)  # when the message was submitted for signing
    vaa_signature_account: Element[Identifier] = Element(Identifier)  # where the signatures are stored
    submission_time: Element[int] = Element(int, adapter=UInt32Adapter)  # when the message was created
    nonce: Element[int] = Element(int, adapter=UInt32Adapter)
    sequence: Element[int] = Element(int, adapter=UInt64Adapter)
    emitter_chain: Element[int] = Element(int, adapter=UInt16Adapter)
    emitter_address: Element[Identifier] = Element(Identifier)
    payload: Element[bytes] = Element(bytes, adapter=RemainderAdapter)  # must be the last element


class UnreliableMessage(AnnotatedStructure):
    """
    The record a host stores for a posted message: the message tag followed
    by the message data. Attributes of the message data can be read, set and
    deleted directly on the record, and they always refer to the message.
    """

    tag: Element[MessageTag] = Element(MessageTag, default=MessageTag())
    message: Element[MessageData] = Element(MessageData)

    def __getattr__(self, name: str) -> object:
        # only called for names that are not found on the record itself
        try:
            message = self.__dict__['message']
        except KeyError:
            raise AttributeError(f'{self.__class__.__qualname__!r} object has no attribute {name!r}') from None
        return getattr(message, name)

    def __setattr__(self, name: str, value: object) -> None:
        if name in MessageData._fields_:
            setattr(self.message, name, value)
        else:
            super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        if name in MessageData._fields_:
            delattr(self.message, name)
        else:
            super().__delattr__(name)
