# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Protocol, Self, runtime_checkable

from attestwire.messages import DEFAULT_POLICY, AttestationEnvelope, FormatPolicy, MessageData, UnreliableMessage
from attestwire.messages.datamodel import WireData, remaining_length
from attestwire.messages.exceptions import LengthMismatchError, PayloadDecodeError, WireError

__all__ = 'AccumulatorPayload', 'Attestation', 'AttestationCodec', 'encode', 'decode'  # noqa: RUF022


log = logging.getLogger(__name__)


@runtime_checkable
class AccumulatorPayload(Protocol):
    """An accumulator (a Merkle root or proof) that knows its own byte representation"""

    def serialize(self) -> bytes: ...

    @classmethod
    def deserialize(cls, data: bytes, /) -> Self: ...


@dataclass(frozen=True, kw_only=True)
class Attestation[T: AccumulatorPayload]:
    accumulator: T
    ring_buffer_idx: int
    height: int
    timestamp: int


def encode(payload: bytes, ring_buffer_idx: int, height: int, timestamp: int) -> bytes:
    """Encode an attestation envelope around already serialized accumulator bytes"""
    return AttestationEnvelope(payload=bytes(payload), ring_buffer_idx=ring_buffer_idx, height=height, timestamp=timestamp).to_wire()


def decode(data: WireData, *, policy: FormatPolicy = DEFAULT_POLICY) -> AttestationEnvelope:
    """
    Decode an attestation envelope that takes up the whole buffer.

    The accumulator payload is returned as bytes, without interpreting it.
    Bytes left over after the envelope are an error. To read an envelope
    from a stream that holds more data, use AttestationEnvelope.from_wire.
    """
    buffer = data if isinstance(data, BytesIO) else BytesIO(data)
    envelope = AttestationEnvelope.from_wire(buffer, policy=policy)
    if (leftover := remaining_length(buffer)) > 0:
        raise LengthMismatchError(f'Found {leftover} unexpected bytes after the end of the attestation envelope')
    return envelope


class AttestationCodec[T: AccumulatorPayload]:
    """
    Encode and decode attestations that carry accumulators of a given type.

    The codec only knows where the accumulator bytes start and end. Turning
    them into an accumulator is left to accumulator_type.deserialize.
    """

    def __init__(self, accumulator_type: type[T], /, *, policy: FormatPolicy = DEFAULT_POLICY) -> None:
        self.accumulator_type = accumulator_type
        self.policy = policy

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({self.accumulator_type.__qualname__}, policy={self.policy!r})'

    def encode(self, accumulator: T, *, ring_buffer_idx: int, height: int, timestamp: int) -> bytes:
        return encode(accumulator.serialize(), ring_buffer_idx, height, timestamp)

    def decode(self, data: WireData) -> Attestation[T]:
        try:
            envelope = decode(data, policy=self.policy)
        except WireError as exc:
            log.debug('Rejected attestation envelope (%s: %s)', exc.__class__.__name__, exc)
            raise
        return Attestation(
            accumulator=self._deserialize(envelope.payload),
            ring_buffer_idx=envelope.ring_buffer_idx,
            height=envelope.height,
            timestamp=envelope.timestamp,
        )

    def unwrap(self, data: WireData) -> tuple[MessageData, Attestation[T]]:
        """Decode a host record and the attestation it carries"""
        try:
            record = UnreliableMessage.from_wire(data)
        except WireError as exc:
            log.debug('Rejected host record (%s: %s)', exc.__class__.__name__, exc)
            raise
        return record.message, self.decode(record.message.payload)

    def _deserialize(self, payload: bytes) -> T:
        try:
            return self.accumulator_type.deserialize(payload)
        except Exception as exc:
            log.debug('Rejected accumulator payload (%s: %s)', exc.__class__.__name__, exc)
            raise PayloadDecodeError(f'Failed to deserialize the {self.accumulator_type.__qualname__} accumulator: {exc}') from exc
