# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Self

import pytest

from attestwire import attestation
from attestwire.attestation import AccumulatorPayload, Attestation, AttestationCodec
from attestwire.messages import AttestationEnvelope, FormatPolicy, MessageData, UnreliableMessage
from attestwire.messages.datamodel import Identifier
from attestwire.messages.exceptions import (
    BadMagicError,
    LengthMismatchError,
    MajorVersionMismatchError,
    MinorVersionTooOldError,
    OverrunError,
    PayloadDecodeError,
    TagMismatchError,
    TruncatedError,
)


@dataclass(frozen=True)
class MerkleRoot:
    digest: bytes

    def serialize(self) -> bytes:
        return self.digest

    @classmethod
    def deserialize(cls, data: bytes, /) -> Self:
        if len(data) != 20:
            raise ValueError(f'A merkle root has 20 bytes, got {len(data)}')
        return cls(data)


ROOT = MerkleRoot(bytes(range(20)))


class TestEnvelopeFunctions:

    def test_empty_payload(self) -> None:
        data = attestation.encode(b'', 17, 28, 294)
        envelope = attestation.decode(data)
        assert envelope.payload == b''
        assert (envelope.ring_buffer_idx, envelope.height, envelope.timestamp) == (17, 28, 294)

    def test_round_trip(self) -> None:
        for payload, ring_buffer_idx, height, timestamp in (
            (b'\x00', 0, 0, 0),
            (bytes(range(256)), 2**64 - 1, 2**64 - 1, 2**63 - 1),
            (b'accumulator', 1, 2, -(2**63)),
            (bytes(2**16 - 1), 5, 6, -1),
        ):
            envelope = attestation.decode(attestation.encode(payload, ring_buffer_idx, height, timestamp))
            assert envelope == AttestationEnvelope(payload=payload, ring_buffer_idx=ring_buffer_idx, height=height, timestamp=timestamp)

    def test_encode_limits(self) -> None:
        with pytest.raises(ValueError, match='Value is too long for opaque bytes'):
            attestation.encode(bytes(2**16), 0, 0, 0)
        with pytest.raises(ValueError, match='Value is out of range'):
            attestation.encode(b'', -1, 0, 0)

    def test_trailing_data(self) -> None:
        data = attestation.encode(b'payload', 1, 2, 3)
        with pytest.raises(LengthMismatchError, match='Found 1 unexpected bytes after the end'):
            attestation.decode(data + b'\x00')
        # the stream reader stops at the end of the envelope
        buffer = BytesIO(data + b'tail')
        assert AttestationEnvelope.from_wire(buffer).payload == b'payload'
        assert buffer.read() == b'tail'

    def test_truncated_payload(self) -> None:
        data = attestation.encode(b'payload', 1, 2, 3)
        with pytest.raises(TruncatedError):
            attestation.decode(data[:15])
        with pytest.raises(OverrunError):
            attestation.decode(data[:15])

    def test_policy(self) -> None:
        data = attestation.encode(b'payload', 1, 2, 3)
        with pytest.raises(MinorVersionTooOldError):
            attestation.decode(data, policy=FormatPolicy(minimum_minor_version=1))
        with pytest.raises(MajorVersionMismatchError):
            attestation.decode(data, policy=FormatPolicy(major_version=2))
        with pytest.raises(LengthMismatchError):
            attestation.decode(data, policy=FormatPolicy(max_payload_size=6))


class TestAttestationCodec:

    def test_protocol(self) -> None:
        assert isinstance(ROOT, AccumulatorPayload)
        assert not isinstance(b'root', AccumulatorPayload)

    def test_round_trip(self) -> None:
        codec = AttestationCodec(MerkleRoot)
        data = codec.encode(ROOT, ring_buffer_idx=3, height=4, timestamp=1700000000)
        assert data == attestation.encode(ROOT.serialize(), 3, 4, 1700000000)
        assert codec.decode(data) == Attestation(accumulator=ROOT, ring_buffer_idx=3, height=4, timestamp=1700000000)

    def test_repr(self) -> None:
        assert repr(AttestationCodec(MerkleRoot)).startswith('AttestationCodec(MerkleRoot, policy=FormatPolicy(')

    def test_payload_errors(self) -> None:
        codec = AttestationCodec(MerkleRoot)
        data = attestation.encode(b'short', 0, 0, 0)
        with pytest.raises(PayloadDecodeError, match='Failed to deserialize the MerkleRoot accumulator') as exc_info:
            codec.decode(data)
        assert isinstance(exc_info.value.__cause__, ValueError)
        assert str(exc_info.value.__cause__) == 'A merkle root has 20 bytes, got 5'

    def test_framing_errors_come_first(self) -> None:
        # a bad frame is reported as such even when the payload is bad as well
        codec = AttestationCodec(MerkleRoot)
        data = attestation.encode(b'short', 0, 0, 0)
        with pytest.raises(BadMagicError):
            codec.decode(b'XACC' + data[4:])
        with pytest.raises(TruncatedError):
            codec.decode(data[:-1])
        with pytest.raises(LengthMismatchError):
            codec.decode(data + b'\x00')

    def test_policy(self) -> None:
        data = AttestationCodec(MerkleRoot).encode(ROOT, ring_buffer_idx=0, height=0, timestamp=0)
        with pytest.raises(LengthMismatchError):
            AttestationCodec(MerkleRoot, policy=FormatPolicy(max_payload_size=19)).decode(data)

    def test_logging(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG, logger='attestwire.attestation')
        codec = AttestationCodec(MerkleRoot)
        with pytest.raises(BadMagicError):
            codec.decode(bytes(40))
        with pytest.raises(PayloadDecodeError):
            codec.decode(attestation.encode(b'short', 0, 0, 0))
        messages = [record.getMessage() for record in caplog.records]
        assert any(message.startswith('Rejected attestation envelope (BadMagicError') for message in messages)
        assert any(message.startswith('Rejected accumulator payload (ValueError') for message in messages)


class TestUnwrap:

    @staticmethod
    def make_record(payload: bytes) -> bytes:
        message = MessageData(
            vaa_version=1,
            consistency_level=1,
            vaa_time=1700000000,
            vaa_signature_account=Identifier(bytes(32)),
            submission_time=1700000001,
            nonce=7,
            sequence=42,
            emitter_chain=26,
            emitter_address=Identifier(32 * b'\x42'),
            payload=payload,
        )
        return UnreliableMessage(message=message).to_wire()

    def test_unwrap(self) -> None:
        codec = AttestationCodec(MerkleRoot)
        envelope = codec.encode(ROOT, ring_buffer_idx=9, height=10, timestamp=11)
        message, result = codec.unwrap(self.make_record(envelope))
        assert message.sequence == 42
        assert message.emitter_address == Identifier(32 * b'\x42')
        assert message.payload == envelope
        assert result == Attestation(accumulator=ROOT, ring_buffer_idx=9, height=10, timestamp=11)

    def test_unwrap_errors(self) -> None:
        codec = AttestationCodec(MerkleRoot)
        envelope = codec.encode(ROOT, ring_buffer_idx=9, height=10, timestamp=11)
        record = self.make_record(envelope)
        with pytest.raises(TagMismatchError):
            codec.unwrap(b'xyz' + record[3:])
        with pytest.raises(TruncatedError):
            codec.unwrap(record[:50])
        # the envelope takes up the whole remainder of the record
        with pytest.raises(LengthMismatchError):
            codec.unwrap(record + b'\x00')
        with pytest.raises(TruncatedError):
            codec.unwrap(record[:-1])
