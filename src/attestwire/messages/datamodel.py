# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import enum
from binascii import a2b_hex as hexdecode
from collections.abc import Buffer, Iterable
from io import BytesIO
from typing import ClassVar, Protocol, Self, SupportsIndex, runtime_checkable

from .exceptions import FramingError, HexDecodeError, LengthMismatchError, OverrunError, TagMismatchError, TruncatedError

__all__ = (  # noqa: RUF022
    # Protocols and types

    'WireData',
    'DataWireProtocol',
    'DataWireAdapter',

    # Buffer helpers

    'read_exact',
    'remaining_length',

    # Adapters

    'IntegerAdapter',

    'Int64Adapter',

    'UInt8Adapter',
    'UInt16Adapter',
    'UInt32Adapter',
    'UInt64Adapter',

    'OpaqueAdapter',
    'Opaque16Adapter',
    'RemainderAdapter',

    # Abstract types

    'Enum',
    'LiteralBytes',
    'FixedSize',

    # Concrete types

    'PayloadID',
    'Identifier',
)


type WireData = bytes | bytearray | memoryview | BytesIO


# Protocols

@runtime_checkable
class DataWireProtocol(Protocol):
    """The wire protocol for types that encode themselves"""

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self: ...

    def to_wire(self) -> bytes: ...

    def wire_length(self) -> int: ...


@runtime_checkable
class DataWireAdapter[T](Protocol):
    """Wire protocol adapter for values of type T that do not encode themselves (int, bytes)"""

    _abstract_: ClassVar[bool] = True

    @staticmethod
    def from_wire(buffer: WireData) -> T: ...

    @staticmethod
    def to_wire(value: T, /) -> bytes: ...

    @staticmethod
    def wire_length(value: T, /) -> int: ...

    @staticmethod
    def validate(value: T, /) -> T: ...


# Buffer helpers
#
# Every decoder reads through these two functions. A BytesIO buffer is a
# stream that is advanced by what is read from it, while any other buffer
# is read from its start and left alone.

def remaining_length(buffer: WireData) -> int:
    """Return how many bytes are left to read from the buffer"""
    if isinstance(buffer, BytesIO):
        return buffer.getbuffer().nbytes - buffer.tell()
    return len(buffer)


def read_exact(buffer: WireData, size: int, description: str) -> bytes:
    """Read exactly size bytes from the buffer or raise TruncatedError"""
    data = buffer.read(size) if isinstance(buffer, BytesIO) else bytes(buffer[:size])
    if len(data) < size:
        raise TruncatedError(f'Insufficient data in buffer to extract {description} (need {size} bytes, got {len(data)})')
    return data


# Adapters

class IntegerAdapter:
    """Adapter for a big-endian integer with a fixed number of bits"""

    _abstract_: ClassVar[bool] = True
    _bits_: ClassVar[int] = NotImplemented
    _size_: ClassVar[int] = NotImplemented
    _signed_: ClassVar[bool] = False
    _range_: ClassVar[range] = range(0)

    def __init_subclass__(cls, *, bits: int = NotImplemented, signed: bool = False, **kw: object) -> None:
        super().__init_subclass__(**kw)
        if bits is not NotImplemented:
            cls._bits_ = bits
            cls._size_ = bits // 8
            cls._signed_ = signed
            cls._range_ = range(-2**(bits - 1), 2**(bits - 1)) if signed else range(2**bits)
            cls._abstract_ = False

    @classmethod
    def describe(cls) -> str:
        return f'a {cls._bits_}-bit integer' if cls._signed_ else f'an unsigned {cls._bits_}-bit integer'

    @classmethod
    def from_wire(cls, buffer: WireData) -> int:
        return int.from_bytes(read_exact(buffer, cls._size_, cls.describe()), byteorder='big', signed=cls._signed_)

    @classmethod
    def to_wire(cls, value: int, /) -> bytes:
        return value.to_bytes(cls._size_, byteorder='big', signed=cls._signed_)

    @classmethod
    def wire_length(cls, _: int, /) -> int:
        return cls._size_

    @classmethod
    def validate(cls, value: int, /) -> int:
        if value not in cls._range_:
            raise ValueError(f'Value is out of range for {cls.describe()}: {value!r}')
        return value


class Int64Adapter(IntegerAdapter, bits=64, signed=True):
    pass


class UInt8Adapter(IntegerAdapter, bits=8):
    pass


class UInt16Adapter(IntegerAdapter, bits=16):
    pass


class UInt32Adapter(IntegerAdapter, bits=32):
    pass


class UInt64Adapter(IntegerAdapter, bits=64):
    pass


class OpaqueAdapter:
    """Adapter for a bytes buffer prefixed with its length, which is encoded by the length adapter"""

    _abstract_: ClassVar[bool] = True
    _length_: ClassVar[type[IntegerAdapter]] = IntegerAdapter
    _maxsize_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, length: type[IntegerAdapter] = NotImplemented, **kw: object) -> None:
        super().__init_subclass__(**kw)
        if length is not NotImplemented:
            cls._length_ = length
            cls._maxsize_ = length._range_.stop - 1
            cls._abstract_ = False

    @classmethod
    def from_wire(cls, buffer: WireData, *, limit: int | None = None) -> bytes:
        """
        Read the length prefixed bytes from the buffer.

        The declared length is checked against the limit (which cannot go
        above what the length prefix can express) and against the data left
        in the buffer before anything past the prefix is read.
        """
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        limit = cls._maxsize_ if limit is None else min(limit, cls._maxsize_)
        data_length = int.from_bytes(read_exact(buffer, cls._length_._size_, 'the opaque bytes length'), byteorder='big')
        if data_length > limit:
            raise LengthMismatchError(f'Data length is too big for opaque bytes ({data_length} > {limit})')
        if data_length > (available := remaining_length(buffer)):
            raise OverrunError(f'Declared opaque bytes length runs past the end of the buffer ({data_length} > {available})')
        return buffer.read(data_length)

    @classmethod
    def to_wire(cls, value: bytes, /) -> bytes:
        return cls._length_.to_wire(len(value)) + value

    @classmethod
    def wire_length(cls, value: bytes, /) -> int:
        return cls._length_._size_ + len(value)

    @classmethod
    def validate(cls, value: bytes, /) -> bytes:
        if len(value) > cls._maxsize_:
            raise ValueError(f'Value is too long for opaque bytes (max length is {cls._maxsize_}, value has {len(value)} bytes)')
        return bytes(value)


class Opaque16Adapter(OpaqueAdapter, length=UInt16Adapter):
    pass


class RemainderAdapter:
    """Adapter for bytes without a length prefix that take up the rest of the data"""

    _abstract_: ClassVar[bool] = False

    @staticmethod
    def from_wire(buffer: WireData) -> bytes:
        return buffer.read() if isinstance(buffer, BytesIO) else bytes(buffer)

    @staticmethod
    def to_wire(value: bytes, /) -> bytes:
        return value

    @staticmethod
    def wire_length(value: bytes, /) -> int:
        return len(value)

    @staticmethod
    def validate(value: bytes, /) -> bytes:
        return bytes(value)


# Enumeration types

class Enum(enum.IntEnum):
    _size_: ClassVar[int]

    def __init_subclass__(cls, *, size: int = 1, **kw: object) -> None:
        cls._size_ = size
        super().__init_subclass__(**kw)

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        value = int.from_bytes(read_exact(buffer, cls._size_, repr(cls.__qualname__)), byteorder='big')
        try:
            return cls(value)
        except ValueError as exc:
            raise FramingError(f'{value} is not a valid {cls.__qualname__}') from exc

    def to_wire(self) -> bytes:
        return self.to_bytes(self._size_, byteorder='big')

    def wire_length(self) -> int:
        return self._size_


class PayloadID(Enum):
    PriceAttestation = 1
    PriceBatchAttestation = 2
    AccumulationAttestation = 3


# Byte strings

class LiteralBytes(bytes):
    """A constant tag. Decoding fails with TagMismatchError if the wire holds anything else."""

    _literal_: ClassVar[Self | None] = None

    def __init_subclass__(cls, *, value: bytes, **kw: object) -> None:
        super().__init_subclass__(**kw)
        cls._literal_ = super().__new__(cls, value)

    def __new__(cls) -> Self:
        if cls._literal_ is None:
            raise TypeError(f'Cannot instantiate abstract literal bytes type {cls.__qualname__!r} that does not define its value')
        return cls._literal_

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}()'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        literal = cls()
        data = read_exact(buffer, len(literal), repr(cls.__qualname__))
        if data != literal:
            raise TagMismatchError(f'Tag mismatch for {cls.__qualname__!r} (expected {bytes(literal)!r}, got {data!r})')
        return literal

    def to_wire(self) -> bytes:
        return bytes(self)

    def wire_length(self) -> int:
        return len(self)


class FixedSize(bytes):
    """A bytes buffer that always has the same size"""

    _size_: ClassVar[int] = NotImplemented

    def __init_subclass__(cls, *, size: int, **kw: object) -> None:
        super().__init_subclass__(**kw)
        cls._size_ = size

    def __new__(cls, value: Buffer | Iterable[SupportsIndex], /) -> Self:
        if cls._size_ is NotImplemented:
            raise TypeError(f'Cannot instantiate fixed size bytes type {cls.__qualname__!r} that does not define its size')
        instance = super().__new__(cls, value)
        if len(instance) != cls._size_:
            raise ValueError(f'{cls.__qualname__!r} objects must have {cls._size_} bytes')
        return instance

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({super().__repr__()})'

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        return cls(read_exact(buffer, cls._size_, repr(cls.__qualname__)))

    def to_wire(self) -> bytes:
        return bytes(self)

    def wire_length(self) -> int:
        return len(self)


# IDs

class Identifier(FixedSize, size=32):
    """
    An opaque 32 byte value used for keys and addresses.

    Comparison and hashing work on the raw bytes, so identifiers sort
    byte-wise and can be used as mapping keys. The text form is lowercase
    hex, shown with a 0x prefix by str() and repr().
    """

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}(0x{self.to_hex()})'

    def __str__(self) -> str:
        return f'0x{self.to_hex()}'

    @classmethod
    def from_hex(cls, text: str | bytes) -> Self:
        try:
            data = hexdecode(text)
        except (ValueError, TypeError) as exc:
            raise HexDecodeError(f'Invalid hex representation for {cls.__qualname__!r}: {exc}') from exc
        if len(data) != cls._size_:
            raise HexDecodeError(f'The hex representation of {cls.__qualname__!r} must decode to {cls._size_} bytes (got {len(data)})')
        return cls(data)

    def to_hex(self) -> str:
        return self.hex()

    def to_bytes(self) -> bytes:
        return bytes(self)
