# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Declarative wire structures.

A structure lists its fields as Element descriptors. The fields are encoded
one after the other, in the order in which they are declared, with no
padding and no field tags:

    class Trailer(AnnotatedStructure):
        height: Element[int] = Element(int, adapter=UInt64Adapter)
        timestamp: Element[int] = Element(int, adapter=Int64Adapter)

Values are checked when they are assigned, so an instance that exists can
always be encoded. Decoding either produces a fully populated instance or
raises; a partially decoded instance never escapes from_wire.
"""

from enum import Enum
from inspect import Parameter, Signature
from io import BytesIO
from typing import Any, ClassVar, Self, dataclass_transform, overload

from .datamodel import DataWireAdapter, DataWireProtocol, WireData
from .exceptions import WireError

__all__ = 'Structure', 'AnnotatedStructure', 'Element'  # noqa: RUF022


def _display(value: object) -> str:
    # Show enum members and types the way they are written in code.
    match value:
        case Enum():
            return f'{value.__class__.__qualname__}.{value.name}'
        case type():
            return value.__qualname__
        case _:
            return repr(value)


class Structure:  # noqa: PLW1641
    """A sequence of elements encoded back to back in declaration order"""

    __signature__: ClassVar[Signature] = Signature()

    _fields_: ClassVar[dict[str, 'Element[Any]']] = {}

    def __init_subclass__(cls, **kw: object) -> None:
        super().__init_subclass__(**kw)
        # inherited fields come first, followed by the ones defined on this class
        cls._fields_ = cls._fields_ | {name: value for name, value in vars(cls).items() if isinstance(value, Element)}
        cls.__signature__ = Signature(parameters=[element.parameter for element in cls._fields_.values()])

    def __new__(cls, **kw: object) -> Self:
        if unexpected := kw.keys() - cls._fields_.keys():
            raise TypeError(f'Got an unexpected keyword argument {min(unexpected)!r}')
        if missing := [name for name, element in cls._fields_.items() if element.required and name not in kw]:
            raise TypeError(f'Missing a required keyword argument {missing[0]!r}')
        return super().__new__(cls)

    def __init__(self, **kw: object) -> None:
        for name, element in self._fields_.items():
            setattr(self, name, kw[name] if name in kw else element.default)

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({', '.join(f'{name}={_display(getattr(self, name))}' for name in self._fields_)})'

    def __eq__(self, other: object) -> bool:
        if type(other) is type(self):
            return all(getattr(self, name) == getattr(other, name) for name in self._fields_)
        return NotImplemented

    @classmethod
    def _blank(cls) -> Self:
        # An instance with no fields set, to be filled in by a decoder.
        return object.__new__(cls)

    @classmethod
    def from_wire(cls, buffer: WireData) -> Self:
        if not isinstance(buffer, BytesIO):
            buffer = BytesIO(buffer)
        instance = cls._blank()
        for element in cls._fields_.values():
            element.from_wire(instance, buffer)
        return instance

    def to_wire(self) -> bytes:
        return b''.join(element.to_wire(self) for element in self._fields_.values())

    def wire_length(self) -> int:
        return sum(element.wire_length(self) for element in self._fields_.values())


class _ProtocolAdapter[T: DataWireProtocol]:
    # Lets an element treat a type that encodes itself like any other adapter.
    # Such types check their values on construction, so validate() has nothing to do.

    _abstract_ = False

    def __init__(self, element_type: type[T]) -> None:
        self.type = element_type

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({self.type.__qualname__})'

    def from_wire(self, buffer: WireData) -> T:
        return self.type.from_wire(buffer)

    def to_wire(self, value: T, /) -> bytes:
        return value.to_wire()

    def wire_length(self, value: T, /) -> int:
        return value.wire_length()

    def validate(self, value: T, /) -> T:
        return value


class Element[T]:
    """
    A structure field holding a value of the given type.

    The wire encoding comes from the adapter. If no adapter is given, the
    type must implement the DataWireProtocol and it encodes itself.
    """

    name: str | None
    type: type[T]
    default: T
    adapter: DataWireAdapter[T]

    @overload
    def __init__(self, element_type: type[T], /, *, default: T = ...) -> None: ...

    @overload
    def __init__(self, element_type: type[T], /, *, default: T = ..., adapter: type[DataWireAdapter[T]]) -> None: ...

    def __init__(self, element_type: type[T], /, *, default: T = NotImplemented, adapter: type[DataWireAdapter[T]] | None = None) -> None:
        if adapter is None:
            if not issubclass(element_type, DataWireProtocol):
                raise TypeError('Either the element type must implement the DataWireProtocol or an adapter must be provided')
            adapter = _ProtocolAdapter(element_type)
        elif adapter._abstract_:
            raise TypeError(f'Cannot use abstract adapter {adapter.__qualname__!r} (use a concrete subclass that defines its size)')
        self.name = None
        self.type = element_type
        self.default = default
        self.adapter = adapter

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({_display(self.type)}, default={self.default!r}, adapter={_display(self.adapter)})'

    def __set_name__(self, owner: type[Structure], name: str) -> None:
        if self.name is not None and name != self.name:
            raise TypeError(f'Cannot assign the same {self.__class__.__qualname__!r} to two different names: {self.name!r} and {name!r}')
        self.name = name

    @property
    def required(self) -> bool:
        return self.default is NotImplemented

    @property
    def parameter(self) -> Parameter:
        assert self.name is not None  # noqa: S101 (used by type checkers)
        if self.required:
            return Parameter(self.name, Parameter.KEYWORD_ONLY, annotation=self.type)
        return Parameter(self.name, Parameter.KEYWORD_ONLY, annotation=self.type, default=self.default)

    @overload
    def __get__(self, instance: None, owner: type[Structure]) -> Self: ...

    @overload
    def __get__(self, instance: Structure, owner: type[Structure] | None = None) -> T: ...

    def __get__(self, instance: Structure | None, owner: type[Structure] | None = None) -> Self | T:
        if instance is None:
            return self
        try:
            return instance.__dict__[self.name]
        except KeyError as exc:
            raise AttributeError(f'Attribute {self.name!r} of object {instance.__class__.__qualname__!r} is not set') from exc

    def __set__(self, instance: Structure, value: T) -> None:
        if not isinstance(value, self.type):
            raise TypeError(f'The value for the {self.name!r} field should be of type {self.type.__qualname__!r}')
        instance.__dict__[self.name] = self.adapter.validate(value)

    def __delete__(self, instance: Structure) -> None:
        raise AttributeError(f'Attribute {self.name!r} of {instance.__class__.__qualname__!r} object cannot be deleted')

    def from_wire(self, instance: Structure, buffer: WireData) -> None:
        try:
            instance.__dict__[self.name] = self.adapter.from_wire(buffer)
        except WireError as exc:
            # keep the error class, so callers can still tell what went wrong
            raise exc.__class__(f'Failed to read the {instance.__class__.__qualname__}.{self.name} element from wire: {exc}') from exc

    def to_wire(self, instance: Structure) -> bytes:
        return self.adapter.to_wire(self.__get__(instance))

    def wire_length(self, instance: Structure) -> int:
        return self.adapter.wire_length(self.__get__(instance))


@dataclass_transform(kw_only_default=True, field_specifiers=(Element,))
class AnnotatedStructure(Structure):
    """A Structure whose fields are also visible to type checkers as keyword arguments"""
