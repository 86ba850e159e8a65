# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later


__all__ = (  # noqa: RUF022
    'WireError',

    'FramingError',
    'BadMagicError',
    'TagMismatchError',
    'UnexpectedPayloadKindError',
    'TruncatedError',

    'LengthMismatchError',
    'OverrunError',

    'VersionError',
    'MajorVersionMismatchError',
    'MinorVersionTooOldError',

    'PayloadDecodeError',

    'HexDecodeError',
)


class WireError(ValueError):
    """Base class for errors raised while decoding wire data."""


# Structural errors

class FramingError(WireError):
    """The wire data is structurally malformed."""


class BadMagicError(FramingError):
    """The data does not start with the expected magic value."""


class TagMismatchError(FramingError):
    """A literal tag on the wire does not match the expected tag."""


class UnexpectedPayloadKindError(FramingError):
    """The payload discriminant is not the one the decoder expects."""


class TruncatedError(FramingError):
    """The data ended before a field could be read in full."""


# Length errors

class LengthMismatchError(WireError):
    """A declared length is out of bounds or does not match the available data."""


class OverrunError(TruncatedError, LengthMismatchError):
    """A declared length runs past the end of the available data."""


# Version errors

class VersionError(WireError):
    """The format version is not supported by this decoder."""


class MajorVersionMismatchError(VersionError):
    pass


class MinorVersionTooOldError(VersionError):
    pass


# Payload errors

class PayloadDecodeError(WireError):
    """The accumulator payload could not be deserialized (see __cause__)."""


# Text representation errors

class HexDecodeError(ValueError):
    """The text is not the hex representation of an identifier."""
