# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

# The versioning contract of the attestation envelope:
#
#   - the major version changes when the layout changes in an incompatible
#     way and must match the decoder's major version exactly.
#   - the minor version changes when fields are appended to the header. A
#     decoder accepts any minor version at or above the minimum it supports,
#     and skips the header fields it doesn't know about using header_size.
#
# When appending to the header, FORMAT_HEADER_SIZE must be updated to count
# all the header bytes that follow the header_size field.

from dataclasses import dataclass

__all__ = (  # noqa: RUF022
    'ATTESTATION_MAGIC',
    'FORMAT_MAJOR_VERSION',
    'FORMAT_MINOR_VERSION',
    'FORMAT_HEADER_SIZE',
    'MESSAGE_TAG',

    'FormatPolicy',
    'DEFAULT_POLICY',
)


ATTESTATION_MAGIC = b'PACC'
FORMAT_MAJOR_VERSION = 3
FORMAT_MINOR_VERSION = 0
FORMAT_HEADER_SIZE = 1  # payload_id

MESSAGE_TAG = b'msu'

MAX_UINT16 = 2**16 - 1


@dataclass(frozen=True, kw_only=True, slots=True)
class FormatPolicy:
    """What a decoder accepts, and how much it is willing to read for declared lengths"""

    major_version: int = FORMAT_MAJOR_VERSION
    minimum_minor_version: int = FORMAT_MINOR_VERSION
    max_header_size: int = 1024
    max_payload_size: int = MAX_UINT16

    def __post_init__(self) -> None:
        for name in ('major_version', 'minimum_minor_version'):
            value = getattr(self, name)
            if not 0 <= value <= MAX_UINT16:
                raise ValueError(f'The {name} must be between 0 and {MAX_UINT16}: {value!r}')
        if not FORMAT_HEADER_SIZE <= self.max_header_size <= MAX_UINT16:
            raise ValueError(f'The max_header_size must be between {FORMAT_HEADER_SIZE} and {MAX_UINT16}: {self.max_header_size!r}')
        if not 0 <= self.max_payload_size <= MAX_UINT16:
            raise ValueError(f'The max_payload_size must be between 0 and {MAX_UINT16}: {self.max_payload_size!r}')


DEFAULT_POLICY = FormatPolicy()
