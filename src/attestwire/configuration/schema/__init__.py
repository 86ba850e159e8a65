# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from functools import cached_property
from pathlib import Path
from typing import Protocol

from lxml import etree

__all__ = 'RelaxNGValidator', 'Validator'


type ETreeElement = etree._Element  # noqa: SLF001


class Validator(Protocol):
    def validate(self, element: ETreeElement) -> bool: ...

    def assert_valid(self, element: ETreeElement) -> None: ...


class RelaxNGValidator:
    schema_directory = Path(__file__).parent

    def __init__(self, schema_file: str) -> None:
        self.schema_path = self.schema_directory / schema_file

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({self.schema_path.name!r})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RelaxNGValidator):
            return self.schema_path == other.schema_path
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.schema_path)

    @cached_property
    def schema(self) -> etree.RelaxNG:
        return etree.RelaxNG(file=str(self.schema_path))

    def validate(self, element: ETreeElement) -> bool:
        return self.schema.validate(element)

    def assert_valid(self, element: ETreeElement) -> None:
        # raises etree.DocumentInvalid carrying the error of this validation
        self.schema.assertValid(element)
