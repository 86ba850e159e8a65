# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Loading the attestation format policy from XML.

A format policy document looks like this (all elements are optional and
default to the values of the current format revision):

    <attestation-format xmlns="urn:attestwire:params:xml:ns:attestation-format">
      <major-version>3</major-version>
      <minimum-minor-version>0</minimum-minor-version>
      <max-header-size>1024</max-header-size>
      <max-payload-size>65535</max-payload-size>
    </attestation-format>
"""

import logging
from os import PathLike
from typing import Final

from lxml import etree

from attestwire.messages import FormatPolicy

from .schema import RelaxNGValidator

__all__ = 'ConfigurationError', 'FORMAT_NAMESPACE', 'policy_from_xml', 'policy_from_string', 'policy_from_file'  # noqa: RUF022


log = logging.getLogger(__name__)


type ETreeElement = etree._Element  # noqa: SLF001


FORMAT_NAMESPACE: Final = 'urn:attestwire:params:xml:ns:attestation-format'

validator = RelaxNGValidator('attestation-format.rng')

# XML element name -> FormatPolicy field name
_policy_elements: Final = {
    'major-version': 'major_version',
    'minimum-minor-version': 'minimum_minor_version',
    'max-header-size': 'max_header_size',
    'max-payload-size': 'max_payload_size',
}


class ConfigurationError(ValueError):
    """The format policy document is malformed or invalid."""


def policy_from_xml(element: ETreeElement) -> FormatPolicy:
    try:
        validator.assert_valid(element)
    except etree.DocumentInvalid as exc:
        raise ConfigurationError(f'Invalid attestation format policy: {exc}') from exc
    settings = {}
    for name, field_name in _policy_elements.items():
        child = element.find(f'{{{FORMAT_NAMESPACE}}}{name}')
        if child is not None:
            settings[field_name] = int(child.text)
    try:
        policy = FormatPolicy(**settings)
    except ValueError as exc:
        raise ConfigurationError(f'Invalid attestation format policy: {exc}') from exc
    log.debug('Loaded %r', policy)
    return policy


def policy_from_string(document: str | bytes) -> FormatPolicy:
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        element = etree.fromstring(document.encode() if isinstance(document, str) else document, parser)
    except etree.XMLSyntaxError as exc:
        raise ConfigurationError(f'Cannot parse the attestation format policy: {exc}') from exc
    return policy_from_xml(element)


def policy_from_file(path: str | PathLike[str]) -> FormatPolicy:
    with open(path, 'rb') as file:
        return policy_from_string(file.read())
