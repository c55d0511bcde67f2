import xml.etree.ElementTree as ET
from typing import Set

from resx_sync.errors import ResxParseError


def parse_resx_keys(content: bytes, source_name: str = '<bytes>') -> Set[str]:
    """
    Extract the entry names from .resx content.

    Args:
        content (bytes): The raw file content, with or without a UTF-8 BOM.
        source_name (str): Name used in error messages.

    Returns:
        Set[str]: The ``name`` attribute of every ``<data>`` element under the root.

    Raises:
        ResxParseError: If the content is not well-formed XML, the root element is
            missing, or a ``<data>`` element has no name.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as parse_exc:
        raise ResxParseError(f"Malformed resource file '{source_name}': {parse_exc}") from parse_exc

    keys = set()
    for data_element in root.findall('data'):
        name = data_element.get('name')
        if not name:
            raise ResxParseError(f"Resource file '{source_name}' contains a <data> element without a name.")
        keys.add(name)
    return keys


def read_resx_keys(file_path: str) -> Set[str]:
    """
    Read a .resx file from disk and return its key set.

    Args:
        file_path (str): The path to the .resx file.

    Returns:
        Set[str]: The entry names found in the file.
    """
    try:
        with open(file_path, 'rb') as file:
            content = file.read()
    except OSError as read_exc:
        raise ResxParseError(f"Could not read resource file '{file_path}': {read_exc}") from read_exc
    return parse_resx_keys(content, file_path)
