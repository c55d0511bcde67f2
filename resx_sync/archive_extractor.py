"""
Sequential decoder for downloaded translation bundles.

The bundle is read by walking local file headers one after another instead of
trusting the central directory, so bundles with inconsistent trailing metadata
still yield their entries.
"""
import logging
import struct
import zlib
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

LOCAL_FILE_HEADER_SIGNATURE = 0x04034b50
LOCAL_FILE_HEADER_MAGIC = b'PK\x03\x04'
DATA_DESCRIPTOR_SIGNATURE = b'PK\x07\x08'

_LOCAL_HEADER = struct.Struct('<IHHHHHIIIHH')

METHOD_STORED = 0
METHOD_DEFLATED = 8

FLAG_DATA_DESCRIPTOR = 0x0008
FLAG_UTF8_NAME = 0x0800

BundleExtractor = Callable[[bytes], Dict[str, bytes]]


def _decode_name(raw_name: bytes, flags: int) -> str:
    if flags & FLAG_UTF8_NAME:
        return raw_name.decode('utf-8', errors='replace')
    try:
        return raw_name.decode('utf-8')
    except UnicodeDecodeError:
        return raw_name.decode('cp437')


def _skip_data_descriptor(bundle: bytes, offset: int) -> int:
    if bundle[offset:offset + 4] == DATA_DESCRIPTOR_SIGNATURE:
        return offset + 16
    return offset + 12


def _read_streamed_entry(bundle: bytes, data_start: int, method: int) -> Tuple[Optional[bytes], int]:
    """
    Read an entry whose sizes are only recorded in a trailing data descriptor.

    Returns the payload (None if it cannot be decoded) and the offset of the
    next local header, or -1 when the entry is corrupt and its end cannot be
    located.
    """
    if method == METHOD_DEFLATED:
        decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
        try:
            payload = decompressor.decompress(bundle[data_start:])
        except zlib.error:
            return None, -1
        if not decompressor.eof:
            return None, -1
        data_end = len(bundle) - len(decompressor.unused_data)
        return payload, _skip_data_descriptor(bundle, data_end)

    descriptor_at = bundle.find(DATA_DESCRIPTOR_SIGNATURE, data_start)
    if descriptor_at == -1:
        return None, -1
    if method != METHOD_STORED:
        logger.warning("Skipping streamed entry: unsupported compression method %d", method)
        return None, descriptor_at + 16
    return bundle[data_start:descriptor_at], descriptor_at + 16


def extract_bundle(bundle: bytes) -> Dict[str, bytes]:
    """
    Decode a bundle archive into ``{entry name: payload}``.

    Stored and deflated entries are supported. Directory markers (names ending
    in ``/``) are skipped. An entry that fails to decompress, or uses an
    unsupported method, is logged and dropped while the walk continues.

    Args:
        bundle: The raw archive bytes.

    Returns:
        The decoded entries in archive order.
    """
    entries: Dict[str, bytes] = {}
    offset = 0

    while offset + _LOCAL_HEADER.size <= len(bundle):
        (signature, _version, flags, method, _mtime, _mdate, _crc,
         compressed_size, _uncompressed_size, name_length, extra_length) = _LOCAL_HEADER.unpack_from(bundle, offset)

        if signature != LOCAL_FILE_HEADER_SIGNATURE:
            break

        name_start = offset + _LOCAL_HEADER.size
        name = _decode_name(bundle[name_start:name_start + name_length], flags)
        data_start = name_start + name_length + extra_length

        if flags & FLAG_DATA_DESCRIPTOR and compressed_size == 0:
            payload, next_offset = _read_streamed_entry(bundle, data_start, method)
            if next_offset == -1:
                next_offset = bundle.find(LOCAL_FILE_HEADER_MAGIC, data_start)
                if next_offset == -1:
                    logger.warning("Could not decode streamed entry '%s'; no further entries follow", name)
                    break
                logger.warning("Could not decode streamed entry '%s'; skipping to the next entry", name)
                offset = next_offset
                continue
            if payload is not None and not name.endswith('/'):
                entries[name] = payload
            offset = next_offset
            continue

        data_end = data_start + compressed_size
        if data_end > len(bundle):
            logger.warning("Entry '%s' is truncated; stopping extraction", name)
            break
        compressed = bundle[data_start:data_end]
        offset = data_end
        if flags & FLAG_DATA_DESCRIPTOR:
            offset = _skip_data_descriptor(bundle, offset)

        if name.endswith('/'):
            continue

        if method == METHOD_STORED:
            entries[name] = compressed
        elif method == METHOD_DEFLATED:
            try:
                entries[name] = zlib.decompress(compressed, -zlib.MAX_WBITS)
            except zlib.error as zlib_exc:
                logger.warning("Failed to decompress %s: %s", name, zlib_exc)
        else:
            logger.warning("Skipping %s: unsupported compression method %d", name, method)

    return entries


def extract_resource_entries(
        bundle: bytes,
        extension: str,
        extractor: BundleExtractor = extract_bundle
) -> Dict[str, bytes]:
    """Extract a bundle and keep only the entries ending with ``extension``."""
    return {name: payload for name, payload in extractor(bundle).items() if name.endswith(extension)}
