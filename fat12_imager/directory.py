#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
FAT12 Root Directory Operations

This module provides the root directory layer used by the image builder and extractor:
- Building 32-byte 8.3 directory entries from host file metadata.
- Laying entries out sequentially in the fixed root directory region.
- Iterating and parsing root directory entries from a sector store.

It also defines the exception types shared by the package.
"""

import struct
import logging
from typing import Iterator, List, Sequence, Tuple

from .fat_utils import (
    SECTOR_SIZE, ROOT_START_SECTOR, ROOT_DIR_SECTORS, ROOT_ENTRIES, DIR_ENTRY_SIZE,
    DIR_SHORT_NAME_LEN, DIR_ATTR_OFFSET, DIR_CRT_TIME_OFFSET, DIR_CRT_DATE_OFFSET,
    DIR_LAST_ACCESS_DATE_OFFSET, DIR_LAST_MOD_TIME_OFFSET, DIR_LAST_MOD_DATE_OFFSET,
    DIR_FIRST_CLUSTER_OFFSET, DIR_FILE_SIZE_OFFSET, ATTR_ARCHIVE, ATTR_DIRECTORY,
    ATTR_VOLUME_LABEL, ENTRY_END_MARKER, ENTRY_DELETED_MARKER,
    encode_83_name, format_83_name, mtime_to_fat, decode_fat_datetime
)

logger = logging.getLogger(__name__)


class FAT12Error(Exception):
    """Base exception for FAT12 image operations"""
    pass


class FAT12CorruptionError(FAT12Error):
    """Raised when on-disk structures are inconsistent (looping or short cluster chains)"""
    pass


class ImageTooLargeError(FAT12Error):
    """Raised when the requested content cannot be addressed by the fixed FAT12 layout"""
    pass


def build_directory_entry(filename: str, start_cluster: int, size: int, mtime: float) -> bytes:
    """
    Build a 32-byte short (8.3) directory entry.

    The host modification time is written to the creation, last access and
    last modified fields alike.

    Args:
        filename: Host filename; split and padded to 8.3.
        start_cluster: First cluster of the file's data (0 for empty files).
        size: File size in bytes.
        mtime: Host modification timestamp (seconds since the epoch).

    Returns:
        The packed entry.
    """
    dos_time, dos_date = mtime_to_fat(mtime)

    entry = bytearray(DIR_ENTRY_SIZE)
    entry[0:DIR_SHORT_NAME_LEN] = encode_83_name(filename)
    entry[DIR_ATTR_OFFSET] = ATTR_ARCHIVE
    entry[DIR_CRT_TIME_OFFSET:DIR_CRT_TIME_OFFSET+2] = struct.pack('<H', dos_time)
    entry[DIR_CRT_DATE_OFFSET:DIR_CRT_DATE_OFFSET+2] = struct.pack('<H', dos_date)
    entry[DIR_LAST_ACCESS_DATE_OFFSET:DIR_LAST_ACCESS_DATE_OFFSET+2] = struct.pack('<H', dos_date)
    entry[DIR_LAST_MOD_TIME_OFFSET:DIR_LAST_MOD_TIME_OFFSET+2] = struct.pack('<H', dos_time)
    entry[DIR_LAST_MOD_DATE_OFFSET:DIR_LAST_MOD_DATE_OFFSET+2] = struct.pack('<H', dos_date)
    entry[DIR_FIRST_CLUSTER_OFFSET:DIR_FIRST_CLUSTER_OFFSET+2] = struct.pack('<H', start_cluster)
    entry[DIR_FILE_SIZE_OFFSET:DIR_FILE_SIZE_OFFSET+4] = struct.pack('<I', size)
    return bytes(entry)


def build_root_directory(allocations: Sequence) -> List[bytes]:
    """
    Lay out directory entries for each allocation in order.

    Args:
        allocations: Allocation records whose ``file`` carries name, size and mtime.

    Returns:
        The ROOT_DIR_SECTORS sectors of the root directory region.

    Raises:
        ImageTooLargeError: If there are more files than root directory slots.
    """
    if len(allocations) > ROOT_ENTRIES:
        raise ImageTooLargeError(f"{len(allocations)} files exceed the {ROOT_ENTRIES} root directory entries")

    root = bytearray(ROOT_DIR_SECTORS * SECTOR_SIZE)
    seen = set()
    for index, alloc in enumerate(allocations):
        f = alloc.file
        entry = build_directory_entry(f.name, alloc.start_cluster, f.size, f.mtime)
        short_name = entry[0:DIR_SHORT_NAME_LEN]
        if short_name in seen:
            logger.warning(f"'{f.name}' maps to an 8.3 name already in use: {short_name.decode('ascii')!r}")
        seen.add(short_name)

        offset = index * DIR_ENTRY_SIZE
        root[offset:offset + DIR_ENTRY_SIZE] = entry

    return [bytes(root[i * SECTOR_SIZE:(i + 1) * SECTOR_SIZE]) for i in range(ROOT_DIR_SECTORS)]


def iter_root_entries(image) -> Iterator[Tuple[int, bytes]]:
    """
    Iterate over all 32-byte slots of the root directory.

    Args:
        image: Anything with ``get_sector(n)``.

    Yields:
        A tuple of (int, bytes): the slot index and its raw 32-byte data.
    """
    entries_per_sector = SECTOR_SIZE // DIR_ENTRY_SIZE
    for i in range(ROOT_DIR_SECTORS):
        sector = image.get_sector(ROOT_START_SECTOR + i)
        for j in range(entries_per_sector):
            offset = j * DIR_ENTRY_SIZE
            yield i * entries_per_sector + j, sector[offset:offset + DIR_ENTRY_SIZE]


def parse_directory_entry(index: int, entry_data: bytes) -> dict:
    """
    Parse a raw short directory entry into a dictionary.

    Returns:
        Dictionary with the reconstructed 8.3 name, raw base/extension,
        attributes, start cluster, size and timestamp fields.
    """
    base = entry_data[0:8].decode('ascii', errors='replace')
    ext = entry_data[8:11].decode('ascii', errors='replace')

    creation_time = struct.unpack('<H', entry_data[DIR_CRT_TIME_OFFSET:DIR_CRT_TIME_OFFSET+2])[0]
    creation_date = struct.unpack('<H', entry_data[DIR_CRT_DATE_OFFSET:DIR_CRT_DATE_OFFSET+2])[0]
    last_accessed_date = struct.unpack('<H', entry_data[DIR_LAST_ACCESS_DATE_OFFSET:DIR_LAST_ACCESS_DATE_OFFSET+2])[0]
    last_modified_time = struct.unpack('<H', entry_data[DIR_LAST_MOD_TIME_OFFSET:DIR_LAST_MOD_TIME_OFFSET+2])[0]
    last_modified_date = struct.unpack('<H', entry_data[DIR_LAST_MOD_DATE_OFFSET:DIR_LAST_MOD_DATE_OFFSET+2])[0]

    return {
        'index': index,
        'name': format_83_name(base, ext),
        'base': base,
        'ext': ext,
        'attributes': entry_data[DIR_ATTR_OFFSET],
        'cluster': struct.unpack('<H', entry_data[DIR_FIRST_CLUSTER_OFFSET:DIR_FIRST_CLUSTER_OFFSET+2])[0],
        'size': struct.unpack('<I', entry_data[DIR_FILE_SIZE_OFFSET:DIR_FILE_SIZE_OFFSET+4])[0],
        'creation_time': creation_time,
        'creation_date': creation_date,
        'last_accessed_date': last_accessed_date,
        'last_modified_time': last_modified_time,
        'last_modified_date': last_modified_date,
        'modified': decode_fat_datetime(last_modified_date, last_modified_time),
    }


def read_root_directory(image) -> List[dict]:
    """
    Read and parse the file entries of the root directory.

    Scanning stops at the first never-used slot (first byte 0x00). Deleted
    slots (0xE5), volume labels and subdirectories are skipped.

    Args:
        image: Anything with ``get_sector(n)``.

    Returns:
        A list of parsed entry dictionaries, in directory order.
    """
    entries = []

    for i, entry_data in iter_root_entries(image):
        # End of directory
        if entry_data[0] == ENTRY_END_MARKER:
            break

        if entry_data[0] == ENTRY_DELETED_MARKER:
            continue

        attr = entry_data[DIR_ATTR_OFFSET]
        if attr & (ATTR_VOLUME_LABEL | ATTR_DIRECTORY):
            continue

        entries.append(parse_directory_entry(i, entry_data))

    logger.debug(f"Read {len(entries)} root directory entries")
    return entries
