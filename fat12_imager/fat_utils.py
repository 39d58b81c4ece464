#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
FAT12 layout constants and DOS encoding helpers shared by the builder and extractor.
"""

import datetime
from typing import Optional, Tuple

# Fixed 3.5" 1.44 MB geometry
SECTOR_SIZE = 512
SECTORS_PER_CLUSTER = 1
CLUSTER_SIZE = SECTOR_SIZE * SECTORS_PER_CLUSTER
RESERVED_SECTORS = 1
NUM_FATS = 2
SECTORS_PER_FAT = 9
ROOT_ENTRIES = 224
DIR_ENTRY_SIZE = 32
ROOT_DIR_SECTORS = (ROOT_ENTRIES * DIR_ENTRY_SIZE) // SECTOR_SIZE
MEDIA_DESCRIPTOR = 0xF0
SECTORS_PER_TRACK = 18
HEADS = 2
OEM_NAME = b'MSDOS5.0'
JUMP_CODE = b'\xEB\x3C\x90'
BOOT_SIGNATURE = b'\x55\xAA'

# Region start sectors
FAT_START_SECTOR = RESERVED_SECTORS
FAT2_START_SECTOR = FAT_START_SECTOR + SECTORS_PER_FAT
ROOT_START_SECTOR = RESERVED_SECTORS + NUM_FATS * SECTORS_PER_FAT
DATA_START_SECTOR = ROOT_START_SECTOR + ROOT_DIR_SECTORS

# Formatted capacity used as the host file cutoff and the fixed data region
FLOPPY_CAPACITY = 1440 * 1024

# FAT12 entry values
FAT_FREE = 0x000
FAT_RESERVED_MIN = 0xFF0
FAT_BAD = 0xFF7
FAT_EOC_MIN = 0xFF8
FAT_EOC = 0xFFF
MAX_USABLE_CLUSTERS = 0xFF4
FIRST_DATA_CLUSTER = 2

# Directory entry layout
DIR_SHORT_NAME_LEN = 11
DIR_ATTR_OFFSET = 11
DIR_CRT_TIME_OFFSET = 14
DIR_CRT_DATE_OFFSET = 16
DIR_LAST_ACCESS_DATE_OFFSET = 18
DIR_LAST_MOD_TIME_OFFSET = 22
DIR_LAST_MOD_DATE_OFFSET = 24
DIR_FIRST_CLUSTER_OFFSET = 26
DIR_FILE_SIZE_OFFSET = 28

ATTR_VOLUME_LABEL = 0x08
ATTR_DIRECTORY = 0x10
ATTR_ARCHIVE = 0x20

ENTRY_END_MARKER = 0x00
ENTRY_DELETED_MARKER = 0xE5

# Range representable by DOS date/time fields
FAT_EPOCH = datetime.datetime(1980, 1, 1, 0, 0, 0)
FAT_MAX_DATETIME = datetime.datetime(2107, 12, 31, 23, 59, 58)


def decode_fat_datetime(date_value: int, time_value: int) -> Optional[datetime.datetime]:
    """Combine packed DOS date and time fields into a datetime, or None if invalid"""
    year = ((date_value >> 9) & 0x7F) + 1980
    month = (date_value >> 5) & 0x0F
    day = date_value & 0x1F
    hours = (time_value >> 11) & 0x1F
    minutes = (time_value >> 5) & 0x3F
    seconds = (time_value & 0x1F) * 2
    try:
        return datetime.datetime(year, month, day, hours, minutes, seconds)
    except ValueError:
        return None


def encode_fat_time(dt: datetime.datetime) -> int:
    """Encode datetime to FAT time format"""
    return (dt.hour << 11) | (dt.minute << 5) | (dt.second // 2)


def encode_fat_date(dt: datetime.datetime) -> int:
    """Encode datetime to FAT date format"""
    return ((dt.year - 1980) << 9) | (dt.month << 5) | dt.day


def clamp_fat_datetime(dt: datetime.datetime) -> datetime.datetime:
    """Clamp a datetime into the 1980-2107 window DOS timestamps can hold"""
    if dt < FAT_EPOCH:
        return FAT_EPOCH
    if dt > FAT_MAX_DATETIME:
        return FAT_MAX_DATETIME
    return dt


def mtime_to_fat(mtime: float) -> Tuple[int, int]:
    """
    Convert a host modification timestamp to packed DOS (time, date).

    The timestamp is interpreted in local time, as DOS clocks have no zone.
    """
    dt = clamp_fat_datetime(datetime.datetime.fromtimestamp(mtime))
    return encode_fat_time(dt), encode_fat_date(dt)


def split_83_name(filename: str) -> Tuple[str, str]:
    """Split a host filename into a padded 8.3 (base, extension) pair

    The name is uppercased and split at the last dot. A dot in the first
    position does not start an extension. The base is padded/truncated to
    8 characters and the extension to 3. Non-ASCII characters become '?'.

    Examples:
        'readme.txt' -> ('README  ', 'TXT')
        'noext'      -> ('NOEXT   ', '   ')
    """
    name = filename.upper().encode('ascii', 'replace').decode('ascii')
    dot = name.rfind('.')
    if dot > 0:
        base, ext = name[:dot], name[dot + 1:]
    else:
        base, ext = name, ''
    return base[:8].ljust(8), ext[:3].ljust(3)


def encode_83_name(filename: str) -> bytes:
    """Return the 11 raw name bytes (no dot) stored in a directory entry"""
    base, ext = split_83_name(filename)
    return (base + ext).encode('ascii')


def format_83_name(base: str, ext: str) -> str:
    """Join a stored base and extension into a host filename ('BASE.EXT' or 'BASE')"""
    base = base.strip()
    ext = ext.strip()
    return f"{base}.{ext}" if ext else base


def clusters_for_size(size: int) -> int:
    """Number of clusters needed to hold size bytes"""
    return (size + CLUSTER_SIZE - 1) // CLUSTER_SIZE
