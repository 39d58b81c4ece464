#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
FAT12 table handling
Packing and unpacking of 12-bit cluster entries, contiguous chain allocation
for the builder and sector-level entry reads for the extractor.
"""

import struct
import logging
from dataclasses import dataclass
from typing import List, Sequence

from .fat_utils import (SECTOR_SIZE, SECTORS_PER_FAT, FAT_START_SECTOR, MEDIA_DESCRIPTOR,
                        FAT_FREE, FAT_RESERVED_MIN, FAT_BAD, FAT_EOC_MIN, FAT_EOC,
                        FIRST_DATA_CLUSTER, clusters_for_size)

logger = logging.getLogger(__name__)

# Cluster status constants
CLUSTER_FREE = 'FREE'
CLUSTER_RESERVED = 'RESERVED'
CLUSTER_BAD = 'BAD'
CLUSTER_EOF = 'EOF'
CLUSTER_USED = 'USED'

FAT_SIZE = SECTORS_PER_FAT * SECTOR_SIZE


@dataclass
class Allocation:
    """A scanned host file paired with the clusters assigned to it"""
    file: object
    start_cluster: int
    cluster_count: int


def classify_cluster(value: int) -> str:
    """
    Classify a FAT12 cluster value.

    Args:
        value: The 12-bit integer value from the FAT.

    Returns:
        One of the CLUSTER_* constants (FREE, RESERVED, BAD, EOF, USED).
    """
    if value == FAT_FREE:
        return CLUSTER_FREE
    elif value == 0x001 or FAT_RESERVED_MIN <= value < FAT_BAD:
        return CLUSTER_RESERVED
    elif value == FAT_BAD:
        return CLUSTER_BAD
    elif value >= FAT_EOC_MIN:
        return CLUSTER_EOF
    else:
        return CLUSTER_USED


def max_fat_cluster(fat_size: int = FAT_SIZE) -> int:
    """Highest cluster number whose entry fits entirely inside a FAT of fat_size bytes"""
    return (fat_size * 2) // 3 - 1


def set_fat_entry(fat_data: bytearray, cluster: int, value: int):
    """
    Set FAT12 entry for a cluster.

    Packs the 12-bit value into the byte array, preserving neighbors.

    Args:
        fat_data: The FAT bytearray (modified in place).
        cluster: The cluster index.
        value: The 12-bit value to set.
    """
    offset = cluster + (cluster // 2)

    if offset + 2 > len(fat_data):
        logger.warning(f"Attempted to write FAT entry for out-of-bounds cluster {cluster}")
        return

    current = struct.unpack('<H', fat_data[offset:offset+2])[0]
    value &= 0xFFF

    if cluster & 1:
        new_value = (current & 0x000F) | (value << 4)
    else:
        new_value = (current & 0xF000) | value

    fat_data[offset:offset+2] = struct.pack('<H', new_value)


def new_fat_table(media_descriptor: int = MEDIA_DESCRIPTOR) -> bytearray:
    """Return an empty FAT with the media descriptor in entries 0 and 1"""
    fat_data = bytearray(FAT_SIZE)
    fat_data[0] = media_descriptor
    fat_data[1] = 0xFF
    fat_data[2] = 0xFF
    return fat_data


def allocate_clusters(files: Sequence, fat_data: bytearray) -> List[Allocation]:
    """
    Assign each file a contiguous cluster run and link it in the FAT.

    Clusters are handed out from cluster 2 in file order. Every cluster but
    the last points at its successor; the last holds 0xFFF. Empty files are
    given start cluster 0 and no FAT entries.

    Args:
        files: Scanned files (anything with a ``size`` attribute), in order.
        fat_data: FAT bytearray, modified in place.

    Returns:
        Ordered list of Allocation records, one per file.
    """
    allocations = []
    cluster = FIRST_DATA_CLUSTER

    for f in files:
        count = clusters_for_size(f.size)
        if count == 0:
            allocations.append(Allocation(f, 0, 0))
            continue

        allocations.append(Allocation(f, cluster, count))
        for i in range(count):
            entry = FAT_EOC if i == count - 1 else cluster + 1
            set_fat_entry(fat_data, cluster, entry)
            cluster += 1

    logger.debug(f"Allocated clusters {FIRST_DATA_CLUSTER}-{cluster - 1} for {len(allocations)} files")
    return allocations


def read_fat_entry(image, cluster: int, fat_start_sector: int = FAT_START_SECTOR) -> int:
    """
    Read a FAT12 entry straight from an image's sector store.

    The two bytes holding an entry may straddle a sector boundary, in which
    case the second byte comes from the following sector.

    Args:
        image: Anything with ``get_sector(n)``.
        cluster: The cluster index.
        fat_start_sector: First sector of the FAT copy to read.

    Returns:
        The 12-bit value for the cluster.
    """
    fat_offset = cluster + (cluster // 2)
    sector_index = fat_start_sector + fat_offset // SECTOR_SIZE
    offset_in_sector = fat_offset % SECTOR_SIZE

    b1 = image.get_sector(sector_index)[offset_in_sector]
    next_offset = offset_in_sector + 1
    b2 = image.get_sector(sector_index + next_offset // SECTOR_SIZE)[next_offset % SECTOR_SIZE]

    if cluster & 1:
        value = (b1 >> 4) | (b2 << 4)
    else:
        value = b1 | ((b2 & 0x0F) << 8)

    return value & 0xFFF
