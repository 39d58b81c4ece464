#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
Image layout calculation
Decides how many sectors an image needs for a list of scanned files.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence

from .fat_utils import (RESERVED_SECTORS, NUM_FATS, SECTORS_PER_FAT, ROOT_DIR_SECTORS,
                        FLOPPY_CAPACITY, CLUSTER_SIZE, FIRST_DATA_CLUSTER,
                        MAX_USABLE_CLUSTERS, clusters_for_size)
from .fat import max_fat_cluster
from .boot import MAX_TOTAL_SECTORS
from .directory import ImageTooLargeError

logger = logging.getLogger(__name__)


class LayoutPolicy(Enum):
    """How the data region of a built image is sized"""
    # Data region holds exactly the clusters the files need
    TIGHT_PACK = 'tight'
    # Data region always spans the full 1440 KiB formatted capacity
    FIXED_CAPACITY = 'fixed'


FIXED_DATA_SECTORS = (FLOPPY_CAPACITY + CLUSTER_SIZE - 1) // CLUSTER_SIZE


def cluster_limit(policy: LayoutPolicy) -> int:
    """Most data clusters an image built with policy can hold"""
    addressable = min(max_fat_cluster() - FIRST_DATA_CLUSTER + 1, MAX_USABLE_CLUSTERS)
    if policy is LayoutPolicy.FIXED_CAPACITY:
        return min(addressable, FIXED_DATA_SECTORS)
    return addressable


@dataclass
class ImageLayout:
    """Sector budget of an image"""
    policy: LayoutPolicy
    cluster_counts: List[int] = field(default_factory=list)
    data_sectors: int = 0

    @property
    def clusters_needed(self) -> int:
        return sum(self.cluster_counts)

    @property
    def system_sectors(self) -> int:
        return RESERVED_SECTORS + NUM_FATS * SECTORS_PER_FAT + ROOT_DIR_SECTORS

    @property
    def total_sectors(self) -> int:
        return self.system_sectors + self.data_sectors


def calculate_layout(files: Sequence, policy: LayoutPolicy = LayoutPolicy.TIGHT_PACK) -> ImageLayout:
    """
    Compute the sector layout for the scanned files.

    Args:
        files: Scanned files (anything with a ``size`` attribute), in order.
        policy: Data region sizing policy.

    Returns:
        The ImageLayout.

    Raises:
        ImageTooLargeError: If the files need more clusters than the data
            region or the FAT can address, or the total sector count does
            not fit in 16 bits.
    """
    layout = ImageLayout(policy, [clusters_for_size(f.size) for f in files])
    clusters = layout.clusters_needed

    if policy is LayoutPolicy.FIXED_CAPACITY:
        layout.data_sectors = FIXED_DATA_SECTORS
    else:
        layout.data_sectors = clusters

    addressable = cluster_limit(LayoutPolicy.TIGHT_PACK)
    if clusters > addressable:
        logger.critical(f"{clusters} clusters needed, FAT can address {addressable}")
        raise ImageTooLargeError(f"Image too large: {clusters} clusters needed, FAT can address {addressable}")

    if clusters > layout.data_sectors:
        logger.critical(f"{clusters} clusters needed, data region holds {layout.data_sectors}")
        raise ImageTooLargeError(f"Image too large: {clusters} clusters exceed the {layout.data_sectors}-sector data region")

    if layout.total_sectors > MAX_TOTAL_SECTORS:
        raise ImageTooLargeError(f"Image too large: {layout.total_sectors} sectors")

    logger.info(f"Layout ({policy.name}): {len(files)} files, {clusters} clusters, {layout.total_sectors} sectors")
    return layout
