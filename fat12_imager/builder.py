#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
FAT12 Image Builder
Synthesizes a complete 1.44 MB class FAT12 image from the files of a host directory.

Each stage takes the BuildContext owned by the current run, so a builder
object carries no state between builds.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .fat_utils import (SECTOR_SIZE, FAT_START_SECTOR, FAT2_START_SECTOR, SECTORS_PER_FAT,
                        ROOT_START_SECTOR, DATA_START_SECTOR, FIRST_DATA_CLUSTER)
from .fat import Allocation, new_fat_table, allocate_clusters
from .boot import build_boot_sector
from .directory import build_root_directory
from .layout import LayoutPolicy, ImageLayout, calculate_layout, cluster_limit
from .scanner import ScannedFile, scan_host_files
from .image import DiskImage

logger = logging.getLogger(__name__)


@dataclass
class BuildContext:
    """Working state of one build"""
    source_dir: str
    policy: LayoutPolicy
    files: List[ScannedFile] = field(default_factory=list)
    layout: Optional[ImageLayout] = None
    sectors: List[bytearray] = field(default_factory=list)
    fat: bytearray = field(default_factory=new_fat_table)
    allocations: List[Allocation] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class ImageBuilder:
    """Builds a DiskImage from a host directory"""

    def __init__(self, source_dir: str, policy: LayoutPolicy = LayoutPolicy.TIGHT_PACK):
        self.source_dir = source_dir
        self.policy = policy

    def build(self) -> DiskImage:
        """
        Run every build stage and return the finished image.

        Raises:
            FAT12Error: If the source directory cannot be enumerated.
            ImageTooLargeError: If the files cannot be laid out on the disk.
        """
        logger.info(f"Building image from '{self.source_dir}' ({self.policy.name})")
        ctx = BuildContext(self.source_dir, self.policy)

        self.scan_files(ctx)
        self.plan_layout(ctx)
        self.write_boot_sector(ctx)
        self.write_fat(ctx)
        self.write_root_directory(ctx)
        self.write_file_data(ctx)
        self.mirror_fat(ctx)

        image = DiskImage(ctx.sectors, policy=ctx.policy, skipped=ctx.skipped)
        logger.info(f"Built image: {len(ctx.files)} files, {image.total_sectors} sectors, "
                    f"{len(ctx.skipped)} with read errors")
        return image

    def scan_files(self, ctx: BuildContext):
        ctx.files = scan_host_files(ctx.source_dir, max_clusters=cluster_limit(ctx.policy))

    def plan_layout(self, ctx: BuildContext):
        """Size the image and allocate its zero-filled sectors"""
        ctx.layout = calculate_layout(ctx.files, ctx.policy)
        ctx.sectors = [bytearray(SECTOR_SIZE) for _ in range(ctx.layout.total_sectors)]

    def write_boot_sector(self, ctx: BuildContext):
        ctx.sectors[0][:] = build_boot_sector(ctx.layout.total_sectors)

    def write_fat(self, ctx: BuildContext):
        """Allocate cluster chains and store the primary FAT"""
        ctx.allocations = allocate_clusters(ctx.files, ctx.fat)
        for i in range(SECTORS_PER_FAT):
            ctx.sectors[FAT_START_SECTOR + i][:] = ctx.fat[i * SECTOR_SIZE:(i + 1) * SECTOR_SIZE]
        logger.debug(f"Wrote FAT #1 at sectors {FAT_START_SECTOR}-{FAT_START_SECTOR + SECTORS_PER_FAT - 1}")

    def write_root_directory(self, ctx: BuildContext):
        for i, sector in enumerate(build_root_directory(ctx.allocations)):
            ctx.sectors[ROOT_START_SECTOR + i][:] = sector
        logger.debug(f"Wrote {len(ctx.allocations)} root directory entries")

    def write_file_data(self, ctx: BuildContext):
        """
        Copy each file's bytes into its clusters.

        Reads are capped at the clusters allocated to the file, so a file
        that grew after scanning cannot spill into its neighbour. A read
        error is logged and the build moves on; whatever was copied before
        the error stays in the image.
        """
        for alloc in ctx.allocations:
            if alloc.cluster_count == 0:
                continue

            f = alloc.file
            sector = DATA_START_SECTOR + (alloc.start_cluster - FIRST_DATA_CLUSTER)
            last_sector = sector + alloc.cluster_count
            try:
                with open(f.path, 'rb') as src:
                    while sector < last_sector:
                        chunk = src.read(SECTOR_SIZE)
                        if not chunk:
                            break
                        ctx.sectors[sector][0:len(chunk)] = chunk
                        sector += 1
            except OSError as e:
                logger.error(f"Failed to read '{f.path}': {e}")
                ctx.skipped.append(f.name)

    def mirror_fat(self, ctx: BuildContext):
        """Copy FAT #1 verbatim into FAT #2"""
        for i in range(SECTORS_PER_FAT):
            ctx.sectors[FAT2_START_SECTOR + i][:] = ctx.sectors[FAT_START_SECTOR + i]


def build_image(source_dir: str, policy: LayoutPolicy = LayoutPolicy.TIGHT_PACK) -> DiskImage:
    """Build a DiskImage from the files in source_dir"""
    return ImageBuilder(source_dir, policy).build()
