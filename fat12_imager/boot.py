#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
FAT12 boot sector (BIOS Parameter Block) writer and parser
"""

import struct
import logging
from dataclasses import dataclass

from .fat_utils import (SECTOR_SIZE, SECTORS_PER_CLUSTER, RESERVED_SECTORS, NUM_FATS,
                        ROOT_ENTRIES, MEDIA_DESCRIPTOR, SECTORS_PER_FAT, SECTORS_PER_TRACK,
                        HEADS, OEM_NAME, JUMP_CODE, BOOT_SIGNATURE)
from .directory import FAT12Error, ImageTooLargeError

logger = logging.getLogger(__name__)

MAX_TOTAL_SECTORS = 0xFFFF


@dataclass
class BootSectorFields:
    """Decoded BPB fields of a boot sector"""
    oem_name: str
    bytes_per_sector: int
    sectors_per_cluster: int
    reserved_sectors: int
    num_fats: int
    root_entries: int
    total_sectors: int
    media_descriptor: int
    sectors_per_fat: int
    sectors_per_track: int
    heads: int
    signature: bytes

    @property
    def has_valid_signature(self) -> bool:
        return self.signature == BOOT_SIGNATURE

    @property
    def matches_floppy_geometry(self) -> bool:
        """True if the BPB describes the fixed 1.44 MB root/FAT layout this package reads"""
        return (self.bytes_per_sector == SECTOR_SIZE
                and self.sectors_per_cluster == SECTORS_PER_CLUSTER
                and self.reserved_sectors == RESERVED_SECTORS
                and self.num_fats == NUM_FATS
                and self.root_entries == ROOT_ENTRIES
                and self.sectors_per_fat == SECTORS_PER_FAT)


def build_boot_sector(total_sectors: int) -> bytes:
    """
    Build the boot sector for an image of total_sectors sectors.

    Args:
        total_sectors: Total sector count written to the 16-bit BPB field.

    Returns:
        The 512-byte boot sector.

    Raises:
        ImageTooLargeError: If total_sectors does not fit in 16 bits.
    """
    if not 0 < total_sectors <= MAX_TOTAL_SECTORS:
        logger.critical(f"Total sector count {total_sectors} does not fit the 16-bit BPB field")
        raise ImageTooLargeError(f"Image too large: {total_sectors} sectors exceeds {MAX_TOTAL_SECTORS}")

    boot_sector = bytearray(SECTOR_SIZE)
    boot_sector[0:3] = JUMP_CODE
    boot_sector[3:11] = OEM_NAME
    boot_sector[11:13] = SECTOR_SIZE.to_bytes(2, 'little')
    boot_sector[13] = SECTORS_PER_CLUSTER
    boot_sector[14:16] = RESERVED_SECTORS.to_bytes(2, 'little')
    boot_sector[16] = NUM_FATS
    boot_sector[17:19] = ROOT_ENTRIES.to_bytes(2, 'little')
    boot_sector[19:21] = total_sectors.to_bytes(2, 'little')
    boot_sector[21] = MEDIA_DESCRIPTOR
    boot_sector[22:24] = SECTORS_PER_FAT.to_bytes(2, 'little')
    boot_sector[24:26] = SECTORS_PER_TRACK.to_bytes(2, 'little')
    boot_sector[26:28] = HEADS.to_bytes(2, 'little')
    boot_sector[510:512] = BOOT_SIGNATURE
    return bytes(boot_sector)


def parse_boot_sector(boot_sector: bytes) -> BootSectorFields:
    """
    Parse the BPB fields of a boot sector.

    Raises:
        FAT12Error: If the sector is too short to hold a BPB.
    """
    if len(boot_sector) < SECTOR_SIZE:
        logger.critical(f"Boot sector too small: {len(boot_sector)} bytes")
        raise FAT12Error("Boot sector too small")

    try:
        return BootSectorFields(
            oem_name=boot_sector[3:11].decode('ascii', errors='ignore').rstrip(),
            bytes_per_sector=struct.unpack('<H', boot_sector[11:13])[0],
            sectors_per_cluster=boot_sector[13],
            reserved_sectors=struct.unpack('<H', boot_sector[14:16])[0],
            num_fats=boot_sector[16],
            root_entries=struct.unpack('<H', boot_sector[17:19])[0],
            total_sectors=struct.unpack('<H', boot_sector[19:21])[0],
            media_descriptor=boot_sector[21],
            sectors_per_fat=struct.unpack('<H', boot_sector[22:24])[0],
            sectors_per_track=struct.unpack('<H', boot_sector[24:26])[0],
            heads=struct.unpack('<H', boot_sector[26:28])[0],
            signature=bytes(boot_sector[510:512]),
        )
    except struct.error as e:
        logger.critical(f"Failed to parse boot sector: {e}")
        raise FAT12Error(f"Invalid boot sector format: {e}")
