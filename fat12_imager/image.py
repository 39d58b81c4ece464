#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
In-memory FAT12 disk image
Sector-addressable store shared by the builder and extractor
"""

import logging
from typing import List, Optional, Sequence

from .fat_utils import SECTOR_SIZE
from .directory import FAT12Error

logger = logging.getLogger(__name__)

ZERO_SECTOR = bytes(SECTOR_SIZE)


class DiskImage:
    """A FAT12 disk image held as a list of 512-byte sectors

    Out-of-range reads return a zero-filled sector and out-of-range writes
    are ignored, so callers walking damaged structures never index past the
    end of the image.
    """

    def __init__(self, sectors: Sequence[bytes], policy=None, skipped: Optional[List[str]] = None):
        self._sectors: List[bytes] = [self._normalize(s) for s in sectors]
        # Layout policy the image was built with (None for loaded images)
        self.policy = policy
        # Names of host files whose data could not be fully copied
        self.skipped: List[str] = list(skipped or [])

    @staticmethod
    def _normalize(data: bytes) -> bytes:
        data = bytes(data[:SECTOR_SIZE])
        if len(data) < SECTOR_SIZE:
            data = data.ljust(SECTOR_SIZE, b'\x00')
        return data

    def __len__(self) -> int:
        return len(self._sectors)

    @property
    def total_sectors(self) -> int:
        return len(self._sectors)

    @property
    def total_size(self) -> int:
        return len(self._sectors) * SECTOR_SIZE

    def get_sector(self, n: int) -> bytes:
        """
        Return sector n.

        Args:
            n: Sector number (LBA).

        Returns:
            512 bytes; a zero-filled sector if n is out of range.
        """
        if 0 <= n < len(self._sectors):
            return self._sectors[n]
        return ZERO_SECTOR

    def set_sector(self, n: int, data: bytes):
        """
        Replace sector n.

        Short data is zero-padded and long data truncated to one sector.
        Writes outside the image are silently ignored.
        """
        if 0 <= n < len(self._sectors):
            self._sectors[n] = self._normalize(data)
        else:
            logger.debug(f"Ignoring write to out-of-range sector {n}")

    def read_sectors(self, start: int, count: int) -> bytes:
        """Concatenate count sectors starting at start"""
        return b''.join(self.get_sector(start + i) for i in range(count))

    def to_bytes(self) -> bytes:
        """Serialize the image as a raw .img byte string"""
        return b''.join(self._sectors)

    def save(self, image_path: str):
        """Write the raw image to disk"""
        logger.info(f"Saving image to {image_path} ({self.total_size} bytes)")
        try:
            with open(image_path, 'wb') as f:
                f.write(self.to_bytes())
        except OSError as e:
            logger.critical(f"Cannot write image file {image_path}: {e}")
            raise FAT12Error(f"Cannot write image file {image_path}: {e}")

    @classmethod
    def from_bytes(cls, data: bytes) -> 'DiskImage':
        """Split raw image bytes into sectors, zero-padding a trailing partial sector"""
        sectors = [data[i:i + SECTOR_SIZE] for i in range(0, len(data), SECTOR_SIZE)]
        return cls(sectors)

    @classmethod
    def load(cls, image_path: str) -> 'DiskImage':
        """Read a raw .img file from disk"""
        try:
            with open(image_path, 'rb') as f:
                data = f.read()
        except OSError as e:
            logger.critical(f"Cannot read image file {image_path}: {e}")
            raise FAT12Error(f"Cannot read image file {image_path}: {e}")

        if len(data) < SECTOR_SIZE:
            logger.critical(f"Image file too small: {len(data)} bytes")
            raise FAT12Error("Image file too small to contain boot sector")

        logger.debug(f"Loaded image {image_path} ({len(data)} bytes)")
        return cls.from_bytes(data)
