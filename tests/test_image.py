import pytest
from fat12_imager.image import DiskImage
from fat12_imager.boot import build_boot_sector, parse_boot_sector, MAX_TOTAL_SECTORS
from fat12_imager.directory import FAT12Error, ImageTooLargeError


@pytest.fixture
def image():
    return DiskImage([bytes([i]) * 512 for i in range(4)])


class TestSectorStore:
    def test_get_sector(self, image):
        assert len(image) == 4
        assert image.total_size == 2048
        assert image.get_sector(2) == bytes([2]) * 512

    def test_out_of_range_read_is_zero(self, image):
        assert image.get_sector(4) == bytes(512)
        assert image.get_sector(-1) == bytes(512)

    def test_out_of_range_write_is_ignored(self, image):
        before = image.to_bytes()
        image.set_sector(4, b'\xFF' * 512)
        image.set_sector(-1, b'\xFF' * 512)
        assert image.to_bytes() == before
        assert len(image) == 4

    def test_set_sector_pads_and_truncates(self, image):
        image.set_sector(0, b'\x01\x02')
        assert image.get_sector(0) == b'\x01\x02' + bytes(510)

        image.set_sector(1, b'\xAA' * 600)
        assert image.get_sector(1) == b'\xAA' * 512

    def test_from_bytes_pads_partial_sector(self):
        image = DiskImage.from_bytes(b'\x11' * 700)
        assert len(image) == 2
        assert image.get_sector(1) == b'\x11' * 188 + bytes(324)

    def test_save_and_load(self, image, tmp_path):
        path = tmp_path / "disk.img"
        image.save(str(path))
        assert path.stat().st_size == 2048

        loaded = DiskImage.load(str(path))
        assert loaded.to_bytes() == image.to_bytes()

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FAT12Error):
            DiskImage.load(str(tmp_path / "missing.img"))

    def test_load_too_small(self, tmp_path):
        path = tmp_path / "tiny.img"
        path.write_bytes(b'\x00' * 100)
        with pytest.raises(FAT12Error):
            DiskImage.load(str(path))


class TestBootSector:
    def test_boot_sector_fields(self):
        sector = build_boot_sector(2913)

        assert len(sector) == 512
        assert sector[0:3] == b'\xEB\x3C\x90'
        assert sector[3:11] == b'MSDOS5.0'
        assert sector[510:512] == b'\x55\xAA'
        assert sector[19:21] == (2913).to_bytes(2, 'little')

    def test_parse_boot_sector(self):
        bpb = parse_boot_sector(build_boot_sector(33))

        assert bpb.oem_name == "MSDOS5.0"
        assert bpb.bytes_per_sector == 512
        assert bpb.sectors_per_cluster == 1
        assert bpb.reserved_sectors == 1
        assert bpb.num_fats == 2
        assert bpb.root_entries == 224
        assert bpb.total_sectors == 33
        assert bpb.media_descriptor == 0xF0
        assert bpb.sectors_per_fat == 9
        assert bpb.sectors_per_track == 18
        assert bpb.heads == 2
        assert bpb.has_valid_signature
        assert bpb.matches_floppy_geometry

    def test_blank_sector_is_not_floppy(self):
        bpb = parse_boot_sector(bytes(512))
        assert not bpb.has_valid_signature
        assert not bpb.matches_floppy_geometry

    def test_total_sectors_must_fit_16_bits(self):
        build_boot_sector(MAX_TOTAL_SECTORS)
        with pytest.raises(ImageTooLargeError):
            build_boot_sector(MAX_TOTAL_SECTORS + 1)

    def test_short_sector_rejected(self):
        with pytest.raises(FAT12Error):
            parse_boot_sector(b'\x00' * 10)
