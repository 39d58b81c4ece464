import os
import random
import pytest
from unittest.mock import patch
from fat12_imager.builder import build_image
from fat12_imager.extractor import extract_file, extract_all_files
from fat12_imager.fat import set_fat_entry
from fat12_imager.fat_utils import FAT_START_SECTOR
from fat12_imager.image import DiskImage
from fat12_imager.layout import LayoutPolicy
from fat12_imager.directory import read_root_directory, FAT12Error, FAT12CorruptionError
from fat12_imager.__main__ import main

real_open = open


@pytest.fixture
def source(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    return src


@pytest.fixture
def sample_files(source):
    rng = random.Random(1234)
    contents = {
        "hello.txt": b"Hello, floppy!\r\n",
        "block.bin": bytes(rng.getrandbits(8) for _ in range(512)),
        "odd.dat": bytes(rng.getrandbits(8) for _ in range(513 * 3 + 7)),
        "noext": b"no extension here",
        "empty.txt": b"",
    }
    for name, data in contents.items():
        (source / name).write_bytes(data)
    return contents


def patch_fat(image, cluster, value):
    """Overwrite one FAT #1 entry in an image (entries below cluster 341 live in its first sector)"""
    sector = bytearray(image.get_sector(FAT_START_SECTOR))
    set_fat_entry(sector, cluster, value)
    image.set_sector(FAT_START_SECTOR, sector)


def rename_entry(image, index, raw_name):
    """Overwrite the 11-byte stored name of root directory slot index"""
    sector_no = 19 + index // 16
    offset = (index % 16) * 32
    sector = bytearray(image.get_sector(sector_no))
    sector[offset:offset + 11] = raw_name
    image.set_sector(sector_no, sector)


class TestRoundTrip:
    @pytest.mark.parametrize("policy", [LayoutPolicy.TIGHT_PACK, LayoutPolicy.FIXED_CAPACITY])
    def test_build_then_extract(self, source, sample_files, tmp_path, policy):
        image = build_image(str(source), policy)
        out = tmp_path / "out"

        result = extract_all_files(image, str(out))

        assert result.success
        assert len(result.extracted) == len(sample_files)
        for name, data in sample_files.items():
            assert (out / name.upper()).read_bytes() == data

    def test_round_trip_through_image_file(self, source, sample_files, tmp_path):
        img_path = tmp_path / "disk.img"
        build_image(str(source)).save(str(img_path))

        out = tmp_path / "out"
        extract_all_files(DiskImage.load(str(img_path)), str(out))

        assert sorted(os.listdir(out)) == sorted(n.upper() for n in sample_files)


class TestChainWalking:
    def test_follows_non_contiguous_chain(self, source):
        (source / "a.bin").write_bytes(b"A" * 1024)
        (source / "b.bin").write_bytes(b"B" * 512)
        image = build_image(str(source))
        entries = {e['name']: e for e in read_root_directory(image)}
        a = entries["A.BIN"]
        b = entries["B.BIN"]

        # Relink: a's first cluster -> b's cluster, and swap the data in
        patch_fat(image, a['cluster'], b['cluster'])
        patch_fat(image, b['cluster'], 0xFFF)
        image.set_sector(33 + b['cluster'] - 2, b"Z" * 512)

        assert extract_file(image, a) == b"A" * 512 + b"Z" * 512

    def test_stops_at_recorded_size(self, source):
        (source / "a.bin").write_bytes(b"A" * 1000)
        image = build_image(str(source))
        entry = read_root_directory(image)[0]
        entry['size'] = 600

        assert extract_file(image, entry) == b"A" * 600

    def test_self_loop_is_detected(self, source):
        (source / "a.bin").write_bytes(b"A" * 1000)
        image = build_image(str(source))
        entry = read_root_directory(image)[0]
        patch_fat(image, entry['cluster'], entry['cluster'])

        with pytest.raises(FAT12CorruptionError):
            extract_file(image, entry)

    def test_short_chain_is_detected(self, source):
        (source / "a.bin").write_bytes(b"A" * 1000)
        image = build_image(str(source))
        entry = read_root_directory(image)[0]
        patch_fat(image, entry['cluster'], 0xFFF)

        with pytest.raises(FAT12CorruptionError):
            extract_file(image, entry)

    def test_free_link_is_detected(self, source):
        (source / "a.bin").write_bytes(b"A" * 1000)
        image = build_image(str(source))
        entry = read_root_directory(image)[0]
        patch_fat(image, entry['cluster'], 0x000)

        with pytest.raises(FAT12CorruptionError):
            extract_file(image, entry)


class TestExtractAll:
    def test_corrupt_file_does_not_stop_others(self, source, tmp_path):
        (source / "a.bin").write_bytes(b"A" * 1000)
        (source / "b.bin").write_bytes(b"B" * 1000)
        image = build_image(str(source))
        entries = {e['name']: e for e in read_root_directory(image)}
        patch_fat(image, entries["A.BIN"]['cluster'], entries["A.BIN"]['cluster'])

        out = tmp_path / "out"
        result = extract_all_files(image, str(out))

        assert [name for name, _ in result.failed] == ["A.BIN"]
        assert (out / "B.BIN").read_bytes() == b"B" * 1000
        assert not (out / "A.BIN").exists()

    def test_write_failure_does_not_stop_others(self, source, tmp_path):
        (source / "a.bin").write_bytes(b"A" * 10)
        (source / "b.bin").write_bytes(b"B" * 10)
        image = build_image(str(source))
        out = tmp_path / "out"

        def flaky_open(path, *args, **kwargs):
            if str(path).endswith("A.BIN"):
                raise OSError(28, "No space left on device", str(path))
            return real_open(path, *args, **kwargs)

        with patch('fat12_imager.extractor.open', side_effect=flaky_open, create=True):
            result = extract_all_files(image, str(out))

        assert [name for name, _ in result.failed] == ["A.BIN"]
        assert (out / "B.BIN").read_bytes() == b"B" * 10

    def test_out_of_range_start_cluster_skipped(self, source, tmp_path):
        (source / "a.bin").write_bytes(b"A" * 10)
        image = build_image(str(source))
        root = bytearray(image.get_sector(19))
        root[26:28] = (0xFF0).to_bytes(2, 'little')
        image.set_sector(19, root)

        result = extract_all_files(image, str(tmp_path / "out"))
        assert result.extracted == []
        assert result.failed[0][0] == "A.BIN"

    def test_name_escaping_output_dir_is_refused(self, source, tmp_path):
        (source / "a.bin").write_bytes(b"A" * 10)
        (source / "b.bin").write_bytes(b"B" * 10)
        image = build_image(str(source))
        entries = {e['name']: e for e in read_root_directory(image)}
        rename_entry(image, entries["A.BIN"]['index'], b"../../ESCAP")

        out = tmp_path / "deep" / "x" / "out"
        result = extract_all_files(image, str(out))

        assert [name for name, _ in result.failed] == ["../../ES.CAP"]
        assert not (tmp_path / "deep" / "ES.CAP").exists()
        assert (out / "B.BIN").read_bytes() == b"B" * 10

    @pytest.mark.parametrize("raw_name,name", [
        (b"..         ", ".."),
        (b".          ", "."),
        (b"/ETC    PAS", "/ETC.PAS"),
    ])
    def test_hostile_names_are_refused(self, source, tmp_path, raw_name, name):
        (source / "a.bin").write_bytes(b"A" * 10)
        image = build_image(str(source))
        rename_entry(image, 0, raw_name)

        out = tmp_path / "out"
        result = extract_all_files(image, str(out))

        assert result.extracted == []
        assert result.failed == [(name, "unsafe file name")]
        assert os.listdir(out) == []

    def test_symlink_leading_outside_is_refused(self, source, tmp_path):
        (source / "a.bin").write_bytes(b"A" * 10)
        image = build_image(str(source))
        out = tmp_path / "out"
        out.mkdir()
        target = tmp_path / "target"
        target.write_bytes(b"keep")
        os.symlink(target, out / "A.BIN")

        result = extract_all_files(image, str(out))

        assert result.failed == [("A.BIN", "unsafe file name")]
        assert target.read_bytes() == b"keep"

    def test_output_directory_failure_is_fatal(self, source, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_bytes(b"x")
        image = build_image(str(source))

        with pytest.raises(FAT12Error):
            extract_all_files(image, str(blocker / "out"))

    def test_foreign_boot_sector_warns(self, source, tmp_path, caplog):
        (source / "a.bin").write_bytes(b"A")
        image = build_image(str(source))
        image.set_sector(0, bytes(512))

        result = extract_all_files(image, str(tmp_path / "out"))
        assert result.success
        assert "0x55AA" in caplog.text


class TestCommandLine:
    def test_build_and_extract(self, source, sample_files, tmp_path):
        img_path = tmp_path / "disk.img"
        out = tmp_path / "out"

        assert main(["build", str(source), str(img_path)]) == 0
        assert img_path.stat().st_size % 512 == 0
        assert main(["extract", str(img_path), str(out)]) == 0

        for name, data in sample_files.items():
            assert (out / name.upper()).read_bytes() == data

    def test_build_fixed(self, source, tmp_path):
        img_path = tmp_path / "disk.img"
        assert main(["build", str(source), str(img_path), "--fixed"]) == 0
        assert img_path.stat().st_size == 2913 * 512

    def test_usage_error(self):
        assert main([]) == 2
        assert main(["format", "a", "b"]) == 2

    def test_missing_image(self, tmp_path):
        assert main(["extract", str(tmp_path / "missing.img"), str(tmp_path / "out")]) == 1
