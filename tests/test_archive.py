# SPDX-License-Identifier: MIT
"""Tests for archive loading, writing and archive-level parsing."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest
from conftest import KICAD_DRILL, KICAD_OUTLINE, MALFORMED_GERBER, README, SOURCE_DATE_TIME, ZipBuilder

from ghostpcb.archive import (
    Archive,
    ArchiveMember,
    archive_bytes,
    load,
    save,
    variant_path,
    write_variant,
)
from ghostpcb.cam.model import LayerKind
from ghostpcb.cam.parsing import parse_archive, parse_member
from ghostpcb.errors import ArchiveError, ParseError, WriteError


class TestLoad:
    """Tests for load()."""

    def test_members_in_stored_order(self, board_zip: Path) -> None:
        archive = load(board_zip)
        assert archive.names == (
            "board-Edge_Cuts.gbr",
            "board-F_SilkS.gbr",
            "board-F_Cu.gbr",
            "board.drl",
            "README.txt",
        )
        assert archive.get("README.txt").data == README.encode()
        assert archive.get("board.drl").date_time == SOURCE_DATE_TIME

    def test_directories_are_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "nested.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("gerbers/", b"")
            zf.writestr("gerbers/board.drl", KICAD_DRILL)
        assert load(path).names == ("gerbers/board.drl",)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ArchiveError, match="not found"):
            load(tmp_path / "missing.zip")

    def test_not_a_zip(self, tmp_path: Path) -> None:
        path = tmp_path / "corrupt.zip"
        path.write_bytes(b"PK\x03\x04 definitely not a zip")
        with pytest.raises(ArchiveError, match="Not a valid ZIP"):
            load(path)

    def test_empty_archive(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.zip"
        with zipfile.ZipFile(path, "w"):
            pass
        with pytest.raises(ArchiveError, match="empty"):
            load(path)

    def test_no_cam_members(self, make_zip: ZipBuilder) -> None:
        path = make_zip({"README.txt": README, "notes.md": "# Notes\n"})
        with pytest.raises(ArchiveError, match="no Gerber or Excellon"):
            load(path)

    def test_duplicate_names(self, tmp_path: Path) -> None:
        path = tmp_path / "dup.zip"
        with pytest.warns(UserWarning):
            with zipfile.ZipFile(path, "w") as zf:
                zf.writestr("board.drl", KICAD_DRILL)
                zf.writestr("board.drl", KICAD_DRILL)
        with pytest.raises(ArchiveError, match="Duplicate"):
            load(path)


class TestWrite:
    """Tests for variant naming and writing."""

    def test_variant_path(self, tmp_path: Path) -> None:
        assert variant_path(tmp_path, "board", 3) == tmp_path / "board_obf3.zip"

    def test_write_variant_round_trip(self, board_zip: Path, tmp_path: Path) -> None:
        archive = load(board_zip)
        out = write_variant(archive, tmp_path / "out" / "board_obf1.zip")
        assert out.is_absolute()
        assert out.parent.name == "out"
        reloaded = load(out)
        assert reloaded.names == archive.names
        assert all(reloaded.get(name).data == archive.get(name).data for name in archive.names)
        assert not list(out.parent.glob(".tmp-*"))

    def test_archive_bytes_is_stable(self, board_zip: Path) -> None:
        archive = load(board_zip)
        assert archive_bytes(archive) == archive_bytes(archive)

    def test_with_contents_restamps(self, board_zip: Path) -> None:
        archive = load(board_zip)
        stamped = archive.with_contents({"board.drl": b"M48\n"}, date_time=(2024, 1, 2, 9, 30, 14))
        assert stamped.get("board.drl").data == b"M48\n"
        assert stamped.get("README.txt").data == README.encode()
        assert {member.date_time for member in stamped} == {(2024, 1, 2, 9, 30, 14)}

    def test_fingerprint_ignores_order_and_dates(self) -> None:
        first = Archive(members=(ArchiveMember("a", b"1"), ArchiveMember("b", b"2")))
        second = Archive(
            members=(ArchiveMember("b", b"2", (2020, 1, 1, 0, 0, 0)), ArchiveMember("a", b"1"))
        )
        assert first.fingerprint() == second.fingerprint()
        assert first.fingerprint() != first.with_contents({"a": b"x"}).fingerprint()

    def test_fingerprint_with_dates(self) -> None:
        archive = Archive(members=(ArchiveMember("a", b"1"), ArchiveMember("b", b"2")))
        restamped = archive.with_contents({}, (2024, 1, 2, 9, 30, 14))
        assert archive.fingerprint() == restamped.fingerprint()
        assert archive.fingerprint(with_dates=True) != restamped.fingerprint(with_dates=True)
        assert archive.fingerprint(with_dates=True) != archive.fingerprint()

    def test_save_numbers_from_one(self, board_zip: Path, tmp_path: Path) -> None:
        archive = load(board_zip)
        written, failures = save([archive, archive], tmp_path / "variants", "board")
        assert [path.name for path in written] == ["board_obf1.zip", "board_obf2.zip"]
        assert failures == []

    def test_save_records_failures(self, board_zip: Path, tmp_path: Path) -> None:
        """A destination that is a file cannot hold variants."""
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        written, failures = save([load(board_zip)], blocker, "board")
        assert written == []
        assert len(failures) == 1
        assert isinstance(failures[0], WriteError)


class TestParseArchive:
    """Tests for parse_archive() and parse_member()."""

    def test_layers_and_passthrough(self, board_zip: Path) -> None:
        parsed = parse_archive(load(board_zip))
        assert set(parsed.layers) == {"board-Edge_Cuts.gbr", "board-F_SilkS.gbr", "board-F_Cu.gbr", "board.drl"}
        assert [layer.name for layer in parsed.layers_of_kind(LayerKind.OUTLINE)] == ["board-Edge_Cuts.gbr"]
        assert parsed.failures == ()

    def test_malformed_member_is_recorded(self, make_zip: ZipBuilder) -> None:
        path = make_zip({"board-Edge_Cuts.gbr": KICAD_OUTLINE, "broken.gbr": MALFORMED_GERBER})
        parsed = parse_archive(load(path))
        assert list(parsed.layers) == ["board-Edge_Cuts.gbr"]
        assert len(parsed.failures) == 1
        assert parsed.failures[0].member == "broken.gbr"
        assert parsed.failures[0].line == 6

    def test_nothing_parses(self, make_zip: ZipBuilder) -> None:
        path = make_zip({"broken.gbr": MALFORMED_GERBER})
        with pytest.raises(ArchiveError, match="No Gerber or Excellon member could be parsed"):
            parse_archive(load(path))

    def test_parse_member(self) -> None:
        assert parse_member("README.txt", README.encode()) is None
        with pytest.raises(ParseError) as excinfo:
            parse_member("broken.gbr", MALFORMED_GERBER.encode())
        assert str(excinfo.value).startswith("broken.gbr:6:")
