# SPDX-License-Identifier: MIT
"""Tests for variant equivalence checking."""

from __future__ import annotations

from pathlib import Path

from conftest import KICAD_DRILL, KICAD_OUTLINE, KICAD_SILKSCREEN, README, ZipBuilder

from ghostpcb.archive import load
from ghostpcb.cam.excellon import parse_excellon
from ghostpcb.cam.gerber import parse_gerber
from ghostpcb.cam.model import LayerKind
from ghostpcb.config import ToleranceConfig
from ghostpcb.verify import compare_layers, displacement_bound_mm, verify_archives


class TestDisplacementBound:
    def test_bounds_by_role(self) -> None:
        tolerances = ToleranceConfig()
        assert displacement_bound_mm(parse_excellon(KICAD_DRILL), tolerances) == tolerances.drill_max_mm
        silk = parse_gerber(KICAD_SILKSCREEN)
        assert silk.kind is LayerKind.SILKSCREEN
        assert displacement_bound_mm(silk, tolerances) == tolerances.silkscreen_max_mm
        assert displacement_bound_mm(parse_gerber(KICAD_OUTLINE), tolerances) == tolerances.outline_max_mm


class TestCompareLayers:
    """Tests for compare_layers."""

    def test_identical(self) -> None:
        layer = parse_excellon(KICAD_DRILL, name="board.drl")
        problems, worst = compare_layers(layer, layer, ToleranceConfig())
        assert problems == []
        assert worst == 0.0

    def test_small_move_accepted(self) -> None:
        source = parse_excellon(KICAD_DRILL, name="board.drl")
        variant = parse_excellon(KICAD_DRILL.replace("X110.0Y-60.0", "X110.01Y-60.01"), name="board.drl")
        problems, worst = compare_layers(source, variant, ToleranceConfig())
        assert problems == []
        assert abs(worst - 0.01 * 2**0.5) < 1e-9

    def test_large_move_rejected(self) -> None:
        source = parse_excellon(KICAD_DRILL, name="board.drl")
        variant = parse_excellon(KICAD_DRILL.replace("X110.0Y-60.0", "X110.05Y-60.0"), name="board.drl")
        problems, _ = compare_layers(source, variant, ToleranceConfig())
        assert len(problems) == 1
        assert "operation 0 moved 0.050000 mm" in problems[0]

    def test_copper_must_not_move(self) -> None:
        text = "%FSLAX46Y46*%\n%MOMM*%\n%ADD10C,0.1*%\nD10*\nX1000000Y1000000D03*\nM02*\n"
        source = parse_gerber(text, name="board-F_Cu.gbr")
        variant = parse_gerber(text.replace("X1000000", "X1000001"), name="board-F_Cu.gbr")
        problems, _ = compare_layers(source, variant, ToleranceConfig())
        assert problems

    def test_dropped_operation(self) -> None:
        source = parse_gerber(KICAD_OUTLINE, name="edge.gbr")
        variant = parse_gerber(KICAD_OUTLINE.replace("Y-90000000D01*\n", ""), name="edge.gbr")
        problems, _ = compare_layers(source, variant, ToleranceConfig())
        assert problems == ["edge.gbr: 5 operations became 4"]

    def test_aperture_change(self) -> None:
        source = parse_gerber(KICAD_OUTLINE, name="edge.gbr")
        variant = parse_gerber(KICAD_OUTLINE.replace("%ADD10C,0.100000*%", "%ADD10C,0.200000*%"), name="edge.gbr")
        problems, _ = compare_layers(source, variant, ToleranceConfig())
        assert problems == ["edge.gbr: aperture definitions changed"]

    def test_unit_change(self) -> None:
        source = parse_gerber(KICAD_OUTLINE, name="edge.gbr")
        variant = parse_gerber(KICAD_OUTLINE.replace("%MOMM*%", "%MOIN*%"), name="edge.gbr")
        problems, _ = compare_layers(source, variant, ToleranceConfig())
        assert problems == ["edge.gbr: coordinate format changed"]


class TestVerifyArchives:
    """Tests for verify_archives on whole packages."""

    def test_identical_archives(self, board_zip: Path) -> None:
        report = verify_archives(load(board_zip), load(board_zip))
        assert report.equivalent
        assert report.to_dict()["equivalent"] is True
        assert set(report.max_displacement_mm) == {
            "board-Edge_Cuts.gbr",
            "board-F_SilkS.gbr",
            "board-F_Cu.gbr",
            "board.drl",
        }

    def test_changed_verbatim_member(self, make_zip: ZipBuilder, board_members: dict[str, str]) -> None:
        source = make_zip(board_members, name="source.zip")
        changed = dict(board_members, **{"README.txt": README + "edited\n"})
        variant = make_zip(changed, name="variant.zip")
        report = verify_archives(load(source), load(variant))
        assert report.problems == ["README.txt: verbatim member changed"]

    def test_missing_member(self, make_zip: ZipBuilder, board_members: dict[str, str]) -> None:
        source = make_zip(board_members, name="source.zip")
        variant = make_zip({k: v for k, v in board_members.items() if k != "README.txt"}, name="variant.zip")
        report = verify_archives(load(source), load(variant))
        assert report.problems == ["member names differ"]
        assert not report.equivalent

    def test_unparseable_variant_member(self, make_zip: ZipBuilder, board_members: dict[str, str]) -> None:
        source = make_zip(board_members, name="source.zip")
        broken = dict(board_members, **{"board.drl": KICAD_DRILL.replace("X115.5Y-62.25", "X115.5Q1")})
        variant = make_zip(broken, name="variant.zip")
        report = verify_archives(load(source), load(variant))
        assert len(report.problems) == 1
        assert report.problems[0].startswith("board.drl: does not re-parse")
