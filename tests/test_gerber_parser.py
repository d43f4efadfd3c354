# SPDX-License-Identifier: MIT
"""Unit tests for the Gerber RS-274X reader."""

from __future__ import annotations

import pytest
from conftest import EASYEDA_SILKSCREEN, KICAD_COPPER, KICAD_OUTLINE, KICAD_SILKSCREEN, MALFORMED_GERBER, MODAL_D_GERBER

from ghostpcb.cam.gerber import parse_gerber
from ghostpcb.cam.model import (
    ApertureDefinition,
    Comment,
    EndOfFile,
    FlashOrDraw,
    HeaderDirective,
    LayerKind,
    ModeSet,
    Move,
    Passthrough,
    ToolSelect,
    Units,
    ZeroSuppression,
)
from ghostpcb.errors import ParseError


class TestFormat:
    """Coordinate format resolution from FS/MO statements."""

    def test_kicad_format(self) -> None:
        layer = parse_gerber(KICAD_OUTLINE, name="board-Edge_Cuts.gbr")
        fmt = layer.coordinate_format
        assert fmt.units is Units.MM
        assert (fmt.integer_digits, fmt.decimal_digits) == (4, 6)
        assert fmt.zeros is ZeroSuppression.LEADING
        assert not fmt.incremental
        assert layer.kind is LayerKind.OUTLINE

    def test_inch_format(self) -> None:
        fmt = parse_gerber(MODAL_D_GERBER).coordinate_format
        assert fmt.units is Units.INCH
        assert (fmt.integer_digits, fmt.decimal_digits) == (2, 4)

    def test_incremental_format(self) -> None:
        layer = parse_gerber("%FSLIX24Y24*%\n%MOIN*%\n%ADD10C,0.01*%\nD10*\nX100Y100D02*\nX50Y0D01*\nM02*\n")
        draw = layer.commands[-2]
        assert isinstance(draw, FlashOrDraw)
        assert (draw.x, draw.y) == (150, 100)


class TestStatements:
    """Statement classification."""

    def test_kicad_outline_statements(self) -> None:
        layer = parse_gerber(KICAD_OUTLINE)
        kinds = [type(command) for command in layer.commands]
        assert kinds[:3] == [HeaderDirective, HeaderDirective, HeaderDirective]
        assert layer.commands[2].key == "TF"
        assert layer.commands[2].value == ".FileFunction,Profile,NP"
        assert isinstance(layer.commands[4], Comment)
        assert layer.commands[4].text.startswith(" Gerber Fmt 4.6")
        assert isinstance(layer.commands[8], ModeSet)
        assert isinstance(layer.commands[-1], EndOfFile)

        apertures = [command for command in layer.commands if isinstance(command, ApertureDefinition)]
        assert len(apertures) == 1
        assert apertures[0].code == 10
        assert apertures[0].shape == "C"
        assert apertures[0].params == ("0.100000",)

    def test_rectangle_aperture_params(self) -> None:
        layer = parse_gerber(KICAD_COPPER)
        apertures = [command for command in layer.commands if isinstance(command, ApertureDefinition)]
        assert apertures[1].shape == "R"
        assert apertures[1].params == ("1.500000", "1.000000")

    def test_modal_coordinates_resolve(self) -> None:
        """Omitted axes inherit the current point."""
        ops = list(parse_gerber(KICAD_OUTLINE).positioned())
        assert [(op.x, op.y) for op in ops] == [
            (100000000, -50000000),
            (150000000, -50000000),
            (150000000, -90000000),
            (100000000, -90000000),
            (100000000, -50000000),
        ]
        assert isinstance(ops[0], Move)
        assert not ops[1].has_y
        assert not ops[2].has_x

    def test_modal_d_code(self) -> None:
        ops = list(parse_gerber(MODAL_D_GERBER).positioned())
        assert isinstance(ops[2], FlashOrDraw)
        assert ops[2].operation == 1
        assert ops[2].d_text == ""

    def test_flash_and_arc(self) -> None:
        ops = list(parse_gerber(KICAD_SILKSCREEN).positioned())
        flash = ops[5]
        assert isinstance(flash, FlashOrDraw) and flash.is_flash
        arc = ops[6]
        assert arc.interpolation == 2
        assert arc.arc is not None
        assert (arc.arc.i, arc.arc.j) == (2000000, 0)

    def test_inline_g_prefix(self) -> None:
        ops = list(parse_gerber(EASYEDA_SILKSCREEN).positioned())
        assert ops[1].g_prefix == "G01"
        assert ops[1].interpolation == 1

    def test_tool_select(self) -> None:
        layer = parse_gerber(KICAD_COPPER)
        selects = [command for command in layer.commands if isinstance(command, ToolSelect)]
        assert [select.code for select in selects] == [10, 11]

    def test_aperture_macro_is_opaque(self) -> None:
        text = "%FSLAX46Y46*%\n%MOMM*%\n%AMOC8*\n5,1,8,0,0,1.08239X$1,22.5*%\n%ADD10OC8,1.0*%\nM02*\n"
        layer = parse_gerber(text)
        assert isinstance(layer.commands[2], Passthrough)
        assert isinstance(layer.commands[3], ApertureDefinition)
        assert layer.commands[3].shape == "OC8"

    def test_text_after_end_is_kept(self) -> None:
        layer = parse_gerber("%FSLAX24Y24*%\nM02*\ntrailing junk\n")
        assert isinstance(layer.commands[-1], Passthrough)
        assert layer.commands[-1].raw == "trailing junk\n"

    def test_raw_text_covers_input(self) -> None:
        layer = parse_gerber(KICAD_SILKSCREEN)
        rebuilt = layer.preamble + "".join((command.raw or "") + command.trailer for command in layer.commands)
        assert rebuilt == KICAD_SILKSCREEN


class TestErrors:
    """ParseError reporting."""

    def test_malformed_coordinate_reports_line(self) -> None:
        with pytest.raises(ParseError) as excinfo:
            parse_gerber(MALFORMED_GERBER)
        assert excinfo.value.line == 6

    def test_unterminated_statement(self) -> None:
        with pytest.raises(ParseError, match="unterminated"):
            parse_gerber("%FSLAX24Y24*%\nX100Y100D02")

    def test_coordinate_without_d_code(self) -> None:
        with pytest.raises(ParseError, match="without a D-code"):
            parse_gerber("%FSLAX24Y24*%\nX100Y100*\n")

    def test_unit_change_after_coordinates(self) -> None:
        with pytest.raises(ParseError, match="after coordinate data"):
            parse_gerber("%FSLAX24Y24*%\n%MOIN*%\nX100Y100D02*\n%MOMM*%\nM02*\n")

    def test_mismatched_axis_digits(self) -> None:
        with pytest.raises(ParseError, match="differ"):
            parse_gerber("%FSLAX24Y25*%\nM02*\n")
