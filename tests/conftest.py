# SPDX-License-Identifier: MIT
"""Pytest configuration and shared fixtures for the test suite.

This module provides:
- Deterministic test environment setup
- Sample Gerber and Excellon texts in KiCad and EasyEDA dialects
- An archive builder for fabrication ZIP packages
"""
from __future__ import annotations

import os
import zipfile
from collections.abc import Callable, Mapping
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Sample CAM files
# ---------------------------------------------------------------------------

KICAD_OUTLINE = """\
%TF.GenerationSoftware,KiCad,Pcbnew,7.0.1*%
%TF.CreationDate,2024-03-05T14:22:10+01:00*%
%TF.FileFunction,Profile,NP*%
%FSLAX46Y46*%
G04 Gerber Fmt 4.6, Leading zero omitted, Abs format (unit mm)*
G04 Created by KiCad (PCBNEW 7.0.1) date 2024-03-05 14:22:10*
%MOMM*%
%LPD*%
G01*
G04 APERTURE LIST*
%ADD10C,0.100000*%
G04 APERTURE END LIST*
D10*
X100000000Y-50000000D02*
X150000000D01*
Y-90000000D01*
X100000000D01*
Y-50000000D01*
M02*
"""

KICAD_SILKSCREEN = """\
%TF.GenerationSoftware,KiCad,Pcbnew,7.0.1*%
%TF.CreationDate,2024-03-05T14:22:10+01:00*%
%TF.FileFunction,Legend,Top*%
%FSLAX46Y46*%
G04 Created by KiCad (PCBNEW 7.0.1) date 2024-03-05 14:22:10*
%MOMM*%
%LPD*%
G01*
%ADD10C,0.150000*%
D10*
X101000000Y-51000000D02*
X105000000Y-51000000D01*
X105000000Y-55000000D01*
X101000000Y-55000000D01*
X101000000Y-51000000D01*
X110000000Y-60000000D03*
G75*
G02*
X112000000Y-58000000I2000000J0D01*
G01*
M02*
"""

KICAD_COPPER = """\
%TF.FileFunction,Copper,L1,Top*%
%FSLAX46Y46*%
%MOMM*%
%LPD*%
G01*
%ADD10C,0.250000*%
%ADD11R,1.500000X1.000000*%
D10*
X100000000Y-60000000D02*
X120000000Y-60000000D01*
D11*
X125000000Y-70000000D03*
G36*
X130000000Y-70000000D02*
X135000000Y-70000000D01*
X135000000Y-75000000D01*
X130000000Y-70000000D01*
G37*
M02*
"""

EASYEDA_SILKSCREEN = """\
G04 EasyEDA v6.5.22, 2023-05-01 10:11:12*
G04 Layer: TopSilkscreenLayer*
G04 Scale: 100 percent, Rotated: No, Reflected: No*
G04 Dimensions in millimeters*
%FSLAX45Y45*%
%MOMM*%
%ADD10C,0.1524*%
D10*
X1000000Y1000000D02*
G01X1500000Y1000000D01*
X1500000Y1500000D01*
M02*
"""

MODAL_D_GERBER = """\
%FSLAX24Y24*%
%MOIN*%
%ADD10C,0.010*%
D10*
X0Y0D02*
X1000Y0D01*
X2000Y0*
X2000Y1000*
M02*
"""

KICAD_DRILL = """\
M48
; DRILL file {KiCad 7.0.1} date 2024-03-05T14:22:10+0100
; FORMAT={-:-/ absolute / metric / decimal}
; #@! TF.CreationDate,2024-03-05T14:22:10+01:00
FMAT,2
METRIC
T1C0.800
T2C1.000
%
G90
G05
T1
X110.0Y-60.0
X115.5Y-62.25
T2
X120.0Y-65.0
X121.0Y-66.0G85X123.0Y-66.0
T0
M30
"""

LZ_DRILL = """\
M48
;FILE_FORMAT=2:4
INCH,LZ
T01C0.0300
%
T01
X005Y01
X0125Y0155
M30
"""

README = "Fabrication notes\nPlease use 1.6 mm FR4.\n"

MALFORMED_GERBER = """\
%FSLAX46Y46*%
%MOMM*%
%ADD10C,0.100000*%
D10*
X1000000Y2000000D02*
X12Q3D01*
M02*
"""


# ---------------------------------------------------------------------------
# Environment Setup
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest environment for determinism."""
    deterministic_env = {
        "LC_ALL": "C",
        "LANG": "C",
        "TZ": "UTC",
        "PYTHONHASHSEED": "0",
    }
    for key, value in deterministic_env.items():
        os.environ.setdefault(key, value)


# ---------------------------------------------------------------------------
# Fixtures: Archives
# ---------------------------------------------------------------------------

ZipBuilder = Callable[..., Path]

SOURCE_DATE_TIME = (2024, 3, 5, 14, 22, 10)


def write_zip(path: Path, members: Mapping[str, str | bytes]) -> Path:
    """Write ``members`` into a deflated ZIP at ``path``, in mapping order."""
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in members.items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            zf.writestr(zipfile.ZipInfo(name, date_time=SOURCE_DATE_TIME), data)
    return path


@pytest.fixture
def make_zip(tmp_path: Path) -> ZipBuilder:
    """Fixture returning a builder ``make_zip(members, name="board.zip")``."""

    def _build(members: Mapping[str, str | bytes], name: str = "board.zip") -> Path:
        return write_zip(tmp_path / name, members)

    return _build


@pytest.fixture
def board_members() -> dict[str, str]:
    """A small KiCad-style package with every layer role the engine touches."""
    return {
        "board-Edge_Cuts.gbr": KICAD_OUTLINE,
        "board-F_SilkS.gbr": KICAD_SILKSCREEN,
        "board-F_Cu.gbr": KICAD_COPPER,
        "board.drl": KICAD_DRILL,
        "README.txt": README,
    }


@pytest.fixture
def board_zip(make_zip: ZipBuilder, board_members: dict[str, str]) -> Path:
    return make_zip(board_members)
