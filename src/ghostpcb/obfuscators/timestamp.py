"""Rewrite dates and generator names in comments and header attributes."""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime

import numpy as np

from ..cam.model import Command, Comment, HeaderDirective, LayerFile
from .params import GENERATOR_SPELLINGS, PerturbationParams

_TIMESTAMP_RE = re.compile(
    r"(?P<iso>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?P<iso_sec>:\d{2})?(?P<iso_frac>\.\d+)?)"
    r"|(?P<datetime>\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2})"
    r"|(?P<ymd_slash>\d{4}/\d{2}/\d{2})"
    r"|(?P<mdy_slash>\d{2}/\d{2}/\d{4})"
    r"|(?P<ymd>\d{4}-\d{2}-\d{2})"
)

_GENERATOR_RES = {family: re.compile(rf"\b{family}\b", re.IGNORECASE) for family in GENERATOR_SPELLINGS}


def _format_match(match: re.Match[str], when: datetime) -> str:
    if match.group("iso"):
        text = when.strftime("%Y-%m-%dT%H:%M")
        if match.group("iso_sec"):
            text += when.strftime(":%S")
        if match.group("iso_frac"):
            text += "." + "0" * (len(match.group("iso_frac")) - 1)
        return text
    if match.group("datetime"):
        # Keep the original separator between date and time.
        separator = match.group("datetime")[10:-8]
        return when.strftime("%Y-%m-%d") + separator + when.strftime("%H:%M:%S")
    if match.group("ymd_slash"):
        return when.strftime("%Y/%m/%d")
    if match.group("mdy_slash"):
        return when.strftime("%m/%d/%Y")
    return when.strftime("%Y-%m-%d")


def rewrite_text(text: str, params: PerturbationParams) -> str:
    """Replace every date in ``text`` and respell known generator names."""
    text = _TIMESTAMP_RE.sub(lambda match: _format_match(match, params.timestamp), text)
    for family, pattern in _GENERATOR_RES.items():
        spelling = params.generator_spellings.get(family)
        if spelling is not None:
            text = pattern.sub(spelling, text)
    return text


def obfuscate_timestamps(layer: LayerFile, params: PerturbationParams, rng: np.random.Generator) -> LayerFile:
    commands: list[Command] = []
    changed = False
    for command in layer.commands:
        if isinstance(command, Comment):
            text = rewrite_text(command.text, params)
            if text != command.text:
                command = replace(command, text=text, raw=None)
                changed = True
        elif isinstance(command, HeaderDirective) and command.value:
            value = rewrite_text(command.value, params)
            if value != command.value:
                command = replace(command, value=value, raw=None)
                changed = True
        commands.append(command)
    return layer.with_commands(commands) if changed else layer
