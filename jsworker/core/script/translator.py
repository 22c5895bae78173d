"""
Exception translation: engine faults to host-readable diagnostics.

A diagnostic has the form::

    <script-name>:<line>
    <offending source line>
        ^^^^^
    <stack trace, or the bare fault message>

When the fault carries no usable position, the diagnostic is the bare fault
message. The text is meant for people; it is stable but not a structured
format.

The engine stamps every position with the same resource name, so each loaded
unit is placed at its own range of engine lines (see ``SourceMap.place``).
That keeps faults raised later from handlers defined in earlier units
attributable to the right origin.
"""
import bisect
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from jsworker.config.defaults import MAX_RETAINED_UNITS
from jsworker.core.script.origin import ScriptOrigin
from jsworker.engine.base import EngineFault, FaultKind
from jsworker.exceptions import (
    CompileError,
    RuntimeFault,
    ScriptError,
    TerminationRequestedError,
)

MARKER = "^"


@dataclass
class SourceUnit:
    origin: ScriptOrigin
    lines: List[str]
    first_line: int  # engine line number of this unit's first line
    internal: bool = False  # installed by jsworker, skipped when locating faults

    @property
    def last_line(self) -> int:
        return self.first_line + len(self.lines) - 1

    def source_line(self, local_line: int) -> str:
        if 1 <= local_line <= len(self.lines):
            return self.lines[local_line - 1]
        return ""

    def display_position(self, local_line: int, column: Optional[int]) -> Tuple[int, Optional[int]]:
        """Apply the origin's offsets to a unit-relative position."""
        line = local_line + self.origin.line_offset
        if column is not None and local_line == 1:
            column += self.origin.column_offset
        return line, column


@dataclass
class SourceMap:
    """Engine line ranges of the units loaded into one context.

    Only the newest ``max_units`` script units keep their text; faults from
    code in older units fall back to the bare message and raw frames.
    Internal units are always kept.
    """
    units: List[SourceUnit] = field(default_factory=list)
    next_line: int = 1
    max_units: int = MAX_RETAINED_UNITS

    def place(self, origin: ScriptOrigin, source: str, internal: bool = False) -> Tuple[str, SourceUnit]:
        """Reserve a line range for ``source``.

        Returns the text to hand to the engine (padded with blank lines so it
        starts at the reserved line) and the unit describing it.
        """
        lines = source.split("\n")
        unit = SourceUnit(origin=origin, lines=lines, first_line=self.next_line, internal=internal)
        padded = "\n" * (self.next_line - 1) + source
        self.units.append(unit)
        self.next_line += len(lines)
        self._evict()
        return padded, unit

    def _evict(self) -> None:
        retained = [unit for unit in self.units if not unit.internal]
        if len(retained) <= self.max_units:
            return
        evicted = set(map(id, retained[: len(retained) - self.max_units]))
        self.units = [unit for unit in self.units if id(unit) not in evicted]

    def resolve(self, engine_line: int) -> Optional[Tuple[SourceUnit, int]]:
        """Map an engine line to ``(unit, unit-relative line)``."""
        starts = [unit.first_line for unit in self.units]
        index = bisect.bisect_right(starts, engine_line) - 1
        if index < 0:
            return None
        unit = self.units[index]
        if engine_line > unit.last_line:
            # End-of-input errors may point one past the newest unit.
            if unit is not self.units[-1]:
                return None
            return unit, len(unit.lines)
        return unit, engine_line - unit.first_line + 1


class ExceptionTranslator:
    def __init__(self, source_map: SourceMap, filename: str):
        self.source_map = source_map
        self.filename = filename
        self._position = re.compile(re.escape(filename) + r":(\d+)(?::(\d+))?")

    def _locate(self, frames: List[str]) -> Optional[Tuple[SourceUnit, int, Optional[int]]]:
        # Innermost frame with a position in a script unit. QuickJS reports no
        # position for frames of functions whose body sits on a single line.
        for frame in frames:
            match = self._position.search(frame)
            if match is None:
                continue
            resolved = self.source_map.resolve(int(match.group(1)))
            if resolved is None:
                continue
            unit, local_line = resolved
            if unit.internal:
                continue
            column = int(match.group(2)) if match.group(2) else None
            return unit, local_line, column
        return None

    def _rewrite_frame(self, frame: str) -> str:
        def replace(match: re.Match) -> str:
            resolved = self.source_map.resolve(int(match.group(1)))
            if resolved is None:
                return match.group(0)
            unit, local_line = resolved
            column = int(match.group(2)) if match.group(2) else None
            line, column = unit.display_position(local_line, column)
            if column is None:
                return f"{unit.origin.script_name}:{line}"
            return f"{unit.origin.script_name}:{line}:{column}"

        return self._position.sub(replace, frame)

    @staticmethod
    def _marker(source_line: str, column: Optional[int]) -> str:
        if column is not None and 1 <= column <= len(source_line):
            start = column - 1
            end = start + 1
            while end < len(source_line) and (source_line[end].isalnum() or source_line[end] in "_$"):
                end += 1
        else:
            start = len(source_line) - len(source_line.lstrip())
            end = len(source_line.rstrip())
        if end <= start:
            end = start + 1
        return " " * start + MARKER * (end - start)

    def translate(self, fault: EngineFault) -> str:
        """Render a fault as a single diagnostic string."""
        located = self._locate(fault.frames)
        if located is None:
            return fault.message + "\n"

        unit, local_line, column = located
        line, _ = unit.display_position(local_line, column)
        source_line = unit.source_line(local_line)

        out = [f"{unit.origin.script_name}:{line}", source_line, self._marker(source_line, column)]
        out.append(fault.message)
        # A parse position is not a stack trace.
        if fault.kind != FaultKind.SYNTAX:
            out.extend(self._rewrite_frame(frame) for frame in fault.frames)
        return "\n".join(out) + "\n"

    def to_error(self, fault: EngineFault, worker_id: Optional[int] = None) -> ScriptError:
        """Translate a fault and wrap it in the matching host-facing error."""
        diagnostic = self.translate(fault)
        if fault.kind == FaultKind.SYNTAX:
            return CompileError(diagnostic, worker_id)
        if fault.kind == FaultKind.INTERRUPTED:
            return TerminationRequestedError(diagnostic, worker_id)
        return RuntimeFault(diagnostic, worker_id)
