"""
Script origin records attached to every compiled unit.
"""
import itertools
import threading
from typing import Optional

from pydantic import BaseModel, Field

from jsworker.config.defaults import SCRIPT_NAME_PREFIX

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


class ScriptOrigin(BaseModel):
    """Where a unit of source text came from.

    Only ``script_name``, ``line_offset`` and ``column_offset`` affect
    diagnostics; the remaining fields are carried for the host's benefit.
    An empty ``script_name`` is replaced by a synthetic ``VM<n>`` name at load.
    """
    script_name: str = ""
    line_offset: int = Field(default=0, ge=INT32_MIN, le=INT32_MAX)
    column_offset: int = Field(default=0, ge=INT32_MIN, le=INT32_MAX)
    is_shared_cross_origin: bool = False
    script_id: int = Field(default=0, ge=INT32_MIN, le=INT32_MAX)
    is_embedder_debug_script: bool = False
    source_map_url: str = ""
    is_opaque: bool = False


_script_sequence = itertools.count()
_script_sequence_lock = threading.Lock()


def next_script_name() -> str:
    with _script_sequence_lock:
        seq = next(_script_sequence)
    return f"{SCRIPT_NAME_PREFIX}{seq}"


def resolve_origin(origin: Optional[ScriptOrigin]) -> ScriptOrigin:
    """Return a copy of ``origin`` with a script name filled in.

    The caller's record is never mutated.
    """
    if origin is None:
        origin = ScriptOrigin()
    if origin.script_name:
        return origin.model_copy()
    return origin.model_copy(update={"script_name": next_script_name()})
