"""
Script compilation, origins and diagnostics.
"""
from jsworker.core.script.origin import ScriptOrigin, next_script_name, resolve_origin
from jsworker.core.script.translator import ExceptionTranslator, SourceMap, SourceUnit
from jsworker.core.script.loader import ScriptLoader

__all__ = [
    "ScriptOrigin",
    "next_script_name",
    "resolve_origin",
    "ExceptionTranslator",
    "SourceMap",
    "SourceUnit",
    "ScriptLoader",
]
