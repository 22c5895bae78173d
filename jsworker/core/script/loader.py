"""
Script loader: compiles and runs source text against a named origin.
"""
import logging
from typing import Optional

from jsworker.core.script.origin import ScriptOrigin, resolve_origin
from jsworker.core.script.translator import ExceptionTranslator
from jsworker.engine.base import EngineContext, EngineFault

logger = logging.getLogger(__name__)


class ScriptLoader:
    """Loads units into one context. Units share the context's global namespace."""

    def __init__(self, context: EngineContext, translator: ExceptionTranslator, worker_id: int):
        self.context = context
        self.translator = translator
        self.worker_id = worker_id

    def load(self, origin: Optional[ScriptOrigin], source: str) -> ScriptOrigin:
        """Compile ``source`` and run it once.

        Returns:
            The resolved origin the unit was attributed to.

        Raises:
            CompileError: If the source failed to compile. Nothing ran.
            RuntimeFault: If an uncaught fault escaped the unit.
            TerminationRequestedError: If the engine interrupted the unit.
        """
        resolved = resolve_origin(origin)
        padded, unit = self.translator.source_map.place(resolved, source)
        try:
            self.context.eval(padded)
        except EngineFault as fault:
            logger.debug(f"Worker {self.worker_id}: {fault.kind.value} fault loading {resolved.script_name}")
            raise self.translator.to_error(fault, self.worker_id) from fault
        logger.debug(
            f"Worker {self.worker_id}: loaded {resolved.script_name} "
            f"({len(unit.lines)} lines at engine line {unit.first_line})"
        )
        return resolved
