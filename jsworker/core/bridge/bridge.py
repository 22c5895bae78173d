"""
Message bridge between host code and one worker's script code.

Four directed paths, all carrying opaque text:

- host -> script, async: ``send()`` calls the handler registered with ``$recv``.
- host -> script, sync:  ``send_sync()`` calls the ``$recvSync`` handler and
  returns its reply.
- script -> host, async: ``$send(msg)`` delivers to the host's on_message.
- script -> host, sync:  ``$sendSync(msg)`` delivers to the host's
  on_sync_message and returns its reply into the script.

Async failures are hard errors. The sync paths must always produce a reply,
so their failures come back as ``"err: ..."`` sentinel texts instead.

Every method here runs on the worker's execution thread.
"""
import json
import logging
import sys
import threading
from typing import Any, Callable, Optional, TextIO

from jsworker.config.defaults import (
    BINDING_NAMES,
    SENTINELS,
    SENTINEL_PREFIX,
    BindingNames,
    SentinelDefaults,
)
from jsworker.core.bridge.registry import WorkerRegistry
from jsworker.core.script.origin import ScriptOrigin
from jsworker.core.script.translator import ExceptionTranslator
from jsworker.engine.base import EngineContext, EngineFault
from jsworker.exceptions import HandlerMissingError, NonTextReplyError, TerminationRequestedError
from jsworker.observability import metrics

logger = logging.getLogger(__name__)

HOST_TO_SCRIPT = "host_to_script"
HOST_TO_SCRIPT_SYNC = "host_to_script_sync"
SCRIPT_TO_HOST = "script_to_host"
SCRIPT_TO_HOST_SYNC = "script_to_host_sync"

BINDINGS_SCRIPT_NAME = "jsworker:bindings"
TERMINATED_MESSAGE = "execution terminated"

# Host callables are bound under these names, captured by the prelude and
# then deleted from the global object.
_HOST_PRINT = "__jsworker_print"
_HOST_RECV = "__jsworker_recv"
_HOST_RECV_SYNC = "__jsworker_recv_sync"
_HOST_SEND = "__jsworker_send"
_HOST_SEND_SYNC = "__jsworker_send_sync"
_HOST_NUL_REPLY = "__jsworker_nul_reply"

# Host bindings return null on success or an error text the wrapper throws.
# $sendSync's host binding returns the reply, or null once terminating.
# Text crosses into the host as C strings, so messages and sync replies
# containing NUL are rejected before they cross.
PRELUDE_TEMPLATE = """(function (g) {{
  var hostPrint = g.{host_print}, hostRecv = g.{host_recv}, hostRecvSync = g.{host_recv_sync};
  var hostSend = g.{host_send}, hostSendSync = g.{host_send_sync}, hostNulReply = g.{host_nul_reply};
  delete g.{host_print}; delete g.{host_recv}; delete g.{host_recv_sync};
  delete g.{host_send}; delete g.{host_send_sync}; delete g.{host_nul_reply};
  function check(err) {{ if (err != null) throw new Error(err); }}
  function hasNul(text) {{ return text.indexOf("\\u0000") !== -1; }}
  g[{print}] = function () {{
    check(hostPrint(Array.prototype.map.call(arguments, String).join(" ")));
  }};
  g[{recv}] = function (fn) {{
    if (typeof fn !== "function") throw new TypeError({recv} + " expects a function");
    check(hostRecv(fn));
  }};
  g[{recv_sync}] = function (fn) {{
    if (typeof fn !== "function") throw new TypeError({recv_sync} + " expects a function");
    check(hostRecvSync(function (msg) {{
      var reply = fn(msg);
      if (typeof reply === "string" && hasNul(reply)) {{
        return hostNulReply();
      }}
      return reply;
    }}));
  }};
  g[{send}] = function (msg) {{
    if (typeof msg !== "string") throw new TypeError({send} + " expects a string");
    if (hasNul(msg)) throw new TypeError({send} + " message contains a NUL character");
    check(hostSend(msg));
  }};
  g[{send_sync}] = function (msg) {{
    if (typeof msg !== "string") throw new TypeError({send_sync} + " expects a string");
    if (hasNul(msg)) throw new TypeError({send_sync} + " message contains a NUL character");
    var reply = hostSendSync(msg);
    if (reply == null) throw new Error({terminated});
    return reply;
  }};
}})(globalThis);
"""


def build_prelude(names: BindingNames) -> str:
    return PRELUDE_TEMPLATE.format(
        host_print=_HOST_PRINT,
        host_recv=_HOST_RECV,
        host_recv_sync=_HOST_RECV_SYNC,
        host_send=_HOST_SEND,
        host_send_sync=_HOST_SEND_SYNC,
        host_nul_reply=_HOST_NUL_REPLY,
        print=json.dumps(names.print),
        recv=json.dumps(names.recv),
        recv_sync=json.dumps(names.recv_sync),
        send=json.dumps(names.send),
        send_sync=json.dumps(names.send_sync),
        terminated=json.dumps(TERMINATED_MESSAGE),
    )


class MessageBridge:
    def __init__(
        self,
        worker_id: int,
        context: EngineContext,
        translator: ExceptionTranslator,
        registry: WorkerRegistry,
        terminating: threading.Event,
        record_failure: Callable[[str], None],
        names: BindingNames = BINDING_NAMES,
        sentinels: SentinelDefaults = SENTINELS,
        output: Optional[TextIO] = None,
    ):
        self.worker_id = worker_id
        self.context = context
        self.translator = translator
        self.registry = registry
        self.names = names
        self.sentinels = sentinels
        self._terminating = terminating
        self._record_failure = record_failure
        self._output = output
        # Last registration wins; one slot per kind.
        self._recv: Optional[Any] = None
        self._recv_sync: Optional[Any] = None
        self._nul_reply = False

    @property
    def has_handler(self) -> bool:
        return self._recv is not None

    @property
    def has_sync_handler(self) -> bool:
        return self._recv_sync is not None

    def install(self) -> None:
        """Install the reserved bindings into the context's global namespace."""
        self.context.bind(_HOST_PRINT, self._host_print)
        self.context.bind(_HOST_RECV, self._host_recv)
        self.context.bind(_HOST_RECV_SYNC, self._host_recv_sync)
        self.context.bind(_HOST_SEND, self._host_send)
        self.context.bind(_HOST_SEND_SYNC, self._host_send_sync)
        self.context.bind(_HOST_NUL_REPLY, self._host_nul_reply)
        padded, _ = self.translator.source_map.place(
            ScriptOrigin(script_name=BINDINGS_SCRIPT_NAME), build_prelude(self.names), internal=True
        )
        self.context.eval(padded)

    def clear(self) -> None:
        self._recv = None
        self._recv_sync = None

    # ------------------------------------------------------------------
    # host -> script
    # ------------------------------------------------------------------

    def send(self, msg: str) -> None:
        """Deliver ``msg`` to the script's async handler.

        Raises:
            HandlerMissingError: If the script never called ``$recv``.
            RuntimeFault: If the handler raised.
        """
        if self._recv is None:
            metrics.record_message(HOST_TO_SCRIPT, "handler_missing")
            raise HandlerMissingError(self.sentinels.recv_missing, self.worker_id, "async")
        try:
            self.context.call(self._recv, msg)
        except EngineFault as fault:
            metrics.record_message(HOST_TO_SCRIPT, "fault")
            raise self.translator.to_error(fault, self.worker_id) from fault
        metrics.record_message(HOST_TO_SCRIPT, "ok")

    def send_sync(self, msg: str) -> str:
        """Deliver ``msg`` to the script's sync handler and return its reply.

        Never raises for script-side problems; those come back as sentinel
        texts and the detail is recorded through ``record_failure``.
        """
        if self._recv_sync is None:
            metrics.record_message(HOST_TO_SCRIPT_SYNC, "handler_missing")
            self._record_failure(self.sentinels.recv_sync_missing)
            return self.sentinels.recv_sync_missing
        self._nul_reply = False
        try:
            reply = self.context.call(self._recv_sync, msg)
        except EngineFault as fault:
            error = self.translator.to_error(fault, self.worker_id)
            self._record_failure(error.diagnostic)
            if isinstance(error, TerminationRequestedError):
                metrics.record_message(HOST_TO_SCRIPT_SYNC, "terminated")
                return self.sentinels.terminated
            metrics.record_message(HOST_TO_SCRIPT_SYNC, "fault")
            return SENTINEL_PREFIX + fault.message
        if self._nul_reply:
            self._nul_reply = False
            metrics.record_message(HOST_TO_SCRIPT_SYNC, "nul_reply")
            self._record_failure(self.sentinels.nul_payload)
            return self.sentinels.nul_payload
        try:
            text = self._reply_text(reply)
        except NonTextReplyError as e:
            metrics.record_message(HOST_TO_SCRIPT_SYNC, "non_text")
            self._record_failure(e.message)
            return self.sentinels.non_string_reply
        metrics.record_message(HOST_TO_SCRIPT_SYNC, "ok")
        return text

    def _reply_text(self, reply: Any) -> str:
        if not isinstance(reply, str):
            raise NonTextReplyError(self.worker_id, type(reply).__name__)
        return reply

    # ------------------------------------------------------------------
    # script -> host (called by the engine while script code runs)
    # ------------------------------------------------------------------

    def _host_print(self, text: str) -> Optional[str]:
        if self._terminating.is_set():
            return TERMINATED_MESSAGE
        out = self._output or sys.stdout
        out.write(f"{text}\n")
        out.flush()
        return None

    def _host_recv(self, handler: Any) -> Optional[str]:
        if self._terminating.is_set():
            return TERMINATED_MESSAGE
        self._recv = handler
        return None

    def _host_recv_sync(self, handler: Any) -> Optional[str]:
        if self._terminating.is_set():
            return TERMINATED_MESSAGE
        self._recv_sync = handler
        return None

    def _host_nul_reply(self) -> None:
        # The $recvSync wrapper calls this instead of returning a reply with NUL.
        self._nul_reply = True
        return None

    def _host_send(self, msg: str) -> Optional[str]:
        if self._terminating.is_set():
            return TERMINATED_MESSAGE
        callbacks = self.registry.lookup(self.worker_id)
        if callbacks is None or callbacks.on_message is None:
            metrics.record_message(SCRIPT_TO_HOST, "handler_missing")
            return f"no host callback registered for {self.names.send}"
        try:
            callbacks.on_message(msg)
        except Exception:
            # The script does not observe the callback's outcome.
            logger.exception(f"Worker {self.worker_id}: host message callback failed")
            metrics.record_message(SCRIPT_TO_HOST, "callback_error")
        else:
            metrics.record_message(SCRIPT_TO_HOST, "ok")
        if self._terminating.is_set():
            return TERMINATED_MESSAGE
        return None

    def _host_send_sync(self, msg: str) -> Optional[str]:
        if self._terminating.is_set():
            return None
        callbacks = self.registry.lookup(self.worker_id)
        if callbacks is None or callbacks.on_sync_message is None:
            metrics.record_message(SCRIPT_TO_HOST_SYNC, "handler_missing")
            return self.sentinels.host_sync_missing
        try:
            reply = callbacks.on_sync_message(msg)
        except Exception:
            logger.exception(f"Worker {self.worker_id}: host sync callback failed")
            metrics.record_message(SCRIPT_TO_HOST_SYNC, "callback_error")
            return self.sentinels.host_sync_failed
        if self._terminating.is_set():
            return None
        if not isinstance(reply, str):
            logger.warning(
                f"Worker {self.worker_id}: host sync callback returned {type(reply).__name__}, expected str"
            )
            metrics.record_message(SCRIPT_TO_HOST_SYNC, "non_text")
            return self.sentinels.non_string_reply
        if "\x00" in reply:
            logger.warning(f"Worker {self.worker_id}: host sync callback reply contains a NUL character")
            metrics.record_message(SCRIPT_TO_HOST_SYNC, "nul_reply")
            return self.sentinels.nul_payload
        metrics.record_message(SCRIPT_TO_HOST_SYNC, "ok")
        # str is immutable; the engine copies it into the script heap
        # before this reference is dropped.
        return reply
