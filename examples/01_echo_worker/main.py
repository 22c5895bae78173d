"""
Echo Worker - Demonstrates the Four Message Paths
=================================================

Loads a small script into one worker and exercises every direction of the
message bridge:

    host --send()------> $recv handler  --$send()-----> on_message
    host --send_sync()-> $recvSync handler --$sendSync()-> on_sync_message
                                               (reply flows back)

It also shows what a script fault looks like on the host side.

Requirements: None beyond jsworker itself

Usage:
    python main.py
"""

import json

import jsworker
from jsworker.config import setup_logging


SCRIPT = """
var seen = 0;

$recv(function (msg) {
  seen++;
  $send("echo #" + seen + ": " + msg);
});

$recvSync(function (msg) {
  var request = JSON.parse(msg);
  // Ask the host to do the arithmetic, then wrap its answer.
  var total = $sendSync(JSON.stringify(request.values));
  return JSON.stringify({ op: request.op, total: Number(total) });
});

$print("echo script loaded");
"""


def on_message(msg):
    print(f"[host] async message from script: {msg}")


def on_sync_message(msg):
    values = json.loads(msg)
    print(f"[host] sync request from script: {values}")
    return str(sum(values))


def main():
    setup_logging(level="WARNING")
    print(f"Engine: {jsworker.version()}")

    with jsworker.create(on_message=on_message, on_sync_message=on_sync_message) as worker:
        worker.load("echo.js", SCRIPT)

        worker.send("hello")
        worker.send("world")

        reply = worker.send_sync(json.dumps({"op": "sum", "values": [1, 2, 3, 4]}))
        print(f"[host] sync reply: {reply}")

        try:
            worker.load("broken.js", "var total = 1;\nundefinedFunction(total);\n")
        except jsworker.RuntimeFault as e:
            print("[host] script fault:")
            print(e.diagnostic)

        stats = worker.heap_statistics()
        print(f"[host] heap: {stats.used_heap_size} / {stats.total_heap_size} bytes used")


if __name__ == "__main__":
    main()
