"""
Script Timeout - Demonstrates Terminating Runaway Scripts
=========================================================

Two ways to stop a script that runs too long:

1. terminate_after(): the host requests termination after a deadline. The
   script stops at its next crossing into the host.
2. WorkerConfig(time_limit=...): the engine interrupts any single call that
   runs past the limit, even a tight loop that never calls the host. The
   limit is wall-clock time per call and per worker. On quickjs releases
   where jsworker cannot install its own interrupt handler it falls back to
   the binding's limit, which counts CPU time of the whole process: with
   several busy workers it then fires early.

terminate_execution() also stops a tight loop, the same way the time limit
does. All of these leave the worker usable afterwards.

Requirements: None beyond jsworker itself

Usage:
    python main.py
"""

import time

import jsworker
from jsworker import WorkerConfig


def main():
    # 1. Host-side deadline while the script waits on the host.
    def wait_on_host(msg):
        time.sleep(0.5)
        return "too late"

    with jsworker.create(on_sync_message=wait_on_host) as worker:
        timer = worker.terminate_after(0.1)
        try:
            worker.load("waiting.js", "var r = $sendSync('work');\n$print('never printed');")
        except jsworker.TerminationRequestedError as e:
            print("Terminated by deadline:")
            print(e.diagnostic)
        finally:
            timer.cancel()

        worker.load("after.js", "$print('worker still usable');")

    # 2. Engine time limit for a loop that never yields.
    with jsworker.create(config=WorkerConfig(time_limit=0.2)) as worker:
        start = time.time()
        try:
            worker.load("spin.js", "while (true) {}")
        except jsworker.TerminationRequestedError:
            print(f"Busy loop interrupted after {time.time() - start:.2f}s")

    # 3. Host-side deadline for a loop that never yields.
    with jsworker.create() as worker:
        timer = worker.terminate_after(0.2)
        try:
            worker.load("spin.js", "var i = 0; while (true) { i++; }")
        except jsworker.TerminationRequestedError:
            print("Busy loop terminated by deadline")
        finally:
            timer.cancel()


if __name__ == "__main__":
    main()
