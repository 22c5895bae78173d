"""
Parallel Workers - Demonstrates Independent Execution Contexts
==============================================================

Each worker owns its own heap and execution thread, so calls into different
workers run in parallel while calls into the same worker are serialized.

Every worker here runs a script whose sync handler calls back into the host,
which sleeps to simulate I/O:

    Sequential: 4 workers x 1s = ~4 seconds
    Parallel:   ~1 second

Requirements: None beyond jsworker itself

Usage:
    python main.py
"""

import time
from concurrent.futures import ThreadPoolExecutor

import jsworker


SCRIPT = """
$recvSync(function (msg) {
  var fetched = $sendSync(msg);
  return fetched.toUpperCase();
});
"""


def slow_fetch(msg):
    time.sleep(1)
    return f"data for {msg}"


def main():
    workers = [jsworker.create(on_sync_message=slow_fetch) for _ in range(4)]
    try:
        for i, worker in enumerate(workers):
            worker.load(f"fetcher-{i}.js", SCRIPT)

        start = time.time()
        with ThreadPoolExecutor(max_workers=len(workers)) as pool:
            futures = [pool.submit(w.send_sync, f"item-{i}") for i, w in enumerate(workers)]
            results = [f.result() for f in futures]
        elapsed = time.time() - start

        for result in results:
            print(f"  {result}")
        print(f"{len(workers)} workers finished in {elapsed:.2f}s")
    finally:
        for worker in workers:
            worker.dispose()


if __name__ == "__main__":
    main()
