"""
Integration tests for running several workers from several host threads.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from jsworker.exceptions import InvalidHandleError, TerminationRequestedError


RELAY_SCRIPT = "$recvSync(function (m) { return $sendSync(m); });"


@pytest.mark.integration
class TestParallelWorkers:
    def test_slow_worker_does_not_block_other_worker(self, make_worker):
        finished = []
        lock = threading.Lock()

        def slow_reply(msg):
            time.sleep(0.3)
            return "slow:" + msg

        slow = make_worker(on_sync_message=slow_reply)
        fast = make_worker(on_sync_message=lambda msg: "fast:" + msg)
        slow.load("relay.js", RELAY_SCRIPT)
        fast.load("relay.js", RELAY_SCRIPT)

        def run(worker, name):
            reply = worker.send_sync(name)
            with lock:
                finished.append(name)
            return reply

        with ThreadPoolExecutor(max_workers=2) as pool:
            slow_future = pool.submit(run, slow, "a")
            time.sleep(0.05)
            fast_future = pool.submit(run, fast, "b")
            assert slow_future.result(timeout=5) == "slow:a"
            assert fast_future.result(timeout=5) == "fast:b"

        assert finished == ["b", "a"]

    def test_calls_into_one_worker_are_serialized(self, make_worker):
        worker = make_worker()
        worker.load("counter.js", """
var inside = 0, maxInside = 0, count = 0;
$recvSync(function (m) {
  inside++;
  maxInside = Math.max(maxInside, inside);
  count++;
  inside--;
  return String(count);
});
""")

        with ThreadPoolExecutor(max_workers=8) as pool:
            replies = list(pool.map(lambda i: worker.send_sync(str(i)), range(200)))

        assert sorted(int(r) for r in replies) == list(range(1, 201))
        worker.load("check.js", "$recvSync(function () { return String(maxInside); });")
        assert worker.send_sync("") == "1"

    def test_many_workers_in_parallel(self, make_worker):
        workers = []
        for i in range(6):
            worker = make_worker()
            worker.load(f"w{i}.js", f"$recvSync(function (m) {{ return 'w{i}:' + m; }});")
            workers.append(worker)

        with ThreadPoolExecutor(max_workers=6) as pool:
            replies = list(pool.map(lambda pair: pair[1].send_sync(str(pair[0])), enumerate(workers)))

        assert replies == [f"w{i}:{i}" for i in range(6)]

    def test_terminate_from_another_thread(self, make_worker):
        started = threading.Event()

        def block(msg):
            started.set()
            time.sleep(0.3)
            return "done"

        worker = make_worker(on_sync_message=block)
        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(worker.load, "slow.js", "$sendSync('go');")
            assert started.wait(timeout=5)
            worker.terminate_execution()
            with pytest.raises(TerminationRequestedError):
                future.result(timeout=5)

    def test_dispose_from_host_callback(self, make_worker):
        holder = {}

        def on_message(msg):
            holder["worker"].dispose()

        worker = make_worker(on_message=on_message)
        holder["worker"] = worker
        worker.load("bye.js", "$send('bye');")
        assert worker.disposed
        with pytest.raises(InvalidHandleError):
            worker.send("x")
