"""Single-threaded scheduler that runs every callback and timer of the pendant.

Device readers and the socket client live on their own threads; they hand
their work to `EventLoop.post` so that the translation engine, the heartbeat
and the g-code senders all run one at a time on the loop thread.
"""
import heapq
import itertools
import logging
import threading
import time

LOG = logging.getLogger("cncpad.loop")


class TimerHandle:
    __slots__ = ("when", "seq", "callback", "args", "cancelled")

    def __init__(self, when, seq, callback, args):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def __lt__(self, other):
        return (self.when, self.seq) < (other.when, other.seq)


class EventLoop:
    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._heap = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._stop = threading.Event()
        self._t = None

    def time(self) -> float:
        return self._clock()

    def call_later(self, delay: float, callback, *args) -> TimerHandle:
        """Schedule `callback(*args)` after `delay` seconds; returns a cancellable handle."""
        with self._cond:
            handle = TimerHandle(self._clock() + max(0.0, delay), next(self._seq), callback, args)
            heapq.heappush(self._heap, handle)
            self._cond.notify()
        return handle

    def post(self, callback, *args) -> TimerHandle:
        """Run `callback(*args)` on the loop as soon as possible, after anything already due."""
        return self.call_later(0.0, callback, *args)

    def _pop_due(self):
        with self._cond:
            now = self._clock()
            while self._heap and self._heap[0].cancelled:
                heapq.heappop(self._heap)
            if self._heap and self._heap[0].when <= now:
                return heapq.heappop(self._heap)
            return None

    def run_pending(self) -> int:
        """Run every callback that is due now, in schedule order. Returns how many ran."""
        ran = 0
        while True:
            handle = self._pop_due()
            if handle is None:
                return ran
            ran += 1
            try:
                handle.callback(*handle.args)
            except Exception:
                LOG.exception("callback %r failed", handle.callback)

    def _next_delay(self):
        with self._cond:
            live = [h for h in self._heap if not h.cancelled]
            if not live:
                return None
            return max(0.0, min(live).when - self._clock())

    def start(self):
        self._stop.clear()
        self._t = threading.Thread(target=self._loop, name="EventLoop", daemon=True)
        self._t.start()

    def stop(self):
        self._stop.set()
        with self._cond:
            self._cond.notify()
        if self._t:
            self._t.join(timeout=1.0)

    def _loop(self):
        while not self._stop.is_set():
            self.run_pending()
            with self._cond:
                if self._stop.is_set():
                    break
                delay = self._next_delay()
                # call_later() notifies under the same lock, so nothing is missed
                self._cond.wait(timeout=0.5 if delay is None else min(delay, 0.5))
