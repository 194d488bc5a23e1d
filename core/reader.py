"""Base reader abstraction

Readers turn a physical controller into a stream of `core.state` device
events (`DeviceAttached`, `DeviceRemoved`, `RawInputEvent`).
"""
import abc
import logging

LOG = logging.getLogger("cncpad.reader")


class DeviceReader(abc.ABC):
    def __init__(self):
        self._subs = []

    @abc.abstractmethod
    def start(self):
        raise NotImplementedError

    @abc.abstractmethod
    def stop(self):
        raise NotImplementedError

    def subscribe(self, callback):
        self._subs.append(callback)

    def _emit(self, event):
        LOG.debug("device event -> %s", event)
        for cb in self._subs:
            try:
                cb(event)
            except Exception:
                LOG.exception("subscriber callback failed")
