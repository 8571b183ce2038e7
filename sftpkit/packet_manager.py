"""Keeps responses in the order their requests arrived, as the protocol requires."""

from __future__ import annotations

import bisect
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable

from .requests import ClosePacket, ReadPacket, WritePacket

DEFAULT_WORKER_COUNT = 8


@dataclass
class OrderedRequest:
    """A request packet tagged with its arrival order."""

    packet: Any
    order_id: int

    @property
    def id(self) -> int:
        return self.packet.id


@dataclass
class OrderedResponse:
    """A response packet tagged with the order of the request it answers."""

    packet: Any
    order_id: int

    @property
    def id(self) -> int:
        return self.packet.id

    def marshal_packet(self) -> tuple[bytes, bytes]:
        marshal_packet = getattr(self.packet, "marshal_packet", None)
        if callable(marshal_packet):
            return marshal_packet()
        return self.packet.marshal_binary(), b""

    def marshal_binary(self) -> bytes:
        return self.packet.marshal_binary()


def _order(item: Any) -> int:
    return item.order_id


class PacketManager:
    """Sends responses through ``sender.send_packet`` in request order."""

    def __init__(self, sender: Any, worker_count: int = DEFAULT_WORKER_COUNT) -> None:
        self.sender = sender
        self.worker_count = worker_count
        self._incoming: list[OrderedRequest] = []
        self._outgoing: list[OrderedResponse] = []
        self._lock = threading.Lock()
        self._idle = threading.Condition()
        self._working = 0
        self._packet_count = 0
        self._closed = False

    def new_order_id(self) -> int:
        self._packet_count += 1
        return self._packet_count

    def next_order_id(self) -> int:
        """The order id the next request will get, without using it up."""
        return self._packet_count + 1

    def new_ordered_request(self, packet: Any) -> OrderedRequest:
        return OrderedRequest(packet, self.new_order_id())

    def new_ordered_response(self, packet: Any, order_id: int) -> OrderedResponse:
        return OrderedResponse(packet, order_id)

    def incoming_packet(self, request: OrderedRequest) -> None:
        """Register a request that is about to be handled."""
        if self._closed:
            raise RuntimeError("packet manager is closed")
        with self._idle:
            self._working += 1
        with self._lock:
            bisect.insort(self._incoming, request, key=_order)
            self._maybe_send()

    def ready_packet(self, response: OrderedResponse) -> None:
        """Register a response as ready; it is sent once all earlier ones are."""
        try:
            with self._lock:
                bisect.insort(self._outgoing, response, key=_order)
                self._maybe_send()
        finally:
            with self._idle:
                if self._working <= 0:
                    raise RuntimeError("response without a pending request")
                self._working -= 1
                if self._working == 0:
                    self._idle.notify_all()

    def close(self) -> None:
        """Wait until every registered request is answered, then stop."""
        self._wait_idle()
        self._closed = True

    def _wait_idle(self) -> None:
        with self._idle:
            self._idle.wait_for(lambda: self._working == 0)

    def _maybe_send(self) -> None:
        while self._incoming and self._outgoing:
            if self._incoming[0].order_id != self._outgoing[0].order_id:
                break
            self._incoming.pop(0)
            response = self._outgoing.pop(0)
            self.sender.send_packet(response)

    def worker_channel(
        self, run_worker: Callable[["queue.Queue[OrderedRequest | None]"], None]
    ) -> "queue.Queue[OrderedRequest | None]":
        """Start workers and return the queue that feeds them requests.

        ``run_worker`` is called with a queue and starts one worker that takes
        requests from it until it gets None. Reads and writes go to
        ``worker_count`` parallel workers; everything else goes to a single
        worker, in order. Putting None on the returned queue shuts down.
        """
        rw_queue: queue.Queue[OrderedRequest | None] = queue.Queue(maxsize=self.worker_count)
        for _ in range(self.worker_count):
            run_worker(rw_queue)

        cmd_queue: queue.Queue[OrderedRequest | None] = queue.Queue(maxsize=1)
        run_worker(cmd_queue)

        packets: queue.Queue[OrderedRequest | None] = queue.Queue(maxsize=self.worker_count)
        threading.Thread(
            target=self._dispatch, args=(packets, rw_queue, cmd_queue), daemon=True
        ).start()
        return packets

    def _dispatch(
        self,
        packets: "queue.Queue[OrderedRequest | None]",
        rw_queue: "queue.Queue[OrderedRequest | None]",
        cmd_queue: "queue.Queue[OrderedRequest | None]",
    ) -> None:
        while (request := packets.get()) is not None:
            if isinstance(request.packet, (ReadPacket, WritePacket)):
                self.incoming_packet(request)
                rw_queue.put(request)
                continue
            if isinstance(request.packet, ClosePacket):
                # reads and writes on the handle must finish before it closes
                self._wait_idle()
            self.incoming_packet(request)
            cmd_queue.put(request)
        for _ in range(self.worker_count):
            rw_queue.put(None)
        cmd_queue.put(None)
        self.close()