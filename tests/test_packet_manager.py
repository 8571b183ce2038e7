import io
import queue
import threading
import time
from dataclasses import dataclass

import pytest

from sftpkit.codec import send_packet
from sftpkit.packet_manager import OrderedRequest, OrderedResponse, PacketManager
from sftpkit.requests import ClosePacket, OpenPacket, ReadPacket, WritePacket
from sftpkit.responses import HandlePacket


@dataclass
class FakePacket:
    id: int
    oid: int

    def marshal_binary(self):
        return bytes(4)


def fake(rid, order):
    return FakePacket(rid, order)


class QueueSender:
    def __init__(self):
        self.sent = queue.Queue()

    def send_packet(self, packet):
        self.sent.put(packet)


TABLE1 = [
    (fake(0, 0), fake(0, 0)),
    (fake(1, 1), fake(1, 1)),
    (fake(2, 2), fake(2, 2)),
    (fake(3, 3), fake(3, 3)),
]
TABLE2 = [
    (fake(10, 0), fake(12, 2)),
    (fake(11, 1), fake(11, 1)),
    (fake(12, 2), fake(13, 3)),
    (fake(13, 3), fake(10, 0)),
]
TABLE3 = [
    (fake(7, 0), fake(7, 0)),
    (fake(1, 1), fake(1, 1)),
    (fake(9, 2), fake(3, 3)),
    (fake(3, 3), fake(9, 2)),
]
TABLE4 = [
    (fake(1, 0), fake(1, 0)),
    (fake(1, 1), fake(1, 1)),
    (fake(1, 2), fake(1, 3)),
    (fake(1, 3), fake(1, 2)),
]


def test_packet_manager_orders_responses():
    sender = QueueSender()
    mgr = PacketManager(sender)
    for table in (TABLE1, TABLE2, TABLE3, TABLE4):
        pairs = [
            (OrderedRequest(pin, pin.oid), OrderedResponse(pout, pout.oid))
            for pin, pout in table
        ]
        for request, _ in pairs:
            mgr.incoming_packet(request)
        for _, response in pairs:
            mgr.ready_packet(response)
        for pin, _ in table:
            sent = sender.sent.get(timeout=5)
            assert isinstance(sent, OrderedResponse)
            assert sent.id == pin.id
    mgr.close()
    assert sender.sent.empty()


def test_order_ids():
    mgr = PacketManager(QueueSender())
    assert mgr.next_order_id() == 1
    assert mgr.new_order_id() == 1
    assert mgr.next_order_id() == 2
    request = mgr.new_ordered_request(FakePacket(5, 0))
    assert request.order_id == 2
    assert request.id == 5
    response = mgr.new_ordered_response(FakePacket(5, 0), request.order_id)
    assert response.order_id == request.order_id
    assert response.id == 5


def test_incoming_after_close_raises():
    mgr = PacketManager(QueueSender())
    mgr.close()
    with pytest.raises(RuntimeError):
        mgr.incoming_packet(OrderedRequest(FakePacket(1, 1), 1))


def test_ready_without_request_raises():
    mgr = PacketManager(QueueSender())
    with pytest.raises(RuntimeError):
        mgr.ready_packet(OrderedResponse(FakePacket(1, 1), 1))


def test_ordered_response_marshals_like_its_packet():
    packet = HandlePacket(id=42, handle="somehandle")
    wrapped, plain = io.BytesIO(), io.BytesIO()
    send_packet(wrapped, OrderedResponse(packet, 1))
    send_packet(plain, packet)
    assert wrapped.getvalue() == plain.getvalue()


def test_worker_channel_keeps_request_order():
    sender = QueueSender()
    mgr = PacketManager(sender, worker_count=4)

    def run_worker(requests):
        def work():
            while (request := requests.get()) is not None:
                if isinstance(request.packet, (ReadPacket, WritePacket)):
                    # later requests finish first
                    time.sleep(0.002 * (20 - request.id))
                mgr.ready_packet(
                    mgr.new_ordered_response(
                        HandlePacket(id=request.id, handle="h"), request.order_id
                    )
                )

        threading.Thread(target=work, daemon=True).start()

    packets = mgr.worker_channel(run_worker)
    requests = [
        OpenPacket(id=1, path="/a"),
        ReadPacket(id=2, handle="h"),
        ReadPacket(id=3, handle="h"),
        WritePacket(id=4, handle="h"),
        ReadPacket(id=5, handle="h"),
        ClosePacket(id=6, handle="h"),
        OpenPacket(id=7, path="/b"),
        WritePacket(id=8, handle="h"),
        ReadPacket(id=9, handle="h"),
    ]
    for packet in requests:
        packets.put(mgr.new_ordered_request(packet))
    packets.put(None)

    sent_ids = [sender.sent.get(timeout=5).id for _ in requests]
    assert sent_ids == [packet.id for packet in requests]