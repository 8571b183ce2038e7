import pytest

from sftpkit.pool import BufPool


def test_get_returns_buffer_of_configured_length():
    pool = BufPool(4, 16)
    buf = pool.get()
    assert isinstance(buf, bytearray)
    assert len(buf) == 16


def test_put_then_get_reuses_buffer():
    pool = BufPool(4, 16)
    buf = pool.get()
    pool.put(buf)
    assert pool.get() is buf


def test_undersized_buffer_not_reused():
    pool = BufPool(4, 16)
    small = bytearray(8)
    pool.put(small)
    got = pool.get()
    assert got is not small
    assert len(got) == 16


def test_oversized_buffer_not_reused():
    pool = BufPool(4, 16)
    big = bytearray(16 * 2 + 1)
    pool.put(big)
    got = pool.get()
    assert got is not big
    assert len(got) == 16


def test_larger_buffer_within_limit_is_trimmed():
    pool = BufPool(4, 16)
    buf = bytearray(16 * 2)
    pool.put(buf)
    got = pool.get()
    assert got is buf
    assert len(got) == 16


def test_depth_limits_pooled_buffers():
    pool = BufPool(1, 8)
    first, second = bytearray(8), bytearray(8)
    pool.put(first)
    pool.put(second)
    assert pool.get() is first
    assert pool.get() is not second


def test_zero_depth_never_reuses():
    pool = BufPool(0, 8)
    buf = bytearray(8)
    pool.put(buf)
    assert pool.get() is not buf


def test_immutable_bytes_not_pooled():
    pool = BufPool(2, 4)
    pool.put(b"abcd")
    got = pool.get()
    assert isinstance(got, bytearray)
    assert len(got) == 4


@pytest.mark.parametrize("length", [0, -1])
def test_non_positive_length_rejected(length):
    with pytest.raises(ValueError):
        BufPool(1, length).get()