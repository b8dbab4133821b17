import struct

import pytest

from lakepool.droplet import DropletOverflowError, StaleDropletError
from lakepool.lake import Lake
from lakepool.meta import LakeError, LakeSnapshot, SandboxGuard


def _run(lake, *steps):
    """Apply allocations (ints) and method names (strings) in order; return used bytes."""
    for step in steps:
        if isinstance(step, int):
            lake.alloc(step)
        else:
            getattr(lake, step)()
    return lake.used()


def _fixed_with(lake, payload):
    droplet = lake.alloc(len(payload))
    droplet[:] = payload
    return droplet


def _dyn_with(lake, payload):
    return lake.process(lambda _: payload)


MAKERS = [_fixed_with, _dyn_with]


# --- basic lake behaviour ---------------------------------------------------


def test_new_lake_is_empty():
    lake = Lake(128)
    assert (lake.used(), lake.remaining()) == (0, 128)
    assert lake.is_empty()
    assert not lake.is_full()


def test_alloc_fixed_droplet():
    lake = Lake(64)
    droplet = lake.alloc(16)
    assert (lake.used(), lake.remaining()) == (16, 48)
    assert droplet.as_bytes() == bytes(16)


def test_alloc_overflow():
    lake = Lake(16)
    assert lake.alloc(32) is None
    assert lake.used() == 0


@pytest.mark.parametrize("zeroing, expected", [(True, bytes(4)), (False, b"abcd")])
def test_reset_zeroing(zeroing, expected):
    lake = Lake(16)
    lake.alloc(4)
    lake.zeroing = zeroing
    lake.as_memoryview()[:] = b"abcd"
    lake.reset()
    assert lake.as_bytes() == b""
    assert lake.used() == 0
    assert lake.peek(4) == expected


@pytest.mark.parametrize(
    "size, steps, expected",
    [
        (64, (10, "mark", 20, "reset_to_mark"), 10),
        (64, (8, "mark", 16, "move_mark", "reset_to_mark"), 24),
        (1024, ("mark", 100, "mark", 200, "reset_to_mark"), 100),
        (1024, ("mark", 100, "mark", 200, "reset_to_mark", "reset_to_mark"), 0),
        (32, (8, "reset_to_mark"), 8),
        (64, (8, "mark", 8, "clear", 4, "reset_to_mark"), 4),
    ],
)
def test_marks(size, steps, expected):
    assert _run(Lake(size), *steps) == expected


def test_clear_increments_generation():
    lake = Lake(64)
    _run(lake, 8, "clear")
    assert lake.generation == 1


def test_snapshot_and_rewind():
    lake = Lake(64)
    lake.alloc(16)
    snap = lake.snapshot()
    lake.alloc(16)
    lake.rewind(snap)
    assert lake.used() == 16
    assert snap == LakeSnapshot(offset=16)


def test_snapshot_rewind_keeps_mark_stack():
    lake = Lake(1024)
    snap = lake.snapshot()
    _run(lake, "mark", 100, 200)
    lake.rewind(snap)
    assert lake.used() == 0
    assert _run(lake, "reset_to_mark") == 0


def test_as_memoryview_and_bytes():
    lake = Lake(32)
    assert len(lake.as_memoryview()) == 0
    lake.alloc(8)
    lake.as_memoryview()[0] = 42
    assert lake.as_bytes()[0] == 42


def test_peek_behavior():
    lake = Lake(32)
    lake.alloc(8)
    assert lake.peek(8) == bytes(8)
    assert lake.peek(25) is None


@pytest.mark.parametrize("allocated, back, expected", [(32, 16, 16), (8, 100, 0)])
def test_reset_to(allocated, back, expected):
    lake = Lake(64)
    lake.alloc(allocated)
    lake.reset_to(back)
    assert lake.used() == expected


def test_stats():
    lake = Lake(100)
    lake.alloc(30)
    stats = lake.stats()
    assert (stats.used, stats.remaining, stats.capacity, stats.generation) == (30, 70, 100, 0)


@pytest.mark.parametrize(
    "size, prealloc, action",
    [
        (64, 0, lambda lake: lake.process(lambda remaining: bytes([42]) * (remaining + 1))),
        (64, 40, lambda lake: lake.split(32)),
        (4, 0, lambda lake: lake.alloc_struct("Q")),
        (8, 0, lambda lake: lake.alloc_slice("H", 5)),
        (8, 8, lambda lake: lake.process(lambda _: b"")),
    ],
)
def test_overflow_raises(size, prealloc, action):
    lake = Lake(size)
    if prealloc:
        lake.alloc(prealloc)
    with pytest.raises(LakeError):
        action(lake)
    assert lake.used() == prealloc


# --- process / split --------------------------------------------------------


def test_process_json():
    text = b'{"id":42,"name":"Alice"}'
    lake = Lake(512)
    droplet = lake.process(lambda remaining: text)
    assert droplet.as_str() == text.decode()
    assert lake.used() == len(text)


def test_process_fills_exactly():
    lake = Lake(128)
    droplet = lake.process(lambda space: bytes(i % 256 for i in range(space)))
    assert len(droplet) == 128
    assert lake.is_full()


def test_process_packet():
    data = Lake(256).process(lambda _: bytes([0xAB, 0xCD, 1, 2, 3, 4, 0xEF])).as_bytes()
    assert (data[0], data[1], data[-1]) == (0xAB, 0xCD, 0xEF)


def test_split_view():
    lake = Lake(1024)
    view = lake.split(256)
    view.alloc(64)
    assert (view.used(), view.remaining(), lake.used()) == (64, 192, 256)


def test_split_view_shares_buffer():
    lake = Lake(32)
    lake.alloc(8)
    droplet = lake.split(8).process(lambda _: b"hi")
    assert droplet.as_bytes() == b"hi"
    assert lake.as_bytes()[8:10] == b"hi"


def test_split_inherits_zeroing():
    lake = Lake(64)
    lake.zeroing = True
    assert lake.split(16).zeroing is True


# --- struct allocation ------------------------------------------------------


def test_alloc_struct():
    record = Lake(128).alloc_struct("II")
    struct.pack_into("II", record, 0, 42, 99)
    assert struct.unpack("II", record) == (42, 99)


def test_alloc_slice():
    values = Lake(128).alloc_slice("Q", 3)
    for index, value in enumerate((1, 2, 3)):
        values[index] = value
    assert values.tolist() == [1, 2, 3]


def test_alloc_struct_aligns_offset():
    lake = Lake(64)
    lake.alloc(1)
    lake.alloc_struct("I")
    assert lake.used() == 8


# --- droplets ---------------------------------------------------------------


def test_droplet_basic_usage_and_validation():
    droplet = Lake(128).alloc(16)
    assert droplet.is_valid()
    assert len(droplet) == 16
    assert droplet.as_bytes() == bytes(16)
    droplet[:] = b"\x01" * 16
    assert droplet.as_bytes() == b"\x01" * 16


def test_droplet_as_memoryview_and_bytes():
    droplet = Lake(64).alloc(8)
    droplet.as_memoryview()[:] = bytes([42]) * 8
    assert droplet.as_bytes() == bytes([42]) * 8


@pytest.mark.parametrize("make", MAKERS)
def test_droplet_item_write(make):
    droplet = make(Lake(64), bytes([7, 7, 7, 7]))
    droplet[2] = 42
    assert droplet[2] == 42
    assert droplet.as_bytes() == bytes([7, 7, 42, 7])


@pytest.mark.parametrize("make", MAKERS)
@pytest.mark.parametrize("values", [(1, 2), (1, 99)])
def test_droplet_deserialize_struct(make, values):
    droplet = make(Lake(64), struct.pack("<HH", *values))
    assert droplet.deserialize("<HH") == values


@pytest.mark.parametrize("make", MAKERS)
@pytest.mark.parametrize("values", [[1, 2, 3, 4], [10, 20, 30]])
def test_droplet_deserialize_slice(make, values):
    droplet = make(Lake(64), struct.pack(f"<{len(values)}H", *values))
    assert droplet.deserialize_slice("<H") == values


def test_droplet_deserialize_failure():
    droplet = Lake(64).alloc(5)
    assert droplet.deserialize("<HHHH") is None
    assert droplet.deserialize_slice("<I") is None


@pytest.mark.parametrize("make", MAKERS)
def test_droplet_invalid_after_reset(make):
    lake = Lake(64)
    droplet = make(lake, bytes([1, 2, 3, 4]))
    assert droplet.is_valid()
    lake.reset()
    assert not droplet.is_valid()
    with pytest.raises(StaleDropletError):
        droplet.as_bytes()


def test_droplet_lake_link():
    lake = Lake(64)
    droplet = lake.alloc(8)
    assert droplet.lake is lake
    droplet.lake.alloc(4)
    assert lake.used() == 12


def test_droplet_write_overflow():
    droplet = Lake(64).alloc(4)
    droplet.write(b"ab")
    with pytest.raises(DropletOverflowError):
        droplet.write(b"abc")


def test_droplet_dyn_process_and_access():
    droplet = Lake(64).process(lambda max_len: bytes([0xAB]) * min(max_len, 8))
    assert len(droplet) == 8
    assert droplet.as_bytes() == bytes([0xAB]) * 8
    assert droplet.is_valid()


def test_alloc_dyn():
    lake = Lake(32)
    lake.alloc(8)
    droplet = lake.alloc_dyn(10)
    assert len(droplet) == 10
    assert lake.used() == 18
    assert lake.alloc_dyn(20) is None


def test_alloc_dyn_invalid_after_rewind_past_it():
    lake = Lake(32)
    snap = lake.snapshot()
    lake.alloc(8)
    droplet = lake.alloc_dyn(8)
    assert droplet.is_valid()
    lake.rewind(snap)
    assert not droplet.is_valid()


# --- sandboxes --------------------------------------------------------------


@pytest.mark.parametrize("commit, expected", [(True, 24), (False, 8)])
def test_sandbox_guard_commit_or_rollback(commit, expected):
    lake = Lake(64)
    lake.alloc(8)
    with SandboxGuard(lake, lake.used()) as sandbox:
        sandbox.view().alloc(16)
        if commit:
            sandbox.commit()
    assert lake.used() == expected


def test_sandbox_guard_commit_and_return():
    lake = Lake(64)
    lake.alloc(4)
    with SandboxGuard(lake, lake.used()) as sandbox:
        sandbox.view().alloc(12)
        returned = sandbox.commit_and_return()
    assert returned is lake
    assert returned.used() == 16


def test_sandbox_guard_nested_sandboxes():
    lake = Lake(64)
    lake.alloc(8)
    with SandboxGuard(lake, lake.used()) as outer:
        outer.view().alloc(8)
        with SandboxGuard(outer.view(), outer.view().used()) as inner:
            inner.view().alloc(8)
            inner.commit()
        outer.commit()
    assert lake.used() == 24


def test_lake_sandbox_method_rolls_back():
    lake = Lake(64)
    lake.alloc(4)
    with lake.sandbox() as sandbox:
        assert sandbox.base_offset == 4
        lake.alloc(20)
    assert lake.used() == 4