# lakepool

`lakepool` is a linear memory pool. A *lake* is a fixed-size byte buffer, and
*droplets* are regions carved from it one after another. Nothing is freed on
its own. To get memory back you can:

- mark a position and roll back to it,
- take a snapshot and rewind to it, or
- reset the whole lake, which starts a new generation.

Each droplet remembers the generation and position it came from. Once the lake
has been reset or rewound past it, the droplet refuses to be used.

It is a library only. It has no command-line tool.

## Installation

```
pip install lakepool
```

## Allocating droplets

```python
from lakepool.lake import Lake

lake = Lake(1024)
droplet = lake.alloc(64)          # None if it does not fit
droplet[0] = 42
assert lake.used() == 64
assert lake.remaining() == 960

lake.reset()                      # new generation
assert not droplet.is_valid()     # using it now raises StaleDropletError
```

`Lake.alloc_dyn(size)` works the same way for a size chosen at run time. It
returns a `DropletDyn`.

`Lake` also has these methods:

- `peek(size)` returns the bytes the next allocation would receive.
- `reset_to(n)` moves the offset back by `n` bytes, stopping at zero.
- `is_empty()` and `is_full()` report the fill level.
- `as_bytes()` and `as_memoryview()` return the allocated part of the buffer.
- `stats()` returns a `LakeStats` with `used`, `remaining`, `capacity` and `generation`.

Set `lake.zeroing = True` to have `reset()` overwrite the used bytes with zeros.

## Producing data in place

`process` calls a function with the number of free bytes. It copies what the
function returns into the lake and gives it back as a dynamically sized
droplet:

```python
from lakepool.lake import Lake
from lakepool.meta import LakeError

lake = Lake(512)
json_droplet = lake.process(lambda free: b'{"id":42,"name":"Alice"}')
assert json_droplet.as_str() == '{"id":42,"name":"Alice"}'

small = Lake(64)
try:
    small.process(lambda free: bytes(free + 1))
except LakeError:
    pass                          # the result did not fit
```

## Working with droplets

A droplet is a window onto the lake's buffer. You can do the following with it:

- Index and slice it. `len()` gives its size.
- Read it with `as_bytes()`, `as_memoryview()` or `as_str()`. `as_str()` returns `None` for invalid UTF-8.
- Read it with `as_array(typecode)`.

It also has a write cursor (`offset`), used by these methods:

- `write(data)`
- `write_byte(value)`
- `write_num_str(value)` writes a number's decimal digits.
- `write_num_str_fixed(value, length)` writes exactly `length` digits, zero-padded.
- `remaining()` gives the space left after the cursor.
- `reset()` moves the cursor back to the start.

A write that does not fit raises `DropletOverflowError`, which is a `LakeError`.

Any use of a stale droplet raises `StaleDropletError`.

## Marks, snapshots and sandboxes

```python
from lakepool.lake import Lake

lake = Lake(1024)
lake.mark()
lake.alloc(100)
lake.mark()
lake.alloc(200)
lake.reset_to_mark()              # back to 100
lake.reset_to_mark()              # back to 0

snap = lake.snapshot()
lake.alloc(300)
lake.rewind(snap)                 # back to 0

with lake.sandbox() as guard:
    guard.view().alloc(16)
    # leaving without commit() rolls the offset back
assert lake.used() == 0
```

`move_mark()` moves the latest mark to the current offset.

`SandboxGuard.commit_and_return()` keeps the allocations and hands the lake
back. After that call the guard no longer holds the lake.

## Views

`split(length)` hands part of a lake to a `LakeView`. A view is a sub-pool
that shares the lake's buffer but keeps its own offset, marks and generation.
Views can be split again.

```python
from lakepool.lake import Lake

lake = Lake(1024)
view = lake.split(256)
view.alloc(64)
assert view.remaining() == 192
child = view.split(128)
assert child.capacity == 128
```

When a split does not fit, `Lake.split` raises `LakeError`, while
`LakeView.split` returns `None`. A view can also be built directly over any
writable buffer, for example `LakeView(bytearray(32))`.

## Structured data

Droplets can be read back with `struct` format strings:

```python
from lakepool.lake import Lake

lake = Lake(64)
droplet = lake.process(lambda _: (1).to_bytes(2, "little") + (99).to_bytes(2, "little"))
assert droplet.deserialize("<HH") == (1, 99)
assert droplet.deserialize_slice("<H") == [1, 99]
```

Lakes and views can also reserve aligned regions for fixed-layout values:

- `alloc_struct(fmt)` returns a writable memoryview of one record. Fill it with `struct.pack_into`.
- `alloc_slice(fmt, count)` returns room for `count` records. A single native type code such as `"H"` or `"Q"` comes back as a typed memoryview.

```python
from lakepool.lake import Lake

lake = Lake(128)
values = lake.alloc_slice("Q", 3)
values[:] = values.obj.__class__(3 * 8) and values  # typed view over lake memory
values[0], values[1], values[2] = 1, 2, 3
assert values.tolist() == [1, 2, 3]
```

## Per-thread lake

```python
from lakepool.thread_lake import DEFAULT_SIZE, thread_lake_init, with_lake


def take_eight(lake):
    lake.alloc(8)
    return lake.used()


thread_lake_init()                # a fresh Lake(DEFAULT_SIZE) for this thread
assert with_lake(take_eight) == 8
```

In the current thread, `with_lake` raises `LakeNotInitializedError` in two
cases: before `thread_lake_init` has been called, and after
`thread_lake_release` has been called.

## Ring writer

`lakepool.small_lake.SmallLake(size)` is a small fixed buffer for building
short byte strings.

- `write`, `write_byte`, `write_num_str` and `write_num_str_fixed` append at the current position.
- A write that does not fit in the space left starts again from the beginning.
- `as_bytes()` returns what lies before the position.
- A single write longer than the whole buffer raises `LakeError`.

## Running the tests

```
pip install -e ".[test]"
pytest
```