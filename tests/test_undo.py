import asyncio
from datetime import timedelta

from cartsync._types import Collection
from cartsync.model import Entry
from cartsync.undo import Idle, PendingRestore, UndoManager
from tests.conftest import make_line

WINDOW = timedelta(milliseconds=200)
TICK = timedelta(milliseconds=20)


class Recorder:
    def __init__(self) -> None:
        self.restored: list[tuple[Entry, Collection]] = []

    async def __call__(self, item: Entry, collection: Collection) -> None:
        self.restored.append((item, collection))


class TestUndoManager:
    async def test_restore_within_window(self) -> None:
        recorder = Recorder()
        undo = UndoManager(recorder, WINDOW, TICK)
        line = make_line(quantity=4)

        undo.remove(line, Collection.CART)
        assert isinstance(undo.state, PendingRestore)
        assert undo.pending == line

        assert await undo.restore() is True
        assert recorder.restored == [(line, Collection.CART)]
        assert isinstance(undo.state, Idle)
        undo.close()

    async def test_restore_after_deadline_is_noop(self) -> None:
        recorder = Recorder()
        undo = UndoManager(recorder, WINDOW, TICK)
        undo.remove(make_line(), Collection.CART)

        await asyncio.sleep(0.3)

        assert isinstance(undo.state, Idle)
        assert undo.progress == 0
        assert await undo.restore() is False
        assert recorder.restored == []

    async def test_progress_counts_down(self) -> None:
        undo = UndoManager(Recorder(), WINDOW, TICK)
        seen: list[int] = []
        undo.subscribe(seen.append)

        undo.remove(make_line(), Collection.CART)
        await asyncio.sleep(0.3)

        assert seen[0] == 100
        assert seen[-1] == 0
        assert len(seen) > 3
        assert all(a >= b for a, b in zip(seen, seen[1:]))

    async def test_second_remove_finalizes_first(self) -> None:
        recorder = Recorder()
        undo = UndoManager(recorder, WINDOW, TICK)
        first, second = make_line("a"), make_line("b")

        undo.remove(first, Collection.CART)
        undo.remove(second, Collection.CART)

        assert await undo.restore() is True
        assert await undo.restore() is False
        assert recorder.restored == [(second, Collection.CART)]
        undo.close()

    async def test_cancel(self) -> None:
        recorder = Recorder()
        undo = UndoManager(recorder, WINDOW, TICK)
        undo.remove(make_line(), Collection.CART)
        undo.cancel()

        assert await undo.restore() is False
        assert recorder.restored == []

    async def test_close_stops_timer(self) -> None:
        undo = UndoManager(Recorder(), WINDOW, TICK)
        seen: list[int] = []
        undo.remove(make_line(), Collection.CART)
        undo.subscribe(seen.append)
        undo.close()

        await asyncio.sleep(0.05)
        assert seen == []
