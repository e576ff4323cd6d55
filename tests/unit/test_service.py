from __future__ import annotations

import asyncio
import logging

import pytest

from song_catalog.core.dirty import DirtyTracker
from song_catalog.core.locks import KeyedLocks
from song_catalog.core.service import CatalogService, parse_song_id
from song_catalog.domain.errors import InvalidSongIdError, SongNotFoundError, StorageError
from song_catalog.domain.models import NewSong

CONCURRENT_PLAYS = 50
CONCURRENT_CREATES = 25
DRAIN_STEPS = 50

HEY_JUDE = NewSong(title="Hey Jude", artist="The Beatles", genre="Rock")


async def _drain_event_loop() -> None:
    for _ in range(DRAIN_STEPS):
        await asyncio.sleep(0)


@pytest.fixture
def service(memory_store) -> CatalogService:
    return CatalogService(memory_store, DirtyTracker())


@pytest.mark.parametrize("raw, expected", [("1", 1), ("42", 42), ("0", 0), (7, 7)])
def test_parse_song_id_accepts_plain_digits(raw, expected):
    assert parse_song_id(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "", "-1", "+1", " 1", "1_000", "1.5", "²", -3, True, None])
def test_parse_song_id_rejects_everything_else(raw):
    with pytest.raises(InvalidSongIdError):
        parse_song_id(raw)


def test_unknown_flush_policy_is_rejected(memory_store):
    with pytest.raises(ValueError):
        CatalogService(memory_store, DirtyTracker(), flush_policy="eventually")


@pytest.mark.asyncio
async def test_create_assigns_count_plus_one_and_zero_plays(service, memory_store):
    first = await service.create(HEY_JUDE)
    second = await service.create(NewSong(title="Yesterday", artist="The Beatles", genre="Rock"))

    assert (first.id, first.play_count) == (1, 0)
    assert (second.id, second.play_count) == (2, 0)
    assert await memory_store.count() == 2


@pytest.mark.asyncio
async def test_create_ignores_client_supplied_id_and_play_count(service):
    payload = NewSong.model_validate(
        {"id": 99, "play_count": 12, "title": "Hey Jude", "artist": "The Beatles", "genre": "Rock"}
    )
    song = await service.create(payload)
    assert song.id == 1
    assert song.play_count == 0


@pytest.mark.asyncio
async def test_create_marks_dirty_in_buffered_policy(service, memory_store):
    await service.create(HEY_JUDE)
    assert service.tracker.is_dirty is True
    assert memory_store.flush_calls == 0


@pytest.mark.asyncio
async def test_create_flushes_synchronously_in_immediate_policy(memory_store):
    service = CatalogService(memory_store, DirtyTracker(), flush_policy="immediate")
    await service.create(HEY_JUDE)
    assert memory_store.flush_calls == 1
    assert 1 in memory_store.flushed
    assert service.tracker.is_dirty is False


@pytest.mark.asyncio
async def test_failed_immediate_flush_raises_and_leaves_write_pending(memory_store):
    service = CatalogService(memory_store, DirtyTracker(), flush_policy="immediate")
    memory_store.fail_flushes = 1
    with pytest.raises(StorageError):
        await service.create(HEY_JUDE)
    assert service.tracker.is_dirty is True


@pytest.mark.asyncio
async def test_failed_insert_does_not_mark_dirty(service, memory_store):
    memory_store.fail_writes = True
    with pytest.raises(StorageError):
        await service.create(HEY_JUDE)
    assert service.tracker.is_dirty is False
    assert await memory_store.count() == 0


@pytest.mark.asyncio
async def test_concurrent_creates_get_distinct_dense_ids(service, memory_store):
    memory_store.yield_points = 3
    songs = await asyncio.gather(
        *(
            service.create(NewSong(title=f"Song {i}", artist="a", genre="g"))
            for i in range(CONCURRENT_CREATES)
        )
    )
    assert sorted(song.id for song in songs) == list(range(1, CONCURRENT_CREATES + 1))


@pytest.mark.asyncio
async def test_play_increments_by_exactly_one_and_is_visible(service):
    await service.create(HEY_JUDE)

    played = await service.play(1)
    again = await service.play(1)

    assert played.play_count == 1
    assert again.play_count == 2
    assert (await service.get(1)).play_count == 2


@pytest.mark.asyncio
async def test_play_unknown_id_raises_not_found(service):
    with pytest.raises(SongNotFoundError) as excinfo:
        await service.play(999)
    assert excinfo.value.song_id == 999
    assert service.tracker.is_dirty is False


@pytest.mark.asyncio
async def test_play_marks_dirty(service):
    await service.create(HEY_JUDE)
    service.tracker.take_if_dirty()

    await service.play(1)

    assert service.tracker.is_dirty is True


@pytest.mark.asyncio
async def test_concurrent_plays_lose_no_updates(service, memory_store):
    await service.create(HEY_JUDE)
    memory_store.yield_points = 2

    await asyncio.gather(*(service.play(1) for _ in range(CONCURRENT_PLAYS)))

    assert (await service.get(1)).play_count == CONCURRENT_PLAYS


@pytest.mark.asyncio
async def test_failed_put_leaves_record_and_flag_untouched(service, memory_store):
    await service.create(HEY_JUDE)
    service.tracker.take_if_dirty()
    memory_store.fail_writes = True

    with pytest.raises(StorageError):
        await service.play(1)

    assert service.tracker.is_dirty is False
    assert (await service.get(1)).play_count == 0


@pytest.mark.asyncio
async def test_cancelled_request_still_commits_completed_write(service, memory_store):
    await service.create(HEY_JUDE)
    service.tracker.take_if_dirty()
    memory_store.yield_points = 5

    request = asyncio.create_task(service.play(1))
    await asyncio.sleep(0)
    request.cancel()
    with pytest.raises(asyncio.CancelledError):
        await request

    await _drain_event_loop()
    assert (await service.get(1)).play_count == 1
    assert service.tracker.is_dirty is True


@pytest.mark.asyncio
async def test_write_failing_after_cancel_is_logged(service, memory_store, caplog):
    await service.create(HEY_JUDE)
    service.tracker.take_if_dirty()
    memory_store.yield_points = 5
    memory_store.fail_writes = True

    request = asyncio.create_task(service.play(1))
    await asyncio.sleep(0)
    request.cancel()
    with caplog.at_level(logging.ERROR, logger="song_catalog.core.service"):
        with pytest.raises(asyncio.CancelledError):
            await request
        await _drain_event_loop()

    failures = [r for r in caplog.records if r.getMessage() == "[WRITE FAILED AFTER CANCEL]"]
    assert len(failures) == 1
    assert failures[0].operation == "play"
    assert isinstance(failures[0].exc_info[1], StorageError)
    assert service.tracker.is_dirty is False


@pytest.mark.asyncio
async def test_search_sees_unflushed_writes(service, memory_store):
    await service.create(HEY_JUDE)
    await service.create(NewSong(title="Come Together", artist="The Beatles", genre="Rock"))

    results = await service.search({"artist": "beatles"})

    assert [song.id for song in results] == [1, 2]
    assert memory_store.flush_calls == 0


@pytest.mark.asyncio
async def test_keyed_locks_release_entries_when_idle():
    locks = KeyedLocks()
    order: list[str] = []

    async def _worker(name: str) -> None:
        async with locks.hold(1):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    await asyncio.gather(_worker("a"), _worker("b"))

    assert order == ["a-in", "a-out", "b-in", "b-out"]
    assert len(locks) == 0
