import pytest

from audioly.core.errors import NotFoundError
from audioly.infra.storage import StoredObject
from audioly.social.visibility import ContentFilter

from conftest import ids

AUDIO = StoredObject(url="https://cdn.test/audioly/audio/a.mp3", storage_id="audioly/audio/a.mp3")
COVER = StoredObject(url="https://cdn.test/audioly/covers/c.png", storage_id="audioly/covers/c.png")


async def test_create_song_keeps_requested_visibility(catalog, make_user):
    owner = await make_user("Owner")

    song = await catalog.create_song(
        owner, "  Title  ", AUDIO, category=" rock ", is_public=False, cover=COVER
    )

    assert song.title == "Title"
    assert song.category == "rock"
    assert song.is_public is False
    assert song.play_count == 0
    assert song.audio_url == AUDIO.url
    assert song.cover_storage_id == COVER.storage_id


async def test_private_account_songs_are_forced_private(catalog, make_user):
    owner = await make_user("Owner", is_private=True)

    song = await catalog.create_song(owner, "Title", AUDIO, is_public=True)

    assert song.is_public is False


async def test_denied_filter_returns_nothing(catalog, make_user, make_song):
    owner = await make_user("Owner")
    await make_song(owner, "Song")

    assert await catalog.list_visible(ContentFilter.deny(owner.id)) == []


async def test_list_visible_honours_public_only(catalog, make_user, make_song):
    owner = await make_user("Owner")
    public = await make_song(owner, "Public")
    private = await make_song(owner, "Private", is_public=False)

    public_view = await catalog.list_visible(ContentFilter(owner.id, public_only=True))
    full_view = await catalog.list_visible(ContentFilter(owner.id, public_only=False))

    assert ids(public_view) == [public.id]
    assert ids(full_view) == [private.id, public.id]


async def test_count_public(catalog, make_user, make_song):
    a = await make_user("A")
    b = await make_user("B")
    await make_song(a, "1")
    await make_song(a, "2")
    await make_song(a, "hidden", is_public=False)

    assert await catalog.count_public([a.id, b.id]) == {a.id: 2, b.id: 0}
    assert await catalog.count_public([]) == {}


async def test_explore_skips_private_owners_and_private_songs(catalog, make_user, make_song):
    public_owner = await make_user("Public")
    private_owner = await make_user("Private", is_private=True)
    older = await make_song(public_owner, "Older")
    await make_song(public_owner, "Draft", is_public=False)
    await make_song(private_owner, "Leaked flag")
    newer = await make_song(public_owner, "Newer")

    songs = await catalog.explore(limit=10)

    assert ids(songs) == [newer.id, older.id]
    assert songs[0].owner.name == "Public"


async def test_explore_limit(catalog, make_user, make_song):
    owner = await make_user("Owner")
    for n in range(4):
        await make_song(owner, f"Song {n}")

    assert len(await catalog.explore(limit=2)) == 2


async def test_list_visible_many_skips_denied_filters(catalog, make_user, make_song):
    a = await make_user("A")
    b = await make_user("B")
    await make_song(a, "A song")
    b_song = await make_song(b, "B song")

    songs = await catalog.list_visible_many(
        [ContentFilter.deny(a.id), ContentFilter(b.id)], limit=10
    )

    assert ids(songs) == [b_song.id]
    assert await catalog.list_visible_many([ContentFilter.deny(a.id)], limit=10) == []


async def test_record_play_increments(catalog, make_user, make_song):
    owner = await make_user("Owner")
    song = await make_song(owner, "Song")

    assert await catalog.record_play(song) == 1
    assert await catalog.record_play(song) == 2


async def test_get_song_missing(catalog):
    with pytest.raises(NotFoundError):
        await catalog.get_song("missing-song")
