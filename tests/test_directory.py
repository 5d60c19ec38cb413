import pytest

from audioly.core.errors import NotFoundError
from audioly.social.directory import Directory
from audioly.social.visibility import ConnectionStatus

from conftest import ids


# ============ search ============

async def test_search_matches_name_or_username_case_insensitively(directory, store, make_user):
    caller = await make_user("Caller")
    john = await make_user("John Smith", username="jsmith")
    marjorie = await make_user("Marjorie")
    handle = await make_user("Pat", username="pat_JO")
    await make_user("Alice")
    await make_user("Jenny", username="jen")

    entries = await directory.search(caller.id, "JO")

    # newest first
    assert ids(e.user for e in entries) == [handle.id, marjorie.id, john.id]


async def test_search_annotates_relationship_to_caller(directory, store, make_user):
    caller = await make_user("Caller")
    friend = await make_user("Jo Friend")
    sent = await make_user("Jo Sent")
    received = await make_user("Jo Received")
    stranger = await make_user("Jo Stranger")

    await store.accept_request(caller.id, friend.id)
    await store.send_request(caller.id, sent.id)
    await store.send_request(received.id, caller.id)

    entries = {e.user.id: e for e in await directory.search(caller.id, "jo")}

    assert set(entries) == {friend.id, sent.id, received.id, stranger.id}
    assert entries[friend.id].is_friend
    assert not entries[friend.id].sent_request
    assert entries[sent.id].sent_request
    assert not entries[sent.id].is_friend
    assert entries[received.id].incoming_request
    assert not entries[received.id].sent_request
    stranger_entry = entries[stranger.id]
    assert not (
        stranger_entry.is_friend or stranger_entry.sent_request or stranger_entry.incoming_request
    )
    assert stranger_entry.status == ConnectionStatus.NONE


async def test_search_excludes_caller_and_caps_results(store, catalog, make_user):
    caller = await make_user("Jo Caller")
    for n in range(5):
        await make_user(f"Jo {n}")

    entries = await Directory(store, catalog, limit=3).search(caller.id, "jo")

    assert len(entries) == 3
    assert caller.id not in ids(e.user for e in entries)


async def test_search_without_query_lists_everyone_else(directory, make_user):
    caller = await make_user("Caller")
    others = [await make_user(name) for name in ("Ann", "Ben")]

    entries = await directory.search(caller.id, "  ")

    assert set(ids(e.user for e in entries)) == set(ids(others))


async def test_search_treats_wildcards_literally(directory, make_user):
    caller = await make_user("Caller")
    await make_user("Plain")
    percent = await make_user("100% Jo")

    entries = await directory.search(caller.id, "%")

    assert ids(e.user for e in entries) == [percent.id]


async def test_search_counts_public_songs_only(directory, make_user, make_song):
    caller = await make_user("Caller")
    artist = await make_user("Artist")
    await make_song(artist, "One")
    await make_song(artist, "Two")
    await make_song(artist, "Hidden", is_public=False)

    entries = await directory.search(caller.id, "artist")

    assert entries[0].songs_count == 2


async def test_anonymous_search_has_no_relationships(directory, store, make_user):
    a = await make_user("Jo A")
    b = await make_user("Jo B")
    await store.accept_request(a.id, b.id)

    entries = await directory.search(None, "jo")

    assert len(entries) == 2
    assert all(e.status == ConnectionStatus.NONE for e in entries)


# ============ profile ============

async def test_private_stranger_sees_nothing(directory, make_user, make_song):
    a = await make_user("Private A", is_private=True)
    b = await make_user("Stranger B")
    await make_song(a, "Public 1")
    await make_song(a, "Public 2")
    await make_song(a, "Secret", is_public=False)

    view = await directory.profile(b.id, a.id)

    assert view.can_see_uploads is False
    assert view.uploads == []
    assert view.uploads_count == 0
    assert view.connection_status == ConnectionStatus.NONE


async def test_request_states_seen_from_both_sides(directory, store, make_user):
    a = await make_user("A")
    b = await make_user("B")
    await store.send_request(a.id, b.id)

    assert (await directory.profile(a.id, b.id)).connection_status == ConnectionStatus.SENT
    assert (await directory.profile(b.id, a.id)).connection_status == ConnectionStatus.RECEIVED

    await store.accept_request(b.id, a.id)

    assert (await directory.profile(a.id, b.id)).connection_status == ConnectionStatus.FRIEND
    assert (await directory.profile(b.id, a.id)).connection_status == ConnectionStatus.FRIEND


async def test_friend_sees_public_songs_only(directory, store, make_user, make_song):
    a = await make_user("A")
    b = await make_user("B")
    public = await make_song(a, "Public")
    await make_song(a, "Draft", is_public=False)
    await store.accept_request(b.id, a.id)

    view = await directory.profile(b.id, a.id)

    assert view.can_see_uploads is True
    assert ids(view.uploads) == [public.id]
    assert view.friends_count == 1


async def test_friend_of_private_account_sees_public_songs(directory, store, make_user, make_song):
    a = await make_user("A", is_private=True)
    b = await make_user("B")
    public = await make_song(a, "Public")
    await make_song(a, "Draft", is_public=False)
    await store.accept_request(a.id, b.id)

    view = await directory.profile(b.id, a.id)

    assert view.can_see_uploads is True
    assert ids(view.uploads) == [public.id]


async def test_owner_sees_all_own_songs_newest_first(directory, make_user, make_song):
    a = await make_user("A", is_private=True)
    first = await make_song(a, "First")
    second = await make_song(a, "Second", is_public=False)

    view = await directory.profile(a.id, a.id)

    assert view.connection_status == ConnectionStatus.SELF
    assert ids(view.uploads) == [second.id, first.id]
    assert view.uploads_count == 2


async def test_anonymous_viewer_of_public_account(directory, make_user, make_song):
    a = await make_user("A")
    public = await make_song(a, "Public")
    await make_song(a, "Draft", is_public=False)

    view = await directory.profile(None, a.id)

    assert view.connection_status == ConnectionStatus.NONE
    assert ids(view.uploads) == [public.id]


async def test_profile_of_unknown_user(directory, make_user):
    viewer = await make_user("Viewer")
    with pytest.raises(NotFoundError):
        await directory.profile(viewer.id, "missing-user")


# ============ friends overview & feed ============

async def test_friends_overview(directory, store, make_user):
    me = await make_user("Me")
    zoe = await make_user("Zoe")
    adam = await make_user("Adam")
    asker = await make_user("Asker")
    await store.accept_request(me.id, zoe.id)
    await store.accept_request(me.id, adam.id)
    await store.send_request(asker.id, me.id)

    overview = await directory.friends_overview(me.id)

    assert ids(overview.friends) == [adam.id, zoe.id]
    assert ids(overview.incoming_requests) == [asker.id]


async def test_feed_merges_own_and_friends_public_songs(directory, store, make_user, make_song):
    me = await make_user("Me", is_private=True)
    friend = await make_user("Friend")
    stranger = await make_user("Stranger")
    mine_public = await make_song(me, "Mine")
    mine_private = await make_song(me, "Mine draft", is_public=False)
    friend_public = await make_song(friend, "Theirs")
    await make_song(friend, "Their draft", is_public=False)
    await make_song(stranger, "Unrelated")
    await store.accept_request(me.id, friend.id)

    feed = await directory.feed(me.id)

    assert ids(feed) == [friend_public.id, mine_private.id, mine_public.id]
    assert feed[0].owner.id == friend.id
