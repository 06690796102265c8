import pytest

from photobooth_queue.links import JoinLink, build_join_link, parse_join_link


def test_build_and_parse_join_link():
    url = build_join_link("https://booth.example/queue?lang=id", "summer-fair", "display")
    assert url == "https://booth.example/queue?lang=id&room=summer-fair&view=display"
    assert parse_join_link(url) == JoinLink(room_id="summer-fair", view="display")


def test_build_replaces_existing_room():
    url = build_join_link("https://booth.example/?room=old", "new")
    assert parse_join_link(url) == JoinLink(room_id="new")


def test_parse_ignores_unknown_view_and_missing_room():
    assert parse_join_link("https://x/?room=r&view=kitchen") == JoinLink(room_id="r")
    assert parse_join_link("https://x/?view=display") is None


def test_build_rejects_bad_input():
    with pytest.raises(ValueError):
        build_join_link("https://x/", "")
    with pytest.raises(ValueError):
        build_join_link("https://x/", "r", "kitchen")
