import requests

from conftest import FakeResponse, FakeSession
from taskboard.profile import initials_avatar, picture_candidates, resolve_picture

BASE = "https://pics.example.test/pic/"


def test_picture_candidates_order():
    assert picture_candidates("alice", BASE) == [
        "https://pics.example.test/pic/alice.png",
        "https://pics.example.test/pic/alice.jpg",
        "https://pics.example.test/pic/alice.jpeg",
    ]


def test_resolve_picture_returns_first_reachable():
    session = FakeSession(FakeResponse(status_code=404), FakeResponse(status_code=200))
    assert resolve_picture("alice", session=session, base=BASE) == "https://pics.example.test/pic/alice.jpg"
    assert len(session.calls) == 2
    assert session.calls[0][0] == "HEAD"


def test_resolve_picture_skips_network_errors():
    session = FakeSession(
        requests.ConnectionError("down"), FakeResponse(status_code=404), FakeResponse(status_code=403),
    )
    assert resolve_picture("alice", session=session, base=BASE) is None
    assert len(session.calls) == 3


def test_initials_avatar_without_picture():
    badge = initials_avatar("Alice Mathew", "alice")
    assert ">AM</div>" in badge
    assert "border-radius:50%" in badge
    assert ">BO</div>" in initials_avatar("", "bob", size=32)
    assert "width:32px" in initials_avatar("", "bob", size=32)


def test_initials_avatar_escapes_markup():
    assert initials_avatar("<script>", "x").endswith(">&lt;</div>")
