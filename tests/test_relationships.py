from __future__ import annotations

import threading

import pytest

from microfeed.errors import NotFoundError, ValidationError
from microfeed.service import Microfeed


@pytest.fixture()
def pair(make_user):
    return make_user("Follower"), make_user("Followed")


def _edge_count(service: Microfeed) -> int:
    with service.database.connection() as conn:
        return int(conn.execute("SELECT COUNT(*) FROM relationships").fetchone()[0])


def test_follow_creates_relationship(service: Microfeed, pair) -> None:
    follower, followed = pair
    relationship = service.follow(follower.id, followed.id)

    assert relationship.follower_id == follower.id
    assert relationship.followed_id == followed.id
    assert service.graph.get(follower.id, followed.id) == relationship


def test_nobody_is_followed_by_default(service: Microfeed, pair) -> None:
    follower, followed = pair
    assert service.is_following(follower.id, followed.id) is False
    assert service.following(follower.id) == []
    assert service.followers(followed.id) == []


def test_follow_is_visible_from_both_sides(service: Microfeed, pair) -> None:
    follower, followed = pair
    service.follow(follower.id, followed.id)

    assert service.is_following(follower.id, followed.id) is True
    assert service.is_following(followed.id, follower.id) is False
    assert service.following(follower.id) == [followed]
    assert service.followers(followed.id) == [follower]
    assert service.followers(follower.id) == []


def test_unfollow_removes_relationship(service: Microfeed, pair) -> None:
    follower, followed = pair
    service.follow(follower.id, followed.id)

    assert service.unfollow(follower.id, followed.id) is True
    assert service.is_following(follower.id, followed.id) is False
    assert followed not in service.following(follower.id)
    assert follower not in service.followers(followed.id)


def test_unfollow_without_relationship_is_a_no_op(service: Microfeed, pair) -> None:
    follower, followed = pair
    assert service.unfollow(follower.id, followed.id) is False
    assert service.unfollow(follower.id, 999) is False


def test_follow_twice_yields_one_edge(service: Microfeed, pair) -> None:
    follower, followed = pair
    first = service.follow(follower.id, followed.id)
    second = service.follow(follower.id, followed.id)

    assert first == second
    assert _edge_count(service) == 1
    assert service.following(follower.id) == [followed]


def test_self_follow_is_rejected(service: Microfeed, pair) -> None:
    follower, _ = pair
    with pytest.raises(ValidationError):
        service.follow(follower.id, follower.id)
    assert _edge_count(service) == 0


def test_follow_requires_both_users(service: Microfeed, pair) -> None:
    follower, followed = pair
    with pytest.raises(NotFoundError):
        service.follow(follower.id, 999)
    with pytest.raises(NotFoundError):
        service.follow(999, followed.id)
    assert _edge_count(service) == 0


def test_listing_for_unknown_user(service: Microfeed) -> None:
    with pytest.raises(NotFoundError):
        service.following(999)
    with pytest.raises(NotFoundError):
        service.followers(999)


def test_following_and_followers_counts(service: Microfeed, make_user) -> None:
    hub = make_user("Hub")
    spokes = [make_user() for _ in range(3)]
    for spoke in spokes:
        service.follow(spoke.id, hub.id)
    service.follow(hub.id, spokes[0].id)

    assert service.graph.followers_count(hub.id) == 3
    assert service.graph.following_count(hub.id) == 1
    assert service.followers(hub.id) == spokes

    stats = service.stats(hub.id)
    assert (stats.following, stats.followers, stats.microposts) == (1, 3, 0)


def test_remove_all_edges_for_user(service: Microfeed, make_user) -> None:
    a, b, c = make_user(), make_user(), make_user()
    service.follow(a.id, b.id)
    service.follow(b.id, a.id)
    service.follow(b.id, c.id)
    service.follow(c.id, a.id)

    assert service.graph.remove_all_edges_for(a.id) == 3
    assert service.following(b.id) == [c]
    assert service.followers(a.id) == []
    assert service.following(a.id) == []


def test_destroyed_user_disappears_from_graph(service: Microfeed, make_user) -> None:
    a, b, c = make_user(), make_user(), make_user()
    service.follow(a.id, b.id)
    service.follow(b.id, a.id)
    service.follow(c.id, b.id)

    service.destroy_user(b.id)

    assert service.following(a.id) == []
    assert service.followers(a.id) == []
    assert service.following(c.id) == []
    assert _edge_count(service) == 0
    with pytest.raises(NotFoundError):
        service.follow(a.id, b.id)


def test_concurrent_duplicate_follows_converge_to_one_edge(service: Microfeed, pair) -> None:
    follower, followed = pair
    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    failures = []
    lock = threading.Lock()

    def _follow() -> None:
        barrier.wait()
        try:
            relationship = service.follow(follower.id, followed.id)
        except Exception as exc:  # pragma: no cover - reported below
            with lock:
                failures.append(exc)
        else:
            with lock:
                results.append(relationship.id)

    threads = [threading.Thread(target=_follow) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert failures == []
    assert len(set(results)) == 1
    assert _edge_count(service) == 1


def test_follows_racing_a_destroy_leave_no_edges(service: Microfeed, make_user) -> None:
    target = make_user("Target")
    fans = [make_user() for _ in range(4)]
    barrier = threading.Barrier(len(fans) + 1)
    failures = []
    lock = threading.Lock()

    def _follow(fan_id: int) -> None:
        barrier.wait()
        try:
            service.follow(fan_id, target.id)
        except NotFoundError:
            pass
        except Exception as exc:  # pragma: no cover - reported below
            with lock:
                failures.append(exc)

    def _destroy() -> None:
        barrier.wait()
        service.destroy_user(target.id)

    threads = [threading.Thread(target=_follow, args=(fan.id,)) for fan in fans]
    threads.append(threading.Thread(target=_destroy))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert failures == []
    assert service.get_user(target.id) is None
    with service.database.connection() as conn:
        leftover = conn.execute(
            "SELECT COUNT(*) FROM relationships WHERE follower_id = ? OR followed_id = ?",
            (target.id, target.id),
        ).fetchone()[0]
    assert leftover == 0
    for fan in fans:
        assert service.following(fan.id) == []
