from __future__ import annotations

from fakes import NOW, FakeWatchStore, make_user

from subwatch.core.config import NS_USER_TALK, NotifyConfig
from subwatch.core.models import PagePath, UserProfile
from subwatch.core.suppression import ViewSuppressionHandler

VIEWER = make_user(2, "Viewer")


def test_view_clears_markers_for_every_base_page() -> None:
    store = FakeWatchStore()
    store.watch(2, 4, "A", pending=NOW)
    store.watch(2, 4, "A/B", pending=NOW)
    ViewSuppressionHandler(store, NotifyConfig()).on_view(PagePath(4, "A/B/C"), VIEWER)

    assert store.cleared == [(2, 4, "A"), (2, 4, "A/B")]
    assert store.pending(2, 4, "A") is None
    assert store.pending(2, 4, "A/B") is None


def test_view_never_clears_own_talk_page() -> None:
    store = FakeWatchStore()
    store.watch(2, NS_USER_TALK, "Viewer", pending=NOW)
    ViewSuppressionHandler(store, NotifyConfig()).on_view(PagePath(NS_USER_TALK, "Viewer/Archive/2024"), VIEWER)

    assert store.cleared == [(2, NS_USER_TALK, "Viewer/Archive")]
    assert store.pending(2, NS_USER_TALK, "Viewer") == NOW


def test_someone_elses_talk_page_is_cleared() -> None:
    store = FakeWatchStore()
    ViewSuppressionHandler(store, NotifyConfig()).on_view(PagePath(NS_USER_TALK, "Other/Archive"), VIEWER)
    assert store.cleared == [(2, NS_USER_TALK, "Other")]


def test_view_skipped_without_opt_in() -> None:
    store = FakeWatchStore()
    viewer = make_user(2, "Viewer", options={"enotifwatchlistsubpages": "0"})
    ViewSuppressionHandler(store, NotifyConfig()).on_view(PagePath(4, "A/B"), viewer)
    assert store.cleared == []


def test_view_skipped_when_feature_disabled() -> None:
    store = FakeWatchStore()
    handler = ViewSuppressionHandler(store, NotifyConfig(hierarchical_notices_enabled=False))
    handler.on_view(PagePath(4, "A/B"), VIEWER)
    assert store.cleared == []


def test_anonymous_viewer_is_ignored() -> None:
    store = FakeWatchStore()
    anon = UserProfile(user_id=0, name="192.0.2.1", options={"enotifwatchlistsubpages": "1"})
    ViewSuppressionHandler(store, NotifyConfig()).on_view(PagePath(4, "A/B"), anon)
    assert store.cleared == []


def test_viewing_a_top_level_page_clears_nothing() -> None:
    store = FakeWatchStore()
    ViewSuppressionHandler(store, NotifyConfig()).on_view(PagePath(4, "A"), VIEWER)
    assert store.cleared == []
