"""Entry points called by the surrounding wiki application.

Both hooks hand their work to a deferred runner owned by the caller, so a
failing notification never fails an edit or a page view.
"""

from __future__ import annotations

from subwatch.core.dispatcher import NotificationDispatcher
from subwatch.core.models import NotificationEvent, PagePath, UserProfile
from subwatch.core.paths import decompose
from subwatch.core.ports import DeferredRunner
from subwatch.core.suppression import ViewSuppressionHandler


class SubpageWatchlistHooks:
    """Plain trigger interface: one method per host event."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        views: ViewSuppressionHandler,
        deferred: DeferredRunner,
    ) -> None:
        self._dispatcher = dispatcher
        self._views = views
        self._deferred = deferred

    def on_page_changed(self, event: NotificationEvent) -> None:
        """Queue notifications for a committed edit."""

        if not decompose(event.page):
            return
        self._deferred.add(
            f"subpage notices for {event.namespace}:{event.page_key}",
            lambda: self._dispatcher.dispatch(event),
        )

    def on_page_viewed(self, path: PagePath, viewer: UserProfile) -> None:
        """Queue clearing of base page markers for a page view."""

        async def _clear() -> None:
            self._views.on_view(path, viewer)

        self._deferred.add(f"clear markers for {viewer.name} on {path.key}", _clear)
