"""Clearing pending markers when a watcher views a subpage."""

from __future__ import annotations

import logging

from subwatch.core.config import NotifyConfig
from subwatch.core.models import PagePath, UserProfile
from subwatch.core.paths import decompose, user_talk_page
from subwatch.core.ports import WatchStore

LOGGER = logging.getLogger(__name__)


class ViewSuppressionHandler:
    """Re-arms notifications for the base pages of a viewed page.

    Diff, old revision and current revision views are all treated the same.
    """

    def __init__(self, store: WatchStore, config: NotifyConfig) -> None:
        self._store = store
        self._config = config

    def on_view(self, viewed: PagePath, viewer: UserProfile) -> None:
        if not self._config.hierarchical_notices_enabled:
            return
        if not viewer.is_registered or not viewer.get_bool_option("enotifwatchlistsubpages"):
            return

        talk_page = user_talk_page(viewer.name)
        for ancestor in decompose(viewed):
            # The viewer's own talk page carries separate new-message state.
            if ancestor == talk_page:
                continue
            self._store.clear_pending(viewer.user_id, ancestor.namespace, ancestor.key)
            LOGGER.debug("Cleared pending marker for %s on %s", viewer.name, ancestor.key)
