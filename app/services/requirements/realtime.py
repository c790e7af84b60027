"""Realtime reconciliation of record changes into open views.

`ChangeFeed` is the in-process change notification channel. `DetailView`
follows one record and refuses to overwrite an in-progress edit: remote
updates arriving mid-edit are parked and announced once per edit session.
`ListReconciler` folds tenant-wide changes into a displayed page.
"""

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from loguru import logger

from app.models.common import BaseEntity
from app.models.requirements import EDITABLE_COLUMNS, Requirement
from app.services.requirements.reducers import remove_record, replace_record


class ChangeType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class RecordChange(BaseEntity):
    """One notification: the change type and the record as it now stands (or last stood)."""

    type: ChangeType
    record: Requirement
    actor: str | None = None


ChangeCallback = Callable[[RecordChange], Any]


class ChangeFeed:
    """Subscribe per record or per tenant; publish after every store write."""

    def __init__(self):
        self._by_record: dict[str, list[ChangeCallback]] = defaultdict(list)
        self._by_tenant: dict[str, list[ChangeCallback]] = defaultdict(list)

    def subscribe(self, record_id: str, callback: ChangeCallback) -> Callable[[], None]:
        return self._add(self._by_record, record_id, callback)

    def subscribe_tenant(self, user_id: str, callback: ChangeCallback) -> Callable[[], None]:
        return self._add(self._by_tenant, user_id, callback)

    @staticmethod
    def _add(registry: dict[str, list[ChangeCallback]], key: str, callback: ChangeCallback) -> Callable[[], None]:
        registry[key].append(callback)

        def unsubscribe() -> None:
            callbacks = registry.get(key)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del registry[key]

        return unsubscribe

    def publish(self, change: RecordChange) -> int:
        """Deliver to record then tenant subscribers. Returns the number of deliveries."""
        callbacks = [
            *self._by_record.get(change.record.id, []),
            *self._by_tenant.get(change.record.user_id, []),
        ]
        for callback in callbacks:
            try:
                callback(change)
            except Exception as e:
                logger.warning("Change subscriber failed for {}: {}", change.record.id, e)
        logger.debug("Published {} {} to {} subscribers", change.type, change.record.id, len(callbacks))
        return len(callbacks)

    def subscriber_count(self, record_id: str | None = None) -> int:
        if record_id is not None:
            return len(self._by_record.get(record_id, []))
        return sum(len(v) for v in self._by_record.values()) + sum(len(v) for v in self._by_tenant.values())


class SubscriptionState(StrEnum):
    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBED = "subscribed"
    APPLYING_UPDATE = "applying_update"


REMOTE_UPDATE_NOTICE = "This requirement was changed by someone else while you were editing."


class DetailView:
    """State of an open detail view for a single requirement."""

    def __init__(self, feed: ChangeFeed, notify: Callable[[str], Any] | None = None):
        self._feed = feed
        self._notify = notify
        self._unsubscribe: Callable[[], None] | None = None
        self.state = SubscriptionState.UNSUBSCRIBED
        self.record: Requirement | None = None
        self.form: dict[str, Any] = {}
        self.is_editing = False
        self.parked: Requirement | None = None
        self.deleted = False
        self.remote_update_notified = False

    def open(self, record: Requirement) -> None:
        """Show `record` and start following its changes."""
        self.close()
        self.record = record
        self.form = {}
        self.is_editing = False
        self.parked = None
        self.deleted = False
        self.remote_update_notified = False
        self._unsubscribe = self._feed.subscribe(record.id, self._on_change)
        self.state = SubscriptionState.SUBSCRIBED

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.state = SubscriptionState.UNSUBSCRIBED

    def start_edit(self) -> dict[str, Any]:
        """Enter edit mode with a form seeded from the current record."""
        if self.record is None:
            raise RuntimeError("No record open")
        self.is_editing = True
        self.remote_update_notified = False
        self.form = {col: getattr(self.record, col) for col in sorted(EDITABLE_COLUMNS)}
        return self.form

    def end_edit(self) -> dict[str, Any]:
        """Leave edit mode; returns the changed fields and applies any parked update."""
        changed = {} if self.record is None else {k: v for k, v in self.form.items() if getattr(self.record, k) != v}
        self.is_editing = False
        self.remote_update_notified = False
        self.form = {}
        if self.parked is not None:
            self._merge(self.parked)
            self.parked = None
        return changed

    def _on_change(self, change: RecordChange) -> None:
        if self.state is not SubscriptionState.SUBSCRIBED or self.record is None:
            return
        if change.record.id != self.record.id:
            return

        self.state = SubscriptionState.APPLYING_UPDATE
        try:
            if change.type is ChangeType.DELETE:
                self.deleted = True
            elif self.is_editing:
                self.parked = change.record
                if not self.remote_update_notified:
                    self.remote_update_notified = True
                    if self._notify is not None:
                        self._notify(REMOTE_UPDATE_NOTICE)
            else:
                self._merge(change.record)
        finally:
            if self.state is SubscriptionState.APPLYING_UPDATE:
                self.state = SubscriptionState.SUBSCRIBED

    def _merge(self, incoming: Requirement) -> None:
        # out-of-order deliveries never roll a record back
        if self.record is not None and incoming.updated_at < self.record.updated_at:
            logger.debug("Ignoring out-of-order update for {}", incoming.id)
            return
        self.record = incoming


class ListReconciler:
    """Merges a tenant's change feed into the page shown by a PageView.

    Inserts are not spliced into the window since that would shift offsets;
    the view only counts them so the UI can offer a refresh.
    """

    def __init__(self, feed: ChangeFeed, view, user_id: str):
        self._view = view
        self._unsubscribe = feed.subscribe_tenant(user_id, self._on_change)

    def _on_change(self, change: RecordChange) -> None:
        record = change.record
        if change.type is ChangeType.UPDATE:
            self._view.apply(lambda page: replace_record(page, record))
        elif change.type is ChangeType.DELETE:
            self._view.apply(lambda page: remove_record(page, record.id))
        else:
            self._view.note_insert()

    def close(self) -> None:
        self._unsubscribe()
