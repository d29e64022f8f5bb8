"""Revert executor: copies packaged values back onto active storage.

Every item is handled on its own; a failure is reported and the
remaining items are still attempted.
"""
import logging
from collections.abc import Iterable
from typing import Optional

from ..config_store.store import ConfigStorage, StorageError, compute_checksum
from ..utils.audit_log import ChangeTracker
from .schema import ConfigCollection, RevertResult

logger = logging.getLogger(__name__)


class RevertExecutor:
    """Replace active values with packaged values, item by item."""

    def __init__(
        self,
        active: ConfigStorage,
        extension: ConfigStorage,
        tracker: Optional[ChangeTracker] = None,
    ):
        self.active = active
        self.extension = extension
        self.tracker = tracker or ChangeTracker()

    def revert(
        self,
        selected: Iterable[str],
        collection: ConfigCollection,
    ) -> list[RevertResult]:
        """
        Revert the selected items.

        Args:
            selected: Item names, processed in the given order
            collection: Items of this operation

        Returns:
            One RevertResult per item, or a single informational result
            when nothing was selected
        """
        names = list(dict.fromkeys(selected))
        if not names:
            logger.info("No configuration was selected for import")
            return [RevertResult(
                item_name=None,
                success=True,
                message="No configuration was selected for import.",
            )]

        results = [self._revert_item(name, collection) for name in names]

        failed = sum(1 for r in results if not r.success)
        logger.info(f"Reverted {len(results) - failed} items, {failed} failed")
        return results

    def _revert_item(self, name: str, collection: ConfigCollection) -> RevertResult:
        if name not in collection:
            return self._record(name, False, f"{name} is not in the active configuration")

        try:
            packaged = self.extension.read(name)
        except StorageError as e:
            return self._record(name, False, f"Cannot read packaged {name}: {e}")

        if packaged is None:
            return self._record(name, False, f"{name} has not been exported to a package")

        try:
            before = compute_checksum(self.active.read(name))
        except StorageError:
            before = None

        try:
            self.active.write(name, packaged)
        except StorageError as e:
            return self._record(name, False, f"Cannot import {name}: {e}", before=before)

        return self._record(
            name, True, f"Imported {name}",
            before=before, after=compute_checksum(packaged),
        )

    def _record(
        self,
        name: str,
        success: bool,
        message: str,
        before: Optional[str] = None,
        after: Optional[str] = None,
    ) -> RevertResult:
        if success:
            logger.info(message)
        else:
            logger.warning(message)

        self.tracker.log_change(
            target=name,
            operation="revert",
            success=success,
            message=message,
            before_checksum=before,
            after_checksum=after,
        )
        return RevertResult(item_name=name, success=success, message=message)
