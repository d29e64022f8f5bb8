"""Audit logging for reverts and exports.

Provides change tracking with:
- Timestamped entries for every active-storage write and package export
- Before/after checksums of reverted documents
- Structured JSON log format in a separate audit log file
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Dedicated audit logger
audit_logger = logging.getLogger("config_packager.audit")
audit_logger.propagate = False


def setup_audit_logging(log_dir: Optional[str] = None) -> None:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.config-packager/
    """
    if log_dir is None:
        log_dir = os.path.expanduser("~/.config-packager")

    Path(log_dir).mkdir(parents=True, exist_ok=True)

    audit_logger.setLevel(logging.INFO)
    for handler in audit_logger.handlers:
        handler.close()
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        os.path.join(log_dir, "audit.log"),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # One JSON object per line
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)


@dataclass
class ChangeRecord:
    """Record of a revert or export."""
    timestamp: str
    target: str  # item or package name
    operation: str  # revert, export:<method>
    user: str
    success: bool
    parameters: dict = field(default_factory=dict)
    before_checksum: Optional[str] = None
    after_checksum: Optional[str] = None
    message: str = ""

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        return cls(**json.loads(json_str))


class ChangeTracker:
    """Write ChangeRecords to the audit log."""

    def __init__(self, user: Optional[str] = None):
        self.user = user or os.environ.get("USER", "system")

    def log_change(
        self,
        target: str,
        operation: str,
        success: bool,
        message: str = "",
        parameters: Optional[dict] = None,
        before_checksum: Optional[str] = None,
        after_checksum: Optional[str] = None,
    ) -> ChangeRecord:
        """Log a change and return the record."""
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            target=target,
            operation=operation,
            user=self.user,
            success=success,
            parameters=parameters or {},
            before_checksum=before_checksum,
            after_checksum=after_checksum,
            message=message[:1000],  # Truncate long messages
        )

        audit_logger.info(record.to_json())
        return record
