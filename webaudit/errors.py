"""
WebAudit — Domain exceptions.

``AuditError`` messages are safe to show to the caller; anything else that
escapes the orchestrator is reported generically.
"""


class AuditError(Exception):
    """Run-ending failure with a user-facing message."""


class CollectionError(AuditError):
    """A critical collector (technical / content) failed."""


class InvalidUrlError(AuditError, ValueError):
    """Target URL cannot be parsed into an http(s) address."""


class ScrapeTimeoutError(AuditError):
    """The full scrape did not finish before the deadline."""


class UsageLimitExceeded(AuditError):
    """Caller is out of audits or not permitted to run this audit."""

    def __init__(
        self,
        reason: str,
        *,
        audits_remaining: int = 0,
        audits_limit: int = 0,
        upgrade_url: str = "/pricing",
    ):
        super().__init__(reason)
        self.reason = reason
        self.audits_remaining = audits_remaining
        self.audits_limit = audits_limit
        self.upgrade_url = upgrade_url

    def to_dict(self) -> dict:
        return {
            "error": self.reason,
            "upgradeUrl": self.upgrade_url,
            "auditsRemaining": self.audits_remaining,
            "auditsLimit": self.audits_limit,
        }


class UnknownCategoryError(ValueError):
    """Requested category identifier is not in the catalog."""

    def __init__(self, unknown: list[str]):
        super().__init__(f"Unknown categories: {', '.join(unknown)}")
        self.unknown = unknown
