"""KYC review engine.

Lists, filters and adjudicates KYC submissions. A submission is decided at
most once per view, and never while a decision for it is still outstanding.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from registrar.sdk.directory import DirectoryClient
from registrar.sdk.errors import RegistrarError, ValidationError
from registrar.sdk.files import FileResolver
from registrar.sdk.inflight import InFlightTracker, SubjectState
from registrar.sdk.models import KycStatus, ReviewSnapshot, User
from registrar.sdk.session import SessionContext

log = logging.getLogger(__name__)

STATUS_FILTERS = ("all", "pending", "verified", "rejected")


def filter_submissions(
    submissions: Sequence[User],
    query: str = "",
    status: str | KycStatus = "all",
) -> list[User]:
    """Order-preserving subsequence matching the search query and status.

    ``query`` matches name, email or wallet address, case-insensitively.
    """
    status_value = status.value if isinstance(status, KycStatus) else status
    if status_value not in STATUS_FILTERS:
        raise ValidationError(f"Unknown status filter: {status_value}")
    needle = query.strip().lower()

    def matches(user: User) -> bool:
        if status_value != "all" and user.kyc_status.value != status_value:
            return False
        if not needle:
            return True
        fields = (user.name, user.email, user.wallet_address or "")
        return any(needle in field.lower() for field in fields)

    return [user for user in submissions if matches(user)]


class KycReviewEngine:
    """Decision state machine over the pending-KYC queue."""

    def __init__(self, directory: DirectoryClient, files: FileResolver, context: SessionContext) -> None:
        self.directory = directory
        self.files = files
        self.context = context
        self._snapshot: ReviewSnapshot | None = None
        # Terminal statuses observed in this view; never regress.
        self._decided: dict[str, KycStatus] = {}
        self._inflight = InFlightTracker()

    @property
    def snapshot(self) -> ReviewSnapshot | None:
        return self._snapshot

    async def list_submissions(self) -> ReviewSnapshot:
        """Fetch the queue.

        The first load raises on failure. Later failures keep the previous
        list and mark it stale. Subjects decided in this view stay listed
        after the backend drops them from the queue.
        """
        try:
            submissions = await self.directory.list_pending_kyc()
        except RegistrarError as e:
            if self._snapshot is None:
                raise
            log.warning("Keeping stale KYC list after refresh failure: %s", e)
            self._snapshot = ReviewSnapshot(
                submissions=[self._observe(u) for u in self._snapshot.submissions],
                stale=True,
                error=e.message,
            )
            return self._snapshot

        observed = [self._observe(u) for u in submissions]
        self._snapshot = ReviewSnapshot(submissions=observed + self._dropped_decisions(observed))
        return self._snapshot

    def filter_submissions(self, query: str = "", status: str | KycStatus = "all") -> list[User]:
        submissions = self._snapshot.submissions if self._snapshot else []
        return filter_submissions(submissions, query=query, status=status)

    def processing_state(self, subject_id: str) -> SubjectState:
        return self._inflight.state(subject_id)

    async def decide(self, subject_id: str, outcome: KycStatus, reason: str | None = None) -> User:
        """Verify or reject a pending submission.

        Rejections need a non-empty reason. Failures leave local state as it
        was so the registrar can retry straight away.
        """
        self.context.require_admin()
        if outcome not in (KycStatus.VERIFIED, KycStatus.REJECTED):
            raise ValidationError(f"Invalid KYC outcome: {outcome}")
        reason = (reason or "").strip() or None
        if outcome is KycStatus.REJECTED and not reason:
            raise ValidationError("Rejection reason is required")
        if outcome is KycStatus.VERIFIED:
            reason = None

        subject = self._find(subject_id)
        if self._inflight.state(subject_id) is SubjectState.DONE:
            raise ValidationError(f"Submission {subject_id} has already been decided")
        if subject.kyc_status is not KycStatus.PENDING:
            raise ValidationError(f"Submission {subject_id} is already {subject.kyc_status.value}")

        with self._inflight.claim(subject_id):
            updated = await self.directory.set_kyc_status(subject_id, outcome, reason)
            self._decided[subject_id] = outcome
            log.info("KYC %s for %s", outcome.value, subject_id)
        await self.list_submissions()
        return updated

    def documents_of(self, user: User) -> dict[str, str]:
        """Document kind -> storage reference for a submission."""
        if user.kyc_documents:
            return dict(user.kyc_documents)
        if user.kyc_document_hash:
            return {"document": user.kyc_document_hash}
        return {}

    async def resolve_document_urls(self, documents: dict[str, str]) -> dict[str, str]:
        return await self.files.resolve_many(documents)

    # --- Internal helpers ---
    def _find(self, subject_id: str) -> User:
        if self._snapshot is not None:
            for user in self._snapshot.submissions:
                if user.id == subject_id:
                    return user
        raise ValidationError(f"Unknown submission: {subject_id}")

    def _dropped_decisions(self, fetched: list[User]) -> list[User]:
        """Decided subjects the backend no longer lists, kept for the rest of the view."""
        if self._snapshot is None:
            return []
        present = {user.id for user in fetched}
        return [
            user.model_copy(update={"kyc_status": self._decided[user.id]})
            for user in self._snapshot.submissions
            if user.id not in present and user.id in self._decided
        ]

    def _observe(self, user: User) -> User:
        decided = self._decided.get(user.id)
        if user.kyc_status.is_terminal:
            if decided is None:
                self._decided[user.id] = user.kyc_status
            elif decided is not user.kyc_status:
                log.warning("Ignoring KYC status change %s -> %s for %s", decided.value, user.kyc_status.value, user.id)
                return user.model_copy(update={"kyc_status": decided})
            return user
        if decided is not None:
            log.warning("Ignoring KYC status regression to pending for %s", user.id)
            return user.model_copy(update={"kyc_status": decided})
        return user
