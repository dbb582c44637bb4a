"""
Compliance Webhook Handler: tenant-scoped cleanup for verified Shopify webhooks.

Handles the following topics:
- app/uninstalled: delete sessions, mark the shop uninstalled
- shop/redact: delete sessions, share links and the shop record, then
  confirm nothing is retained for the shop
- customers/redact, customers/data_request: confirm no customer data is
  stored (ShopDelta keeps no customer PII)

Key guarantees:
- Every step is idempotent; duplicate or out-of-order deliveries are safe
  (shop/redact may arrive before, after, or without app/uninstalled)
- Steps run independently; a failed step is recorded and later steps still run
- Nothing raises past dispatch(); faults become failed CleanupStep entries
- Unknown shops are a successful no-op, not an error
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from shopdelta.models.shop import Shop, ShopStatus
from shopdelta.models.wrapped_share import WrappedShare, WrappedShareView
from shopdelta.services.credential_store import CredentialStore, CredentialStoreError
from shopdelta.services.webhook_events import WebhookEvent, WebhookTopic

logger = logging.getLogger(__name__)


class CleanupUnavailableError(Exception):
    """A dependency needed by a cleanup step is not configured."""


class RetainedDataError(Exception):
    """Data for the shop is still present after redaction."""


@dataclass(frozen=True)
class CleanupStep:
    """Result of one cleanup step."""
    name: str
    succeeded: bool
    error_detail: Optional[str] = None
    records_affected: int = 0


@dataclass
class CleanupOutcome:
    """
    Ordered record of the cleanup steps attempted for one webhook.

    Append-only: steps are added through record() and never retried
    within the same dispatch.
    """
    shop_domain: str
    topic: WebhookTopic
    steps_attempted: List[CleanupStep] = field(default_factory=list)

    def record(self, step: CleanupStep) -> None:
        self.steps_attempted.append(step)

    @property
    def failed_steps(self) -> List[CleanupStep]:
        return [s for s in self.steps_attempted if not s.succeeded]

    @property
    def has_failures(self) -> bool:
        return any(not s.succeeded for s in self.steps_attempted)

    @property
    def records_affected(self) -> int:
        return sum(s.records_affected for s in self.steps_attempted)


StepFn = Callable[[WebhookEvent], int]


class ComplianceWebhookHandler:
    """
    Dispatches verified webhook events to per-topic cleanup steps.

    Args:
        db: SQLAlchemy session, or None when the database is not configured
        credential_store: Session credential backend, or None if unavailable
    """

    def __init__(self, db: Optional[Session], credential_store: Optional[CredentialStore]):
        self.db = db
        self.credential_store = credential_store

    def dispatch(self, event: WebhookEvent) -> CleanupOutcome:
        """
        Run every cleanup step for the event's topic.

        Returns:
            CleanupOutcome listing each step in execution order
        """
        outcome = CleanupOutcome(shop_domain=event.shop_domain, topic=event.topic)

        for name, step in self._steps_for(event.topic):
            outcome.record(self._run_step(name, step, event))

        return outcome

    def _steps_for(self, topic: WebhookTopic) -> List[Tuple[str, StepFn]]:
        steps = {
            WebhookTopic.APP_UNINSTALLED: [
                ("delete_sessions", self._delete_sessions),
                ("mark_shop_uninstalled", self._mark_shop_uninstalled),
            ],
            WebhookTopic.SHOP_REDACT: [
                ("delete_sessions", self._delete_sessions),
                ("delete_share_links", self._delete_share_links),
                ("delete_shop_record", self._delete_shop_record),
                ("confirm_no_retained_data", self._confirm_no_retained_data),
            ],
            WebhookTopic.CUSTOMERS_REDACT: [
                ("confirm_no_customer_data", self._confirm_no_customer_data),
            ],
            WebhookTopic.CUSTOMERS_DATA_REQUEST: [
                ("confirm_no_customer_data", self._confirm_no_customer_data),
            ],
        }
        return steps[topic]

    def _run_step(self, name: str, step: StepFn, event: WebhookEvent) -> CleanupStep:
        try:
            affected = step(event)
        except Exception as e:
            if self.db is not None:
                self.db.rollback()
            return CleanupStep(
                name=name,
                succeeded=False,
                error_detail=f"{type(e).__name__}: {e}",
            )
        return CleanupStep(name=name, succeeded=True, records_affected=affected)

    # =========================================================================
    # Steps
    # =========================================================================

    def _require_db(self) -> Session:
        if self.db is None:
            raise CleanupUnavailableError("Database not configured")
        return self.db

    def _find_shop(self, shop_domain: str) -> Optional[Shop]:
        return (
            self._require_db()
            .query(Shop)
            .filter(Shop.shop_domain == shop_domain)
            .first()
        )

    def _delete_sessions(self, event: WebhookEvent) -> int:
        if self.credential_store is None:
            raise CredentialStoreError("Credential store not available")
        return self.credential_store.delete_tenant_sessions(event.shop_domain)

    def _mark_shop_uninstalled(self, event: WebhookEvent) -> int:
        db = self._require_db()
        shop = self._find_shop(event.shop_domain)
        if shop is None or shop.status == ShopStatus.UNINSTALLED:
            return 0

        shop.status = ShopStatus.UNINSTALLED
        shop.uninstalled_at = datetime.now(timezone.utc)
        db.commit()

        logger.info("Shop marked as uninstalled", extra={
            "shop_domain": event.shop_domain,
            "shop_id": shop.id,
        })
        return 1

    def _delete_share_links(self, event: WebhookEvent) -> int:
        db = self._require_db()
        shop = self._find_shop(event.shop_domain)
        if shop is None:
            return 0

        share_ids = db.query(WrappedShare.id).filter(WrappedShare.shop_id == shop.id)
        db.query(WrappedShareView).filter(
            WrappedShareView.share_id.in_(share_ids.scalar_subquery())
        ).delete(synchronize_session=False)
        deleted = (
            db.query(WrappedShare)
            .filter(WrappedShare.shop_id == shop.id)
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted

    def _delete_shop_record(self, event: WebhookEvent) -> int:
        db = self._require_db()
        shop = self._find_shop(event.shop_domain)
        if shop is None:
            return 0

        # Share rows are only reachable through the shop; keep it until they are gone
        remaining_shares = db.query(WrappedShare).filter(WrappedShare.shop_id == shop.id).count()
        if remaining_shares:
            raise RetainedDataError(
                f"{remaining_shares} share links still reference shop {shop.id}"
            )

        deleted = (
            db.query(Shop)
            .filter(Shop.id == shop.id)
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted

    def _confirm_no_retained_data(self, event: WebhookEvent) -> int:
        db = self._require_db()
        if self.credential_store is None:
            raise CredentialStoreError("Credential store not available")

        remaining_sessions = self.credential_store.count_tenant_sessions(event.shop_domain)
        remaining_shops = db.query(Shop).filter(Shop.shop_domain == event.shop_domain).count()
        remaining_shares = (
            db.query(WrappedShare)
            .join(Shop, WrappedShare.shop_id == Shop.id)
            .filter(Shop.shop_domain == event.shop_domain)
            .count()
        )

        remaining = remaining_sessions + remaining_shops + remaining_shares
        if remaining:
            raise RetainedDataError(
                f"{remaining} records remain (sessions={remaining_sessions}, "
                f"shops={remaining_shops}, shares={remaining_shares})"
            )
        return 0

    def _confirm_no_customer_data(self, event: WebhookEvent) -> int:
        customer = event.payload.get("customer") or {}
        logger.info("No customer data retained", extra={
            "shop_domain": event.shop_domain,
            "topic": event.topic.value,
            "customer_id": customer.get("id") if isinstance(customer, dict) else None,
        })
        return 0
