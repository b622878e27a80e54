# backend/filmstock/services/cash_ledger_service.py
"""
Cash ledger collaborator and outbox dispatcher.

Every sale enqueues a CashInflowNotification in its own DB transaction.
This module delivers those rows:

- use_external=True: POST to {CASH_LEDGER_URL}/cash_inflow with an
  Idempotency-Key header, retried on transport errors and 5xx responses.
- use_external=False: insert into local_cash_inflows (one row per key).

Delivery is at-least-once from our side; the idempotency key makes it
effectively once on the ledger side. A notification that keeps failing is
marked FAILED after CASH_LEDGER_MAX_ATTEMPTS and can be requeued by an admin.
"""
from __future__ import annotations

from datetime import date, datetime

import httpx
from flask import current_app

from ..extensions import db
from ..models import CashInflowNotification, LocalCashInflow
from ..models.sales import NOTIFICATION_PENDING, NOTIFICATION_SENT, NOTIFICATION_FAILED
from ..validation import NotFoundError, ValidationError
from filmstock.time_utils import to_utc_z, utcnow
from .concurrency import RetryPolicy, lock_for_update

NOTIFICATION_STATUSES = (NOTIFICATION_PENDING, NOTIFICATION_SENT, NOTIFICATION_FAILED)


class CashLedgerError(Exception):
    """The cash ledger rejected an entry or could not be reached."""

    def __init__(self, message: str, *, status_code: int | None = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


def is_transient_cash_ledger_error(exc: BaseException) -> bool:
    return isinstance(exc, CashLedgerError) and exc.retryable


class CashLedgerClient:
    """
    Thin httpx wrapper around the external cash ledger API.

    Usable as a context manager; the underlying connection pool is closed
    on exit.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        project_id: str = "",
        user_id: str = "",
        timeout: float = 10.0,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        if not base_url:
            raise CashLedgerError("Cash ledger URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.project_id = project_id
        self.user_id = user_id
        self.retry_policy = retry_policy or RetryPolicy(retryable=is_transient_cash_ledger_error)
        self.client = httpx.Client(timeout=timeout, transport=transport)

    @classmethod
    def from_config(cls, config, attempts: int | None = None) -> "CashLedgerClient":
        if attempts is None:
            attempts = int(config.get("CASH_LEDGER_RETRY_ATTEMPTS", 3))
        return cls(
            config.get("CASH_LEDGER_URL", ""),
            api_key=config.get("CASH_LEDGER_API_KEY", ""),
            project_id=config.get("CASH_LEDGER_PROJECT_ID", ""),
            user_id=config.get("CASH_LEDGER_USER_ID", ""),
            timeout=float(config.get("CASH_LEDGER_TIMEOUT", 10)),
            retry_policy=RetryPolicy(
                attempts=attempts,
                backoff_base=float(config.get("CASH_LEDGER_RETRY_BACKOFF", 1.0)),
                retryable=is_transient_cash_ledger_error,
            ),
            transport=config.get("CASH_LEDGER_TRANSPORT"),
        )

    def __enter__(self) -> "CashLedgerClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def _headers(self, idempotency_key: str) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": idempotency_key,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_entry(self, *, amount: int, description: str, entry_date: date) -> dict:
        return {
            "date": entry_date.isoformat(),
            "amount": amount,
            "source": "sale",
            "description": description,
            "projectId": self.project_id,
            "userId": self.user_id,
            "createdAt": to_utc_z(utcnow()),
        }

    def create_entry(
        self,
        *,
        amount: int,
        description: str,
        idempotency_key: str,
        entry_date: date,
    ) -> str:
        """POST one cash inflow. Returns the ledger's entry id."""
        payload = self.build_entry(amount=amount, description=description, entry_date=entry_date)

        def _post() -> httpx.Response:
            try:
                response = self.client.post(
                    f"{self.base_url}/cash_inflow",
                    headers=self._headers(idempotency_key),
                    json=payload,
                )
            except httpx.TransportError as exc:
                raise CashLedgerError(f"Cash ledger unreachable: {exc}", retryable=True) from exc
            except httpx.HTTPError as exc:
                raise CashLedgerError(f"Cash ledger request failed: {exc}") from exc

            if response.status_code >= 500:
                raise CashLedgerError(
                    f"Cash ledger error {response.status_code}",
                    status_code=response.status_code,
                    retryable=True,
                )
            if response.status_code >= 400:
                raise CashLedgerError(
                    f"Cash ledger rejected entry ({response.status_code}): {response.text[:200]}",
                    status_code=response.status_code,
                )
            return response

        response = self.retry_policy.run(_post)

        try:
            data = response.json()
        except ValueError:
            data = {}
        entry_id = data.get("id") if isinstance(data, dict) else None
        return str(entry_id or idempotency_key)


def create_cash_inflow_entry(
    *,
    amount: int,
    description: str,
    use_external: bool,
    idempotency_key: str,
    entry_date: date | datetime | None = None,
    attempts: int | None = None,
) -> str:
    """
    Book one cash inflow and return its id.

    The local branch flushes but does not commit; the caller owns the DB
    transaction. `attempts` overrides CASH_LEDGER_RETRY_ATTEMPTS for the
    external call.

    Raises:
        CashLedgerError: external ledger unreachable or rejected the entry
    """
    if isinstance(entry_date, datetime):
        entry_date = entry_date.date()
    entry_date = entry_date or utcnow().date()

    if use_external:
        with CashLedgerClient.from_config(current_app.config, attempts=attempts) as client:
            return client.create_entry(
                amount=amount,
                description=description,
                idempotency_key=idempotency_key,
                entry_date=entry_date,
            )

    row = LocalCashInflow.query.filter_by(idempotency_key=idempotency_key).first()
    if row is None:
        row = LocalCashInflow(
            date=entry_date,
            amount=amount,
            source="sale",
            description=description,
            idempotency_key=idempotency_key,
        )
        db.session.add(row)
        db.session.flush()
    return f"local-{row.id}"


def _record_failure(notification: CashInflowNotification, exc: Exception) -> None:
    notification.attempts += 1
    notification.last_error = str(exc)[:255] or type(exc).__name__
    max_attempts = int(current_app.config.get("CASH_LEDGER_MAX_ATTEMPTS", 10))
    if notification.attempts >= max_attempts:
        notification.status = NOTIFICATION_FAILED
    db.session.commit()


def dispatch_notification(notification_id: int, *, attempts: int | None = None) -> bool:
    """
    Deliver one outbox row. Returns True once the row is SENT.

    Idempotent: SENT rows are skipped, FAILED rows are left for requeue.
    Ledger failures are recorded on the row and logged, never raised.
    `attempts` caps the HTTP retries for this call; the sale path passes 1
    so a slow ledger cannot hold the request open.
    """
    notification = lock_for_update(
        db.session.query(CashInflowNotification).filter_by(id=notification_id)
    ).populate_existing().first()
    if notification is None:
        raise NotFoundError(f"Notification {notification_id} not found")
    if notification.status == NOTIFICATION_SENT:
        return True
    if notification.status == NOTIFICATION_FAILED:
        return False

    sale = notification.sale
    try:
        entry_id = create_cash_inflow_entry(
            amount=notification.amount,
            description=notification.description,
            use_external=notification.use_external,
            idempotency_key=notification.idempotency_key,
            entry_date=sale.date if sale is not None else None,
            attempts=attempts,
        )
    except CashLedgerError as exc:
        _record_failure(notification, exc)
        current_app.logger.warning(
            "Cash inflow notification %s for sale %s failed (attempt %s, status %s): %s",
            notification.id, notification.sale_id, notification.attempts, notification.status, exc,
        )
        return False

    notification.attempts += 1
    notification.status = NOTIFICATION_SENT
    notification.external_id = entry_id
    notification.last_error = None
    notification.sent_at = utcnow()
    if sale is not None:
        sale.cash_inflow_id = entry_id
    db.session.commit()
    current_app.logger.info(
        "Cash inflow %s recorded for sale %s", entry_id, notification.sale_id,
    )
    return True


def dispatch_pending(limit: int = 50) -> dict:
    """
    Deliver up to `limit` PENDING rows, oldest first.

    An unexpected error on one row is recorded against that row and the
    batch moves on.
    """
    if limit <= 0:
        raise ValidationError("limit must be > 0")

    ids = [
        row_id
        for (row_id,) in db.session.query(CashInflowNotification.id)
        .filter(CashInflowNotification.status == NOTIFICATION_PENDING)
        .order_by(CashInflowNotification.created_at.asc(), CashInflowNotification.id.asc())
        .limit(limit)
        .all()
    ]

    sent = 0
    for notification_id in ids:
        try:
            delivered = dispatch_notification(notification_id)
        except Exception as exc:
            db.session.rollback()
            current_app.logger.exception(
                "Cash inflow notification %s raised during dispatch", notification_id,
            )
            notification = db.session.get(CashInflowNotification, notification_id)
            if notification is not None and notification.status == NOTIFICATION_PENDING:
                _record_failure(notification, exc)
            continue
        if delivered:
            sent += 1

    return {
        "attempted": len(ids),
        "sent": sent,
        "failed": len(ids) - sent,
        "pending": count_pending(),
    }


def count_pending() -> int:
    return CashInflowNotification.query.filter_by(status=NOTIFICATION_PENDING).count()


def list_notifications(*, status: str | None = None, limit: int = 100) -> list[CashInflowNotification]:
    q = CashInflowNotification.query
    if status is not None:
        status = status.upper()
        if status not in NOTIFICATION_STATUSES:
            raise ValidationError(f"status must be one of: {', '.join(NOTIFICATION_STATUSES)}")
        q = q.filter(CashInflowNotification.status == status)
    return (
        q.order_by(CashInflowNotification.created_at.desc(), CashInflowNotification.id.desc())
        .limit(limit)
        .all()
    )


def requeue_failed() -> int:
    """Put FAILED rows back to PENDING with a fresh attempt budget."""
    rows = CashInflowNotification.query.filter_by(status=NOTIFICATION_FAILED).all()
    for row in rows:
        row.status = NOTIFICATION_PENDING
        row.attempts = 0
    db.session.commit()
    return len(rows)
