from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from celery.schedules import crontab

from invite_hub.core.config import get_settings
from invite_hub.db.repo.referrals_repo import ReferralsRepo
from invite_hub.db.session import SessionLocal
from invite_hub.payments.credits import CreditGateway, get_credit_gateway
from invite_hub.referrals.service import ReferralService
from invite_hub.services.alerts import send_ops_alert
from invite_hub.workers.asyncio_runner import run_async_job
from invite_hub.workers.celery_app import REFERRALS_QUEUE, celery_app

logger = structlog.get_logger(__name__)

DATA_ERROR_OUTCOMES = ("referral_missing", "product_missing")
QUALIFICATION_ALERT_EVENTS = {
    "referral_missing": "referral_record_missing",
    "product_missing": "referral_product_missing",
}
DISBURSEMENT_ALERT_EVENTS = {
    **QUALIFICATION_ALERT_EVENTS,
    "billing_identity_missing": "referral_reward_billing_identity_missing",
    "credit_failed": "referral_reward_credit_failed",
}
SWEEP_ATTENTION_KEYS = ("credit_failed", "billing_identity_missing", "data_errors", "errors")


async def _disburse_single_referral(
    referral_id: UUID,
    *,
    now_utc: datetime,
    gateway: CreditGateway,
) -> str:
    async with SessionLocal.begin() as session:
        result = await ReferralService.disburse_referral_reward(
            session,
            referral_id=referral_id,
            now_utc=now_utc,
            gateway=gateway,
        )
    return result.outcome


async def on_payment_succeeded_async(
    member_id: UUID,
    *,
    now_utc: datetime | None = None,
    gateway: CreditGateway | None = None,
) -> dict[str, str]:
    """Re-evaluate the referral of a member that just paid.

    Safe to call for every delivery of the same payment event. Unexpected
    errors are logged and reported as outcome "error" instead of raised.
    """
    now_utc = now_utc or datetime.now(timezone.utc)
    result: dict[str, str] = {"member_id": str(member_id)}

    try:
        async with SessionLocal.begin() as session:
            qualification = await ReferralService.qualify_member_referral(
                session,
                member_id=member_id,
                now_utc=now_utc,
            )
    except Exception:
        logger.exception("referral_qualification_check_error", member_id=str(member_id))
        result["qualification"] = "error"
        return result

    result["qualification"] = qualification.outcome
    qualification_alert = QUALIFICATION_ALERT_EVENTS.get(qualification.outcome)
    if qualification_alert is not None:
        await send_ops_alert(event=qualification_alert, payload=dict(result))

    if qualification.reward_due and qualification.referral_id is not None:
        result["referral_id"] = str(qualification.referral_id)
        try:
            result["reward"] = await _disburse_single_referral(
                qualification.referral_id,
                now_utc=now_utc,
                gateway=gateway or get_credit_gateway(),
            )
        except Exception:
            logger.exception(
                "referral_reward_disbursement_error",
                member_id=str(member_id),
                referral_id=str(qualification.referral_id),
            )
            result["reward"] = "error"
        alert_event = DISBURSEMENT_ALERT_EVENTS.get(result["reward"])
        if alert_event is not None:
            await send_ops_alert(event=alert_event, payload=dict(result))

    logger.info("referral_payment_check_finished", **result)
    return result


async def sweep_pending_rewards_async(
    *,
    batch_size: int | None = None,
    now_utc: datetime | None = None,
    gateway: CreditGateway | None = None,
) -> dict[str, int]:
    now_utc = now_utc or datetime.now(timezone.utc)
    batch_size = batch_size or get_settings().referral_sweep_batch_size
    gateway = gateway or get_credit_gateway()

    summary: dict[str, int] = {
        "examined": 0,
        "due": 0,
        "credited": 0,
        "forfeited": 0,
        "capped": 0,
        "credit_failed": 0,
        "billing_identity_missing": 0,
        "skipped": 0,
        "data_errors": 0,
        "errors": 0,
    }

    cursor: tuple[datetime, UUID] | None = None
    while True:
        async with SessionLocal.begin() as session:
            candidates = await ReferralsRepo.list_pending_reward_candidates(
                session,
                limit=batch_size,
                after=cursor,
            )
        if not candidates:
            break

        for candidate in candidates:
            summary["examined"] += 1
            if not ReferralService.is_reward_due(
                qualified_at=candidate.qualified_at,
                chargeback_buffer_days=candidate.chargeback_buffer_days,
                now_utc=now_utc,
            ):
                continue

            summary["due"] += 1
            try:
                outcome = await _disburse_single_referral(
                    candidate.referral_id,
                    now_utc=now_utc,
                    gateway=gateway,
                )
            except Exception:
                summary["errors"] += 1
                logger.exception(
                    "referral_reward_sweep_row_error",
                    referral_id=str(candidate.referral_id),
                )
                continue

            if outcome in DATA_ERROR_OUTCOMES:
                summary["data_errors"] += 1
            elif outcome in summary:
                summary[outcome] += 1
            else:
                summary["skipped"] += 1

        if len(candidates) < batch_size:
            break
        last = candidates[-1]
        cursor = (last.qualified_at, last.referral_id)

    if any(summary[key] > 0 for key in SWEEP_ATTENTION_KEYS):
        await send_ops_alert(
            event="referral_reward_sweep_attention_required",
            payload=summary,
        )

    logger.info("referral_reward_sweep_finished", **summary)
    return summary


@celery_app.task(name="invite_hub.workers.tasks.referrals.check_member_referral_qualification")
def check_member_referral_qualification(member_id: str) -> dict[str, str]:
    return run_async_job(
        on_payment_succeeded_async(UUID(member_id)),
        job_name="check_member_referral_qualification",
    )


@celery_app.task(name="invite_hub.workers.tasks.referrals.sweep_pending_referral_rewards")
def sweep_pending_referral_rewards(batch_size: int | None = None) -> dict[str, int]:
    return run_async_job(
        sweep_pending_rewards_async(batch_size=batch_size),
        job_name="sweep_pending_referral_rewards",
    )


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "referral-reward-sweep-daily-0400-utc": {
            "task": "invite_hub.workers.tasks.referrals.sweep_pending_referral_rewards",
            "schedule": crontab(hour=4, minute=0),
            "options": {"queue": REFERRALS_QUEUE},
        },
        "referral-reward-sweep-every-hour": {
            "task": "invite_hub.workers.tasks.referrals.sweep_pending_referral_rewards",
            "schedule": 3600.0,
            "options": {"queue": REFERRALS_QUEUE},
        },
    }
)
