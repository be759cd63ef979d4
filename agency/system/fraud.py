"""
Rule-based risk scoring of new policies
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from .models import FraudDetectionLog

logger = logging.getLogger('agency.system')

SUSPICIOUS_THRESHOLD = 60
MAX_SCORE = 100

OVERLAP_SCORE = 50
VELOCITY_SCORE = 30
VELOCITY_COUNT = 3
VELOCITY_WINDOW = timedelta(hours=24)
UNDERPRICED_SCORE = 25
UNDERPRICED_RATIO = Decimal('0.70')
BACKDATED_SCORE = 20
BACKDATED_TOLERANCE_DAYS = 1

# Policies that still cover the vehicle
OVERLAP_STATUSES = ['PendingApproval', 'Approved', 'Active']


def score_policy(policy, list_price=None):
    """
    Score ``policy`` against the fraud rules.

    Returns ``(score, reasons)``; the score is capped at 100.
    """
    policy_model = type(policy)
    score = 0
    reasons = []

    overlapping = policy_model.objects.filter(
        vehicle_id=policy.vehicle_id,
        status__in=OVERLAP_STATUSES,
        start_date__lte=policy.end_date,
        end_date__gte=policy.start_date,
    ).exclude(pk=policy.pk)
    if overlapping.exists():
        score += OVERLAP_SCORE
        reasons.append('Vehicle already has a policy covering this period.')

    recent = policy_model.objects.filter(
        customer_id=policy.customer_id,
        created_at__gte=timezone.now() - VELOCITY_WINDOW,
    ).count()
    if recent >= VELOCITY_COUNT:
        score += VELOCITY_SCORE
        reasons.append(f'Customer has {recent} policies created in the last 24 hours.')

    if list_price and policy.premium <= Decimal(list_price) * UNDERPRICED_RATIO:
        score += UNDERPRICED_SCORE
        reasons.append(f'Premium {policy.premium} is at least 30% below list price {list_price}.')

    if policy.start_date < timezone.localdate() - timedelta(days=BACKDATED_TOLERANCE_DAYS):
        score += BACKDATED_SCORE
        reasons.append(f'Start date {policy.start_date.isoformat()} is back-dated.')

    return min(score, MAX_SCORE), reasons


def evaluate_policy(policy, list_price=None):
    """Score ``policy`` and record a fraud log when any rule fires."""
    score, reasons = score_policy(policy, list_price)
    if score <= 0:
        return None

    status = FraudDetectionLog.STATUS_SUSPICIOUS if score >= SUSPICIOUS_THRESHOLD else FraudDetectionLog.STATUS_NEW
    log = FraudDetectionLog.objects.create(
        transaction_id=policy.policy_number,
        entity_name='Policy',
        entity_id=str(policy.pk),
        risk_score=score,
        reasons=reasons,
        status=status,
    )
    if status == FraudDetectionLog.STATUS_SUSPICIOUS:
        logger.warning(f"Policy {policy.policy_number} flagged as suspicious (score {score}): {'; '.join(reasons)}")
    return log
