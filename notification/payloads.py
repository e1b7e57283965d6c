"""
Typed `data` payloads per notification type.

Ids are carried as strings and dates as ISO strings so the JSON stored in
`notifications.data` compares the same way in dedup lookups regardless of
the database backend. Types without a registered schema accept any mapping.
"""

from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict

from notification.types import NotificationType, type_value


def _to_str(value: Any) -> Any:
    if value is None:
        return None
    return str(value)


def _to_iso_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _to_iso_timestamp(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


EntityId = Annotated[str, BeforeValidator(_to_str)]
IsoDate = Annotated[str, BeforeValidator(_to_iso_date)]
IsoTimestamp = Annotated[str, BeforeValidator(_to_iso_timestamp)]


class Payload(BaseModel):
    model_config = ConfigDict(extra='forbid')


class BookingPayload(Payload):
    booking_id: EntityId
    status: Optional[str] = None
    service_title: Optional[str] = None
    reminder_type: Optional[str] = None
    booking_date: Optional[IsoTimestamp] = None


class BookingOverduePayload(Payload):
    booking_id: EntityId
    due_at: IsoTimestamp
    role: Optional[str] = None


class LoanRepaymentPayload(Payload):
    loan_id: EntityId
    repayment_id: EntityId
    due_date: IsoDate
    amount: Optional[str] = None


class SalaryAdvancePayload(Payload):
    advance_id: EntityId
    due_date: IsoDate
    amount: Optional[str] = None


class RentalPayload(Payload):
    rental_id: EntityId
    end_date: IsoDate
    role: str = 'renter'
    item_title: Optional[str] = None


class OrderPayload(Payload):
    order_id: EntityId
    customer_id: Optional[EntityId] = None
    url: Optional[str] = None


class ReorderPayload(Payload):
    last_order_id: EntityId
    last_delivered_on: IsoDate


class JobApplicationFollowupPayload(Payload):
    application_id: EntityId
    job_id: EntityId
    job_title: Optional[str] = None


class JobDigestPayload(Payload):
    since: IsoDate
    job_count: int
    job_ids: List[EntityId] = []


class LiveChatPayload(Payload):
    session_id: EntityId
    waiting_minutes: int


class MessageReceivedPayload(Payload):
    conversation_id: EntityId
    sender_id: Optional[EntityId] = None
    sender_name: Optional[str] = None
    last_message_at: Optional[IsoTimestamp] = None


class ModerationFlagPayload(Payload):
    message_id: EntityId
    conversation_id: EntityId
    sender_id: EntityId
    created_at: IsoTimestamp
    reasons: List[str] = []


class PolicyWarningPayload(Payload):
    message_id: EntityId
    conversation_id: EntityId


class ReferralTierPayload(Payload):
    tier: str
    total_referrals: Optional[int] = None


class SubscriptionDunningPayload(Payload):
    subscription_id: EntityId
    day: int
    status: Optional[str] = None


class SubscriptionExpiringPayload(Payload):
    subscription_id: EntityId
    end_date: IsoDate
    plan_name: Optional[str] = None


class CertificatePendingPayload(Payload):
    enrollment_id: EntityId
    course_id: EntityId
    student_id: EntityId


class EnrollmentPayload(Payload):
    enrollment_id: EntityId
    course_id: EntityId
    course_title: Optional[str] = None


class EscrowDisputePayload(Payload):
    escrow_id: EntityId
    booking_id: Optional[EntityId] = None
    raised_at: IsoTimestamp


T = NotificationType

PAYLOAD_SCHEMAS: Dict[str, Type[Payload]] = {
    T.BOOKING_CREATED.value: BookingPayload,
    T.BOOKING_CONFIRMED.value: BookingPayload,
    T.BOOKING_CANCELLED.value: BookingPayload,
    T.BOOKING_COMPLETED.value: BookingPayload,
    T.BOOKING_IN_PROGRESS.value: BookingPayload,
    T.BOOKING_CONFIRMATION_NEEDED.value: BookingPayload,
    T.BOOKING_PENDING_SOON.value: BookingPayload,
    T.BOOKING_OVERDUE_COMPLETION.value: BookingOverduePayload,
    T.BOOKING_OVERDUE_ADMIN_ALERT.value: BookingOverduePayload,
    T.LOAN_REPAYMENT_DUE.value: LoanRepaymentPayload,
    T.LOAN_REPAYMENT_OVERDUE.value: LoanRepaymentPayload,
    T.SALARY_ADVANCE_DUE.value: SalaryAdvancePayload,
    T.SALARY_ADVANCE_OVERDUE.value: SalaryAdvancePayload,
    T.RENTAL_DUE_SOON.value: RentalPayload,
    T.RENTAL_OVERDUE.value: RentalPayload,
    T.SUPPLIES_REORDER_REMINDER.value: ReorderPayload,
    T.ORDER_PAYMENT_PENDING.value: OrderPayload,
    T.ORDER_SLA_ALERT.value: OrderPayload,
    T.ORDER_DELIVERY_LATE_ALERT.value: OrderPayload,
    T.ORDER_DELIVERY_CONFIRMATION.value: OrderPayload,
    T.ORDER_AUTO_DELIVERED.value: OrderPayload,
    T.JOB_APPLICATION_FOLLOWUP.value: JobApplicationFollowupPayload,
    T.JOB_DIGEST.value: JobDigestPayload,
    T.LIVECHAT_SLA_ALERT.value: LiveChatPayload,
    T.MESSAGE_RECEIVED.value: MessageReceivedPayload,
    T.MESSAGE_MODERATION_FLAG.value: ModerationFlagPayload,
    T.MESSAGE_POLICY_WARNING.value: PolicyWarningPayload,
    T.REFERRAL_TIER_UPGRADED.value: ReferralTierPayload,
    T.SUBSCRIPTION_DUNNING_REMINDER.value: SubscriptionDunningPayload,
    T.SUBSCRIPTION_EXPIRING_SOON.value: SubscriptionExpiringPayload,
    T.ACADEMY_CERTIFICATE_PENDING.value: CertificatePendingPayload,
    T.ACADEMY_NOT_STARTED.value: EnrollmentPayload,
    T.ACADEMY_PROGRESS_STALLED.value: EnrollmentPayload,
    T.ESCROW_DISPUTE_UNRESOLVED.value: EscrowDisputePayload,
    T.ESCROW_DISPUTE_EVIDENCE_NEEDED.value: EscrowDisputePayload,
}

del T


def register_payload(notification_type: Union[NotificationType, str], schema: Type[Payload]) -> None:
    if not issubclass(schema, BaseModel):
        raise ValueError("Payload schema must be a pydantic model")
    PAYLOAD_SCHEMAS[type_value(notification_type)] = schema


def get_schema(notification_type: Union[NotificationType, str]) -> Optional[Type[Payload]]:
    return PAYLOAD_SCHEMAS.get(type_value(notification_type))


def build_payload(
    notification_type: Union[NotificationType, str],
    data: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Validate and normalise `data` for `notification_type`.

    Raises pydantic.ValidationError (a ValueError) when the payload does
    not fit the registered schema.
    """
    data = dict(data or {})
    schema = get_schema(notification_type)
    if schema is None:
        return data
    return schema.model_validate(data).model_dump(exclude_none=True)
