"""
Tests for commission bookkeeping.
"""

import pytest

from telemed.auth.actor import Actor, Role
from telemed.payments.models import CommissionStatus
from telemed.referral.errors import (
    CommissionStateError,
    InvalidInputError,
    PaymentNotFoundError,
    PermissionDeniedError,
)


@pytest.fixture
def payment_id(engine, make_code, patient):
    """A redeemed booking: 75 off 500 with 45 commission for agent-1."""
    make_code(code="AGENT15")
    return engine.redeem("AGENT15", 500, patient, booking_ref="appt-1").payment_id


class TestTransitions:
    def test_pay_calculated_commission(self, commission_service, admin, payment_id):
        payment = commission_service.mark_paid(admin, payment_id)

        assert payment.commission_status == CommissionStatus.PAID.value
        assert payment.commission_paid_at is not None

    def test_hold_and_release(self, commission_service, admin, payment_id):
        held = commission_service.hold(admin, payment_id)
        assert held.commission_status == CommissionStatus.ON_HOLD.value

        with pytest.raises(CommissionStateError):
            commission_service.mark_paid(admin, payment_id)

        released = commission_service.release(admin, payment_id)
        assert released.commission_status == CommissionStatus.CALCULATED.value

    def test_paid_is_terminal(self, commission_service, admin, payment_id):
        commission_service.mark_paid(admin, payment_id)

        with pytest.raises(CommissionStateError):
            commission_service.hold(admin, payment_id)
        with pytest.raises(CommissionStateError):
            commission_service.update_commission(payment_id, 10)

    def test_release_requires_hold(self, commission_service, admin, payment_id):
        with pytest.raises(CommissionStateError):
            commission_service.release(admin, payment_id)

    def test_admin_only(self, commission_service, agent, payment_id):
        with pytest.raises(PermissionDeniedError):
            commission_service.mark_paid(agent, payment_id)

    def test_unknown_payment(self, commission_service, admin):
        with pytest.raises(PaymentNotFoundError):
            commission_service.mark_paid(admin, "PAYMISSING")


class TestUpdateCommission:
    def test_overwrites_amount(self, commission_service, payment_id):
        payment = commission_service.update_commission(payment_id, 50)

        assert payment.agent_commission == 50
        assert payment.commission_status == CommissionStatus.CALCULATED.value

    def test_cannot_move_back_to_pending(self, commission_service, payment_id):
        with pytest.raises(CommissionStateError):
            commission_service.update_commission(payment_id, 50, CommissionStatus.PENDING)

    def test_negative_amount(self, commission_service, payment_id):
        with pytest.raises(InvalidInputError):
            commission_service.update_commission(payment_id, -1)


class TestAgentSummary:
    def test_agent_sees_own_totals(self, commission_service, engine, admin, agent, patient, payment_id):
        engine.redeem("AGENT15", 1000, patient, booking_ref="appt-2")
        commission_service.mark_paid(admin, payment_id)

        summary = commission_service.agent_summary(agent, agent_id="agent-9")

        assert summary["agentId"] == "agent-1"
        assert summary["totalPayments"] == 2
        assert summary["totalDiscountGiven"] == pytest.approx(225)
        assert summary["totalCommission"] == pytest.approx(135)
        assert summary["commissionByStatus"]["paid"] == pytest.approx(45)
        assert summary["commissionByStatus"]["calculated"] == pytest.approx(90)

    def test_admin_needs_agent_id(self, commission_service, admin):
        with pytest.raises(InvalidInputError):
            commission_service.agent_summary(admin)

    def test_admin_views_any_agent(self, commission_service, admin, payment_id):
        summary = commission_service.agent_summary(admin, agent_id="agent-1")

        assert [t["paymentId"] for t in summary["transactions"]] == [payment_id]

    def test_patient_denied(self, commission_service, patient):
        with pytest.raises(PermissionDeniedError):
            commission_service.agent_summary(patient, agent_id="agent-1")

    def test_doctor_denied(self, commission_service):
        with pytest.raises(PermissionDeniedError):
            commission_service.agent_summary(Actor("doctor-1", Role.DOCTOR), agent_id="agent-1")
