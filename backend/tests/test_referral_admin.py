"""
Tests for referral code administration.
"""

from datetime import datetime, timedelta, timezone

import pytest

from telemed.referral.errors import (
    DuplicateCodeError,
    InvalidInputError,
    PermissionDeniedError,
    ReferralCodeMissingError,
)
from telemed.referral.models import CodeStatus
from telemed.settings import settings
from telemed.storage.models import utcnow


class TestCreateCode:
    def test_defaults(self, code_service, admin):
        code = code_service.create_code(
            admin, agent_id="agent-1", discount_type="fixed", discount_value=100, code="flat100"
        )

        assert code.id is not None
        assert code.code == "FLAT100"
        assert code.usage_count == 0
        assert code.max_usage == settings.default_max_usage
        assert code.commission_rate == settings.default_commission_rate
        assert code.is_active is True
        assert code.assigned_by == "admin-1"
        assert code.status == CodeStatus.ACTIVE

    def test_generated_code(self, code_service, admin):
        code = code_service.create_code(
            admin, agent_id="agent-1", discount_type="percentage", discount_value=10
        )

        assert len(code.code) == settings.referral_code_length
        assert not set(code.code) & set("0OIl1")

    def test_duplicate_code(self, make_code):
        make_code(code="AGENT15")

        with pytest.raises(DuplicateCodeError):
            make_code(code="agent15")

    def test_requires_admin(self, code_service, agent):
        with pytest.raises(PermissionDeniedError):
            code_service.create_code(
                agent, agent_id="agent-1", discount_type="percentage", discount_value=10
            )

    @pytest.mark.parametrize(
        "overrides",
        [
            {"discount_type": "bogus"},
            {"discount_type": "percentage", "discount_value": 0},
            {"discount_type": "percentage", "discount_value": 101},
            {"discount_type": "fixed", "discount_value": 0},
            {"commission_rate": 120},
            {"commission_rate": -1},
            {"max_usage": 0},
            {"max_usage_per_user": 0},
            {"min_order_amount": -5},
            {"max_discount_amount": 0},
            {"target_roles": ["superuser"]},
            {"agent_id": "  "},
        ],
    )
    def test_rejects_inconsistent_terms(self, make_code, overrides):
        with pytest.raises(InvalidInputError):
            make_code(**overrides)

    def test_expiration_before_start_rejected(self, make_code):
        start = utcnow() + timedelta(days=5)

        with pytest.raises(InvalidInputError):
            make_code(start_date=start, expiration_date=start - timedelta(days=1))

    def test_aware_dates_stored_as_utc(self, make_code):
        expires = datetime(2030, 1, 1, 5, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))

        code = make_code(expiration_date=expires)

        assert code.expiration_date == datetime(2030, 1, 1, 0, 0)


class TestUpdateCode:
    def test_update_fields(self, make_code, code_service, admin):
        code = make_code(code="AGENT15")

        updated = code_service.update_code(admin, code.id, discount_value=20, max_usage=50)

        assert updated.discount_value == 20
        assert updated.max_usage == 50

    def test_max_usage_below_usage_count(self, make_code, code_service, set_usage, admin):
        code = make_code(code="AGENT15")
        set_usage(code.id, 10)

        with pytest.raises(InvalidInputError):
            code_service.update_code(admin, code.id, max_usage=9)

        assert code_service.update_code(admin, code.id, max_usage=10).max_usage == 10

    def test_switching_to_percentage_validates_value(self, make_code, code_service, admin):
        code = make_code(discount_type="fixed", discount_value=250)

        with pytest.raises(InvalidInputError):
            code_service.update_code(admin, code.id, discount_type="percentage")

    def test_unknown_field(self, make_code, code_service, admin):
        code = make_code()

        with pytest.raises(InvalidInputError):
            code_service.update_code(admin, code.id, usage_count=0)

    def test_missing_code(self, code_service, admin):
        with pytest.raises(ReferralCodeMissingError):
            code_service.update_code(admin, 999, discount_value=5)

    @pytest.mark.parametrize(
        "field", ["discount_type", "discount_value", "commission_rate", "max_usage", "min_order_amount", "is_active"]
    )
    def test_required_field_cannot_be_null(self, make_code, code_service, admin, field):
        code = make_code()

        with pytest.raises(InvalidInputError):
            code_service.update_code(admin, code.id, **{field: None})

    def test_optional_fields_can_be_cleared(self, make_code, code_service, admin):
        code = make_code(max_usage_per_user=2, expiration_date=utcnow() + timedelta(days=3))

        updated = code_service.update_code(admin, code.id, max_usage_per_user=None, expiration_date=None)

        assert updated.max_usage_per_user is None
        assert updated.expiration_date is None

    def test_deactivation_goes_through_deactivate(self, make_code, code_service, admin, load_code):
        code = make_code()

        with pytest.raises(InvalidInputError):
            code_service.update_code(admin, code.id, is_active=False)

        assert load_code(code.id).is_active is True

    def test_reactivation_clears_audit(self, make_code, code_service, admin):
        code = make_code()
        code_service.deactivate_code(admin, code.id, "paused")

        updated = code_service.update_code(admin, code.id, is_active=True)

        assert updated.is_active is True
        assert updated.deactivated_at is None
        assert updated.deactivation_reason is None


class TestDeactivateCode:
    def test_deactivate(self, make_code, code_service, admin, load_code):
        code = make_code(code="AGENT15")

        code_service.deactivate_code(admin, code.id, "agent left")

        stored = load_code(code.id)
        assert stored.is_active is False
        assert stored.deactivated_by == "admin-1"
        assert stored.deactivation_reason == "agent left"
        assert stored.status == CodeStatus.INACTIVE

    def test_reason_required(self, make_code, code_service, admin):
        code = make_code()

        with pytest.raises(InvalidInputError):
            code_service.deactivate_code(admin, code.id, "")


class TestListCodes:
    def test_pagination(self, make_code, code_service, admin):
        for i in range(5):
            make_code(code=f"CODE{i}")

        data = code_service.list_codes(admin, page=2, limit=2)

        assert data["pagination"] == {"current": 2, "pages": 3, "total": 5}
        assert len(data["codes"]) == 2

    def test_filters(self, make_code, code_service, set_usage, admin):
        make_code(code="LIVE")
        make_code(code="OTHER", agent_id="agent-2")
        make_code(code="OLD", expiration_date=utcnow() - timedelta(days=1))
        full = make_code(code="FULL", max_usage=2)
        set_usage(full.id, 2)
        dead = make_code(code="DEAD")
        code_service.deactivate_code(admin, dead.id, "fraud")

        def codes(**filters):
            return {c["code"] for c in code_service.list_codes(admin, **filters)["codes"]}

        assert codes(status="active") == {"LIVE", "OTHER"}
        assert codes(status="expired") == {"OLD"}
        assert codes(status="exhausted") == {"FULL"}
        assert codes(status="inactive") == {"DEAD"}
        assert codes(agent_id="agent-2") == {"OTHER"}

    def test_unknown_status(self, code_service, admin):
        with pytest.raises(InvalidInputError):
            code_service.list_codes(admin, status="weird")


class TestAgentCodes:
    def test_agent_sees_only_own_codes(self, make_code, code_service, agent):
        make_code(code="MINE")
        make_code(code="THEIRS", agent_id="agent-2")

        codes = code_service.list_agent_codes(agent)["codes"]

        assert [c["code"] for c in codes] == ["MINE"]
        assert codes[0]["status"] == "active"

    def test_paginated(self, make_code, code_service, agent):
        for i in range(3):
            make_code(code=f"MINE{i}")

        data = code_service.list_agent_codes(agent, page=2, limit=2)

        assert data["pagination"] == {"current": 2, "pages": 2, "total": 3}
        assert len(data["codes"]) == 1

    def test_patient_denied(self, code_service, patient):
        with pytest.raises(PermissionDeniedError):
            code_service.list_agent_codes(patient)
