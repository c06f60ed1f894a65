"""
Unit tests for request builders.

Tests the purchase and renewal request shapes, the empty-groups skip and the
auto-renewal disable lookup.
"""

import logging

import pytest

from sale_actions.core.models import DispatchOutcome, RenewalToggleRecord, SaleRecord
from sale_actions.processing.requests import (
    DispatchContext,
    SkipRecord,
    build_purchase_requests,
    build_renewal_requests,
    encode_query,
    format_expiry,
)

pytestmark = pytest.mark.unit

MANAGED_GROUP_ID = "112233"


def sale(docs, groups=("g1", "g2"), email="a@b.com", **extra) -> SaleRecord:
    return SaleRecord.model_validate({
        **docs.sale("t1", "h1", **extra),
        "metadata": [docs.metadata("h1", email=email)],
        "same_tx_groups": list(groups),
    })


def renewal(docs, allowance="1000", groups=("g1",), email="a@b.com") -> RenewalToggleRecord:
    return RenewalToggleRecord.model_validate({
        **docs.renewal("t1", "h1", allowance=allowance),
        "metadata": [docs.metadata("h1", email=email)],
        "same_tx_groups": list(groups),
    })


class TestEncoding:
    """Tests for query and expiry encoding"""

    def test_keys_literal_values_encoded(self):
        """Test that bracketed keys stay literal while values are encoded"""
        query = encode_query([("email", "a+b@c.com"), ("fields[name]", "x y"), ("groups[]", "g1")])
        assert query == "email=a%2Bb@c.com&fields[name]=x%20y&groups[]=g1"

    def test_expiry_rendered_utc(self):
        """Test expiry rendering in UTC"""
        assert format_expiry(0) == "1970-01-01 00:00:00"
        assert format_expiry(1731536000) == "2024-11-13 22:13:20"

    def test_unrepresentable_expiry(self):
        """Test that an out-of-range timestamp renders as none"""
        assert format_expiry(10**20) == "none"


class TestPurchaseRequests:
    """Tests for build_purchase_requests"""

    def test_subscriber_upsert(self, docs, notification_client):
        """Test the purchase POST with groups as repeated parameters"""
        context = DispatchContext(notification_client, MANAGED_GROUP_ID)

        requests = build_purchase_requests(sale(docs), context)

        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert requests[0].body is None
        assert requests[0].path == (
            "/subscribers?email=a@b.com&fields[name]=alice.stark"
            "&fields[expiry]=2024-11-13%2022:13:20&groups[]=g1&groups[]=g2"
        )

    def test_empty_groups_skipped(self, docs, notification_client):
        """Test that a purchase without sibling groups is skipped with a warning"""
        context = DispatchContext(notification_client, MANAGED_GROUP_ID)

        with pytest.raises(SkipRecord) as exc_info:
            build_purchase_requests(sale(docs, groups=()), context)

        assert exc_info.value.outcome is DispatchOutcome.SKIPPED_NO_GROUPS
        assert exc_info.value.level == logging.WARNING
        assert "a@b.com" in str(exc_info.value)


class TestRenewalRequests:
    """Tests for build_renewal_requests"""

    def test_enable_upsert(self, docs, notification_client, mailing_api):
        """Test that enabling auto-renewal posts the renewer without any lookup"""
        context = DispatchContext(notification_client, MANAGED_GROUP_ID)

        requests = build_renewal_requests(renewal(docs), context)

        assert [request.method for request in requests] == ["POST"]
        assert requests[0].path == (
            "/subscribers?email=a@b.com&fields[name]=alice.stark&fields[renewer]=0x0a11ce&groups[]=g1"
        )
        assert mailing_api.requests == []

    def test_enable_with_empty_groups_skipped(self, docs, notification_client):
        """Test that the empty-groups skip applies to enable toggles"""
        context = DispatchContext(notification_client, MANAGED_GROUP_ID)

        with pytest.raises(SkipRecord) as exc_info:
            build_renewal_requests(renewal(docs, groups=()), context)

        assert exc_info.value.outcome is DispatchOutcome.SKIPPED_NO_GROUPS

    def test_disable_removes_managed_group(self, docs, notification_client, mailing_api):
        """Test that disabling looks the subscriber up and drops the managed group"""
        mailing_api.subscribers["a@b.com"] = {
            "id": 42,
            "groups": [{"id": "7"}, {"id": MANAGED_GROUP_ID}, {"id": "9"}],
        }
        context = DispatchContext(notification_client, MANAGED_GROUP_ID)

        requests = build_renewal_requests(renewal(docs, allowance="0", groups=()), context)

        assert [request.method for request in mailing_api.requests] == ["GET"]
        assert mailing_api.requests[0].url.path == "/api/subscribers/a@b.com"
        assert len(requests) == 1
        assert requests[0].method == "PUT"
        assert requests[0].path == "/subscribers/42"
        assert requests[0].body == {"groups": ["7", "9"]}

    def test_disable_lookup_failure_skipped(self, docs, notification_client, mailing_api):
        """Test that a failed lookup skips the record at error level"""
        context = DispatchContext(notification_client, MANAGED_GROUP_ID)

        with pytest.raises(SkipRecord) as exc_info:
            build_renewal_requests(renewal(docs, allowance="0"), context)

        assert exc_info.value.outcome is DispatchOutcome.SKIPPED_LOOKUP_FAILED
        assert exc_info.value.level == logging.ERROR
        assert "Resource not found" in str(exc_info.value)

    def test_disable_unexpected_payload_skipped(self, docs, notification_client, mailing_api):
        """Test that a payload without groups is treated as a failed lookup"""
        mailing_api.subscribers["a@b.com"] = {"id": 42}
        context = DispatchContext(notification_client, MANAGED_GROUP_ID)

        with pytest.raises(SkipRecord) as exc_info:
            build_renewal_requests(renewal(docs, allowance="0"), context)

        assert exc_info.value.outcome is DispatchOutcome.SKIPPED_LOOKUP_FAILED
