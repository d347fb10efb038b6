"""
Low stock detection tests.

Covers severity rules, reorder suggestion, same-day dedup, filters,
threshold overrides and acknowledgment.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from stockledger.models import LowStockAlert
from stockledger.services import alert_service, movement_service
from stockledger.services.concurrency import run_with_retry
from stockledger.errors import (
    AlertAlreadyAcknowledgedError,
    AlertNotFoundError,
    AlertValidationError,
)


NOW = datetime(2026, 3, 10, 12, 0, 0)


def test_webcam_scenario_is_critical(db_session, webcam):
    result = alert_service.detect_low_stock(now=NOW)

    assert result.total_created == 1
    assert result.critical == 1
    assert result.warning == 0

    alert = result.created[0]
    assert alert.product_id == webcam.id
    assert alert.alert_severity == "CRITICAL"
    assert alert.current_stock == 8
    assert alert.reorder_level == 20
    assert alert.stock_deficit == 12
    assert alert.suggested_reorder == 40
    assert alert.is_acknowledged is False
    assert alert.alert_message == (
        "[CRITICAL] Low stock alert for Webcam HD (SKU: ELEC-004). "
        "Current stock: 8 units. Reorder level: 20 units. Deficit: 12 units. "
        "Recommended reorder quantity: 40 units."
    )


def test_zero_stock_doubles_reorder(db_session, empty_product):
    result = alert_service.detect_low_stock(now=NOW)

    alert = result.created[0]
    assert alert.alert_severity == "CRITICAL"
    assert alert.stock_deficit == 8
    assert alert.suggested_reorder == 30


@pytest.mark.parametrize(
    "stock,threshold,expected",
    [(0, 5, "CRITICAL"), (10, 20, "CRITICAL"), (11, 20, "WARNING"), (10, 21, "CRITICAL"), (19, 20, "WARNING")],
)
def test_classify_severity(stock, threshold, expected):
    assert alert_service.classify_severity(stock, threshold) == expected


def test_products_at_or_above_threshold_are_ignored(db_session, product_factory):
    product_factory("OK-1", stock=20, reorder_level=20)
    product_factory("OK-2", stock=100, reorder_level=20)

    result = alert_service.detect_low_stock(now=NOW)

    assert result.total_created == 0
    assert result.created == []


def test_inactive_and_discontinued_products_are_ignored(db_session, product_factory):
    product_factory("OFF-1", stock=0, is_active=False)
    product_factory("OFF-2", stock=0, is_discontinued=True)

    assert alert_service.detect_low_stock(now=NOW).total_created == 0


def test_second_pass_same_day_is_deduplicated(db_session, webcam, empty_product):
    first = alert_service.detect_low_stock(now=NOW)
    second = alert_service.detect_low_stock(now=NOW + timedelta(hours=3))

    assert first.total_created == 2
    assert second.total_created == 0
    assert second.created == []
    open_for_webcam = LowStockAlert.query.filter_by(product_id=webcam.id, is_acknowledged=False).count()
    assert open_for_webcam == 1


def test_next_day_raises_a_new_alert(db_session, webcam):
    alert_service.detect_low_stock(now=NOW)
    result = alert_service.detect_low_stock(now=NOW + timedelta(days=1))

    assert result.total_created == 1
    assert LowStockAlert.query.filter_by(product_id=webcam.id).count() == 2


def test_acknowledged_alert_does_not_block_same_day(db_session, webcam):
    first = alert_service.detect_low_stock(now=NOW)
    alert_service.acknowledge_alert(first.created[0].id, actor="manager", now=NOW + timedelta(minutes=5))

    again = alert_service.detect_low_stock(now=NOW + timedelta(hours=1))

    assert again.total_created == 1
    assert again.created[0].id != first.created[0].id


def test_severity_filter_skips_without_counting(db_session, webcam, product_factory):
    warning_product = product_factory("WARN-1", stock=15, reorder_level=20, reorder_quantity=25)

    critical_only = alert_service.detect_low_stock(severity_filter="critical", now=NOW)
    assert critical_only.total_created == 1
    assert critical_only.warning == 0
    assert [a.product_id for a in critical_only.created] == [webcam.id]

    warnings = alert_service.detect_low_stock(severity_filter="WARNING", now=NOW)
    assert warnings.total_created == 1
    assert warnings.created[0].product_id == warning_product.id
    assert warnings.created[0].alert_severity == "WARNING"


def test_threshold_override_replaces_reorder_level(db_session, product_factory):
    product = product_factory("OVR-1", stock=30, reorder_level=20, reorder_quantity=60)

    assert alert_service.detect_low_stock(now=NOW).total_created == 0

    result = alert_service.detect_low_stock(threshold_override=50, now=NOW)
    alert = result.created[0]
    assert alert.product_id == product.id
    assert alert.reorder_level == 50
    assert alert.stock_deficit == 20
    assert alert.alert_severity == "WARNING"
    assert alert.suggested_reorder == 60


def test_created_alerts_ordered_critical_first_then_deficit(db_session, product_factory):
    product_factory("ORD-W", stock=18, reorder_level=20)     # WARNING, deficit 2
    product_factory("ORD-C1", stock=5, reorder_level=20)     # CRITICAL, deficit 15
    product_factory("ORD-C2", stock=0, reorder_level=10)     # CRITICAL, deficit 10
    product_factory("ORD-W2", stock=12, reorder_level=20)    # WARNING, deficit 8

    result = alert_service.detect_low_stock(now=NOW)

    assert [a.sku for a in result.created] == ["ORD-C1", "ORD-C2", "ORD-W2", "ORD-W"]
    assert (result.critical, result.warning) == (2, 2)


def test_candidates_put_out_of_stock_first(db_session, product_factory):
    product_factory("CAND-A", stock=1, reorder_level=40)
    product_factory("CAND-B", stock=0, reorder_level=5)

    candidates = alert_service.find_low_stock_candidates()

    assert [c.sku for c in candidates] == ["CAND-B", "CAND-A"]


def test_detection_reads_current_balance(db_session, product_factory):
    product = product_factory("LIVE-1", reorder_level=10)
    movement_service.submit_movement(product.id, "IN", 9, actor="alice")

    alert = alert_service.detect_low_stock(now=NOW).created[0]
    assert alert.current_stock == 9
    assert alert.alert_severity == "WARNING"


@pytest.mark.parametrize("kwargs", [{"severity_filter": "LOW"}, {"threshold_override": -1}, {"threshold_override": "5"}])
def test_invalid_detection_inputs(db_session, kwargs):
    with pytest.raises(AlertValidationError):
        alert_service.detect_low_stock(now=NOW, **kwargs)


def test_acknowledge_records_actor_and_time(db_session, webcam):
    alert = alert_service.detect_low_stock(now=NOW).created[0]
    ack_time = NOW + timedelta(minutes=30)

    acked = alert_service.acknowledge_alert(alert.id, actor="manager", now=ack_time)

    assert acked.is_acknowledged is True
    assert acked.acknowledged_by == "manager"
    assert acked.acknowledged_at == ack_time
    assert acked.open_key is None


def test_acknowledge_twice_conflicts(db_session, webcam):
    alert = alert_service.detect_low_stock(now=NOW).created[0]
    alert_service.acknowledge_alert(alert.id, actor="manager")

    with pytest.raises(AlertAlreadyAcknowledgedError):
        alert_service.acknowledge_alert(alert.id, actor="manager")


def test_acknowledge_unknown_alert(db_session):
    with pytest.raises(AlertNotFoundError):
        alert_service.acknowledge_alert(123456, actor="manager")


def test_acknowledge_requires_actor(db_session, webcam):
    alert = alert_service.detect_low_stock(now=NOW).created[0]
    with pytest.raises(AlertValidationError):
        alert_service.acknowledge_alert(alert.id, actor="")


def test_list_and_count_open_alerts(db_session, webcam, product_factory):
    product_factory("WARN-2", stock=15, reorder_level=20)
    created = alert_service.detect_low_stock(now=NOW).created
    alert_service.acknowledge_alert(created[0].id, actor="manager")

    assert alert_service.count_open_alerts() == {"CRITICAL": 0, "WARNING": 1}
    open_alerts = alert_service.list_alerts(acknowledged=False)
    assert [a.sku for a in open_alerts] == ["WARN-2"]
    assert len(alert_service.list_alerts()) == 2
    assert [a.sku for a in alert_service.list_alerts(product_id=webcam.id)] == ["ELEC-004"]


def test_aware_now_uses_the_utc_calendar_day(db_session, webcam):
    # 23:30 at UTC-5 on Oct 18 is 04:30 UTC on Oct 19
    evening_local = datetime(2026, 10, 18, 23, 30, tzinfo=timezone(timedelta(hours=-5)))

    first = alert_service.detect_low_stock(now=evening_local)
    second = alert_service.detect_low_stock(now=datetime(2026, 10, 19, 5, 0))

    assert first.total_created == 1
    assert second.total_created == 0
    alert = LowStockAlert.query.filter_by(product_id=webcam.id).one()
    assert alert.created_at == datetime(2026, 10, 19, 4, 30)
    assert alert.open_key == f"{webcam.id}:2026-10-19"


def test_acknowledge_stores_aware_time_as_utc(db_session, webcam):
    alert = alert_service.detect_low_stock(now=NOW).created[0]
    ack_local = datetime(2026, 3, 10, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    acked = alert_service.acknowledge_alert(alert.id, actor="manager", now=ack_local)

    assert acked.acknowledged_at == datetime(2026, 3, 10, 12, 0)


def test_concurrent_duplicate_is_rolled_back_and_retried(db_session, webcam, monkeypatch):
    alert_service.detect_low_stock(now=NOW)

    # Another process committed the same open alert after this pass scanned
    real_check = alert_service._has_open_alert_today
    calls = []

    def _stale_on_first_call(product_id, now):
        calls.append(product_id)
        if len(calls) == 1:
            return False
        return real_check(product_id, now)

    monkeypatch.setattr(alert_service, "_has_open_alert_today", _stale_on_first_call)

    result = alert_service.detect_low_stock(now=NOW + timedelta(minutes=1))

    assert len(calls) == 2
    assert result.total_created == 0
    assert result.created == []
    assert LowStockAlert.query.filter_by(product_id=webcam.id).count() == 1


def test_run_with_retry_retries_then_succeeds(db_session):
    attempts = []

    def _flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        return "done"

    assert run_with_retry(_flaky, attempts=3, backoff_base=0) == "done"
    assert len(attempts) == 3


def test_run_with_retry_gives_up_after_attempts(db_session):
    attempts = []

    def _always_locked():
        attempts.append(1)
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    with pytest.raises(OperationalError):
        run_with_retry(_always_locked, attempts=2, backoff_base=0)
    assert len(attempts) == 2


def test_run_with_retry_does_not_retry_other_errors(db_session):
    attempts = []

    def _conflict():
        attempts.append(1)
        raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    with pytest.raises(IntegrityError):
        run_with_retry(_conflict, attempts=3, backoff_base=0)
    assert len(attempts) == 1
