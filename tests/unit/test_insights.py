# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the behaviour insight engine."""

from datetime import date, timedelta

import pytest

from src.domains.behaviour.insights import (
    EARLY_CONCERN_MESSAGE,
    ESCALATION_MESSAGE,
    STRENGTH_MISMATCH_INTERPRETATION,
    compute_student_insights,
    compute_window_insight,
    find_context_isolation,
    trend_from_counts,
    week_demerit_counts,
)

TODAY = date(2024, 3, 15)


def ago(days: int) -> date:
    return TODAY - timedelta(days=days)


class TestWeekDemeritCounts:
    """Tests for the three 7-day demerit buckets."""

    def test_buckets_by_days_ago(self, make_event) -> None:
        events = [
            make_event(event_date=ago(1)),
            make_event(event_date=ago(7)),
            make_event(event_date=ago(8)),
            make_event(event_date=ago(21)),
        ]

        assert week_demerit_counts(events, TODAY) == (2, 1, 1)

    def test_ignores_today_merits_and_old_events(self, make_event) -> None:
        events = [
            make_event(event_date=TODAY),
            make_event(event_date=ago(22)),
            make_event(event_type="merit", event_date=ago(2)),
        ]

        assert week_demerit_counts(events, TODAY) == (0, 0, 0)


class TestTrend:
    """Tests for trend classification."""

    @pytest.mark.parametrize(
        ("counts", "expected"),
        [
            ((3, 2, 1), "declining"),
            ((1, 2, 3), "improving"),
            ((2, 2, 1), "stable"),
            ((0, 0, 0), "stable"),
        ],
    )
    def test_trend_from_counts(self, counts, expected) -> None:
        assert trend_from_counts(counts) == expected


class TestWindowInsight:
    """Tests for single-window insight computation."""

    def test_no_events_is_green(self) -> None:
        insight = compute_window_insight([], "7d", TODAY)

        assert insight.risk_level == "green"
        assert insight.trend == "stable"
        assert insight.net_score == 0
        assert insight.interpretation is None
        assert insight.primary_issue_type is None

    def test_net_score_uses_points(self, make_event) -> None:
        events = [
            make_event(event_type="merit", event_date=ago(2), points=5),
            make_event(event_type="merit", event_date=ago(3), points=3),
            make_event(event_date=ago(4), points=2),
        ]

        insight = compute_window_insight(events, "30d", TODAY)

        assert insight.total_merits == 2
        assert insight.total_demerits == 1
        assert insight.demerit_frequency == 1
        assert insight.net_score == 6

    def test_window_excludes_older_events(self, make_event) -> None:
        events = [make_event(event_date=ago(3)), make_event(event_date=ago(12))]

        assert compute_window_insight(events, "7d", TODAY).total_demerits == 1
        assert compute_window_insight(events, "30d", TODAY).total_demerits == 2

    def test_escalation_is_red(self, make_event) -> None:
        days = [1, 2, 3, 9, 10, 16]
        events = [make_event(event_date=ago(d)) for d in days]

        insight = compute_window_insight(events, "30d", TODAY)

        assert insight.escalation is True
        assert insight.risk_level == "red"
        assert insight.trend == "declining"
        assert insight.interpretation == ESCALATION_MESSAGE

    def test_early_concern_only_in_seven_day_window(self, make_event) -> None:
        events = [make_event(event_date=ago(d)) for d in (1, 2, 3)]

        week = compute_window_insight(events, "7d", TODAY)
        month = compute_window_insight(events, "30d", TODAY)

        assert week.early_concern is True
        assert week.risk_level == "yellow"
        assert week.interpretation == EARLY_CONCERN_MESSAGE
        assert month.early_concern is False
        assert month.risk_level == "green"

    def test_two_demerits_is_not_early_concern(self, make_event) -> None:
        events = [make_event(event_date=ago(d)) for d in (1, 2)]

        assert compute_window_insight(events, "7d", TODAY).risk_level == "green"

    def test_strength_struggle_mismatch(self, make_event) -> None:
        events = [
            make_event(event_type="merit", event_date=ago(5), category="Leadership"),
            make_event(event_date=ago(6), category="Conduct", subcategory="Talking in class"),
        ]

        insight = compute_window_insight(events, "30d", TODAY)

        assert insight.has_strength_mismatch is True
        assert insight.interpretation == STRENGTH_MISMATCH_INTERPRETATION

    def test_mismatch_needs_both_sides(self, make_event) -> None:
        events = [
            make_event(event_type="merit", event_date=ago(5), category="Leadership"),
            make_event(event_date=ago(6), category="Uniform"),
        ]

        assert compute_window_insight(events, "30d", TODAY).has_strength_mismatch is False


class TestContextIsolation:
    """Tests for class and staff isolation."""

    def test_class_isolation(self, make_event) -> None:
        demerits = [make_event(class_context="Math 7A") for _ in range(3)]
        demerits.append(make_event(class_context="Science 7A"))

        isolation = find_context_isolation(demerits, 0.6)

        assert isolation is not None
        assert isolation.dimension == "class_context"
        assert isolation.value == "Math 7A"
        assert isolation.share == pytest.approx(0.75)
        assert isolation.label == "class"

    def test_staff_isolation_when_classes_vary(self, make_event) -> None:
        demerits = [
            make_event(class_context="Math", staff_name="Mr. Khan"),
            make_event(class_context="Science", staff_name="Mr. Khan"),
            make_event(class_context="Art", staff_name="Mr. Khan"),
            make_event(class_context="PE", staff_name="Ms. Ali"),
        ]

        isolation = find_context_isolation(demerits, 0.6)

        assert isolation is not None
        assert isolation.dimension == "staff"
        assert isolation.value == "Mr. Khan"
        assert isolation.label == "staff member"

    def test_class_checked_before_staff(self, make_event) -> None:
        demerits = [
            make_event(class_context="Math", staff_name="Mr. Khan"),
            make_event(class_context="Math", staff_name="Mr. Khan"),
        ]

        assert find_context_isolation(demerits, 0.6).dimension == "class_context"

    def test_below_threshold(self, make_event) -> None:
        demerits = [make_event(class_context=name) for name in ("A", "A", "B", "C")]

        assert find_context_isolation(demerits, 0.6) is None

    def test_no_demerits(self) -> None:
        assert find_context_isolation([], 0.6) is None

    def test_isolation_marks_contextual_issue(self, make_event) -> None:
        events = [make_event(event_date=ago(10), class_context="Math 7A") for _ in range(3)]

        insight = compute_window_insight(events, "30d", TODAY)

        assert insight.primary_issue_type == "contextual"


class TestStudentInsights:
    """Tests for the full per-student computation."""

    def test_both_windows_present(self, make_event) -> None:
        insights = compute_student_insights("S1", [make_event(event_date=ago(2))], TODAY)

        assert set(insights.windows) == {"7d", "30d"}
        assert insights.patterns == []

    def test_early_concern_pattern(self, make_event) -> None:
        events = [make_event(event_date=ago(d)) for d in (1, 2, 3)]

        insights = compute_student_insights("S1", events, TODAY)

        patterns = {p.pattern_type: p for p in insights.patterns}
        assert set(patterns) == {"early_concern"}
        assert patterns["early_concern"].confidence == pytest.approx(0.8)

    def test_all_patterns(self, make_event) -> None:
        events = [
            make_event(event_date=ago(d), class_context="Math 7A", subcategory="Disruption")
            for d in (1, 2, 3, 9, 10, 16)
        ]
        events.append(make_event(event_type="merit", event_date=ago(4), category="Responsibility"))

        insights = compute_student_insights("S1", events, TODAY)

        patterns = {p.pattern_type: p for p in insights.patterns}
        assert set(patterns) == {
            "early_concern",
            "escalation",
            "context_isolation",
            "strength_struggle_mismatch",
        }
        assert patterns["escalation"].confidence == pytest.approx(0.9)
        assert patterns["context_isolation"].confidence == pytest.approx(1.0)
        assert "Math 7A" in patterns["context_isolation"].description
        assert patterns["strength_struggle_mismatch"].confidence == pytest.approx(0.7)
        assert insights.windows["7d"].interpretation == STRENGTH_MISMATCH_INTERPRETATION
        assert insights.windows["30d"].interpretation == STRENGTH_MISMATCH_INTERPRETATION

    def test_escalation_outranks_early_concern(self, make_event) -> None:
        events = [make_event(event_date=ago(d)) for d in (1, 2, 3, 9, 10, 16)]

        insights = compute_student_insights("S1", events, TODAY)

        window = insights.windows["7d"]
        assert window.early_concern is True
        assert window.escalation is True
        assert window.interpretation == ESCALATION_MESSAGE
        assert insights.windows["30d"].interpretation == ESCALATION_MESSAGE

    def test_to_record_columns(self, make_event) -> None:
        insights = compute_student_insights("S1", [make_event(event_date=ago(2))], TODAY)

        record = insights.windows["7d"].to_record()

        assert record["total_demerits"] == 1
        assert record["demerit_frequency"] == 1
        assert record["risk_level"] == "green"
