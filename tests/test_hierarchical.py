"""Tests for hierarchical export extraction."""

import xml.etree.ElementTree as ET
from datetime import datetime, timezone

import pytest

from vitals_ingest.exceptions import StructuralParseError
from vitals_ingest.hierarchical import (
    RECORD_TYPES,
    extract_hierarchical,
    parse_document,
    record_kind,
    run_extraction,
)
from vitals_ingest.messages import CompleteMessage, ProgressMessage, StatusMessage, TotalMessage
from vitals_ingest.schema import MetricKind


def _extract(source, progress_every: int = 1):
    root = ET.parse(source).getroot() if not isinstance(source, str) else ET.fromstring(source)
    messages = []
    batch = extract_hierarchical(root, messages.append, progress_every=progress_every)
    return batch, messages


@pytest.mark.parametrize(
    "identifier,expected",
    [
        ("HKQuantityTypeIdentifierHeartRate", MetricKind.HEART_RATE),
        ("HKQuantityTypeIdentifierRestingHeartRate", MetricKind.HEART_RATE),
        ("HKQuantityTypeIdentifierStepCount", MetricKind.STEPS),
        ("HKQuantityTypeIdentifierBodyMass", MetricKind.WEIGHT),
        ("HKQuantityTypeIdentifierVO2Max", MetricKind.VO2MAX),
        ("HKCategoryTypeIdentifierSleepAnalysis", MetricKind.SLEEP),
        ("HKQuantityTypeIdentifierDistanceWalkingRunning", None),
        (None, None),
    ],
)
def test_record_kind(identifier, expected):
    """Test substring matching of record type identifiers."""
    assert record_kind(identifier) is expected


class TestExtractHierarchical:
    """Test the three extraction passes."""

    def test_heart_rate_with_malformed_element(self, heart_rate_xml):
        """Test one valid and one dateless heart rate element."""
        batch, _ = _extract(heart_rate_xml)

        assert batch.counts()[MetricKind.HEART_RATE] == 1
        assert batch.skipped == 1
        sample = batch.records[MetricKind.HEART_RATE][0]
        assert sample.value == 72.0
        assert sample.unit == "count/min"
        assert sample.date == datetime(2024, 1, 1, 13, 0, tzinfo=timezone.utc)

    def test_full_export_counts(self, full_export_xml):
        """Test counts per kind across records, workouts and food items."""
        batch, _ = _extract(full_export_xml)

        counts = batch.counts()
        assert counts == {
            MetricKind.HEART_RATE: 1,
            MetricKind.STEPS: 1,
            MetricKind.WEIGHT: 1,
            MetricKind.SLEEP: 1,
            MetricKind.VO2MAX: 1,
            MetricKind.WORKOUTS: 1,
            MetricKind.NUTRITION: 1,
        }
        # dateless heart rate and the sleep record ending before it starts
        assert batch.skipped == 2

    def test_sleep_duration_and_category(self, full_export_xml):
        batch, _ = _extract(full_export_xml)

        sleep = batch.records[MetricKind.SLEEP][0]
        assert sleep.value == 8.0
        assert sleep.unit == "hours"
        assert sleep.category == "HKCategoryValueSleepAnalysisAsleep"

    def test_workout_attributes(self, full_export_xml):
        batch, _ = _extract(full_export_xml)

        workout = batch.records[MetricKind.WORKOUTS][0]
        assert workout.activity_type == "HKWorkoutActivityTypeRunning"
        assert workout.duration == 30.5
        assert workout.duration_unit == "min"
        assert workout.calories == 250.0
        assert workout.distance == 5.2

    def test_food_item_nutrients(self, full_export_xml):
        batch, _ = _extract(full_export_xml)

        item = batch.records[MetricKind.NUTRITION][0]
        assert item.item_name == "Banana"
        assert item.calories == 105.0
        assert item.protein == 1.3
        assert item.carbs == 27.0
        assert item.fat == 0.4
        assert item.date == datetime(2024, 1, 3, 8, 0, tzinfo=timezone.utc)

    def test_emitted_kinds_match_source_identifiers(self, full_export_xml):
        """Test that every sample's kind substring-matches its source element type."""
        root = ET.parse(full_export_xml).getroot()
        batch = extract_hierarchical(root, lambda message: None)

        fragments = dict((kind, fragment) for fragment, kind in RECORD_TYPES)
        for kind in (MetricKind.HEART_RATE, MetricKind.STEPS, MetricKind.WEIGHT, MetricKind.VO2MAX):
            valid = [
                el for el in root.iter("Record")
                if fragments[kind] in el.get("type", "") and el.get("value") and el.get("startDate")
            ]
            assert len(batch.records[kind]) == len(valid)

    def test_message_sequence(self, full_export_xml):
        """Test status and total messages precede monotonic progress reaching 100."""
        _, messages = _extract(full_export_xml)

        statuses = [m.message for m in messages if isinstance(m, StatusMessage)]
        assert statuses == [
            "Counting total records...",
            "Processing health records...",
            "Processing workout records...",
            "Processing nutrition records...",
        ]
        totals = [m for m in messages if isinstance(m, TotalMessage)]
        assert len(totals) == 1
        assert totals[0].count == 10

        percents = [m.percent for m in messages if isinstance(m, ProgressMessage)]
        assert percents == sorted(percents)
        assert len(set(percents)) == len(percents)
        assert percents[-1] == 100

    def test_progress_cadence(self):
        """Test progress is emitted every N elements."""
        xml = "<HealthData>" + "".join(
            f'<Record type="HKQuantityTypeIdentifierStepCount" value="{i}" '
            f'startDate="2024-01-01 00:{i:02d}:00 +0000"/>'
            for i in range(10)
        ) + "</HealthData>"

        batch, messages = _extract(xml, progress_every=5)

        assert batch.counts()[MetricKind.STEPS] == 10
        assert [m.percent for m in messages if isinstance(m, ProgressMessage)] == [50, 100]

    def test_empty_export(self):
        """Test an export with no records still completes at 100 percent."""
        batch, messages = _extract("<HealthData/>")

        assert sum(batch.counts().values()) == 0
        assert [m.percent for m in messages if isinstance(m, ProgressMessage)] == [100]

    def test_food_item_without_nutrients_is_skipped(self):
        batch, _ = _extract('<HealthData><FoodItem description="Water" creationDate="2024-01-01"/></HealthData>')

        assert batch.counts()[MetricKind.NUTRITION] == 0
        assert batch.skipped == 1


class TestRunExtraction:
    """Test parsing plus extraction of an export file."""

    def test_complete_message(self, full_export_xml):
        messages = []

        complete = run_extraction(full_export_xml, messages.append)

        assert isinstance(complete, CompleteMessage)
        assert complete.stats["heartRate"] == 1
        assert complete.stats["nutrition"] == 1
        assert isinstance(messages[0], StatusMessage)
        assert messages[0].message == "Parsing XML data..."

    def test_invalid_markup(self, write_file):
        path = write_file("broken.xml", "<HealthData><Record></HealthData>")

        with pytest.raises(StructuralParseError) as exc_info:
            parse_document(path)

        assert "XML parsing error" in exc_info.value.message
