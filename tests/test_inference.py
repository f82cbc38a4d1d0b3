"""Tests for heuristic schema inference."""

import pytest

from vitals_ingest.exceptions import MissingTemporalFieldError
from vitals_ingest.inference import (
    HintedField,
    NamedFields,
    TypeValueField,
    Unresolved,
    classify_type,
    find_date_field,
    infer_tabular,
    infer_tree,
    resolve_fields,
)
from vitals_ingest.normalizer import ExtractionBatch
from vitals_ingest.schema import MetricKind
from vitals_ingest.tabular import parse_tabular
from vitals_ingest.tree import parse_tree


class TestFieldResolution:
    """Test date field discovery and layout resolution."""

    def test_preferred_date_names_win(self):
        assert find_date_field(["updated_time", "Date", "value"]) == "Date"
        assert find_date_field(["startDate", "endDate"]) == "startDate"

    def test_date_synonym_fallback(self):
        assert find_date_field(["Recorded Date", "bpm"]) == "Recorded Date"
        assert find_date_field(["value", "unit"]) is None

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Heart Rate", MetricKind.HEART_RATE),
            ("resting pulse", MetricKind.HEART_RATE),
            ("Steps", MetricKind.STEPS),
            ("Body Mass", MetricKind.WEIGHT),
            ("sleep", MetricKind.SLEEP),
            ("VO2 Max", MetricKind.VO2MAX),
            ("workouts", MetricKind.WORKOUTS),
            ("nutrition", MetricKind.NUTRITION),
            ("mood", None),
            (None, None),
        ],
    )
    def test_classify_type(self, text, expected):
        assert classify_type(text) is expected

    def test_type_value_layout_comes_first(self):
        resolved = resolve_fields(["date", "type", "value", "unit"], "date")

        assert isinstance(resolved, TypeValueField)
        assert resolved.tag == "type_value"
        assert resolved.type_field == "type"
        assert resolved.value_field == "value"
        assert resolved.roles["unit"] == "unit"

    def test_named_fields_layout(self):
        resolved = resolve_fields(["date", "heart_rate", "steps", "weight_lb"], "date")

        assert isinstance(resolved, NamedFields)
        kinds = [b.kind for b in resolved.bindings]
        assert kinds == [MetricKind.HEART_RATE, MetricKind.STEPS, MetricKind.WEIGHT]
        weight = resolved.bindings[2]
        assert weight.roles["value"] == "weight_lb"
        assert weight.unit == "lb"

    def test_date_field_is_never_a_metric(self):
        resolved = resolve_fields(["step_date", "steps"], "step_date")

        assert isinstance(resolved, NamedFields)
        assert resolved.bindings[0].roles["value"] == "steps"

    def test_workout_needs_duration(self):
        assert isinstance(resolve_fields(["date", "workout"], "date"), Unresolved)

        resolved = resolve_fields(["date", "workout", "duration", "calories"], "date")

        assert isinstance(resolved, NamedFields)
        binding = resolved.bindings[0]
        assert binding.kind is MetricKind.WORKOUTS
        assert binding.roles == {"activity": "workout", "duration": "duration", "calories": "calories"}

    def test_unresolved(self):
        resolved = resolve_fields(["date", "mood", "notes"], "date")

        assert isinstance(resolved, Unresolved)
        assert resolved.tag == "unresolved"

    def test_collection_hint_comes_first(self):
        resolved = resolve_fields(["date", "value"], "date", hint=MetricKind.STEPS)

        assert isinstance(resolved, HintedField)
        assert resolved.binding.kind is MetricKind.STEPS
        assert resolved.binding.roles["value"] == "value"


class TestInferTabular:
    """Test extraction from delimited rows."""

    def test_named_columns(self):
        parsed = parse_tabular(
            "date,heart_rate,steps\n"
            "2024-01-01T08:00:00Z,72,1000\n"
            "2024-01-01T09:00:00Z,75,\n"
        )
        batch = ExtractionBatch()

        infer_tabular(parsed, batch)

        counts = batch.counts()
        assert counts[MetricKind.HEART_RATE] == 2
        assert counts[MetricKind.STEPS] == 1
        assert batch.skipped == 0

    def test_type_value_rows(self):
        parsed = parse_tabular(
            "date,type,value,unit\n"
            "2024-01-01,Heart Rate,70,bpm\n"
            "2024-01-01,Steps,5000,count\n"
            "2024-01-01,Mood,3,\n"
        )
        batch = ExtractionBatch()

        infer_tabular(parsed, batch)

        counts = batch.counts()
        assert counts[MetricKind.HEART_RATE] == 1
        assert counts[MetricKind.STEPS] == 1
        assert sum(counts.values()) == 2
        assert batch.skipped == 0

    def test_bad_rows_are_skipped_not_fatal(self):
        parsed = parse_tabular(
            "date,steps\n"
            "2024-01-01,9000\n"
            "yesterday-ish,8000\n"
            "2024-01-03,lots\n"
            "2024-01-04,7000,extra\n"
            "2024-01-05\n"
        )
        batch = ExtractionBatch()

        infer_tabular(parsed, batch)

        assert batch.counts()[MetricKind.STEPS] == 1
        assert batch.skipped == 4
        assert len(batch.skip_reasons) == 4

    def test_header_only_yields_nothing(self):
        batch = ExtractionBatch()

        infer_tabular(parse_tabular("value,unit\n"), batch)

        assert sum(batch.counts().values()) == 0

    def test_missing_date_column_is_fatal(self):
        parsed = parse_tabular("type,value\nsteps,5000\n")

        with pytest.raises(MissingTemporalFieldError) as exc_info:
            infer_tabular(parsed, ExtractionBatch())

        assert exc_info.value.stage == "infer"

    def test_sleep_with_stage_column(self):
        parsed = parse_tabular("date,sleep_hours,stage\n2024-01-01,7.5,deep\n")
        batch = ExtractionBatch()

        infer_tabular(parsed, batch)

        assert batch.records[MetricKind.SLEEP][0].value == 7.5


class TestInferTree:
    """Test extraction from structured documents."""

    def test_steps_collection(self):
        doc = parse_tree('{ "steps": [{"date":"2024-01-01T00:00:00Z","value":9000}] }')
        batch = ExtractionBatch()

        infer_tree(doc, batch)

        steps = batch.records[MetricKind.STEPS]
        assert len(steps) == 1
        assert steps[0].value == 9000
        assert sum(batch.counts().values()) == 1

    def test_flat_records_resolved_per_object(self):
        doc = parse_tree(
            '[{"date": "2024-01-01", "heartRate": 61},'
            ' {"timestamp": "2024-01-02", "type": "weight", "value": 70.2, "unit": "kg"},'
            ' {"date": "2024-01-03", "mood": "good"}]'
        )
        batch = ExtractionBatch()

        infer_tree(doc, batch)

        assert batch.counts()[MetricKind.HEART_RATE] == 1
        assert batch.counts()[MetricKind.WEIGHT] == 1
        assert batch.records[MetricKind.WEIGHT][0].unit == "kg"

    def test_workout_and_nutrition_collections(self):
        doc = parse_tree(
            '{"workouts": [{"date": "2024-01-02", "activityType": "Running",'
            ' "duration": 30, "calories": 250}],'
            ' "nutrition": [{"date": "2024-01-02", "food": "Oats", "calories": 150, "protein": 5}]}'
        )
        batch = ExtractionBatch()

        infer_tree(doc, batch)

        workout = batch.records[MetricKind.WORKOUTS][0]
        assert workout.activity_type == "Running"
        assert workout.duration == 30
        assert workout.calories == 250
        meal = batch.records[MetricKind.NUTRITION][0]
        assert meal.item_name == "Oats"
        assert meal.protein == 5

    def test_collection_entry_with_null_value_is_skipped(self):
        doc = parse_tree(
            '{"steps": [{"date": "2024-01-01", "value": null}, {"date": "2024-01-02", "value": 400}]}'
        )
        batch = ExtractionBatch()

        infer_tree(doc, batch)

        assert batch.counts()[MetricKind.STEPS] == 1
        assert batch.skipped == 1
        assert "steps" in batch.skip_reasons[0]

    def test_objects_without_date_are_skipped(self):
        doc = parse_tree('[{"date": "2024-01-01", "steps": 10}, {"steps": 20}, 5]')
        batch = ExtractionBatch()

        infer_tree(doc, batch)

        assert batch.counts()[MetricKind.STEPS] == 1
        assert batch.skipped == 2

    def test_no_date_anywhere_is_fatal(self):
        doc = parse_tree('[{"steps": 10}, {"steps": 20}]')

        with pytest.raises(MissingTemporalFieldError):
            infer_tree(doc, ExtractionBatch())

    def test_empty_document_yields_nothing(self):
        batch = ExtractionBatch()

        infer_tree(parse_tree("[]"), batch)

        assert sum(batch.counts().values()) == 0
