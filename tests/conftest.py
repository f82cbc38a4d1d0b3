"""Shared fixtures for the import engine tests."""

import sys
from pathlib import Path

import pytest

# Add parent directory to path to import vitals modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from vitals_ingest.config import Settings
from vitals_ingest.importer import HealthImporter
from vitals_ingest.store import HealthStore, MemoryBackend

HEART_RATE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<HealthData locale="en_US">
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Watch" unit="count/min"
         value="72" startDate="2024-01-01 08:00:00 -0500" endDate="2024-01-01 08:00:00 -0500"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" sourceName="Watch" unit="count/min" value="80"/>
</HealthData>
"""

FULL_EXPORT_XML = """<?xml version="1.0" encoding="UTF-8"?>
<HealthData locale="en_US">
 <ExportDate value="2024-01-03 10:00:00 +0000"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" unit="count/min" value="72"
         startDate="2024-01-01 08:00:00 +0000" endDate="2024-01-01 08:00:00 +0000"/>
 <Record type="HKQuantityTypeIdentifierHeartRate" unit="count/min" value="80"/>
 <Record type="HKQuantityTypeIdentifierStepCount" unit="count" value="120"
         startDate="2024-01-01 09:00:00 +0000" endDate="2024-01-01 09:05:00 +0000"/>
 <Record type="HKQuantityTypeIdentifierBodyMass" unit="kg" value="70.5"
         startDate="2024-01-02 07:00:00 +0000" endDate="2024-01-02 07:00:00 +0000"/>
 <Record type="HKCategoryTypeIdentifierSleepAnalysis" value="HKCategoryValueSleepAnalysisAsleep"
         startDate="2024-01-01 23:00:00 +0000" endDate="2024-01-02 07:00:00 +0000"/>
 <Record type="HKCategoryTypeIdentifierSleepAnalysis" value="HKCategoryValueSleepAnalysisAsleep"
         startDate="2024-01-02 07:00:00 +0000" endDate="2024-01-02 06:00:00 +0000"/>
 <Record type="HKQuantityTypeIdentifierVO2Max" unit="mL/min*kg" value="42.1"
         startDate="2024-01-02 12:00:00 +0000" endDate="2024-01-02 12:00:00 +0000"/>
 <Record type="HKQuantityTypeIdentifierDistanceWalkingRunning" unit="km" value="1.2"
         startDate="2024-01-02 12:00:00 +0000" endDate="2024-01-02 12:30:00 +0000"/>
 <Workout workoutActivityType="HKWorkoutActivityTypeRunning" duration="30.5" durationUnit="min"
          totalDistance="5.2" totalDistanceUnit="km" totalEnergyBurned="250"
          totalEnergyBurnedUnit="kcal" startDate="2024-01-02 18:00:00 +0000"
          endDate="2024-01-02 18:30:30 +0000"/>
 <FoodItem description="Banana" creationDate="2024-01-03 08:00:00 +0000">
  <Nutrient description="Calories" value="105"/>
  <Nutrient description="Protein" value="1.3"/>
  <Nutrient description="Carbohydrates" value="27"/>
  <Nutrient description="Total Fat" value="0.4"/>
 </FoodItem>
</HealthData>
"""


@pytest.fixture
def settings(tmp_path):
    """Settings with a fine progress cadence and a temporary data directory."""
    return Settings(
        data_dir=tmp_path / "store",
        progress_every=1,
        worker_poll_interval=0.05,
    )


@pytest.fixture
def store():
    """Create HealthStore in memory for testing."""
    return HealthStore(MemoryBackend())


@pytest.fixture
def importer(store, settings):
    return HealthImporter(store, settings)


@pytest.fixture
def write_file(tmp_path):
    """Write a named file into a temporary directory and return its path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def heart_rate_xml(write_file):
    return write_file("export.xml", HEART_RATE_XML)


@pytest.fixture
def full_export_xml(write_file):
    return write_file("full_export.xml", FULL_EXPORT_XML)
