"""
Test configuration and fixtures for the health engine tests
"""

import json
import pytest
import tempfile
import shutil
from pathlib import Path
from unittest.mock import Mock

from components.analysis.models import (
    ExportFile,
    NamingRule,
    NamingRuleSet,
    ProjectSnapshot,
    Routine,
    Rung,
    Tag,
    TagReference,
)
from components.health.analysis_cache import AnalysisCache
from components.health.history_store import HistoryStore
from components.health.project_repository import InMemoryProjectRepository
from core.config import Config, EnvironmentType, reset_config, set_config
from services.generation_client import GenerationClient, GenerationResponse


class FakeClock:
    """Manually advanced clock for TTL and ordering tests"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


HEALTH_RESPONSE = {
    "summary": "Documentation is solid but a fifth of the tags are unused.",
    "quickWins": ["Delete the two unused tags", "Comment the remaining rungs in MainRoutine"],
    "sections": [
        {
            "metric": "tagEfficiency",
            "currentScore": 60,
            "weight": "40%",
            "recommendations": [
                {
                    "priority": "high",
                    "title": "Remove unused tags",
                    "description": "Tag_8 and Tag_9 are never referenced.",
                    "impact": "+40 points on tag efficiency",
                    "specificItems": ["Tag_8", "Tag_9"],
                    "actionLink": {"tool": "unused-tags", "label": "Review unused tags"},
                }
            ],
        },
        {
            "metric": "documentation",
            "currentScore": 75,
            "weight": "35%",
            "recommendations": [
                {
                    "priority": "medium",
                    "title": "Comment remaining rungs",
                    "description": "Five rungs in MainRoutine have no comment.",
                    "impact": "+25 points on documentation",
                }
            ],
        },
    ],
}


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests"""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path)


@pytest.fixture
def test_config(temp_dir):
    """Create test configuration"""
    config = Config(validate_on_init=False)
    config.environment = EnvironmentType.TESTING
    config.storage.sqlite_path = str(temp_dir / "test_health.db")
    config.storage.snapshot_dir = str(temp_dir / "snapshots")
    config.generation.base_url = "http://llm.test/v1"
    config.generation.api_key = "test-key"
    config.generation.model = "test-model"
    config.analysis.language = "en"
    config.analysis.naming_affects_health_score = False
    set_config(config)
    yield config
    reset_config()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def analysis_cache(test_config, clock):
    cache = AnalysisCache(test_config.storage.sqlite_path, clock=clock)
    yield cache
    cache.close()


@pytest.fixture
def history_store(test_config, clock):
    store = HistoryStore(test_config.storage.sqlite_path, clock=clock)
    yield store
    store.close()


@pytest.fixture
def sample_tags():
    """10 controller tags"""
    return [Tag(name=f"Tag_{i}", data_type="DINT", scope="Controller") for i in range(10)]


@pytest.fixture
def sample_references():
    """One reference each for Tag_0..Tag_7; Tag_8 and Tag_9 stay unused"""
    return [TagReference(tag_name=f"Tag_{i}", usage_type="read" if i % 2 else "write",
                         program="MainProgram", routine="MainRoutine") for i in range(8)]


@pytest.fixture
def sample_rungs():
    """20 rungs, the first 15 commented"""
    return [
        Rung(program="MainProgram", routine="MainRoutine", number=i,
             comment=f"Rung {i}" if i < 15 else None, content=f"XIC(Tag_{i % 10})OTE(Out_{i});")
        for i in range(20)
    ]


@pytest.fixture
def sample_snapshot(sample_tags, sample_references, sample_rungs):
    """Worked example: 10 tags / 2 unused, 20 rungs / 15 commented, 8 references"""
    return ProjectSnapshot(
        project_id="plant_a",
        organization_id="org_1",
        tags=tuple(sample_tags),
        references=tuple(sample_references),
        rungs=tuple(sample_rungs),
        routines=(Routine(name="MainRoutine", program="MainProgram", type="RLL", rung_count=20),),
        export_files=(ExportFile(target_type="Controller", target_name="PlantA"),),
    )


@pytest.fixture
def naming_rule_set():
    return NamingRuleSet(
        id="rs_1",
        name="Plant standard",
        rules=(
            NamingRule(id="r_prefix", name="Tag prefix", pattern=r"^Tag_", applies_to="all", severity="error"),
            NamingRule(id="r_even", name="Even suffix", pattern=r"[02468]$", applies_to="all", severity="warning"),
            NamingRule(id="r_off", name="Inactive", pattern=r"^Nothing", is_active=False),
        ),
        is_default=True,
    )


@pytest.fixture
def repository(sample_snapshot):
    repo = InMemoryProjectRepository()
    repo.add(sample_snapshot)
    return repo


@pytest.fixture
def health_response_text():
    return json.dumps(HEALTH_RESPONSE)


@pytest.fixture
def mock_client(health_response_text):
    """Generation client that answers with a well-formed health document"""
    client = Mock(spec=GenerationClient)
    client.is_configured = True
    client.complete.return_value = GenerationResponse(
        text=health_response_text, model="test-model",
        input_tokens=1200, output_tokens=800, usage_reported=True,
    )
    return client
