"""
Pytest Configuration and Fixtures

Shared fixtures for the diagnostic analysis engine tests. No test talks to
a real provider: provider clients are replaced by scripted doubles.
"""
import asyncio
import sys
from pathlib import Path
from typing import Callable, List, Sequence, Tuple, Union

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dermaai.core.case import (
    AnalysisContext,
    Case,
    FailureCode,
    ProviderFailure,
    ProviderOutcome,
    ProviderSuccess,
    RawDiagnosis,
)
from dermaai.core.providers.base import ProviderConfig

# PNG signature followed by filler; resolvers never decode pixels
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"lesion-image-bytes"


class ScriptedProviderClient:
    """
    Provider client double.

    Returns the scripted outcomes in order (the last one repeats) and
    records every invocation. An Exception in the script is raised.
    """

    def __init__(
        self,
        provider_id: str,
        outcomes: Sequence[Union[ProviderOutcome, Exception]],
        delay: float = 0.0
    ):
        self.provider_id = provider_id
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls: List[Tuple[list, str, AnalysisContext]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def invoke(self, images, symptoms, context) -> ProviderOutcome:
        self.calls.append((list(images), symptoms, context))
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def get_stats(self):
        return {"provider": self.provider_id, "request_count": self.call_count}


class RecordingSleep:
    """Async sleep double that records requested delays and returns at once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def diagnosis(name: str, confidence: int, description: str = "") -> RawDiagnosis:
    return RawDiagnosis(
        name=name,
        confidence=confidence,
        description=description or f"{name} description",
        key_features=[f"{name} feature"],
        recommendations=[f"{name} recommendation"],
    )


@pytest.fixture
def make_success() -> Callable[..., ProviderSuccess]:
    """Factory: make_success(("Eczema", 80), ("Psoriasis", 60), ...)."""
    def _make(*entries, model: str = "test-model") -> ProviderSuccess:
        diagnoses = [
            entry if isinstance(entry, RawDiagnosis) else diagnosis(*entry)
            for entry in entries
        ]
        return ProviderSuccess(diagnoses=diagnoses, analysis_time_seconds=0.5, model=model)
    return _make


@pytest.fixture
def make_failure() -> Callable[..., ProviderFailure]:
    """Factory: make_failure("openai", FailureCode.AUTHENTICATION)."""
    def _make(provider: str, code: FailureCode = FailureCode.UNKNOWN, message: str = "boom") -> ProviderFailure:
        return ProviderFailure.from_code(provider, code, message)
    return _make


@pytest.fixture
def scripted_client() -> Callable[..., ScriptedProviderClient]:
    def _make(provider_id: str, *outcomes, delay: float = 0.0) -> ScriptedProviderClient:
        return ScriptedProviderClient(provider_id, outcomes, delay=delay)
    return _make


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def sample_case() -> Case:
    """A pending case with two images and full context."""
    return Case(
        id="DR-TEST0001",
        images=["data:image/png;base64,AAAA", "data:image/png;base64,BBBB"],
        symptoms=["itching", "bleeding"],
        context=AnalysisContext(
            lesion_location="left forearm",
            medical_history=["family history of melanoma"],
        ),
    )


@pytest.fixture
def provider_configs() -> List[ProviderConfig]:
    """Both providers enabled with the default retry budget."""
    return [
        ProviderConfig(provider_id="gemini", api_key="test", model="gemini-2.5-flash",
                       max_retries=2, retry_base_delay=1.0),
        ProviderConfig(provider_id="openai", api_key="test", model="gpt-5",
                       max_retries=2, retry_base_delay=1.0),
    ]


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES
