"""
Unit Tests for Analysis Orchestrator
"""
import asyncio

import pytest

from dermaai.core.analysis.orchestrator import AnalysisOrchestrator
from dermaai.core.analysis.retry import RetryPolicy
from dermaai.core.case import FailureCode, ProviderFailure, ProviderSuccess
from dermaai.utils import NoProvidersEnabledError


class BlockingClient:
    """Waits until every peer has started before answering."""

    def __init__(self, provider_id, started, peers, outcome):
        self.provider_id = provider_id
        self.started = started
        self.peers = peers
        self.outcome = outcome

    async def invoke(self, images, symptoms, context):
        self.started[self.provider_id].set()
        await asyncio.gather(*(self.started[p].wait() for p in self.peers))
        return self.outcome

    def get_stats(self):
        return {"provider": self.provider_id}


class TestAnalysisOrchestrator:
    """Tests for AnalysisOrchestrator."""

    @pytest.mark.asyncio
    async def test_providers_run_concurrently(self, sample_case, make_success):
        started = {"gemini": asyncio.Event(), "openai": asyncio.Event()}
        clients = {
            p: BlockingClient(p, started, list(started), make_success(("Eczema", 80)))
            for p in started
        }
        orchestrator = AnalysisOrchestrator(clients)

        # Sequential dispatch would deadlock here
        outcomes = await asyncio.wait_for(
            orchestrator.analyze(sample_case, ["gemini", "openai"]), timeout=2.0
        )

        assert all(isinstance(o, ProviderSuccess) for o in outcomes.values())

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_successes(self, sample_case, scripted_client, make_success,
                                                   make_failure, recording_sleep):
        gemini = scripted_client("gemini", make_success(("Eczema", 80)))
        openai = scripted_client("openai", make_failure("openai", FailureCode.AUTHENTICATION, "bad key"))
        orchestrator = AnalysisOrchestrator(
            {"gemini": gemini, "openai": openai},
            policies={"openai": RetryPolicy(sleep=recording_sleep)},
        )

        outcomes = await orchestrator.analyze(sample_case, ["gemini", "openai"])

        assert outcomes["gemini"].ok
        assert outcomes["openai"].code is FailureCode.AUTHENTICATION
        assert openai.call_count == 1

    @pytest.mark.asyncio
    async def test_crashing_client_becomes_unknown_failure(self, sample_case, scripted_client, make_success):
        gemini = scripted_client("gemini", RuntimeError("segfault-ish"))
        openai = scripted_client("openai", make_success(("Acne", 40)))
        orchestrator = AnalysisOrchestrator({"gemini": gemini, "openai": openai})

        outcomes = await orchestrator.analyze(sample_case, ["gemini", "openai"])

        assert isinstance(outcomes["gemini"], ProviderFailure)
        assert outcomes["gemini"].code is FailureCode.UNKNOWN
        assert "segfault-ish" in outcomes["gemini"].message
        assert outcomes["openai"].ok

    @pytest.mark.asyncio
    async def test_empty_provider_list_raises_without_calls(self, sample_case, scripted_client, make_success):
        gemini = scripted_client("gemini", make_success(("Eczema", 80)))
        orchestrator = AnalysisOrchestrator({"gemini": gemini})

        with pytest.raises(NoProvidersEnabledError):
            await orchestrator.analyze(sample_case, [])

        assert gemini.call_count == 0

    @pytest.mark.asyncio
    async def test_outcomes_follow_enabled_order(self, sample_case, scripted_client, make_success):
        # openai answers first but gemini was listed first
        gemini = scripted_client("gemini", make_success(("Eczema", 80)), delay=0.05)
        openai = scripted_client("openai", make_success(("Acne", 40)))
        orchestrator = AnalysisOrchestrator({"gemini": gemini, "openai": openai})

        outcomes = await orchestrator.analyze(sample_case, ["gemini", "openai"])
        assert list(outcomes) == ["gemini", "openai"]

        outcomes = await orchestrator.analyze(sample_case, ["openai", "gemini"])
        assert list(outcomes) == ["openai", "gemini"]

    @pytest.mark.asyncio
    async def test_unconfigured_provider_fails(self, sample_case, scripted_client, make_success):
        orchestrator = AnalysisOrchestrator({"gemini": scripted_client("gemini", make_success(("Eczema", 80)))})

        outcomes = await orchestrator.analyze(sample_case, ["gemini", "claude"])

        assert outcomes["claude"].code is FailureCode.UNKNOWN
        assert "not configured" in outcomes["claude"].message

    @pytest.mark.asyncio
    async def test_passes_case_inputs_to_clients(self, sample_case, scripted_client, make_success):
        gemini = scripted_client("gemini", make_success(("Eczema", 80)))
        orchestrator = AnalysisOrchestrator({"gemini": gemini})

        await orchestrator.analyze(sample_case, ["gemini"])

        images, symptoms, context = gemini.calls[0]
        assert images == sample_case.images
        assert symptoms == "itching, bleeding"
        assert context.lesion_location == "left forearm"

    @pytest.mark.asyncio
    async def test_stats(self, sample_case, scripted_client, make_success):
        orchestrator = AnalysisOrchestrator({"gemini": scripted_client("gemini", make_success(("Eczema", 80)))})
        await orchestrator.analyze(sample_case, ["gemini"])

        stats = orchestrator.get_stats()
        assert stats["analysis_count"] == 1
        assert stats["providers"] == ["gemini"]
