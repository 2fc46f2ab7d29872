"""
Unit Tests for Diagnostic Analysis Service
"""
from dataclasses import replace

import pytest

from dermaai.core.analysis.assembler import CaseOutcomeAssembler
from dermaai.core.analysis.orchestrator import AnalysisOrchestrator
from dermaai.core.analysis.service import DiagnosticAnalysisService, build_provider_clients
from dermaai.core.case import Case, CaseResult, CaseStatus, FailureCode
from dermaai.core.providers import GeminiProviderClient, OpenAIProviderClient
from dermaai.core.repository import InMemoryCaseRepository
from dermaai.utils import CaseConflictError, CaseStateError


def make_service(clients, configs, sleep, repository=None):
    reads = []

    def config_source():
        reads.append(1)
        return configs

    service = DiagnosticAnalysisService(
        orchestrator=AnalysisOrchestrator(clients),
        config_source=config_source,
        repository=repository or InMemoryCaseRepository(),
        sleep=sleep,
    )
    return service, reads


class TestDiagnosticAnalysisService:
    """End-to-end tests with scripted provider clients."""

    @pytest.mark.asyncio
    async def test_consensus_across_providers(self, sample_case, scripted_client, make_success,
                                              provider_configs, recording_sleep):
        clients = {
            "gemini": scripted_client("gemini", make_success(("Eczema", 80), ("Psoriasis", 40))),
            "openai": scripted_client("openai", make_success(("eczema", 82), ("Tinea", 30))),
        }
        service, reads = make_service(clients, provider_configs, recording_sleep)

        result = await service.analyze_case(sample_case)

        assert result.status is CaseStatus.COMPLETED
        assert [(d.name, d.confidence) for d in result.final_diagnoses] == [
            ("Eczema", 89), ("Psoriasis", 40), ("Tinea", 30)
        ]
        assert result.analysis_errors == []
        assert reads == [1]

    @pytest.mark.asyncio
    async def test_partial_failure(self, sample_case, scripted_client, make_success, make_failure,
                                   provider_configs, recording_sleep):
        openai = scripted_client("openai", make_failure("openai", FailureCode.BAD_REQUEST, "bad image"))
        clients = {
            "gemini": scripted_client("gemini", make_success(("Eczema", 80))),
            "openai": openai,
        }
        service, _ = make_service(clients, provider_configs, recording_sleep)

        result = await service.analyze_case(sample_case)

        assert result.status is CaseStatus.COMPLETED
        assert [d.name for d in result.final_diagnoses] == ["Eczema"]
        assert all(s.provider_id == "gemini" for d in result.final_diagnoses for s in d.sources)
        assert [(e.provider, e.code) for e in result.analysis_errors] == [("openai", "BAD_REQUEST")]
        assert openai.call_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_retry_uses_configured_policy(self, sample_case, scripted_client, make_success,
                                                make_failure, provider_configs, recording_sleep):
        gemini = scripted_client("gemini", make_failure("gemini", FailureCode.RATE_LIMITED))
        clients = {
            "gemini": gemini,
            "openai": scripted_client("openai", make_success(("Acne", 50))),
        }
        service, _ = make_service(clients, provider_configs, recording_sleep)

        result = await service.analyze_case(sample_case)

        assert gemini.call_count == 3
        assert recording_sleep.delays == [1.0, 2.0]
        assert result.analysis_errors[0].code == "RATE_LIMITED"
        assert result.status is CaseStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_no_providers_enabled(self, sample_case, scripted_client, make_success,
                                        provider_configs, recording_sleep):
        gemini = scripted_client("gemini", make_success(("Eczema", 80)))
        configs = [replace(c, enabled=False) for c in provider_configs]
        repository = InMemoryCaseRepository()
        service, _ = make_service({"gemini": gemini}, configs, recording_sleep, repository)

        result = await service.analyze_case(sample_case)

        assert result.status is CaseStatus.FAILED
        assert gemini.call_count == 0
        assert result.analysis_errors[0].code == "NO_PROVIDERS"
        assert (await repository.get(sample_case.id))["status"] == "failed"

    @pytest.mark.asyncio
    async def test_only_enabled_providers_dispatched(self, sample_case, scripted_client, make_success,
                                                     provider_configs, recording_sleep):
        gemini = scripted_client("gemini", make_success(("Eczema", 80)))
        openai = scripted_client("openai", make_success(("Acne", 50)))
        configs = [provider_configs[0], replace(provider_configs[1], enabled=False)]
        service, _ = make_service({"gemini": gemini, "openai": openai}, configs, recording_sleep)

        result = await service.analyze_case(sample_case)

        assert openai.call_count == 0
        assert list(result.case.provider_results) == ["gemini"]

    @pytest.mark.asyncio
    async def test_urgent_finding_flagged(self, sample_case, scripted_client, make_success,
                                          provider_configs, recording_sleep):
        clients = {
            "gemini": scripted_client("gemini", make_success(("Melanoma", 30), ("Dysplastic nevus", 60))),
            "openai": scripted_client("openai", make_success(("Dysplastic nevus", 50))),
        }
        service, _ = make_service(clients, provider_configs, recording_sleep)

        result = await service.analyze_case(sample_case)

        assert result.has_urgent_findings
        melanoma = next(d for d in result.final_diagnoses if d.name == "Melanoma")
        assert melanoma.is_urgent
        assert melanoma.rank == 2

    @pytest.mark.asyncio
    async def test_persisted_snapshot_excludes_errors(self, sample_case, scripted_client, make_success,
                                                      make_failure, provider_configs, recording_sleep):
        clients = {
            "gemini": scripted_client("gemini", make_success(("Eczema", 80))),
            "openai": scripted_client("openai", make_failure("openai", FailureCode.AUTHENTICATION)),
        }
        repository = InMemoryCaseRepository()
        service, _ = make_service(clients, provider_configs, recording_sleep, repository)

        result = await service.analyze_case(sample_case)
        stored = await repository.get(sample_case.id)

        assert "analysisErrors" not in stored
        assert "analysisErrors" in result.to_dict()
        assert stored["finalDiagnoses"][0]["name"] == "Eczema"
        assert stored["providerResults"]["openai"]["code"] == "AUTHENTICATION"

    @pytest.mark.asyncio
    async def test_non_pending_case_rejected(self, sample_case, scripted_client, make_success,
                                             provider_configs, recording_sleep):
        clients = {p.provider_id: scripted_client(p.provider_id, make_success(("Eczema", 80)))
                   for p in provider_configs}
        service, _ = make_service(clients, provider_configs, recording_sleep)
        await service.analyze_case(sample_case)

        with pytest.raises(CaseStateError):
            await service.analyze_case(sample_case)

    @pytest.mark.asyncio
    async def test_reused_case_id_rejected(self, sample_case, scripted_client, make_success,
                                           provider_configs, recording_sleep):
        gemini = scripted_client("gemini", make_success(("Eczema", 80)))
        repository = InMemoryCaseRepository()
        service, _ = make_service({"gemini": gemini}, provider_configs[:1], recording_sleep, repository)
        await service.analyze_case(sample_case)

        again = Case(id=sample_case.id, images=sample_case.images, symptoms="second")
        with pytest.raises(CaseConflictError):
            await service.analyze_case(again)

        assert gemini.call_count == 1
        assert again.status is CaseStatus.PENDING
        assert (await repository.get(sample_case.id))["symptoms"] == "itching, bleeding"


class TestInMemoryCaseRepository:
    """Tests for InMemoryCaseRepository."""

    @pytest.mark.asyncio
    async def test_save_never_replaces(self, sample_case):
        repository = InMemoryCaseRepository()
        await repository.save(CaseOutcomeAssembler().assemble_failed(sample_case))

        duplicate = Case(id=sample_case.id, images=["a.jpg"])
        duplicate.transition_to(CaseStatus.FAILED)
        with pytest.raises(CaseConflictError):
            await repository.save(CaseResult(case=duplicate))

        assert await repository.exists(sample_case.id)
        assert (await repository.get(sample_case.id))["imageUrls"] == sample_case.images

    @pytest.mark.asyncio
    async def test_get_returns_copy(self, sample_case):
        repository = InMemoryCaseRepository()
        await repository.save(CaseOutcomeAssembler().assemble_failed(sample_case))

        (await repository.get(sample_case.id))["status"] = "completed"

        assert (await repository.get(sample_case.id))["status"] == "failed"
        assert not await repository.exists("DR-OTHER000")


def test_build_provider_clients(provider_configs):
    configs = provider_configs + [replace(provider_configs[0], provider_id="claude")]

    clients = build_provider_clients(configs)

    assert isinstance(clients["gemini"], GeminiProviderClient)
    assert isinstance(clients["openai"], OpenAIProviderClient)
    assert "claude" not in clients
    assert clients["gemini"].image_resolver is clients["openai"].image_resolver
