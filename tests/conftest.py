"""Pytest configuration and fixtures."""

import os

import pytest

from app.core.config import Settings
from app.core.schemas_assessment import AssessmentInput
from app.intelligence import FallbackIntelligenceProvider, LocalIntelligenceStore


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Run with no provider credentials so every test opts in to the clients it needs."""
    for key in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "OPENAI_API_KEY", "PERPLEXITY_API_KEY"):
        os.environ.pop(key, None)
    os.environ["INTEL_ENGINE_ENV"] = "test"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        SUPABASE_URL=None,
        SUPABASE_SERVICE_ROLE_KEY=None,
        OPENAI_API_KEY=None,
        PERPLEXITY_API_KEY=None,
    )


@pytest.fixture(scope="session")
def local_store() -> LocalIntelligenceStore:
    return LocalIntelligenceStore.from_file()


@pytest.fixture
def fallback_provider() -> FallbackIntelligenceProvider:
    return FallbackIntelligenceProvider()


@pytest.fixture
def assessment() -> AssessmentInput:
    """A typical ITSM assessment in the form's camelCase shape."""
    return AssessmentInput.model_validate(
        {
            "sessionId": "session-123",
            "fullName": "Jordan Lee",
            "company": "Acme IT",
            "email": "jordan@acme-it.com",
            "businessType": "ITSM / Managed Services",
            "opportunityFocus": "lead qualification",
            "revenueModel": "recurring contracts",
            "challenges": ["Lead qualification", "Long sales cycles"],
            "metricsQuantified": {
                "monthly_leads": 200,
                "conversion_rate": 3,
                "close_rate": 60,
                "average_deal_size": 25000,
            },
            "teamDescription": "CEO Dana and a senior engineer review every lead",
            "processDescription": "Prospect submits a form, manual review by the owner",
            "techStack": ["HubSpot", "Slack"],
            "investmentLevel": "Strategic Investment",
            "additionalContext": "Based in Indianapolis, IN and growing fast",
        }
    )


@pytest.fixture
def bare_assessment() -> AssessmentInput:
    return AssessmentInput(company="Solo Co")
