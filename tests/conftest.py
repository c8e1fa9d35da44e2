"""Pytest fixtures for payroll tax engine tests."""

from __future__ import annotations

from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_tax.calculators.engine import PayrollTaxEngine
from payroll_tax.calculators.types import (
    CeilingPeriod,
    DeductionType,
    IncomeTaxRule,
    PayrollTaxRequest,
    PersonalDeduction,
    RoundingMode,
    SocialSecurityRule,
    TaxBand,
)
from payroll_tax.models import Base, TaxJurisdiction
from payroll_tax.seeds import seed_guyana

# Use in-memory SQLite for tests (with async support)
# For full Postgres features, use a test Postgres database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# Rule fixtures
# ============================================================================


@pytest.fixture
def guyana_bands() -> tuple[TaxBand, ...]:
    """Guyana 2024 income tax bands (annual)."""
    return (
        TaxBand(1, "Band 1", Decimal("0"), Decimal("3120000"), Decimal("0.25")),
        TaxBand(2, "Band 2", Decimal("3120000"), None, Decimal("0.35")),
    )


@pytest.fixture
def guyana_income_tax_rule(guyana_bands: tuple[TaxBand, ...]) -> IncomeTaxRule:
    """Guyana 2024 income tax rule."""
    return IncomeTaxRule(
        jurisdiction_code="GY",
        tax_year=2024,
        bands=guyana_bands,
        personal_deduction=PersonalDeduction(
            type=DeductionType.FORMULA,
            formula="MAX(1560000, {annualGross} * 0.333)",
        ),
        rounding_mode=RoundingMode.NEAREST,
    )


@pytest.fixture
def guyana_nis_rule() -> SocialSecurityRule:
    """Guyana 2024 National Insurance rule."""
    return SocialSecurityRule(
        jurisdiction_code="GY",
        tax_year=2024,
        employee_rate=Decimal("0.056"),
        employer_rate=Decimal("0.084"),
        ceiling=Decimal("280000"),
        ceiling_period=CeilingPeriod.MONTHLY,
        name="National Insurance Scheme",
        code="NIS",
    )


@pytest.fixture
def make_request(guyana_income_tax_rule, guyana_nis_rule):
    """Factory for Guyana payroll tax requests."""

    def _make(period_gross="300000", periods_per_year=12, **kwargs) -> PayrollTaxRequest:
        kwargs.setdefault("income_tax_rule", guyana_income_tax_rule)
        kwargs.setdefault("social_security_rule", guyana_nis_rule)
        return PayrollTaxRequest(
            period_gross=Decimal(period_gross),
            periods_per_year=periods_per_year,
            **kwargs,
        )

    return _make


@pytest.fixture
def tax_engine() -> PayrollTaxEngine:
    """Engine pinned to a fixed version for stable calculation IDs."""
    return PayrollTaxEngine(engine_version="test-1.0.0")


# ============================================================================
# Database fixtures
# ============================================================================


@pytest_asyncio.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def guyana(session: AsyncSession) -> TaxJurisdiction:
    """Seed the Guyana jurisdiction with its 2024 rules."""
    return await seed_guyana(session)
