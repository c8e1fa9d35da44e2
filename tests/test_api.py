"""HTTP API tests using an in-process ASGI client."""

import pytest
import pytest_asyncio
from decimal import Decimal

from httpx import ASGITransport, AsyncClient

from payroll_tax.api.app import create_app
from payroll_tax.api.dependencies import get_db_session

pytestmark = pytest.mark.asyncio

GUYANA_RULES = {
    "jurisdiction_code": "GY",
    "income_tax_rule": {
        "tax_year": 2024,
        "bands": [
            {"min_amount": "0", "max_amount": "3120000", "rate": "0.25"},
            {"min_amount": "3120000", "max_amount": None, "rate": "0.35"},
        ],
        "personal_deduction": {
            "type": "formula",
            "formula": "MAX(1560000, {annualGross} * 0.333)",
        },
        "rounding_mode": "nearest",
    },
    "social_security_rule": {
        "tax_year": 2024,
        "name": "National Insurance Scheme",
        "code": "NIS",
        "employee_rate": "0.056",
        "employer_rate": "0.084",
        "ceiling": "280000",
        "ceiling_period": "monthly",
    },
}


@pytest_asyncio.fixture
async def client(session):
    """API client whose requests share the test session."""
    app = create_app()

    async def override_session():
        yield session

    app.dependency_overrides[get_db_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


class TestHealth:
    """Test health endpoints."""

    async def test_health(self, client):
        """Database reachable means healthy."""
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "healthy"
        assert response.json()["active_jurisdictions"] == 0

    async def test_health_counts_seeded_jurisdictions(self, client, guyana):
        """Seeded jurisdictions are reported."""
        response = await client.get("/health")
        assert response.json()["active_jurisdictions"] == 1

    async def test_ready_and_live(self, client):
        """Orchestration probes always answer."""
        assert (await client.get("/ready")).json() == {"status": "ready"}
        assert (await client.get("/live")).json() == {"status": "alive"}


class TestInlineCalculation:
    """Test calculations with rules in the request body."""

    async def test_reference_payslip(self, client):
        """GYD 300,000 per month with inline Guyana rules."""
        response = await client.post(
            "/api/v1/tax/calculate",
            json={**GUYANA_RULES, "period_gross": "300000", "frequency": "monthly", "employee_id": "E1"},
        )
        assert response.status_code == 200

        body = response.json()
        assert Decimal(body["annual_gross"]) == Decimal("3600000")
        assert Decimal(body["personal_deduction"]) == Decimal("1560000")
        assert Decimal(body["taxable_income"]) == Decimal("2040000")
        assert Decimal(body["period_tax"]) == Decimal("42500")
        assert Decimal(body["employee_contribution"]) == Decimal("15680")
        assert Decimal(body["employer_contribution"]) == Decimal("23520")
        assert Decimal(body["net_pay"]) == Decimal("241820")
        assert body["ceiling_applied"] is True
        assert body["employee_id"] == "E1"
        assert body["tax_bands"][0]["band_name"] == "Band 1"

    async def test_periods_per_year_instead_of_frequency(self, client):
        """A raw period count is accepted."""
        response = await client.post(
            "/api/v1/tax/calculate",
            json={**GUYANA_RULES, "period_gross": "300000", "periods_per_year": 12},
        )
        assert response.status_code == 200
        assert Decimal(response.json()["period_tax"]) == Decimal("42500")

    async def test_same_request_same_calculation_id(self, client):
        """Calculation IDs are deterministic."""
        payload = {**GUYANA_RULES, "period_gross": "300000", "frequency": "monthly"}
        first = (await client.post("/api/v1/tax/calculate", json=payload)).json()
        second = (await client.post("/api/v1/tax/calculate", json=payload)).json()
        assert first["calculation_id"] == second["calculation_id"]

    async def test_invalid_bands_report_stage(self, client):
        """Engine errors map to 422 with code and stage."""
        rules = {
            **GUYANA_RULES,
            "income_tax_rule": {
                **GUYANA_RULES["income_tax_rule"],
                "bands": [
                    {"min_amount": "0", "max_amount": "4000000", "rate": "0.25"},
                    {"min_amount": "3120000", "max_amount": None, "rate": "0.35"},
                ],
            },
        }
        response = await client.post(
            "/api/v1/tax/calculate",
            json={**rules, "period_gross": "300000", "frequency": "monthly"},
        )
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "INVALID_BAND_CONFIGURATION"
        assert body["stage"] == "income_tax"

    async def test_bad_formula_reports_stage(self, client):
        """Formula syntax errors surface at the deduction stage."""
        rules = {
            **GUYANA_RULES,
            "income_tax_rule": {
                **GUYANA_RULES["income_tax_rule"],
                "personal_deduction": {"type": "formula", "formula": "MAX(1560000"},
            },
        }
        response = await client.post(
            "/api/v1/tax/calculate",
            json={**rules, "period_gross": "300000", "frequency": "monthly"},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "FORMULA_SYNTAX_ERROR"
        assert response.json()["stage"] == "deduction"

    async def test_negative_gross_rejected(self, client):
        """Request validation rejects negative gross."""
        response = await client.post(
            "/api/v1/tax/calculate",
            json={**GUYANA_RULES, "period_gross": "-1", "frequency": "monthly"},
        )
        assert response.status_code == 422

    async def test_frequency_required(self, client):
        """Either frequency or periods_per_year must be given."""
        response = await client.post(
            "/api/v1/tax/calculate",
            json={**GUYANA_RULES, "period_gross": "300000"},
        )
        assert response.status_code == 422


class TestJurisdictionCalculation:
    """Test calculations with stored rules."""

    async def test_by_tax_year(self, client, guyana):
        """Stored Guyana rules give the reference payslip."""
        response = await client.post(
            "/api/v1/jurisdictions/GY/calculate",
            json={"period_gross": "300000", "frequency": "monthly", "tax_year": 2024},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["jurisdiction_code"] == "GY"
        assert Decimal(body["period_tax"]) == Decimal("42500")
        assert Decimal(body["net_pay"]) == Decimal("241820")

    async def test_by_date(self, client, guyana):
        """Rules may be resolved by effective date."""
        response = await client.post(
            "/api/v1/jurisdictions/GY/calculate",
            json={"period_gross": "200000", "frequency": "monthly", "as_of_date": "2024-03-31"},
        )
        assert response.status_code == 200
        assert Decimal(response.json()["period_tax"]) == Decimal("17500")

    async def test_unknown_jurisdiction(self, client, guyana):
        """No applicable rule maps to 404."""
        response = await client.post(
            "/api/v1/jurisdictions/XX/calculate",
            json={"period_gross": "300000", "frequency": "monthly", "tax_year": 2024},
        )
        assert response.status_code == 404
        assert response.json()["code"] == "NO_APPLICABLE_TAX_RULE"

    async def test_unknown_year(self, client, guyana):
        """A year without rules maps to 404."""
        response = await client.post(
            "/api/v1/jurisdictions/GY/calculate",
            json={"period_gross": "300000", "frequency": "monthly", "tax_year": 1999},
        )
        assert response.status_code == 404

    async def test_scope_required(self, client, guyana):
        """Either tax_year or as_of_date is required."""
        response = await client.post(
            "/api/v1/jurisdictions/GY/calculate",
            json={"period_gross": "300000", "frequency": "monthly"},
        )
        assert response.status_code == 422
