"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_tax.calculators.engine import PayrollTaxEngine
from payroll_tax.calculators.rule_resolver import TaxRuleResolver
from payroll_tax.database import init_db


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, session_factory = init_db()
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_tax_engine() -> PayrollTaxEngine:
    """Get the tax engine dependency."""
    return PayrollTaxEngine()


async def get_rule_resolver(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> TaxRuleResolver:
    """Get a rule resolver bound to the request session."""
    return TaxRuleResolver(session)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
TaxEngine = Annotated[PayrollTaxEngine, Depends(get_tax_engine)]
RuleResolver = Annotated[TaxRuleResolver, Depends(get_rule_resolver)]
