"""Shared fixtures.

Every test runs in its own temporary directory with a fresh SQLite file
and default configuration.
"""

from datetime import date, datetime, time, timezone

import pytest

from costwatch.config.app_config import clear_config_cache
from costwatch.db.aggregations_repository import (
    CostAggregation,
    UserAggregation,
    save_aggregation,
)
from costwatch.db.costs_repository import (
    CostSource,
    ServiceType,
    ServiceUsage,
    UnitDetails,
    insert_cost,
)
from costwatch.db.database import init_db, reset_db_path

ENV_OVERRIDES = [
    "COSTWATCH_ADMIN_KEY",
    "COSTWATCH_DB_PATH",
    "CONTENT_GENERATION_MODEL",
    "CHATBOT_MODEL",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Fresh database and config for each test."""
    monkeypatch.chdir(tmp_path)
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    clear_config_cache()

    db_path = tmp_path / "test.db"
    init_db(db_path)
    yield db_path

    reset_db_path()
    clear_config_cache()


def at(day: date, hour: int = 12, minute: int = 0) -> datetime:
    """UTC timestamp on a given day."""
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


def llm_usage(
    cost: float,
    input_tokens: int = 1000,
    output_tokens: int = 500,
    model: str = "openai/gpt-oss-120b",
    status: str = "success",
) -> ServiceUsage:
    """A groq_llm service entry."""
    return ServiceUsage(
        service=ServiceType.GROQ_LLM,
        cost=cost,
        unit_details=UnitDetails(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            metadata={"model": model},
        ),
        status=status,
    )


def transcript_usage(cost: float = 0.005, status: str = "success") -> ServiceUsage:
    """An apify_transcript service entry."""
    return ServiceUsage(
        service=ServiceType.APIFY_TRANSCRIPT,
        cost=cost,
        unit_details=UnitDetails(duration=1200),
        status=status,
    )


@pytest.fixture
def add_cost():
    """Factory storing a cost event at a given time."""

    def _add(
        user_id: str,
        when: datetime,
        services: list[ServiceUsage] | None = None,
        source: CostSource = CostSource.LEARNING_MATERIAL_GENERATION,
    ) -> str:
        services = services if services is not None else [llm_usage(0.01)]
        return insert_cost(
            user_id=user_id,
            source=source,
            services=services,
            total_cost=round(sum(s.cost for s in services), 6),
            created_at=when,
        )

    return _add


@pytest.fixture
def add_aggregation():
    """Factory storing a bare aggregation for a day."""

    def _add(
        day: date,
        total: float,
        users: dict[str, float] | None = None,
        moving_average_30d: float = 0.0,
        std_dev_30d: float = 0.0,
    ) -> CostAggregation:
        return save_aggregation(
            CostAggregation(
                date=day.isoformat(),
                daily_total_cost=total,
                by_user=[
                    UserAggregation(user_id=user_id, cost=cost, operations=1)
                    for user_id, cost in (users or {}).items()
                ],
                moving_average_30d=moving_average_30d,
                std_dev_30d=std_dev_30d,
            )
        )

    return _add
