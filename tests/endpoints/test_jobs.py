from datetime import date

import pytest

from app.core.config import settings
from app.crud.performance import portfolio_performance as crud_performance, user_ranking as crud_user_ranking
from tests.helpers.asserts import api_call, assert_error
from tests.helpers.factories import make_portfolio, make_session, make_user


@pytest.fixture
def cron_key(monkeypatch):
    monkeypatch.setattr(settings, "CRON_API_KEY", "cron-secret")
    return "cron-secret"


def test_job_requires_configured_key(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_API_KEY", None)
    response = client.post("/jobs/compute-performance", headers={"Authorization": "Bearer anything"})
    assert_error(response, 503, "SERVICE_UNAVAILABLE")


def test_job_rejects_wrong_key(client, cron_key):
    response = client.post("/jobs/compute-performance", headers={"Authorization": "Bearer wrong"})
    assert_error(response, 401, "UNAUTHORIZED")


def test_job_computes_active_sessions(client, db_session, cron_key):
    session = make_session(db_session, date(2024, 1, 1), date(2024, 1, 5))
    portfolio = make_portfolio(db_session, make_user(db_session, "Alice"), session)

    response = api_call(
        client, "POST", "/jobs/compute-performance",
        headers={"Authorization": f"Bearer {cron_key}"}
    )

    summaries = response.json()["data"]
    assert summaries == [{"sessionId": session.id, "portfolios": 1, "failed": 0, "rankings": 1}]
    rows = crud_performance.get_multi_by_portfolio_in_range(db_session, portfolio.id, date(2024, 1, 1), date(2024, 1, 5))
    assert [float(r.portfolio_percent_change) for r in rows] == [0.0] * 5
    assert len(crud_user_ranking.get_multi_by_session(db_session, session.id)) == 1
