import pytest

from tests.helpers.asserts import api_call
from tests.helpers.factories import auth_headers, make_portfolio, make_session, make_user


@pytest.fixture
def players(db_session):
    session = make_session(db_session, starting_cash=1000)
    bob, amy, alice = make_user(db_session, "Bob"), make_user(db_session, "Amy"), make_user(db_session, "Alice")
    make_portfolio(db_session, bob, session, cash_balance=1100)
    make_portfolio(db_session, amy, session, cash_balance=950)
    make_portfolio(db_session, alice, session, cash_balance=1100)
    return {"session": session, "bob": bob, "amy": amy, "alice": alice}


def test_rankings_order_and_cache(client, players):
    headers = auth_headers(players["amy"])

    first = api_call(client, "GET", "/rankings", headers=headers).json()["data"]
    assert [(u["name"], u["rank"], u["returnPercent"]) for u in first["topUsers"]] == [
        ("Alice", 1, 10.0),
        ("Bob", 2, 10.0),
        ("Amy", 3, -5.0),
    ]
    assert first["currentUser"]["rank"] == 3
    assert first["topUsers"][2]["isCurrentUser"] is True
    assert first["meta"]["isCached"] is False
    assert first["meta"]["sessionId"] == players["session"].id

    second = api_call(client, "GET", f"/rankings?session_id={players['session'].id}", headers=headers).json()["data"]
    assert second["meta"]["isCached"] is True
    assert second["meta"]["calculatedAt"] == first["meta"]["calculatedAt"]

    forced = api_call(client, "GET", "/rankings?fresh=true", headers=headers).json()["data"]
    assert forced["meta"]["isCached"] is False


def test_rankings_without_session(client, db_session):
    user = make_user(db_session, "Solo")

    data = api_call(client, "GET", "/rankings", headers=auth_headers(user)).json()["data"]

    assert data["topUsers"] == []
    assert data["meta"]["totalActiveUsers"] == 0
