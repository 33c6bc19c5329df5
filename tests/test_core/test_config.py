import pytest
from pydantic import ValidationError

from src.core.config import Settings
from src.core.plans import UNLIMITED, Channel, PlanId


def test_nested_groups_load_from_environment(monkeypatch):
    monkeypatch.setenv("USAGE__TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("USAGE__API_WINDOW_DAYS", "7")
    monkeypatch.setenv("BILLING__PRICE_PLANS", '{"price_123": "bundle"}')

    loaded = Settings(_env_file=None)

    assert loaded.usage.timezone == "Europe/Berlin"
    assert loaded.usage.api_window_days == 7
    assert loaded.billing.price_plans == {"price_123": PlanId.BUNDLE}
    assert loaded.billing.price_for(PlanId.BUNDLE) == "price_123"
    assert loaded.billing.price_for(PlanId.API_METERED) is None


def test_default_plan_table():
    plans = Settings(_env_file=None).plans

    assert plans[PlanId.FREE].limit_for(Channel.WEB) == 1
    assert plans[PlanId.FREE].limit_for(Channel.API) == 0
    assert plans[PlanId.WEB_UNLIMITED].limit_for(Channel.WEB) == UNLIMITED
    assert plans[PlanId.BUNDLE].api_limit == 100


def test_every_plan_must_be_configured():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, plans={"free": {"web_limit": 1, "api_limit": 0, "is_pro": False}})
