from datetime import timedelta

import pytest

import botschedule
from conftest import NOW


@pytest.fixture
def jobs(monkeypatch):
    """Replaces every scheduled job with a recorder."""
    ran = []
    monkeypatch.setattr(botschedule.reminders, "sweepReminders", lambda systemData, relay: ran.append("reminders"))
    monkeypatch.setattr(botschedule.currency, "refreshCurrencyRates", lambda systemData: ran.append("currency"))
    monkeypatch.setattr(botschedule.memory, "saveMemory", lambda memoryData: ran.append("save"))
    monkeypatch.setattr(botschedule.stats, "publishRankings", lambda relay, now: ran.append("ranking"))
    monkeypatch.setattr(botschedule, "healthcheck", lambda: ran.append("healthcheck"))
    return ran


def test_first_tick(clock, relay, jobs):
    timers = botschedule.newTimers(NOW)
    botschedule.runDueJobs({}, relay, timers)
    assert jobs == ["currency", "healthcheck"]


def test_intervals(clock, relay, jobs):
    timers = botschedule.newTimers(NOW)
    botschedule.runDueJobs({}, relay, timers)
    jobs.clear()
    clock(NOW + botschedule.REMINDER_INTERVAL)
    botschedule.runDueJobs({}, relay, timers)
    assert jobs == ["reminders"]
    jobs.clear()
    clock(NOW + botschedule.SAVE_INTERVAL)
    botschedule.runDueJobs({}, relay, timers)
    assert jobs == ["reminders", "currency", "save", "healthcheck"]


def test_ranking_once_per_day(clock, relay, jobs):
    timers = botschedule.newTimers(NOW)
    midnight = int((timers["rankingDay"] + timedelta(days=1)).timestamp())
    clock(midnight)
    botschedule.runDueJobs({}, relay, timers)
    assert jobs.count("ranking") == 1
    clock(midnight + 60)
    botschedule.runDueJobs({}, relay, timers)
    assert jobs.count("ranking") == 1


def test_failing_job_does_not_stop_others(clock, relay, jobs, monkeypatch):
    def broken(systemData):
        raise RuntimeError("rates")
    monkeypatch.setattr(botschedule.currency, "refreshCurrencyRates", broken)
    timers = botschedule.newTimers(NOW)
    botschedule.runDueJobs({}, relay, timers)
    assert jobs == ["healthcheck"]
    assert timers["currency"] == NOW


def test_healthcheck_disabled_without_url(monkeypatch):
    botschedule.config = {}
    monkeypatch.setattr(botschedule.http, "geturl", lambda url: pytest.fail("called"))
    botschedule.healthcheck()
    botschedule.config = None
