#!/usr/bin/env python3
import botcurrency as currency
import botmemory as memory
import botreminders as reminders
import botstats as stats
import botutils as utils
import bothttp as http

logger = None
config = None

REMINDER_INTERVAL = 30
CURRENCY_INTERVAL = 5 * 60
SAVE_INTERVAL = 5 * 60
HEALTHCHECK_INTERVAL = 60

def getHealthcheckUrl():
    if config is None: return ""
    return config.get("healthcheckUrl", "") or ""

def newTimers(now):
    """Last-run markers for each job. Currency starts at zero to fetch at once."""
    return {
        "reminders": now,
        "currency": 0,
        "save": now,
        "healthcheck": 0,
        "rankingDay": utils.startOfDay(now),
        }

def runJob(name, job, *args):
    try:
        job(*args)
    except Exception:
        logger.exception(f"Scheduled job {name} failed")

def healthcheck():
    url = getHealthcheckUrl()
    if len(url) == 0: return
    http.geturl(url)

def runDueJobs(memoryData, relay, timers):
    now = utils.currUnixtime()
    systemData = memory.getSystemData(memoryData)

    if timers["reminders"] + REMINDER_INTERVAL <= now:
        runJob("reminders", reminders.sweepReminders, systemData, relay)
        timers["reminders"] = now

    if timers["currency"] + CURRENCY_INTERVAL <= now:
        runJob("currency", currency.refreshCurrencyRates, systemData)
        timers["currency"] = now

    if timers["save"] + SAVE_INTERVAL <= now:
        runJob("save", memory.saveMemory, memoryData)
        timers["save"] = now

    # first tick of a new local day
    currentDay = utils.startOfDay(now)
    if currentDay > timers["rankingDay"]:
        runJob("ranking", stats.publishRankings, relay, now)
        timers["rankingDay"] = currentDay

    if timers["healthcheck"] + HEALTHCHECK_INTERVAL <= now:
        runJob("healthcheck", healthcheck)
        timers["healthcheck"] = now
