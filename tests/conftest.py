"""
Pytest configuration and shared fixtures for the bot tests.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from nostr.event import Event
from nostr.key import PrivateKey

import botbasic
import botcalc
import botcommands
import botcooldown
import botcurrency
import botfiles
import bothttp
import botimages
import botkvs
import botmemory
import botnostr
import botreminders
import botschedule
import botsearch
import botstats
import botutils
import botweather

testLogger = logging.getLogger("bottests")
for module in (botbasic, botcalc, botcommands, botcooldown, botcurrency, botfiles, bothttp,
               botimages, botkvs, botmemory, botnostr, botreminders, botschedule, botsearch,
               botstats, botweather):
    module.logger = testLogger

BOT_KEY = PrivateKey()
USER_KEY = PrivateKey()
ADMIN_KEY = PrivateKey()

# a local noon, far from any day boundary
NOW = int(datetime(2030, 6, 15, 12, 0, 0).timestamp())


class FakeRelay:
    """Stands in for the relay manager and records what was published."""

    def __init__(self):
        self.published = []

    def publish_event(self, event):
        self.published.append(event)

    @property
    def contents(self):
        return [e.content for e in self.published]


@pytest.fixture(autouse=True)
def botConfig():
    botnostr.config = {
        "botnsec": BOT_KEY.bech32(),
        "adminpubkey": ADMIN_KEY.public_key.bech32(),
    }
    botnostr._relayPublishTime = 0
    botnostr.handledEvents = {}
    yield botnostr.config


@pytest.fixture
def clock(monkeypatch):
    """Freezes the bot's notion of now. Returns a setter for moving it."""
    current = {"now": NOW}
    monkeypatch.setattr(botutils, "currUnixtime", lambda: current["now"])

    def setNow(value):
        current["now"] = value
        return value

    setNow.now = lambda: current["now"]
    return setNow


@pytest.fixture
def relay():
    return FakeRelay()


@pytest.fixture
def systemData():
    return botmemory.SystemData()


@pytest.fixture
def userData():
    return botmemory.UserData()


@pytest.fixture
def makeEvent():
    def factory(content, createdAt=NOW, kind=1, tags=None, key=USER_KEY):
        event = Event(content=content, kind=kind, tags=tags if tags is not None else [], created_at=createdAt)
        key.sign_event(event)
        return event
    return factory
