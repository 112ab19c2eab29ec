from datetime import timedelta

import pytest

import botbasic
import botmemory
import botutils
from conftest import ADMIN_KEY, NOW


@pytest.mark.parametrize("content", ["dice 3d6", "dice 100d10000", "dice 1d1"])
def test_dice_sum_matches_rolls(clock, relay, systemData, userData, makeEvent, content):
    match = botbasic.REGEX_DICE_MULTI.search(content)
    count, sides = int(match.group(2)), int(match.group(3))
    assert botbasic.handleDiceMulti(systemData, userData, relay, makeEvent(content))
    rolls, total = relay.contents[0].replace(" が出ました", "").split(" = ")
    rolls = [int(r) for r in rolls.split("+")]
    assert len(rolls) == count
    assert all(1 <= r <= sides for r in rolls)
    assert sum(rolls) == int(total)


@pytest.mark.parametrize("content", ["dice 0d6", "dice 101d6", "dice 2d0", "dice 2d10001"])
def test_dice_out_of_range(clock, relay, systemData, userData, makeEvent, content, monkeypatch):
    monkeypatch.setattr(botbasic, "rollDice", lambda c, s: pytest.fail("rolled"))
    assert botbasic.handleDiceMulti(systemData, userData, relay, makeEvent(content))
    assert relay.contents == [botbasic.DICE_FAILED_MESSAGE]


def test_dice_single(clock, relay, systemData, userData, makeEvent):
    botbasic.handleDiceSingle(systemData, userData, relay, makeEvent("dice"))
    value = int(relay.contents[0].replace("が出ました", ""))
    assert 1 <= value <= 6


def test_reaction_publishes_reply_and_reaction(clock, relay, systemData, userData, makeEvent):
    ev = makeEvent("fav")
    assert botbasic.handleReaction(systemData, userData, relay, ev)
    reply, reaction = relay.published
    assert reaction.kind == 7
    assert ["e", ev.id] in reaction.tags
    assert reaction.content in reply.content


def test_counter_is_monotonic(clock, relay, systemData, userData, makeEvent):
    for _ in range(5):
        botbasic.handleCount(systemData, userData, relay, makeEvent("count"))
    assert userData.counter == 5
    assert relay.contents[-1] == "5回目です"


def test_first_login(clock, relay, systemData, userData, makeEvent):
    botbasic.handleLoginBonus(systemData, userData, relay, makeEvent("ログボ"))
    assert userData.loginBonus.totalLoginCount == 1
    assert userData.loginBonus.consecutiveLoginCount == 1
    assert userData.loginBonus.lastLoginTime == NOW
    assert relay.contents[0].startswith("はじめまして！")


def test_login_twice_same_day_is_idempotent(clock, relay, systemData, userData, makeEvent):
    userData.loginBonus = botmemory.LoginBonus(lastLoginTime=NOW - 25 * 60 * 60,
        consecutiveLoginCount=3, totalLoginCount=7)
    botbasic.handleLoginBonus(systemData, userData, relay, makeEvent("loginbonus"))
    assert userData.loginBonus.consecutiveLoginCount == 4
    assert userData.loginBonus.totalLoginCount == 8
    clock(NOW + 60)
    botbasic.handleLoginBonus(systemData, userData, relay, makeEvent("loginbonus", NOW + 60))
    assert userData.loginBonus.consecutiveLoginCount == 4
    assert userData.loginBonus.totalLoginCount == 8
    assert relay.contents[1].startswith("今日はもうログイン済みです。")


def test_login_streak_resets_after_gap(clock, relay, systemData, userData, makeEvent):
    lastLogin = botutils.startOfDay(NOW) - timedelta(days=3)
    userData.loginBonus = botmemory.LoginBonus(lastLoginTime=int(lastLogin.timestamp()),
        consecutiveLoginCount=5, totalLoginCount=10)
    botbasic.handleLoginBonus(systemData, userData, relay, makeEvent("loginbonus"))
    assert userData.loginBonus.consecutiveLoginCount == 1
    assert userData.loginBonus.totalLoginCount == 11


def test_login_from_the_future(clock, relay, systemData, userData, makeEvent):
    botbasic.handleLoginBonus(systemData, userData, relay, makeEvent("loginbonus", NOW + 10))
    assert userData.loginBonus is None
    assert relay.contents == ["未来からログインしないで！"]


def test_unixtime(clock, relay, systemData, userData, makeEvent):
    botbasic.handleUnixtime(systemData, userData, relay, makeEvent("unixtime"))
    assert relay.contents == [f"現在は{NOW + 1}です。"]


def test_blocktime_failure(clock, relay, systemData, userData, makeEvent, monkeypatch):
    def failing(url, params=None, headers={}):
        raise ConnectionError("offline")
    monkeypatch.setattr(botbasic.http, "geturl", failing)
    botbasic.handleBlocktime(systemData, userData, relay, makeEvent("blocktime"))
    assert relay.contents == ["取得に失敗しました…"]


def test_reboot_refused_for_strangers(clock, relay, systemData, userData, makeEvent):
    assert botbasic.handleReboot(systemData, userData, relay, makeEvent("reboot"))
    assert relay.contents == ["誰？"]


def test_reboot_exits_for_admin(clock, relay, systemData, userData, makeEvent):
    with pytest.raises(SystemExit) as exited:
        botbasic.handleReboot(systemData, userData, relay, makeEvent("reboot", key=ADMIN_KEY))
    assert exited.value.code == 0
    assert relay.contents == ["💤"]
