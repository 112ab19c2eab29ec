#!/usr/bin/env python3
from datetime import datetime, timedelta
import emoji
import random
import re
import sys
import botmemory as memory
import botnostr as nostr
import botutils as utils
import bothttp as http

logger = None

REGEX_PING = re.compile(r"\b(ping)\b", re.IGNORECASE)
REGEX_REACTION = re.compile(r"(\bfav\b|ふぁぼ|ファボ|祝福|星)", re.IGNORECASE)
REGEX_DICE_MULTI = re.compile(r"\b(dice)\s(\d+)d(\d+)\b", re.IGNORECASE)
REGEX_DICE_SINGLE = re.compile(r"\b(dice)\b", re.IGNORECASE)
REGEX_COUNT = re.compile(r"(\bcount\b|カウント)", re.IGNORECASE)
REGEX_LOGINBONUS = re.compile(r"(\bloginbonus\b|ログインボーナス|ログボ|ろぐぼ)", re.IGNORECASE)
REGEX_UNIXTIME = re.compile(r"\b(unixtime)\b", re.IGNORECASE)
REGEX_BLOCKTIME = re.compile(r"\b(blocktime)\b", re.IGNORECASE)
REGEX_REBOOT = re.compile(r"(\breboot\b|再起動)", re.IGNORECASE)

DICE_COUNT_MAX = 100
DICE_SIDES_MAX = 10000
DICE_FAILED_MESSAGE = "数えられない…"
LOGIN_FUTURE_LIMIT = 10

# Z is replaced with the chosen emoji
AA_LIST = [
    "Z",
    "(っ'ω')っZ",
    "(ﾉ・ω・)ﾉ Z",
    "ﾎﾟｲｯ( ・ω・)ﾉ Z",
    "⊂(・ω・ )⊃ Z",
    "Z ﾍ(・ω・ﾍ)",
    "( ・ω・)つZ ﾄﾞｳｿﾞ",
    "Z<ｽﾀｰ!",
]

BLOCKTIME_URL = "https://mempool.space/api/blocks/tip/height"

def publishReply(relay, message, ev):
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))

def handlePing(systemData, userData, relay, ev):
    logger.debug(f"Fired ping: {ev.content}")
    publishReply(relay, "pong!", ev)
    return True

def rollDice(diceCount, diceSides):
    rollList = [random.randint(1, diceSides) for _ in range(diceCount)]
    return rollList, sum(rollList)

def handleDiceMulti(systemData, userData, relay, ev):
    logger.debug(f"Fired dice multi: {ev.content}")
    match = REGEX_DICE_MULTI.search(ev.content)
    diceCount = int(match.group(2)) if match is not None else 0
    diceSides = int(match.group(3)) if match is not None else 0
    logger.debug(f"{diceCount}D{diceSides}")
    if 1 <= diceCount <= DICE_COUNT_MAX and 1 <= diceSides <= DICE_SIDES_MAX:
        rollList, rollSum = rollDice(diceCount, diceSides)
        joined = "+".join(str(r) for r in rollList)
        message = f"{joined} = {rollSum} が出ました"
    else:
        message = DICE_FAILED_MESSAGE
    publishReply(relay, message, ev)
    return True

def handleDiceSingle(systemData, userData, relay, ev):
    logger.debug(f"Fired dice 1D6: {ev.content}")
    _, rollSum = rollDice(1, 6)
    publishReply(relay, f"{rollSum}が出ました", ev)
    return True

def handleReaction(systemData, userData, relay, ev):
    logger.debug(f"Fired reaction: {ev.content}")
    reaction = random.choice(list(emoji.EMOJI_DATA.keys()))
    message = random.choice(AA_LIST).replace("Z", reaction, 1)
    publishReply(relay, message, ev)
    nostr.publishToRelay(relay, nostr.composeReaction(reaction, ev))
    return True

def handleCount(systemData, userData, relay, ev):
    logger.debug(f"Fired counter: {ev.content}")
    userData.counter = (userData.counter or 0) + 1
    publishReply(relay, f"{userData.counter}回目です", ev)
    return True

def loginBonusMessage(loginBonus):
    message = f"あなたの合計ログイン回数は{loginBonus.totalLoginCount}回です。"
    message = f"{message}\nあなたの連続ログイン回数は{loginBonus.consecutiveLoginCount}回です。"
    return message

def handleLoginBonus(systemData, userData, relay, ev):
    logger.debug(f"Fired login bonus: {ev.content}")
    now = utils.currUnixtime()
    if ev.created_at >= now + LOGIN_FUTURE_LIMIT:
        message = "未来からログインしないで！"
    elif userData.loginBonus is None:
        logger.debug(f"First login for {ev.public_key}")
        userData.loginBonus = memory.LoginBonus(
            lastLoginTime=ev.created_at,
            consecutiveLoginCount=1,
            totalLoginCount=1,
            )
        message = "はじめまして！\n最初のログインです"
    else:
        loginBonus = userData.loginBonus
        lastLoginTime = datetime.fromtimestamp(loginBonus.lastLoginTime or 0)
        currentDay = utils.startOfDay(now)
        yesterday = currentDay - timedelta(days=1)
        if lastLoginTime < currentDay:
            if lastLoginTime < yesterday:
                # missed yesterday, streak starts over
                loginBonus.consecutiveLoginCount = 0
            loginBonus.totalLoginCount += 1
            loginBonus.consecutiveLoginCount += 1
            loginBonus.lastLoginTime = ev.created_at
            message = f"{utils.greetingMessage(now)}\n{loginBonusMessage(loginBonus)}"
        else:
            logger.debug(f"Already logged in today: {ev.public_key}")
            message = f"今日はもうログイン済みです。\n{loginBonusMessage(loginBonus)}"
    publishReply(relay, message, ev)
    return True

def handleUnixtime(systemData, userData, relay, ev):
    logger.debug(f"Fired unixtime: {ev.content}")
    publishReply(relay, f"現在は{utils.currUnixtime() + 1}です。", ev)
    return True

def handleBlocktime(systemData, userData, relay, ev):
    logger.debug(f"Fired blocktime: {ev.content}")
    try:
        height = http.geturl(BLOCKTIME_URL).text.strip()
        message = f"現在のblocktimeは{height}です。"
    except Exception as err:
        logger.warning(f"Error getting block height: {err}")
        message = "取得に失敗しました…"
    publishReply(relay, message, ev)
    return True

def handleReboot(systemData, userData, relay, ev):
    logger.debug(f"Fired reboot: {ev.content}")
    adminPubkey = nostr.getAdminPubkey()
    if adminPubkey is not None and len(adminPubkey) > 0 and ev.public_key == adminPubkey:
        publishReply(relay, "💤", ev)
        logger.info(f"Reboot requested by {ev.public_key}")
        sys.exit(0)     # memory is saved by the exit hook
    publishReply(relay, "誰？", ev)
    return True
