#!/usr/bin/env python3
from datetime import datetime, timedelta
import re
import redis
import botnostr as nostr
import botutils as utils

logger = None
config = None

REGEX_PASSPORT = re.compile(r"(\bpassport\b|許可証|パス)", re.IGNORECASE)
REGEX_PUSHSETTING = re.compile(r"\b(push)\s(.+)", re.IGNORECASE)

PASSPORT_DAYS = 7
FAILED_MESSAGE = "正しく処理できませんでした…"

# (pattern, kind, label) checked in order
PUSH_TARGETS = [
    (re.compile(r"(note|1)", re.IGNORECASE), 1, "ノート"),
    (re.compile(r"(dm|4)", re.IGNORECASE), 4, "DM"),
    (re.compile(r"(channel|42)", re.IGNORECASE), 42, "GROUP CHAT"),
    (re.compile(r"(zap|9735)", re.IGNORECASE), 9735, "Zap"),
]

_client = None

def getClient():
    """Returns the redis client, or None when no kvs url is configured."""
    global _client
    if _client is None:
        if config is None or len(config.get("url", "")) == 0: return None
        _client = redis.Redis.from_url(config["url"])
    return _client

def checkBool(text):
    if re.search(r"^(enable|on|true|1)$", text, re.IGNORECASE): return True
    if re.search(r"^(disable|off|false|0)$", text, re.IGNORECASE): return False
    raise ValueError(f"not a valid flag: {text}")

def handlePassport(systemData, userData, relay, ev):
    logger.debug(f"Fired passport: {ev.content}")
    message = FAILED_MESSAGE
    client = getClient()
    if client is not None:
        expires = datetime.fromtimestamp(utils.currUnixtime()) + timedelta(days=PASSPORT_DAYS)
        try:
            client.set(f"passport-{ev.public_key}", int(expires.timestamp() * 1000))
            message = f"通行許可証を発行しました！\n{expires.strftime('%Y-%m-%d %H:%M')} まで国外から書き込み可能になります！"
        except redis.RedisError as err:
            logger.warning(f"Error storing passport for {ev.public_key}: {err}")
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    return True

def getPushTarget(word):
    for pattern, kind, label in PUSH_TARGETS:
        if pattern.search(word) is not None: return kind, label
    return None, None

def handlePushSetting(systemData, userData, relay, ev):
    logger.debug(f"Fired push setting: {ev.content}")
    match = REGEX_PUSHSETTING.search(ev.content)
    args = match.group(2).split(" ") if match is not None else []
    kind, label = getPushTarget(args[0] if len(args) > 0 else "")
    message = "問題が発生しました…"
    client = getClient()
    if kind is not None and client is not None:
        try:
            enabled = checkBool(" ".join(args[1:]))
            client.set(f"push-{ev.public_key}-{kind}", int(enabled))
            suffix = "有効化しました！" if enabled else "無効化しました！"
            message = f"{label}の通知を{suffix}"
        except ValueError as err:
            logger.debug(f"Invalid push setting: {err}")
        except redis.RedisError as err:
            logger.warning(f"Error storing push setting for {ev.public_key}: {err}")
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    return True
