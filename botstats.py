#!/usr/bin/env python3
from datetime import datetime, timedelta
from dateutil.relativedelta import relativedelta
import json
import re
import subprocess
import botnostr as nostr
import botutils as utils

logger = None
config = None

REGEX_INFO = re.compile(r"(\binfo\b|情報)", re.IGNORECASE)
REGEX_STATUS = re.compile(r"(\bstatus\b|ステータス)", re.IGNORECASE)

INFO_COOLDOWN = 10 * 60
STATUS_COOLDOWN = 5 * 60
RANKING_SIZE = 20
RANKING_HEADER = ["🥇","🥈","🥉","④","⑤","⑥","⑦","⑧","⑨","⑩",
                  "⑪","⑫","⑬","⑭","⑮","⑯","⑰","⑱","⑲","⑳"]
RANKING_TITLES = {
    1: "ノート(kind: 1)",
    6: "リポスト(kind: 6)",
    7: "リアクション(kind: 7)",
}
STATUS_THRESHOLDS = [1, 2, 10, 50, 100]

def getExecPath():
    execPath = "/app/strfry"
    if config is not None and "execPath" in config: execPath = config["execPath"]
    return execPath

def strfryScan(filter):
    execParams = [getExecPath(), "scan", json.dumps(filter)]
    result = subprocess.run(execParams, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL, text=True, check=True)
    return [line for line in result.stdout.splitlines() if len(line.strip()) > 0]

def strfryCount(filter):
    execParams = [getExecPath(), "scan", json.dumps(filter), "--count"]
    result = subprocess.run(execParams, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL, text=True, check=True)
    return int(result.stdout.strip())

def strfryGetMetadata(pubkey):
    lines = strfryScan({"authors": [pubkey], "kinds": [0], "limit": 1})
    if len(lines) == 0: return {}
    return json.loads(lines[0])

def getDisplayName(metadata):
    if "content" not in metadata: return None
    try:
        userInfo = json.loads(metadata["content"])
    except ValueError:
        return None
    if type(userInfo) is not dict: return None
    return userInfo.get("display_name") or userInfo.get("displayName")

def getWindows(now):
    current = datetime.fromtimestamp(now)
    return [
        int((current - timedelta(days=1)).timestamp()),
        int((current - timedelta(weeks=1)).timestamp()),
        int((current - relativedelta(months=1)).timestamp()),
        None,
        ]

def countWindows(filter, now):
    counts = []
    for since in getWindows(now):
        f = dict(filter)
        if since is not None: f["since"] = since
        counts.append(strfryCount(f))
    return ", ".join(str(c) for c in counts)

def cooldownMessage(label, remaining):
    return f"しばらく経ってからもう一度実行してください…\n{label}: {remaining}"

def handleInfo(systemData, userData, relay, ev):
    logger.debug(f"Fired info: {ev.content}")
    now = utils.currUnixtime()
    timerDuration = now - (userData.infoTimer or 0)
    if timerDuration < INFO_COOLDOWN:
        message = cooldownMessage("cooldown", INFO_COOLDOWN - timerDuration)
        nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
        return True
    pubkey = ev.public_key
    try:
        metadata = strfryGetMetadata(pubkey)
        userName = getDisplayName(metadata) if nostr.isValidMetadata(metadata) else None
        if userName is not None:
            message = f"{utils.greetingMessage(now)} {userName}さん！\n"
        else:
            message = f"{utils.greetingMessage(now)} (まだkind:0を受信していません)\n"
        message = f"{message}やぶみが把握しているあなたのイベントは以下の通りです。 (day, week, month, total)\n"
        message = f"{message}投稿(kind: 1): {countWindows({'authors': [pubkey], 'kinds': [1]}, now)}\n"
        message = f"{message}リポスト(kind: 6): {countWindows({'authors': [pubkey], 'kinds': [6]}, now)}\n"
        message = f"{message}リアクション(kind: 7): {countWindows({'authors': [pubkey], 'kinds': [7]}, now)}\n"
        message = f"{message}全てのイベント: {countWindows({'authors': [pubkey]}, now)}"
    except (OSError, subprocess.SubprocessError, ValueError) as err:
        logger.warning(f"Error counting events for {pubkey}: {err}")
        nostr.publishToRelay(relay, nostr.composeReplyPost("何か問題が発生しました…", ev))
        return True
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    userData.infoTimer = utils.currUnixtime()
    return True

def countUserEvents(events):
    """Counts raw event lines per author, most active first."""
    users = {}
    for event in events:
        eventData = json.loads(event)
        userId = eventData["pubkey"]
        users[userId] = users.get(userId, 0) + 1
    userList = list(users.items())
    userList.sort(key=lambda item: item[1], reverse=True)
    return userList

def handleStatus(systemData, userData, relay, ev):
    logger.debug(f"Fired status: {ev.content}")
    now = utils.currUnixtime()
    timerDuration = now - (systemData.statusTimer or 0)
    if timerDuration < STATUS_COOLDOWN:
        message = cooldownMessage("Cooldown", STATUS_COOLDOWN - timerDuration)
        nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
        return True
    try:
        events = strfryScan({"kinds": [1], "since": int((datetime.fromtimestamp(now) - timedelta(days=1)).timestamp())})
        userList = countUserEvents(events)
        message = "やぶみリレーの統計情報です！\n"
        for threshold in STATUS_THRESHOLDS:
            users = len([u for u in userList if u[1] >= threshold])
            message = f"{message}直近24時間でノート(kind: 1)を{threshold}回以上投稿したユーザー数は{users}でした！\n"
        message = f"{message}\n全てのユーザーのイベントは以下の通りです。 (day, week, month, total)\n"
        message = f"{message}メタデータ(kind: 0): {countWindows({'kinds': [0]}, now)}\n"
        message = f"{message}投稿(kind: 1): {countWindows({'kinds': [1]}, now)}\n"
        message = f"{message}リポスト(kind: 6): {countWindows({'kinds': [6]}, now)}\n"
        message = f"{message}リアクション(kind: 7): {countWindows({'kinds': [7]}, now)}\n"
        message = f"{message}全てのイベント: {countWindows({}, now)}"
    except (OSError, subprocess.SubprocessError, ValueError) as err:
        logger.warning(f"Error counting relay events: {err}")
        nostr.publishToRelay(relay, nostr.composeReplyPost("何か問題が発生しました…", ev))
        return True
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    systemData.statusTimer = utils.currUnixtime()
    return True

def generateRanking(userList):
    message = ""
    for index, (pubkey, value) in enumerate(userList[:RANKING_SIZE]):
        userName = getDisplayName(strfryGetMetadata(pubkey))
        userNpub = utils.npubEncode(pubkey)
        if userName is not None:
            message = f"{message}{RANKING_HEADER[index]} {value} {userName} (nostr:{userNpub})\n"
        else:
            message = f"{message}{RANKING_HEADER[index]} {value} nostr:{userNpub}\n"
    return message.strip()

def getRankingPeriod(now):
    # yesterday 00:00:00 through yesterday 23:59:59, local time
    currentDay = utils.startOfDay(now)
    yesterday = currentDay - timedelta(days=1)
    until = currentDay - timedelta(seconds=1)
    return int(yesterday.timestamp()), int(until.timestamp())

def publishRankings(relay, now):
    since, until = getRankingPeriod(now)
    logger.info(f"Generating rankings for {utils.formatTime(since)} → {utils.formatTime(until)}")
    events = strfryScan({"kinds": [1, 6, 7], "since": since, "until": until})
    parsed = [(json.loads(e)["kind"], e) for e in events]
    period = f"{utils.formatTime(since)} → {utils.formatTime(until)}"
    for kind, title in RANKING_TITLES.items():
        userList = countUserEvents([e for k, e in parsed if k == kind])
        message = f"{title}ランキングです！\n集計期間：{period}\n\n{generateRanking(userList)}"
        nostr.publishToRelay(relay, nostr.composePost(message))
