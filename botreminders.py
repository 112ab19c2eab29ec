#!/usr/bin/env python3
from datetime import datetime, timedelta
import dateparser
import re
import botmemory as memory
import botnostr as nostr
import botutils as utils

logger = None

REGEX_REMIND = re.compile(r"\b(remind)\s(.+)", re.IGNORECASE)
REGEX_REMIND_LIST = re.compile(r"^(list)$", re.IGNORECASE)
REGEX_REMIND_DELETE = re.compile(r"^(del)\s(.+)$", re.IGNORECASE)
REGEX_TIME_ONLY = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")
CONTENT_SEPARATOR = "!!!"
FAILED_MESSAGE = "正しく処理できませんでした…"

def parseReminderDate(text, now):
    """Lenient natural language parse, preferring future instants.

    Tries the text as given, then as "next <text>". A bare time of day that
    already passed today rolls over to tomorrow.
    """
    if len(text) == 0: return None
    base = datetime.fromtimestamp(now)
    settings = {"PREFER_DATES_FROM": "future", "RELATIVE_BASE": base}
    parsed = dateparser.parse(text, settings=settings)
    if parsed is None:
        parsed = dateparser.parse(f"next {text}", settings=settings)
    if parsed is None: return None
    if parsed.tzinfo is not None:
        parsed = datetime.fromtimestamp(parsed.timestamp())
    if parsed <= base and REGEX_TIME_ONLY.search(text) is not None:
        parsed = parsed + timedelta(days=1)
    return parsed

def splitReminderCommand(reminderCommand):
    pos = reminderCommand.find(CONTENT_SEPARATOR)
    if pos == -1: return reminderCommand.strip(), ""
    return reminderCommand[:pos].strip(), reminderCommand[pos+len(CONTENT_SEPARATOR):].strip()

def listReminders(systemData, pubkey):
    message = "あなた宛に現在登録されている通知予定は以下の通りです！\n"
    filteredList = [r for r in systemData.reminderList if r.eventPubkey == pubkey]
    if len(filteredList) == 0:
        return f"{message}見つかりませんでした…"
    for reminder in filteredList:
        notifyDate = utils.formatTime(reminder.remindAt // 1000)
        notifyNote = utils.noteEncode(reminder.eventId)
        message = f"{message}{notifyDate} => nostr:{notifyNote}\n"
    return message

def deleteReminders(systemData, pubkey, deleteWord):
    deleteWord = deleteWord.replace("nostr:", "").strip()
    deleteQuery = utils.bech32ToHex(deleteWord) if utils.isBech32Entity(deleteWord) else deleteWord
    if len(deleteQuery) != 64 or not utils.isHex(deleteQuery):
        return FAILED_MESSAGE
    systemData.reminderList = [r for r in systemData.reminderList
        if not (r.eventPubkey == pubkey and r.eventId == deleteQuery)]
    noteId = utils.noteEncode(deleteQuery)
    return f"指定されたノート( nostr:{noteId} )宛てにあなたが作成した通知を全て削除しました！"

def addReminder(systemData, ev, reminderCommand):
    now = utils.currUnixtime()
    reminderDateText, reminderContent = splitReminderCommand(reminderCommand)
    reminderDate = parseReminderDate(reminderDateText, now)
    if reminderDate is None or reminderDate.timestamp() <= now:
        logger.debug(f"Unable to schedule reminder for '{reminderDateText}'")
        return FAILED_MESSAGE
    reminder = memory.Reminder(
        remindAt=int(reminderDate.timestamp() * 1000),
        eventId=ev.id,
        eventPubkey=ev.public_key,
        eventKind=ev.kind,
        eventTags=[list(t) for t in ev.tags if len(t) > 0 and t[0] == "e"],
        content=reminderContent,
        )
    systemData.reminderList.append(reminder)
    return f"{reminderDate.strftime('%Y-%m-%d %H:%M')}になったらお知らせします！"

def handleRemind(systemData, userData, relay, ev):
    logger.debug(f"Fired reminder: {ev.content}")
    match = REGEX_REMIND.search(ev.content)
    reminderCommand = match.group(2) if match is not None else ""
    deleteMatch = REGEX_REMIND_DELETE.search(reminderCommand)
    if REGEX_REMIND_LIST.search(reminderCommand) is not None:
        message = listReminders(systemData, ev.public_key)
    elif deleteMatch is not None:
        message = deleteReminders(systemData, ev.public_key, deleteMatch.group(2))
    else:
        message = addReminder(systemData, ev, reminderCommand)
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    return True

def sweepReminders(systemData, relay):
    now = utils.currUnixtime()
    current = now * 1000
    dueList = [r for r in systemData.reminderList if r.remindAt <= current]
    if len(dueList) == 0: return 0
    # drop before sending so a failed publish can never fire twice
    systemData.reminderList = [r for r in systemData.reminderList if not (r.remindAt <= current)]
    for reminder in dueList:
        message = "((🔔))"
        if reminder.content is not None and len(reminder.content) > 0:
            message = f"{message} {reminder.content}"
        replyEvent = nostr.composeReply(message, reminder.eventId, reminder.eventPubkey,
            reminder.eventKind or 1, reminder.eventTags or [], now)
        nostr.publishToRelay(relay, replyEvent)
    logger.info(f"Sent {len(dueList)} reminders")
    return len(dueList)
