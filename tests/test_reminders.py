import botmemory
import botreminders
import botutils
from conftest import NOW, USER_KEY


def reminder(remindAt, eventId="ab" * 32, pubkey=None, content=""):
    return botmemory.Reminder(remindAt=remindAt, eventId=eventId,
        eventPubkey=pubkey or USER_KEY.public_key.hex(), content=content)


def test_remind_then_list(clock, relay, systemData, userData, makeEvent):
    ev = makeEvent("remind 2099-01-01 09:00 !!!wake up")
    botreminders.handleRemind(systemData, userData, relay, ev)
    assert relay.contents[0] == "2099-01-01 09:00になったらお知らせします！"
    stored = systemData.reminderList[0]
    assert stored.content == "wake up"
    assert stored.eventId == ev.id

    botreminders.handleRemind(systemData, userData, relay, makeEvent("remind list"))
    listing = relay.contents[1].splitlines()[1]
    date, note = listing.split(" => nostr:")
    assert date == "2099-01-01 09:00"
    assert botutils.bech32ToHex(note) == ev.id


def test_remind_keeps_thread_tags(clock, relay, systemData, userData, makeEvent):
    root = ["e", "cd" * 32, "", "root"]
    botreminders.handleRemind(systemData, userData, relay,
        makeEvent("remind 2099-01-01 09:00", tags=[root, ["p", "ef" * 32]]))
    assert systemData.reminderList[0].eventTags == [root]


def test_remind_rejects_unparseable(clock, relay, systemData, userData, makeEvent):
    botreminders.handleRemind(systemData, userData, relay, makeEvent("remind whenever you like"))
    assert relay.contents == [botreminders.FAILED_MESSAGE]
    assert systemData.reminderList == []


def test_remind_rejects_past(clock, relay, systemData, userData, makeEvent):
    botreminders.handleRemind(systemData, userData, relay, makeEvent("remind 2001-01-01 09:00"))
    assert relay.contents == [botreminders.FAILED_MESSAGE]
    assert systemData.reminderList == []


def test_list_only_own_reminders(clock, relay, systemData, userData, makeEvent):
    systemData.reminderList = [reminder((NOW + 60) * 1000, pubkey="00" * 32)]
    botreminders.handleRemind(systemData, userData, relay, makeEvent("remind list"))
    assert relay.contents[0].endswith("見つかりませんでした…")


def test_delete_by_note(clock, relay, systemData, userData, makeEvent):
    target = "ab" * 32
    systemData.reminderList = [
        reminder((NOW + 60) * 1000, eventId=target),
        reminder((NOW + 120) * 1000, eventId=target),
        reminder((NOW + 60) * 1000, eventId="cd" * 32),
        reminder((NOW + 60) * 1000, eventId=target, pubkey="00" * 32),
    ]
    note = botutils.noteEncode(target)
    botreminders.handleRemind(systemData, userData, relay, makeEvent(f"remind del nostr:{note}"))
    assert [r.eventId for r in systemData.reminderList] == ["cd" * 32, target]
    assert systemData.reminderList[1].eventPubkey == "00" * 32
    assert note in relay.contents[0]


def test_delete_rejects_garbage(clock, relay, systemData, userData, makeEvent):
    botreminders.handleRemind(systemData, userData, relay, makeEvent("remind del nothex"))
    assert relay.contents == [botreminders.FAILED_MESSAGE]


def test_sweep_fires_each_due_reminder_once(clock, relay, systemData):
    systemData.reminderList = [
        reminder(NOW * 1000, content="wake up"),
        reminder((NOW + 3600) * 1000),
        reminder((NOW - 10) * 1000, eventId="cd" * 32),
    ]
    assert botreminders.sweepReminders(systemData, relay) == 2
    assert botreminders.sweepReminders(systemData, relay) == 0
    assert relay.contents == ["((🔔)) wake up", "((🔔))"]
    assert [r.remindAt for r in systemData.reminderList] == [(NOW + 3600) * 1000]


def test_sweep_reply_is_threaded(clock, relay, systemData):
    root = ["e", "cd" * 32, "", "root"]
    due = reminder(NOW * 1000)
    due.eventTags = [root]
    systemData.reminderList = [due]
    botreminders.sweepReminders(systemData, relay)
    tags = relay.published[0].tags
    assert tags == [root, ["e", due.eventId], ["p", due.eventPubkey]]
    assert relay.published[0].created_at == NOW + 1


def test_time_only_rolls_to_tomorrow(clock):
    parsed = botreminders.parseReminderDate("06:00", NOW)
    assert parsed is not None
    assert parsed.timestamp() > NOW
    assert parsed.hour == 6
