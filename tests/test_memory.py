import json

import pytest

import botmemory


@pytest.fixture
def memoryFile(tmp_path):
    filename = tmp_path / "memory.json"
    botmemory.config = {"filename": str(filename)}
    yield filename
    botmemory.config = None


def test_missing_file_starts_empty(memoryFile):
    assert botmemory.loadMemory() == {}
    assert json.loads(memoryFile.read_text(encoding="utf-8")) == []


def test_save_and_load(memoryFile):
    memoryData = {}
    systemData = botmemory.getSystemData(memoryData)
    systemData.currencyData.btc2jpy = 5000000
    systemData.reminderList.append(botmemory.Reminder(remindAt=1, eventId="ab" * 32, eventPubkey="cd" * 32))
    userData = botmemory.getUserData(memoryData, "cd" * 32)
    userData.counter = 3
    userData.loginBonus = botmemory.LoginBonus(lastLoginTime=10, consecutiveLoginCount=2, totalLoginCount=4)
    memoryData["cd" * 32] = userData
    botmemory.saveMemory(memoryData)

    pairs = json.loads(memoryFile.read_text(encoding="utf-8"))
    assert [key for key, _ in pairs] == ["_", "cd" * 32]

    loaded = botmemory.loadMemory()
    assert loaded["_"].currencyData.btc2jpy == 5000000
    assert loaded["_"].reminderList[0].eventId == "ab" * 32
    assert loaded["cd" * 32].counter == 3
    assert loaded["cd" * 32].loginBonus.totalLoginCount == 4


def test_loads_sparse_records(memoryFile):
    memoryFile.write_text(json.dumps([
        ["_", {"responseTimer": 5, "unknownField": 1}],
        ["ef" * 32, {"counter": 2}],
    ]), encoding="utf-8")
    loaded = botmemory.loadMemory()
    assert loaded["_"].responseTimer == 5
    assert loaded["_"].currencyData.updateAt == 0
    assert loaded["ef" * 32].loginBonus is None


def test_user_data_is_not_stored_on_read():
    memoryData = {}
    botmemory.getUserData(memoryData, "cd" * 32)
    assert memoryData == {}
