#!/usr/bin/env python3
from dataclasses import dataclass, field, asdict
import botfiles as files

logger = None
config = None

SYSTEM_KEY = "_"

@dataclass
class CurrencyData:
    btc2usd: float = 0
    btc2jpy: float = 0
    usd2jpy: float = 0
    updateAt: int = 0

@dataclass
class HimawariCache:
    lastHimawariDate: int = 0
    lastHimawariUrl: str = ""

@dataclass
class Reminder:
    remindAt: int                   # epoch milliseconds
    eventId: str
    eventPubkey: str
    eventKind: int = 1
    eventTags: list = field(default_factory=list)
    content: str = ""

@dataclass
class SystemData:
    currencyData: CurrencyData = field(default_factory=CurrencyData)
    himawariCache: HimawariCache = field(default_factory=HimawariCache)
    reminderList: list = field(default_factory=list)
    responseTimer: int = 0
    statusTimer: int = 0

@dataclass
class LoginBonus:
    lastLoginTime: int = 0
    consecutiveLoginCount: int = 0
    totalLoginCount: int = 0

@dataclass
class UserData:
    counter: int = 0
    failedTimer: int = 0
    infoTimer: int = 0
    loginBonus: LoginBonus = None

def _pick(d, cls):
    # only the keys the record knows about, so older snapshots still load
    if d is None: return {}
    return {k: v for k, v in d.items() if k in cls.__dataclass_fields__}

def systemDataFromDict(d):
    d = _pick(d, SystemData)
    systemData = SystemData(
        responseTimer=d.get("responseTimer") or 0,
        statusTimer=d.get("statusTimer") or 0,
        )
    systemData.currencyData = CurrencyData(**_pick(d.get("currencyData"), CurrencyData))
    systemData.himawariCache = HimawariCache(**_pick(d.get("himawariCache"), HimawariCache))
    for r in d.get("reminderList") or []:
        if not all(k in r for k in ("remindAt", "eventId", "eventPubkey")): continue
        reminder = Reminder(**_pick(r, Reminder))
        if reminder.eventKind is None: reminder.eventKind = 1
        if reminder.eventTags is None: reminder.eventTags = []
        if reminder.content is None: reminder.content = ""
        systemData.reminderList.append(reminder)
    return systemData

def userDataFromDict(d):
    d = _pick(d, UserData)
    userData = UserData(
        counter=d.get("counter") or 0,
        failedTimer=d.get("failedTimer") or 0,
        infoTimer=d.get("infoTimer") or 0,
        )
    if d.get("loginBonus") is not None:
        userData.loginBonus = LoginBonus(**_pick(d["loginBonus"], LoginBonus))
    return userData

def recordToDict(record):
    return asdict(record)

def getMemoryFilename():
    filename = f"{files.dataFolder}memory.json"
    if config is not None and "filename" in config: filename = config["filename"]
    return filename

def loadMemory():
    filename = getMemoryFilename()
    pairs = files.loadJsonFile(filename)
    if pairs is None:
        logger.info(f"Memory file not found at {filename}, starting empty")
        memoryData = {}
        saveMemory(memoryData)
        return memoryData
    memoryData = {}
    for key, value in pairs:
        if key == SYSTEM_KEY:
            memoryData[key] = systemDataFromDict(value)
        else:
            memoryData[key] = userDataFromDict(value)
    logger.info(f"Loaded memory with {len(memoryData)} records from {filename}")
    return memoryData

def saveMemory(memoryData):
    filename = getMemoryFilename()
    pairs = [[key, recordToDict(record)] for key, record in list(memoryData.items())]
    files.saveJsonFile(filename, pairs)
    logger.debug(f"Saved memory with {len(pairs)} records to {filename}")

def getSystemData(memoryData):
    systemData = memoryData.get(SYSTEM_KEY)
    if systemData is None:
        systemData = SystemData()
        memoryData[SYSTEM_KEY] = systemData
    return systemData

def getUserData(memoryData, pubkey):
    # not stored until the dispatch completes
    userData = memoryData.get(pubkey)
    if userData is None: userData = UserData()
    return userData
