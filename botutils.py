#!/usr/bin/env python3
import bech32
import datetime
import os
import sys

def bech32ToHex(bech32Input):
    hrp, e2 = bech32.bech32_decode(bech32Input)
    if hrp is None: return ""
    tlv_bytes = bech32.convertbits(e2, 5, 8)[:-1]
    if len(tlv_bytes) > 32:
        tlv_length = tlv_bytes[1]
        tlv_value = tlv_bytes[2:tlv_length+2]
        hexOutput = bytes(tlv_value).hex()
    else:
        hexOutput = bytes(tlv_bytes).hex()
    return hexOutput

def hexToBech32(hexInput, hrp):
    b = bytes.fromhex(hexInput)
    bits = bech32.convertbits(b,8,5)
    bech32output = bech32.bech32_encode(hrp, bits)
    return bech32output

def isHex(s):
    return set(s).issubset(set('abcdefABCDEF0123456789'))

def isBech32Entity(v):
    v = str(v)
    for hrp in ("note1", "nevent1", "npub1", "nprofile1", "naddr1"):
        if v.startswith(hrp): return True
    return False

def normalizeToBech32(v, hrp):
    # v can be hex of length 64, or bech32
    if v == "0": v = ""
    if str(v).startswith("nostr:"): v = v[6:]
    if len(v) > 0:
        if str(v).startswith("n"):
            v = bech32ToHex(v)
        if isHex(v) and len(v) == 64:
            return hexToBech32(v, hrp)
    return None

def normalizeToHex(v):
    if v is None or len(v) == 0: return ""
    if str(v).startswith("nostr:"): v = v[6:]
    if str(v).startswith("n"): v = bech32ToHex(v)
    if isHex(v): return v
    return None

def noteEncode(eventHex):
    return hexToBech32(eventHex, "note")

def npubEncode(pubkeyHex):
    return hexToBech32(pubkeyHex, "npub")

def getCommandArg(p):
    b = False
    v = None
    l = str(p).lower()
    for a in sys.argv:
        if b:
            v = a
            b = False
        elif f"--{l}" == str(a).lower():
            b = True
    return v

def getTimes(aDate=None):
    theDate = aDate
    if aDate is None: theDate = datetime.datetime.now()
    secTime = int(theDate.timestamp())
    isoTime = datetime.datetime.fromtimestamp(theDate.timestamp(), tz=datetime.timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds")
    return secTime, isoTime

def currUnixtime():
    secTime, _ = getTimes()
    return secTime

def startOfDay(unixtime):
    # local midnight of the calendar day containing unixtime
    d = datetime.datetime.fromtimestamp(unixtime)
    return d.replace(hour=0, minute=0, second=0, microsecond=0)

def formatTime(unixtime, fmt="%Y-%m-%d %H:%M"):
    return datetime.datetime.fromtimestamp(unixtime).strftime(fmt)

def formatAmount(value):
    # plain decimal without exponent or trailing zeros
    s = f"{float(value):.8f}".rstrip("0").rstrip(".")
    if s in ("", "-0"): s = "0"
    return s

def greetingMessage(unixtime=None):
    if unixtime is None: unixtime = currUnixtime()
    hour = datetime.datetime.fromtimestamp(unixtime).hour
    if hour >= 4 and hour < 11:
        return "おはようございます！"
    if hour >= 11 and hour < 17:
        return "こんにちは！"
    return "こんばんは！"

def makeFolderIfNotExists(path):
    if not os.path.exists(path): os.makedirs(path)
