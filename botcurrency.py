#!/usr/bin/env python3
import math
import re
import botnostr as nostr
import botutils as utils
import bothttp as http

logger = None

REGEX_FIATCONV = re.compile(r"\b(fiatconv)\s(.+)", re.IGNORECASE)
REGEX_SATCONV = re.compile(r"\b(satconv)\s(\d+)\b", re.IGNORECASE)
REGEX_JPYCONV = re.compile(r"\b(jpyconv)\s(\d+)\b", re.IGNORECASE)
REGEX_USDCONV = re.compile(r"\b(usdconv)\s(\d+)\b", re.IGNORECASE)

SATS_PER_BTC = 100000000
EXCHANGE_RATES_URL = "https://api.coingecko.com/api/v3/exchange_rates"
USD_JPY_URL = "https://api.coingecko.com/api/v3/simple/price?ids=usd&vs_currencies=jpy"
POWERED_BY = "Powered by CoinGecko"

def btc2sat(btc):
    return btc * SATS_PER_BTC

def sat2btc(sat):
    return sat / SATS_PER_BTC

def hasRates(currencyData):
    if currencyData is None: return False
    if not currencyData.updateAt: return False
    return currencyData.btc2usd > 0 and currencyData.btc2jpy > 0 and currencyData.usd2jpy > 0

def convert(currencyData, unit, amount):
    """Returns (sat, btc, jpy, usd) for an amount in the given unit."""
    if unit == "sat":
        btc = sat2btc(amount)
    elif unit == "btc":
        btc = amount
    elif unit == "jpy":
        btc = amount / currencyData.btc2jpy
    elif unit == "usd":
        btc = amount / currencyData.btc2usd
    else:
        raise ValueError(f"unknown unit {unit}")
    sat = btc2sat(btc)
    jpy = btc * currencyData.btc2jpy
    usd = btc * currencyData.btc2usd
    # fiat to fiat uses the direct cross rate
    if unit == "jpy":
        jpy = amount
        usd = amount / currencyData.usd2jpy
    if unit == "usd":
        usd = amount
        jpy = amount * currencyData.usd2jpy
    return sat, btc, jpy, usd

def updatedAtLine(currencyData):
    return f"update at: {utils.formatTime(currencyData.updateAt)}\n{POWERED_BY}"

def getUnit(word):
    if re.search(r"(yen|jpy)", word, re.IGNORECASE): return "jpy"
    if re.search(r"(dollar|usd)", word, re.IGNORECASE): return "usd"
    if re.search(r"(sat)", word, re.IGNORECASE): return "sat"
    if re.search(r"(btc|bitcoin)", word, re.IGNORECASE): return "btc"
    return ""

def handleFiatConv(systemData, userData, relay, ev):
    currencyData = systemData.currencyData
    if not hasRates(currencyData): return False
    logger.debug(f"Fired fiatconv: {ev.content}")
    match = REGEX_FIATCONV.search(ev.content)
    args = match.group(2).split(" ") if match is not None else []
    unit = getUnit(args[0]) if len(args) > 0 else ""
    amountText = " ".join(args[1:]).strip()
    try:
        # a missing amount converts zero
        amount = float(amountText) if len(amountText) > 0 else 0.0
    except ValueError:
        amount = 0.0
        unit = ""
    if not math.isfinite(amount): unit = ""
    message = "わかりませんでした…"
    if unit != "":
        sat, btc, jpy, usd = convert(currencyData, unit, amount)
        a = utils.formatAmount(amount)
        if unit == "sat":
            message = f"丰{a} は 日本円で{utils.formatAmount(jpy)}、USドルで{utils.formatAmount(usd)}でした！"
        elif unit == "btc":
            message = f"₿{a} は 日本円で{utils.formatAmount(jpy)}、USドルで{utils.formatAmount(usd)}でした！"
        elif unit == "jpy":
            message = f"￥{a} は Satoshiで{utils.formatAmount(sat)}、USドルで{utils.formatAmount(usd)}でした！"
        elif unit == "usd":
            message = f"＄{a} は Satoshiで{utils.formatAmount(sat)}、日本円で{utils.formatAmount(jpy)}でした！"
        message = f"{message}\n{updatedAtLine(currencyData)}"
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    return True

def handleSatConv(systemData, userData, relay, ev):
    currencyData = systemData.currencyData
    if not hasRates(currencyData): return False
    logger.debug(f"Fired satconv: {ev.content}")
    amount = int(REGEX_SATCONV.search(ev.content).group(2))
    _, _, jpy, usd = convert(currencyData, "sat", amount)
    message = f"丰{amount} = ￥{utils.formatAmount(jpy)} ＄{utils.formatAmount(usd)}\n{updatedAtLine(currencyData)}"
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    return True

def handleJpyConv(systemData, userData, relay, ev):
    currencyData = systemData.currencyData
    if not hasRates(currencyData): return False
    logger.debug(f"Fired jpyconv: {ev.content}")
    amount = int(REGEX_JPYCONV.search(ev.content).group(2))
    sat, _, _, usd = convert(currencyData, "jpy", amount)
    message = f"￥{amount} = 丰{utils.formatAmount(sat)} ＄{utils.formatAmount(usd)}\n{updatedAtLine(currencyData)}"
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    return True

def handleUsdConv(systemData, userData, relay, ev):
    currencyData = systemData.currencyData
    if not hasRates(currencyData): return False
    logger.debug(f"Fired usdconv: {ev.content}")
    amount = int(REGEX_USDCONV.search(ev.content).group(2))
    sat, _, jpy, _ = convert(currencyData, "usd", amount)
    message = f"＄{amount} = 丰{utils.formatAmount(sat)} ￥{utils.formatAmount(jpy)}\n{updatedAtLine(currencyData)}"
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    return True

def refreshCurrencyRates(systemData):
    currencyData = systemData.currencyData
    try:
        rates = http.getjson(EXCHANGE_RATES_URL)["rates"]
        currencyData.btc2usd = float(rates["usd"]["value"])
        currencyData.btc2jpy = float(rates["jpy"]["value"])
        currencyData.updateAt = utils.currUnixtime()
        logger.info("Updated BTC price")
    except Exception as err:
        logger.warning(f"Unable to update BTC price: {err}")
    try:
        price = http.getjson(USD_JPY_URL)
        currencyData.usd2jpy = float(price["usd"]["jpy"])
        currencyData.updateAt = utils.currUnixtime()
        logger.info("Updated USD/JPY price")
    except Exception as err:
        logger.warning(f"Unable to update USD/JPY price: {err}")
