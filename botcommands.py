#!/usr/bin/env python3
import random
import re
import botbasic as basic
import botcalc as calc
import botcurrency as currency
import botkvs as kvs
import botmemory as memory
import botnostr as nostr
import botreminders as reminders
import botsearch as search
import botstats as stats
import botutils as utils
import botweather as weather

logger = None

REGEX_HELP = re.compile(r"(\bhelp\b|ヘルプ|へるぷ)", re.IGNORECASE)
REGEX_GREETING_NAME = re.compile(r"^(823|823chan|やぶみちゃん|やぶみん)$", re.IGNORECASE)
REGEX_GREETING_CALL = re.compile(r"(ヤッブミーン|ﾔｯﾌﾞﾐｰﾝ|やっぶみーん)", re.IGNORECASE)
REGEX_GREETING_CALL_REPLY = re.compile(r"(ヤッブミーン|ﾔｯﾌﾞﾐｰﾝ|やっぶみーん)(!|！)", re.IGNORECASE)

UNKNOWN_COOLDOWN = 5 * 60
GREETING_COOLDOWN = 30
UNKNOWN_MESSAGES = ["知らない", "わからない", "コマンド合ってる？"]
UNKNOWN_FOOTERS = ["…", "！", ""]

HELP_COMMANDS = (
    "(unixtime) : 現在のUnixTimeを表示します！\n"
    "(blocktime) : 現在のブロックタイムを表示します！\n"
    "(count|カウント) : カウントを呼び出した回数を表示します！\n"
    "(loginbonus|ログインボーナス|ログボ|ろぐぼ) : ログインボーナスです！\n"
    "(ping) : pong!と返信します！\n"
    "(fav|ふぁぼ|ファボ|祝福|星) : リアクションを送信します！\n"
    "(remind) <希望時間> : 希望時間にリプライを送信します！\n"
    "    例) remind 2023/12/23 06:00:00\n"
    "        remind 06:00:00\n"
    "        remind 2023/12/23 06:00:00 !!!おきて\n"
    "  (remind) list : あなたが登録したリマインダ一覧を表示します！\n"
    "  (remind) del <イベントID(hex|note)> : 指定されたノート宛てにあなたが登録したリマインダを削除します！\n"
    "(dice) [ダイスの数と面の数] : さいころを振ります！\n"
    "(fiatconv) (sat|jpy|usd) <金額> : 通貨変換をします！(Powered by CoinGecko)\n"
    "(location) <場所> : 指定された場所を探します！\n"
    "<場所>はどこ : 上のエイリアスです！\n"
    "(weather) forecast <場所> : 指定された場所の天気をお知らせします！(気象庁情報)\n"
    "<場所>の天気 : 上のエイリアスです！\n"
    "(weather) map : 現在の天気図を表示します！(気象庁情報)\n"
    "天気図 : 上のエイリアスです！\n"
    "(weather) himawari : 現在の気象衛星ひまわりの画像を表示します！(気象庁情報)\n"
    "ひまわり : 上のエイリアスです！\n"
    "(weather) radar <場所>: 指定された場所の現在の雨雲の画像を表示します！(気象庁情報)\n"
    "(calc) <式> : 入力された式を計算します！\n"
    "(passport|許可証|パス) : 国外からでもアクセス出来るように許可証を発行します！\n"
    "(search) <キーワード> : 入力されたキーワードをリレーから検索します！\n"
    "(push) (note|dm|channel|zap) (enable|disable|true|false|on|off|1|0): やぶみ通知の設定を変更します！\n"
    "(info|情報) : あなたの統計情報をやぶみリレーから確認します！\n"
    "(status|ステータス) : やぶみリレーの統計情報を表示します！\n"
    "(help|ヘルプ|へるぷ) : このメッセージを表示します！\n"
)

def handleHelp(systemData, userData, relay, ev):
    logger.debug(f"Fired help: {ev.content}")
    message = f"{utils.greetingMessage()} やぶみちゃんです！\n現在は出来ることは以下の通りです！\n{HELP_COMMANDS}"
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    return True

def handleUnknown(systemData, userData, relay, ev):
    logger.debug(f"Fired unknown: {ev.content}")
    if utils.currUnixtime() - (userData.failedTimer or 0) >= UNKNOWN_COOLDOWN:
        message = f"{random.choice(UNKNOWN_MESSAGES)}{random.choice(UNKNOWN_FOOTERS)}"
        nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    userData.failedTimer = utils.currUnixtime()
    return True

# pattern, runs even if an earlier handler fired, handler
COMMANDS = [
    (basic.REGEX_PING, True, basic.handlePing),
    (basic.REGEX_DICE_MULTI, True, basic.handleDiceMulti),
    (basic.REGEX_DICE_SINGLE, False, basic.handleDiceSingle),
    (basic.REGEX_REACTION, True, basic.handleReaction),
    (basic.REGEX_COUNT, True, basic.handleCount),
    (basic.REGEX_LOGINBONUS, True, basic.handleLoginBonus),
    (basic.REGEX_UNIXTIME, True, basic.handleUnixtime),
    (basic.REGEX_BLOCKTIME, True, basic.handleBlocktime),
    (currency.REGEX_FIATCONV, True, currency.handleFiatConv),
    (currency.REGEX_SATCONV, True, currency.handleSatConv),
    (currency.REGEX_JPYCONV, True, currency.handleJpyConv),
    (currency.REGEX_USDCONV, True, currency.handleUsdConv),
    (reminders.REGEX_REMIND, True, reminders.handleRemind),
    (weather.REGEX_LOCATION, True, weather.handleLocation),
    (weather.REGEX_LOCATION_ALT, True, weather.handleLocation),
    (weather.REGEX_WEATHER, True, weather.handleWeather),
    (weather.REGEX_WEATHER_ALT_FORECAST, True, weather.handleWeatherAltForecast),
    (weather.REGEX_WEATHER_ALT_MAP, True, weather.handleWeatherAltMap),
    (weather.REGEX_WEATHER_ALT_HIMAWARI, True, weather.handleWeatherAltHimawari),
    (calc.REGEX_CALCULATOR, True, calc.handleCalculator),
    (kvs.REGEX_PASSPORT, True, kvs.handlePassport),
    (search.REGEX_SEARCH, True, search.handleSearch),
    (stats.REGEX_INFO, True, stats.handleInfo),
    (stats.REGEX_STATUS, True, stats.handleStatus),
    (kvs.REGEX_PUSHSETTING, True, kvs.handlePushSetting),
    (basic.REGEX_REBOOT, True, basic.handleReboot),
    (REGEX_HELP, False, handleHelp),
]

def dispatch(systemData, userData, relay, ev, commands=None):
    """Runs every matching command in table order.

    The last fired handler's result decides whether the event counts as
    handled; it is not OR-ed. Returns that flag after any fallback.
    """
    if commands is None: commands = COMMANDS
    handled = False
    for pattern, runsIfHandled, handler in commands:
        if pattern.search(ev.content) is None: continue
        if not runsIfHandled and handled: continue
        handled = handler(systemData, userData, relay, ev)
    if not handled:
        handleUnknown(systemData, userData, relay, ev)
    return handled

def processEvent(memoryData, cooldown, relay, ev, commands=None):
    try:
        if not cooldown.isSafeToReply(ev.public_key, ev.created_at): return False
        logger.info(f"Received mention {ev.id} from {ev.public_key}: {ev.content}")
        systemData = memory.getSystemData(memoryData)
        userData = memory.getUserData(memoryData, ev.public_key)
        dispatch(systemData, userData, relay, ev, commands)
        memoryData[ev.public_key] = userData
        memoryData[memory.SYSTEM_KEY] = systemData
        return True
    except Exception:
        logger.exception(f"Error processing event {ev.id}")
        return False

def processTimelineEvent(memoryData, relay, ev):
    """Answers greetings seen on the timeline, at most once per cooldown."""
    systemData = memory.getSystemData(memoryData)
    now = utils.currUnixtime()
    if now - (systemData.responseTimer or 0) < GREETING_COOLDOWN: return False
    if REGEX_GREETING_NAME.search(ev.content) is not None:
        nostr.publishToRelay(relay, nostr.composePost("👋", ev))
    elif REGEX_GREETING_CALL.search(ev.content) is not None:
        message = "＼ﾊｰｲ!🙌／"
        if REGEX_GREETING_CALL_REPLY.search(ev.content) is not None:
            nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
        else:
            nostr.publishToRelay(relay, nostr.composePost(message, ev))
    else:
        return False
    logger.debug(f"Greeted {ev.public_key}")
    systemData.responseTimer = utils.currUnixtime()
    return True
