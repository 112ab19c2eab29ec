#!/usr/bin/env python3
from bisect import bisect_right
from datetime import datetime, timezone
import re
import botimages as images
import botnostr as nostr
import botutils as utils
import bothttp as http

logger = None

REGEX_LOCATION = re.compile(r"\b(location)\s(.+)", re.IGNORECASE)
REGEX_LOCATION_ALT = re.compile(r"(\S+)はどこ", re.IGNORECASE)
REGEX_WEATHER = re.compile(r"\b(weather)\s(.+)", re.IGNORECASE)
REGEX_WEATHER_ALT_FORECAST = re.compile(r"(\S+)の天気", re.IGNORECASE)
REGEX_WEATHER_ALT_MAP = re.compile(r"(天気図)", re.IGNORECASE)
REGEX_WEATHER_ALT_HIMAWARI = re.compile(r"(ひまわり)", re.IGNORECASE)

ADDRESS_SEARCH_URL = "https://msearch.gsi.go.jp/address-search/AddressSearch"
REVERSE_GEOCODER_URL = "https://mreversegeocoder.gsi.go.jp/reverse-geocoder/LonLatToAddress"
AREA_URL = "https://www.jma.go.jp/bosai/common/const/area.json"
FORECAST_URL = "https://www.jma.go.jp/bosai/forecast/data/forecast/"
OVERVIEW_URL = "https://www.jma.go.jp/bosai/forecast/data/overview_forecast/"
WEATHER_MAP_LIST_URL = "https://www.jma.go.jp/bosai/weather_map/data/list.json"
WEATHER_MAP_PNG_URL = "https://www.jma.go.jp/bosai/weather_map/data/png/"
HIMAWARI_TIMES_URL = "https://www.jma.go.jp/bosai/himawari/data/satimg/targetTimes_fd.json"
HIMAWARI_TILE_URL = "https://www.jma.go.jp/bosai/himawari/data/satimg/{basetime}/fd/{validtime}/B13/TBB/"
HIMAWARI_OVERLAY_URL = "https://www.jma.go.jp/tile/jma/sat/"
RADAR_TIMES_URL = "https://www.jma.go.jp/bosai/jmatile/data/nowc/targetTimes_N1.json"
RADAR_TILE_URL = "https://www.jma.go.jp/bosai/jmatile/data/nowc/{basetime}/none/{validtime}/surf/hrpns/"
RADAR_BASE_URL = "https://www.jma.go.jp/tile/gsi/pale/"
RADAR_BORDER_URL = "https://www.jma.go.jp/bosai/jmatile/data/map/none/none/none/surf/mask/"

HIMAWARI_CENTER = [137, 34.5]
HIMAWARI_ZOOM = 5
RADAR_ZOOM = 9

UNKNOWN_PLACE = "知らない場所です…"
MISSING_PLACE = "場所が不明です…"
FAILED_MESSAGE = "何か問題が発生しました…"

# JMA weather codes to their short description
TELOPS = {
    "100": "晴", "101": "晴時々曇", "102": "晴一時雨", "103": "晴時々雨",
    "104": "晴一時雪", "105": "晴時々雪", "106": "晴一時雨か雪", "107": "晴時々雨か雪",
    "108": "晴一時雨か雷雨", "110": "晴後時々曇", "111": "晴後曇", "112": "晴後一時雨",
    "113": "晴後時々雨", "114": "晴後雨", "115": "晴後一時雪", "116": "晴後時々雪",
    "117": "晴後雪", "118": "晴後雨か雪", "119": "晴後雨か雷雨", "120": "晴朝夕一時雨",
    "121": "晴朝の内一時雨", "122": "晴夕方一時雨", "123": "晴山沿い雷雨", "124": "晴山沿い雪",
    "125": "晴午後は雷雨", "126": "晴昼頃から雨", "127": "晴夕方から雨", "128": "晴夜は雨",
    "130": "朝の内霧後晴", "131": "晴明け方霧", "132": "晴朝夕曇", "140": "晴時々雨で雷を伴う",
    "160": "晴一時雪か雨", "170": "晴時々雪か雨", "181": "晴後雪か雨",
    "200": "曇", "201": "曇時々晴", "202": "曇一時雨", "203": "曇時々雨",
    "204": "曇一時雪", "205": "曇時々雪", "206": "曇一時雨か雪", "207": "曇時々雨か雪",
    "208": "曇一時雨か雷雨", "209": "霧", "210": "曇後時々晴", "211": "曇後晴",
    "212": "曇後一時雨", "213": "曇後時々雨", "214": "曇後雨", "215": "曇後一時雪",
    "216": "曇後時々雪", "217": "曇後雪", "218": "曇後雨か雪", "219": "曇後雨か雷雨",
    "220": "曇朝夕一時雨", "221": "曇朝の内一時雨", "222": "曇夕方一時雨", "223": "曇日中時々晴",
    "224": "曇昼頃から雨", "225": "曇夕方から雨", "226": "曇夜は雨", "228": "曇昼頃から雪",
    "229": "曇夕方から雪", "230": "曇夜は雪", "231": "曇海上海岸は霧か霧雨", "240": "曇時々雨で雷を伴う",
    "250": "曇時々雪で雷を伴う", "260": "曇一時雪か雨", "270": "曇時々雪か雨", "281": "曇後雪か雨",
    "300": "雨", "301": "雨時々晴", "302": "雨時々止む", "303": "雨時々雪",
    "304": "雨か雪", "306": "大雨", "308": "雨で暴風を伴う", "309": "雨一時雪",
    "311": "雨後晴", "313": "雨後曇", "314": "雨後時々雪", "315": "雨後雪",
    "316": "雨か雪後晴", "317": "雨か雪後曇", "320": "朝の内雨後晴", "321": "朝の内雨後曇",
    "322": "雨朝晩一時雪", "323": "雨昼頃から晴", "324": "雨夕方から晴", "325": "雨夜は晴",
    "326": "雨夕方から雪", "327": "雨夜は雪", "328": "雨一時強く降る", "329": "雨一時みぞれ",
    "340": "雪か雨", "350": "雨で雷を伴う", "361": "雪か雨後晴", "371": "雪か雨後曇",
    "400": "雪", "401": "雪時々晴", "402": "雪時々止む", "403": "雪時々雨",
    "405": "大雪", "406": "風雪強い", "407": "暴風雪", "409": "雪一時雨",
    "411": "雪後晴", "413": "雪後曇", "414": "雪後雨", "420": "朝の内雪後晴",
    "421": "朝の内雪後曇", "422": "雪昼頃から雨", "423": "雪夕方から雨", "425": "雪一時強く降る",
    "426": "雪後みぞれ", "427": "雪一時みぞれ", "450": "雪で雷を伴う",
}

def publishReply(relay, message, ev):
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))

def getLocation(location):
    if len(location) == 0: return []
    return http.getjson(ADDRESS_SEARCH_URL, params={"q": location})

def handleLocation(systemData, userData, relay, ev):
    logger.debug(f"Fired location: {ev.content}")
    match = REGEX_LOCATION.search(ev.content)
    if match is not None:
        location = match.group(2)
    else:
        match = REGEX_LOCATION_ALT.search(ev.content)
        location = match.group(1) if match is not None else ""
    message = "わかりませんでした…"
    if len(location) > 0:
        try:
            geoDataItems = getLocation(location)
            if len(geoDataItems) > 0:
                message = f"{location}は{geoDataItems[0]['properties']['title']}にあるみたいです！"
        except Exception as err:
            logger.warning(f"Error searching location {location}: {err}")
            message = "取得に失敗しました…"
    publishReply(relay, message, ev)
    return True

def findAreaCodes(areaData, muniCode):
    """Walks the JMA area table from a municipality up to its forecast office.

    The class20 area is the nearest code at or below muniCode. Returns
    (class10Code, officeCode).
    """
    class20Codes = sorted(areaData["class20s"].keys(), key=int)
    index = bisect_right([int(c) for c in class20Codes], int(muniCode)) - 1
    if index < 0: index = 0
    class15Code = areaData["class20s"][class20Codes[index]]["parent"]
    class10Code = areaData["class15s"][class15Code]["parent"]
    officeCode = areaData["class10s"][class10Code]["parent"]
    return class10Code, officeCode

def formatDate(isoText):
    return datetime.fromisoformat(isoText).strftime("%Y-%m-%d")

def formatForecast(forecastData, class10Code, hour):
    shortSeries = forecastData[0]["timeSeries"]
    arrayId = 0
    for i, area in enumerate(shortSeries[0]["areas"]):
        if area["area"]["code"] == class10Code:
            arrayId = i
            break
    temps = list(shortSeries[2]["areas"][arrayId]["temps"])
    # during the day the morning low is already past
    if 9 <= hour < 18 and len(temps) > 1: del temps[1]
    temps = ["--"] * (4 - len(temps)) + temps
    pops = [f"{p:>3}%" for p in shortSeries[1]["areas"][arrayId]["pops"]]
    pops = ["----"] * (8 - len(pops)) + pops
    weathers = shortSeries[0]["areas"][arrayId]["weathers"]
    timeDefines = shortSeries[0]["timeDefines"]

    message = f"{formatDate(timeDefines[0])} {temps[0]}/{temps[1]} {weathers[0]}\n"
    message = f"{message}降水確率: {' / '.join(pops[:4])}\n"
    message = f"{message}{formatDate(timeDefines[1])} {temps[2]}/{temps[3]} {weathers[1]}\n"
    message = f"{message}降水確率: {' / '.join(pops[4:])}\n"
    message = f"{message}---------------\n"

    longSeries = forecastData[1]["timeSeries"]
    weather = longSeries[0]["areas"][arrayId]
    amedas = longSeries[1]["areas"][arrayId]
    for i in range(2, len(longSeries[0]["timeDefines"])):
        telop = TELOPS.get(weather["weatherCodes"][i], "--")
        message = (f"{message}{formatDate(longSeries[0]['timeDefines'][i])} ({weather['reliabilities'][i]}) "
            f"{amedas['tempsMin'][i]}/{amedas['tempsMax'][i]} {weather['pops'][i]}% {telop}\n")
    message = f"{message}---------------\n"
    return message

def messageWeatherForecast(location):
    try:
        geoDataItems = getLocation(location)
        if len(geoDataItems) == 0: return UNKNOWN_PLACE
        geoData = geoDataItems[0]
        message = f"{geoData['properties']['title']}の天気です！ (気象庁情報)\n"
        lon, lat = geoData["geometry"]["coordinates"][:2]
        addressData = http.getjson(REVERSE_GEOCODER_URL, params={"lon": lon, "lat": lat})
        muniCode = f"{addressData['results']['muniCd']}00"
        class10Code, officeCode = findAreaCodes(http.getjson(AREA_URL), muniCode)
        logger.debug(f"Forecast area for {location}: {muniCode} {class10Code} {officeCode}")
        forecastData = http.getjson(f"{FORECAST_URL}{officeCode}.json")
        message = f"{message}{formatForecast(forecastData, class10Code, datetime.now().hour)}"
        overview = http.getjson(f"{OVERVIEW_URL}{officeCode}.json")
        message = f"{message}{overview['text']}"
    except Exception as err:
        logger.warning(f"Error getting forecast for {location}: {err}")
        message = FAILED_MESSAGE
    return message

def messageWeatherMap():
    try:
        mapList = http.getjson(WEATHER_MAP_LIST_URL)["near"]["now"]
        return f"現在の天気図です！\n{WEATHER_MAP_PNG_URL}{mapList[-1]}"
    except Exception as err:
        logger.warning(f"Error getting weather map: {err}")
        return FAILED_MESSAGE

def getLatestHimawariTime():
    return http.getjson(HIMAWARI_TIMES_URL)[-1]

def parseBasetime(basetime):
    # JMA base times are UTC yyyyMMddHHmmss
    return int(datetime.strptime(basetime, "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc).timestamp())

def generateHimawariImage(fdData):
    tileUrl = HIMAWARI_TILE_URL.format(basetime=fdData["basetime"], validtime=fdData["validtime"])
    layers = [
        (f"{tileUrl}{{z}}/{{x}}/{{y}}.jpg", None),
        (f"{HIMAWARI_OVERLAY_URL}{{z}}/{{x}}/{{y}}.png", "lighter"),
        ]
    imageBytes = images.renderTiles(layers, HIMAWARI_CENTER, HIMAWARI_ZOOM)
    return images.uploadImage(f"himawari-{fdData['basetime']}", imageBytes)

def messageWeatherHimawari(systemData):
    try:
        himawariCache = systemData.himawariCache
        fdData = getLatestHimawariTime()
        currentHimawariDate = parseBasetime(fdData["basetime"])
        if currentHimawariDate > (himawariCache.lastHimawariDate or 0):
            logger.info(f"Generating himawari image for {fdData['basetime']}")
            himawariUrl = generateHimawariImage(fdData)
            himawariCache.lastHimawariDate = currentHimawariDate
            himawariCache.lastHimawariUrl = himawariUrl
        else:
            himawariUrl = himawariCache.lastHimawariUrl
        return f"{utils.formatTime(currentHimawariDate)}現在の気象衛星ひまわりの画像です！\n{himawariUrl}"
    except Exception as err:
        logger.warning(f"Error getting himawari image: {err}")
        return FAILED_MESSAGE

def getLatestRadarTime():
    return http.getjson(RADAR_TIMES_URL)[0]

def generateRadarImage(targetTime, coordinates):
    radarUrl = RADAR_TILE_URL.format(basetime=targetTime["basetime"], validtime=targetTime["validtime"])
    layers = [
        (f"{RADAR_BASE_URL}{{z}}/{{x}}/{{y}}.png", None),
        (f"{radarUrl}{{z}}/{{x}}/{{y}}.png", "multiply"),
        (f"{RADAR_BORDER_URL}{{z}}/{{x}}/{{y}}.png", "multiply"),
        ]
    imageBytes = images.renderTiles(layers, list(coordinates[:2]), RADAR_ZOOM)
    return images.uploadImage(f"radar-{utils.currUnixtime()}", imageBytes)

def messageWeatherRadar(location):
    try:
        geoDataItems = getLocation(location)
        if len(geoDataItems) == 0: return UNKNOWN_PLACE
        geoData = geoDataItems[0]
        message = f"{geoData['properties']['title']}付近の雨雲の状態です！ (気象庁情報)\n"
        targetTime = getLatestRadarTime()
        message = f"{message}{generateRadarImage(targetTime, geoData['geometry']['coordinates'])}"
    except Exception as err:
        logger.warning(f"Error getting radar image for {location}: {err}")
        message = FAILED_MESSAGE
    return message

def handleWeather(systemData, userData, relay, ev):
    logger.debug(f"Fired weather: {ev.content}")
    match = REGEX_WEATHER.search(ev.content)
    args = match.group(2).split(" ") if match is not None else []
    command = args[0] if len(args) > 0 else ""
    location = " ".join(args[1:])
    if command == "forecast":
        message = messageWeatherForecast(location) if len(location) > 0 else MISSING_PLACE
    elif command == "map":
        message = messageWeatherMap()
    elif command == "himawari":
        message = messageWeatherHimawari(systemData)
    elif command == "radar":
        message = messageWeatherRadar(location) if len(location) > 0 else MISSING_PLACE
    else:
        message = "コマンドが不明です…"
    publishReply(relay, message, ev)
    return True

def handleWeatherAltForecast(systemData, userData, relay, ev):
    logger.debug(f"Fired weather forecast alias: {ev.content}")
    match = REGEX_WEATHER_ALT_FORECAST.search(ev.content)
    location = match.group(1) if match is not None else ""
    message = messageWeatherForecast(location) if len(location) > 0 else MISSING_PLACE
    publishReply(relay, message, ev)
    return True

def handleWeatherAltMap(systemData, userData, relay, ev):
    logger.debug(f"Fired weather map alias: {ev.content}")
    publishReply(relay, messageWeatherMap(), ev)
    return True

def handleWeatherAltHimawari(systemData, userData, relay, ev):
    logger.debug(f"Fired himawari alias: {ev.content}")
    publishReply(relay, messageWeatherHimawari(systemData), ev)
    return True
