import pytest

import botcommands
import botcooldown
import botcurrency
import botmemory
from conftest import NOW


@pytest.fixture
def ratedSystemData():
    systemData = botmemory.SystemData()
    systemData.currencyData = botmemory.CurrencyData(
        btc2usd=100000, btc2jpy=10000000, usd2jpy=100, updateAt=NOW - 60)
    return systemData


@pytest.mark.parametrize("handler,content", [
    (botcurrency.handleSatConv, "satconv 100"),
    (botcurrency.handleJpyConv, "jpyconv 100"),
    (botcurrency.handleUsdConv, "usdconv 100"),
    (botcurrency.handleFiatConv, "fiatconv jpy 100"),
])
def test_refuses_without_rates(clock, relay, systemData, userData, makeEvent, handler, content):
    assert handler(systemData, userData, relay, makeEvent(content)) is False
    assert relay.published == []


def test_refuses_with_zero_rate(clock, relay, ratedSystemData, userData, makeEvent):
    ratedSystemData.currencyData.usd2jpy = 0
    assert botcurrency.handleSatConv(ratedSystemData, userData, relay, makeEvent("satconv 100")) is False


def test_unrated_conversion_falls_back_to_unknown(clock, relay, makeEvent):
    memoryData = {}
    botcommands.processEvent(memoryData, botcooldown.ReplyCooldown(), relay, makeEvent("satconv 100"))
    assert len(relay.published) == 1
    assert relay.contents[0] not in ("", None)
    assert "丰" not in relay.contents[0]


def test_satconv(clock, relay, ratedSystemData, userData, makeEvent):
    assert botcurrency.handleSatConv(ratedSystemData, userData, relay, makeEvent("satconv 100000"))
    assert relay.contents[0].startswith("丰100000 = ￥10000 ＄100\nupdate at: ")
    assert relay.contents[0].endswith("Powered by CoinGecko")


def test_jpyconv(clock, relay, ratedSystemData, userData, makeEvent):
    botcurrency.handleJpyConv(ratedSystemData, userData, relay, makeEvent("jpyconv 1000"))
    assert relay.contents[0].startswith("￥1000 = 丰10000 ＄10\n")


def test_usdconv(clock, relay, ratedSystemData, userData, makeEvent):
    botcurrency.handleUsdConv(ratedSystemData, userData, relay, makeEvent("usdconv 1"))
    assert relay.contents[0].startswith("＄1 = 丰1000 ￥100\n")


def test_fiatconv_units(clock, relay, ratedSystemData, userData, makeEvent):
    botcurrency.handleFiatConv(ratedSystemData, userData, relay, makeEvent("fiatconv yen 500"))
    assert relay.contents[0].startswith("￥500 は Satoshiで5000、USドルで5でした！")


def test_fiatconv_unknown_unit(clock, relay, ratedSystemData, userData, makeEvent):
    assert botcurrency.handleFiatConv(ratedSystemData, userData, relay, makeEvent("fiatconv euro 5"))
    assert relay.contents == ["わかりませんでした…"]


def test_fiatconv_missing_amount_is_zero(clock, relay, ratedSystemData, userData, makeEvent):
    assert botcurrency.handleFiatConv(ratedSystemData, userData, relay, makeEvent("fiatconv jpy"))
    assert relay.contents[0].startswith("￥0 は Satoshiで0、USドルで0でした！")


@pytest.mark.parametrize("content", ["fiatconv jpy nan", "fiatconv usd inf", "fiatconv sat -infinity"])
def test_fiatconv_rejects_non_finite(clock, relay, ratedSystemData, userData, makeEvent, content):
    assert botcurrency.handleFiatConv(ratedSystemData, userData, relay, makeEvent(content))
    assert relay.contents == ["わかりませんでした…"]


def test_convert_fixed_scale(ratedSystemData):
    sat, btc, jpy, usd = botcurrency.convert(ratedSystemData.currencyData, "btc", 1)
    assert sat == botcurrency.SATS_PER_BTC
    assert jpy == 10000000
    assert usd == 100000


def test_refresh_keeps_going_when_one_source_fails(clock, systemData, monkeypatch):
    def getjson(url, params=None, headers={}):
        if url == botcurrency.EXCHANGE_RATES_URL:
            raise ConnectionError("offline")
        return {"usd": {"jpy": 150.5}}
    monkeypatch.setattr(botcurrency.http, "getjson", getjson)
    botcurrency.refreshCurrencyRates(systemData)
    assert systemData.currencyData.usd2jpy == 150.5
    assert systemData.currencyData.btc2usd == 0
    assert systemData.currencyData.updateAt == NOW
