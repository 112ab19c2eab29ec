#!/usr/bin/env python3
from nostr.key import PrivateKey, PublicKey
from nostr.event import Event, EventKind
from nostr.filter import Filter, Filters
from nostr.message_type import ClientMessageType
from nostr.relay_manager import RelayManager
import json
import random
import time
import botutils as utils

logger = None
config = None
botRelayManager = None
handledEvents = {}
_relayPublishTime = 0.25
_relayConnectTime = 1.25
_nostrRelayConnectsMade = 0
_handledEventsRetention = 3600
_subscriptionMentions = "my_mentions"
_subscriptionTimeline = "my_timeline"
_mentionEvents = []
_timelineEvents = []
_eoseReceived = False
_readyAnnounced = False
KIND_REACTION = 7
KIND_CHANNEL_MESSAGE = 42

def connectToRelays():
    logger.debug("Connecting to relays")
    global botRelayManager
    global _nostrRelayConnectsMade
    botRelayManager = RelayManager()
    relays = getNostrRelaysFromConfig(config).copy()
    random.shuffle(relays)
    for relayUrl in relays:
        botRelayManager.add_relay(relayUrl)
    botRelayManager.open_connections()
    time.sleep(_relayConnectTime)
    _nostrRelayConnectsMade += 1
    subscribeToEvents()
    return botRelayManager

def disconnectRelays():
    logger.debug("Disconnecting from relays")
    global botRelayManager
    if botRelayManager is None: return
    for subid in (_subscriptionMentions, _subscriptionTimeline):
        removeSubscription(botRelayManager, subid)
    botRelayManager.close_connections()

def reconnectRelays():
    disconnectRelays()
    return connectToRelays()

def getNostrRelaysFromConfig(aConfig):
    relayUrls = []
    if "relays" in aConfig:
        for relay in aConfig["relays"]:
            relayUrl = ""
            if type(relay) is str:
                relayUrl = relay
            if type(relay) is dict:
                if "url" not in relay: continue
                relayUrl = relay["url"]
            if len(relayUrl) == 0: continue
            relayUrl = relayUrl if str(relayUrl).startswith("wss://") else f"wss://{relayUrl}"
            if relayUrl not in relayUrls:
                relayUrls.append(relayUrl)
    return relayUrls

def getBotPrivateKey():
    if "botnsec" not in config:
        logger.warning("Server config missing 'botnsec' in nostr section.")
        quit()
    botNsec = config["botnsec"]
    if botNsec is None or len(botNsec) == 0:
        logger.warning("Server config missing 'botnsec' in nostr section.")
        quit()
    if utils.isHex(botNsec) and len(botNsec) == 64:
        return PrivateKey(bytes.fromhex(botNsec))
    return PrivateKey.from_nsec(botNsec)

def getBotPubkey():
    if "botnpub" not in config:
        botPrivkey = getBotPrivateKey()
        config["botnpub"] = botPrivkey.public_key.hex()
    return utils.normalizeToHex(config["botnpub"])

def getAdminPubkey():
    if "adminpubkey" not in config:
        logger.warning("Server config missing 'adminpubkey' in nostr section.")
        return None
    return utils.normalizeToHex(config["adminpubkey"])

def subscribeToEvents():
    global _eoseReceived
    since, _ = utils.getTimes()
    botPubkey = getBotPubkey()
    # replies and mentions addressed to the bot
    subscribe(_subscriptionMentions, Filters([Filter(kinds=[EventKind.TEXT_NOTE, KIND_CHANNEL_MESSAGE], pubkey_refs=[botPubkey], since=since)]))
    # everything, for timeline greetings
    subscribe(_subscriptionTimeline, Filters([Filter(kinds=[EventKind.TEXT_NOTE, KIND_CHANNEL_MESSAGE], since=since)]))
    _eoseReceived = False

def subscribe(subid, filters):
    botRelayManager.add_subscription(subid, filters)
    request = [ClientMessageType.REQUEST, subid]
    request.extend(filters.to_json_array())
    message = json.dumps(request)
    botRelayManager.publish_message(message)
    time.sleep(_relayPublishTime)

def removeSubscription(relaymanager, subid):
    request = [ClientMessageType.CLOSE, subid]
    message = json.dumps(request)
    try:
        relaymanager.publish_message(message)
        relaymanager.close_subscription(subid)
    except Exception as err:
        logger.warning(f"Error closing subscription {subid}: {err}")

# This proc must understand all subscriptions
def siftMessagePool():
    global _mentionEvents
    global _timelineEvents
    global _eoseReceived
    # EVENT
    while botRelayManager.message_pool.has_events():
        event_msg = botRelayManager.message_pool.get_event()
        subid = event_msg.subscription_id
        if subid.startswith(_subscriptionMentions): _mentionEvents.append(event_msg.event)
        elif subid.startswith(_subscriptionTimeline): _timelineEvents.append(event_msg.event)
        else:
            u = event_msg.url
            c = event_msg.event.content
            logger.debug(f"Unexpected event from relay {u} with subscription {subid}: {c}")
    # NOTICES
    while botRelayManager.message_pool.has_notices():
        notice = botRelayManager.message_pool.get_notice()
        message = f"RELAY NOTICE FROM {notice.url}: {notice.content}"
        logger.info(message)
    # EOSE NOTICES
    while botRelayManager.message_pool.has_eose_notices():
        eose = botRelayManager.message_pool.get_eose_notice()
        if str(eose.subscription_id).startswith(_subscriptionMentions):
            logger.debug(f"End of stored events from {eose.url}")
            _eoseReceived = True

def _takeNewEvents(events, subid):
    global handledEvents
    now = utils.currUnixtime()
    botPubkey = getBotPubkey()
    newEvents = []
    for event in events:
        key = f"{subid}:{event.id}"
        if key in handledEvents: continue
        handledEvents[key] = now
        if event.public_key == botPubkey: continue     # never answer ourselves
        newEvents.append(event)
    handledEvents = {k: v for k, v in handledEvents.items() if v > now - _handledEventsRetention}
    return newEvents

def takeMentionEvents():
    global _mentionEvents
    events = _mentionEvents
    _mentionEvents = []
    return _takeNewEvents(events, _subscriptionMentions)

def takeTimelineEvents():
    global _timelineEvents
    events = _timelineEvents
    _timelineEvents = []
    return _takeNewEvents(events, _subscriptionTimeline)

def takeReadyAnnouncement():
    # true once per process, at the first end of stored events
    global _readyAnnounced
    if _eoseReceived and not _readyAnnounced:
        _readyAnnounced = True
        return True
    return False

def isValidSignature(event):
    sig = event.signature
    id = event.id
    publisherPubkey = event.public_key
    pubkey = PublicKey(raw_bytes=bytes.fromhex(publisherPubkey))
    return pubkey.verify_signed_message_hash(hash=id, sig=sig)

def isValidMetadata(metadata):
    if not all(k in metadata for k in ("id","pubkey","created_at","kind","tags","content","sig")): return False
    try:
        event = Event(
            content=metadata["content"],
            public_key=metadata["pubkey"],
            created_at=metadata["created_at"],
            kind=metadata["kind"],
            tags=metadata["tags"],
            signature=metadata["sig"],
            )
        if event.id != metadata["id"]: return False
        return isValidSignature(event)
    except Exception as err:
        logger.warning(f"Unable to validate metadata event {metadata['id']}: {err}")
        return False

def signEvent(event):
    getBotPrivateKey().sign_event(event)
    return event

def makeReplyTags(eventId, eventPubkey, eventKind, eventTags):
    tags = []
    eTags = [list(t) for t in eventTags if len(t) > 1 and t[0] == "e"]
    if eventKind == KIND_CHANNEL_MESSAGE:
        tags.extend(eTags)
    elif len(eTags) > 0:
        rootTags = [t for t in eTags if len(t) > 3 and t[3] == "root"]
        tags.append(rootTags[-1] if len(rootTags) > 0 else eTags[0])
    tags.append(["e", eventId])
    tags.append(["p", eventPubkey])
    return tags

def composeReply(content, eventId, eventPubkey, eventKind, eventTags, createdAt):
    tags = makeReplyTags(eventId, eventPubkey, eventKind, eventTags)
    replyEvent = Event(content=content, kind=eventKind, tags=tags, created_at=createdAt + 1)
    return signEvent(replyEvent)

def composeReplyPost(content, targetEvent):
    return composeReply(content, targetEvent.id, targetEvent.public_key, targetEvent.kind, targetEvent.tags, targetEvent.created_at)

def composePost(content, originalEvent=None):
    kind = EventKind.TEXT_NOTE
    tags = []
    createdAt = utils.currUnixtime() + 1
    if originalEvent is not None:
        kind = originalEvent.kind
        createdAt = originalEvent.created_at + 1
        if originalEvent.kind == KIND_CHANNEL_MESSAGE:
            tags.append(["e", originalEvent.id])
            for tag in originalEvent.tags:
                if len(tag) > 1 and tag[0] == "e": tags.append(list(tag))
    postEvent = Event(content=content, kind=kind, tags=tags, created_at=createdAt)
    return signEvent(postEvent)

def composeReaction(content, targetEvent):
    reactTags = []
    reactTags.append(["e", targetEvent.id])
    reactTags.append(["p", targetEvent.public_key])
    reactEvent = Event(content=content, kind=KIND_REACTION, tags=reactTags, created_at=utils.currUnixtime() + 1)
    return signEvent(reactEvent)

def publishToRelay(relay, event):
    try:
        relay.publish_event(event)
        logger.debug(f"Published kind {event.kind} event {event.id}")
    except Exception as err:
        logger.warning(f"Unable to publish event {event.id}: {err}")
    if _relayPublishTime > 0: time.sleep(_relayPublishTime)
