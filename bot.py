#!/usr/bin/env python3
from logging.handlers import RotatingFileHandler
import atexit
import logging
import shutil
import signal
import sys
import time
import botbasic as basic
import botcalc as calc
import botcommands as commands
import botcooldown as cooldown
import botcurrency as currency
import botfiles as files
import bothttp as http
import botimages as images
import botkvs as kvs
import botmemory as memory
import botnostr as nostr
import botreminders as reminders
import botschedule as schedule
import botsearch as search
import botstats as stats
import botutils as utils
import botweather as weather

def saveOnExit():
    logger.info("Saving memory before exit")
    memory.saveMemory(memoryData)

def handleSignal(signum, frame):
    logger.info(f"Received signal {signal.Signals(signum).name}")
    # atexit saves the memory
    sys.exit(0)

if __name__ == '__main__':

    startTime, _ = utils.getTimes()

    # Logging to systemd
    logger = logging.getLogger(__name__)
    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(fmt="%(asctime)s %(name)s.%(levelname)s: %(message)s", datefmt="%Y.%m.%d %H:%M:%S")
    stdoutLoggingHandler = logging.StreamHandler(stream=sys.stdout)
    stdoutLoggingHandler.setFormatter(formatter)
    logging.Formatter.converter = time.gmtime
    logger.addHandler(stdoutLoggingHandler)
    logFile = f"{files.logFolder}bot.log"
    fileLoggingHandler = RotatingFileHandler(logFile, mode='a', maxBytes=10*1024*1024,
                                 backupCount=21, encoding=None, delay=0)
    fileLoggingHandler.setFormatter(formatter)
    logger.addHandler(fileLoggingHandler)
    for module in (basic, calc, commands, cooldown, currency, files, http, images,
                   kvs, memory, nostr, reminders, schedule, search, stats, weather):
        module.logger = logger

    # Load server config
    serverConfig = files.getConfig(f"{files.dataFolder}serverconfig.json")
    if len(serverConfig.keys()) == 0:
        shutil.copy("sample-serverconfig.json", f"{files.dataFolder}serverconfig.json")
        logger.info(f"Copied sample-serverconfig.json to {files.dataFolder}serverconfig.json")
        logger.info("You will need to modify this file to setup the bot private key and relays")
        quit()
    nostr.config = files.getConfigSection(serverConfig, "nostr")
    memory.config = files.getConfigSection(serverConfig, "memory")
    stats.config = files.getConfigSection(serverConfig, "strfry")
    calc.config = files.getConfigSection(serverConfig, "calc")
    search.config = files.getConfigSection(serverConfig, "search")
    kvs.config = files.getConfigSection(serverConfig, "kvs")
    images.config = files.getConfigSection(serverConfig, "images")
    http.config = files.getConfigSection(serverConfig, "http")
    schedule.config = files.getConfigSection(serverConfig, "schedule")
    if "publishPause" in nostr.config: nostr._relayPublishTime = nostr.config["publishPause"]

    # Load memory and make sure it is written however we stop
    memoryData = memory.loadMemory()
    memory.getSystemData(memoryData)
    atexit.register(saveOnExit)
    for signum in (signal.SIGINT, signal.SIGHUP, signal.SIGTERM):
        signal.signal(signum, handleSignal)

    # Connect to relays
    relay = nostr.connectToRelays()
    replyCooldown = cooldown.ReplyCooldown()
    timers = schedule.newTimers(startTime)

    lastRelayReconnectTime = startTime
    relayReconnectInterval = (30 * 60)
    sleepTime = 0.5

    # Bot loop
    while True:
        loopStartTime, _ = utils.getTimes()

        # gather everything the relays sent
        nostr.siftMessagePool()

        # announce once the mention subscription is live
        if nostr.takeReadyAnnouncement():
            duration = utils.currUnixtime() - startTime
            nostr.publishToRelay(relay, nostr.composePost(f"準備完了！\nduration: {duration}sec."))

        # greetings on the timeline
        for ev in nostr.takeTimelineEvents():
            try:
                commands.processTimelineEvent(memoryData, relay, ev)
            except Exception:
                logger.exception(f"Error processing timeline event {ev.id}")

        # commands addressed to the bot
        for ev in nostr.takeMentionEvents():
            commands.processEvent(memoryData, replyCooldown, relay, ev)

        # timers
        schedule.runDueJobs(memoryData, relay, timers)

        # reconnect relays if periodically
        loopEndTime, _ = utils.getTimes()
        if lastRelayReconnectTime + relayReconnectInterval < loopEndTime:
            try:
                relay = nostr.reconnectRelays()
            except Exception:
                logger.exception("Error reconnecting to relays")
            lastRelayReconnectTime, _ = utils.getTimes()
        else:
            time.sleep(sleepTime)
