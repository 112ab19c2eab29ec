#!/usr/bin/env python3
import re
import subprocess
import botnostr as nostr

logger = None
config = None

REGEX_CALCULATOR = re.compile(r"(calc)\s(.*)", re.IGNORECASE | re.DOTALL)

def getTimeout():
    timeout = 5
    if config is not None and "timeout" in config: timeout = config["timeout"]
    return timeout

def getExecPath():
    execPath = "bc"
    if config is not None and "execPath" in config: execPath = config["execPath"]
    return execPath

def bcGetOutput(formula):
    """Evaluates formula with bc, returning its trimmed output.

    Empty when bc fails, prints nothing, or runs past the timeout.
    """
    execParams = [getExecPath(), "-l", "-s"]
    try:
        result = subprocess.run(execParams, input=f"{formula}\n", stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL, text=True, timeout=getTimeout())
    except subprocess.TimeoutExpired:
        logger.warning(f"Calculation timed out: {formula}")
        return ""
    except OSError as err:
        logger.warning(f"Unable to run calculator: {err}")
        return ""
    return result.stdout.strip()

def handleCalculator(systemData, userData, relay, ev):
    logger.debug(f"Fired calculator: {ev.content}")
    match = REGEX_CALCULATOR.search(ev.content)
    formula = match.group(2) if match is not None else ""
    if len(formula) == 0:
        message = "式が不明です…"
    else:
        output = bcGetOutput(formula)
        if len(output) == 0:
            message = "計算できませんでした…"
        else:
            message = f"結果は以下の通りです！\n{output}"
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    return True
