#!/usr/bin/env python3
import json
import os
import shutil
import botutils as utils

logger = None       # set by calling setLogger

# Make common folders if not already present
dataFolder = "data/"
logFolder = f"{dataFolder}logs/"
utils.makeFolderIfNotExists(dataFolder)
utils.makeFolderIfNotExists(logFolder)

def loadJsonFile(filename, default=None):
    if filename is None: return default
    if not os.path.exists(filename): return default
    with open(filename, encoding="utf-8") as f:
        return(json.load(f))

def saveJsonFile(filename, obj):
    # first as temp file
    tempfile = f"{filename}.tmp"
    with open(tempfile, "w", encoding="utf-8") as f:
        f.write(json.dumps(obj=obj,indent=2,ensure_ascii=False))
    # then move over top
    shutil.move(tempfile, filename)

def getConfig(filename):
    c = utils.getCommandArg("config") # allow overriding default filename
    if c is not None: filename = c
    logger.debug(f"Loading config from {filename}")
    if not os.path.exists(filename):
        logger.warning(f"Config file does not exist at {filename}")
        return {}
    return loadJsonFile(filename)

def getConfigSection(serverConfig, section):
    if section not in serverConfig or serverConfig[section] is None:
        logger.debug(f"Config section {section} not present, using defaults")
        return {}
    return serverConfig[section]
