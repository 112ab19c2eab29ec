#!/usr/bin/env python3
import botutils as utils

logger = None

# seconds between two replies to the same pubkey, also the maximum event age
COOL_TIME = 5

class ReplyCooldown:
    """Anti-loop guard. Remembers when each pubkey last got a reply.

    The map is never evicted for the lifetime of the process.
    """

    def __init__(self, coolTime=COOL_TIME):
        self.coolTime = coolTime
        self.lastReplyTimePerPubkey = {}

    def isSafeToReply(self, pubkey, createdAt):
        now = utils.currUnixtime()
        if createdAt < now - self.coolTime:
            logger.debug(f"Ignoring old event from {pubkey} created at {createdAt}")
            return False
        lastReplyTime = self.lastReplyTimePerPubkey.get(pubkey)
        if lastReplyTime is not None and now - lastReplyTime < self.coolTime:
            logger.debug(f"Cooling down replies to {pubkey}")
            return False
        self.lastReplyTimePerPubkey[pubkey] = now
        return True
