#!/usr/bin/env python3
import meilisearch
import re
import botnostr as nostr
import botutils as utils

logger = None
config = None

REGEX_SEARCH = re.compile(r"\b(search)\s(.*)", re.IGNORECASE)

_searchIndex = None

def getSearchIndex():
    global _searchIndex
    if _searchIndex is None:
        host = "http://meilisearch:7700"
        apiKey = None
        indexName = "events"
        if config is not None:
            host = config.get("host", host)
            apiKey = config.get("apiKey", apiKey) or None
            indexName = config.get("index", indexName)
        _searchIndex = meilisearch.Client(host, apiKey).index(indexName)
    return _searchIndex

def getLimit():
    limit = 5
    if config is not None and "limit" in config: limit = config["limit"]
    return limit

def searchNotes(keyword):
    result = getSearchIndex().search(f'"{keyword}"', {
        "filter": ["kind = 1"],
        "limit": getLimit(),
        })
    return result["hits"]

def handleSearch(systemData, userData, relay, ev):
    logger.debug(f"Fired search: {ev.content}")
    match = REGEX_SEARCH.search(ev.content)
    keyword = match.group(2).strip() if match is not None else ""
    if len(keyword) == 0:
        message = "よくわかりませんでした…"
    else:
        try:
            hits = searchNotes(keyword)
            message = "".join(f"nostr:{utils.noteEncode(hit['id'])}\n" for hit in hits)
            if len(message) == 0:
                message = "みつかりませんでした…"
            else:
                message = f"検索結果は以下の通りです！\n{message}"
        except Exception as err:
            logger.warning(f"Error searching for {keyword}: {err}")
            message = "何か問題が発生しました…"
    nostr.publishToRelay(relay, nostr.composeReplyPost(message, ev))
    return True
