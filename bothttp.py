#!/usr/bin/env python3
import requests

logger = None
config = None

def gettimeouts():
    connectTimeout = 5
    readTimeout = 30
    if config is not None:
        if "connectTimeout" in config: connectTimeout = config["connectTimeout"]
        if "readTimeout" in config: readTimeout = config["readTimeout"]
    return (connectTimeout, readTimeout)

def geturl(url, params=None, headers={}):
    timeout = gettimeouts()
    resp = requests.get(url,params=params,timeout=timeout,allow_redirects=True,headers=headers)
    resp.raise_for_status()
    return resp

def getjson(url, params=None, headers={}):
    return geturl(url, params, headers).json()

def postjson(url, data=None, files=None, headers={}):
    timeout = gettimeouts()
    resp = requests.post(url,data=data,files=files,timeout=timeout,headers=headers)
    resp.raise_for_status()
    return resp.json()
