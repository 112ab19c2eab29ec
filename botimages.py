#!/usr/bin/env python3
from io import BytesIO
from PIL import ImageChops
from staticmap import StaticMap
import base64
import boto3
import boto3.session
import bothttp as http

logger = None
config = None

IMAGE_SIZE = 1024
BLEND_BACKGROUNDS = {"multiply": "#fff", "lighter": "#000"}

def renderTiles(layers, center, zoom):
    """Renders tile layers around center ([lon, lat]) and blends them in order.

    Each layer is (urlTemplate, blend) where blend is "multiply" for layers
    drawn over a light map, or "lighter" for bright lines over a dark image.
    The first layer's blend is ignored.
    """
    image = None
    for urlTemplate, blend in layers:
        background = BLEND_BACKGROUNDS.get(blend, "#fff")
        layerMap = StaticMap(IMAGE_SIZE, IMAGE_SIZE, url_template=urlTemplate, background_color=background)
        layerImage = layerMap.render(zoom=zoom, center=center).convert("RGB")
        if image is None:
            image = layerImage
        elif blend == "lighter":
            image = ImageChops.lighter(image, layerImage)
        else:
            image = ImageChops.multiply(image, layerImage)
    buffer = BytesIO()
    image.save(buffer, format="WEBP")
    return buffer.getvalue()

def isCheveretoEnabled():
    if config is None or "chevereto" not in config: return False
    c = config["chevereto"]
    if not all(k in c for k in ("baseUrl", "apiKey")): return False
    return len(c["baseUrl"]) > 0 and len(c["apiKey"]) > 0

def isAWSEnabled():
    if config is None or "aws" not in config: return False
    if not all(k in config["aws"] for k in (
        "enabled",
        "s3Bucket",
        "aws_access_key_id",
        "aws_secret_access_key",
        "baseKey")):
        return False
    if not config["aws"]["enabled"]: return False
    return True

def uploadToChevereto(title, imageBytes):
    c = config["chevereto"]
    form = {
        "source": base64.b64encode(imageBytes).decode(),
        "title": title,
        "album_id": c.get("albumId", ""),
        "format": "json",
        }
    headers = {"X-API-Key": c["apiKey"]}
    result = http.postjson(f"{c['baseUrl']}/api/1/upload", data=form, headers=headers)
    return result["image"]["url"]

def uploadToAWS(title, imageBytes):
    s3Bucket = config["aws"]["s3Bucket"]
    aws_access_key_id = config["aws"]["aws_access_key_id"]
    aws_secret_access_key = config["aws"]["aws_secret_access_key"]
    s3Key = f"{config['aws']['baseKey']}{title}.webp"
    url = f"https://{s3Bucket}.s3.amazonaws.com/{s3Key}"
    # Upload to bucket
    mysession = boto3.session.Session(
        aws_access_key_id=aws_access_key_id,
        aws_secret_access_key=aws_secret_access_key)
    s3Client = mysession.client('s3')
    s3Client.put_object(
        Body=imageBytes,
        Bucket=s3Bucket,
        Key=s3Key,
        ContentType="image/webp",
        CacheControl="public,max-age=86400",
        )
    logger.debug(f"Uploaded {url}")
    return url

def uploadImage(title, imageBytes):
    if isCheveretoEnabled():
        return uploadToChevereto(title, imageBytes)
    if isAWSEnabled():
        return uploadToAWS(title, imageBytes)
    raise RuntimeError("No image host configured")
