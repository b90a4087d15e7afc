APP_NAME = "PinDL"
APP_VERSION = "1.0.0"

REQUEST_TIMEOUT_SECONDS = 30
DOWNLOAD_TIMEOUT_SECONDS = 300

HOST = "https://id.pinterest.com"
SHORT_HOST = "https://pin.it"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/136.0.0.0 Safari/537.36"
)
CHROME_VERSION = "136.0.7049.115"
SEC_CH_UA = (
    f'"Google Chrome";v="{CHROME_VERSION}", '
    '"Not-A.Brand";v="8.0.0.0", '
    f'"Chromium";v="{CHROME_VERSION}"'
)

HTTP_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept-Language": "en-US,en;q=0.9",
}

USER_PINS_RESOURCE = "/resource/UserActivityPinsResource/get/"

DEFAULT_MAX_PAGES = 50
MAX_PAGES_LIMIT = 100

IMAGES_FOLDER = "Images"
VIDEOS_FOLDER = "Videos"
PINS_FOLDER = "Pins"
METADATA_FOLDER = "metadata"

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".mov": "video/quicktime",
    ".m3u8": "application/vnd.apple.mpegurl",
    ".json": "application/json",
}


def oembed_url(pin_id: str) -> str:
    return f"{HOST}/oembed.json?url={HOST}/pin/{pin_id}/&ref=oembed-discovery"
