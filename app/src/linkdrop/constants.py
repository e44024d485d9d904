from dotenv import load_dotenv
import os
import dacite
import yaml
from typing import Any, Dict
from linkdrop.core.base import Config

load_dotenv()

# load config.yaml (one file per deployment variant)
SCRIPT_DIR = os.path.dirname(os.path.realpath(__file__))
CONFIG_PATH = os.environ.get("LINKDROP_CONFIG", os.path.join(SCRIPT_DIR, "config.yaml"))
with open(CONFIG_PATH, "r", encoding="utf-8") as f:
    CONFIG: Config = dacite.from_dict(Config, yaml.safe_load(f))

BOT_NAME = CONFIG.name
MESSAGES = CONFIG.messages
MAX_LINKS = CONFIG.max_links
COOLDOWN_MS = CONFIG.cooldown_ms
WINDOW_TEXT = CONFIG.window_text
STORAGE_BACKEND = CONFIG.storage
LINKS_FILE = os.environ.get("LINKS_FILE", CONFIG.catalog_file)
PERSIST_TIMEOUT_SEC = float(os.environ.get("PERSIST_TIMEOUT_SEC", str(CONFIG.persist_timeout_sec)))

DISCORD_BOT_TOKEN = os.environ["DISCORD_BOT_TOKEN"]
DISCORD_CLIENT_ID = os.environ["DISCORD_CLIENT_ID"]
DISCORD_GUILD_ID = int(os.environ["DISCORD_GUILD_ID"])
LOG_WEBHOOK_URL = os.environ["LOG_WEBHOOK_URL"]

# only the selected backend's credentials are required
STORE_SETTINGS: Dict[str, Any] = {}
if STORAGE_BACKEND == "jsonbin":
    STORE_SETTINGS = {
        "bin_id": os.environ["JSONBIN_ID"],
        "api_key": os.environ["JSONBIN_API_KEY"],
    }
elif STORAGE_BACKEND == "dropbox":
    STORE_SETTINGS = {
        "token": os.environ["DROPBOX_TOKEN"],
        "path": os.environ.get("DROPBOX_PATH", "/link_history.json"),
    }
elif STORAGE_BACKEND == "file":
    STORE_SETTINGS = {
        "path": os.environ.get("STATE_FILE", "link_history.json"),
    }

# Send Messages, Embed Links, Use Slash Command
PERMISSIONS = os.environ.get("PERMISSIONS", "2147502080")
BOT_INVITE_URL = f"https://discord.com/api/oauth2/authorize?client_id={DISCORD_CLIENT_ID}&permissions={PERMISSIONS}&scope=bot%20applications.commands"

