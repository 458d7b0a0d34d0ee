"""
Configuration for rmote

Module-level settings are overridden, in order, by the global config file,
the project's .rmote profile, RMOTE_* environment variables and finally
command-line flags.
"""
import os
from pathlib import Path, PurePosixPath
from typing import Optional

import yaml

# ══════════════════════════════════════════════════════════════════════════════
#  DEFAULTS  ── overridden by YAML config, apply_profile() or apply_env()
# ══════════════════════════════════════════════════════════════════════════════

SSH_HOST: Optional[str] = None
SSH_PORT = 22
SSH_USER = "root"
# Private key; None falls back to ssh-agent / ~/.ssh/id_*
SSH_KEY_PATH: Optional[str] = "~/.ssh/id_ed25519"
SSH_PASSPHRASE: Optional[str] = None

LOCAL_ROOT = Path(".")
REMOTE_ROOT = PurePosixPath(".")

# Entries match a bare file name anywhere, or a path prefix
BLACKLIST: list[str] = []

# Seconds of events folded into one reconciliation pass
DEBOUNCE_S = 1.0
INITIAL_SYNC = True

# Dispatcher wake-up cadence while waiting for the next tick
POLL_INTERVAL_S = 0.01

# Max raw events buffered between the watcher and the dispatcher
CHANNEL_CAPACITY = 10_000

# Mode for remote parent directories we create on our own
DIR_MODE = 0o755

CHUNK_SIZE = 1024 * 1024

PROJECT_FILE = ".rmote"

ENV_PREFIX = "RMOTE_"


# ══════════════════════════════════════════════════════════════════════════════
#  GLOBAL CONFIG FILE  ── $XDG_CONFIG_HOME/rmote/config.yaml
# ══════════════════════════════════════════════════════════════════════════════

def get_global_config_dir() -> Path:
    """Return the global config directory for rmote."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg) / "rmote"
    return Path.home() / ".config" / "rmote"


def load_global_config() -> dict:
    """Load the global config file; a missing or broken file yields {}."""
    cfg_path = get_global_config_dir() / "config.yaml"
    if not cfg_path.is_file():
        return {}
    try:
        with cfg_path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}


# ══════════════════════════════════════════════════════════════════════════════
#  PROJECT CONFIG FILE  ── .rmote (searched upward)
# ══════════════════════════════════════════════════════════════════════════════

def find_project_file(start: Optional[Path] = None) -> Optional[Path]:
    """
    Search upward from *start* (default: cwd) for a .rmote YAML file.
    Returns None if no parent holds one.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / PROJECT_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_project_file(path: Path) -> dict:
    """Parse a .rmote YAML file and return its contents as a dict."""
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_profile(data: dict, profile_name: str = "default") -> dict:
    """
    Extract a named profile from a .rmote or config.yaml data dict.
    Falls back to the first profile if the named one is not found.
    Returns a flat profile dict merged with top-level defaults.
    """
    defaults = data.get("defaults", {}) or {}
    profiles = data.get("profiles", []) or []
    if not profiles:
        return dict(defaults)
    profile = next((p for p in profiles if p.get("name") == profile_name), None)
    if profile is None:
        profile = profiles[0]
    merged = dict(defaults)
    merged.update(profile)
    return merged


# ══════════════════════════════════════════════════════════════════════════════
#  APPLY  ── mutates module-level variables
# ══════════════════════════════════════════════════════════════════════════════

def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _remote_root(rr: str, base: str = "") -> PurePosixPath:
    base = base.rstrip("/")
    if base and not rr.startswith("/"):
        rr = f"{base}/{rr}"
    return PurePosixPath(rr)


def apply_profile(profile: dict):
    """
    Apply a profile dict to the module-level config variables.
    Supports keys: server, port, user, ssh_key, passphrase, local_root,
                   remote_root, base_remote (prepended to a relative
                   remote_root), blacklist, debounce, initial_sync.
    """
    global SSH_HOST, SSH_PORT, SSH_USER, SSH_KEY_PATH, SSH_PASSPHRASE
    global LOCAL_ROOT, REMOTE_ROOT, BLACKLIST, DEBOUNCE_S, INITIAL_SYNC

    if "server" in profile:
        SSH_HOST = str(profile["server"])
    if "port" in profile:
        SSH_PORT = int(profile["port"])
    if "user" in profile:
        SSH_USER = str(profile["user"])
    elif "username" in profile:
        SSH_USER = str(profile["username"])
    if "ssh_key" in profile:
        SSH_KEY_PATH = str(profile["ssh_key"]) if profile["ssh_key"] else None
    if "passphrase" in profile:
        SSH_PASSPHRASE = str(profile["passphrase"]) if profile["passphrase"] else None
    if "local_root" in profile:
        LOCAL_ROOT = Path(profile["local_root"]).expanduser()
    if "remote_root" in profile:
        REMOTE_ROOT = _remote_root(str(profile["remote_root"]),
                                   str(profile.get("base_remote", "")))
    if "blacklist" in profile:
        BLACKLIST = [str(b) for b in (profile["blacklist"] or [])]
    if "debounce" in profile:
        DEBOUNCE_S = float(profile["debounce"])
    if "initial_sync" in profile:
        INITIAL_SYNC = _as_bool(profile["initial_sync"])


def apply_env(environ: Optional[dict] = None):
    """Apply RMOTE_HOST, RMOTE_PORT, RMOTE_USER, RMOTE_KEY, RMOTE_PASSPHRASE, RMOTE_REMOTE_DIR."""
    global SSH_HOST, SSH_PORT, SSH_USER, SSH_KEY_PATH, SSH_PASSPHRASE, REMOTE_ROOT

    env = os.environ if environ is None else environ

    def get(name):
        value = env.get(ENV_PREFIX + name)
        return value if value else None

    if get("HOST"):
        SSH_HOST = get("HOST")
    if get("PORT"):
        SSH_PORT = int(get("PORT"))
    if get("USER"):
        SSH_USER = get("USER")
    if get("KEY"):
        SSH_KEY_PATH = get("KEY")
    if get("PASSPHRASE"):
        SSH_PASSPHRASE = get("PASSPHRASE")
    if get("REMOTE_DIR"):
        REMOTE_ROOT = PurePosixPath(get("REMOTE_DIR"))


def load(profile_name: str = "default", start: Optional[Path] = None,
         environ: Optional[dict] = None) -> Optional[Path]:
    """
    Layer global config, the nearest .rmote profile and the environment.
    Returns the project file used, or None when there is none.
    """
    global_cfg = load_global_config()
    if global_cfg:
        apply_profile(get_profile(global_cfg, profile_name))

    project = find_project_file(start)
    if project is not None:
        apply_profile(get_profile(load_project_file(project), profile_name))
        # relative local roots are anchored at the project file's directory
        if not LOCAL_ROOT.is_absolute():
            _set_local_root(project.parent / LOCAL_ROOT)

    apply_env(environ)
    return project


def _set_local_root(path: Path):
    global LOCAL_ROOT
    LOCAL_ROOT = path
