#!/usr/bin/env python3
"""
rmote  -  keep a remote directory mirrored to a local one over SFTP
===================================================================

Subcommands:
  init      Create a .rmote config file in the current directory.
  sync      Copy the whole local tree to the remote once, then exit.
  watch     Initial copy, then mirror every local change until interrupted.

Settings come from (lowest to highest priority) built-in defaults, the
global config.yaml, the nearest .rmote profile, RMOTE_* environment
variables and the flags below.

Run 'rmote <subcommand> --help' for more details.
"""
import sys
import argparse
from pathlib import Path, PurePosixPath


# ── init ─────────────────────────────────────────────────────────────────────

def cmd_init(args):
    """Create a .rmote profile file in the current directory."""
    from rmote import config as _cfg

    target = Path.cwd() / _cfg.PROJECT_FILE

    if target.exists() and not args.force:
        print(f"error: {_cfg.PROJECT_FILE} already exists in {Path.cwd()}", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        sys.exit(1)

    global_cfg = _cfg.load_global_config()
    g_defaults = global_cfg.get("defaults", {}) or {}

    local_root = args.local or "."
    remote_root = args.remote or Path.cwd().name
    server = args.server or g_defaults.get("server")
    if not server:
        print("error: --server is required (or set defaults.server in the global config).",
              file=sys.stderr)
        sys.exit(1)
    user = args.user or g_defaults.get("user", _cfg.SSH_USER)
    port = args.port or int(g_defaults.get("port", _cfg.SSH_PORT))
    base_remote = args.base_remote or g_defaults.get("base_remote", "")
    ssh_key = args.key or g_defaults.get("ssh_key", _cfg.SSH_KEY_PATH)

    def _yq(value: str) -> str:
        """Wrap a string in YAML single quotes, escaping embedded single quotes."""
        return "'" + str(value).replace("'", "''") + "'"

    lines = [
        "# .rmote: rmote project configuration",
        "#",
        "# profiles: list of mirror profiles for this project.",
        "# remote_root is relative to base_remote when it does not start with '/'.",
        "# blacklist entries match a file/dir name anywhere, or a path prefix.",
        "profiles:",
        f"  - name: {args.profile}",
        f"    server: {_yq(server)}",
        f"    port: {port}",
        f"    user: {_yq(user)}",
        f"    ssh_key: {_yq(ssh_key or '')}",
        f"    local_root: {_yq(local_root)}",
        f"    remote_root: {_yq(remote_root)}",
        f"    debounce: {_cfg.DEBOUNCE_S}",
        "    blacklist:",
    ]
    lines += [f"      - {_yq(entry)}" for entry in (args.blacklist or [".git"])]
    if base_remote:
        lines += [
            "defaults:",
            f"  base_remote: {_yq(base_remote)}",
        ]

    content = "\n".join(lines) + "\n"

    if args.dry_run:
        print(f"[dry-run] Would write {target}:")
        print(content)
        return

    target.write_text(content, encoding="utf-8")
    print(f"Created {target}")
    if args.verbose:
        print(content)


# ── shared option handling ───────────────────────────────────────────────────

def _load_settings(args):
    """Layer config files, environment and flags into rmote.config."""
    import rmote.config as _cfg
    from rmote.utils.logging import set_verbose

    set_verbose(args.verbose)
    project = _cfg.load(args.profile)
    if args.verbose:
        print(f"[config] Using {project}" if project else "[config] No .rmote file found")

    if args.host:
        _cfg.SSH_HOST = args.host
    if args.port:
        _cfg.SSH_PORT = args.port
    if args.user:
        _cfg.SSH_USER = args.user
    if args.identity:
        _cfg.SSH_KEY_PATH = args.identity
    if args.passphrase:
        _cfg.SSH_PASSPHRASE = args.passphrase
    if args.remote_dir:
        _cfg.REMOTE_ROOT = PurePosixPath(args.remote_dir)
    if args.local_dir:
        _cfg.LOCAL_ROOT = Path(args.local_dir).expanduser()
    if args.blacklist:
        _cfg.BLACKLIST = list(_cfg.BLACKLIST) + list(args.blacklist)
    if getattr(args, "debounce", None) is not None:
        _cfg.DEBOUNCE_S = args.debounce
    if getattr(args, "no_initial_sync", False):
        _cfg.INITIAL_SYNC = False

    if not _cfg.SSH_HOST:
        print("error: no remote host; pass --host, set RMOTE_HOST or run 'rmote init'.",
              file=sys.stderr)
        sys.exit(1)
    return _cfg


def _start_engine(args):
    from rmote.core.engine import initialize
    from rmote.core.errors import SetupError
    from rmote.utils.logging import warn

    cfg = _load_settings(args)
    try:
        return cfg, initialize(cfg.LOCAL_ROOT, cfg.REMOTE_ROOT, cfg.BLACKLIST, cfg.DEBOUNCE_S)
    except SetupError as exc:
        warn(f"Setup failed: {exc}")
        sys.exit(1)


# ── sync ─────────────────────────────────────────────────────────────────────

def cmd_sync(args):
    """Run one full local → remote copy and exit."""
    from rmote.core.errors import RmoteError
    from rmote.utils.logging import warn

    _, engine = _start_engine(args)
    try:
        engine.full_sync()
    except RmoteError as exc:
        warn(f"Sync failed: {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        print()
        warn("Interrupted by user.")
        sys.exit(130)
    finally:
        engine.close()


# ── watch ────────────────────────────────────────────────────────────────────

def cmd_watch(args):
    """Initial copy, then mirror changes until interrupted."""
    from rmote.core.errors import RmoteError
    from rmote.utils.logging import warn

    cfg, engine = _start_engine(args)
    try:
        engine.run_forever(initial_sync=cfg.INITIAL_SYNC)
    except RmoteError as exc:
        warn(f"Mirror stopped: {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        print()
        warn("Interrupted by user.")
        sys.exit(130)


# ── main ──────────────────────────────────────────────────────────────────────

def _add_connection_args(p):
    p.add_argument("--profile", metavar="NAME", default="default",
                   help="Profile to use (default: default)")
    p.add_argument("--host", metavar="HOST",
                   help="Remote host (IP or DNS) [env: RMOTE_HOST]")
    p.add_argument("--port", type=int, metavar="N",
                   help="Remote SSH port (default: 22) [env: RMOTE_PORT]")
    p.add_argument("--user", metavar="NAME",
                   help="SSH username (default: root) [env: RMOTE_USER]")
    p.add_argument("-i", "--identity", metavar="PATH",
                   help="Private key (default: ~/.ssh/id_ed25519) [env: RMOTE_KEY]")
    p.add_argument("--passphrase", metavar="TEXT",
                   help="Passphrase for the private key [env: RMOTE_PASSPHRASE]")
    p.add_argument("--remote-dir", metavar="PATH",
                   help="Remote base directory, created if needed [env: RMOTE_REMOTE_DIR]")
    p.add_argument("--local-dir", metavar="PATH",
                   help="Local directory to mirror (default: profile or current directory)")
    p.add_argument("-x", "--blacklist", metavar="ENTRY", action="append",
                   help="Exclude a name or path prefix; may be repeated")
    p.add_argument("-v", "--verbose", action="store_true",
                   help="Log every event and skipped path")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rmote",
        description="Mirror a local directory to a remote host over SFTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # ── init ──────────────────────────────────────────────────────────────────
    init_p = subparsers.add_parser(
        "init",
        help="Create a .rmote config file in the current directory",
        description="Create a .rmote YAML config file for this project.",
    )
    init_p.add_argument("--local", metavar="PATH",
                        help="Local root directory (default: the .rmote directory)")
    init_p.add_argument("--remote", metavar="PATH",
                        help="Remote root path (relative to base_remote or absolute)")
    init_p.add_argument("--server", metavar="HOST",
                        help="Remote server hostname or IP")
    init_p.add_argument("--user", metavar="NAME",
                        help="SSH username (default: root)")
    init_p.add_argument("--port", type=int, metavar="N",
                        help="SSH port (default: 22)")
    init_p.add_argument("--key", metavar="PATH",
                        help="Private key path (default: ~/.ssh/id_ed25519)")
    init_p.add_argument("--base-remote", metavar="PATH",
                        help="Base remote path prepended to relative remote roots")
    init_p.add_argument("-x", "--blacklist", metavar="ENTRY", action="append",
                        help="Blacklist entry to write; may be repeated (default: .git)")
    init_p.add_argument("--profile", metavar="NAME", default="default",
                        help="Profile name to create (default: default)")
    init_p.add_argument("--force", action="store_true",
                        help="Overwrite existing .rmote")
    init_p.add_argument("-n", "--dry-run", action="store_true",
                        help="Preview without writing files")
    init_p.add_argument("-v", "--verbose", action="store_true",
                        help="Show extra output")

    # ── sync ──────────────────────────────────────────────────────────────────
    sync_p = subparsers.add_parser(
        "sync",
        help="Copy the local tree to the remote once",
        description="Run a single full local → remote copy.",
    )
    _add_connection_args(sync_p)

    # ── watch ─────────────────────────────────────────────────────────────────
    watch_p = subparsers.add_parser(
        "watch",
        help="Mirror local changes to the remote until interrupted",
        description="Full copy at startup, then replicate every local change.",
    )
    _add_connection_args(watch_p)
    watch_p.add_argument("--debounce", type=float, metavar="SECONDS",
                         help="Window over which events are coalesced (default: 1)")
    watch_p.add_argument("--no-initial-sync", action="store_true",
                         help="Skip the full copy at startup")

    return parser


def main(argv=None):
    """CLI entry point for rmote"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init":
        cmd_init(args)
    elif args.command == "sync":
        cmd_sync(args)
    elif args.command == "watch":
        if args.debounce is not None and args.debounce <= 0:
            parser.error("--debounce must be positive")
        cmd_watch(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
