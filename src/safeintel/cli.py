# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Command Line Interface
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
CLI entry point for SafeIntel.

Usage::

    safeintel version
    safeintel build --since=2025-01-01 --types=Opening_Check,Fridge_AM --maxFacts=5000
    safeintel ask "Opening Check for restaurant 74 on 20/09/2025"
    safeintel suggest --last "restaurant 74" --limit 5
    safeintel inspect
    safeintel serve --port 8080 --profile offline
    safeintel config --profile offline

Every command accepts ``--profile <name>``, ``--config <file.yaml>`` and
``--env-file <path>`` (default ``.env.local``).
"""

from __future__ import annotations

import json
import sys

_BOOL_FLAGS = frozenset({"json", "verbose"})
_OPTION_ALIASES = {"max-facts": "maxFacts", "last-user-text": "last"}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point — dispatches to subcommands."""
    args = argv if argv is not None else sys.argv[1:]

    if not args or args[0] in ("-h", "--help", "help"):
        _print_help()
        return

    cmd = args[0]
    rest = args[1:]

    commands = {
        "version": _cmd_version,
        "build": _cmd_build,
        "ask": _cmd_ask,
        "suggest": _cmd_suggest,
        "inspect": _cmd_inspect,
        "serve": _cmd_serve,
        "config": _cmd_config,
    }

    if cmd not in commands:
        print(f"Unknown command: {cmd}")
        _print_help()
        sys.exit(1)

    from safeintel.core.exceptions import SafeIntelError

    try:
        commands[cmd](rest)
    except SafeIntelError as exc:
        print(f"Error: {exc}")
        sys.exit(1)


def _print_help() -> None:
    print(
        "SafeIntel CLI\n"
        "\n"
        "Usage: safeintel <command> [options]\n"
        "\n"
        "Commands:\n"
        "  version               Show version info\n"
        "  build [filters]       Build the knowledge index from the CSV\n"
        "                        (--csv, --out, --since, --year, --types,\n"
        "                         --limit, --maxFacts)\n"
        "  ask <question>        Answer one question from the index\n"
        "  suggest [--last T]    Suggest example questions\n"
        "  inspect               Show index count and sample facts\n"
        "  serve [--port N]      Start the FastAPI server\n"
        "  config [--profile X]  Show configuration\n"
    )


def _parse_opts(args: list[str]) -> tuple[dict[str, str | bool], list[str]]:
    """Split ``--key=value`` / ``--key value`` options from positionals."""
    opts: dict[str, str | bool] = {}
    positional: list[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg.startswith("--"):
            key, sep, value = arg[2:].partition("=")
            key = _OPTION_ALIASES.get(key, key)
            if sep:
                opts[key] = value
            elif key in _BOOL_FLAGS:
                opts[key] = True
            elif i + 1 < len(args) and not args[i + 1].startswith("--"):
                opts[key] = args[i + 1]
                i += 1
            else:
                opts[key] = True
        else:
            positional.append(arg)
        i += 1
    return opts, positional


def _int_opt(opts: dict, key: str) -> int | None:
    value = opts.get(key)
    if value is None:
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        print(f"Error: --{key} must be an integer, got {value!r}")
        sys.exit(1)


def _load_config(opts: dict):
    from safeintel.core.config import SafeIntelConfig

    if isinstance(opts.get("config"), str):
        cfg = SafeIntelConfig.from_yaml(opts["config"])
    elif isinstance(opts.get("profile"), str):
        cfg = SafeIntelConfig.from_profile(opts["profile"])
    else:
        env_file = opts.get("env-file")
        cfg = SafeIntelConfig.from_env(
            env_file=env_file if isinstance(env_file, str) else ".env.local"
        )
    if isinstance(opts.get("data-dir"), str):
        cfg.data_dir = opts["data-dir"]
    cfg.configure_logging()
    return cfg


def _cmd_version(args: list[str]) -> None:
    import safeintel

    print(f"safeintel {safeintel.__version__}")


def _cmd_build(args: list[str]) -> None:
    opts, _ = _parse_opts(args)
    cfg = _load_config(opts)

    from safeintel.core.facts import BuildFilters
    from safeintel.core.indexer import build_knowledge_index

    types = opts.get("types")
    filters = BuildFilters(
        since=opts["since"] if isinstance(opts.get("since"), str) else None,
        year=_int_opt(opts, "year"),
        types=[t.strip() for t in types.split(",") if t.strip()]
        if isinstance(types, str)
        else None,
        limit=_int_opt(opts, "limit"),
        max_facts=_int_opt(opts, "maxFacts"),
    )
    csv_path = opts.get("csv")
    out_dir = opts.get("out")
    index = build_knowledge_index(
        cfg,
        filters,
        csv_path=csv_path if isinstance(csv_path, str) else None,
        out_dir=out_dir if isinstance(out_dir, str) else None,
    )

    print(f"Facts:    {index.count}")
    print(f"Dim:      {index.dim}")
    print(f"Model:    {index.model}")
    print(f"Build:    {index.build_id}")
    print(f"Written:  {out_dir if isinstance(out_dir, str) else cfg.data_dir}")


def _cmd_ask(args: list[str]) -> None:
    opts, positional = _parse_opts(args)
    if not positional:
        print("Usage: safeintel ask <question> [--json]")
        sys.exit(1)

    cfg = _load_config(opts)

    from safeintel.core.assistant import ComplianceAssistant

    assistant = ComplianceAssistant.from_config(cfg)
    result = assistant.ask(" ".join(positional))

    if opts.get("json"):
        print(json.dumps(result.to_dict()))
        return
    print(result.answer)
    print()
    print(f"Path:     {result.path}")
    print(f"Used:     {', '.join(result.used) or '-'}")
    print(f"Narrowed: {result.narrowed_count}")


def _cmd_suggest(args: list[str]) -> None:
    opts, positional = _parse_opts(args)
    cfg = _load_config(opts)

    from safeintel.core.assistant import ComplianceAssistant

    last = opts.get("last")
    if not isinstance(last, str):
        last = " ".join(positional) or None
    types = opts.get("types")

    assistant = ComplianceAssistant.from_config(cfg)
    for line in assistant.suggest(
        last_user_text=last,
        preferred_types=[t.strip() for t in types.split(",") if t.strip()]
        if isinstance(types, str)
        else None,
        limit=_int_opt(opts, "limit"),
    ):
        print(line)


def _cmd_inspect(args: list[str]) -> None:
    opts, _ = _parse_opts(args)
    cfg = _load_config(opts)

    from safeintel.core.index_store import read_index

    index = read_index(cfg.index_dir)
    n = _int_opt(opts, "sample") or 3
    if opts.get("json"):
        print(json.dumps({"count": index.count, "sample": index.sample(n)}))
        return
    print(f"Count:    {index.count}")
    print(f"Dim:      {index.dim}")
    print(f"Model:    {index.model or 'unknown'}")
    print(f"Build:    {index.build_id or 'unknown'}")
    for item in index.sample(n):
        print(f"  [{item['id']}] {item['text']}")


def _cmd_serve(args: list[str]) -> None:
    opts, _ = _parse_opts(args)
    cfg = _load_config(opts)

    if "port" in opts:
        port = _int_opt(opts, "port")
        if port is not None:
            cfg.server_port = port
    if isinstance(opts.get("host"), str):
        cfg.server_host = opts["host"]

    try:
        import uvicorn
    except ImportError:
        print("uvicorn is required: pip install safeintel[server]")
        sys.exit(1)

    from safeintel.server import create_app

    app = create_app(cfg)
    print(
        f"Starting SafeIntel server on {cfg.server_host}:{cfg.server_port} "
        f"(profile={cfg.profile})"
    )
    uvicorn.run(app, host=cfg.server_host, port=cfg.server_port)


def _cmd_config(args: list[str]) -> None:
    opts, _ = _parse_opts(args)
    if "profile" in opts and not isinstance(opts["profile"], str):
        print("Usage: safeintel config --profile <name>")
        sys.exit(1)
    cfg = _load_config(opts)

    for key, value in cfg.to_dict().items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
