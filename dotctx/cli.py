"""Command-line interface for compiling and inspecting a .ctx store."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .core.freshness import HOUR_MS, get_expired_loops, get_expiring_loops, is_stale, parse_duration
from .core.tokenizer_service import TokenizerService
from .services.audit import CTX_FILES, get_stale_file_warnings, run_audit
from .services.capsule import generate_capsule
from .services.file_lookup import check_file, explain_file
from .services.loader import CONFIG_FILE, SESSIONS_DIR, find_ctx_dir, load_context
from .services.preflight import generate_preflight
from .utils.adapter_formatter import AdapterFormatter
from .utils.git import GitClient

logger = logging.getLogger(__name__)

NO_CTX_DIR_MSG = 'No .ctx/ directory found. Create one at the project root first.'
STATUS_FILES = ['stack.yaml', 'current.yaml', 'open-loops.yaml'] + [
    name for name in CTX_FILES if name.endswith('.md')
] + [CONFIG_FILE]


def _require_ctx_dir() -> Optional[Path]:
    ctx_dir = find_ctx_dir()
    if ctx_dir is None:
        print(NO_CTX_DIR_MSG, file=sys.stderr)
    return ctx_dir


def compile_command(args: argparse.Namespace) -> int:
    ctx_dir = _require_ctx_dir()
    if ctx_dir is None:
        return 1

    snapshot = load_context(ctx_dir)
    project_dir = ctx_dir.parent
    formatter = AdapterFormatter()

    if args.target == 'all':
        names = [adapter.name for adapter in formatter.file_adapters()]
    else:
        names = [args.target]

    tokenizer = TokenizerService()
    for name in names:
        output = formatter.compile(name, snapshot)
        output_path = formatter.output_path(name, snapshot)

        if args.stdout or not output_path:
            print(output)
            continue

        destination = project_dir / output_path
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(output, encoding='utf-8')
        print(f"✓ {name} → {output_path} (~{tokenizer.count_tokens(output)} tokens)")

    return 0


def pull_command(args: argparse.Namespace) -> int:
    ctx_dir = _require_ctx_dir()
    if ctx_dir is None:
        return 1

    snapshot = load_context(ctx_dir)
    budget = args.budget or snapshot.config.budget.default
    capsule = generate_capsule(snapshot, args.task, budget)

    capsule_path = ctx_dir / 'capsule.md'
    resume_path = ctx_dir / 'resume.txt'
    capsule_path.write_text(capsule.markdown, encoding='utf-8')
    resume_path.write_text(capsule.resume, encoding='utf-8')

    print('✓ Generated context capsule')
    print(f"  Tokens: {capsule.tokens}/{budget}")
    print(f"  {capsule_path}")
    print(f"  {resume_path}")
    return 0


def preflight_command(args: argparse.Namespace) -> int:
    ctx_dir = _require_ctx_dir()
    if ctx_dir is None:
        return 1

    snapshot = load_context(ctx_dir)
    checklist = generate_preflight(snapshot, args.task, brief=args.brief, ctx_dir=ctx_dir)
    print(checklist.formatted)
    return 0


def audit_command(args: argparse.Namespace) -> int:
    ctx_dir = _require_ctx_dir()
    if ctx_dir is None:
        return 1

    result = run_audit(load_context(ctx_dir), ctx_dir)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(result.formatted)
    return 0


def status_command(args: argparse.Namespace) -> int:
    ctx_dir = _require_ctx_dir()
    if ctx_dir is None:
        return 1

    snapshot = load_context(ctx_dir)
    freshness = snapshot.config.freshness
    tokenizer = TokenizerService()
    lines = ['Context Status', '', 'Token usage:']

    contents = {
        name: (ctx_dir / name).read_text(encoding='utf-8', errors='replace')
        for name in STATUS_FILES if (ctx_dir / name).is_file()
    }
    sessions_dir = ctx_dir / SESSIONS_DIR
    session_files = sorted(sessions_dir.glob('*.yaml')) if sessions_dir.is_dir() else []
    sessions_label = f'sessions/ ({len(session_files)})'
    contents[sessions_label] = '\n'.join(path.read_text(encoding='utf-8', errors='replace') for path in session_files)
    breakdown = tokenizer.count_tokens_with_breakdown(contents)

    for name in STATUS_FILES + [sessions_label]:
        if name in breakdown:
            lines.append(f"  {name:<22} {breakdown[name]:>5} tokens")
        else:
            lines.append(f"  {name:<22} {'-':>5}")
    lines.append(f"  {'Total':<22} {breakdown['total']:>5} tokens")
    lines.append(f"  Budget: {snapshot.config.budget.default}")
    lines.append('')

    threshold_hours = parse_duration(freshness.stale_threshold) / HOUR_MS
    stale = []
    if snapshot.current and snapshot.current.updated_at and is_stale(snapshot.current.updated_at, threshold_hours):
        stale.append('current.yaml')
    if snapshot.stack and snapshot.stack.updated_at and is_stale(snapshot.stack.updated_at, threshold_hours):
        stale.append('stack.yaml')
    if stale:
        lines.append(f"⚠ Stale (>{threshold_hours:g}h):")
        lines += [f"  - {name}" for name in stale]
        lines.append('')

    file_warnings = get_stale_file_warnings(ctx_dir, freshness.file_stale_threshold)
    if file_warnings:
        lines.append('⚠ File freshness:')
        lines += [f"  {warning}" for warning in file_warnings]
        lines.append('')

    active = snapshot.active_loops
    expired = get_expired_loops(active, freshness.loop_default_ttl)
    expiring = get_expiring_loops(active, freshness.loop_default_ttl)
    if expired:
        lines.append(f"✗ Expired loops ({len(expired)}):")
        lines += [f"  - #{loop.id}: {loop.description}" for loop in expired]
        lines.append('')
    if expiring:
        lines.append(f"⚠ Expiring soon ({len(expiring)}):")
        lines += [f"  - #{loop.id}: {loop.description}" for loop in expiring]
        lines.append('')
    if active and not expired and not expiring:
        lines.append(f"✓ {len(active)} open loop(s), all within TTL")

    print('\n'.join(lines).rstrip())
    return 0


def check_command(args: argparse.Namespace) -> int:
    ctx_dir = find_ctx_dir()
    if ctx_dir is None:
        # Editor hooks call this on every save
        return 0

    snapshot = load_context(ctx_dir)
    root = GitClient().root() or None
    lines = check_file(snapshot, args.file, landmines_only=args.landmines, ripple_only=args.ripple, root=root)
    if lines:
        print('\n'.join(lines))
    return 0


def why_command(args: argparse.Namespace) -> int:
    ctx_dir = _require_ctx_dir()
    if ctx_dir is None:
        return 1

    explanation = explain_file(load_context(ctx_dir), args.file)
    if explanation is None:
        print(f'No context found for "{args.file}".')
    else:
        print(explanation)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='dotctx', description='Compile and inspect a .ctx/ context store.')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging.')
    sub = parser.add_subparsers(dest='cmd', required=True)

    p_compile = sub.add_parser('compile', help='Compile context for a specific AI tool.')
    p_compile.add_argument('--target', required=True, choices=['claude', 'cursor', 'copilot', 'system', 'all'])
    p_compile.add_argument('--stdout', action='store_true', help='Print instead of writing files.')
    p_compile.set_defaults(func=compile_command)

    p_pull = sub.add_parser('pull', help='Generate a task-specific context capsule.')
    p_pull.add_argument('--task', required=True)
    p_pull.add_argument('--budget', type=int, default=0, help='Token budget (default: budget.default).')
    p_pull.set_defaults(func=pull_command)

    p_preflight = sub.add_parser('preflight', help='Pre-coding checklist: landmines, decisions, ripple map.')
    p_preflight.add_argument('--task', required=True)
    p_preflight.add_argument('--brief', action='store_true', help='Only health warnings and landmines.')
    p_preflight.set_defaults(func=preflight_command)

    p_audit = sub.add_parser('audit', help='Stale files, drifted entries and ripple-map gaps.')
    p_audit.add_argument('--json', action='store_true')
    p_audit.set_defaults(func=audit_command)

    p_status = sub.add_parser('status', help='Token usage, staleness and loop TTLs.')
    p_status.set_defaults(func=status_command)

    p_check = sub.add_parser('check', help='Landmine and ripple warnings for one file.')
    p_check.add_argument('file')
    only = p_check.add_mutually_exclusive_group()
    only.add_argument('--landmines', action='store_true')
    only.add_argument('--ripple', action='store_true')
    p_check.set_defaults(func=check_command)

    p_why = sub.add_parser('why', help='Everything the store says about a file.')
    p_why.add_argument('file')
    p_why.set_defaults(func=why_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )
    logger.debug("Running %s", args.cmd)
    return args.func(args)


if __name__ == '__main__':
    raise SystemExit(main())
