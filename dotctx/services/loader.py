"""Loader that reads a .ctx directory into a ContextSnapshot."""

import logging
import re
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..config.settings import CtxConfig, get_default_config
from ..core.models import (
    ContextSnapshot, CurrentState, Decision, Landmine, OpenLoop, SessionNote,
    Severity, StackConfig, VocabEntry, WorkState,
)
from ..utils.markdown import iter_table_rows, read_markdown

logger = logging.getLogger(__name__)

CTX_DIR_NAME = '.ctx'
CONFIG_FILE = '.ctxrc'
SESSIONS_DIR = 'sessions'

BULLET_PATTERN = re.compile(r'^[-*]\s+(.+)')


def find_ctx_dir(start_dir: Optional[str] = None) -> Optional[Path]:
    """Walk up from start_dir (default: cwd) to the nearest .ctx directory."""
    directory = Path(start_dir or Path.cwd()).resolve()
    for candidate_root in (directory, *directory.parents):
        candidate = candidate_root / CTX_DIR_NAME
        if candidate.is_dir():
            return candidate
    return None


def read_yaml(file_path: Path) -> Optional[Any]:
    """Parse a YAML file; missing or malformed files read as None."""
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        return None
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable %s: %s", file_path, e)
        return None


def _text(value: Any) -> str:
    """YAML scalars as strings; dates keep their ISO form."""
    if value is None:
        return ''
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _text_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [_text(item) for item in value]
    return [_text(value)]


def _mapping(data: Any) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _work_state(value: Any) -> str:
    """Known work states pass through; anything else reads as unset."""
    try:
        return WorkState(_text(value).strip()).value
    except ValueError:
        logger.warning("Unknown state %r in current.yaml", value)
        return WorkState.UNSET.value


def parse_stack(data: Any) -> Optional[StackConfig]:
    if data is None:
        return None
    data = _mapping(data)
    return StackConfig(
        name=_text(data.get('name')),
        language=_text_list(data.get('language')),
        framework=_text_list(data.get('framework')),
        build=_text_list(data.get('build')),
        test=_text_list(data.get('test')),
        deploy=_text(data.get('deploy')),
        notes=_text(data.get('notes')),
        updated_at=_text(data.get('updated_at')),
    )


def parse_current(data: Any) -> Optional[CurrentState]:
    if data is None:
        return None
    data = _mapping(data)
    return CurrentState(
        branch=_text(data.get('branch')),
        task=_text(data.get('task')),
        state=_work_state(data.get('state')),
        next_step=_text(data.get('next_step')),
        blocked_by=_text(data.get('blocked_by')),
        files_touched=_text_list(data.get('files_touched')),
        updated_at=_text(data.get('updated_at')),
    )


def parse_open_loops(data: Any, default_ttl: str = '14d') -> List[OpenLoop]:
    loops = []
    for raw in _mapping(data).get('loops') or []:
        raw = _mapping(raw)
        loops.append(OpenLoop(
            id=_int(raw.get('id')),
            description=_text(raw.get('description')),
            created_at=_text(raw.get('created_at')),
            ttl=_text(raw.get('ttl')) or default_ttl,
            status=_text(raw.get('status')) or 'open',
            context=_text(raw.get('context')),
        ))
    return loops


def parse_decisions(content: str) -> List[Decision]:
    """Decision table rows: decision | rejected | why | date."""
    return [
        Decision(decision=cells[0], rejected=cells[1], why=cells[2], date=cells[3])
        for cells in iter_table_rows(content, 'decision')
        if len(cells) >= 4
    ]


def parse_landmines(content: str) -> List[Landmine]:
    """Landmine table rows (description | file | why | date | severity) plus '- text — why' bullets."""
    landmines = []

    for cells in iter_table_rows(content, 'description'):
        if len(cells) < 2:
            continue
        cells = cells + [''] * (5 - len(cells))
        landmines.append(Landmine(
            description=cells[0],
            file=cells[1],
            why=cells[2],
            date=cells[3],
            severity=Severity.parse(cells[4]).value,
        ))

    for line in content.split('\n'):
        match = BULLET_PATTERN.match(line)
        if not match or 'Format:' in line or "DON'T touch" in line:
            continue
        parts = [part.strip() for part in match.group(1).split('—')]
        landmines.append(Landmine(description=parts[0], why=parts[1] if len(parts) > 1 else ''))

    return landmines


def parse_vocabulary(content: str) -> List[VocabEntry]:
    """Vocabulary table rows: term | definition."""
    return [
        VocabEntry(term=cells[0], definition=cells[1])
        for cells in iter_table_rows(content, 'term')
        if len(cells) >= 2
    ]


def load_sessions(sessions_dir: Path, max_sessions: int = 5) -> List[SessionNote]:
    """Most recent session notes, newest first by filename."""
    if not sessions_dir.is_dir():
        return []

    files = sorted((p for p in sessions_dir.iterdir() if p.suffix == '.yaml'), reverse=True)
    sessions = []
    for path in files[:max_sessions]:
        data = _mapping(read_yaml(path))
        sessions.append(SessionNote(
            id=_text(data.get('id')) or path.stem,
            date=_text(data.get('date')),
            summary=_text(data.get('summary')),
            state=_text(data.get('state')),
            next_step=_text(data.get('next_step')),
            files_touched=_text_list(data.get('files_touched')),
            landmines_added=_text_list(data.get('landmines_added')),
            loops_added=_text_list(data.get('loops_added')),
        ))
    return sessions


def load_config(ctx_dir: Path) -> CtxConfig:
    raw = read_yaml(ctx_dir / CONFIG_FILE)
    if not isinstance(raw, dict):
        return get_default_config()
    try:
        config = CtxConfig.from_dict(raw)
    except (AttributeError, TypeError, ValueError) as e:
        logger.warning("Invalid %s, using defaults: %s", CONFIG_FILE, e)
        return get_default_config()
    for issue in config.validate():
        logger.warning("%s: %s", CONFIG_FILE, issue)
    return config


def load_context(ctx_dir: Optional[Path] = None) -> ContextSnapshot:
    """
    Load a snapshot from a .ctx directory.

    Args:
        ctx_dir: Store directory; searched upward from cwd when omitted

    Returns:
        ContextSnapshot (empty when no store exists)
    """
    directory = Path(ctx_dir) if ctx_dir else find_ctx_dir()
    if directory is None or not directory.is_dir():
        return ContextSnapshot.empty()

    config = load_config(directory)
    logger.debug("Loading context from %s", directory)

    return ContextSnapshot(
        stack=parse_stack(read_yaml(directory / 'stack.yaml')),
        current=parse_current(read_yaml(directory / 'current.yaml')),
        open_loops=parse_open_loops(read_yaml(directory / 'open-loops.yaml'), config.freshness.loop_default_ttl),
        architecture=read_markdown(directory / 'architecture.md'),
        conventions=read_markdown(directory / 'conventions.md'),
        decisions=parse_decisions(read_markdown(directory / 'decisions.md')),
        landmines=parse_landmines(read_markdown(directory / 'landmines.md')),
        vocabulary=parse_vocabulary(read_markdown(directory / 'vocabulary.md')),
        sessions=load_sessions(directory / SESSIONS_DIR, config.freshness.max_sessions),
        config=config,
    )
