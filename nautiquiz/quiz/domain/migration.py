import json
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from nautiquiz.quiz.domain.errors import PersistenceDecodeError
from nautiquiz.quiz.domain.models import UserProgress

logger = logging.getLogger(__name__)

# v1 = initial release
# v2 = per-rule statistics (rule_stats)
CURRENT_SCHEMA_VERSION = 2

Payload = dict[str, Any]


def _v1_to_v2(payload: Payload) -> Payload:
    payload.setdefault("rule_stats", {})
    return payload


# Keyed by the version a step upgrades FROM.
MIGRATIONS: dict[int, Callable[[Payload], Payload]] = {
    1: _v1_to_v2,
}


def needs_migration(stored_version: int) -> bool:
    """Version 0 means nothing was ever stored (first run)."""
    return 0 < stored_version < CURRENT_SCHEMA_VERSION


def migrate_payload(
    payload: Payload, from_version: int, to_version: int = CURRENT_SCHEMA_VERSION
) -> Payload:
    version = from_version
    while version < to_version:
        step = MIGRATIONS.get(version)
        if step is not None:
            logger.info(f"Migrating progress payload v{version} -> v{version + 1}")
            payload = step(payload)
        version += 1
    return payload


def encode_progress(progress: UserProgress) -> str:
    return progress.model_dump_json()


def decode_progress(raw: str | bytes, stored_version: int) -> UserProgress:
    """
    Decodes a persisted payload, upgrading it first when it was written by an
    older schema. Fields missing from older payloads take their defaults.

    Raises:
        PersistenceDecodeError: the payload is corrupt or structurally invalid.
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise PersistenceDecodeError(f"Progress payload is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise PersistenceDecodeError(
            f"Progress payload must be an object, got {type(payload).__name__}"
        )

    if needs_migration(stored_version):
        payload = migrate_payload(payload, stored_version)

    try:
        return UserProgress.model_validate(payload)
    except ValidationError as e:
        raise PersistenceDecodeError(f"Progress payload failed validation: {e}") from e
