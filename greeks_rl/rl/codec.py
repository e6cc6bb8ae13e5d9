"""
Versioned serialisation of the learned policy.

A snapshot is a JSON document::

    {
      "format_version": 1,
      "exported_at": "2026-10-19T12:00:00Z",
      "epsilon": 0.05,
      "experience_count": 420,
      "hyperparameters": {...},
      "q_table": [
        {"state": [5, 2, 7, 5, 1, 2, 3, 5],
         "actions": [{"type": "hedge", "size_bucket": 50, "value": 1.2, "visits": 4}]}
      ]
    }

Decoding is parse-then-build: the whole document is validated and a
fresh :class:`QTable` is assembled before anything is handed back, so a
bad blob can never leave the caller with half-imported state.  Blobs
written before versioning (camelCase ``qTable`` with JSON-string state
keys and ``"type_size"`` action keys) are migrated as version 0.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from greeks_rl.rl.actions import ActionKey, ActionType
from greeks_rl.rl.q_table import QTable
from greeks_rl.rl.state import DIMENSION_NAMES
from greeks_rl.utils.logging import get_logger

logger = get_logger(__name__)

FORMAT_VERSION = 1
LEGACY_VERSION = 0
SUPPORTED_VERSIONS = frozenset({FORMAT_VERSION})

# Dimension names used by the unversioned format.
_LEGACY_DIMENSIONS: dict[str, str] = {"ivRank": "iv_rank"}


class ModelImportError(ValueError):
    """Raised when a snapshot blob cannot be decoded."""


# ---------------------------------------------------------------------------
# Snapshot schema
# ---------------------------------------------------------------------------


class ActionValueRecord(BaseModel):
    type: ActionType
    size_bucket: int = Field(ge=0, le=100)
    value: float = Field(allow_inf_nan=False)
    visits: int = Field(ge=0)


class StateRecord(BaseModel):
    state: list[int] = Field(min_length=len(DIMENSION_NAMES), max_length=len(DIMENSION_NAMES))
    actions: list[ActionValueRecord]


class ModelSnapshot(BaseModel):
    format_version: int
    exported_at: datetime
    epsilon: float = Field(ge=0.0, le=1.0)
    experience_count: int = Field(default=0, ge=0)
    hyperparameters: dict[str, Any] = Field(default_factory=dict)
    q_table: list[StateRecord]


@dataclass
class DecodedModel:
    """Result of decoding a blob, ready to be swapped into an agent."""

    q_table: QTable
    epsilon: float
    experience_count: int
    format_version: int
    exported_at: datetime


# ---------------------------------------------------------------------------
# ModelCodec
# ---------------------------------------------------------------------------


class ModelCodec:
    """Encodes and decodes Q-table snapshots."""

    def encode(
        self,
        q_table: QTable,
        epsilon: float,
        experience_count: int,
        hyperparameters: dict[str, Any] | None = None,
    ) -> str:
        records = [
            StateRecord(
                state=list(state_key),
                actions=[
                    ActionValueRecord(
                        type=action_key.type,
                        size_bucket=action_key.size_bucket,
                        value=q.value,
                        visits=q.visits,
                    )
                    for action_key, q in row.items()
                ],
            )
            for state_key, row in q_table.items()
        ]
        snapshot = ModelSnapshot(
            format_version=FORMAT_VERSION,
            exported_at=datetime.now(timezone.utc),
            epsilon=epsilon,
            experience_count=experience_count,
            hyperparameters=hyperparameters or {},
            q_table=records,
        )
        return snapshot.model_dump_json()

    def decode(self, blob: str, fallback_epsilon: float | None = None) -> DecodedModel:
        """Validate *blob* completely and build a new Q-table from it.

        Legacy blobs that carry no epsilon take *fallback_epsilon*.

        Raises:
            ModelImportError: If the blob is not valid JSON, does not match
                the schema, or carries an unsupported ``format_version``.
        """
        try:
            data = json.loads(blob)
        except (TypeError, ValueError) as exc:
            raise ModelImportError(f"snapshot is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ModelImportError("snapshot must be a JSON object")

        version = data.get("format_version")
        if version is None and "qTable" in data:
            data = _migrate_legacy(data, fallback_epsilon)
            version = LEGACY_VERSION
        elif type(version) is not int or version not in SUPPORTED_VERSIONS:
            raise ModelImportError(f"unsupported snapshot format_version: {version!r}")

        try:
            snapshot = ModelSnapshot.model_validate(data)
        except ValidationError as exc:
            raise ModelImportError(f"snapshot failed validation: {exc}") from exc

        q_table = QTable()
        for record in snapshot.q_table:
            state_key = tuple(record.state)
            for entry in record.actions:
                q = q_table.get_or_create(state_key, ActionKey(entry.type, entry.size_bucket))
                q.value = entry.value
                q.visits = entry.visits

        return DecodedModel(
            q_table=q_table,
            epsilon=snapshot.epsilon,
            experience_count=snapshot.experience_count,
            format_version=version,
            exported_at=snapshot.exported_at,
        )


def _migrate_legacy(data: dict[str, Any], fallback_epsilon: float | None = None) -> dict[str, Any]:
    """Rewrite an unversioned export into the version-1 document shape."""
    try:
        records = []
        for entry in data["qTable"]:
            bins = json.loads(entry["state"])
            bins = {_LEGACY_DIMENSIONS.get(k, k): v for k, v in bins.items()}
            actions = []
            for action_key, q in entry["actions"]:
                action_type, size = action_key.rsplit("_", 1)
                actions.append({
                    "type": action_type,
                    "size_bucket": int(size),
                    "value": q["value"],
                    "visits": q["visits"],
                })
            records.append({
                "state": [bins[name] for name in DIMENSION_NAMES],
                "actions": actions,
            })
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ModelImportError(f"legacy snapshot is malformed: {exc!r}") from exc

    epsilon = data.get("epsilon")
    if epsilon is None:
        epsilon = fallback_epsilon

    logger.info("legacy_snapshot_migrated", states=len(records))
    return {
        "format_version": FORMAT_VERSION,
        "exported_at": data.get("timestamp") or datetime.now(timezone.utc).isoformat(),
        "epsilon": epsilon,
        "experience_count": data.get("experienceCount") or 0,
        "q_table": records,
    }
