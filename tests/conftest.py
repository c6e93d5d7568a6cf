from __future__ import annotations

import copy
from typing import Any

import pytest

from granter.core.schema import ProjectGrant

PROPOSER = "0x1111111111111111111111111111111111111111"
INVESTOR = "0x2222222222222222222222222222222222222222"
EXECUTOR_A = "0x0E4716Dd910adeB96D9A82E2a7780261E3D9476D"
EXECUTOR_B = "0x3333333333333333333333333333333333333333"
REVIEWER = "0x4444444444444444444444444444444444444444"
DAO = "0x5555555555555555555555555555555555555555"
ADMIN = "0x6666666666666666666666666666666666666666"
NFT_COLLECTION = "0x7777777777777777777777777777777777777777"
TOKEN = "0x8888888888888888888888888888888888888888"
ORACLE = "0x9999999999999999999999999999999999999999"

_GRANT_TREE: dict[str, Any] = {
    "schema_version": 1,
    "status": "running",
    "actor": [
        {"name": "Ada Proposer", "role": "proposer", "address": PROPOSER},
        {"name": "Ivy Investor", "role": "investor", "address": INVESTOR},
        {"name": "Eli Executor", "role": "executor", "address": EXECUTOR_A, "share": 60},
        {"name": "Eva Executor", "role": "executor", "address": EXECUTOR_B, "share": 40},
        {"name": "Rex Reviewer", "role": "reviewer", "address": REVIEWER},
    ],
    "history": {
        "version": 2,
        "event": [
            {"date": "2024-01-10T09:00:00.000Z", "type": ["create"], "author": [PROPOSER]},
            {
                "date": "2024-02-01T12:30:00Z",
                "type": ["update"],
                "author": [ADMIN],
                "previous": {"version": 1, "cid": "4f1c0de1"},
                "comment": "approved by committee",
            },
        ],
    },
    "nft": {"collection": NFT_COLLECTION, "token_id": "42"},
    "organization": {"dao": DAO, "committee": [REVIEWER], "admin": ADMIN},
    "project": {
        "name": "Open Ledger Docs",
        "doc": ["https://example.org/grant.pdf"],
        "desc": "Documentation sprint for the open ledger toolkit.",
    },
    "dataset": [
        {"kind": "tellor", "id": 0, "query_id": "0xabc123", "query_data": "0x00"},
        {"kind": "poll", "id": 1, "question": "Was the release shipped?", "choices": ["yes", "no"]},
    ],
    "token": [{"id": 0, "contract": TOKEN, "type": "erc20", "chain": "optimism", "decimals": 2}],
    "transfer_share": [
        {"id": 0, "type": "map_percent", "actor": [EXECUTOR_A, EXECUTOR_B], "ratio": [0.6, 0.4]},
        {"id": 1, "type": "equi_percent", "actor": [EXECUTOR_A, EXECUTOR_B, REVIEWER]},
    ],
    "transfer": [
        {"id": 0, "status": "open", "amount": 1000, "token": 0},
        {"id": 1, "status": "open", "amount": 100, "token": 0},
        {"id": 2, "status": "closed", "amount": 50, "token": 0, "tx": ["0x" + "f" * 64]},
    ],
    "condition": [
        {
            "id": 0,
            "oracle": {"contract": ORACLE, "type": "tellor_number", "dataset": 0},
            "compute": "map_number",
            "mapping": {"type": "equal", "ref": [0, 1], "out": [0, 100]},
            "default": 0,
        },
        {
            "id": 1,
            "oracle": {"contract": ORACLE, "type": "poll_number", "dataset": 1},
            "compute": "average",
            "validation": [{"type": "min_participation_nb_account", "threshold": 3}],
            "mapping": {"type": "greater_than_or_equal", "ref": [0, 50, 80], "out": [0, 50, 100]},
        },
        {
            "id": 2,
            "oracle": {"contract": ORACLE, "type": "vote_string", "dataset": 1},
            "compute": "map_string",
            "mapping": {"type": "equal", "ref": ["yes", "no"], "out": [100, 0]},
        },
    ],
    "outcome": [
        {
            "id": 0,
            "name": "Release shipped",
            "transfer": [0],
            "share": 0,
            "condition": [0, 1],
            "condition_mix": "average_weighted",
            "condition_weight": [1, 3],
        },
        {
            "id": 1,
            "name": "Community review",
            "transfer": [1, 2],
            "share": 1,
            "condition": [2],
            "condition_mix": "require_and",
        },
    ],
    "activity": [
        {"id": 0, "name": "Build release", "outcome": [0]},
        {"id": 1, "name": "Review release", "outcome": [1]},
    ],
    "activity_group": [{"id": 0, "name": "Phase one", "phase": 1, "activity": [0, 1]}],
    "plan": [{"id": 0, "name": "Main plan", "group": [0]}],
    "plan_default": 0,
}

# Oracle inputs rating outcome 0 at 0.625 and outcome 1 at 1.0.
_ORACLE_INPUTS: dict[int, Any] = {
    0: 1,
    1: {"value": [60, 90], "participants": 5},
    2: "yes",
}


@pytest.fixture
def grant_tree() -> dict[str, Any]:
    """A complete, valid grant document tree (fresh copy per test)."""
    return copy.deepcopy(_GRANT_TREE)


@pytest.fixture
def grant(grant_tree: dict[str, Any]) -> ProjectGrant:
    return ProjectGrant.model_validate(grant_tree)


@pytest.fixture
def inputs_tree() -> dict[int, Any]:
    """Oracle inputs document for the sample grant, keyed by condition ID."""
    return copy.deepcopy(_ORACLE_INPUTS)
