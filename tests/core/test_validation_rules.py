from __future__ import annotations

from typing import Any

import pytest

from granter.core.errors import DocumentError, StructuralError
from granter.core.schema import ProjectGrant
from granter.core.validation import (
    RULES,
    ValidationOptions,
    ensure_valid,
    parse_and_validate,
    validate,
)


def _paths(tree: dict[str, Any], options: ValidationOptions | None = None) -> list[str]:
    if options is None:
        _, issues = parse_and_validate(tree)
    else:
        _, issues = parse_and_validate(tree, options)
    return [issue.path for issue in issues]


def test_sample_grant_has_no_issues(grant_tree: dict[str, Any]) -> None:
    grant, issues = parse_and_validate(grant_tree)
    assert issues == []
    assert isinstance(grant, ProjectGrant)


@pytest.mark.parametrize("root", [[1, 2], "grant", None, 42])
def test_non_mapping_root_is_a_document_error(root: Any) -> None:
    with pytest.raises(DocumentError):
        parse_and_validate(root)


def test_field_level_issues_are_collected_with_paths(grant_tree: dict[str, Any]) -> None:
    grant_tree["outcome"][0]["condition_weight"] = [1, -3]
    grant_tree["status"] = "archived"
    grant_tree["token"][0]["contract"] = "0x12"
    grant_tree["project"]["colour"] = "blue"

    grant, issues = parse_and_validate(grant_tree)

    assert grant is None
    paths = {issue.path for issue in issues}
    assert {
        "outcome[0].condition_weight[1]",
        "status",
        "token[0].contract",
        "project.colour",
    } <= paths
    status_issue = next(i for i in issues if i.path == "status")
    assert status_issue.value == "archived"
    assert "GrantStatus" in status_issue.constraint


def test_rules_run_alongside_field_level_issues(grant_tree: dict[str, Any]) -> None:
    grant_tree["actor"][0]["name"] = "Al"
    grant_tree["transfer_share"][0]["ratio"] = [0.6, 0.3]

    grant, issues = parse_and_validate(grant_tree)

    assert grant is None
    assert [i.path for i in issues] == ["actor[0].name", "transfer_share[0].ratio"]


def test_status_and_schema_version_issues_reported_together(grant_tree: dict[str, Any]) -> None:
    grant_tree["status"] = "archived"
    grant_tree["schema_version"] = 7
    assert _paths(grant_tree) == ["status", "schema_version"]


def test_rules_reading_a_broken_field_are_skipped(grant_tree: dict[str, Any]) -> None:
    grant_tree["actor"][0]["name"] = "Al"
    grant_tree["transfer_share"][1]["actor"][2] = "0x" + "c" * 40
    # share recipients are checked against actors, which did not parse
    assert _paths(grant_tree) == ["actor[0].name"]


def test_union_member_errors_are_all_reported(grant_tree: dict[str, Any]) -> None:
    grant_tree["condition"][0]["mapping"]["ref"] = [0, {"value": 1}]
    _, issues = parse_and_validate(grant_tree)
    ref_issues = [i for i in issues if i.path == "condition[0].mapping.ref[1]"]
    assert len(ref_issues) == 2
    assert len({i.constraint for i in ref_issues}) == 2


def test_union_tags_are_dropped_from_paths(grant_tree: dict[str, Any]) -> None:
    grant_tree["outcome"][0]["transfer"] = [{"id": 9, "status": "open", "amount": -5, "token": 0}]
    grant_tree["condition"][0]["oracle"]["dataset"] = {"kind": "tellor", "id": 3, "query_id": ""}

    _, issues = parse_and_validate(grant_tree)

    paths = {issue.path for issue in issues}
    assert "outcome[0].transfer[0].amount" in paths
    assert "condition[0].oracle.dataset.query_id" in paths
    assert "condition[0].oracle.dataset.query_data" in paths


def test_mapping_ref_keeps_its_name(grant_tree: dict[str, Any]) -> None:
    grant_tree["condition"][0]["mapping"]["ref"] = [0, -1]
    assert "condition[0].mapping.ref[1]" in _paths(grant_tree)


def test_map_percent_ratios_must_sum_to_one(grant_tree: dict[str, Any]) -> None:
    grant_tree["transfer_share"][0]["ratio"] = [0.6, 0.3]
    assert _paths(grant_tree) == ["transfer_share[0].ratio"]


def test_map_percent_ratio_sum_within_epsilon(grant_tree: dict[str, Any]) -> None:
    grant_tree["transfer_share"][0]["ratio"] = [0.6, 0.4000004]
    assert _paths(grant_tree) == []
    strict = ValidationOptions(share_ratio_epsilon=1e-9)
    assert _paths(grant_tree, strict) == ["transfer_share[0].ratio"]


def test_map_percent_requires_one_ratio_per_actor(grant_tree: dict[str, Any]) -> None:
    grant_tree["transfer_share"][0]["ratio"] = [1.0]
    assert _paths(grant_tree) == ["transfer_share[0].ratio"]
    del grant_tree["transfer_share"][0]["ratio"]
    assert _paths(grant_tree) == ["transfer_share[0].ratio"]


def test_share_actors_must_be_grant_actors(grant_tree: dict[str, Any]) -> None:
    grant_tree["transfer_share"][1]["actor"][2] = "0x" + "c" * 40
    assert _paths(grant_tree) == ["transfer_share[1].actor[2]"]


def test_poll_number_oracles_require_gates(grant_tree: dict[str, Any]) -> None:
    del grant_tree["condition"][1]["validation"]
    assert _paths(grant_tree) == ["condition[1].validation"]


@pytest.mark.parametrize("index", [0, 2])
def test_gates_refused_on_ungated_oracles(grant_tree: dict[str, Any], index: int) -> None:
    grant_tree["condition"][index]["validation"] = [{"type": "min_participation_percent", "threshold": 10}]
    _, issues = parse_and_validate(grant_tree)
    assert [i.path for i in issues] == [f"condition[{index}].validation"]
    assert "only apply to poll_number, vote_number" in issues[0].constraint


def test_erc721_requires_token_id(grant_tree: dict[str, Any]) -> None:
    grant_tree["token"][0]["type"] = "erc721"
    grant_tree["token"][0]["decimals"] = 0
    assert _paths(grant_tree) == ["token[0].token_id"]
    grant_tree["token"][0]["token_id"] = "7"
    assert _paths(grant_tree) == []


def test_mapping_lengths_must_match(grant_tree: dict[str, Any]) -> None:
    grant_tree["condition"][0]["mapping"]["out"] = [0]
    assert _paths(grant_tree) == ["condition[0].mapping.out"]


def test_compute_mapping_consistency_is_optional(grant_tree: dict[str, Any]) -> None:
    grant_tree["condition"][2]["mapping"]["type"] = "greater_than"
    paths = _paths(grant_tree)
    assert "condition[2].mapping.type" in paths
    assert "condition[2].mapping.ref[0]" in paths
    relaxed = ValidationOptions(compute_mapping_consistency=False)
    assert _paths(grant_tree, relaxed) == []


def test_numeric_compute_requires_numeric_oracle(grant_tree: dict[str, Any]) -> None:
    grant_tree["condition"][1]["oracle"]["type"] = "poll_string"
    del grant_tree["condition"][1]["validation"]
    assert _paths(grant_tree) == ["condition[1].compute"]


def test_dataset_kind_matches_oracle_type(grant_tree: dict[str, Any]) -> None:
    grant_tree["condition"][0]["oracle"]["dataset"] = 1
    assert _paths(grant_tree) == ["condition[0].oracle.dataset"]


def test_average_weighted_requires_matching_weights(grant_tree: dict[str, Any]) -> None:
    grant_tree["outcome"][0]["condition_weight"] = [1]
    assert _paths(grant_tree) == ["outcome[0].condition_weight"]
    del grant_tree["outcome"][0]["condition_weight"]
    assert _paths(grant_tree) == ["outcome[0].condition_weight"]
    grant_tree["outcome"][0]["condition_weight"] = [0, 0]
    assert _paths(grant_tree) == ["outcome[0].condition_weight"]


def test_require_and_weights_are_reported_unused(grant_tree: dict[str, Any]) -> None:
    grant_tree["outcome"][1]["condition_weight"] = [1]
    assert _paths(grant_tree) == ["outcome[1].condition_weight"]


def test_outcome_with_transfers_needs_share(grant_tree: dict[str, Any]) -> None:
    del grant_tree["outcome"][0]["share"]
    assert _paths(grant_tree) == ["outcome[0].share"]


def test_transfer_bound_to_one_outcome(grant_tree: dict[str, Any]) -> None:
    grant_tree["outcome"][1]["transfer"].append(0)
    assert _paths(grant_tree) == ["outcome[1].transfer[2]"]


def test_outcome_lists_each_condition_once(grant_tree: dict[str, Any]) -> None:
    grant_tree["outcome"][0]["condition"] = [0, 0]
    assert "outcome[0].condition[1]" in _paths(grant_tree)


def test_registration_required_past_draft(grant_tree: dict[str, Any]) -> None:
    del grant_tree["nft"]
    del grant_tree["organization"]
    assert _paths(grant_tree) == ["nft", "organization"]
    grant_tree["status"] = "draft"
    assert _paths(grant_tree) == []


def test_actor_addresses_unique_except_proposers(grant_tree: dict[str, Any]) -> None:
    proposer = grant_tree["actor"][0]
    grant_tree["actor"].append({**proposer, "name": "Bob Proposer"})
    assert _paths(grant_tree) == []

    executor = grant_tree["actor"][2]
    grant_tree["actor"].append({**executor, "name": "Eli Again", "role": "reviewer"})
    assert _paths(grant_tree) == ["actor[6].address"]
    relaxed = ValidationOptions(unique_actor_address=False)
    assert _paths(grant_tree, relaxed) == []


def test_ids_unique_within_collection(grant_tree: dict[str, Any]) -> None:
    grant_tree["plan"].append({"id": 0, "name": "Backup plan"})
    assert _paths(grant_tree) == ["plan[1].id"]


def test_history_rules(grant_tree: dict[str, Any]) -> None:
    events = grant_tree["history"]["event"]
    events[1]["type"] = ["create"]
    events[1]["previous"]["version"] = 5
    events[1]["date"] = "2023-12-31T00:00:00Z"
    assert _paths(grant_tree) == [
        "history.event[1].type",
        "history.event[1].previous.version",
        "history.event[1].date",
    ]


def test_unsupported_schema_version(grant_tree: dict[str, Any]) -> None:
    grant_tree["schema_version"] = 7
    assert _paths(grant_tree) == ["schema_version"]


def test_referential_integrity_is_optional(grant_tree: dict[str, Any]) -> None:
    grant_tree["outcome"][0]["transfer"] = [5]
    grant_tree["transfer"][1]["token"] = 9
    grant_tree["plan_default"] = 4
    paths = _paths(grant_tree)
    assert {"outcome[0].transfer[0]", "transfer[1].token", "plan_default"} <= set(paths)
    relaxed = ValidationOptions(referential_integrity=False)
    assert _paths(grant_tree, relaxed) == []


def test_rules_report_every_issue_in_one_pass(grant_tree: dict[str, Any]) -> None:
    grant_tree["transfer_share"][0]["ratio"] = [0.5, 0.1]
    del grant_tree["condition"][1]["validation"]
    grant_tree["outcome"][1]["condition_weight"] = [2]
    assert len(_paths(grant_tree)) == 3


def test_inline_entities_are_validated(grant_tree: dict[str, Any]) -> None:
    grant_tree["outcome"][1]["share"] = {
        "id": 7,
        "type": "map_percent",
        "actor": [grant_tree["actor"][2]["address"]],
        "ratio": [0.5],
    }
    assert _paths(grant_tree) == ["outcome[1].share.ratio"]


def test_ensure_valid_raises_with_every_issue(grant: ProjectGrant, grant_tree: dict[str, Any]) -> None:
    assert ensure_valid(grant) is grant
    grant_tree["transfer_share"][0]["ratio"] = [0.5, 0.1]
    grant_tree["schema_version"] = 9
    broken = ProjectGrant.model_validate(grant_tree)
    with pytest.raises(StructuralError) as info:
        ensure_valid(broken)
    assert [i.path for i in info.value.issues] == ["transfer_share[0].ratio", "schema_version"]
    assert "2 structural issue(s)" in str(info.value)


def test_rule_table_is_documented() -> None:
    assert RULES
    for rule in RULES:
        assert rule.description
        assert rule.option is None or hasattr(ValidationOptions(), rule.option)


def test_validate_on_typed_grant(grant: ProjectGrant) -> None:
    assert validate(grant) == []
