"""
Core package aggregator for granter contracts (grammar, schema, validation, lifecycle, hashing/serde, versioning).

## Contracts (single source of truth)
- Grammar — enums with stable lower_snake wire codes, legacy integer codes, lifecycle ordering.
- Schema — typed pydantic models of a project grant definition with field-level validators.
- Validation — rule table for conditional, cross-field, uniqueness and referential rules.
- History — change events, lock/close handling, versioned derivation of new definitions.
- Hashing/Serde — canonical JSON and content identifiers.
- Versioning — grant schema version metadata.
- Typing — NewType IDs and rating/ratio aliases shared with granter.rating.

## Notes
- Zero-IO policy: stdlib + pydantic only; no file/network IO.
- Naming policy: enum `.value` and field names are lower_snake.
- Reference-or-inline relations are tagged unions; granter.rating.engine.GrantIndex resolves them.

## Downstream usage
- granter.rating — rates conditions, mixes outcome ratios and splits transfers over typed grants.
- granter.io — decodes YAML/JSON/CBOR documents and hands trees to `validation.parse_and_validate`.

## Examples
```python
from granter.core.grammar import ConditionMix, enum_from_value
enum_from_value(ConditionMix, 0) is ConditionMix.REQUIRE_AND  # True

from granter.core.validation import parse_and_validate
grant, issues = parse_and_validate(tree)
for issue in issues:
    print(issue)  # e.g. "transfer_share[0].ratio: ratios must sum to 1.0 +/- 1e-06 (sum=0.9)"
```
"""
