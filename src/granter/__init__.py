"""
granter — grant outcome-rating engine.

Turns oracle readings, polls and votes into condition ratings, mixes them into an
outcome ratio and splits the released share of each transfer among recipients.

Layers
- granter.core — grammar, typed schema, structural validation, lifecycle (zero-IO).
- granter.rating — condition evaluator, outcome aggregator, share calculator, settlement engine.
- granter.io — settings and YAML/JSON/CBOR document adapters.
- granter.cli — `granter validate|evaluate|convert`.
"""

__version__ = "0.1.0"
