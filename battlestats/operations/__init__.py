"""
Operations Layer

Pure computation over raw battle records. Nothing in this package touches the
database; services fetch records and hand them to these modules.

Each operations module focuses on one step of the pipeline:
- event_extractor: Raw record shapes to CombatEvent values
- loadout: Loadout snapshots and their canonical keys
- aggregator: Keyed buckets, totals and derived rates
- calendar_rollup: Dense month and day grids
- pagination: Cursor encoding and page assembly
"""
