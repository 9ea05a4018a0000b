"""Tier engines.

- status: read-only ownership/mode drift report
- diff: read-only staging-vs-locked comparison and approval hash
- approve: hash-gated commit of staged changes into the locked tier
- sync: ownership reconciliation and release of removed files
- reset: discard pending proposals by re-mirroring staging copies
- init: first-time workspace setup
- tiers: protect, track and release, each followed by a sync
- policy: caller-supplied checks run before an approval writes
- staging: staging directory layout and writer-owned copies
"""
