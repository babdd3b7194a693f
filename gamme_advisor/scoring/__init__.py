"""
Scoring engines: pure, synchronous functions with no I/O and no shared state.

Modules
-------
score_engine     : compute_scores() — supplier-wide MAX + bonus score (0–100).
rayon_engine     : analyze_rayon() — percentile/quadrant composite with
                   guard-rail A/Z decision (ScoringResult).
context_profiler : build_profile() — per-store-normalized comparison profile
                   (ContextProfile) consumed by the prompt layer.
"""
