"""
Recommendation layer: turns profiles into prompts, parses replies, and runs
the deterministic batch rule ladder.

Modules
-------
prompts     : system/user prompt builders (single product, contextual, batch).
parsing     : extract_recommendation(), JSON salvage, batch response parsing.
rule_ladder : categorize() first-match ladder + enforce_consistency().
retry       : RetryPolicy + CancellationToken shared by single and bulk paths.
service     : ProductAnalyzer, BulkAnalyzer, BatchCategorizer.
"""
