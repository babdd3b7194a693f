"""
Gamme Advisor — assortment scoring and category recommendation engine.

Sub-packages
------------
utils      : statistics primitives and logging setup.
models     : ProductMetrics input type and the A/B/C/Z / quadrant taxonomy.
scoring    : score engine, rayon scoring engine, context profiler (pure, no I/O).
analysis   : prompts, response parsing, rule ladder, retry policy, orchestration.
llm        : HTTP client for the chat-completion API.
reporting  : flat-file export helpers.
"""

__version__ = "0.1.0"
