"""Comparison engine.

Modules:
    - comparator: per-pixel classification with shift tolerance
    - threshold: ResultCode, ComparisonResult, ThresholdEvaluator
    - compositor: output canvas and side-by-side layouts
    - engine: BlinkDiff orchestrator (load → normalize → compare → write)

Workflow:
    1. Load A and B (decoded images, arrays, bytes or paths)
    2. Crop, block out, clip to the common size, apply filters
    3. Count differences (optionally painting an overlay)
    4. Classify against the aggregate threshold
    5. Compose and write the output image

Used by:
    - cli: blink-diff command
    - Embedding callers via blinkdiff.BlinkDiff
"""
