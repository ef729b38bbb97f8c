"""State/store layer.

This package is the single source of truth for form values: the flat value
store with its per-field metadata, the lifecycle channels it announces
commits on, and the policy deciding when a commit triggers validation.
"""
