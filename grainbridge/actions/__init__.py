"""Action bundles: target parsing, per-domain rules, validation and execution."""
