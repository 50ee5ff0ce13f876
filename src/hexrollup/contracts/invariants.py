"""Formal pipeline invariants.

This file documents what each stage MUST produce. It is a reviewer anchor
and system reference, not executable code.
"""

PIPELINE_INVARIANTS = {
    "indexing": [
        "Same (lat, lon, resolution) always yields the same cell id",
        "Cell ids are canonical lowercase H3 strings",
        "Ancestor of ancestor equals ancestor at the final resolution",
    ],

    "aggregation": [
        "At most one record per cell id",
        "Every cell id is valid at the requested resolution",
        "visit_count is the max over contributing points, never a sum",
        "last_visit is the max over contributing points; absent is the minimum",
        "Invalid coordinates are dropped, never fatal under SKIP_POINT",
    ],

    "merge": [
        "Stored visit_count never decreases across runs",
        "Stored last_visit never decreases across runs once set",
        "A batch is applied fully or not at all",
        "Merging the same batch twice equals merging it once",
    ],

    "replace": [
        "Only used for configured coarse levels",
        "Delete and insert happen in one transaction",
        "An empty fresh set leaves the table untouched",
    ],

    "rollup": [
        "Target resolution is strictly coarser than the input",
        "Sum of visits is conserved from fine to coarse",
        "Each chain step consumes the previous step's output",
    ],
}

# Which stages are optional vs required
STAGE_REQUIREMENTS = {
    "indexing": "REQUIRED",
    "aggregation": "REQUIRED",
    "merge": "REQUIRED",     # Per level, unless the level uses replace
    "replace": "OPTIONAL",   # Only for levels configured with policy=replace
    "rollup": "OPTIONAL",    # Only if rollup.enabled
}
