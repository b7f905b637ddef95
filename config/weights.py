"""
Matching weights and thresholds for the farm shop engine.

All scores follow the 0 = perfect, 1 = no match convention.
"""

# Relative importance of each product field in weighted fuzzy matching
FIELD_WEIGHTS = {
    "name": 0.8,
    "description": 0.2,
    "category": 0.1,
}

# Score given to exact, whole-word and name-substring hits
NAME_MATCH_SCORE = 0.0

# Description hits rank below every name hit
DESCRIPTION_MATCH_SCORE = 0.1

# Name-only fuzzy stage accepts scores at or below this
NAME_FUZZY_THRESHOLD = 0.45

# All-fields fuzzy stage is looser
ALL_FIELDS_FUZZY_THRESHOLD = 0.6

# Edit-distance stage: distance <= floor(ratio * max(len(query), len(target)))
EDIT_DISTANCE_RATIO = 0.34

# Fuzzy and edit-distance output is capped to this many results
MAX_FUZZY_RESULTS = 10

# Queries shorter than this only run the exact/substring stages
MIN_FUZZY_QUERY_LENGTH = 2

# Recommendations returned when the caller does not say
DEFAULT_RECOMMENDATION_COUNT = 3

# Category picker sentinel meaning "no category filter"
ALL_CATEGORIES = "All"
