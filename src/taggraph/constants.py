"""Tunable constants for graph building and layout.

Everything numeric lives here so builder, graph and layout modules stay free
of magic numbers. Config models in builder.py / layout.py default to these.
"""

# --- Similarity scoring ---

SIMILARITY_EDGE_THRESHOLD = 0.7  # Minimum entity similarity for a similarity edge
SIMILARITY_FACTOR_GATE = 0.3  # Factors at or below this are excluded, not zero-weighted
TEXT_SIMILARITY_WEIGHT = 3.0
MEANING_SIMILARITY_WEIGHT = 2.0
PHONETIC_SIMILARITY_WEIGHT = 1.0

# --- Edge construction ---

ROOT_TAG_KEY = "root"  # Custom tag key marking a word root
SHARED_ROOT_WEIGHT = 0.9
TAG_MEMBERSHIP_WEIGHT = 1.0  # entity -> tag node edges

# --- Geography ---

EARTH_RADIUS_M = 6_371_000.0
MAX_PROXIMITY_DISTANCE_M = 10_000.0  # Distances beyond this clamp to weight 0

# --- Query defaults ---

DEFAULT_TRAVERSAL_DEPTH = 2
DEFAULT_CONNECTION_LIMIT = 5
DEFAULT_MIN_CLUSTER_SIZE = 3

# --- Layout physics ---

DEFAULT_CANVAS_WIDTH = 800.0
DEFAULT_CANVAS_HEIGHT = 600.0
SEED_RADIUS_FACTOR = 0.3  # Seed circle radius as a share of min(width, height)
SEED_JITTER_MIN = 0.5
SEED_JITTER_MAX = 1.5
CENTER_STRENGTH = 0.005
REPULSION_STRENGTH = 8000.0
MIN_REPULSION_DISTANCE = 1.0
SPRING_LENGTH = 180.0
SPRING_CONSTANT = 0.08
DAMPING = 0.85
NODE_RADIUS = 25.0
NODE_PADDING = 10.0
TICK_INTERVAL_S = 0.008  # Reference cadence (~120 Hz); physics is scaled to it
MAX_TICK_SCALE = 4.0  # Largest step, in reference ticks, after a scheduler stall
