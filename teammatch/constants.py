ROLES = [
    "frontend",
    "backend",
    "fullstack",
    "designer",
    "ML",
    "presenter",
    "manager",
    "devops",
    "QA",
    "mobile",
]

SKILL_SUGGESTIONS = [
    "React",
    "TypeScript",
    "JavaScript",
    "Node.js",
    "Java",
    "Python",
    "C++",
    "Figma",
    "UI/UX",
    "Firebase",
    "Git",
    "SQL",
    "MongoDB",
    "TensorFlow",
]

SHORT_GOAL_MAX_LENGTH = 140

# Overlap beyond this many hours earns no extra availability points.
SCORED_OVERLAP_CAP_HOURS = 6

DEFAULT_MIN_OVERLAP_HOURS = 1.5
DEFAULT_MATCH_POOL_SIZE = 200
DEFAULT_TOP_MATCHES = 10

# Per-list cap used when listing a user's own cards or requests.
OWNED_LIST_LIMIT = 50

CARDS_COLLECTION = "intentCards"
REQUESTS_COLLECTION = "connectionRequests"
CONNECTIONS_COLLECTION = "connections"
