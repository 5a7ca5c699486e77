# This conftest controls *collection only* for the repository root.
#
# The pytest suite lives under ./tests. Runtime output directories written by
# the CLI and web UI are never collected.

collect_ignore = [
    "logs",
    "reports",
    "build",
]
