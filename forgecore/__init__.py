# ============================================================================
# forgecore/__init__.py
# Package Marker for the Cache Forge Core
# ============================================================================
#
# WHAT'S IN THIS PACKAGE:
# - cache/: key mapping, payload codec and the Redis store adapter
# - manifest/: the cached manifest entry model and its integrity hash
# - forge/: the fetch -> mutate -> reseal -> write orchestrator
# - base/: configuration and logging setup
# - errors.py: typed errors shared by all of the above
#
# ============================================================================
