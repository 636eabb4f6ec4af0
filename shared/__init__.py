# =============================================================================
# Realtime Screen Share - Shared Package
# =============================================================================
# Error types and wire contracts used by both the credential broker and the
# session client.
# =============================================================================
