# =============================================================================
# Realtime Screen Share - Session Client Package
# =============================================================================
# This package contains the client-side components: screen capture, the
# realtime transport, event handling, usage accounting and the end-of-session
# report.
# =============================================================================
