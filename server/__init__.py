# =============================================================================
# Realtime Screen Share - Server Package
# =============================================================================
# This package contains the credential broker: a stateless HTTP service that
# exchanges the long-lived API secret for a short-lived realtime session
# credential and serves the static landing page.
# =============================================================================
