"""Edge HTTP gateway: CORS negotiation, trust-header identity and scope-gated agent endpoints."""
