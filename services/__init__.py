"""Domain services: one-time codes, auth flows, mail and audit logging."""
