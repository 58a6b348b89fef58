"""urdigest: Instagram DM onboarding and saved-post enrichment core."""

SERVICE_NAME = "urdigest"
