"""Business logic services for the GTM webhook relay."""
