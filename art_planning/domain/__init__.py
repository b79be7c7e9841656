"""Planning domain: models, error taxonomy and pure services."""
