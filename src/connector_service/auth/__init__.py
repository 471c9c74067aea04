"""Provider OAuth flows and browser sessions."""
