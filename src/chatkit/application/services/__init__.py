"""Application services: block sinks, token refresh and the ChatKit facade."""
