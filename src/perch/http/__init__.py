"""HTTP primitives — immutable Request, Response, Headers and QueryParams."""
