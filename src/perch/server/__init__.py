"""ASGI plumbing — request pipeline, response sending, uvicorn runner."""
