from fastapi import Request


def get_cache(request: Request):
    """Process-wide cache created by ``create_app``."""
    return request.app.state.cache


def get_tasks(request: Request):
    return request.app.state.tasks
