"""uvicorn entrypoint for the Blueberry API.

    cd apps/api && uvicorn main:app --reload

Everything else lives in the blueberry package; building the app here keeps
`import blueberry.app` free of side effects.
"""

from blueberry.app import add_request_id_middleware, create_app

app = create_app()
add_request_id_middleware(app)  # last added, so outermost

__all__ = ["app"]
