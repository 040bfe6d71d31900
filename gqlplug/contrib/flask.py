"""
gqlplug.contrib.flask
~~~~~~~~~~~~~~~~~~~~~

Flask integration:

.. code-block:: python

    endpoint = GraphQLEndpoint(schema)
    app.add_url_rule(
        "/graphql",
        view_func=GraphQLView.as_view("graphql", endpoint=endpoint),
    )

Per-request options are read from ``flask.g.gqlplug_options``.

"""

from flask import Response, g, request
from flask.views import MethodView

from gqlplug.endpoint.graphql import GraphQLEndpoint
from gqlplug.http import (
    FORM_URLENCODED,
    MULTIPART,
    HTTPRequest,
    Upload,
)

OPTIONS_KEY = "gqlplug_options"


def to_http_request() -> HTTPRequest:
    if request.mimetype in (FORM_URLENCODED, MULTIPART):
        form = request.form.to_dict()
        body = b""
    else:
        form = None
        body = request.get_data()

    return HTTPRequest(
        method=request.method,
        content_type=request.mimetype or None,
        query=request.args.to_dict(),
        body=body,
        form=form,
        files={
            key: Upload(
                filename=storage.filename,
                content_type=storage.mimetype,
                file=storage.stream,
            )
            for key, storage in request.files.items()
        },
        options=dict(g.get(OPTIONS_KEY) or {}),
    )


class GraphQLView(MethodView):
    methods = ["GET", "POST"]

    def __init__(self, endpoint: GraphQLEndpoint) -> None:
        self.endpoint = endpoint

    def _handle(self) -> Response:
        response = self.endpoint.handle(to_http_request())
        return Response(
            response.body,  # type: ignore[union-attr]
            status=response.status,
            headers={**response.headers, "Content-Type": response.content_type},
        )

    def get(self) -> Response:
        return self._handle()

    def post(self) -> Response:
        return self._handle()
