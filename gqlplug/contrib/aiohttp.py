"""
gqlplug.contrib.aiohttp
~~~~~~~~~~~~~~~~~~~~~~~

aiohttp integration:

.. code-block:: python

    endpoint = AsyncGraphQLEndpoint(schema, pubsub=LocalPubSub())
    view = GraphQLView(endpoint)
    app.add_routes([web.get("/graphql", view), web.post("/graphql", view)])

Per-request options can be set by middleware:

.. code-block:: python

    @web.middleware
    async def auth(request, handler):
        request["gqlplug_options"] = {"context": {"user": request["user"]}}
        return await handler(request)

"""

from typing import Dict

from aiohttp import web

from gqlplug.endpoint.graphql import AsyncGraphQLEndpoint
from gqlplug.http import (
    FORM_URLENCODED,
    MULTIPART,
    HTTPRequest,
    HTTPResponse,
    StreamingResponse,
    Upload,
)
from gqlplug.subscription import stream_subscription

OPTIONS_KEY = "gqlplug_options"


async def to_http_request(request: web.Request) -> HTTPRequest:
    form = None
    files: Dict[str, Upload] = {}
    body = b""
    if request.content_type in (FORM_URLENCODED, MULTIPART):
        form = {}
        post = await request.post()
        for key, value in post.items():
            if isinstance(value, web.FileField):
                files[key] = Upload(
                    filename=value.filename,
                    content_type=value.content_type,
                    file=value.file,
                )
            else:
                form[key] = value
    else:
        body = await request.read()

    return HTTPRequest(
        method=request.method,
        content_type=request.content_type,
        query=dict(request.query),
        body=body,
        form=form,
        files=files,
        options=dict(request.get(OPTIONS_KEY) or {}),
    )


class GraphQLView:
    def __init__(self, endpoint: AsyncGraphQLEndpoint) -> None:
        self.endpoint = endpoint

    async def __call__(self, request: web.Request) -> web.StreamResponse:
        http_request = await to_http_request(request)
        response = await self.endpoint.handle(http_request)
        if isinstance(response, StreamingResponse):
            return await self.stream(request, http_request, response)
        return self.to_response(response)

    def to_response(self, response: HTTPResponse) -> web.Response:
        return web.Response(
            status=response.status,
            body=response.body,
            headers={**response.headers, "Content-Type": response.content_type},
        )

    async def stream(
        self,
        request: web.Request,
        http_request: HTTPRequest,
        response: StreamingResponse,
    ) -> web.StreamResponse:
        config = self.endpoint.request_config(http_request.options)
        stream = web.StreamResponse(
            status=response.status,
            headers={**response.headers, "Content-Type": response.content_type},
        )
        await stream.prepare(request)
        await stream_subscription(response.source, stream.write, config)
        return stream
