"""Source template for the generated mock server (string.Template syntax)."""

SERVER_TEMPLATE = '''#!/usr/bin/env python3
"""Mock API server generated by mocksandbox.

Serves $rest_count REST endpoints and $graphql_count GraphQL operations from
mock-spec.json. This file is regenerated on every run.

Run standalone:
    pip install -r requirements.txt
    python server.py
"""

import asyncio
import json
import os
import random
import re
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

SPEC_PATH = Path(__file__).with_name("mock-spec.json")
PORT = int(os.environ.get("PORT", "$port"))
LATENCY_MS = ($latency_min, $latency_max)

# (HTTP method, route path, index into mock_spec["rest"])
ROUTES = $routes

GRAPHQL_ENDPOINTS = $graphql_endpoints

OPERATION_NAME = re.compile(r"\\b(?:query|mutation|subscription)\\s+([A-Za-z_]\\w*)")

mock_spec = json.loads(SPEC_PATH.read_text(encoding="utf-8"))

app = FastAPI(title="mocksandbox mock server", docs_url=None, redoc_url=None)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


async def simulate_latency():
    low, high = LATENCY_MS
    if high > 0:
        await asyncio.sleep(random.randint(low, high) / 1000)


def rest_handler(entry):
    async def handler(request: Request):
        await simulate_latency()
        return JSONResponse(entry.get("exampleResponse"), status_code=entry.get("status", 200))

    return handler


def graphql_handler(endpoint):
    operations = {
        op["operationName"]: op for op in mock_spec["graphql"] if op.get("endpoint") == endpoint
    }

    async def handler(request: Request):
        await simulate_latency()
        try:
            body = await request.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        name = body.get("operationName")
        if not name and isinstance(body.get("query"), str):
            match = OPERATION_NAME.search(body["query"])
            name = match.group(1) if match else None
        operation = operations.get(name)
        if operation is None:
            return JSONResponse({"errors": [{"message": "Operation not found"}]}, status_code=404)
        return JSONResponse(operation.get("exampleResponse"))

    return handler


@app.get("/health")
def health():
    return {"status": "ok", "mocks": len(mock_spec["rest"]) + len(mock_spec["graphql"])}


for method, path, index in ROUTES:
    app.add_api_route(
        path,
        rest_handler(mock_spec["rest"][index]),
        methods=[method],
        include_in_schema=False,
    )

for endpoint in GRAPHQL_ENDPOINTS:
    app.add_api_route(endpoint, graphql_handler(endpoint), methods=["POST"], include_in_schema=False)


@app.exception_handler(StarletteHTTPException)
async def not_found(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse(
            {"error": "Mock endpoint not found", "path": request.url.path},
            status_code=404,
        )
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


if __name__ == "__main__":
    print(f"Mock server running on http://localhost:{PORT}")
    print(f"Serving {len(mock_spec['rest'])} REST endpoints and {len(mock_spec['graphql'])} GraphQL operations")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
'''

REQUIREMENTS = """fastapi>=0.110
uvicorn>=0.29
"""
