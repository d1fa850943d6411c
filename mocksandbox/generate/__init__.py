"""Generated sandbox artifacts."""

from mocksandbox.generate.mock_server import (
    MockServerArtifacts,
    generate_mock_server,
    render_server,
    to_route_path,
)

__all__ = ["MockServerArtifacts", "generate_mock_server", "render_server", "to_route_path"]
