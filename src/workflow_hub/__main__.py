"""`python -m workflow_hub` entry point.

The tools module must be imported before the server starts so that its
@mcp.tool() decorators have registered every tool.
"""


def main() -> None:
    from . import tools  # noqa: F401 - registers tools on import
    from .server import main as run_server

    run_server()


if __name__ == "__main__":
    main()
