"""Content store CLI interface.

Examples:
  python -m app.content_store status
  python -m app.content_store sweep
  python -m app.content_store inspect <handle>
  python -m app.content_store delete <handle> --password secret
  python -m app.content_store serve --port 8000
"""

from app.content_store.cli import cli

if __name__ == "__main__":
    cli(prog_name="python -m app.content_store")
