"""Entry point for `python -m fk_cli` and the `fkgraph` console script."""

from __future__ import annotations

from fk_cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
