"""Run the API with uvicorn: ``python -m mill_api.main [config.yaml]``."""

import sys

import uvicorn

from mill_api.app import create_app
from mill_config import get_active_config
from mill_kernel.db.engine import create_tables


def main(argv: list[str] | None = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    config = get_active_config(argv[0] if argv else None)
    app = create_app(config)
    create_tables()
    uvicorn.run(app, host=config.api.host, port=config.api.port)


if __name__ == "__main__":
    main()
