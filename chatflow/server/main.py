"""CLI argument parsing and uvicorn entry point."""

import logging
import os


def main():
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="ChatFlow API Server")
    parser.add_argument("--config", default=None, help="Config file (default: $CHATFLOW_CONFIG or config.yaml)")
    parser.add_argument("--host", default=os.getenv("CHATFLOW_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("CHATFLOW_PORT", "8000")))
    parser.add_argument("--log-level", default=os.getenv("CHATFLOW_LOG_LEVEL", "INFO"))
    args = parser.parse_args()

    if args.config:
        os.environ["CHATFLOW_CONFIG"] = args.config

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(levelname)s: %(name)s - %(message)s",
    )

    from .app import api
    uvicorn.run(api, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
