# src/celerpay/api/__main__.py
from __future__ import annotations

import uvicorn

from celerpay.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so CELER_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from celerpay.api.app import create_app
    from celerpay.api.config import load_gateway_config
    from celerpay.api.structured_logging import configure_structured_logging

    cfg = load_gateway_config()
    configure_structured_logging(cfg.log_level)

    uvicorn.run(create_app(cfg=cfg), host=cfg.api_host, port=cfg.api_port, log_level=cfg.log_level.lower())


if __name__ == "__main__":
    main()
