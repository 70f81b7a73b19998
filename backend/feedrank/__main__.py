"""Run the API with uvicorn: ``python -m feedrank``."""

from __future__ import annotations

import uvicorn

from feedrank.settings import settings


def main() -> None:
	# log_config=None keeps the JSON formatter installed by feedrank.obs
	uvicorn.run("feedrank.main:app", host=settings.api_host, port=settings.api_port, log_config=None)


if __name__ == "__main__":
	main()
