"""Run one verification with settings from the environment: python -m fheverify"""

import sys

from .config import RunSettings
from .logging import configure_logging
from .runner import run_check


def main() -> int:
    settings = RunSettings()
    configure_logging(settings.LOG_LEVEL, json_format=settings.ENVIRONMENT == "production")
    report = run_check(settings)
    for line in report.lines():
        print(line)
    # A mismatch is reported in the output, the run itself completed
    return 0


if __name__ == "__main__":
    sys.exit(main())
