"""
Command line entry point.

    metric-supervisor <command> [args...]

Settings are read from SUPERVISOR_* environment variables (or a .env file).
The supervisor exits with the subprocess's exit code, or 0 when it was told
to shut down with SIGTERM/SIGQUIT.
"""
import sys
import logging
from typing import List, Optional

import setproctitle

from metric_supervisor import settings
from metric_supervisor.config import SupervisorConfig
from metric_supervisor.errors import ConfigError, SpawnError
from metric_supervisor.log import setup_logging
from metric_supervisor.supervisor import Supervisor

log = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> None:
    """The main entry point for the supervisor."""
    args = sys.argv[1:] if argv is None else argv

    # Console logging at INFO until the configured level is known.
    setup_logging(logging.INFO)

    try:
        config = SupervisorConfig.from_env()
        if not args:
            raise ConfigError("Too few CLI args, need at least 1 to start the subprocess")
    except ConfigError as e:
        log.critical(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(config.log_level)
    setproctitle.setproctitle(settings.PROCESS_TITLE_TEMPLATE.format(command=" ".join(args)))

    supervisor = Supervisor(config)
    try:
        retcode = supervisor.run(args)
    except SpawnError as e:
        log.critical(f"{e}")
        sys.exit(1)

    sys.exit(retcode)


if __name__ == "__main__":
    main()
