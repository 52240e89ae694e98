"""
Site Server Runner

This script loads the environment, configures logging and runs the static
site server (plus the HTTPS redirect listener when TLS is enabled).
"""

import sys
import asyncio
import argparse
import logging

from siteserver.core.config import load_config, load_dotenv_file
from siteserver.core.errors import ConfigurationError, StartupError
from siteserver.core.logging_server import setup_logging
from siteserver.lifecycle.startup import serve


logger = logging.getLogger("runner")


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Static site server")
    parser.add_argument(
        '--env-file',
        type=str,
        default=None,
        help='Path to .env file (default: .env in working directory)'
    )
    parser.add_argument(
        '--log-dir',
        type=str,
        default=None,
        help='Also write logs to <log-dir>/siteserver.log'
    )
    parser.add_argument(
        '--json-logs',
        action='store_true',
        help='Emit structured JSON log lines'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(
        log_level=logging.DEBUG if args.debug else logging.INFO,
        use_structured=args.json_logs,
        log_dir=args.log_dir
    )

    try:
        load_dotenv_file(args.env_file)
        config = load_config()
        logger.info(
            f"Configuration: hostname={config.hostname} port={config.port} "
            f"ssl={config.ssl.enabled} auth={config.auth.enabled} "
            f"cache={config.cache_duration_ms}ms public={config.public_path}"
        )

        asyncio.run(serve(config))

    except KeyboardInterrupt:
        logger.info("Shutdown requested via KeyboardInterrupt")
    except (ConfigurationError, StartupError) as e:
        logger.critical(f"ERROR {e}")
        sys.exit(1)
    except Exception as e:
        logger.critical(f"Failed to start server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
