"""
Entry point: `serve` runs the scheduler with the health app,
`run-once` runs each collector a single time and prints the outcome
"""
import atexit
import json
import logging
import sys

from app import create_app, db
from autonomous_scheduler import (build_default_jobs, init_scheduler, start_scheduler,
                                  stop_scheduler)
from config import Config

logger = logging.getLogger(__name__)


def configure_logging(level: str = Config.LOG_LEVEL):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_scheduler(app):
    persistence = app.config.get("PERSISTENCE_ENABLED", False)
    jobs = build_default_jobs(db if persistence else None)
    return init_scheduler(jobs, app=app if persistence else None,
                          enabled=Config.ENABLE_COLLECTOR,
                          persistence_enabled=persistence)


def serve(host: str, port: int):
    app = create_app()
    build_scheduler(app)
    if start_scheduler():
        atexit.register(stop_scheduler)
    else:
        logger.info("Collection disabled; serving health endpoints only")
    app.run(host=host, port=port, use_reloader=False)


def run_once() -> int:
    app = create_app()
    scheduler = build_scheduler(app)
    scheduler.run_all()
    status = scheduler.scheduler_service.get_status(enabled=False)['collectors']
    summary = {
        name: {'result': entry['last_result'], 'error': entry['last_error']}
        for name, entry in status.items()
    }
    print(json.dumps(summary, indent=2))
    return 1 if any(entry['error'] for entry in summary.values()) else 0


def main(argv=None):
    """Main execution function with command line argument support"""
    import argparse

    parser = argparse.ArgumentParser(description='VT LiveView data collector')
    parser.add_argument('--log-level', type=str, default=Config.LOG_LEVEL, help='Logging level')
    subparsers = parser.add_subparsers(dest='command', required=True)

    serve_parser = subparsers.add_parser('serve', help='Run the scheduler and the health API')
    serve_parser.add_argument('--host', type=str, default=Config.HOST, help='Bind address')
    serve_parser.add_argument('--port', type=int, default=Config.PORT, help='Bind port')

    subparsers.add_parser('run-once', help='Run every collector once and print the results')

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    Config.validate()

    if args.command == 'serve':
        serve(args.host, args.port)
        return 0
    return run_once()


if __name__ == '__main__':
    sys.exit(main())
