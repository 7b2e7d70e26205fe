"""Main entry point for the AI calculator."""

import argparse
import asyncio
import logging
import sys

from .config import Config, load_config
from .errors import CalculatorError, ConfigurationError
from .history import CalculationHistory
from .models import AngleMode
from .pipeline import CalculationPipeline, build_pipeline
from .server import create_app

REPL_HELP = """Commands:
  :deg / :rad      switch angle mode
  :ai on|off       allow or forbid the remote normalizer
  :history         show recent results, newest first
  :clear           clear the history
  :quit            exit
Anything else is evaluated."""


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)


def run_server(args, logger, config: Config) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    app = create_app(config)
    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info("Starting API server on %s:%d", host, port)

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info" if args.verbose else "warning",
    )
    return 0


async def run_once(args, logger, pipeline: CalculationPipeline, angle_mode: AngleMode) -> int:
    """Evaluate a single expression and print the result."""
    try:
        outcome = await pipeline.run(args.expression, angle_mode, local_only=args.local_only)
    except CalculatorError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.normalized:
            print(f"Understood as: {e.normalized}", file=sys.stderr)
        return 1

    if outcome.normalized and args.verbose:
        logger.info("Understood as: %s", outcome.normalized)
    print(outcome.output)
    return 0


async def run_repl(args, pipeline: CalculationPipeline, config: Config, angle_mode: AngleMode) -> int:
    """Interactive session with angle-mode and AI toggles and a bounded history."""
    history = CalculationHistory(config.calculator.history_size)
    use_ai = pipeline.remote_enabled and not args.local_only

    print(f"AI calculator ({angle_mode.value}, AI {'on' if use_ai else 'off'}). Type :help for commands.")

    while True:
        try:
            line = input(f"[{angle_mode.value}] > ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return 0

        if not line:
            continue

        command = line.lower()
        if command in (":quit", ":q", ":exit"):
            return 0
        if command == ":help":
            print(REPL_HELP)
        elif command in (":deg", ":rad"):
            angle_mode = AngleMode.parse(command[1:])
            print(f"Angle mode: {angle_mode.value}")
        elif command in (":ai on", ":ai off"):
            if command == ":ai on" and not pipeline.remote_enabled:
                print("No LLM configured; remote normalization unavailable.")
            else:
                use_ai = command == ":ai on"
                print(f"AI normalization {'on' if use_ai else 'off'}")
        elif command == ":history":
            if not len(history):
                print("No history yet.")
            for entry in history:
                print(f"  {entry}")
        elif command == ":clear":
            history.clear()
        else:
            try:
                outcome = await pipeline.run(line, angle_mode, local_only=not use_ai)
            except CalculatorError as e:
                message = f"Error: {e}"
                if e.normalized:
                    message += f" (understood as: {e.normalized})"
                print(message)
                continue

            history.record(line, outcome.output)
            if outcome.normalized:
                print(f"  = {outcome.normalized}")
            print(outcome.output)


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Calculator for math expressions and natural-language math questions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve                          # Run the HTTP API (config.yaml)
  %(prog)s serve --port 8080              # Run the HTTP API on a custom port
  %(prog)s eval "sin(30)" --deg           # Evaluate once in degree mode
  %(prog)s eval "what is two times pi"    # Natural language (needs llm config)
  %(prog)s repl --local-only              # Interactive session without the LLM
        """,
    )

    parser.add_argument(
        "mode",
        choices=["serve", "eval", "repl"],
        help="serve: HTTP API, eval: evaluate one expression, repl: interactive session",
    )
    parser.add_argument("expression", nargs="?", help="Expression to evaluate (eval mode)")
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument("--deg", action="store_true", help="Interpret trig arguments as degrees")
    parser.add_argument(
        "--local-only",
        action="store_true",
        help="Never call the remote normalizer",
    )
    parser.add_argument("--host", help="Host for the API server (default from config)")
    parser.add_argument("--port", type=int, help="Port for the API server (default from config)")

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    if args.mode == "eval" and not args.expression:
        parser.error("eval mode requires an expression")

    try:
        logger.debug("Loading configuration from %s", args.config)
        config = load_config(args.config)
    except FileNotFoundError as e:
        if args.mode == "serve" or not args.local_only:
            logger.error(str(e))
            return 1
        config = Config()
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    if args.mode == "serve":
        try:
            return run_server(args, logger, config)
        except Exception as e:
            logger.exception("Fatal error: %s", e)
            return 1

    try:
        pipeline = build_pipeline(config)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    angle_mode = AngleMode.DEG if args.deg else config.calculator.default_angle_mode

    if args.mode == "eval":
        return asyncio.run(run_once(args, logger, pipeline, angle_mode))
    return asyncio.run(run_repl(args, pipeline, config, angle_mode))


if __name__ == "__main__":
    sys.exit(main())
