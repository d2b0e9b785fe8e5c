#!/usr/bin/env python3
"""
ads - ask a chat-completion API one question from the command line.

Connection settings come from an .adsenv file (see config.py); the answer is
printed either in one piece or, with --stream, fragment by fragment as the
server generates it.
"""

import argparse
import json
import logging
import signal
import sys
from typing import List, Optional

from completions import CompletionClient, build_request_body
from config import ConfigManager
from errors import APIError, BufferOverflow, ConfigurationError
from stream_handler import StreamingClient, StreamPrinter
from utils import setup_utf8

logger = logging.getLogger(__name__)


class Colors:
    """ANSI Color codes for terminal output."""
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


# ============ CLI ============
def create_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ads",
        description="Command-line interface for OpenAI-compatible chat APIs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ads -p                           # Show current config
  ads -j -e "Your question"        # Generate JSON and echo input
  ads -s "Explain TCP slow start"  # Stream the answer as it is generated
  ads -c --model deepseek-reasoner "1+1?"
        """,
    )

    p.add_argument("question", nargs="*", help="Question to ask")

    # Behavior
    p.add_argument("-p", "--print-env", action="store_true",
                   help="Print current configuration and exit")
    p.add_argument("-j", "--just-json", action="store_true",
                   help="Generate request JSON without sending to API")
    p.add_argument("-c", "--count-token", action="store_true",
                   help="Show token usage statistics")
    p.add_argument("-e", "--echo", action="store_true",
                   help="Echo the user's input question")
    p.add_argument("-s", "--stream", action="store_true",
                   help="Print the answer incrementally as it arrives")

    # Configuration overrides
    p.add_argument("--config", help="Config file (default: first .adsenv found)")
    p.add_argument("--base-url", help="Override BASE_URL")
    p.add_argument("--api-key", help="Override API_KEY")
    p.add_argument("--model", help="Override MODEL")
    p.add_argument("--system", help="Override SYSTEM_PROMPT")

    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    return p


def handle_sigint(signum, frame):
    print(f"\n{Colors.YELLOW}Interrupted{Colors.RESET}", file=sys.stderr)
    sys.exit(130)


def print_token_usage(response) -> None:
    print("\nToken Usage:")
    print(f"  Prompt: {response.prompt_tokens}")
    print(f"  Completion: {response.completion_tokens}")
    print(f"  Total: {response.total_tokens}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    question = " ".join(args.question).strip()
    if not question and not args.print_env:
        parser.error("missing required QUESTION argument")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    setup_utf8()
    signal.signal(signal.SIGINT, handle_sigint)

    try:
        # 1. Load configuration (file, then command line overrides)
        config = ConfigManager.load(args.config)
        ConfigManager.apply_overrides(config, args)

        if args.print_env:
            print(json.dumps(config.to_dict(), indent=2, ensure_ascii=False))
            return 0

        config.validate()

        if args.echo:
            print(f"\nInput: {question}")

        # 2. Build request body
        body = build_request_body(config, question, stream=args.stream)
        if args.just_json:
            print(json.dumps(body, ensure_ascii=False))
            return 0

        # 3. Execute
        printer = StreamPrinter()
        if args.stream:
            print("\nAnswer: ", end="", flush=True)
            try:
                with StreamingClient(config, printer) as client:
                    result = client.run(body, show_tokens=args.count_token)
            finally:
                print()
            if result.sink_errors:
                logger.warning(f"{result.sink_errors} fragment(s) could not be written")
            if result.usage_unavailable:
                print("\nToken usage unavailable in streaming mode", file=sys.stderr)
        else:
            with CompletionClient(config) as client:
                response = client.chat(body)
            print("\nAnswer: ", end="")
            printer.emit(response.content)
            print()
            if args.count_token:
                print_token_usage(response)

    except ConfigurationError as e:
        print(f"{Colors.RED}Config Error: {e}{Colors.RESET}", file=sys.stderr)
        return 1
    except BufferOverflow as e:
        print(f"{Colors.RED}Stream Error: {e}{Colors.RESET}", file=sys.stderr)
        return 1
    except APIError as e:
        print(f"{Colors.RED}API Error: {e}{Colors.RESET}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("Unexpected error")
        print(f"{Colors.RED}Error: {e}{Colors.RESET}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
