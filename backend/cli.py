# cli.py
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv(Path(__file__).with_name(".env"))

from config import ClientConfig
from controller import QuestionFeedController
from errors import InterviewError
from gateway_client import GatewayClient
from parsers import extract_text
from storage import MORE_LABEL


def _print_cards(cards: List[str], reset: bool) -> None:
    if reset:
        print("=" * 60)
    for card in cards:
        print(card)
        print("-" * 60)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Generate interview questions from a resume.")
    p.add_argument("resume", type=Path, help="PDF or Word resume")
    p.add_argument("--position", required=True, help="target position")
    p.add_argument("--company", default="", help="target company")
    p.add_argument("--difficulty", default="all", choices=["all", "easy", "medium", "hard"])
    p.add_argument("--gateway", default=ClientConfig.GATEWAY_URL, help="gateway base URL")
    p.add_argument("--timeout", type=float, default=ClientConfig.GATEWAY_TIMEOUT)
    p.add_argument("--remote-extract", action="store_true",
                   help="let the gateway extract the text instead of parsing locally")
    p.add_argument("--once", action="store_true", help="print the first batch and exit")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def main(argv: Optional[List[str]] = None, input_fn=input) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    gateway = GatewayClient(base_url=args.gateway, timeout=args.timeout)
    controller = QuestionFeedController(
        gateway,
        extractor=gateway.extract if args.remote_extract else extract_text,
        on_render=_print_cards,
    )

    try:
        controller.select_file(args.resume.name, args.resume.read_bytes())
        controller.submit(position=args.position, company=args.company, difficulty=args.difficulty)
    except OSError as e:
        print(f"Could not read {args.resume}: {e}", file=sys.stderr)
        return 1
    except InterviewError as e:
        print(f"Error generating questions: {e.message}", file=sys.stderr)
        return 1

    state = controller.state
    while not args.once and state.more_visible:
        try:
            answer = input_fn(f"[Enter] {state.more_label}, [q] quit: ")
        except EOFError:
            break
        if answer.strip().lower() == "q":
            break
        controller.request_more()
        if state.more_label != MORE_LABEL:
            print(state.more_label)
    return 0


if __name__ == "__main__":
    sys.exit(main())
