#!/usr/bin/env python3
"""
CLI for asking the assistant a question from the terminal.

Usage examples:
  python ask.py "How do I add a new site?"
  python ask.py "What does PR mean?" --context articles.json --no-stream

The context file holds a JSON list of {"title": ..., "body": ...} objects.
Streamed tokens are printed as they arrive; buffered replies are printed as JSON.
"""
import argparse
import json
import sys
from pathlib import Path

# Add parent directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chat_relay.core.errors import InvalidRequestError
from chat_relay.core.logging import get_logger
from chat_relay.models.request import ChatRequest
from chat_relay.models.response import ChatReply
from chat_relay.services.chat_service import get_chat_service

logger = get_logger(__name__)


def load_context(path: str) -> list:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def main() -> int:
    parser = argparse.ArgumentParser(description="Ask the knowledge-base assistant a question")
    parser.add_argument("question", help="Question to ask")
    parser.add_argument("--context", "-c", default=None, help="JSON file with knowledge base articles")
    parser.add_argument("--no-stream", action="store_true", help="Wait for the whole reply")

    args = parser.parse_args()

    try:
        payload = {
            "question": args.question,
            "context": load_context(args.context) if args.context else [],
        }
        request = ChatRequest.from_payload(payload)
    except (OSError, ValueError, InvalidRequestError) as e:
        print(json.dumps({"error": str(e)}))
        return 1

    service = get_chat_service()

    if args.no_stream:
        print(json.dumps(service.generate_response(request).model_dump(), indent=2))
        return 0

    result = service.stream_response(request)
    if isinstance(result, ChatReply):
        print(json.dumps(result.model_dump(), indent=2))
        return 0

    try:
        for event in result:
            payload = event[len("data: "):].strip()
            if payload == "[DONE]":
                break
            sys.stdout.write(json.loads(payload)["token"])
            sys.stdout.flush()
        sys.stdout.write("\n")
    except KeyboardInterrupt:
        logger.info("Interrupted, closing upstream stream")
        return 130
    finally:
        result.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
