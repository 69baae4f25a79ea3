"""
Command line entry point.

    agentsmith init
    agentsmith submit "Тема" "Текст обращения" --name "Иванов И."
    agentsmith process <request_id>
    agentsmith respond <request_id>
    agentsmith route <request_id>
"""

import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv

load_dotenv()

from agentsmith.core.logging_config import configure_logging  # noqa: E402


def _print_record(record):
    if record is None:
        print("Request not found", file=sys.stderr)
        return 1
    print(json.dumps(record.model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0


async def _run(args) -> int:
    from agentsmith.models.database import init_db
    from agentsmith.services.pipeline import build_pipeline
    from agentsmith.services.seed import seed_defaults

    init_db()
    if args.command == "init":
        seeded = seed_defaults()
        print("Seeded default organization" if seeded else "Already initialized")
        return 0

    pipeline = build_pipeline()

    if args.command == "submit":
        record = pipeline.store.create(
            full_name=args.name,
            contact_info=args.contact,
            subject=args.subject,
            description=args.description,
        )
        await pipeline.queue.start()
        pipeline.queue.on_request_created(record)
        await pipeline.queue.stop(drain=True)
        return _print_record(pipeline.store.get(record.id))

    if args.command == "process":
        return _print_record(await pipeline.processor.process_new(args.request_id))
    if args.command == "respond":
        return _print_record(await pipeline.processor.generate_response(args.request_id))
    if args.command == "route":
        return _print_record(await pipeline.processor.assign_by_org(args.request_id))
    return 2


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="agentsmith", description="Citizen request processing")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="create tables and seed the default organization")

    submit = sub.add_parser("submit", help="register a request and process it")
    submit.add_argument("subject")
    submit.add_argument("description")
    submit.add_argument("--name", default="Аноним")
    submit.add_argument("--contact", default=None)

    for command in ("process", "respond", "route"):
        cmd = sub.add_parser(command)
        cmd.add_argument("request_id")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
