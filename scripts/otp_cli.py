import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.core.config import get_settings
from app.core.database_init import init_database_schema
from app.core.db import get_engine
from app.core.logging import configure_logging
from app.services import OTPService, StatusService


def _print(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _service() -> OTPService:
    settings = get_settings()
    if settings.OTP_STORE_BACKEND == "sql":
        init_database_schema(get_engine())
    return OTPService.from_settings(settings)


def main(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(description="Operate the OTP gateway from the command line.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("providers", help="Show which SMS providers are configured (no network calls)")

    send = commands.add_parser("send", help="Issue an OTP to a phone number")
    send.add_argument("phone", help="Recipient in E.164 format, e.g. +255712345678")
    send.add_argument("--message", default=None, help="Custom SMS text; {code} is replaced by the OTP")

    verify = commands.add_parser("verify", help="Verify an OTP for a phone number")
    verify.add_argument("phone")
    verify.add_argument("code")

    args = parser.parse_args(argv[1:])
    configure_logging()

    if args.command == "providers":
        _print(StatusService().provider_status())
        return 0

    service = _service()
    if args.command == "send":
        outcome = service.issue(args.phone, args.message)
        if not outcome.ok:
            _print(outcome.error.to_dict())
            return 1
        _print({"success": True, "provider": outcome.provider, "timestamp": outcome.timestamp})
        return 0

    outcome = service.verify(args.phone, args.code)
    if not outcome.ok:
        _print(outcome.error.to_dict())
        return 1
    _print({"success": True, "timestamp": outcome.timestamp})
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
