"""CLI утилита (разбор одной записи тем же парсером, что и HTTP API)."""

import argparse
import json
import sys

from bib_parser.infrastructure.logging import configure_logging
from bib_parser.services.errors import map_exception
from bib_parser.services.parser import build_parser


def cmd_parse(args: argparse.Namespace) -> int:
    """Печатает JSON записи в stdout; ошибку (публичное сообщение) в stderr."""
    try:
        parser = build_parser(args.provider)
        result = parser.parse(args.text)
    except Exception as e:
        pub = map_exception(e)
        print(f"Ошибка ({pub.code}): {pub.message}", file=sys.stderr)
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Точка входа CLI."""
    parser = argparse.ArgumentParser(prog="bib-parser", description="Bib Parser: CLI")
    parser.add_argument("--log-level", default=None, help="Уровень логов (по умолчанию LOG_LEVEL)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_parse = sub.add_parser("parse", help="Разобрать библиографическую запись")
    p_parse.add_argument("text", help="Сырая запись, например: \"Порус В.Н. На Мосту // ...\"")
    p_parse.add_argument(
        "--provider",
        default=None,
        help="Провайдер (mock/openai), по умолчанию DEFAULT_PROVIDER",
    )
    p_parse.set_defaults(func=cmd_parse)

    args = parser.parse_args(argv)
    configure_logging(args.log_level, stream=sys.stderr)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
