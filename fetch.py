#!/usr/bin/env python3
import argparse
import json
import logging
import sys
from typing import List, Tuple

from fetchproxy.config import DEFAULT_MAX_REDIRECTS, DEFAULT_REQUEST_TIMEOUT, DEFAULT_USER_AGENT, ProxyConfig
from fetchproxy.errors import FetchError
from fetchproxy.metrics import StatsLogger
from fetchproxy.prometheus_exporter import PrometheusExporter
from fetchproxy.proxy import FetchProxy
from fetchproxy.types import RequestDescriptor


def parse_header(raw: str) -> Tuple[str, str]:
    name, sep, value = raw.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"header must look like 'Name: value', got {raw!r}")
    return name.strip(), value.strip()


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Perform one HTTP request and print the normalized response envelope.")
    parser.add_argument("url", help="Absolute http(s) URL to request.")
    parser.add_argument("-X", "--method", default="GET", help="HTTP method.")
    parser.add_argument(
        "-H",
        "--header",
        dest="headers",
        action="append",
        type=parse_header,
        default=None,
        help="Request header as 'Name: value'. May be repeated.",
    )
    parser.add_argument("-d", "--data", dest="body", default=None, help="Request body.")
    parser.add_argument("--binary-body", action="store_true", help="Treat --data as base64 and send the decoded bytes.")
    parser.add_argument("--manual-redirect", action="store_true", help="Return 3xx responses instead of following them.")
    parser.add_argument("--referrer", default=None, help="Value for the Referer header.")
    parser.add_argument("--timeout", type=float, default=DEFAULT_REQUEST_TIMEOUT, help="Read timeout in seconds.")
    parser.add_argument("--max-redirects", type=int, default=DEFAULT_MAX_REDIRECTS, help="Redirect hop limit.")
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="Default User-Agent header.")
    parser.add_argument("--strict-body", action="store_true", help="Fail instead of returning an empty body on read errors.")
    parser.add_argument("--metrics-interval", type=float, default=0.0, help="Seconds between perf logs (0 to disable).")
    parser.add_argument("--prometheus-port", type=int, default=0, help="Expose Prometheus metrics on this port (0 to disable).")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase logging verbosity.")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    log_level = logging.WARNING
    if args.verbose == 1:
        log_level = logging.INFO
    elif args.verbose >= 2:
        log_level = logging.DEBUG
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(threadName)s %(message)s",
    )

    config = ProxyConfig(
        user_agent=args.user_agent,
        request_timeout=max(0.1, args.timeout),
        max_redirects=max(0, args.max_redirects),
        strict_body=args.strict_body,
        metrics_interval=max(0.0, args.metrics_interval),
    )
    descriptor = RequestDescriptor(
        url=args.url,
        method=args.method,
        body=args.body,
        is_body_binary=args.binary_body,
        headers=args.headers,
        redirect="manual" if args.manual_redirect else None,
        referrer=args.referrer,
    )

    with FetchProxy(config) as proxy:
        stats = None
        if config.metrics_interval > 0:
            stats = StatsLogger(proxy.metrics, config.metrics_interval, logging.info)
            stats.start()
        exporter = None
        if args.prometheus_port:
            exporter = PrometheusExporter(proxy.metrics, port=args.prometheus_port)
            exporter.start()
            logging.info("Prometheus metrics available at http://0.0.0.0:%d/metrics", args.prometheus_port)
        try:
            print(proxy.fetch_json(descriptor))
            return 0
        except FetchError as exc:
            print(json.dumps(exc.to_dict()), file=sys.stderr)
            return exc.exit_code
        finally:
            if exporter:
                exporter.stop()
            if stats:
                stats.stop()


if __name__ == "__main__":
    sys.exit(main())
