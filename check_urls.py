#!/usr/bin/env python3
import argparse
import json
import logging
import sys
from typing import List, Optional, Tuple

from crawlpolicy.config import DEFAULT_AGENT_NAME, PolicyConfig
from crawlpolicy.evaluation import CrawlPolicy
from crawlpolicy.metrics import PolicyMetrics, StatsLogger
from crawlpolicy.profile import CrawlProfile
from crawlpolicy.prometheus_exporter import PrometheusExporter
from crawlpolicy.storage import ProfileDatabase
from crawlpolicy.types import Candidate


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check candidate URLs against a crawl profile.")
    parser.add_argument("--url", dest="urls", nargs="+", required=True,
                        help="Candidate URLs, optionally suffixed with @depth (default depth 0).")
    parser.add_argument("--db", dest="db_path", default=None, help="SQLite profile database.")
    parser.add_argument("--handle", default=None, help="Handle of the stored profile (requires --db).")
    parser.add_argument("--profile-json", default=None, help="JSON file holding a profile map.")
    parser.add_argument("--name", default="cli", help="Name of an inline profile.")
    parser.add_argument("--must-match", default=None, help="Crawler URL must-match regex.")
    parser.add_argument("--must-not-match", default=None, help="Crawler URL must-not-match regex.")
    parser.add_argument("--no-depth-limit", default=None, help="URLs matching this regex ignore the depth limit.")
    parser.add_argument("--depth", type=int, default=0, help="Crawl depth limit.")
    parser.add_argument("--max-pages", type=int, default=-1, help="Pages per domain (-1 for no limit).")
    parser.add_argument("--agent", default=DEFAULT_AGENT_NAME, help="Agent name of an inline profile.")
    parser.add_argument("--save", action="store_true", help="Store the inline profile in --db.")
    parser.add_argument("--show-domains", action="store_true", help="Print the per-domain page counts afterwards.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase logging verbosity.")
    parser.add_argument("--metrics-interval", type=float, default=0.0, help="Seconds between stats logs (0 to disable).")
    parser.add_argument("--prometheus-port", type=int, default=None, help="Serve Prometheus metrics on this port.")
    return parser.parse_args(argv)


def parse_candidate(arg: str) -> Tuple[str, int]:
    url, sep, depth = arg.rpartition("@")
    if sep and depth.isdigit():
        return url, int(depth)
    return arg, 0


def load_profile(args: argparse.Namespace, config: PolicyConfig) -> CrawlProfile:
    if args.handle:
        if not args.db_path:
            raise SystemExit("--handle requires --db")
        db = ProfileDatabase(args.db_path)
        try:
            profile = db.get(args.handle)
        finally:
            db.close()
        if profile is None:
            raise SystemExit(f"No profile with handle {args.handle}")
        return profile
    if args.profile_json:
        with open(args.profile_json, "r", encoding="utf-8") as f:
            return CrawlProfile.from_map(json.load(f))
    profile = CrawlProfile.create(
        args.name,
        crawler_url_must_match=args.must_match,
        crawler_url_must_not_match=args.must_not_match,
        crawler_no_depth_limit_match=args.no_depth_limit,
        depth=max(0, args.depth),
        dom_max_pages=args.max_pages,
        config=config,
    )
    if args.save and args.db_path:
        db = ProfileDatabase(args.db_path)
        try:
            db.put(profile)
        finally:
            db.close()
        logging.info("Stored profile %s", profile.handle)
    return profile


def main(argv: Optional[List[str]] = None) -> int:
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

    config = PolicyConfig(
        agent_name=args.agent,
        metrics_interval=max(0.0, args.metrics_interval),
        prometheus_port=args.prometheus_port,
    )
    profile = load_profile(args, config)
    metrics = PolicyMetrics()
    policy = CrawlPolicy(profile, metrics=metrics)

    exporter = None
    if config.prometheus_port:
        exporter = PrometheusExporter(metrics, port=config.prometheus_port)
        exporter.start()
    stats = None
    if config.metrics_interval > 0:
        stats = StatsLogger(metrics, config.metrics_interval, logging.info)
        stats.start()

    rejected = 0
    try:
        for arg in args.urls:
            url, depth = parse_candidate(arg)
            decision = policy.admit(Candidate(url=url, depth=depth))
            if decision.accepted:
                print(f"ACCEPT {url}")
            else:
                rejected += 1
                print(f"REJECT {decision.reason} {url}")
    finally:
        if stats:
            stats.stop()
        if exporter:
            exporter.stop()
            exporter.update_metrics()
    if args.show_domains:
        for item in profile.domain_listing(config.domain_list_length):
            print(item)
    logging.info("Profile %s: %d checked, %d rejected", profile.handle, len(args.urls), rejected)
    return 1 if rejected else 0


if __name__ == "__main__":
    sys.exit(main())
