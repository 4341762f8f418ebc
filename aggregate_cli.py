"""
Accessibility Aggregation CLI

Command-line interface for aggregation runs and snapshot inspection.
"""

import argparse
import json
import sys

from a11y_aggregator.aggregation import AggregationPipeline, get_audit_type, get_urls_for_audit
from a11y_aggregator.aggregation.retention import SnapshotRetentionManager
from a11y_aggregator.config import AggregatorConfig, configure_logging
from a11y_aggregator.integration import FileLogHook, IntegrationHookManager, WebhookHook
from a11y_aggregator.storage.keys import snapshot_date


def cmd_aggregate(args, config):
    """Aggregate the raw results of a site for one date."""
    storage = config.create_storage()

    hook_manager = None
    if args.webhook or args.event_log:
        hook_manager = IntegrationHookManager(async_execution=False)
        if args.webhook:
            hook_manager.register_hook(WebhookHook("cli-webhook", args.webhook))
        if args.event_log:
            hook_manager.register_hook(FileLogHook("cli-event-log", args.event_log))

    pipeline = AggregationPipeline(
        storage,
        audit_type=args.audit_type,
        max_retries=config.max_retries,
        retention_count=config.retention_count,
        max_concurrency=config.max_concurrency,
        hook_manager=hook_manager
    )
    result = pipeline.run(args.site_id, version=args.date, output_key=args.output_key)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    elif result.success:
        print(f"[OK] {result.message}")
        print(f"  Processed: {result.processed_count} files")
        print(f"  Failed: {result.failed_count} files")
        print(f"  Total violations: {result.current.overall.total}")
        print(f"  Comparison snapshot: {'loaded' if result.last_week else 'none'}")
    else:
        print(f"[ERROR] {result.message}")
        print(f"  Stage: {result.stage.value}")
        if result.reason:
            print(f"  Reason: {result.reason.value}")

    if not result.success:
        sys.exit(1)


def cmd_snapshots(args, config):
    """List the stored snapshots of a site."""
    storage = config.create_storage()
    retention = SnapshotRetentionManager(storage, args.site_id, get_audit_type(args.audit_type))
    keys = retention.list_snapshot_keys()

    print(f"\n=== Snapshots: {args.site_id} ({args.audit_type}) ===")
    for key in keys:
        print(f"{snapshot_date(key):<12} {key}")
    print(f"\nTotal: {len(keys)} snapshots")


def cmd_urls(args, config):
    """List the pages of the newest snapshot."""
    storage = config.create_storage()
    urls = get_urls_for_audit(storage, args.site_id, args.audit_type)

    if args.json:
        print(json.dumps(urls, indent=2))
        return

    print(f"\n=== URLs: {args.site_id} ===")
    print(f"{'URL':<70} {'Traffic':>10}")
    print("-" * 81)
    for entry in urls:
        traffic = entry['traffic'] if entry['traffic'] is not None else '-'
        print(f"{entry['url']:<70} {traffic:>10}")
    print(f"\nTotal: {len(urls)} URLs")


def cmd_serve(args, config):
    """Run the aggregation API server."""
    from a11y_aggregator.api import AggregationAPI

    api = AggregationAPI(config=config, enable_webhooks=not args.no_webhooks)

    print(f"Starting Aggregation API on {args.host}:{args.port}")
    print(f"Storage backend: {config.storage_backend}")
    print(f"Webhooks: {'disabled' if args.no_webhooks else 'enabled'}")
    print(f"API docs: http://{args.host}:{args.port}/docs")

    api.run(host=args.host, port=args.port)


def _load_config(args) -> AggregatorConfig:
    """Config file and environment, overridden by the global options."""
    config = AggregatorConfig.load(args.config)

    overrides = {
        'storage_backend': args.backend,
        'storage_path': args.path,
        'bucket_name': args.bucket,
        'region': args.region,
        'endpoint_url': args.endpoint,
        'access_key': args.access_key,
        'secret_key': args.secret_key,
        'max_retries': args.max_retries,
        'retention_count': args.retention_count,
        'max_concurrency': args.max_concurrency,
        'log_level': args.log_level,
    }
    config.update({name: value for name, value in overrides.items() if value is not None})
    config.validate()
    return config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Accessibility Aggregation CLI")

    # Global options
    parser.add_argument('--config', help='JSON configuration file')
    parser.add_argument('--backend', choices=['s3', 'local'], help='Storage backend')
    parser.add_argument('--path', help='Local storage path')
    parser.add_argument('--bucket', help='Scraper bucket name')
    parser.add_argument('--region', help='S3 region')
    parser.add_argument('--endpoint', help='S3 endpoint URL')
    parser.add_argument('--access-key', help='AWS access key')
    parser.add_argument('--secret-key', help='AWS secret key')
    parser.add_argument('--max-retries', type=int, help='Extra fetch attempts per file')
    parser.add_argument('--retention-count', type=int, help='Snapshots kept per site')
    parser.add_argument('--max-concurrency', type=int, help='Concurrent fetches')
    parser.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Log level')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # aggregate command
    aggregate_parser = subparsers.add_parser('aggregate', help='Aggregate a site')
    aggregate_parser.add_argument('site_id', help='Site identifier')
    aggregate_parser.add_argument('--audit-type', default='accessibility', help='Audit type')
    aggregate_parser.add_argument('--date', help='Target date YYYY-MM-DD (default: today, UTC)')
    aggregate_parser.add_argument('--output-key', help='Snapshot key override')
    aggregate_parser.add_argument('--webhook', help='Notify this URL about the run')
    aggregate_parser.add_argument('--event-log', help='Append run events to this file')
    aggregate_parser.add_argument('--json', action='store_true', help='Print the full result as JSON')

    # snapshots command
    snapshots_parser = subparsers.add_parser('snapshots', help='List snapshots of a site')
    snapshots_parser.add_argument('site_id', help='Site identifier')
    snapshots_parser.add_argument('--audit-type', default='accessibility', help='Audit type')

    # urls command
    urls_parser = subparsers.add_parser('urls', help='List URLs of the newest snapshot')
    urls_parser.add_argument('site_id', help='Site identifier')
    urls_parser.add_argument('--audit-type', default='accessibility', help='Audit type')
    urls_parser.add_argument('--json', action='store_true', help='Print as JSON')

    # serve command
    serve_parser = subparsers.add_parser('serve', help='Run the API server')
    serve_parser.add_argument('--host', default='0.0.0.0', help='Bind host')
    serve_parser.add_argument('--port', type=int, default=8000, help='Bind port')
    serve_parser.add_argument('--no-webhooks', action='store_true', help='Disable webhooks')

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    command_handlers = {
        'aggregate': cmd_aggregate,
        'snapshots': cmd_snapshots,
        'urls': cmd_urls,
        'serve': cmd_serve
    }

    try:
        config = _load_config(args)
    except (OSError, ValueError) as e:
        print(f"[ERROR] Invalid configuration: {e}")
        sys.exit(1)

    configure_logging(config.log_level)

    handler = command_handlers[args.command]
    try:
        handler(args, config)
    except Exception as e:
        print(f"[ERROR] {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
