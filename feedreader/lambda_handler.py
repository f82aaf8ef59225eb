"""Lambda handlers for subscribing to feeds and polling stored feeds."""

import json
import os
from datetime import UTC, datetime
from typing import Any

import boto3

from .config import Config
from .fetcher import DocumentFetcher
from .logging_config import create_execution_logger, setup_structured_logging
from .models import (
    AmbiguousOptions,
    BatchSummary,
    ExistingFeed,
    FailureKind,
    Feed,
    InvalidUrl,
    NewFeed,
    Unresolvable,
)
from .reconcile import EntryReconciler
from .resolver import FeedResolver
from .rss import FeedParser
from .storage import FeedStore

setup_structured_logging(os.getenv("LOG_LEVEL", "INFO"))


def subscribe_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Subscribe to the feed behind a URL.

    Expects an API Gateway proxy event whose JSON body carries ``url``.
    Responds with the feed, with ``{"options": [...]}`` when the page
    advertises several feeds, or with an error.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway proxy response
    """
    execution_id = f"subscribe_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    logger = create_execution_logger("main", execution_id)

    try:
        url = _request_url(event)
    except ValueError:
        return _response(400, {"error": "Request body must be JSON"})

    if not url:
        return _response(400, {"error": "URL is blank"})

    try:
        config = Config()
        store = FeedStore(config.get_storage_config(), execution_id=execution_id)
        resolver = FeedResolver(
            store,
            fetcher=DocumentFetcher(config.get_fetch_config(), execution_id),
            parser=FeedParser(execution_id),
            execution_id=execution_id,
        )

        outcome, feed = resolver.subscribe(url)
    except Exception as e:
        logger.error(f"Error creating feed: {e}", feed_url=url, error=str(e))
        return _response(500, {"error": "Internal server error"})

    if isinstance(outcome, InvalidUrl):
        return _response(400, {"error": "URL is not valid"})
    if isinstance(outcome, AmbiguousOptions):
        options = [{"title": o.title, "url": o.url} for o in outcome.options]
        return _response(200, {"options": options})
    if isinstance(outcome, Unresolvable):
        logger.info(
            f"Could not resolve feed: {outcome.reason.value}",
            feed_url=url,
            reason=outcome.reason.value,
        )
        if outcome.reason is FailureKind.PARSE_FAILED:
            return _response(400, {"error": "Not able to parse feed"})
        return _response(400, {"error": "Not able to find feed"})
    if isinstance(outcome, (ExistingFeed, NewFeed)):
        return _response(200, feed_to_json(feed))

    raise TypeError(f"Unhandled resolution outcome: {outcome!r}")


def fetch_entries_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Reconcile every stored feed, one after another.

    Intended for a scheduled invocation. Per-feed failures are logged and
    counted without stopping the run.

    Args:
        event: Scheduler event data
        context: Lambda context object

    Returns:
        Response dictionary with status and the batch summary
    """
    execution_id = f"lambda_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S_%f')}"
    main_logger = create_execution_logger("main", execution_id)
    main_logger.log_execution_start(
        lambda_request_id=getattr(context, "aws_request_id", "unknown"),
        lambda_function_name=getattr(context, "function_name", "unknown"),
    )

    aws_region = "us-east-1"
    namespace = "FeedReader"
    try:
        config = Config()
        aws_region = config.aws_region
        namespace = config.metrics_namespace

        store = FeedStore(config.get_storage_config(), execution_id=execution_id)
        reconciler = EntryReconciler(
            store,
            fetcher=DocumentFetcher(config.get_fetch_config(), execution_id),
            parser=FeedParser(execution_id),
            lookup_scope=config.entry_lookup_scope,
            execution_id=execution_id,
        )

        feeds = store.list_feeds()
        main_logger.info(f"Found {len(feeds)} feeds to process", feed_count=len(feeds))

        summary = reconciler.reconcile_all(feeds)
    except Exception as e:
        error_msg = f"Critical error in fetch entries handler: {e}"
        main_logger.error(error_msg, error=str(e))
        main_logger.log_execution_end(success=False, error=error_msg)
        send_cloudwatch_metrics(
            BatchSummary(), aws_region, execution_id, namespace, success=False
        )
        return {
            "statusCode": 500,
            "body": json.dumps(
                {
                    "message": "Fetching entries failed",
                    "execution_id": execution_id,
                    "error": error_msg,
                }
            ),
        }

    metrics = summary.to_dict()
    main_logger.log_metrics(metrics)
    send_cloudwatch_metrics(summary, aws_region, execution_id, namespace)
    main_logger.log_execution_end(success=True, metrics=metrics)

    return {
        "statusCode": 200,
        "body": json.dumps(
            {
                "message": "Fetching entries completed",
                "execution_id": execution_id,
                "summary": metrics,
            }
        ),
    }


def feed_to_json(feed: Feed) -> dict[str, Any]:
    return {
        "id": feed.feed_id,
        "title": feed.title,
        "icon_url": feed.icon_url,
        "url": feed.url,
    }


def _request_url(event: dict[str, Any]) -> str:
    body = event.get("body") or "{}"
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON body: {e}") from e
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")

    url = body.get("url")
    return url.strip() if isinstance(url, str) else ""


def _response(status_code: int, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def send_cloudwatch_metrics(
    summary: BatchSummary,
    aws_region: str,
    execution_id: str,
    namespace: str = "FeedReader",
    success: bool | None = None,
) -> None:
    """
    Send batch metrics to CloudWatch.

    Failures are logged and swallowed; metrics never break a run.

    Args:
        summary: Batch reconciliation summary
        aws_region: AWS region for CloudWatch client
        execution_id: Execution ID for logging context
        namespace: CloudWatch metric namespace
        success: Overall outcome, defaults to "no feed failed"
    """
    metrics_logger = create_execution_logger("cloudwatch_metrics", execution_id)
    if success is None:
        success = summary.failed == 0

    try:
        cloudwatch = boto3.client("cloudwatch", region_name=aws_region)
        execution_dimension = [{"Name": "ExecutionId", "Value": execution_id}]
        status_dimension = [
            {"Name": "Status", "Value": "Success" if success else "Failure"}
        ]

        counts = {
            "FeedsProcessed": summary.feeds_processed,
            "FeedsSucceeded": summary.succeeded,
            "FeedsFailed": summary.failed,
            "EntriesFound": summary.total_entries,
            "EntriesAdded": summary.new_entries,
        }
        metric_data = [
            {
                "MetricName": name,
                "Value": value,
                "Unit": "Count",
                "Dimensions": execution_dimension,
            }
            for name, value in counts.items()
        ]
        metric_data += [
            {
                "MetricName": "ExecutionSuccess",
                "Value": 1 if success else 0,
                "Unit": "Count",
                "Dimensions": status_dimension,
            },
            {
                "MetricName": "ExecutionFailure",
                "Value": 0 if success else 1,
                "Unit": "Count",
                "Dimensions": status_dimension,
            },
        ]

        # CloudWatch accepts at most 20 metrics per call
        batch_size = 20
        for i in range(0, len(metric_data), batch_size):
            cloudwatch.put_metric_data(
                Namespace=namespace, MetricData=metric_data[i : i + batch_size]
            )

        metrics_logger.info(
            "Sent metrics to CloudWatch",
            metrics_sent=len(metric_data),
            namespace=namespace,
            execution_success=success,
        )
    except Exception as e:
        metrics_logger.error(f"Failed to send CloudWatch metrics: {e}", error=str(e))
